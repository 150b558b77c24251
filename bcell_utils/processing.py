#!/usr/bin/env python3
"""
Processing utilities for the B-cell analysis
Handles normalization, PCA, embedding and clustering
"""

import scanpy as sc

from bcell_utils.params import EMBEDDING_PARAMS


def normalize_log(adata):
    """Normalize and log-transform counts

    Args:
        adata: AnnData object with raw counts

    Returns:
        Normalized copy of adata (full data kept in .raw)
    """
    print("Normalizing data...")

    adata = adata.copy()
    sc.pp.normalize_total(adata, target_sum=1e4)
    sc.pp.log1p(adata)
    adata.raw = adata
    return adata


def run_embedding(
    adata,
    n_pcs=EMBEDDING_PARAMS["n_pcs"],
    n_neighbors=EMBEDDING_PARAMS["n_neighbors"],
    resolution=EMBEDDING_PARAMS["resolution"],
    method=EMBEDDING_PARAMS["method"],
):
    """Run PCA, a 2D embedding and Leiden clustering

    Args:
        adata: Normalized AnnData object
        n_pcs: Number of principal components
        n_neighbors: Neighbors for the kNN graph
        resolution: Leiden resolution
        method: "tsne" or "umap"

    Returns:
        AnnData object with embeddings and obs["leiden"]
    """
    if method not in ("tsne", "umap"):
        raise ValueError(f"Unknown embedding method '{method}'")

    n_comps = min(n_pcs, adata.n_obs - 1, adata.n_vars - 1)

    print("Running PCA...")
    sc.tl.pca(adata, n_comps=n_comps)

    print("Computing neighborhood graph...")
    sc.pp.neighbors(adata, n_neighbors=n_neighbors, n_pcs=n_comps)

    if method == "tsne":
        print("Running tSNE...")
        sc.tl.tsne(adata, n_pcs=n_comps)
    else:
        print("Running UMAP...")
        sc.tl.umap(adata)

    print("Clustering...")
    sc.tl.leiden(
        adata,
        resolution=resolution,
        flavor="igraph",
        n_iterations=2,
        directed=False,
    )

    return adata
