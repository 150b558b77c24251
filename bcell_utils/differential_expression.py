#!/usr/bin/env python3
"""
Differential expression utilities for comparing B cells across tissues
Handles marker ranking, group dendrograms and marker table export
"""

import pandas as pd
import scanpy as sc
from pathlib import Path

from bcell_utils.filters import filter_groups
from bcell_utils.params import DE_PARAMS, GROUP_FILTERS

MARKER_COLUMNS = [
    "gene",
    "group",
    "pvals_adj",
    "pvals",
    "logfoldchanges",
    "scores",
    "group_label",
]


def _empty_marker_table():
    return pd.DataFrame(columns=MARKER_COLUMNS)


def compute_group_markers(
    adata,
    groupby,
    method=DE_PARAMS["method"],
    n_genes=DE_PARAMS["n_genes"],
    pval_adj_cutoff=DE_PARAMS["pval_adj_cutoff"],
    min_group_size=GROUP_FILTERS["min_cells_per_group"],
    inverse=None,
    corr_method=DE_PARAMS["corr_method"],
):
    """Rank marker genes for each group against the rest.

    Groups with min_group_size cells or fewer are dropped before testing so
    that p-values of tiny groups do not end up next to those of large ones.

    Args:
        adata: AnnData object (log-normalized expression)
        groupby: obs column to group by, e.g. integer codes from relabel_groups
        method: DE method passed to scanpy (e.g. "wilcoxon", "t-test")
        n_genes: Number of genes ranked per group
        pval_adj_cutoff: Keep rows with pvals_adj strictly below this value
        min_group_size: Groups need more cells than this to be tested
        inverse: Optional code -> label mapping used to fill group_label
        corr_method: Multiple testing correction passed to scanpy

    Returns:
        Marker table with MARKER_COLUMNS, empty if fewer than two groups remain
    """
    if groupby not in adata.obs:
        raise KeyError(f"Groupby key '{groupby}' not found in adata.obs")

    print(f"Computing markers for groups in '{groupby}'...")
    kept, subset = filter_groups(adata, groupby, min_group_size, inverse=inverse)
    if len(kept) < 2:
        print("⚠️  Fewer than two groups left, no markers computed")
        return _empty_marker_table()

    subset.obs[groupby] = (
        subset.obs[groupby].astype(str).astype("category")
    )
    sc.tl.rank_genes_groups(
        subset,
        groupby=groupby,
        method=method,
        n_genes=int(min(n_genes, subset.n_vars)),
        corr_method=corr_method,
        use_raw=False,
    )

    markers = sc.get.rank_genes_groups_df(subset, None)
    markers = markers.rename(columns={"names": "gene"})
    markers = markers[markers["pvals_adj"] < float(pval_adj_cutoff)].copy()

    markers["group"] = markers["group"].astype(str)
    if inverse is not None:
        labels = {str(code): str(label) for code, label in inverse.items()}
        markers["group_label"] = markers["group"].map(labels)
    else:
        markers["group_label"] = markers["group"]

    print(f"  {len(markers):,} marker rows across {markers['group'].nunique()} groups")
    return markers[MARKER_COLUMNS].reset_index(drop=True)


def top_markers_per_group(markers, n=10, sort_key="scores"):
    """Top-n markers of each group, best first"""
    if markers.empty:
        return markers
    return (
        markers.sort_values(["group", sort_key], ascending=[True, False])
        .groupby("group", sort=False)
        .head(int(n))
        .reset_index(drop=True)
    )


def write_marker_table(markers, path, sep=","):
    """Write the marker table to a delimited file

    Args:
        markers: Marker table from compute_group_markers
        path: Output path, parent directories are created
        sep: Field delimiter

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    markers.to_csv(path, sep=sep, index=False)
    print(f"  Saved: {path}")
    return path


def group_dendrogram(adata, groupby, n_pcs=None, var_names=None):
    """Hierarchical tree over group-average expression

    Args:
        adata: AnnData object (needs X_pca unless var_names is given)
        groupby: obs column with categorical groups
        n_pcs: Principal components used for the correlation
        var_names: Optional genes to use instead of PCs

    Returns:
        List of group categories in dendrogram order
    """
    if groupby not in adata.obs:
        raise KeyError(f"Groupby key '{groupby}' not found in adata.obs")

    sc.tl.dendrogram(adata, groupby=groupby, n_pcs=n_pcs, var_names=var_names)
    return list(adata.uns[f"dendrogram_{groupby}"]["categories_ordered"])
