#!/usr/bin/env python3
"""
Data loading utilities for the Tabula Muris B-cell analysis
Handles the annotation table and per-tissue h5ad objects
"""

import pandas as pd
import anndata
import scanpy as sc
from pathlib import Path

from bcell_utils.params import ANNOTATION_COLUMNS


def load_annotations(path, index_col="cell", sep=",", required=ANNOTATION_COLUMNS):
    """Load the cell annotation table

    Args:
        path: Delimited file with a header row
        index_col: Column holding the cell identifier
        sep: Field delimiter
        required: Columns that must be present

    Returns:
        DataFrame indexed by cell id
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Annotation file not found: {path}")

    print(f"Loading annotations from {path}")
    annotations = pd.read_csv(path, sep=sep, index_col=index_col)

    missing = [c for c in required if c not in annotations.columns]
    if missing:
        raise ValueError(f"Missing required annotation columns: {missing}")

    print(f"  {len(annotations):,} cells, {annotations['tissue'].nunique()} tissues")
    return annotations


def load_tissue_h5ad(path):
    """Load one precomputed tissue object

    Args:
        path: Path to the h5ad file

    Returns:
        AnnData object
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Analysis object not found: {path}")
    return sc.read_h5ad(path)


def load_and_merge_tissues(base_path, tissues, suffix, cells=None):
    """Load and merge per-tissue h5ad files

    Args:
        base_path: Directory holding the files
        tissues: List of tissue names
        suffix: Filename suffix, file is f"{tissue}{suffix}"
        cells: Optional collection of cell ids to keep

    Returns:
        Merged AnnData object with obs["tissue"]
    """
    print("Loading tissue objects...")

    keep = set(cells) if cells is not None else None
    adatas = []
    for tissue in tissues:
        file_path = Path(base_path) / f"{tissue}{suffix}"
        print(f"Loading {file_path}")

        adata = load_tissue_h5ad(file_path)
        if keep is not None:
            adata = adata[adata.obs_names.isin(keep)].copy()
        if adata.n_obs == 0:
            print(f"  ⚠️  Skipping {tissue}: no selected cells")
            continue

        adata.obs["tissue"] = tissue
        adata.var_names_make_unique()
        adatas.append(adata)

    if not adatas:
        raise ValueError("No cells left to merge across the requested tissues")

    merged = anndata.concat(adatas, join="outer", fill_value=0)
    merged.obs_names_make_unique()
    print(f"✓ Merged: {merged.n_obs:,} cells × {merged.n_vars:,} genes")
    return merged


def add_annotations(adata, annotations, columns=ANNOTATION_COLUMNS):
    """Attach annotation columns to a copy of adata, joined on cell id

    Args:
        adata: AnnData object
        annotations: DataFrame indexed by cell id
        columns: Columns to attach

    Returns:
        Annotated copy of adata
    """
    print("Adding annotations...")

    annotated = adata.copy()
    joined = annotations.reindex(annotated.obs_names)
    for col in columns:
        annotated.obs[col] = joined[col].values

    n_missing = joined[columns[0]].isna().sum()
    if n_missing:
        print(f"  ⚠️  {n_missing:,} cells have no annotation")
    return annotated


def count_cells_per_group(obs, group_col):
    """Number of cells per group, largest first"""
    if group_col not in obs.columns:
        raise KeyError(f"Column '{group_col}' not found")
    counts = obs[group_col].value_counts()
    return counts[counts > 0].sort_values(ascending=False)
