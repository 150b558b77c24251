#!/usr/bin/env python3
"""
Cell selection utilities for the B-cell analysis
Handles group-size filtering, ontology-based and marker-based selection
"""

import numpy as np
import pandas as pd
from scipy import sparse

from bcell_utils.params import MARKER_PARAMS, ONTOLOGY_PARAMS


def filter_groups_by_size(group_counts, min_count):
    """Return the groups with strictly more than min_count records

    Args:
        group_counts: Mapping or Series of group label -> count
        min_count: Groups need count > min_count to be kept

    Returns:
        Set of retained group labels (possibly empty)
    """
    if isinstance(group_counts, pd.Series):
        group_counts = group_counts.to_dict()
    return {group for group, count in group_counts.items() if count > min_count}


def subset_by_groups(records, group_col, groups):
    """Keep only the records whose group_col value is in groups

    Args:
        records: DataFrame or AnnData (filtered on .obs)
        group_col: Column holding the group label
        groups: Collection of group labels to keep

    Returns:
        Filtered object of the same type; empty if groups is empty
    """
    obs = records.obs if hasattr(records, "obs") else records
    if group_col not in obs.columns:
        raise KeyError(f"Column '{group_col}' not found")

    mask = obs[group_col].isin(list(groups)).values
    if hasattr(records, "obs"):
        return records[mask].copy()
    return records.loc[mask].copy()


def filter_groups(records, group_col, min_count, inverse=None):
    """Count records per group, then drop groups at or below min_count

    Args:
        records: DataFrame or AnnData
        group_col: Column holding the group label
        min_count: Groups need count > min_count to be kept
        inverse: Optional code -> label mapping used in the printed summary

    Returns:
        Tuple of (retained group set, filtered records)
    """
    obs = records.obs if hasattr(records, "obs") else records
    counts = obs[group_col].value_counts()
    kept = filter_groups_by_size(counts, min_count)
    dropped = sorted(set(counts.index) - kept, key=str)
    if inverse is not None:
        dropped = [inverse[int(g)] for g in dropped]
    dropped = [str(g) for g in dropped]

    print(f"Groups in '{group_col}' with > {min_count} cells: {len(kept)}/{len(counts)}")
    if dropped:
        print(f"  Dropped: {', '.join(dropped)}")
    if not kept:
        print(f"⚠️  No group in '{group_col}' has more than {min_count} cells")

    return kept, subset_by_groups(records, group_col, kept)


def select_by_ontology(obs, term_ids, id_col=ONTOLOGY_PARAMS["id_col"]):
    """Subset annotation rows whose ontology id is in term_ids"""
    if id_col not in obs.columns:
        raise KeyError(f"Column '{id_col}' not found in annotations")
    selected = obs[obs[id_col].isin(list(term_ids))]
    print(f"Selected {len(selected):,} of {len(obs):,} cells by ontology id")
    return selected


def _gene_matrix(adata, genes):
    X = adata[:, genes].X
    if sparse.issparse(X):
        X = X.toarray()
    return np.asarray(X)


def marker_expression_mask(
    adata,
    genes,
    min_expression=MARKER_PARAMS["min_expression"],
    mode=MARKER_PARAMS["mode"],
):
    """Flag cells expressing marker genes above a threshold

    Args:
        adata: AnnData object (dense or sparse X)
        genes: Marker gene names
        min_expression: Expression must be strictly greater than this
        mode: "any" to require one marker, "all" to require every marker

    Returns:
        Boolean numpy array, one entry per cell
    """
    if mode not in ("any", "all"):
        raise ValueError(f"mode must be 'any' or 'all', got '{mode}'")

    available = [g for g in genes if g in adata.var_names]
    missing = [g for g in genes if g not in adata.var_names]
    if missing:
        print(f"⚠️  Marker genes not found, skipping: {missing}")
    if not available:
        raise KeyError(f"None of the marker genes are in adata.var_names: {genes}")

    above = _gene_matrix(adata, available) > min_expression
    if mode == "all":
        return above.all(axis=1)
    return above.any(axis=1)


def find_unannotated_marker_cells(
    adata,
    genes,
    annotated_ids,
    id_col=ONTOLOGY_PARAMS["id_col"],
    min_expression=MARKER_PARAMS["min_expression"],
    mode=MARKER_PARAMS["mode"],
):
    """Cells expressing the markers but annotated outside annotated_ids

    Returns:
        DataFrame of the matching obs rows
    """
    if id_col not in adata.obs:
        raise KeyError(f"Column '{id_col}' not found in adata.obs")

    expressing = marker_expression_mask(adata, genes, min_expression, mode)
    outside = ~adata.obs[id_col].isin(list(annotated_ids)).values
    hits = adata.obs.loc[expressing & outside].copy()

    print(
        f"Cells expressing {', '.join(genes)} outside the selected ontology terms: "
        f"{len(hits):,}"
    )
    return hits
