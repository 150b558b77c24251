#!/usr/bin/env python3
"""
Analysis parameters for the Tabula Muris B-cell walkthrough

This file centralizes the thresholds used across the pipeline.
The group-size and significance cutoffs are exploratory values, so the
entry script lets every one of them be overridden from the command line.
"""

# Group-level filters
GROUP_FILTERS = {
    "min_cells_per_group": 30,  # Keep groups with strictly more cells than this
    "group_col": "tissue",  # Annotation column used to compare groups
}

# Differential expression parameters
DE_PARAMS = {
    "method": "wilcoxon",  # Rank test passed to scanpy
    "n_genes": 100,  # Genes ranked per group
    "pval_adj_cutoff": 1.0,  # Keep rows with pvals_adj strictly below this
    "corr_method": "bonferroni",  # Multiple testing correction
}

# Cell Ontology selection
ONTOLOGY_PARAMS = {
    "root_term_id": "CL:0000236",  # B cell
    "id_col": "cell_ontology_id",
    "class_col": "cell_ontology_class",
}

# B-cell marker genes (mouse symbols)
MARKER_GENES = ["Cd19", "Cd79a", "Cd79b", "Ms4a1"]

MARKER_PARAMS = {
    "min_expression": 0.0,  # Expression must exceed this value
    "mode": "all",  # "any" or "all" of MARKER_GENES
}

# Embedding and clustering
EMBEDDING_PARAMS = {
    "n_pcs": 20,
    "n_neighbors": 15,
    "resolution": 0.8,
    "method": "tsne",  # "tsne" or "umap"
}

# Required annotation columns in the metadata table
ANNOTATION_COLUMNS = [
    "tissue",
    "subtissue",
    "cell_ontology_class",
    "cell_ontology_id",
]


def get_param_summary():
    """Return a formatted summary of current analysis settings"""
    summary = [
        "=== Analysis Settings ===",
        "\nGroup filters:",
        f"  - Group column: {GROUP_FILTERS['group_col']}",
        f"  - Min cells per group: > {GROUP_FILTERS['min_cells_per_group']}",
        "\nDifferential expression:",
        f"  - Method: {DE_PARAMS['method']} ({DE_PARAMS['corr_method']} correction)",
        f"  - Adjusted p-value cutoff: < {DE_PARAMS['pval_adj_cutoff']}",
        "\nCell selection:",
        f"  - Ontology root: {ONTOLOGY_PARAMS['root_term_id']}",
        f"  - Marker genes ({MARKER_PARAMS['mode']}): {', '.join(MARKER_GENES)}",
    ]
    return "\n".join(summary)


def check_thresholds(min_cells, pval_adj_cutoff):
    """Return error messages for out-of-range group and significance cutoffs"""
    errors = []

    if min_cells < 0:
        errors.append("min_cells_per_group must be non-negative")

    if not 0 < pval_adj_cutoff <= 1:
        errors.append("pval_adj_cutoff must be in (0, 1]")

    return errors


def validate_thresholds(min_cells, pval_adj_cutoff):
    """Raise ValueError when overridden thresholds are out of range"""
    errors = check_thresholds(min_cells, pval_adj_cutoff)
    if errors:
        raise ValueError("Parameter validation failed:\n" + "\n".join(errors))
    return True


def validate_params():
    """Validate that analysis parameters make sense"""
    errors = check_thresholds(
        GROUP_FILTERS["min_cells_per_group"], DE_PARAMS["pval_adj_cutoff"]
    )

    if DE_PARAMS["n_genes"] < 1:
        errors.append("n_genes must be at least 1")

    if MARKER_PARAMS["mode"] not in ("any", "all"):
        errors.append("marker mode must be 'any' or 'all'")

    if EMBEDDING_PARAMS["method"] not in ("tsne", "umap"):
        errors.append("embedding method must be 'tsne' or 'umap'")

    if errors:
        raise ValueError("Parameter validation failed:\n" + "\n".join(errors))

    return True


# Run validation on import
validate_params()
