#!/usr/bin/env python3
"""
B cells across tissues in the Tabula Muris atlas

This script performs:
1. Cell Ontology lookup of every B-cell term
2. Annotation-based selection of B cells and per-tissue counts
3. Marker-gene check for B-cell-like cells missing from the annotation
4. Tissue relabeling, embedding and group dendrogram
5. Differential expression between tissues and marker table export

uv run python bcell_analysis.py --annotations annotations_FACS.csv \
    --ontology cl-basic.obo --data-dir FACS/
"""

import warnings
import argparse
import matplotlib
import scanpy as sc
from pathlib import Path

from bcell_utils.data_loader import (
    load_annotations,
    load_and_merge_tissues,
    add_annotations,
    count_cells_per_group,
)
from bcell_utils.ontology import load_cell_ontology, get_descendants, term_names
from bcell_utils.filters import (
    select_by_ontology,
    subset_by_groups,
    filter_groups,
    find_unannotated_marker_cells,
)
from bcell_utils.labels import composite_labels, relabel_groups
from bcell_utils.processing import normalize_log, run_embedding
from bcell_utils.differential_expression import (
    compute_group_markers,
    group_dendrogram,
    top_markers_per_group,
    write_marker_table,
)
from bcell_utils.plotting import (
    PlotConfig,
    plot_group_counts,
    plot_marker_violin,
    plot_embedding,
    plot_dendrogram,
    plot_marker_dotplot,
)
from bcell_utils.params import (
    DE_PARAMS,
    EMBEDDING_PARAMS,
    GROUP_FILTERS,
    MARKER_GENES,
    ONTOLOGY_PARAMS,
    get_param_summary,
    validate_thresholds,
)

# Configure scanpy
sc.settings.verbosity = 1
sc.settings.set_figure_params(dpi=80, facecolor="white")

# Suppress warnings
warnings.filterwarnings("ignore")


def main(
    annotations_path,
    ontology_path,
    data_dir,
    suffix="_facs.h5ad",
    output_dir="outputs",
    root_term_id=ONTOLOGY_PARAMS["root_term_id"],
    min_cells=GROUP_FILTERS["min_cells_per_group"],
    pval_adj_cutoff=DE_PARAMS["pval_adj_cutoff"],
    method=DE_PARAMS["method"],
    group_by_subtissue=False,
    normalize=True,
):
    """Main analysis pipeline

    Args:
        annotations_path: Cell annotation CSV (cell id, tissue, ontology columns)
        ontology_path: Cell Ontology OBO file
        data_dir: Directory with one h5ad per tissue
        suffix: Filename suffix of the per-tissue h5ad files
        output_dir: Where tables and plots are written
        root_term_id: Ontology term whose descendants count as B cells
        min_cells: Groups need more cells than this to be compared
        pval_adj_cutoff: Keep markers with pvals_adj below this value
        method: DE method passed to scanpy
        group_by_subtissue: Compare tissue_subtissue groups instead of tissues
        normalize: Normalize and log-transform the loaded counts
    """
    validate_thresholds(min_cells, pval_adj_cutoff)

    print("Starting B-cell analysis...")

    output_dir = Path(output_dir)
    plots_dir = output_dir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    config = PlotConfig(save_dir=plots_dir)

    # Set matplotlib backend to non-interactive for save-only mode
    matplotlib.use("Agg")

    print("\n" + get_param_summary() + "\n")

    # Step 1: B-cell terms in the Cell Ontology
    ontology = load_cell_ontology(ontology_path)
    b_cell_terms = get_descendants(ontology, root_term_id)
    print(f"{len(b_cell_terms)} ontology terms under {root_term_id}:")
    for term_id, name in sorted(term_names(ontology, b_cell_terms).items()):
        print(f"  {term_id}  {name}")

    # Step 2: Annotated B cells per tissue
    annotations = load_annotations(annotations_path)
    b_cell_annotations = select_by_ontology(annotations, b_cell_terms)
    if b_cell_annotations.empty:
        print("⚠️  No annotated B cells found, nothing to analyze")
        return None

    tissue_counts = count_cells_per_group(b_cell_annotations, "tissue")
    print("\nB cells per tissue:")
    print(tissue_counts.to_string())
    tissue_counts.rename("n_cells").to_csv(output_dir / "b_cells_per_tissue.csv")
    plot_group_counts(
        tissue_counts, config, title="Annotated B cells per tissue",
        name="b_cells_per_tissue", min_count=min_cells,
    )

    # Step 3: Load the tissues that contain B cells
    tissues = list(tissue_counts.index)
    adata = load_and_merge_tissues(
        data_dir, tissues, suffix,
        cells=annotations.index[annotations["tissue"].isin(tissues)],
    )
    adata = add_annotations(adata, annotations)
    if normalize:
        adata = normalize_log(adata)

    # Step 4: Marker expression outside the annotated B cells
    unannotated = find_unannotated_marker_cells(adata, MARKER_GENES, b_cell_terms)
    if not unannotated.empty:
        summary = (
            unannotated.groupby(["tissue", ONTOLOGY_PARAMS["class_col"]], observed=True)
            .size()
            .rename("n_cells")
            .sort_values(ascending=False)
        )
        print(summary.head(20).to_string())
        summary.to_csv(output_dir / "marker_positive_unannotated_cells.csv")

    # Step 5: Relabel B cells by tissue (or tissue_subtissue)
    bcells = subset_by_groups(adata, ONTOLOGY_PARAMS["id_col"], b_cell_terms)
    group_col = GROUP_FILTERS["group_col"]
    if group_by_subtissue:
        bcells.obs["tissue_subtissue"] = composite_labels(bcells.obs, ["tissue", "subtissue"]).values
        group_col = "tissue_subtissue"
    bcells, encoding = relabel_groups(bcells, group_col, key_added="group_code")
    for code, label in encoding.inverse.items():
        print(f"  {code}: {label}")

    # Step 6: Embedding of the B cells
    bcells = run_embedding(bcells, method=EMBEDDING_PARAMS["method"])
    basis = EMBEDDING_PARAMS["method"]
    plot_embedding(bcells, group_col, config, basis=basis, title=f"B cells by {group_col}")
    plot_embedding(bcells, ONTOLOGY_PARAMS["class_col"], config, basis=basis)
    plot_marker_violin(bcells, MARKER_GENES, group_col, config)

    # Step 7: Tree over groups with enough cells
    kept, compared = filter_groups(bcells, "group_code", min_cells, inverse=encoding.inverse)
    if len(kept) < 2:
        print("⚠️  Fewer than two groups pass the size filter, stopping before DE")
        return bcells

    compared.obs["group_code"] = compared.obs["group_code"].cat.remove_unused_categories()
    order = group_dendrogram(compared, "group_code")
    print("Dendrogram order: " + ", ".join(encoding.decode(order)))
    plot_dendrogram(compared, "group_code", config)

    # Step 8: Markers between groups
    markers = compute_group_markers(
        bcells,
        groupby="group_code",
        method=method,
        pval_adj_cutoff=pval_adj_cutoff,
        min_group_size=min_cells,
        inverse=encoding.inverse,
    )
    write_marker_table(markers, output_dir / "b_cell_tissue_markers.csv")
    print(top_markers_per_group(markers, n=5).to_string(index=False))
    plot_marker_dotplot(compared, markers, "group_code", config)

    output_path = output_dir / "b_cells.h5ad"
    bcells.write(output_path)
    print(f"Saved B-cell data to {output_path}")

    print("Analysis complete!")
    return bcells


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Tabula Muris B cells across tissues"
    )
    parser.add_argument("--annotations", required=True, help="Cell annotation CSV")
    parser.add_argument("--ontology", required=True, help="Cell Ontology OBO file")
    parser.add_argument("--data-dir", required=True, help="Directory of per-tissue h5ad files")
    parser.add_argument(
        "--suffix",
        default="_facs.h5ad",
        help="Per-tissue filename suffix (default: '_facs.h5ad')",
    )
    parser.add_argument(
        "--output-dir",
        default="outputs",
        help="Directory to write tables and plots to (default: 'outputs')",
    )
    parser.add_argument(
        "--root-term",
        default=ONTOLOGY_PARAMS["root_term_id"],
        help="Ontology term whose descendants are selected",
    )
    parser.add_argument(
        "--min-cells",
        type=int,
        default=GROUP_FILTERS["min_cells_per_group"],
        help="Compare only groups with more cells than this",
    )
    parser.add_argument(
        "--pval-adj-cutoff",
        type=float,
        default=DE_PARAMS["pval_adj_cutoff"],
        help="Keep markers with adjusted p-value below this",
    )
    parser.add_argument(
        "--method",
        default=DE_PARAMS["method"],
        help="Differential expression method passed to scanpy",
    )
    parser.add_argument(
        "--by-subtissue",
        action="store_true",
        help="Group by tissue_subtissue instead of tissue",
    )
    parser.add_argument(
        "--no-normalize",
        action="store_true",
        help="Input objects are already log-normalized",
    )
    args = parser.parse_args()

    main(
        args.annotations,
        args.ontology,
        args.data_dir,
        suffix=args.suffix,
        output_dir=args.output_dir,
        root_term_id=args.root_term,
        min_cells=args.min_cells,
        pval_adj_cutoff=args.pval_adj_cutoff,
        method=args.method,
        group_by_subtissue=args.by_subtissue,
        normalize=not args.no_normalize,
    )
