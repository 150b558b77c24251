# %% [markdown]
# # B Cells Across Tissues
#
# **Tabula Muris walkthrough**
#
# **📥 Input:** `data/annotations_FACS.csv`, `data/cl-basic.obo`, `data/FACS/<tissue>_facs.h5ad`
# **📤 Output:** `outputs/b_cells/`
#
# ---
#
# ## Overview
#
# B cells turn up in many of the tissues profiled by the atlas, not only in
# the spleen and marrow. This notebook collects them and asks how they differ
# from tissue to tissue.
#
# **Key Steps:**
# 1. Find every B-cell term in the Cell Ontology
# 2. Count annotated B cells per tissue
# 3. Look for marker-positive cells the annotation did not call B cells
# 4. Embed the B cells and compare tissues
# 5. Export the tissue marker table
#
# ---

# %% [markdown]
# ## 1. Setup
#
# The thresholds below are exploratory. Change them here rather than inside the helpers.

# %%
import scanpy as sc
import pandas as pd
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
    marker_expression_mask,
    find_unannotated_marker_cells,
)
from bcell_utils.labels import relabel_groups
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
from bcell_utils.params import MARKER_GENES, ONTOLOGY_PARAMS

DATA_DIR = Path('data')
OUTPUT_DIR = Path('outputs/b_cells/')
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

MIN_CELLS = 30           # 🔧 Compare tissues with more B cells than this
PVAL_ADJ_CUTOFF = 1.0    # 🔧 Keep markers with pvals_adj below this

# Figures are shown inline and saved next to the tables
config = PlotConfig(save_dir=OUTPUT_DIR / 'plots', show=True)

sc.settings.verbosity = 1

# %% [markdown]
# ## 2. B-cell Terms in the Cell Ontology
#
# Annotations use Cell Ontology ids. Plasma cells, memory B cells and the
# other subtypes sit below "B cell" in the is_a hierarchy, so we take all of them.

# %%
ontology = load_cell_ontology(DATA_DIR / 'cl-basic.obo')
b_cell_terms = get_descendants(ontology, ONTOLOGY_PARAMS['root_term_id'])

for term_id, name in sorted(term_names(ontology, b_cell_terms).items()):
    print(f"  {term_id}  {name}")

# %% [markdown]
# ## 3. Annotated B Cells per Tissue

# %%
annotations = load_annotations(DATA_DIR / 'annotations_FACS.csv')
b_cell_annotations = select_by_ontology(annotations, b_cell_terms)

print("\nB-cell classes:")
print(b_cell_annotations['cell_ontology_class'].value_counts().to_string())

tissue_counts = count_cells_per_group(b_cell_annotations, 'tissue')
print("\nB cells per tissue:")
print(tissue_counts.to_string())

plot_group_counts(
    tissue_counts, config,
    title='Annotated B cells per tissue',
    name='b_cells_per_tissue',
    min_count=MIN_CELLS,
)

# %% [markdown]
# ## 4. Load the Tissues
#
# Only tissues that contain at least one annotated B cell are loaded.

# %%
tissues = tissue_counts.index.tolist()
adata = load_and_merge_tissues(
    DATA_DIR / 'FACS', tissues, '_facs.h5ad',
    cells=annotations.index[annotations['tissue'].isin(tissues)],
)
adata = add_annotations(adata, annotations)
adata = normalize_log(adata)

# %% [markdown]
# ## 5. Marker-positive Cells Outside the Annotation
#
# Cells expressing all of Cd19, Cd79a, Cd79b and Ms4a1 look like B cells
# whatever their annotation says. Which classes do they end up in?

# %%
is_marker_positive = marker_expression_mask(adata, MARKER_GENES, mode='all')
print(f"Marker-positive cells: {is_marker_positive.sum():,} of {adata.n_obs:,}")

unannotated = find_unannotated_marker_cells(adata, MARKER_GENES, b_cell_terms, mode='all')
if unannotated.empty:
    print("✓ Every marker-positive cell is annotated as a B cell")
else:
    print(
        unannotated.groupby(['tissue', 'cell_ontology_class'], observed=True)
        .size()
        .sort_values(ascending=False)
        .head(20)
        .to_string()
    )

# %% [markdown]
# ## 6. B Cells by Tissue
#
# Tissues are encoded as integer group codes on a relabeled copy; the original
# object keeps its annotation untouched.

# %%
bcells = subset_by_groups(adata, 'cell_ontology_id', b_cell_terms)
bcells, encoding = relabel_groups(bcells, 'tissue', key_added='group_code')

print(pd.Series(encoding.inverse, name='tissue').to_string())

bcells = run_embedding(bcells, method='tsne')
plot_embedding(bcells, 'tissue', config, basis='tsne', title='B cells by tissue')
plot_embedding(bcells, 'cell_ontology_class', config, basis='tsne')
plot_marker_violin(bcells, MARKER_GENES, 'tissue', config)

# %% [markdown]
# ## 7. How Do the Tissues Relate?
#
# Small groups give unstable averages, so the tree only uses tissues with
# more than `MIN_CELLS` B cells.

# %%
kept, compared = filter_groups(bcells, 'group_code', MIN_CELLS, inverse=encoding.inverse)

if len(kept) < 2:
    print("⚠️  Fewer than two tissues pass the size filter")
else:
    compared.obs['group_code'] = compared.obs['group_code'].cat.remove_unused_categories()
    order = group_dendrogram(compared, 'group_code')
    print("Dendrogram order:", ", ".join(encoding.decode(order)))
    plot_dendrogram(compared, 'group_code', config)

# %% [markdown]
# ## 8. Tissue Markers
#
# Each tissue's B cells are tested against the B cells of all other kept
# tissues. The table keeps the integer group and the tissue name side by side.

# %%
markers = compute_group_markers(
    bcells,
    groupby='group_code',
    pval_adj_cutoff=PVAL_ADJ_CUTOFF,
    min_group_size=MIN_CELLS,
    inverse=encoding.inverse,
)
write_marker_table(markers, OUTPUT_DIR / 'b_cell_tissue_markers.csv')

top_markers = top_markers_per_group(markers, n=5)
print(top_markers[['group_label', 'gene', 'scores', 'pvals_adj']].to_string(index=False))

if len(kept) >= 2:
    plot_marker_dotplot(compared, markers, 'group_code', config)

# %% [markdown]
# ## Summary
#
# - B-cell terms and per-tissue counts: section 3
# - Marker-positive cells outside the annotation: section 5
# - Tissue markers: `outputs/b_cells/b_cell_tissue_markers.csv`
