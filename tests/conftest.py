import matplotlib

matplotlib.use("Agg")

import anndata
import numpy as np
import pandas as pd
import pytest

B_CELL = "CL:0000236"
MEMORY_B_CELL = "CL:0000787"
T_CELL = "CL:0000084"

MARKERS = ["Cd19", "Cd79a", "Cd79b", "Ms4a1"]


@pytest.fixture
def tissue_adata():
    """B cells from three tissues: Spleen (40), Marrow (35), Lung (5)"""
    rng = np.random.default_rng(0)
    sizes = {"Spleen": 40, "Marrow": 35, "Lung": 5}
    genes = MARKERS + [f"Gene{i}" for i in range(16)]

    blocks = []
    tissues = []
    for i, (tissue, n) in enumerate(sizes.items()):
        block = np.abs(rng.normal(1.0, 0.2, size=(n, len(genes))))
        # One strongly specific gene per tissue
        block[:, len(MARKERS) + i] += 4.0
        blocks.append(block)
        tissues.extend([tissue] * n)

    X = np.vstack(blocks).astype(np.float32)
    n_cells = X.shape[0]
    obs = pd.DataFrame(
        {
            "tissue": tissues,
            "subtissue": ["NA"] * n_cells,
            "cell_ontology_class": ["B cell"] * n_cells,
            "cell_ontology_id": [B_CELL] * n_cells,
        },
        index=[f"cell{i}" for i in range(n_cells)],
    )
    return anndata.AnnData(X=X, obs=obs, var=pd.DataFrame(index=genes))


@pytest.fixture
def marker_adata():
    """Six cells with known marker expression and annotations"""
    X = np.array(
        [
            # Cd19 Cd79a Cd79b Ms4a1 Other
            [2.0, 1.0, 1.0, 3.0, 0.0],  # annotated B cell, all markers
            [0.0, 1.0, 0.0, 0.0, 1.0],  # annotated memory B, one marker
            [1.0, 2.0, 1.0, 1.0, 0.0],  # T cell annotation, all markers
            [0.0, 0.0, 0.0, 0.0, 5.0],  # T cell, no markers
            [0.5, 0.0, 0.0, 0.0, 0.0],  # T cell, Cd19 only
            [0.0, 0.0, 0.0, 0.0, 0.0],  # empty
        ],
        dtype=np.float32,
    )
    obs = pd.DataFrame(
        {
            "tissue": ["Spleen", "Spleen", "Lung", "Lung", "Marrow", "Marrow"],
            "cell_ontology_class": [
                "B cell", "memory B cell", "T cell", "T cell", "T cell", "T cell",
            ],
            "cell_ontology_id": [B_CELL, MEMORY_B_CELL, T_CELL, T_CELL, T_CELL, T_CELL],
        },
        index=[f"c{i}" for i in range(6)],
    )
    return anndata.AnnData(X=X, obs=obs, var=pd.DataFrame(index=MARKERS + ["Other"]))


OBO_TEXT = """format-version: 1.2
ontology: cl

[Term]
id: CL:0000000
name: cell

[Term]
id: CL:0000542
name: lymphocyte
is_a: CL:0000000 ! cell

[Term]
id: CL:0000236
name: B cell
is_a: CL:0000542 ! lymphocyte

[Term]
id: CL:0000787
name: memory B cell
is_a: CL:0000236 ! B cell

[Term]
id: CL:0000980
name: plasmablast
is_a: CL:0000236 ! B cell

[Term]
id: CL:0000786
name: plasma cell
is_a: CL:0000980 ! plasmablast

[Term]
id: CL:0000084
name: T cell
is_a: CL:0000542 ! lymphocyte

[Term]
id: CL:0000576
name: monocyte
is_a: CL:0000000 ! cell
relationship: develops_from CL:0000236 ! B cell
"""


@pytest.fixture
def obo_path(tmp_path):
    path = tmp_path / "cl-mini.obo"
    path.write_text(OBO_TEXT)
    return path


@pytest.fixture
def annotations_csv(tmp_path):
    df = pd.DataFrame(
        {
            "cell": ["c1", "c2", "c3", "c4"],
            "tissue": ["Spleen", "Spleen", "Lung", "Marrow"],
            "subtissue": ["NA", "NA", "NA", "Bone"],
            "cell_ontology_class": ["B cell", "T cell", "B cell", "plasma cell"],
            "cell_ontology_id": [B_CELL, T_CELL, B_CELL, "CL:0000786"],
            "mouse.id": ["3_8_M", "3_8_M", "3_9_M", "3_10_M"],
        }
    )
    path = tmp_path / "annotations_FACS.csv"
    df.to_csv(path, index=False)
    return path
