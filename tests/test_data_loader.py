import anndata
import numpy as np
import pandas as pd
import pytest

from bcell_utils.data_loader import (
    add_annotations,
    count_cells_per_group,
    load_and_merge_tissues,
    load_annotations,
    load_tissue_h5ad,
)


def _write_tissue(path, cells, genes):
    X = np.arange(len(cells) * len(genes), dtype=np.float32).reshape(len(cells), len(genes))
    adata = anndata.AnnData(
        X=X, obs=pd.DataFrame(index=cells), var=pd.DataFrame(index=genes)
    )
    adata.write_h5ad(path)


def test_load_annotations(annotations_csv):
    annotations = load_annotations(annotations_csv)
    assert annotations.index.name == "cell"
    assert annotations.loc["c4", "cell_ontology_class"] == "plasma cell"
    assert len(annotations) == 4


def test_load_annotations_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="missing.csv"):
        load_annotations(tmp_path / "missing.csv")


def test_load_annotations_missing_columns(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame({"cell": ["c1"], "tissue": ["Lung"]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="cell_ontology_id"):
        load_annotations(path)


def test_load_annotations_tab_separated(tmp_path):
    path = tmp_path / "annotations.tsv"
    pd.DataFrame(
        {
            "cell": ["c1"],
            "tissue": ["Lung"],
            "subtissue": ["NA"],
            "cell_ontology_class": ["B cell"],
            "cell_ontology_id": ["CL:0000236"],
        }
    ).to_csv(path, sep="\t", index=False)
    annotations = load_annotations(path, sep="\t")
    assert annotations.loc["c1", "tissue"] == "Lung"


def test_load_tissue_h5ad_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tissue_h5ad(tmp_path / "Lung_facs.h5ad")


def test_load_and_merge_tissues(tmp_path):
    _write_tissue(tmp_path / "Spleen_facs.h5ad", ["c1", "c2"], ["Cd19", "Cd79a"])
    _write_tissue(tmp_path / "Lung_facs.h5ad", ["c3"], ["Cd19", "Sftpc"])

    merged = load_and_merge_tissues(tmp_path, ["Spleen", "Lung"], "_facs.h5ad")
    assert merged.n_obs == 3
    assert set(merged.var_names) == {"Cd19", "Cd79a", "Sftpc"}
    assert merged.obs.loc["c3", "tissue"] == "Lung"
    # outer join fills absent genes with 0
    assert merged[["c3"], ["Cd79a"]].X.sum() == 0


def test_load_and_merge_tissues_subset_skips_empty(tmp_path):
    _write_tissue(tmp_path / "Spleen_facs.h5ad", ["c1", "c2"], ["Cd19"])
    _write_tissue(tmp_path / "Lung_facs.h5ad", ["c3"], ["Cd19"])

    merged = load_and_merge_tissues(
        tmp_path, ["Spleen", "Lung"], "_facs.h5ad", cells=["c2"]
    )
    assert list(merged.obs_names) == ["c2"]


def test_load_and_merge_tissues_nothing_left(tmp_path):
    _write_tissue(tmp_path / "Spleen_facs.h5ad", ["c1"], ["Cd19"])
    with pytest.raises(ValueError):
        load_and_merge_tissues(tmp_path, ["Spleen"], "_facs.h5ad", cells=["zz"])


def test_add_annotations_returns_copy(annotations_csv):
    annotations = load_annotations(annotations_csv)
    adata = anndata.AnnData(
        X=np.ones((3, 2), dtype=np.float32),
        obs=pd.DataFrame(index=["c3", "c1", "c9"]),
        var=pd.DataFrame(index=["Cd19", "Cd79a"]),
    )
    annotated = add_annotations(adata, annotations)

    assert "tissue" not in adata.obs
    assert annotated.obs.loc["c3", "tissue"] == "Lung"
    assert annotated.obs.loc["c1", "cell_ontology_id"] == "CL:0000236"
    assert pd.isna(annotated.obs.loc["c9", "tissue"])


def test_count_cells_per_group():
    obs = pd.DataFrame({"tissue": ["Lung", "Spleen", "Spleen", "Marrow", "Spleen"]})
    counts = count_cells_per_group(obs, "tissue")
    assert counts.index[0] == "Spleen"
    assert counts.to_dict() == {"Spleen": 3, "Lung": 1, "Marrow": 1}


def test_count_cells_per_group_missing_column():
    with pytest.raises(KeyError):
        count_cells_per_group(pd.DataFrame({"tissue": []}), "organ")
