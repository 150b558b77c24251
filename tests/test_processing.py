import numpy as np
import pytest

from bcell_utils.processing import normalize_log, run_embedding


def test_normalize_log_returns_copy_with_raw(tissue_adata):
    original = tissue_adata.X.copy()
    normalized = normalize_log(tissue_adata)

    np.testing.assert_array_equal(tissue_adata.X, original)
    assert normalized.raw is not None
    totals = np.expm1(normalized.X).sum(axis=1)
    np.testing.assert_allclose(totals, 1e4, rtol=1e-3)


def test_run_embedding_rejects_unknown_method(tissue_adata):
    with pytest.raises(ValueError):
        run_embedding(tissue_adata, method="pca")


@pytest.mark.parametrize("method", ["tsne", "umap"])
def test_run_embedding(tissue_adata, method):
    adata = run_embedding(normalize_log(tissue_adata), n_pcs=10, method=method)

    assert adata.obsm[f"X_{method}"].shape == (tissue_adata.n_obs, 2)
    assert "X_pca" in adata.obsm
    assert adata.obs["leiden"].notna().all()
    assert adata.obs["leiden"].nunique() >= 1
