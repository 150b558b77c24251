#!/usr/bin/env python3
"""
Plotting utilities for the B-cell analysis

Every helper takes a PlotConfig, draws on its own figure and either saves
and closes it or shows it. Nothing relies on the current pyplot figure left
behind by an earlier call.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import matplotlib.pyplot as plt
import scanpy as sc
import seaborn as sns


@dataclass(frozen=True)
class PlotConfig:
    """Rendering settings passed to each plotting call"""

    save_dir: Optional[Path] = None
    dpi: int = 300
    figsize: Tuple[float, float] = (10, 6)
    show: bool = False
    file_format: str = "png"

    def path_for(self, name):
        if self.save_dir is None:
            return None
        return Path(self.save_dir) / f"{name}.{self.file_format}"


def _finish(fig, config, name):
    """Save and/or show fig according to config, then release it"""
    out_path = config.path_for(name)
    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path, dpi=config.dpi, bbox_inches="tight")
        print(f"  Saved: {out_path}")
    if config.show:
        plt.show()
    plt.close(fig)
    return out_path


def plot_group_counts(counts, config, title="Cells per tissue", name="group_counts", min_count=None):
    """Horizontal bar chart of cells per group

    Args:
        counts: Series of group -> count
        config: PlotConfig
        title: Figure title
        name: Output file stem
        min_count: Optional threshold drawn as a dashed line
    """
    fig, ax = plt.subplots(figsize=config.figsize)
    ordered = counts.sort_values()
    sns.barplot(x=ordered.values, y=ordered.index.astype(str), color="steelblue", ax=ax)
    if min_count is not None:
        ax.axvline(min_count, color="red", linestyle="--", alpha=0.5, label=f"> {min_count}")
        ax.legend(loc="lower right")
    ax.set_xlabel("Number of cells")
    ax.set_ylabel("")
    ax.set_title(title)
    fig.tight_layout()
    return _finish(fig, config, name)


def plot_marker_violin(adata, genes, groupby, config, name="marker_violin"):
    """Violin plots of marker expression per group"""
    genes = [g for g in genes if g in adata.var_names]
    if not genes:
        print("⚠️  No marker genes available to plot")
        return None

    fig, axes = plt.subplots(len(genes), 1, figsize=(config.figsize[0], 2.5 * len(genes)), squeeze=False)
    for gene, ax in zip(genes, axes[:, 0]):
        sc.pl.violin(adata, gene, groupby=groupby, rotation=90, ax=ax, show=False)
        ax.set_title(gene)
    fig.tight_layout()
    return _finish(fig, config, name)


def plot_embedding(adata, color, config, basis="tsne", title=None, name=None):
    """2D embedding colored by an obs column or gene"""
    if f"X_{basis}" not in adata.obsm:
        raise KeyError(f"Embedding 'X_{basis}' not found in adata.obsm")

    fig, ax = plt.subplots(figsize=config.figsize)
    sc.pl.embedding(adata, basis=basis, color=color, title=title, ax=ax, show=False)
    fig.tight_layout()
    return _finish(fig, config, name or f"{basis}_{color}")


def plot_dendrogram(adata, groupby, config, name=None):
    """Dendrogram computed by differential_expression.group_dendrogram"""
    if f"dendrogram_{groupby}" not in adata.uns:
        raise KeyError(f"No dendrogram for '{groupby}', run group_dendrogram first")

    fig, ax = plt.subplots(figsize=config.figsize)
    sc.pl.dendrogram(adata, groupby=groupby, ax=ax, show=False)
    fig.tight_layout()
    return _finish(fig, config, name or f"dendrogram_{groupby}")


def plot_marker_dotplot(adata, markers, groupby, config, n_genes=5, name="marker_dotplot"):
    """Dot plot of the top markers of each group"""
    if markers.empty:
        print("⚠️  Marker table is empty, nothing to plot")
        return None

    top = markers.sort_values("scores", ascending=False).groupby("group").head(n_genes)
    genes = list(dict.fromkeys(g for g in top["gene"] if g in adata.var_names))

    dot = sc.pl.dotplot(
        adata,
        genes,
        groupby=groupby,
        standard_scale="var",
        figsize=config.figsize,
        show=False,
        return_fig=True,
    )
    dot.make_figure()
    return _finish(dot.fig, config, name)
