#!/usr/bin/env python3
"""
Label re-encoding utilities
Maps categorical annotations (tissue, ontology class, ...) to dense integer
codes so scanpy grouping tools can use them, and maps results back.
"""

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence

import pandas as pd


@dataclass(frozen=True)
class LabelEncoding:
    """Result of encode_labels: forward mapping, parallel codes and inverse."""

    mapping: Dict[Hashable, int] = field(default_factory=dict)
    codes: List[int] = field(default_factory=list)
    inverse: Dict[int, Hashable] = field(default_factory=dict)

    def __len__(self):
        return len(self.mapping)

    def decode(self, codes):
        return decode_codes(codes, self.inverse)


def _check_partial_mapping(mapping):
    values = sorted(mapping.values())
    if values != list(range(len(values))):
        raise ValueError(
            "Existing mapping codes must be unique and contiguous from 0, "
            f"got {values}"
        )


def _is_missing(label):
    return label is None or (isinstance(label, float) and pd.isna(label))


def encode_labels(
    labels: Sequence[Hashable], mapping: Optional[Dict[Hashable, int]] = None
) -> LabelEncoding:
    """Encode labels as integers in first-seen order

    Args:
        labels: Sequence of label values (any hashable, e.g. tissue names)
        mapping: Optional existing label -> code mapping. Its codes are kept
            and new labels are appended after them. It is not modified.

    Returns:
        LabelEncoding with mapping, parallel codes and inverse mapping
    """
    forward = dict(mapping) if mapping else {}
    _check_partial_mapping(forward)

    # NaN != NaN, so all missing labels share the first missing key
    missing_key = next((key for key in forward if _is_missing(key)), None)

    codes = []
    for label in labels:
        if _is_missing(label):
            if missing_key is None:
                missing_key = label
            label = missing_key
        if label not in forward:
            forward[label] = len(forward)
        codes.append(forward[label])

    inverse = {code: label for label, code in forward.items()}
    return LabelEncoding(mapping=forward, codes=codes, inverse=inverse)


def decode_codes(codes, inverse):
    """Map integer codes back to their labels

    Codes coming back from scanpy are strings ("0", "1", ...), so anything
    int-like is accepted.
    """
    return [inverse[int(code)] for code in codes]


def composite_labels(obs, columns, sep="_"):
    """Join several annotation columns into one label, e.g. tissue_subtissue

    Args:
        obs: DataFrame of cell annotations
        columns: Column names to join, in order
        sep: Separator placed between the parts

    Returns:
        Series of composite labels indexed like obs
    """
    missing = [c for c in columns if c not in obs.columns]
    if missing:
        raise KeyError(f"Columns not found in annotations: {missing}")

    combined = obs[columns[0]].astype(str)
    for col in columns[1:]:
        combined = combined + sep + obs[col].astype(str)
    return combined.rename(sep.join(columns))


def relabel_groups(adata, source_col, key_added="group_code", mapping=None):
    """Return a relabeled copy of adata grouped by integer codes

    The input object is left untouched: the codes live only on the returned
    copy, in obs[key_added], as a categorical of strings (scanpy's grouping
    tools expect categorical groups).

    Args:
        adata: AnnData object
        source_col: obs column holding the labels to encode
        key_added: obs column receiving the codes on the copy
        mapping: Optional existing partial mapping passed to encode_labels

    Returns:
        Tuple of (relabeled AnnData copy, LabelEncoding)
    """
    if source_col not in adata.obs:
        raise KeyError(f"Column '{source_col}' not found in adata.obs")

    encoding = encode_labels(adata.obs[source_col].astype(str).tolist(), mapping)

    relabeled = adata.copy()
    categories = [str(code) for code in range(len(encoding))]
    relabeled.obs[key_added] = pd.Categorical(
        [str(code) for code in encoding.codes], categories=categories
    )
    relabeled.uns[f"{key_added}_labels"] = {
        str(code): str(label) for code, label in encoding.inverse.items()
    }

    print(
        f"Relabeled '{source_col}' into {len(encoding)} groups "
        f"(obs['{key_added}'])"
    )
    return relabeled, encoding
