from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional, Tuple

import numpy as np
import polars as pl

from .base import MISSING_LABEL, _ensure_polars_df, _require_columns
from .errors import InsufficientDataError

logger = logging.getLogger(__name__)


def _take(df: pl.DataFrame, indices: np.ndarray) -> pl.DataFrame:
    ordered = np.sort(indices)
    return df.select(pl.all().gather(ordered.tolist()))


def stratified_split(
    df: pl.DataFrame,
    fraction: float,
    stratify: Optional[str] = None,
    seed: Optional[int] = 0,
) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """Split ``df`` into two row-disjoint frames.

    The first frame receives ``round(fraction * n)`` rows, the second the
    remainder. With ``stratify`` every class of that column keeps its share in
    both parts (nulls form their own class). Both parts keep the input row
    order, and the same ``seed`` always yields the same assignment.
    """
    try:
        from sklearn.model_selection import train_test_split
    except ImportError as exc:  # pragma: no cover - import guard
        raise ImportError(
            "stratified_split requires scikit-learn. Install with `pip install scikit-learn`."
        ) from exc

    df = _ensure_polars_df(df)
    fraction = float(fraction)
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"fraction must be in (0, 1), got {fraction}")

    n = df.height
    n_part = int(round(fraction * n))
    n_rest = n - n_part

    labels: Optional[List[str]] = None
    n_classes = 1
    if stratify is not None:
        _require_columns(df, [stratify], "table to split")
        labels = df.get_column(stratify).cast(pl.String).fill_null(MISSING_LABEL).to_list()
        counts = Counter(labels)
        too_small = sorted(k for k, v in counts.items() if v < 2)
        if too_small:
            raise InsufficientDataError(
                f"Strata of '{stratify}' with fewer than 2 rows cannot be split: {', '.join(too_small)}"
            )
        n_classes = len(counts)

    if n < 2 or n_part < n_classes or n_rest < n_classes:
        raise InsufficientDataError(
            f"Cannot split {n} rows at fraction {fraction} into two non-empty parts"
            + (f" covering all {n_classes} strata" if stratify is not None else "")
        )

    part_idx, rest_idx = train_test_split(
        np.arange(n),
        train_size=n_part,
        test_size=n_rest,
        random_state=seed,
        shuffle=True,
        stratify=labels,
    )
    logger.debug("Split %d rows into %d / %d (stratify=%s)", n, n_part, n_rest, stratify)
    return _take(df, part_idx), _take(df, rest_idx)


def three_way_split(
    df: pl.DataFrame,
    test_fraction: float,
    preprocessing_fraction: float,
    stratify: Optional[str] = None,
    seed: Optional[int] = 0,
) -> Tuple[pl.DataFrame, pl.DataFrame, pl.DataFrame]:
    """Return ``(train, preprocessing, test)``.

    ``test_fraction`` is taken from the whole table, ``preprocessing_fraction``
    from what remains after the test rows are set aside.
    """
    test, rest = stratified_split(df, test_fraction, stratify=stratify, seed=seed)
    next_seed = None if seed is None else seed + 1
    preprocessing, train = stratified_split(rest, preprocessing_fraction, stratify=stratify, seed=next_seed)
    logger.info(
        "Partitioned %d rows: train=%d preprocessing=%d test=%d",
        train.height + preprocessing.height + test.height,
        train.height,
        preprocessing.height,
        test.height,
    )
    return train, preprocessing, test
