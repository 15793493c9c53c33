from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

import polars as pl

from .base import RARE_LABEL
from .errors import DegenerateColumnError


def split_rare_levels(levels: pl.Series, min_frequency: float | int = 0.02) -> Tuple[List[str], List[str]]:
    """Return ``(kept, pooled)`` level lists, both sorted.

    A float in (0, 1) is a minimum share of rows; anything else is a minimum
    row count. Levels below the minimum are pooled into the rare bucket.
    """
    n = levels.len()
    vc = pl.DataFrame({"level": levels.cast(pl.String)}).group_by("level").len()
    if isinstance(min_frequency, float) and 0 < min_frequency < 1:
        keep_mask = (pl.col("len") / float(n)) >= float(min_frequency)
    else:
        keep_mask = pl.col("len") >= int(min_frequency)
    kept = sorted(vc.filter(keep_mask).get_column("level").to_list())
    pooled = sorted(vc.filter(~keep_mask).get_column("level").to_list())
    return kept, pooled


def pool_expr(level: pl.Expr, kept: Sequence[str], has_rare: bool, rare_label: str = RARE_LABEL) -> pl.Expr:
    """Map levels outside ``kept`` to the rare bucket, or to null when there is none."""
    fallback = pl.lit(rare_label, dtype=pl.String) if has_rare else pl.lit(None, dtype=pl.String)
    return pl.when(level.is_in(list(kept))).then(level).otherwise(fallback)


def dummy_exprs(pooled: pl.Expr, levels: Sequence[str], names: Sequence[str]) -> List[pl.Expr]:
    return [
        (pooled == pl.lit(level)).fill_null(False).cast(pl.Int8).alias(name)
        for level, name in zip(levels, names)
    ]


def mapped_expr(pooled: pl.Expr, levels: Sequence[str], values: Sequence[float], name: str) -> pl.Expr:
    """Replace each level by its code; levels without a code become 0.0."""
    return (
        pooled.replace_strict(list(levels), [float(v) for v in values], default=0.0, return_dtype=pl.Float64)
        .fill_null(0.0)
        .alias(name)
    )


def prevalence_codes(pooled: pl.Series, levels: Sequence[str]) -> List[float]:
    """Share of rows holding each level."""
    n = float(pooled.len())
    counts: Dict[str, int] = dict(
        pl.DataFrame({"level": pooled}).group_by("level").len().iter_rows()
    )
    return [counts.get(level, 0) / n for level in levels]


def _logit(p: float) -> float:
    return math.log(p / (1.0 - p))


def impact_codes(
    pooled: pl.Series,
    positive: pl.Series,
    levels: Sequence[str],
    smoothing: float = 1.0,
    eps: float = 1e-6,
) -> List[float]:
    """Smoothed single-variable log-odds effect of each level on the positive class.

    ``impact = logit(p_level) - logit(p)`` with
    ``p_level = (pos_level + smoothing * p) / (n_level + smoothing)`` and
    ``p`` the overall positive rate. Levels absent from the data get 0.
    """
    n = positive.len()
    n_pos = int(positive.sum())
    if n == 0 or n_pos == 0 or n_pos == n:
        raise DegenerateColumnError("impact coding needs both target classes in the data")
    p = n_pos / float(n)
    base = _logit(p)
    stats = (
        pl.DataFrame({"level": pooled, "y": positive.cast(pl.Boolean)})
        .group_by("level")
        .agg([pl.len().alias("n"), pl.col("y").sum().cast(pl.Int64).alias("pos")])
    )
    by_level = {row[0]: (row[1], row[2]) for row in stats.iter_rows()}
    codes: List[float] = []
    for level in levels:
        if level not in by_level:
            codes.append(0.0)
            continue
        n_level, pos_level = by_level[level]
        p_level = (pos_level + smoothing * p) / (n_level + smoothing)
        p_level = min(max(p_level, eps), 1.0 - eps)
        codes.append(_logit(p_level) - base)
    return codes
