from __future__ import annotations

from typing import Tuple

import polars as pl


def clip_bounds(values: pl.Series, percentile: float = 2.5) -> Tuple[float, float]:
    """Lower/upper clipping bounds at the ``percentile`` and ``100 - percentile`` percentiles."""
    if not 0.0 <= percentile < 50.0:
        raise ValueError("percentile must be in [0, 50)")
    s = values.cast(pl.Float64).drop_nulls()
    low = float(s.quantile(percentile / 100.0))
    high = float(s.quantile(1.0 - percentile / 100.0))
    return low, high


def central_value(values: pl.Series, strategy: str = "mean") -> float:
    s = values.cast(pl.Float64).drop_nulls()
    if strategy == "mean":
        return float(s.mean())
    if strategy == "median":
        return float(s.median())
    raise ValueError("Unsupported numeric_fill strategy")


def clean_expr(source: pl.Expr, lower: float, upper: float, fill_value: float) -> pl.Expr:
    return source.clip(lower, upper).fill_null(fill_value)
