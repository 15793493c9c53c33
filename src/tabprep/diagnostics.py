from __future__ import annotations

import math
from typing import Any, List, Optional, Sequence

import polars as pl

from .base import MISSING_LABEL, _binary_label, _ensure_polars_df, _require_columns


def _prepare_cut_bins(bins: Sequence[float]) -> List[float]:
    """Return strictly increasing finite breakpoints compatible with polars.cut."""

    finite: List[float] = []
    for value in bins:
        if value is None:
            continue
        try:
            val = float(value)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(val):
            continue
        finite.append(val)
    return sorted(set(finite))


def quantile_edges(series: pl.Series, n_bins: int = 10) -> List[float]:
    """Interior quantile breakpoints splitting the non-missing values into ``n_bins``."""
    if n_bins < 2:
        raise ValueError("n_bins must be at least 2")
    values = series.cast(pl.Float64).fill_nan(None).drop_nulls()
    if values.is_empty():
        return []
    qs = [i / n_bins for i in range(1, n_bins)]
    edges = _prepare_cut_bins([values.quantile(q) for q in qs])
    # A break at the maximum only creates an empty right-most bin
    top = values.max()
    return [e for e in edges if e < top]


def bin_labels(series: pl.Series, edges: Optional[Sequence[float]] = None) -> pl.Series:
    """Map a column onto string bin labels; missing values get their own bin.

    Categorical input (``edges`` is None) keeps its levels. Numeric input is
    cut at ``edges``; an empty edge list puts every present value in one bin.
    """
    name = series.name
    if edges is None:
        return series.cast(pl.String).fill_null(MISSING_LABEL).alias(name)
    numeric = series.cast(pl.Float64).fill_nan(None)
    cut_edges = _prepare_cut_bins(edges)
    if cut_edges:
        binned = numeric.cut(cut_edges).cast(pl.String)
    else:
        binned = pl.Series(name, [None if v is None else "all" for v in numeric.to_list()], dtype=pl.String)
    return binned.fill_null(MISSING_LABEL).alias(name)


def woe_table(bins: pl.Series, positive: pl.Series, eps: float = 1e-6) -> pl.DataFrame:
    """Weight-of-evidence table of string bins against a boolean label."""
    temp = pl.DataFrame({"bin": bins.cast(pl.String), "target": positive.cast(pl.Boolean)})
    return (
        temp.group_by("bin")
        .agg([
            pl.col("target").sum().cast(pl.Int64).alias("pos"),
            (~pl.col("target")).sum().cast(pl.Int64).alias("neg"),
        ])
        .with_columns([
            (pl.col("pos") / (pl.sum("pos") + eps)).alias("dist_pos"),
            (pl.col("neg") / (pl.sum("neg") + eps)).alias("dist_neg"),
        ])
        .with_columns(((pl.col("dist_pos") + eps) / (pl.col("dist_neg") + eps)).log().alias("woe"))
        .with_columns(((pl.col("dist_pos") - pl.col("dist_neg")) * pl.col("woe")).alias("iv_part"))
        .sort("bin")
    )


def cross_information_value(fit_table: pl.DataFrame, valid_table: pl.DataFrame) -> float:
    """Information value of the validation distribution scored with fit-time WoE.

    Bins that never occurred at fit time carry a WoE of zero.
    """
    joined = valid_table.select(["bin", "dist_pos", "dist_neg"]).join(
        fit_table.select(["bin", "woe"]), on="bin", how="left"
    )
    joined = joined.with_columns(pl.col("woe").fill_null(0.0))
    value = joined.select(((pl.col("dist_pos") - pl.col("dist_neg")) * pl.col("woe")).sum()).item()
    return float(value or 0.0)


def information_value(
    df: pl.DataFrame,
    feature: str,
    target: str,
    bins: Optional[Sequence[float]] = None,
    eps: float = 1e-6,
    target_class: Any = None,
) -> float:
    """Compute Information Value (IV) for a categorical or binned feature vs binary target.

    If `bins` is provided and the feature is numeric, the feature is cut into bins before IV.
    Missing values form a bin of their own.
    """
    df = _ensure_polars_df(df)
    _require_columns(df, [feature, target])

    s = df.get_column(feature)
    edges = bins if (bins is not None and s.dtype.is_numeric()) else None
    positive = _binary_label(df.get_column(target), target_class)
    table = woe_table(bin_labels(s, edges), positive, eps=eps)
    return float(table.get_column("iv_part").sum())
