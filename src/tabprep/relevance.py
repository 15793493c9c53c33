from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

from .base import (
    Transformer,
    _binary_label,
    _ensure_polars_df,
    _infer_feature_columns,
    _is_categorical,
    _is_numeric,
    _require_columns,
)
from .diagnostics import bin_labels, cross_information_value, quantile_edges, woe_table
from .errors import SchemaMismatchError
from .split import stratified_split

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnRelevance:
    raw: float
    penalty: float

    @property
    def adjusted(self) -> float:
        return self.raw - self.penalty


@dataclass
class RelevanceReport:
    """Per-column information values with their cross-validation penalty."""

    scores: Dict[str, ColumnRelevance] = field(default_factory=dict)
    excluded: Dict[str, str] = field(default_factory=dict)

    def ranked(self) -> List[str]:
        return sorted(self.scores, key=lambda c: (-self.scores[c].adjusted, c))

    def select(self, threshold: float, top_n: Optional[int] = None) -> List[str]:
        """Columns with adjusted score above ``threshold``, in scoring order.

        If nothing passes and ``top_n`` is given, the ``top_n`` best ranked
        columns are returned instead.
        """
        passed = [c for c, s in self.scores.items() if s.adjusted > threshold]
        if passed or top_n is None:
            return passed
        best = set(self.ranked()[: max(0, int(top_n))])
        return [c for c in self.scores if c in best]

    def to_frame(self) -> pl.DataFrame:
        order = self.ranked()
        return pl.DataFrame(
            {
                "column": order,
                "raw": [self.scores[c].raw for c in order],
                "penalty": [self.scores[c].penalty for c in order],
                "adjusted": [self.scores[c].adjusted for c in order],
            },
            schema={"column": pl.String, "raw": pl.Float64, "penalty": pl.Float64, "adjusted": pl.Float64},
        )


class InformationValueFilter(Transformer):
    """Keep columns whose cross-validated information value clears a threshold.

    The preprocessing table is split into fit and validation parts. The raw
    score is the IV on the fit part; the penalty is how much of it does not
    carry over when fit-time WoE values score the validation part. Missing
    values are binned, never imputed.
    """

    def __init__(
        self,
        target: str,
        columns: Optional[Sequence[str]] = None,
        threshold: float = 0.02,
        top_n: Optional[int] = None,
        n_bins: int = 10,
        validation_fraction: float = 0.5,
        max_cardinality: int = 1000,
        target_class: Any = None,
        random_state: Optional[int] = 0,
        eps: float = 1e-6,
    ) -> None:
        self.target = target
        self.columns = None if columns is None else list(columns)
        self.threshold = float(threshold)
        self.top_n = top_n
        self.n_bins = int(n_bins)
        self.validation_fraction = float(validation_fraction)
        self.max_cardinality = int(max_cardinality)
        self.target_class = target_class
        self.random_state = random_state
        self.eps = float(eps)

        self.target_class_: Any = None
        self.report_: RelevanceReport = RelevanceReport()
        self.selected_features_: List[str] = []
        self.dropped_features_: List[str] = []
        self.feature_names_out_: List[str] = []

    def _resolve_columns(self, df: pl.DataFrame) -> List[str]:
        if self.columns is None:
            return _infer_feature_columns(df, exclude=[self.target])
        _require_columns(df, self.columns)
        cols = [c for c in self.columns if c != self.target]
        for name in cols:
            dtype = df.schema[name]
            if not (_is_numeric(dtype) or _is_categorical(dtype)):
                raise SchemaMismatchError(f"Column '{name}' has unsupported dtype {dtype}")
        return cols

    def _exclusion_reason(self, series: pl.Series) -> Optional[str]:
        if _is_numeric(series.dtype):
            n_unique = series.cast(pl.Float64).fill_nan(None).n_unique()
        else:
            n_unique = series.n_unique()
            if n_unique - int(series.null_count() > 0) > self.max_cardinality:
                return "cardinality"
        if n_unique <= 1:
            return "constant"
        return None

    def _score(self, fit_part: pl.DataFrame, valid_part: pl.DataFrame, column: str) -> ColumnRelevance:
        fit_series = fit_part.get_column(column)
        valid_series = valid_part.get_column(column)
        edges = quantile_edges(fit_series, self.n_bins) if _is_numeric(fit_series.dtype) else None

        fit_y = _binary_label(fit_part.get_column(self.target), self.target_class_)
        valid_y = _binary_label(valid_part.get_column(self.target), self.target_class_)
        fit_table = woe_table(bin_labels(fit_series, edges), fit_y, eps=self.eps)
        valid_table = woe_table(bin_labels(valid_series, edges), valid_y, eps=self.eps)

        raw = float(fit_table.get_column("iv_part").sum())
        cross = cross_information_value(fit_table, valid_table)
        return ColumnRelevance(raw=raw, penalty=max(0.0, raw - cross))

    def fit(self, df: pl.DataFrame) -> "InformationValueFilter":
        df = _ensure_polars_df(df)
        _require_columns(df, [self.target])
        cols = self._resolve_columns(df)
        if not cols:
            raise ValueError("No feature columns available for selection")

        label = df.get_column(self.target)
        positive = _binary_label(label, self.target_class)
        if self.target_class is None:
            self.target_class_ = label.filter(positive)[0]
        else:
            self.target_class_ = self.target_class

        fit_part, valid_part = stratified_split(
            df, 1.0 - self.validation_fraction, stratify=self.target, seed=self.random_state
        )

        report = RelevanceReport()
        for column in cols:
            reason = self._exclusion_reason(df.get_column(column))
            if reason is not None:
                report.excluded[column] = reason
                logger.debug("Excluding '%s' from relevance scoring (%s)", column, reason)
                continue
            report.scores[column] = self._score(fit_part, valid_part, column)

        selected = report.select(self.threshold, self.top_n)
        if not selected:
            logger.warning(
                "No column cleared the information value threshold %.4f; nothing selected", self.threshold
            )
        elif not any(s.adjusted > self.threshold for s in report.scores.values()):
            logger.info("No column cleared threshold %.4f; kept top %d by rank", self.threshold, len(selected))

        self.report_ = report
        self.selected_features_ = selected
        self.dropped_features_ = [c for c in cols if c not in selected]
        self.feature_names_in_ = list(cols)
        self.feature_names_out_ = [c for c in df.columns if c not in self.dropped_features_]
        self.is_fitted_ = True
        logger.info(
            "Relevance filter kept %d of %d columns (%d excluded)",
            len(selected),
            len(cols),
            len(report.excluded),
        )
        return self

    def transform(self, df: pl.DataFrame) -> pl.DataFrame:
        self._check_fitted()
        df = _ensure_polars_df(df)
        _require_columns(df, self.selected_features_)
        keep = list(self.selected_features_)
        if self.target in df.columns:
            keep.append(self.target)
        return df.select(keep)

    def get_support(self) -> List[bool]:
        if not self.is_fitted_:
            raise RuntimeError("Call fit before get_support")
        selected = set(self.selected_features_)
        return [c in selected for c in self.feature_names_in_ or []]

    def get_selected_features(self) -> List[str]:
        if not self.is_fitted_:
            raise RuntimeError("Call fit before get_selected_features")
        return list(self.selected_features_)
