from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

from .base import (
    MISSING_LABEL,
    RARE_LABEL,
    Transformer,
    _binary_label,
    _ensure_polars_df,
    _infer_feature_columns,
    _is_categorical,
    _is_numeric,
    _level_expr,
    _numeric_expr,
    _positive_mask,
    _require_columns,
)
from .encoders import impact_codes, pool_expr, prevalence_codes, split_rare_levels
from .errors import DegenerateColumnError, SchemaMismatchError
from .numeric import central_value, clip_bounds
from .plan import CategoricalTreatment, EncodingPlan, NumericTreatment, Treatment

logger = logging.getLogger(__name__)


class EncodingPlanner(Transformer):
    """Design an :class:`EncodingPlan` from a preprocessing table.

    Numeric columns get percentile clipping, a fill value and a missing
    indicator. Categorical columns get rare-level pooling, one dummy per
    retained level, a prevalence code and a smoothed impact code.

    Parameters
    - target / target_class: label column and the class treated as positive
      (None: the larger of two sorted classes)
    - columns: feature columns to plan (default: every numeric/categorical column)
    - rare_min_frequency: share (float in (0, 1)) or count below which levels are pooled
    - clip_percentile: lower percentile for clipping; the upper one is 100 minus it
    - numeric_fill: 'mean' or 'median' of the clipped values
    - impact_smoothing: pseudo-count pulling level rates toward the overall rate
    - max_cardinality: categorical columns with more levels are degenerate
    - on_degenerate: 'raise' to fail on a degenerate column, 'drop' to skip it
    """

    def __init__(
        self,
        target: str,
        target_class: Any = 1,
        columns: Optional[Sequence[str]] = None,
        rare_min_frequency: float | int = 0.02,
        clip_percentile: float = 2.5,
        numeric_fill: str = "mean",
        impact_smoothing: float = 1.0,
        max_cardinality: int = 1000,
        on_degenerate: str = "raise",
    ) -> None:
        if on_degenerate not in {"raise", "drop"}:
            raise ValueError("on_degenerate must be 'raise' or 'drop'")
        if numeric_fill not in {"mean", "median"}:
            raise ValueError("numeric_fill must be 'mean' or 'median'")
        if impact_smoothing < 0:
            raise ValueError("impact_smoothing must be non-negative")
        self.target = target
        self.target_class = target_class
        self.columns = None if columns is None else list(columns)
        self.rare_min_frequency = rare_min_frequency
        self.clip_percentile = float(clip_percentile)
        self.numeric_fill = numeric_fill
        self.impact_smoothing = float(impact_smoothing)
        self.max_cardinality = int(max_cardinality)
        self.on_degenerate = on_degenerate

        self.target_class_: Any = None
        self.plan_: Optional[EncodingPlan] = None
        self.skipped_features_: Dict[str, str] = {}
        self.feature_names_out_: List[str] = []

    def _plan_numeric(self, df: pl.DataFrame, column: str) -> NumericTreatment:
        values = df.select(_numeric_expr(column)).to_series()
        present = values.drop_nulls()
        if present.is_empty():
            raise DegenerateColumnError(f"Column '{column}' has no non-missing values")
        if present.n_unique() == 1 and present.len() == values.len():
            raise DegenerateColumnError(f"Column '{column}' is constant")
        lower, upper = clip_bounds(present, self.clip_percentile)
        fill = central_value(present.clip(lower, upper), self.numeric_fill)
        if not all(math.isfinite(v) for v in (lower, upper, fill)):
            raise DegenerateColumnError(
                f"Column '{column}' has infinite values beyond the {self.clip_percentile} percentile clip"
            )
        return NumericTreatment(column=column, lower=lower, upper=upper, fill_value=fill)

    def _plan_categorical(self, df: pl.DataFrame, column: str, positive: pl.Series) -> CategoricalTreatment:
        levels = df.select(_level_expr(column, MISSING_LABEL)).to_series()
        n_levels = levels.n_unique()
        n_present = n_levels - int(df.get_column(column).null_count() > 0)
        if n_present > self.max_cardinality:
            raise DegenerateColumnError(
                f"Column '{column}' has {n_present} levels, above the ceiling of {self.max_cardinality}"
            )
        if n_levels <= 1:
            raise DegenerateColumnError(f"Column '{column}' is constant")

        kept, pooled_levels = split_rare_levels(levels, self.rare_min_frequency)
        if not kept:
            raise DegenerateColumnError(f"Every level of column '{column}' is rare")
        has_rare = bool(pooled_levels)
        if has_rare:
            logger.debug("Pooling %d rare levels of '%s'", len(pooled_levels), column)

        pooled = (
            df.select(_level_expr(column, MISSING_LABEL).alias(column))
            .select(pool_expr(pl.col(column), kept, has_rare, RARE_LABEL).alias(column))
            .to_series()
        )
        out_levels = [*kept, RARE_LABEL] if has_rare else list(kept)
        return CategoricalTreatment(
            column=column,
            levels=tuple(out_levels),
            prevalence=tuple(prevalence_codes(pooled, out_levels)),
            impact=tuple(impact_codes(pooled, positive, out_levels, self.impact_smoothing)),
            has_rare=has_rare,
        )

    def fit(self, df: pl.DataFrame) -> "EncodingPlanner":
        df = _ensure_polars_df(df)
        _require_columns(df, [self.target])
        if self.columns is None:
            cols = _infer_feature_columns(df, exclude=[self.target])
        else:
            _require_columns(df, self.columns)
            cols = [c for c in self.columns if c != self.target]
        if not cols:
            raise ValueError("No feature columns available for planning")

        label = df.get_column(self.target)
        if self.target_class is None:
            positive = _binary_label(label, None)
            target_class = label.filter(positive)[0]
        else:
            target_class = self.target_class
            positive = _positive_mask(label, target_class)
        n_pos = int(positive.sum())
        if n_pos == 0 or n_pos == df.height:
            raise DegenerateColumnError(
                f"Target column '{self.target}' must contain both {target_class!r} and other classes"
            )
        self.target_class_ = target_class

        treatments: List[Treatment] = []
        skipped: Dict[str, str] = {}
        for column in cols:
            dtype = df.schema[column]
            try:
                if _is_numeric(dtype):
                    treatments.append(self._plan_numeric(df, column))
                elif _is_categorical(dtype):
                    treatments.append(self._plan_categorical(df, column, positive))
                else:
                    raise SchemaMismatchError(f"Column '{column}' has unsupported dtype {dtype}")
            except DegenerateColumnError as exc:
                if self.on_degenerate == "raise":
                    raise
                skipped[column] = str(exc)
                logger.warning("Skipping degenerate column: %s", exc)

        if not treatments:
            raise ValueError("Every planned column was degenerate; nothing to encode")

        plan = EncodingPlan(target=self.target, target_class=target_class, treatments=tuple(treatments))
        self.plan_ = plan
        self.skipped_features_ = skipped
        self.feature_names_in_ = list(cols)
        self.feature_names_out_ = plan.feature_names_out()
        self.is_fitted_ = True
        logger.info(
            "Planned %d numeric and %d categorical columns into %d features",
            len(plan.numeric),
            len(plan.categorical),
            len(self.feature_names_out_),
        )
        return self

    def transform(self, df: pl.DataFrame) -> pl.DataFrame:
        self._check_fitted()
        return self.plan_.transform(df)
