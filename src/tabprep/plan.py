"""Frozen encoding plans.

A plan records every rule needed to turn a raw table into numeric features:
clipping bounds and fill values for numeric columns; retained levels,
prevalence codes and impact codes for categorical columns. Plans are
produced by :class:`tabprep.planner.EncodingPlanner`, never change after
construction, and round-trip through JSON unchanged.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import polars as pl

from .base import (
    MISSING_LABEL,
    RARE_LABEL,
    _ensure_polars_df,
    _is_numeric,
    _level_expr,
    _numeric_expr,
    _positive_mask,
    _require_columns,
)
from .encoders import dummy_exprs, impact_codes, mapped_expr, pool_expr
from .errors import SchemaMismatchError
from .numeric import clean_expr

logger = logging.getLogger(__name__)

PLAN_FORMAT = "tabprep.encoding_plan"
PLAN_VERSION = 1


@dataclass(frozen=True)
class NumericTreatment:
    column: str
    lower: float
    upper: float
    fill_value: float

    def __post_init__(self) -> None:
        for name in ("lower", "upper", "fill_value"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{self.column}: {name} must be finite")
        if self.lower > self.upper:
            raise ValueError(f"{self.column}: lower bound exceeds upper bound")

    @property
    def clean_name(self) -> str:
        return f"{self.column}__clean"

    @property
    def isnull_name(self) -> str:
        return f"{self.column}__isnull"

    def output_names(self) -> Tuple[str, ...]:
        return (self.clean_name, self.isnull_name)

    def expressions(self, wanted: Iterable[str], plan: "EncodingPlan") -> List[pl.Expr]:
        wanted = set(wanted)
        source = _numeric_expr(self.column)
        exprs: List[pl.Expr] = []
        if self.clean_name in wanted:
            exprs.append(clean_expr(source, self.lower, self.upper, self.fill_value).alias(self.clean_name))
        if self.isnull_name in wanted:
            exprs.append(source.is_null().cast(pl.Int8).alias(self.isnull_name))
        return exprs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "numeric",
            "column": self.column,
            "lower": self.lower,
            "upper": self.upper,
            "fill_value": self.fill_value,
        }


@dataclass(frozen=True)
class CategoricalTreatment:
    """Coding rules for one categorical column.

    ``levels`` lists the retained levels in output order, with the rare
    bucket last when ``has_rare`` is set; ``prevalence`` and ``impact`` are
    aligned with it.
    """

    column: str
    levels: Tuple[str, ...]
    prevalence: Tuple[float, ...]
    impact: Tuple[float, ...]
    has_rare: bool = False

    def __post_init__(self) -> None:
        if not self.levels:
            raise ValueError(f"{self.column}: at least one level is required")
        if not (len(self.levels) == len(self.prevalence) == len(self.impact)):
            raise ValueError(f"{self.column}: levels, prevalence and impact must align")
        if len(set(self.levels)) != len(self.levels):
            raise ValueError(f"{self.column}: duplicate levels")
        if not all(math.isfinite(v) for v in (*self.prevalence, *self.impact)):
            raise ValueError(f"{self.column}: codes must be finite")

    def kept_levels(self) -> Tuple[str, ...]:
        return self.levels[:-1] if self.has_rare else self.levels

    def dummy_name(self, level: str) -> str:
        return f"{self.column}__lev__{level}"

    @property
    def prevalence_name(self) -> str:
        return f"{self.column}__prev"

    @property
    def impact_name(self) -> str:
        return f"{self.column}__impact"

    def output_names(self) -> Tuple[str, ...]:
        return (*[self.dummy_name(lv) for lv in self.levels], self.prevalence_name, self.impact_name)

    def pooled(self, plan: "EncodingPlan") -> pl.Expr:
        return pool_expr(
            _level_expr(self.column, plan.missing_label), self.kept_levels(), self.has_rare, plan.rare_label
        )

    def expressions(self, wanted: Iterable[str], plan: "EncodingPlan") -> List[pl.Expr]:
        wanted = set(wanted)
        pooled = self.pooled(plan)
        pairs = [(lv, self.dummy_name(lv)) for lv in self.levels if self.dummy_name(lv) in wanted]
        exprs = dummy_exprs(pooled, [p[0] for p in pairs], [p[1] for p in pairs])
        if self.prevalence_name in wanted:
            exprs.append(mapped_expr(pooled, self.levels, self.prevalence, self.prevalence_name))
        if self.impact_name in wanted:
            exprs.append(mapped_expr(pooled, self.levels, self.impact, self.impact_name))
        return exprs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "categorical",
            "column": self.column,
            "levels": list(self.levels),
            "prevalence": list(self.prevalence),
            "impact": list(self.impact),
            "has_rare": self.has_rare,
        }


Treatment = Union[NumericTreatment, CategoricalTreatment]


def _treatment_from_dict(data: Dict[str, Any]) -> Treatment:
    kind = data.get("kind")
    if kind == "numeric":
        return NumericTreatment(
            column=str(data["column"]),
            lower=float(data["lower"]),
            upper=float(data["upper"]),
            fill_value=float(data["fill_value"]),
        )
    if kind == "categorical":
        return CategoricalTreatment(
            column=str(data["column"]),
            levels=tuple(str(v) for v in data["levels"]),
            prevalence=tuple(float(v) for v in data["prevalence"]),
            impact=tuple(float(v) for v in data["impact"]),
            has_rare=bool(data.get("has_rare", False)),
        )
    raise ValueError(f"Unknown treatment kind: {kind!r}")


@dataclass(frozen=True)
class EncodingPlan:
    target: str
    target_class: Any
    treatments: Tuple[Treatment, ...]
    rare_label: str = RARE_LABEL
    missing_label: str = MISSING_LABEL

    def __post_init__(self) -> None:
        columns = [t.column for t in self.treatments]
        if len(set(columns)) != len(columns):
            raise ValueError("Each column may be planned only once")
        if self.target in columns:
            raise ValueError(f"Target column '{self.target}' cannot be planned as a feature")
        names = self.feature_names_out()
        if len(set(names)) != len(names):
            raise ValueError("Planned output column names collide")

    @property
    def columns(self) -> List[str]:
        return [t.column for t in self.treatments]

    @property
    def numeric(self) -> List[NumericTreatment]:
        return [t for t in self.treatments if isinstance(t, NumericTreatment)]

    @property
    def categorical(self) -> List[CategoricalTreatment]:
        return [t for t in self.treatments if isinstance(t, CategoricalTreatment)]

    def feature_names_out(self) -> List[str]:
        names: List[str] = []
        for t in self.treatments:
            names.extend(t.output_names())
        return names

    def _check_sources(self, df: pl.DataFrame, treatments: Sequence[Treatment]) -> None:
        _require_columns(df, [t.column for t in treatments], "table to encode")
        for t in treatments:
            dtype = df.schema[t.column]
            if isinstance(t, NumericTreatment) and not _is_numeric(dtype):
                raise SchemaMismatchError(f"Column '{t.column}' was planned as numeric but has dtype {dtype}")

    def transform(
        self,
        df: pl.DataFrame,
        columns: Optional[Sequence[str]] = None,
        include_target: bool = True,
    ) -> pl.DataFrame:
        """Apply the frozen rules to ``df`` and return a fully numeric frame.

        ``columns`` restricts the output to the named derived columns. The
        target, when present and ``include_target`` is set, is appended as an
        Int8 indicator of ``target_class``.
        """
        df = _ensure_polars_df(df)
        available = self.feature_names_out()
        if columns is None:
            wanted = set(available)
        else:
            known = set(available)
            unknown = [c for c in columns if c not in known]
            if unknown:
                raise ValueError(f"Unknown output columns: {', '.join(unknown)}")
            wanted = set(columns)

        needed = [t for t in self.treatments if wanted.intersection(t.output_names())]
        self._check_sources(df, needed)
        exprs: List[pl.Expr] = []
        for t in needed:
            exprs.extend(t.expressions(wanted, self))
        out = df.select(exprs) if exprs else pl.DataFrame()
        if include_target and self.target in df.columns:
            label = _positive_mask(df.get_column(self.target), self.target_class).cast(pl.Int8)
            out = out.with_columns(label) if exprs else label.to_frame()
        return out

    def refit_impact(self, df: pl.DataFrame, smoothing: float = 1.0) -> "EncodingPlan":
        """Same plan with impact codes re-estimated on ``df``."""
        df = _ensure_polars_df(df)
        cats = self.categorical
        _require_columns(df, [self.target, *[t.column for t in cats]], "table to refit")
        positive = _positive_mask(df.get_column(self.target), self.target_class)
        pooled_frame = df.select([t.pooled(self).alias(t.column) for t in cats]) if cats else None
        refit: List[Treatment] = []
        for t in self.treatments:
            if isinstance(t, CategoricalTreatment) and pooled_frame is not None:
                codes = impact_codes(pooled_frame.get_column(t.column), positive, t.levels, smoothing)
                t = dataclasses.replace(t, impact=tuple(codes))
            refit.append(t)
        return dataclasses.replace(self, treatments=tuple(refit))

    # Serialization
    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": PLAN_FORMAT,
            "version": PLAN_VERSION,
            "target": self.target,
            "target_class": self.target_class,
            "rare_label": self.rare_label,
            "missing_label": self.missing_label,
            "treatments": [t.to_dict() for t in self.treatments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncodingPlan":
        if data.get("format") != PLAN_FORMAT:
            raise ValueError("Not an encoding plan document")
        if data.get("version") != PLAN_VERSION:
            raise ValueError(f"Unsupported encoding plan version: {data.get('version')!r}")
        return cls(
            target=str(data["target"]),
            target_class=data["target_class"],
            treatments=tuple(_treatment_from_dict(t) for t in data["treatments"]),
            rare_label=str(data.get("rare_label", RARE_LABEL)),
            missing_label=str(data.get("missing_label", MISSING_LABEL)),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, allow_nan=False)

    @classmethod
    def from_json(cls, text: str) -> "EncodingPlan":
        return cls.from_dict(json.loads(text))

    def save(self, path: Union[str, Path]) -> Path:
        """Write the plan as JSON; the target file is replaced only once fully written."""
        path = Path(path)
        payload = self.to_json()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)
        logger.info("Saved encoding plan (%d columns) to %s", len(self.treatments), path)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EncodingPlan":
        return cls.from_json(Path(path).read_text(encoding="utf-8"))
