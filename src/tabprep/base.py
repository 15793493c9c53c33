from __future__ import annotations

from typing import Any, Iterable, List, Sequence

import polars as pl

from .errors import DegenerateColumnError, SchemaMismatchError

MISSING_LABEL = "__missing__"
RARE_LABEL = "__rare__"


def _ensure_polars_df(df: pl.DataFrame) -> pl.DataFrame:
    if isinstance(df, pl.DataFrame):
        return df

    # Lazy import so pandas remains optional
    pd = None
    if df.__class__.__module__.startswith("pandas"):
        try:
            import pandas as pd  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TypeError(
                "Pandas support requires installing pandas; install pandas to pass pandas.DataFrame"
            ) from exc
    if pd is not None and isinstance(df, pd.DataFrame):  # type: ignore[name-defined]
        try:
            return pl.from_pandas(df)
        except (ImportError, ModuleNotFoundError):
            # Without pyarrow: construct via Python lists
            data = {str(col): df[col].tolist() for col in df.columns}
            return pl.DataFrame(data)

    raise TypeError("Expected a polars.DataFrame or pandas.DataFrame")


def _require_columns(df: pl.DataFrame, columns: Iterable[str], where: str = "table") -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        missing_str = ", ".join(missing)
        raise SchemaMismatchError(f"Columns not found in {where}: {missing_str}")


def _is_numeric(dtype: pl.DataType) -> bool:
    return dtype != pl.Boolean and dtype.is_numeric()


def _is_categorical(dtype: pl.DataType) -> bool:
    return dtype in (pl.String, pl.Categorical, pl.Boolean) or isinstance(dtype, pl.Enum)


def _infer_feature_columns(df: pl.DataFrame, exclude: Sequence[str] = ()) -> List[str]:
    ex = set(exclude)
    cols: List[str] = []
    for name, dtype in zip(df.columns, df.dtypes):
        if name in ex:
            continue
        if _is_numeric(dtype) or _is_categorical(dtype):
            cols.append(name)
    return cols


def _level_expr(column: str, missing_label: str = MISSING_LABEL) -> pl.Expr:
    """String view of a categorical column with nulls mapped to their own level."""
    return pl.col(column).cast(pl.String).fill_null(missing_label)


def _numeric_expr(column: str) -> pl.Expr:
    """Float view of a numeric column with NaN treated as missing."""
    return pl.col(column).cast(pl.Float64).fill_nan(None)


def _positive_mask(series: pl.Series, target_class: Any) -> pl.Series:
    """Boolean series marking rows whose label equals ``target_class``."""
    if series.null_count() > 0:
        raise DegenerateColumnError(f"target column '{series.name}' contains nulls")
    dtype = series.dtype
    if dtype == pl.Boolean:
        if isinstance(target_class, str):
            wanted = target_class.strip().lower() in {"true", "1"}
        else:
            wanted = bool(target_class)
        mask = series == wanted
    elif dtype.is_numeric():
        try:
            wanted_num = float(target_class)
        except (TypeError, ValueError) as exc:
            raise DegenerateColumnError(
                f"target class {target_class!r} is not comparable with numeric column '{series.name}'"
            ) from exc
        mask = series.cast(pl.Float64) == wanted_num
    else:
        mask = series.cast(pl.String) == str(target_class)
    return mask.alias(series.name)


def _binary_label(series: pl.Series, target_class: Any = None) -> pl.Series:
    """Validate a two-class label and return it as a boolean series.

    When ``target_class`` is None the larger of the two observed values
    (in sort order) is treated as the positive class.
    """
    if series.null_count() > 0:
        raise DegenerateColumnError(f"target column '{series.name}' contains nulls")
    classes = series.unique().sort().to_list()
    if len(classes) != 2:
        raise DegenerateColumnError(
            f"target column '{series.name}' must have exactly two classes, found {len(classes)}"
        )
    positive = classes[1] if target_class is None else target_class
    mask = _positive_mask(series, positive)
    n_pos = int(mask.sum())
    if n_pos == 0 or n_pos == series.len():
        raise DegenerateColumnError(
            f"target class {positive!r} does not split column '{series.name}' into two classes"
        )
    return mask


class Transformer:
    """Simple fit/transform interface for Polars DataFrames.

    Subclasses implement fit(self, df: pl.DataFrame) -> "Transformer"
    and transform(self, df: pl.DataFrame) -> pl.DataFrame.
    """

    feature_names_in_: List[str] | None = None
    is_fitted_: bool = False

    def fit(self, df: pl.DataFrame) -> "Transformer":  # pragma: no cover
        raise NotImplementedError

    def transform(self, df: pl.DataFrame) -> pl.DataFrame:  # pragma: no cover
        raise NotImplementedError

    def fit_transform(self, df: pl.DataFrame) -> pl.DataFrame:
        return self.fit(df).transform(df)

    def _check_fitted(self) -> None:
        if not self.is_fitted_:
            raise RuntimeError("Call fit before transform")

    def get_feature_names_out(self) -> List[str]:
        names = getattr(self, "feature_names_out_", None)
        if names is None:
            return []
        return list(names)
