from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np
import polars as pl

from .base import Transformer, _ensure_polars_df, _require_columns
from .errors import SchemaMismatchError

logger = logging.getLogger(__name__)

_TIE_DECIMALS = 12


def association_matrix(df: pl.DataFrame, columns: Sequence[str], method: str = "spearman") -> np.ndarray:
    """Absolute pairwise association of ``columns`` with a zero diagonal.

    Spearman association is the Pearson correlation of average ranks.
    Rows holding a null in any of the columns are dropped first; a constant
    column has association 0 with everything.
    """
    if method not in {"spearman", "pearson"}:
        raise ValueError("method must be 'spearman' or 'pearson'")
    cols = list(columns)
    if len(cols) < 2:
        return np.zeros((len(cols), len(cols)))
    frame = df.select([pl.col(c).cast(pl.Float64).fill_nan(None) for c in cols]).drop_nulls()
    if frame.height < 2:
        return np.zeros((len(cols), len(cols)))
    if method == "spearman":
        frame = frame.select([pl.col(c).rank("average") for c in cols])
    X = frame.to_numpy().astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.corrcoef(X, rowvar=False)
    corr = np.abs(np.nan_to_num(corr, nan=0.0))
    np.fill_diagonal(corr, 0.0)
    return corr


def _greedy_removal(assoc: np.ndarray, names: Sequence[str], cutoff: float) -> List[str]:
    remaining = list(range(len(names)))
    removed: List[str] = []
    while len(remaining) > 1:
        sub = assoc[np.ix_(remaining, remaining)]
        if sub.max() <= cutoff:
            break
        means = sub.sum(axis=1) / (len(remaining) - 1)
        violating = [i for i in range(len(remaining)) if sub[i].max() > cutoff]
        pick = min(violating, key=lambda i: (-round(float(means[i]), _TIE_DECIMALS), names[remaining[i]]))
        removed.append(names[remaining[pick]])
        del remaining[pick]
    return removed


def find_redundant(
    df: pl.DataFrame,
    cutoff: float = 0.9,
    method: str = "spearman",
    columns: Optional[Sequence[str]] = None,
) -> List[str]:
    """Columns to drop so that no remaining pair is associated above ``cutoff``.

    At each step, among the columns that take part in a pair above the
    cutoff, the one with the highest mean absolute association to the other
    remaining columns is removed (ties go to the lexically smallest name).
    Returned in removal order.
    """
    pruner = CorrelationPruner(cutoff=cutoff, method=method, columns=columns)
    return pruner.fit(df).removed_features_


class CorrelationPruner(Transformer):
    """Remove redundant numeric columns by rank correlation."""

    def __init__(
        self,
        cutoff: float = 0.9,
        method: str = "spearman",
        columns: Optional[Sequence[str]] = None,
        exclude: Sequence[str] = (),
    ) -> None:
        if not 0.0 <= cutoff <= 1.0:
            raise ValueError("cutoff must be in [0, 1]")
        if method not in {"spearman", "pearson"}:
            raise ValueError("method must be 'spearman' or 'pearson'")
        self.cutoff = float(cutoff)
        self.method = method
        self.columns = None if columns is None else list(columns)
        self.exclude = list(exclude)

        self.association_: Optional[pl.DataFrame] = None
        self.removed_features_: List[str] = []
        self.selected_features_: List[str] = []
        self.feature_names_out_: List[str] = []

    def fit(self, df: pl.DataFrame) -> "CorrelationPruner":
        df = _ensure_polars_df(df)
        if self.columns is None:
            cols = [c for c in df.columns if c not in set(self.exclude)]
        else:
            _require_columns(df, self.columns)
            cols = [c for c in self.columns if c not in set(self.exclude)]
        non_numeric = [c for c in cols if not (df.schema[c].is_numeric() or df.schema[c] == pl.Boolean)]
        if non_numeric:
            raise SchemaMismatchError(f"Redundancy pruning needs numeric columns; got {', '.join(non_numeric)}")

        assoc = association_matrix(df, cols, self.method)
        removed = _greedy_removal(assoc, cols, self.cutoff)

        self.association_ = pl.DataFrame(
            {"column": cols, **{c: assoc[:, i] for i, c in enumerate(cols)}}
        )
        self.removed_features_ = removed
        self.selected_features_ = [c for c in cols if c not in set(removed)]
        self.feature_names_in_ = list(cols)
        self.feature_names_out_ = [c for c in df.columns if c not in set(removed)]
        self.is_fitted_ = True
        logger.info(
            "Redundancy pruning removed %d of %d columns at cutoff %.2f", len(removed), len(cols), self.cutoff
        )
        return self

    def transform(self, df: pl.DataFrame) -> pl.DataFrame:
        self._check_fitted()
        df = _ensure_polars_df(df)
        to_drop = [c for c in self.removed_features_ if c in df.columns]
        if not to_drop:
            return df
        return df.drop(to_drop)

    def get_support(self) -> List[bool]:
        if not self.is_fitted_:
            raise RuntimeError("Call fit before get_support")
        removed = set(self.removed_features_)
        return [c not in removed for c in self.feature_names_in_ or []]
