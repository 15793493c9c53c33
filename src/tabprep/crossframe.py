from __future__ import annotations

import logging
from typing import Callable, List, Optional

import numpy as np
import polars as pl

from .base import Transformer, _ensure_polars_df, _positive_mask
from .errors import InsufficientDataError
from .plan import EncodingPlan
from .planner import EncodingPlanner

logger = logging.getLogger(__name__)


class CrossFramePlanner(Transformer):
    """Leakage-safe out-of-fold encoding of the data a plan is fit on.

    Fits the full plan once, then for each of K stratified folds re-estimates
    the impact codes on the other K-1 folds and encodes the held-out fold.
    The assembled ``cross_frame_`` keeps the input row order; ``transform``
    on new data uses the full plan.

    Parameters
    - planner_factory: a callable returning a new, unfitted EncodingPlanner
    - n_splits: number of folds
    - shuffle: shuffle before splitting
    - random_state: seed for shuffling
    """

    def __init__(
        self,
        planner_factory: Callable[[], EncodingPlanner],
        n_splits: int = 5,
        shuffle: bool = True,
        random_state: Optional[int] = 42,
    ) -> None:
        self.planner_factory = planner_factory
        self.n_splits = int(n_splits)
        self.shuffle = shuffle
        self.random_state = random_state

        self.planner_: Optional[EncodingPlanner] = None
        self.plan_: Optional[EncodingPlan] = None
        self.fold_plans_: List[EncodingPlan] = []
        self.cross_frame_: Optional[pl.DataFrame] = None

    def _make_folds(self, positive: pl.Series) -> List[np.ndarray]:
        from sklearn.model_selection import StratifiedKFold

        y = positive.cast(pl.Int8).to_numpy()
        smallest = int(min(y.sum(), len(y) - y.sum()))
        if self.n_splits < 2 or smallest < self.n_splits:
            raise InsufficientDataError(
                f"Cannot build {self.n_splits} stratified folds when the smaller class has {smallest} rows"
            )
        splitter = StratifiedKFold(
            n_splits=self.n_splits,
            shuffle=self.shuffle,
            random_state=self.random_state if self.shuffle else None,
        )
        return [np.sort(held_out) for _, held_out in splitter.split(np.zeros(len(y)), y)]

    def fit(self, df: pl.DataFrame) -> "CrossFramePlanner":
        df = _ensure_polars_df(df)
        planner = self.planner_factory()
        planner.fit(df)
        plan = planner.plan_
        positive = _positive_mask(df.get_column(plan.target), plan.target_class)
        folds = self._make_folds(positive)

        self.fold_plans_ = []
        pieces: List[pl.DataFrame] = []
        for k, held_out in enumerate(folds):
            mask = np.zeros(df.height, dtype=bool)
            mask[held_out] = True
            mask_series = pl.Series(mask)
            fold_plan = plan.refit_impact(df.filter(~mask_series), smoothing=planner.impact_smoothing)
            self.fold_plans_.append(fold_plan)
            encoded = fold_plan.transform(df.filter(mask_series))
            pieces.append(encoded.with_columns(pl.Series("__row__", held_out)))
            logger.debug("Cross frame fold %d: %d held-out rows", k, len(held_out))

        self.cross_frame_ = pl.concat(pieces).sort("__row__").drop("__row__")
        self.planner_ = planner
        self.plan_ = plan
        self.feature_names_in_ = list(planner.feature_names_in_ or [])
        self.feature_names_out_ = plan.feature_names_out()
        self.is_fitted_ = True
        logger.info("Built %d-fold cross frame over %d rows", len(folds), df.height)
        return self

    def transform(self, df: pl.DataFrame) -> pl.DataFrame:
        if not self.is_fitted_ or self.plan_ is None:
            raise RuntimeError("Call fit before transform")
        return self.plan_.transform(df)
