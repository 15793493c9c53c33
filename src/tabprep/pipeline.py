from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import polars as pl

from .base import _ensure_polars_df, _require_columns
from .config import PipelineConfig
from .crossframe import CrossFramePlanner
from .plan import EncodingPlan
from .planner import EncodingPlanner
from .redundancy import CorrelationPruner
from .relevance import InformationValueFilter, RelevanceReport
from .split import three_way_split

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    train: pl.DataFrame
    test: pl.DataFrame
    report: RelevanceReport
    plan: EncodingPlan
    selected_features: List[str] = field(default_factory=list)
    removed_features: List[str] = field(default_factory=list)

    @property
    def feature_columns(self) -> List[str]:
        return [c for c in self.train.columns if c != self.plan.target]


class PreprocessingPipeline:
    """Partition, filter, encode and prune a labeled table in one pass.

    Stages run strictly in order; each receives the previous stage's output
    and any failure aborts the run before a plan is exposed.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
        self.filter_: Optional[InformationValueFilter] = None
        self.planner_: Optional[EncodingPlanner] = None
        self.pruner_: Optional[CorrelationPruner] = None
        self.result_: Optional[PipelineResult] = None

    def _make_filter(self) -> InformationValueFilter:
        cfg = self.config
        return InformationValueFilter(
            target=cfg.target,
            threshold=cfg.iv_threshold,
            top_n=cfg.top_n,
            n_bins=cfg.iv_bins,
            validation_fraction=cfg.validation_fraction,
            max_cardinality=cfg.max_cardinality,
            target_class=cfg.target_class,
            random_state=cfg.seed,
        )

    def _make_planner(self, columns: List[str]) -> EncodingPlanner:
        cfg = self.config
        return EncodingPlanner(
            target=cfg.target,
            target_class=cfg.target_class,
            columns=columns,
            rare_min_frequency=cfg.rare_min_frequency,
            clip_percentile=cfg.clip_percentile,
            numeric_fill=cfg.numeric_fill,
            impact_smoothing=cfg.impact_smoothing,
            max_cardinality=cfg.max_cardinality,
            on_degenerate=cfg.on_degenerate,
        )

    def run(self, df: pl.DataFrame) -> PipelineResult:
        cfg = self.config
        df = _ensure_polars_df(df)
        _require_columns(df, [cfg.target], "input table")
        logger.info("Running preprocessing pipeline on %d rows x %d columns", df.height, df.width)

        train, preprocessing, test = three_way_split(
            df,
            test_fraction=cfg.test_fraction,
            preprocessing_fraction=cfg.preprocessing_fraction,
            stratify=cfg.target,
            seed=cfg.seed,
        )

        relevance = self._make_filter().fit(preprocessing)
        selected = relevance.get_selected_features()
        if not selected:
            raise ValueError(
                "No column passed the relevance filter; lower iv_threshold or set top_n"
            )

        if cfg.cross_frame:
            cross = CrossFramePlanner(
                lambda: self._make_planner(selected),
                n_splits=cfg.cross_frame_folds,
                random_state=cfg.seed,
            ).fit(train)
            planner = cross.planner_
            plan = cross.plan_
            encoded_train = cross.cross_frame_
        else:
            planner = self._make_planner(selected).fit(preprocessing)
            plan = planner.plan_
            encoded_train = plan.transform(train)
        encoded_test = plan.transform(test)

        pruner = CorrelationPruner(
            cutoff=cfg.correlation_cutoff,
            method=cfg.correlation_method,
            exclude=[cfg.target],
        ).fit(encoded_train)

        self.filter_ = relevance
        self.planner_ = planner
        self.pruner_ = pruner
        self.result_ = PipelineResult(
            train=pruner.transform(encoded_train),
            test=pruner.transform(encoded_test),
            report=relevance.report_,
            plan=plan,
            selected_features=list(selected),
            removed_features=list(pruner.removed_features_),
        )
        logger.info(
            "Pipeline finished: %d features after pruning (%d selected, %d removed as redundant)",
            len(self.result_.feature_columns),
            len(selected),
            len(pruner.removed_features_),
        )
        return self.result_

    def apply(self, df: pl.DataFrame, include_target: bool = True) -> pl.DataFrame:
        """Encode new data with the fitted plan and drop the redundant columns."""
        if self.result_ is None or self.pruner_ is None:
            raise RuntimeError("Call run before apply")
        keep = [c for c in self.result_.plan.feature_names_out() if c not in set(self.pruner_.removed_features_)]
        return self.result_.plan.transform(df, columns=keep, include_target=include_target)
