from .errors import (
    TabprepError,
    InsufficientDataError,
    SchemaMismatchError,
    DegenerateColumnError,
)
from .loading import load_table, write_table
from .split import stratified_split, three_way_split
from .diagnostics import information_value, woe_table
from .relevance import ColumnRelevance, RelevanceReport, InformationValueFilter
from .plan import EncodingPlan, NumericTreatment, CategoricalTreatment
from .planner import EncodingPlanner
from .crossframe import CrossFramePlanner
from .redundancy import CorrelationPruner, association_matrix, find_redundant
from .config import PipelineConfig
from .pipeline import PipelineResult, PreprocessingPipeline
from .logging_utils import configure_logging

__all__ = [
    # Errors
    "TabprepError",
    "InsufficientDataError",
    "SchemaMismatchError",
    "DegenerateColumnError",
    # Loading & partitioning
    "load_table",
    "write_table",
    "stratified_split",
    "three_way_split",
    # Relevance
    "information_value",
    "woe_table",
    "ColumnRelevance",
    "RelevanceReport",
    "InformationValueFilter",
    # Encoding
    "EncodingPlan",
    "NumericTreatment",
    "CategoricalTreatment",
    "EncodingPlanner",
    "CrossFramePlanner",
    # Redundancy
    "CorrelationPruner",
    "association_matrix",
    "find_redundant",
    # Orchestration
    "PipelineConfig",
    "PipelineResult",
    "PreprocessingPipeline",
    "configure_logging",
]
