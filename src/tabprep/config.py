from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


@dataclass(frozen=True)
class PipelineConfig:
    """Every knob of the preprocessing pipeline, passed explicitly to each stage.

    Fractions: ``test_fraction`` of all rows is held out first, then
    ``preprocessing_fraction`` of the remainder is reserved for filtering and
    plan design; the filter further keeps ``validation_fraction`` of its
    input aside to estimate the information value penalty.
    """

    target: str
    target_class: Any = 1
    seed: int = 42

    test_fraction: float = 0.2
    preprocessing_fraction: float = 0.3

    # relevance filter
    validation_fraction: float = 0.5
    iv_threshold: float = 0.02
    top_n: Optional[int] = None
    iv_bins: int = 10
    max_cardinality: int = 1000

    # encoding plan
    rare_min_frequency: float = 0.02
    clip_percentile: float = 2.5
    numeric_fill: str = "mean"
    impact_smoothing: float = 1.0
    on_degenerate: str = "raise"
    cross_frame: bool = False
    cross_frame_folds: int = 5

    # redundancy pruning
    correlation_cutoff: float = 0.9
    correlation_method: str = "spearman"

    def __post_init__(self) -> None:
        if not self.target:
            raise ValueError("target must be a column name")
        for name in ("test_fraction", "preprocessing_fraction", "validation_fraction"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ValueError(f"{name} must be in (0, 1), got {value}")
        if self.top_n is not None and self.top_n < 1:
            raise ValueError("top_n must be positive when set")
        if self.iv_bins < 2:
            raise ValueError("iv_bins must be at least 2")
        if self.max_cardinality < 1:
            raise ValueError("max_cardinality must be positive")
        if self.rare_min_frequency < 0:
            raise ValueError("rare_min_frequency must be non-negative")
        if not 0.0 <= self.clip_percentile < 50.0:
            raise ValueError("clip_percentile must be in [0, 50)")
        if self.numeric_fill not in {"mean", "median"}:
            raise ValueError("numeric_fill must be 'mean' or 'median'")
        if self.impact_smoothing < 0:
            raise ValueError("impact_smoothing must be non-negative")
        if self.on_degenerate not in {"raise", "drop"}:
            raise ValueError("on_degenerate must be 'raise' or 'drop'")
        if self.cross_frame_folds < 2:
            raise ValueError("cross_frame_folds must be at least 2")
        if not 0.0 <= self.correlation_cutoff <= 1.0:
            raise ValueError("correlation_cutoff must be in [0, 1]")
        if self.correlation_method not in {"spearman", "pearson"}:
            raise ValueError("correlation_method must be 'spearman' or 'pearson'")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], section: Optional[str] = None) -> "PipelineConfig":
        """Load a config from YAML, optionally from a top-level ``section``."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if section is not None:
            if section not in data:
                raise ValueError(f"Section '{section}' not found in {path}")
            data = data[section] or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
