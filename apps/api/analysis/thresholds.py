"""
Scoring thresholds and weights.

A ScoringConfig is an immutable value handed to each analysis component at
construction. The module-level DEFAULT_SCORING_CONFIG carries the production
values and is never mutated at runtime.
"""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class TrackedMetric(str, Enum):
    PLAY_RATE = "play_rate"
    ENGAGEMENT = "engagement"
    CONVERSION_RATE = "conversion_rate"
    UNMUTE_RATE = "unmute_rate"


class MetricThresholds(BaseModel):
    """Ascending cut-offs for one metric, expressed as 0-1 ratios."""
    model_config = ConfigDict(frozen=True)

    poor: float
    average: float
    good: float
    excellent: float

    @model_validator(mode="after")
    def _check_ascending(self) -> "MetricThresholds":
        if not (0 < self.poor < self.average < self.good < self.excellent):
            raise ValueError(
                "thresholds must satisfy 0 < poor < average < good < excellent"
            )
        return self


class ThresholdTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    play_rate: MetricThresholds
    engagement: MetricThresholds
    conversion_rate: MetricThresholds
    unmute_rate: MetricThresholds

    def for_metric(self, metric: TrackedMetric) -> MetricThresholds:
        return getattr(self, metric.value)


class ScoreWeights(BaseModel):
    """Composite score weights. Must sum to 1.0."""
    model_config = ConfigDict(frozen=True)

    engagement: float = 0.35
    conversion_rate: float = 0.25
    play_rate: float = 0.20
    unmute_rate: float = 0.20

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoreWeights":
        total = self.engagement + self.conversion_rate + self.play_rate + self.unmute_rate
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"score weights must sum to 1.0 (got {total})")
        return self

    def for_metric(self, metric: TrackedMetric) -> float:
        return getattr(self, metric.value)


class SeverityBands(BaseModel):
    """Relative-drop cut-offs (percent of viewers at the earlier sample)."""
    model_config = ConfigDict(frozen=True)

    critical: float = 20.0
    poor: float = 12.0
    average: float = 7.0


class ScoringConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    thresholds: ThresholdTable
    weights: ScoreWeights = ScoreWeights()

    # Drop-off detection
    significance_multiplier: float = 1.5
    min_drop_points: int = 3
    max_drops_per_segment: int = 3
    severity_bands: SeverityBands = SeverityBands()

    # Recommendations
    max_drop_recommendations: int = 3

    # Portfolio
    top_n: int = 5
    low_engagement_threshold: float = 0.25
    low_play_rate_threshold: float = 0.30
    underperformer_score_threshold: int = 30


DEFAULT_THRESHOLDS = ThresholdTable(
    play_rate=MetricThresholds(poor=0.15, average=0.3, good=0.5, excellent=0.7),
    engagement=MetricThresholds(poor=0.15, average=0.25, good=0.4, excellent=0.6),
    conversion_rate=MetricThresholds(poor=0.005, average=0.015, good=0.03, excellent=0.05),
    unmute_rate=MetricThresholds(poor=0.1, average=0.25, good=0.4, excellent=0.6),
)

DEFAULT_SCORING_CONFIG = ScoringConfig(thresholds=DEFAULT_THRESHOLDS)
