"""
Metric rating engine and composite scorer.

Each tracked metric is bucketed into a five-level rating and mapped onto a
continuous 0-100 sub-score by piecewise-linear interpolation between its
thresholds. The composite score is the weighted sum of the four sub-scores.
"""

from typing import Optional, Union

from .models import MetricRating, MetricRatings, PerformanceRating, VideoStats
from .thresholds import MetricThresholds, ScoringConfig, TrackedMetric
from .timecode import round_half_up

MetricName = Union[TrackedMetric, str]

UNKNOWN_METRIC_RATING = PerformanceRating.AVERAGE
UNKNOWN_METRIC_SCORE = 50.0


def rating_from_score(score: float) -> PerformanceRating:
    """Band a 0-100 score using the same cut-offs as the metric sub-scores."""
    if score >= 80:
        return PerformanceRating.EXCELLENT
    if score >= 60:
        return PerformanceRating.GOOD
    if score >= 40:
        return PerformanceRating.AVERAGE
    if score >= 20:
        return PerformanceRating.POOR
    return PerformanceRating.CRITICAL


def _resolve_metric(metric: MetricName) -> Optional[TrackedMetric]:
    if isinstance(metric, TrackedMetric):
        return metric
    try:
        return TrackedMetric(metric)
    except ValueError:
        return None


class MetricRater:
    """Rates and scores single metric values against a threshold table."""

    def __init__(self, config: ScoringConfig):
        self.config = config

    def thresholds(self, metric: MetricName) -> Optional[MetricThresholds]:
        tracked = _resolve_metric(metric)
        if tracked is None:
            return None
        return self.config.thresholds.for_metric(tracked)

    def rate(self, metric: MetricName, value: float) -> PerformanceRating:
        t = self.thresholds(metric)
        if t is None:
            return UNKNOWN_METRIC_RATING
        if value >= t.excellent:
            return PerformanceRating.EXCELLENT
        if value >= t.good:
            return PerformanceRating.GOOD
        if value >= t.average:
            return PerformanceRating.AVERAGE
        if value >= t.poor:
            return PerformanceRating.POOR
        return PerformanceRating.CRITICAL

    def score(self, metric: MetricName, value: float) -> float:
        t = self.thresholds(metric)
        if t is None:
            return UNKNOWN_METRIC_SCORE
        if value >= t.excellent:
            return min(100.0, 80 + (value - t.excellent) / t.excellent * 20)
        if value >= t.good:
            return 60 + (value - t.good) / (t.excellent - t.good) * 20
        if value >= t.average:
            return 40 + (value - t.average) / (t.good - t.average) * 20
        if value >= t.poor:
            return 20 + (value - t.poor) / (t.average - t.poor) * 20
        return max(0.0, value / t.poor * 20)

    def metric_rating(self, metric: MetricName, value: float) -> MetricRating:
        return MetricRating(value=value, rating=self.rate(metric, value))

    def rate_all(self, stats: VideoStats) -> MetricRatings:
        return MetricRatings(
            play_rate=self.metric_rating(TrackedMetric.PLAY_RATE, stats.play_rate),
            engagement=self.metric_rating(TrackedMetric.ENGAGEMENT, stats.engagement),
            conversion_rate=self.metric_rating(TrackedMetric.CONVERSION_RATE, stats.conversion_rate),
            unmute_rate=self.metric_rating(TrackedMetric.UNMUTE_RATE, stats.unmute_rate),
        )


class CompositeScorer:
    """Weighted 0-100 overall score for a video."""

    def __init__(self, config: ScoringConfig, rater: Optional[MetricRater] = None):
        self.config = config
        self.rater = rater or MetricRater(config)

    def sub_scores(self, stats: VideoStats) -> dict:
        return {
            metric: self.rater.score(metric, getattr(stats, metric.value))
            for metric in TrackedMetric
        }

    def calculate_score(self, stats: VideoStats) -> int:
        weights = self.config.weights
        total = sum(
            sub_score * weights.for_metric(metric)
            for metric, sub_score in self.sub_scores(stats).items()
        )
        return int(round_half_up(total))
