import numpy as np
import pytest
from pydantic import ValidationError

from analysis.metrics import calculate_score, rate, rating_from_score, score
from analysis.models import PerformanceRating, VideoStats
from analysis.ratings import CompositeScorer, MetricRater
from analysis.thresholds import (
    DEFAULT_SCORING_CONFIG,
    DEFAULT_THRESHOLDS,
    MetricThresholds,
    ScoreWeights,
    ScoringConfig,
    TrackedMetric,
)
from analysis.timecode import round_half_up


def _stats(**overrides):
    values = {"video_id": "v1"}
    values.update(overrides)
    return VideoStats(**values)


@pytest.mark.parametrize("metric", list(TrackedMetric))
def test_threshold_values_map_to_band_boundaries(metric):
    t = DEFAULT_THRESHOLDS.for_metric(metric)
    assert score(metric, t.poor) == 20
    assert score(metric, t.average) == 40
    assert score(metric, t.good) == 60
    assert score(metric, t.excellent) == 80


def test_engagement_at_excellent_threshold_scores_80():
    assert score("engagement", 0.6) == 80


@pytest.mark.parametrize("metric", list(TrackedMetric))
def test_score_is_monotonic_and_bounded(metric):
    values = np.linspace(0, 2.0, 801)
    scores = [score(metric, float(v)) for v in values]
    assert all(0 <= s <= 100 for s in scores)
    assert all(b >= a for a, b in zip(scores, scores[1:]))


@pytest.mark.parametrize("metric", list(TrackedMetric))
def test_score_is_continuous_just_below_thresholds(metric):
    t = DEFAULT_THRESHOLDS.for_metric(metric)
    for threshold, boundary in ((t.poor, 20), (t.average, 40), (t.good, 60), (t.excellent, 80)):
        assert score(metric, threshold - 1e-9) == pytest.approx(boundary, abs=1e-3)


def test_score_caps_and_floors():
    assert score(TrackedMetric.ENGAGEMENT, 0.0) == 0
    assert score(TrackedMetric.ENGAGEMENT, 1.2) == 100
    assert score(TrackedMetric.ENGAGEMENT, 5.0) == 100
    assert score(TrackedMetric.PLAY_RATE, -0.5) == 0


def test_rate_buckets_play_rate():
    assert rate("play_rate", 0.7) == PerformanceRating.EXCELLENT
    assert rate("play_rate", 0.69) == PerformanceRating.GOOD
    assert rate("play_rate", 0.5) == PerformanceRating.GOOD
    assert rate("play_rate", 0.3) == PerformanceRating.AVERAGE
    assert rate("play_rate", 0.15) == PerformanceRating.POOR
    assert rate("play_rate", 0.149) == PerformanceRating.CRITICAL


def test_unknown_metric_defaults_to_average():
    assert rate("bounce_rate", 0.99) == PerformanceRating.AVERAGE
    assert score("bounce_rate", 0.99) == 50


@pytest.mark.parametrize(
    "value,expected",
    [
        (100, PerformanceRating.EXCELLENT),
        (80, PerformanceRating.EXCELLENT),
        (79, PerformanceRating.GOOD),
        (60, PerformanceRating.GOOD),
        (59, PerformanceRating.AVERAGE),
        (40, PerformanceRating.AVERAGE),
        (39, PerformanceRating.POOR),
        (20, PerformanceRating.POOR),
        (19, PerformanceRating.CRITICAL),
        (0, PerformanceRating.CRITICAL),
    ],
)
def test_rating_from_score_bands(value, expected):
    assert rating_from_score(value) == expected


def test_all_zero_metrics_score_zero_and_critical():
    result = calculate_score(_stats())
    assert result == 0
    assert rating_from_score(result) == PerformanceRating.CRITICAL


def test_all_metrics_at_excellent_threshold_score_at_least_80():
    stats = _stats(play_rate=0.7, engagement=0.6, conversion_rate=0.05, unmute_rate=0.6)
    assert calculate_score(stats) >= 80


def test_strong_video_scores_excellent():
    stats = _stats(
        play_rate=0.8, engagement=0.7, conversion_rate=0.06, unmute_rate=0.7,
        plays=1000, revenue=500,
    )
    result = calculate_score(stats)
    assert result >= 80
    assert rating_from_score(result) == PerformanceRating.EXCELLENT


def test_default_weights_sum_to_one():
    w = DEFAULT_SCORING_CONFIG.weights
    assert w.engagement + w.conversion_rate + w.play_rate + w.unmute_rate == pytest.approx(1.0)


def test_weights_not_summing_to_one_are_rejected():
    with pytest.raises(ValidationError):
        ScoreWeights(engagement=0.5, conversion_rate=0.5, play_rate=0.5, unmute_rate=0.5)


def test_non_ascending_thresholds_are_rejected():
    with pytest.raises(ValidationError):
        MetricThresholds(poor=0.3, average=0.2, good=0.4, excellent=0.6)


def test_config_is_immutable():
    with pytest.raises(ValidationError):
        DEFAULT_SCORING_CONFIG.top_n = 10


def test_alternate_weighting_does_not_touch_default():
    engagement_only = ScoringConfig(
        thresholds=DEFAULT_THRESHOLDS,
        weights=ScoreWeights(engagement=1.0, conversion_rate=0.0, play_rate=0.0, unmute_rate=0.0),
    )
    stats = _stats(play_rate=0.7, engagement=0.4, conversion_rate=0.0, unmute_rate=0.0)

    assert CompositeScorer(engagement_only).calculate_score(stats) == 60
    # 0.35*60 + 0.20*80 = 37
    assert calculate_score(stats) == 37


def test_metric_rater_rate_all():
    ratings = MetricRater(DEFAULT_SCORING_CONFIG).rate_all(
        _stats(play_rate=0.8, engagement=0.1, conversion_rate=0.02, unmute_rate=0.3)
    )
    assert ratings.play_rate.rating == PerformanceRating.EXCELLENT
    assert ratings.engagement.rating == PerformanceRating.CRITICAL
    assert ratings.conversion_rate.rating == PerformanceRating.AVERAGE
    assert ratings.unmute_rate.rating == PerformanceRating.AVERAGE
    assert ratings.engagement.value == 0.1


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(59.18367, 1) == 59.2
