from collections import Counter

import numpy as np
import pytest

from analysis.dropoff import DropOffDetector, classify_segment, segment_boundaries
from analysis.metrics import find_significant_drops
from analysis.models import DropOffData, DropOffPoint, PerformanceRating, TimelineSegment
from analysis.thresholds import DEFAULT_THRESHOLDS, ScoringConfig
from analysis.timecode import format_seconds


def make_drop_off(samples, total_viewers=None, video_id="v1"):
    """Build a DropOffData from (second, viewers) pairs."""
    if total_viewers is None:
        total_viewers = samples[0][1] if samples else 0
    return DropOffData(
        video_id=video_id,
        total_viewers=total_viewers,
        points=[DropOffPoint(second=s, viewers=v) for s, v in samples],
    )


@pytest.fixture
def cliff_curve():
    return make_drop_off([(0, 100), (10, 98), (20, 40), (30, 38)])


@pytest.fixture
def one_cliff_per_quarter():
    samples = []
    viewers = 1000
    for second in range(0, 101, 5):
        if second in (10, 40, 60, 90):
            viewers -= 100
        elif second > 0:
            viewers -= 2
        samples.append((second, viewers))
    return make_drop_off(samples, total_viewers=1000)


def test_single_cliff_is_flagged(cliff_curve):
    drops = find_significant_drops(cliff_curve)

    assert len(drops) == 1
    drop = drops[0]
    assert drop.second == 20
    assert drop.formatted_time == "0:20"
    assert drop.relative_drop == 59.2
    assert drop.drop_percentage == 58.0
    assert drop.viewers_before == 98
    assert drop.viewers_after == 40
    assert drop.severity == PerformanceRating.CRITICAL
    assert drop.segment == TimelineSegment.MID_LATE


@pytest.mark.parametrize(
    "samples",
    [
        [],
        [(0, 100)],
        [(0, 100), (10, 10)],
        [(-2, 100), (-1, 50), (0, 10)],
    ],
)
def test_too_short_or_degenerate_curves_return_nothing(samples):
    assert find_significant_drops(make_drop_off(samples)) == []


def test_flat_curve_returns_nothing():
    flat = make_drop_off([(0, 50), (10, 50), (20, 50), (30, 50)])
    assert find_significant_drops(flat) == []


def test_zero_viewer_curve_returns_nothing():
    empty = make_drop_off([(0, 0), (10, 0), (20, 0)], total_viewers=0)
    assert find_significant_drops(empty) == []


def test_zero_total_viewers_does_not_divide_by_zero():
    curve = make_drop_off([(0, 100), (10, 98), (20, 40), (30, 38)], total_viewers=0)
    drops = find_significant_drops(curve)

    assert len(drops) == 1
    assert drops[0].drop_percentage == 0.0
    assert drops[0].relative_drop == 59.2


def test_rebounds_are_ignored():
    curve = make_drop_off([(0, 100), (10, 90), (20, 95), (30, 50), (40, 49)])
    drops = find_significant_drops(curve)

    assert [d.second for d in drops] == [30]
    assert drops[0].relative_drop == 47.4
    assert drops[0].drop_percentage == 45.0
    assert drops[0].segment == TimelineSegment.LATE


def test_each_quarter_reports_its_own_cliff(one_cliff_per_quarter):
    drops = find_significant_drops(one_cliff_per_quarter)

    assert [d.second for d in drops] == [10, 40, 60, 90]
    assert [d.segment for d in drops] == [
        TimelineSegment.EARLY,
        TimelineSegment.MID_EARLY,
        TimelineSegment.MID_LATE,
        TimelineSegment.LATE,
    ]
    assert [d.severity for d in drops] == [
        PerformanceRating.AVERAGE,
        PerformanceRating.AVERAGE,
        PerformanceRating.POOR,
        PerformanceRating.POOR,
    ]


def test_volatile_opening_is_capped_per_segment():
    samples = []
    viewers = 10000
    for second in range(0, 101):
        if 1 <= second <= 6:
            viewers -= 1000
        elif second > 0:
            viewers -= 10
        samples.append((second, viewers))

    drops = find_significant_drops(make_drop_off(samples))

    # six early cliffs qualify, only the three largest relative drops survive
    assert [d.second for d in drops] == [4, 5, 6]
    assert all(d.segment == TimelineSegment.EARLY for d in drops)
    assert drops[-1].severity == PerformanceRating.CRITICAL
    assert drops[0].severity == PerformanceRating.POOR


def test_noisy_curve_properties():
    rng = np.random.default_rng(7)
    viewers = 50000
    samples = []
    for i in range(200):
        if i > 0:
            loss = int(rng.integers(0, 40))
            if rng.random() < 0.08:
                loss += int(rng.integers(500, 3000))
            viewers = max(viewers - loss, 0)
        samples.append((i * 3, viewers))

    drops = find_significant_drops(make_drop_off(samples))

    seconds = [d.second for d in drops]
    assert seconds == sorted(seconds)
    assert len(set(seconds)) == len(seconds)
    assert all(count <= 3 for count in Counter(d.segment for d in drops).values())
    assert all(d.relative_drop > 0 for d in drops)
    assert all(d.viewers_before > d.viewers_after for d in drops)


def test_detection_is_deterministic(one_cliff_per_quarter):
    first = find_significant_drops(one_cliff_per_quarter)
    second = find_significant_drops(one_cliff_per_quarter)
    assert first == second


def test_lower_multiplier_flags_more(cliff_curve):
    loose = DropOffDetector(ScoringConfig(thresholds=DEFAULT_THRESHOLDS, significance_multiplier=0.05))
    assert [d.second for d in loose.find_significant_drops(cliff_curve)] == [10, 20, 30]
    assert [d.second for d in find_significant_drops(cliff_curve)] == [20]


@pytest.mark.parametrize(
    "relative,expected",
    [
        (35.0, PerformanceRating.CRITICAL),
        (20.0, PerformanceRating.CRITICAL),
        (19.99, PerformanceRating.POOR),
        (12.0, PerformanceRating.POOR),
        (7.0, PerformanceRating.AVERAGE),
        (6.9, PerformanceRating.GOOD),
    ],
)
def test_severity_bands(relative, expected):
    detector = DropOffDetector(ScoringConfig(thresholds=DEFAULT_THRESHOLDS))
    assert detector.severity(relative) == expected


@pytest.mark.parametrize(
    "second,expected",
    [
        (0, TimelineSegment.EARLY),
        (24, TimelineSegment.EARLY),
        (25, TimelineSegment.MID_EARLY),
        (49, TimelineSegment.MID_EARLY),
        (50, TimelineSegment.MID_LATE),
        (75, TimelineSegment.LATE),
        (100, TimelineSegment.LATE),
    ],
)
def test_classify_segment(second, expected):
    assert classify_segment(second, segment_boundaries(100)) == expected


def test_fractional_quartile_boundaries():
    boundaries = segment_boundaries(30)
    assert boundaries == (7.5, 15.0, 22.5)
    assert classify_segment(7, boundaries) == TimelineSegment.EARLY
    assert classify_segment(8, boundaries) == TimelineSegment.MID_EARLY
    assert classify_segment(22, boundaries) == TimelineSegment.MID_LATE
    assert classify_segment(23, boundaries) == TimelineSegment.LATE


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0:00"), (5, "0:05"), (83, "1:23"), (600, "10:00"), (3700, "61:40")],
)
def test_format_seconds(seconds, expected):
    assert format_seconds(seconds) == expected


def test_point_exposes_formatted_time():
    point = DropOffPoint(second=125, viewers=10)
    assert point.formatted_time == "2:05"
    assert point.model_dump()["formatted_time"] == "2:05"
