"""
Drop-off significance detection.

Scans a viewer-retention curve and flags intervals whose relative viewer loss
(loss as a share of viewers still watching at the start of the interval)
stands out against the video's average interval loss. The timeline is split
into quartile segments and each segment contributes at most a few of its
largest drops, so a volatile opening cannot crowd out later problems.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .models import DropOffData, PerformanceRating, SignificantDrop, TimelineSegment
from .thresholds import ScoringConfig
from .timecode import format_seconds, round_half_up

SEGMENT_ORDER: Tuple[TimelineSegment, ...] = (
    TimelineSegment.EARLY,
    TimelineSegment.MID_EARLY,
    TimelineSegment.MID_LATE,
    TimelineSegment.LATE,
)
SEGMENT_QUARTILES = (0.25, 0.5, 0.75)


@dataclass(frozen=True)
class _Interval:
    index: int            # index of the later point
    drop: int
    relative_drop: float  # full precision, percent
    drop_percentage: float
    segment: TimelineSegment


def segment_boundaries(last_second: int) -> Tuple[float, ...]:
    """Start second of mid-early, mid-late and late for a timeline ending at last_second."""
    return tuple(last_second * q for q in SEGMENT_QUARTILES)


def classify_segment(second: int, boundaries: Tuple[float, ...]) -> TimelineSegment:
    # bisect_right counts how many segment starts are <= second
    return SEGMENT_ORDER[min(bisect_right(boundaries, second), len(SEGMENT_ORDER) - 1)]


class DropOffDetector:
    """Finds statistically loud drop-off events in a retention curve."""

    def __init__(self, config: ScoringConfig):
        self.config = config

    def severity(self, relative_drop: float) -> PerformanceRating:
        bands = self.config.severity_bands
        if relative_drop >= bands.critical:
            return PerformanceRating.CRITICAL
        if relative_drop >= bands.poor:
            return PerformanceRating.POOR
        if relative_drop >= bands.average:
            return PerformanceRating.AVERAGE
        return PerformanceRating.GOOD

    def _intervals(self, drop_off: DropOffData) -> List[_Interval]:
        points = drop_off.points
        boundaries = segment_boundaries(points[-1].second)
        total = drop_off.total_viewers

        intervals = []
        for i in range(1, len(points)):
            before = points[i - 1].viewers
            drop = before - points[i].viewers
            # Flat or rising counts are ingestion noise, not churn
            if drop <= 0:
                continue
            intervals.append(_Interval(
                index=i,
                drop=drop,
                relative_drop=drop / before * 100 if before > 0 else 0.0,
                drop_percentage=drop / total * 100 if total > 0 else 0.0,
                segment=classify_segment(points[i].second, boundaries),
            ))
        return intervals

    def _select(self, flagged: List[_Interval]) -> List[_Interval]:
        by_segment: Dict[TimelineSegment, List[_Interval]] = {}
        for interval in flagged:
            by_segment.setdefault(interval.segment, []).append(interval)

        selected = []
        for segment in SEGMENT_ORDER:
            ranked = sorted(by_segment.get(segment, []), key=lambda iv: iv.relative_drop, reverse=True)
            selected.extend(ranked[:self.config.max_drops_per_segment])
        return sorted(selected, key=lambda iv: iv.index)

    def find_significant_drops(self, drop_off: DropOffData) -> List[SignificantDrop]:
        """Return flagged drops in timeline order. Pure function of the input."""
        points = drop_off.points
        if len(points) < self.config.min_drop_points or points[-1].second <= 0:
            return []

        intervals = self._intervals(drop_off)
        if not intervals:
            return []

        avg_relative_drop = float(np.mean([iv.relative_drop for iv in intervals]))
        cutoff = avg_relative_drop * self.config.significance_multiplier
        flagged = [iv for iv in intervals if iv.relative_drop > cutoff]

        drops = []
        for iv in self._select(flagged):
            before = points[iv.index - 1]
            after = points[iv.index]
            drops.append(SignificantDrop(
                second=after.second,
                formatted_time=format_seconds(after.second),
                drop_percentage=round_half_up(iv.drop_percentage, 1),
                relative_drop=round_half_up(iv.relative_drop, 1),
                viewers_before=before.viewers,
                viewers_after=after.viewers,
                severity=self.severity(iv.relative_drop),
                segment=iv.segment,
            ))
        return drops
