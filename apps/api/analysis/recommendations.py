"""
Rule-based recommendation synthesis.

Rules run in a fixed order and every rule that matches appends its output,
so the resulting list doubles as a reading order for the dashboard. Each
message embeds the value that triggered it.
"""

from typing import List, Optional

from .models import (
    PerformanceRating,
    Recommendation,
    RecommendationType,
    SignificantDrop,
    VideoStats,
)
from .ratings import MetricRater
from .thresholds import ScoringConfig, TrackedMetric

LOW_RATINGS = {PerformanceRating.POOR, PerformanceRating.CRITICAL}
HIGH_RATINGS = {PerformanceRating.GOOD, PerformanceRating.EXCELLENT}

DROP_OFF_METRIC = "drop_off"
REVENUE_METRIC = "revenue"
OVERALL_METRIC = "overall"


def _pct(value: float, digits: int = 1) -> str:
    return f"{value * 100:.{digits}f}%"


def _severity_type(rating: PerformanceRating) -> RecommendationType:
    if rating == PerformanceRating.CRITICAL:
        return RecommendationType.CRITICAL
    return RecommendationType.WARNING


SOLID_PERFORMANCE = Recommendation(
    type=RecommendationType.POSITIVE,
    metric=OVERALL_METRIC,
    title="Solid Performance",
    detail="This video is performing within acceptable ranges across all tracked metrics.",
    actionable_step="Keep monitoring over time and test small improvements to push metrics higher.",
)


class RecommendationSynthesizer:
    """Turns ratings and drop events into an ordered list of findings."""

    def __init__(self, config: ScoringConfig, rater: Optional[MetricRater] = None):
        self.config = config
        self.rater = rater or MetricRater(config)

    def generate(self, stats: VideoStats, drops: List[SignificantDrop]) -> List[Recommendation]:
        play = self.rater.rate(TrackedMetric.PLAY_RATE, stats.play_rate)
        engagement = self.rater.rate(TrackedMetric.ENGAGEMENT, stats.engagement)
        unmute = self.rater.rate(TrackedMetric.UNMUTE_RATE, stats.unmute_rate)
        conversion = self.rater.rate(TrackedMetric.CONVERSION_RATE, stats.conversion_rate)

        recs: List[Recommendation] = []
        recs.extend(self._play_rate(stats, play))
        recs.extend(self._engagement(stats, play, engagement))
        recs.extend(self._unmute_rate(stats, unmute))
        if stats.conversion_count > 0 or stats.conversion_rate > 0:
            recs.extend(self._conversion(stats, engagement, conversion))
        recs.extend(self._revenue(stats))
        recs.extend(self._drop_offs(drops))

        if not recs:
            recs.append(SOLID_PERFORMANCE)
        return recs

    def _play_rate(self, stats: VideoStats, play: PerformanceRating) -> List[Recommendation]:
        if play in LOW_RATINGS:
            return [Recommendation(
                type=_severity_type(play),
                metric=TrackedMetric.PLAY_RATE.value,
                title="Low Play Rate",
                detail=(
                    f"Only {_pct(stats.play_rate)} of visitors who see this video press play. "
                    "Most visitors leave before the video even starts."
                ),
                actionable_step=(
                    "Improve the thumbnail, add a compelling headline above the player, "
                    "or autoplay with a strong visual hook in the first frame."
                ),
            )]
        if play == PerformanceRating.EXCELLENT:
            return [Recommendation(
                type=RecommendationType.POSITIVE,
                metric=TrackedMetric.PLAY_RATE.value,
                title="Strong Play Rate",
                detail=(
                    f"{_pct(stats.play_rate)} play rate is excellent. "
                    "The thumbnail and page design are getting visitors to watch."
                ),
                actionable_step="Document what makes this presentation work and reuse the pattern on other videos.",
            )]
        return []

    def _engagement(
        self,
        stats: VideoStats,
        play: PerformanceRating,
        engagement: PerformanceRating,
    ) -> List[Recommendation]:
        recs = []
        if engagement in LOW_RATINGS:
            recs.append(Recommendation(
                type=_severity_type(engagement),
                metric=TrackedMetric.ENGAGEMENT.value,
                title="Low Viewer Engagement",
                detail=(
                    f"Viewers watch only {_pct(stats.engagement)} of the video on average. "
                    "Most people leave well before the core message or CTA."
                ),
                actionable_step=(
                    "Front-load the key message. Move the strongest proof, hook or promise "
                    "into the first 15-30 seconds and cut filler."
                ),
            ))
        if play in HIGH_RATINGS and engagement in LOW_RATINGS:
            recs.append(Recommendation(
                type=RecommendationType.WARNING,
                metric=TrackedMetric.ENGAGEMENT.value,
                title="Viewers Start But Don't Stay",
                detail=(
                    f"{_pct(stats.play_rate)} of visitors press play but average watch-through is "
                    f"{_pct(stats.engagement)}. The opening isn't delivering what the page promised."
                ),
                actionable_step=(
                    "Review the first 15-30 seconds and re-script the intro so it immediately "
                    "addresses what visitors expect."
                ),
            ))
        return recs

    def _unmute_rate(self, stats: VideoStats, unmute: PerformanceRating) -> List[Recommendation]:
        if unmute not in LOW_RATINGS:
            return []
        return [Recommendation(
            type=RecommendationType.WARNING,
            metric=TrackedMetric.UNMUTE_RATE.value,
            title="Low Unmute Rate",
            detail=(
                f"Only {_pct(stats.unmute_rate)} of viewers unmute. "
                "Many are watching silently or skipping the audio entirely."
            ),
            actionable_step=(
                "Add bold text overlays, captions or an animated unmute prompt "
                "in the first 5 seconds."
            ),
        )]

    def _conversion(
        self,
        stats: VideoStats,
        engagement: PerformanceRating,
        conversion: PerformanceRating,
    ) -> List[Recommendation]:
        recs = []
        if conversion in LOW_RATINGS:
            recs.append(Recommendation(
                type=RecommendationType.WARNING,
                metric=TrackedMetric.CONVERSION_RATE.value,
                title="Low Conversion Rate",
                detail=(
                    f"{_pct(stats.conversion_rate, 2)} conversion rate. "
                    "Viewers are watching but not taking action."
                ),
                actionable_step=(
                    "Check CTA placement and move it to the point of highest engagement. "
                    "Strengthen the offer and verify the CTA link works."
                ),
            ))
        if engagement in HIGH_RATINGS and conversion in LOW_RATINGS:
            recs.append(Recommendation(
                type=RecommendationType.WARNING,
                metric=TrackedMetric.CONVERSION_RATE.value,
                title="Engaged Viewers Aren't Converting",
                detail=(
                    f"Viewers watch {_pct(stats.engagement)} of the video but only "
                    f"{_pct(stats.conversion_rate, 2)} convert. The CTA or offer is the likely bottleneck, "
                    "not the content."
                ),
                actionable_step=(
                    "Test an earlier CTA, add urgency and make the next step unmistakable."
                ),
            ))
        if conversion == PerformanceRating.EXCELLENT:
            recs.append(Recommendation(
                type=RecommendationType.POSITIVE,
                metric=TrackedMetric.CONVERSION_RATE.value,
                title="Excellent Conversion Rate",
                detail=(
                    f"{_pct(stats.conversion_rate, 2)} conversion rate is outstanding. "
                    "This video is highly effective at driving action."
                ),
                actionable_step="Use this video's script structure and CTA placement as a template.",
            ))
        return recs

    def _revenue(self, stats: VideoStats) -> List[Recommendation]:
        if stats.revenue <= 0:
            return []
        return [Recommendation(
            type=RecommendationType.POSITIVE,
            metric=REVENUE_METRIC,
            title="Revenue Generating",
            detail=(
                f"This video has generated ${stats.revenue:.2f} in revenue "
                f"(${stats.revenue_per_viewer:.2f} per viewer, ${stats.revenue_average:.2f} AOV)."
            ),
            actionable_step="Drive more traffic here and A/B test small changes to lift revenue per viewer.",
        )]

    def _drop_offs(self, drops: List[SignificantDrop]) -> List[Recommendation]:
        recs = []
        for drop in drops[:self.config.max_drop_recommendations]:
            recs.append(Recommendation(
                type=_severity_type(drop.severity),
                metric=DROP_OFF_METRIC,
                title=f"Major Drop-off at {drop.formatted_time}",
                detail=(
                    f"{drop.relative_drop}% of remaining viewers ({drop.drop_percentage}% of all viewers) "
                    f"left at the {drop.formatted_time} mark "
                    f"({drop.viewers_before} → {drop.viewers_after} viewers)."
                ),
                actionable_step=(
                    "Review what happens at this timestamp. Common causes: topic change, energy drop, "
                    "long-winded explanation, asking for commitment too early, or audio/video issues."
                ),
            ))
        return recs
