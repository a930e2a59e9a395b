"""
Portfolio aggregation: totals, averages and rankings across many videos.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import (
    PortfolioSummary,
    RankedVideo,
    Recommendation,
    RecommendationType,
    Video,
    VideoStats,
)
from .ratings import CompositeScorer
from .recommendations import OVERALL_METRIC, REVENUE_METRIC
from .thresholds import ScoringConfig, TrackedMetric


class PortfolioAggregator:
    """Scores every video in a set and folds them into a PortfolioSummary."""

    def __init__(self, config: ScoringConfig, scorer: Optional[CompositeScorer] = None):
        self.config = config
        self.scorer = scorer or CompositeScorer(config)

    def rank(self, videos: Sequence[Video], stats_list: Sequence[VideoStats]) -> List[RankedVideo]:
        """Score and sort descending; ties keep input order."""
        titles: Dict[str, str] = {}
        for video in videos:
            titles.setdefault(video.id, video.title)

        ranked = [
            RankedVideo(
                video_id=stats.video_id,
                # Stats and video lists are fetched separately and may disagree
                video_name=titles.get(stats.video_id, stats.video_id),
                score=self.scorer.calculate_score(stats),
            )
            for stats in stats_list
        ]
        return sorted(ranked, key=lambda r: r.score, reverse=True)

    def analyze(self, videos: Sequence[Video], stats_list: Sequence[VideoStats]) -> PortfolioSummary:
        n = len(stats_list)
        if n == 0:
            return PortfolioSummary()

        total_plays = sum(s.plays for s in stats_list)
        total_conversions = sum(s.conversion_count for s in stats_list)
        total_revenue = float(sum(s.revenue for s in stats_list))
        avg_engagement = float(np.mean([s.engagement for s in stats_list]))
        avg_conversion_rate = float(np.mean([s.conversion_rate for s in stats_list]))
        avg_play_rate = float(np.mean([s.play_rate for s in stats_list]))
        avg_unmute_rate = float(np.mean([s.unmute_rate for s in stats_list]))

        ranked = self.rank(videos, stats_list)
        top_n = self.config.top_n
        top_performers = ranked[:top_n]
        worst_performers = list(reversed(ranked[-top_n:]))

        recs: List[Recommendation] = []
        if avg_engagement < self.config.low_engagement_threshold:
            recs.append(Recommendation(
                type=RecommendationType.CRITICAL,
                metric=TrackedMetric.ENGAGEMENT.value,
                title="Portfolio-Wide Low Engagement",
                detail=(
                    f"Average engagement across all videos is {avg_engagement * 100:.1f}%. "
                    "Most viewers leave before the midpoint."
                ),
                actionable_step=(
                    "Review script structure across the portfolio. Try shorter formats, "
                    "faster pacing and stronger opening hooks."
                ),
            ))

        if avg_play_rate < self.config.low_play_rate_threshold:
            recs.append(Recommendation(
                type=RecommendationType.WARNING,
                metric=TrackedMetric.PLAY_RATE.value,
                title="Low Average Play Rate",
                detail=(
                    f"Average play rate is {avg_play_rate * 100:.1f}%. "
                    "Page visitors aren't starting your videos."
                ),
                actionable_step=(
                    "Test different thumbnails and page layouts, and keep the player "
                    "prominent and above the fold."
                ),
            ))

        if total_revenue > 0 and top_performers:
            best = top_performers[0]
            recs.append(Recommendation(
                type=RecommendationType.POSITIVE,
                metric=REVENUE_METRIC,
                title="Revenue Summary",
                detail=(
                    f"Total revenue: ${total_revenue:.2f} from {total_conversions} conversions "
                    f"across {n} videos."
                ),
                actionable_step=(
                    f'Focus on driving more traffic to your top performer "{best.video_name}" '
                    f"(score: {best.score}/100)."
                ),
            ))

        if worst_performers and worst_performers[0].score < self.config.underperformer_score_threshold:
            worst = worst_performers[0]
            recs.append(Recommendation(
                type=RecommendationType.WARNING,
                metric=OVERALL_METRIC,
                title="Underperforming Videos Need Attention",
                detail=f'Your lowest scoring video "{worst.video_name}" scores {worst.score}/100.',
                actionable_step="Open the worst performers to see their specific issues and fixes.",
            ))

        return PortfolioSummary(
            total_videos=n,
            total_plays=total_plays,
            total_conversions=total_conversions,
            total_revenue=total_revenue,
            avg_engagement=avg_engagement,
            avg_conversion_rate=avg_conversion_rate,
            avg_play_rate=avg_play_rate,
            avg_unmute_rate=avg_unmute_rate,
            top_performers=top_performers,
            worst_performers=worst_performers,
            portfolio_recommendations=recs,
        )
