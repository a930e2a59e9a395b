"""
Core video performance analysis.

VideoAnalyzer wires the rating engine, composite scorer, drop-off detector,
recommendation synthesizer and portfolio aggregator around one immutable
ScoringConfig. Everything here is synchronous and side-effect free, so one
analyzer can be shared across concurrent requests.
"""

from typing import List, Sequence

from .dropoff import DropOffDetector
from .models import (
    DropOffData,
    MetricRating,
    PerformanceRating,
    PortfolioSummary,
    Recommendation,
    SignificantDrop,
    Video,
    VideoAnalysis,
    VideoStats,
)
from .portfolio import PortfolioAggregator
from .ratings import CompositeScorer, MetricName, MetricRater, rating_from_score
from .recommendations import RecommendationSynthesizer
from .thresholds import DEFAULT_SCORING_CONFIG, ScoringConfig


class VideoAnalyzer:
    """Analyzes single videos and whole portfolios."""

    def __init__(self, config: ScoringConfig = DEFAULT_SCORING_CONFIG):
        self.config = config
        self.rater = MetricRater(config)
        self.scorer = CompositeScorer(config, self.rater)
        self.detector = DropOffDetector(config)
        self.synthesizer = RecommendationSynthesizer(config, self.rater)
        self.aggregator = PortfolioAggregator(config, self.scorer)

    def analyze_video(self, video: Video, stats: VideoStats, drop_off: DropOffData) -> VideoAnalysis:
        """Perform full analysis of one video and return a fresh VideoAnalysis."""
        score = self.scorer.calculate_score(stats)
        drops = self.detector.find_significant_drops(drop_off)

        return VideoAnalysis(
            video_id=video.id,
            video_name=video.title,
            overall_score=score,
            overall_rating=rating_from_score(score),
            metrics=self.rater.rate_all(stats),
            significant_drops=drops,
            recommendations=self.synthesizer.generate(stats, drops),
        )

    def analyze_portfolio(self, videos: Sequence[Video], stats_list: Sequence[VideoStats]) -> PortfolioSummary:
        return self.aggregator.analyze(videos, stats_list)


default_analyzer = VideoAnalyzer()


def rate(metric: MetricName, value: float) -> PerformanceRating:
    return default_analyzer.rater.rate(metric, value)


def score(metric: MetricName, value: float) -> float:
    return default_analyzer.rater.score(metric, value)


def metric_rating(metric: MetricName, value: float) -> MetricRating:
    return default_analyzer.rater.metric_rating(metric, value)


def calculate_score(stats: VideoStats) -> int:
    return default_analyzer.scorer.calculate_score(stats)


def find_significant_drops(drop_off: DropOffData) -> List[SignificantDrop]:
    return default_analyzer.detector.find_significant_drops(drop_off)


def generate_recommendations(stats: VideoStats, drops: List[SignificantDrop]) -> List[Recommendation]:
    return default_analyzer.synthesizer.generate(stats, drops)


def analyze_video(video: Video, stats: VideoStats, drop_off: DropOffData) -> VideoAnalysis:
    return default_analyzer.analyze_video(video, stats, drop_off)


def analyze_portfolio(videos: Sequence[Video], stats_list: Sequence[VideoStats]) -> PortfolioSummary:
    return default_analyzer.analyze_portfolio(videos, stats_list)


__all__ = [
    "VideoAnalyzer",
    "analyze_portfolio",
    "analyze_video",
    "calculate_score",
    "find_significant_drops",
    "generate_recommendations",
    "metric_rating",
    "rate",
    "rating_from_score",
    "score",
]
