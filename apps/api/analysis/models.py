"""
Analysis models and schemas.
"""

from typing import List
from enum import Enum

from pydantic import BaseModel, ConfigDict, computed_field

from .timecode import format_seconds


class PerformanceRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"
    CRITICAL = "critical"


class RecommendationType(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    POSITIVE = "positive"


class TimelineSegment(str, Enum):
    EARLY = "early"            # [0, 25%)
    MID_EARLY = "mid-early"    # [25%, 50%)
    MID_LATE = "mid-late"      # [50%, 75%)
    LATE = "late"              # [75%, end]


# ── Inputs (produced by the vendor client) ──


class Video(BaseModel):
    id: str
    title: str
    date_created: str = ""
    last_published: str = ""
    status: str = ""
    views: int = 0
    folder_id: str = ""
    thumbnail_url: str = ""
    video_url: str = ""


class VideoStats(BaseModel):
    """Per-video metrics for one date window. Rates are 0-1 ratios."""
    model_config = ConfigDict(frozen=True)

    video_id: str
    plays: int = 0
    plays_unique: int = 0
    play_rate: float = 0.0
    unique_play_rate: float = 0.0
    engagement: float = 0.0
    impressions: int = 0
    conversion_count: int = 0
    conversion_rate: float = 0.0
    revenue: float = 0.0
    revenue_average: float = 0.0
    revenue_per_viewer: float = 0.0
    unmute_rate: float = 0.0
    unmute_count: int = 0
    # Opt-in metrics
    pg_opt_in_rate: float = 0.0
    pg_events_count: int = 0


class DropOffPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    second: int
    viewers: int
    percent_remaining: float = 0.0
    drop_from_previous: float = 0.0

    @computed_field
    @property
    def formatted_time(self) -> str:
        return format_seconds(self.second)


class DropOffData(BaseModel):
    """Retention curve; points are ascending by second with no duplicates."""
    model_config = ConfigDict(frozen=True)

    video_id: str
    total_viewers: int = 0
    points: List[DropOffPoint] = []


# ── Outputs ──


class SignificantDrop(BaseModel):
    model_config = ConfigDict(frozen=True)

    second: int
    formatted_time: str
    drop_percentage: float   # interval loss as % of total viewers
    relative_drop: float     # interval loss as % of viewers at the earlier point
    viewers_before: int
    viewers_after: int
    severity: PerformanceRating
    segment: TimelineSegment


class MetricRating(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    rating: PerformanceRating


class MetricRatings(BaseModel):
    model_config = ConfigDict(frozen=True)

    play_rate: MetricRating
    engagement: MetricRating
    conversion_rate: MetricRating
    unmute_rate: MetricRating


class Recommendation(BaseModel):
    """One finding. Lists of these are read top-to-bottom as priority."""
    model_config = ConfigDict(frozen=True)

    type: RecommendationType
    metric: str
    title: str
    detail: str
    actionable_step: str


class VideoAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    video_id: str
    video_name: str
    overall_score: int
    overall_rating: PerformanceRating
    metrics: MetricRatings
    significant_drops: List[SignificantDrop]
    recommendations: List[Recommendation]


class RankedVideo(BaseModel):
    model_config = ConfigDict(frozen=True)

    video_id: str
    video_name: str
    score: int


class PortfolioSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_videos: int = 0
    total_plays: int = 0
    total_conversions: int = 0
    total_revenue: float = 0.0
    avg_engagement: float = 0.0
    avg_conversion_rate: float = 0.0
    avg_play_rate: float = 0.0
    avg_unmute_rate: float = 0.0
    top_performers: List[RankedVideo] = []
    worst_performers: List[RankedVideo] = []
    portfolio_recommendations: List[Recommendation] = []
