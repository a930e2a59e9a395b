import pytest

from analysis.metrics import analyze_portfolio, calculate_score
from analysis.models import PortfolioSummary, RecommendationType, Video, VideoStats
from analysis.portfolio import PortfolioAggregator
from analysis.thresholds import DEFAULT_THRESHOLDS, ScoringConfig


def _video(video_id, title=None):
    return Video(id=video_id, title=title or f"Video {video_id}")


def _healthy(video_id, **overrides):
    values = {
        "video_id": video_id,
        "plays": 100,
        "play_rate": 0.6,
        "engagement": 0.5,
        "conversion_rate": 0.04,
        "conversion_count": 4,
        "unmute_rate": 0.5,
    }
    values.update(overrides)
    return VideoStats(**values)


@pytest.fixture
def engagement_ladder():
    """Seven videos whose scores rise with engagement, given out of order."""
    order = ["e3", "e7", "e1", "e5", "e2", "e6", "e4"]
    videos = [_video(vid) for vid in order]
    stats = [VideoStats(video_id=vid, engagement=int(vid[1]) / 10) for vid in order]
    return videos, stats


def test_empty_portfolio_returns_defaults():
    summary = analyze_portfolio([], [])

    assert summary == PortfolioSummary()
    assert summary.total_videos == 0
    assert summary.avg_engagement == 0.0
    assert summary.top_performers == []
    assert summary.worst_performers == []
    assert summary.portfolio_recommendations == []


def test_totals_and_averages():
    stats = [
        _healthy("a", plays=100, conversion_count=1, revenue=10.5, engagement=0.2, play_rate=0.4),
        _healthy("b", plays=200, conversion_count=2, revenue=0.0, engagement=0.3, play_rate=0.5),
        _healthy("c", plays=300, conversion_count=3, revenue=20.0, engagement=0.4, play_rate=0.6),
    ]
    summary = analyze_portfolio([_video("a"), _video("b"), _video("c")], stats)

    assert summary.total_videos == 3
    assert summary.total_plays == 600
    assert summary.total_conversions == 6
    assert summary.total_revenue == pytest.approx(30.5)
    assert summary.avg_engagement == pytest.approx(0.3)
    assert summary.avg_play_rate == pytest.approx(0.5)
    assert summary.avg_conversion_rate == pytest.approx(0.04)
    assert summary.avg_unmute_rate == pytest.approx(0.5)


def test_rankings(engagement_ladder):
    videos, stats = engagement_ladder
    summary = analyze_portfolio(videos, stats)

    assert [r.video_id for r in summary.top_performers] == ["e7", "e6", "e5", "e4", "e3"]
    assert [r.video_id for r in summary.worst_performers] == ["e1", "e2", "e3", "e4", "e5"]
    assert summary.top_performers[0].video_name == "Video e7"
    for ranked in summary.top_performers:
        stat = next(s for s in stats if s.video_id == ranked.video_id)
        assert ranked.score == calculate_score(stat)


def test_small_portfolio_lists_every_video_in_both_rankings():
    stats = [_healthy("a"), _healthy("b", engagement=0.1)]
    summary = analyze_portfolio([_video("a"), _video("b")], stats)

    assert [r.video_id for r in summary.top_performers] == ["a", "b"]
    assert [r.video_id for r in summary.worst_performers] == ["b", "a"]


def test_ties_keep_input_order():
    stats = [_healthy("a"), _healthy("b")]
    summary = analyze_portfolio([_video("a"), _video("b")], stats)

    assert [r.video_id for r in summary.top_performers] == ["a", "b"]
    assert [r.video_id for r in summary.worst_performers] == ["b", "a"]


def test_missing_video_falls_back_to_id():
    summary = analyze_portfolio([_video("a", "Alpha")], [_healthy("a"), _healthy("ghost")])
    names = {r.video_id: r.video_name for r in summary.top_performers}
    assert names == {"a": "Alpha", "ghost": "ghost"}


def test_duplicate_video_ids_use_first_title():
    videos = [_video("a", "First"), _video("a", "Second")]
    summary = analyze_portfolio(videos, [_healthy("a")])
    assert summary.top_performers[0].video_name == "First"


def test_healthy_portfolio_has_no_recommendations():
    stats = [_healthy("a"), _healthy("b")]
    summary = analyze_portfolio([_video("a"), _video("b")], stats)
    assert summary.portfolio_recommendations == []


def test_struggling_portfolio_recommendations_in_order():
    stats = [
        VideoStats(video_id="a", engagement=0.1, play_rate=0.1, revenue=50.0, conversion_count=2),
        VideoStats(video_id="b", engagement=0.05, play_rate=0.05),
    ]
    summary = analyze_portfolio([_video("a", "Alpha"), _video("b", "Beta")], stats)
    recs = summary.portfolio_recommendations

    assert [r.title for r in recs] == [
        "Portfolio-Wide Low Engagement",
        "Low Average Play Rate",
        "Revenue Summary",
        "Underperforming Videos Need Attention",
    ]
    assert [r.type for r in recs] == [
        RecommendationType.CRITICAL,
        RecommendationType.WARNING,
        RecommendationType.POSITIVE,
        RecommendationType.WARNING,
    ]
    assert "$50.00" in recs[2].detail
    assert "2 conversions across 2 videos" in recs[2].detail
    assert '"Alpha"' in recs[2].actionable_step
    assert '"Beta"' in recs[3].detail


def test_ladder_triggers_play_rate_and_underperformer_rules(engagement_ladder):
    videos, stats = engagement_ladder
    recs = analyze_portfolio(videos, stats).portfolio_recommendations

    assert [r.title for r in recs] == ["Low Average Play Rate", "Underperforming Videos Need Attention"]
    assert '"Video e1"' in recs[1].detail


def test_top_n_is_configurable(engagement_ladder):
    videos, stats = engagement_ladder
    aggregator = PortfolioAggregator(ScoringConfig(thresholds=DEFAULT_THRESHOLDS, top_n=2))
    summary = aggregator.analyze(videos, stats)

    assert [r.video_id for r in summary.top_performers] == ["e7", "e6"]
    assert [r.video_id for r in summary.worst_performers] == ["e1", "e2"]
