"""
Analysis router: video list, per-video analysis, portfolio summary, AI review and
its follow-ups (script rewrite, CRO test batches).
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from analysis.metrics import analyze_portfolio, analyze_video, calculate_score, find_significant_drops
from analysis.models import (
    DropOffData,
    PerformanceRating,
    PortfolioSummary,
    Video,
    VideoAnalysis,
    VideoStats,
)
from analysis.ratings import rating_from_score
from config import require_vidalytics_api_token, settings
from ingestion.vidalytics import VidalyticsAPIError, VidalyticsClient, create_vidalytics_client
from multimodal.llm import (
    ContentAnalysisError,
    LLMNotConfiguredError,
    get_openai_client,
    read_cached_analysis,
)
from multimodal.models import ContentAnalysis, CROTest, RewrittenScript
from multimodal.rewriter import (
    ExpertNotFoundError,
    MissingTranscriptError,
    collect_previous_test_names,
    generate_cro_tests,
    rewrite_script,
)
from services.cache import FileCache
from services.content_review import review_video
from services.video_data import default_date_range, fetch_stats_for_videos

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_vidalytics_client() -> VidalyticsClient:
    """Get Vidalytics client."""
    try:
        api_token = require_vidalytics_api_token()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return create_vidalytics_client(api_token)


def _date_window(date_from: Optional[str], date_to: Optional[str]) -> tuple:
    default_from, default_to = default_date_range(lookback_days=settings.DEFAULT_LOOKBACK_DAYS)
    return date_from or default_from, date_to or default_to


def _upstream_error(exc: VidalyticsAPIError) -> HTTPException:
    logger.error("Vidalytics request failed: %s", exc)
    return HTTPException(status_code=502, detail=str(exc))


class ScoredVideo(BaseModel):
    video: Video
    stats: Optional[VideoStats] = None
    score: int
    rating: PerformanceRating


class VideoListResponse(BaseModel):
    videos: List[ScoredVideo]
    date_from: str
    date_to: str


class VideoAnalysisResponse(BaseModel):
    analysis: VideoAnalysis
    drop_off: DropOffData
    stats: VideoStats


class PortfolioSummaryResponse(BaseModel):
    summary: PortfolioSummary
    date_from: str
    date_to: str


class ContentAnalysisResponse(BaseModel):
    analysis: ContentAnalysis
    cached: bool
    cached_at: Optional[float] = None


class RewriteScriptResponse(BaseModel):
    rewritten_script: RewrittenScript
    cached: bool
    cached_at: Optional[float] = None


class GeneratedCROTestsResponse(BaseModel):
    generated_tests: List[CROTest]
    batch_number: int
    previous_test_names: List[str]


async def _video_bundle(
    client: VidalyticsClient,
    video_id: str,
    date_from: str,
    date_to: str,
) -> tuple:
    try:
        videos, stats, drop_off = await asyncio.gather(
            client.list_videos(),
            client.get_video_stats(video_id, date_from, date_to),
            client.get_drop_off(video_id, date_from, date_to),
        )
    except VidalyticsAPIError as exc:
        raise _upstream_error(exc) from exc

    video = next((v for v in videos if v.id == video_id), None)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return video, stats, drop_off


@router.get("/videos", response_model=VideoListResponse)
async def list_videos(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
):
    """List all videos with stats, score and rating, best first."""
    date_from, date_to = _date_window(date_from, date_to)
    client = _get_vidalytics_client()
    try:
        videos = await client.list_videos()
    except VidalyticsAPIError as exc:
        raise _upstream_error(exc) from exc

    all_stats = await fetch_stats_for_videos(
        client,
        videos,
        date_from,
        date_to,
        batch_size=settings.STATS_BATCH_SIZE,
        delay_seconds=settings.STATS_BATCH_DELAY_SECONDS,
    )

    results = []
    for video, stats in zip(videos, all_stats):
        score = calculate_score(stats) if stats is not None else 0
        results.append(ScoredVideo(video=video, stats=stats, score=score, rating=rating_from_score(score)))
    results.sort(key=lambda r: r.score, reverse=True)

    return VideoListResponse(videos=results, date_from=date_from, date_to=date_to)


@router.get("/videos/{video_id}/analysis", response_model=VideoAnalysisResponse)
async def get_video_analysis(
    video_id: str,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
):
    """Full heuristic analysis for a single video."""
    date_from, date_to = _date_window(date_from, date_to)
    client = _get_vidalytics_client()
    video, stats, drop_off = await _video_bundle(client, video_id, date_from, date_to)

    return VideoAnalysisResponse(
        analysis=analyze_video(video, stats, drop_off),
        drop_off=drop_off,
        stats=stats,
    )


@router.get("/summary", response_model=PortfolioSummaryResponse)
async def get_portfolio_summary(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
):
    """Portfolio-wide totals, rankings and recommendations."""
    date_from, date_to = _date_window(date_from, date_to)
    client = _get_vidalytics_client()
    try:
        videos = await client.list_videos()
    except VidalyticsAPIError as exc:
        raise _upstream_error(exc) from exc

    all_stats = await fetch_stats_for_videos(
        client,
        videos,
        date_from,
        date_to,
        batch_size=settings.STATS_BATCH_SIZE,
        delay_seconds=settings.STATS_BATCH_DELAY_SECONDS,
    )
    fetched = [s for s in all_stats if s is not None]

    return PortfolioSummaryResponse(
        summary=analyze_portfolio(videos, fetched),
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/usage")
async def get_usage() -> Dict[str, Any]:
    client = _get_vidalytics_client()
    try:
        return await client.get_usage()
    except VidalyticsAPIError as exc:
        raise _upstream_error(exc) from exc


@router.get("/ai-status")
async def ai_status() -> Dict[str, Any]:
    if get_openai_client(settings.OPENAI_API_KEY) is None:
        return {"available": False, "reason": "OPENAI_API_KEY not set in .env file"}
    return {"available": True}


@router.get("/videos/{video_id}/content-analysis", response_model=ContentAnalysisResponse)
async def get_content_analysis(
    video_id: str,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    context: Optional[str] = Query(None, max_length=4000),
):
    """AI review of the video's frames and transcript, informed by its metrics and drop-offs."""
    if get_openai_client(settings.OPENAI_API_KEY) is None:
        raise HTTPException(status_code=503, detail="AI analysis not available. Add OPENAI_API_KEY to .env.")

    date_from, date_to = _date_window(date_from, date_to)
    client = _get_vidalytics_client()
    video, stats, drop_off = await _video_bundle(client, video_id, date_from, date_to)
    if not video.video_url:
        raise HTTPException(status_code=400, detail="No video URL available for this video")

    drops = find_significant_drops(drop_off)
    try:
        analysis, cached, cached_at = await asyncio.to_thread(
            review_video,
            video,
            stats,
            drops,
            settings.OPENAI_API_KEY,
            cache=FileCache(settings.CACHE_DIR),
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            video_context=context,
            cache_ttl_seconds=settings.AI_CACHE_TTL_SECONDS,
            frame_interval=settings.MEDIA_FRAME_INTERVAL_SECONDS,
            max_frames=settings.MEDIA_MAX_FRAMES,
            transcription_model=settings.OPENAI_TRANSCRIPTION_MODEL,
            work_root=settings.MEDIA_WORK_DIR or None,
        )
    except LLMNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ContentAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return ContentAnalysisResponse(analysis=analysis, cached=cached, cached_at=cached_at)


def _stored_review(video_id: str) -> ContentAnalysis:
    cached = read_cached_analysis(FileCache(settings.CACHE_DIR), video_id)
    if cached is None:
        raise HTTPException(status_code=400, detail="AI analysis must be run first for this video.")
    return cached[0]


@router.get("/rewrite-status")
async def rewrite_status() -> Dict[str, Any]:
    if get_openai_client(settings.OPENAI_API_KEY) is None:
        return {"available": False, "reason": "OPENAI_API_KEY not set in .env file"}
    return {"available": True}


@router.get("/videos/{video_id}/rewrite-script", response_model=RewriteScriptResponse)
async def get_rewritten_script(
    video_id: str,
    expert: int = Query(0),
    context: Optional[str] = Query(None, max_length=4000),
):
    """Rewrite the reviewed script in the voice of one expert from the stored review."""
    if get_openai_client(settings.OPENAI_API_KEY) is None:
        raise HTTPException(status_code=503, detail="Script rewriting not available. Add OPENAI_API_KEY to .env.")

    analysis = _stored_review(video_id)
    try:
        script, cached, cached_at = await asyncio.to_thread(
            rewrite_script,
            analysis,
            expert,
            settings.OPENAI_API_KEY,
            cache=FileCache(settings.CACHE_DIR),
            model=settings.OPENAI_MODEL,
            max_tokens=settings.REWRITE_MAX_TOKENS,
            video_context=context,
            cache_ttl_seconds=settings.AI_CACHE_TTL_SECONDS,
        )
    except (ExpertNotFoundError, MissingTranscriptError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LLMNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ContentAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return RewriteScriptResponse(rewritten_script=script, cached=cached, cached_at=cached_at)


@router.get("/videos/{video_id}/generate-cro-tests", response_model=GeneratedCROTestsResponse)
async def get_generated_cro_tests(
    video_id: str,
    expert: int = Query(0),
    context: Optional[str] = Query(None, max_length=4000),
):
    """Generate the next batch of CRO tests, skipping every test proposed so far."""
    if get_openai_client(settings.OPENAI_API_KEY) is None:
        raise HTTPException(status_code=503, detail="CRO test generation not available. Add OPENAI_API_KEY to .env.")

    analysis = _stored_review(video_id)
    cache = FileCache(settings.CACHE_DIR)
    try:
        previous_names, batch_number = collect_previous_test_names(analysis, expert, cache)
        batch = await asyncio.to_thread(
            generate_cro_tests,
            analysis,
            expert,
            previous_names,
            settings.OPENAI_API_KEY,
            batch_number=batch_number,
            cache=cache,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            video_context=context,
            cache_ttl_seconds=settings.AI_CACHE_TTL_SECONDS,
        )
    except (ExpertNotFoundError, MissingTranscriptError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LLMNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ContentAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return GeneratedCROTestsResponse(
        generated_tests=batch.tests,
        batch_number=batch.batch_number,
        previous_test_names=batch.previous_test_names,
    )
