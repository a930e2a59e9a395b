"""Batched vendor fetches feeding the analysis layer."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

import httpx

from analysis.models import Video, VideoStats
from ingestion.vidalytics import VidalyticsAPIError, VidalyticsClient

logger = logging.getLogger(__name__)


def default_date_range(today: Optional[date] = None, lookback_days: int = 30) -> Tuple[str, str]:
    end = today or date.today()
    start = end - timedelta(days=lookback_days)
    return start.isoformat(), end.isoformat()


async def fetch_in_batches(
    factories: Sequence[Callable[[], Awaitable[Any]]],
    batch_size: int = 5,
    delay_seconds: float = 0.5,
) -> List[Any]:
    """Run coroutine factories batch by batch, sleeping between batches.

    Results keep the order of `factories`.
    """
    batch_size = max(int(batch_size), 1)
    results: List[Any] = []
    for start in range(0, len(factories), batch_size):
        batch = factories[start:start + batch_size]
        results.extend(await asyncio.gather(*(factory() for factory in batch)))
        if start + batch_size < len(factories) and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
    return results


async def fetch_stats_for_videos(
    client: VidalyticsClient,
    videos: Sequence[Video],
    date_from: str,
    date_to: str,
    batch_size: int = 5,
    delay_seconds: float = 0.5,
) -> List[Optional[VideoStats]]:
    """Stats per video, aligned with `videos`; None where the fetch failed."""

    def _factory(video: Video) -> Callable[[], Awaitable[Optional[VideoStats]]]:
        async def _fetch() -> Optional[VideoStats]:
            try:
                return await client.get_video_stats(video.id, date_from, date_to)
            except (VidalyticsAPIError, httpx.HTTPError) as exc:
                logger.warning("Stats fetch failed for video %s: %s", video.id, exc)
                return None
        return _fetch

    return await fetch_in_batches([_factory(v) for v in videos], batch_size, delay_seconds)
