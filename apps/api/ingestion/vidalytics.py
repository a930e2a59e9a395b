"""
Vidalytics public API client for fetching videos, stats and drop-off curves.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from analysis.models import DropOffData, DropOffPoint, Video, VideoStats
from config import settings
from services.cache import FileCache, cache_key

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.vidalytics.com/public/v1"


class VidalyticsAPIError(Exception):
    """Non-success response from the Vidalytics API."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Vidalytics API error {status_code}: {body}")


class VidalyticsRateLimitError(VidalyticsAPIError):
    """Still rate limited (HTTP 429) after all retries."""

    def __init__(self, endpoint: str, retries: int):
        self.endpoint = endpoint
        self.retries = retries
        super().__init__(429, f"rate limited after {retries} retries for {endpoint}")


class VidalyticsConnectionError(VidalyticsAPIError):
    """The Vidalytics API could not be reached (connect error, timeout)."""

    def __init__(self, endpoint: str, cause: Exception):
        self.endpoint = endpoint
        super().__init__(502, f"request to {endpoint} failed: {cause}")


class VidalyticsClient:
    """Async client for the Vidalytics public API v1."""

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        cache: Optional[FileCache] = None,
        max_retries: int = 3,
        backoff_base_seconds: float = 2.0,
        default_ttl_seconds: float = 4 * 60 * 60,
        video_list_ttl_seconds: float = 24 * 60 * 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Vidalytics client.

        Args:
            api_token: Vidalytics API key (sent as X-API-Key)
            cache: Optional response cache; None disables caching
            transport: Optional httpx transport (used by tests)
        """
        if not api_token:
            raise ValueError("api_token must be provided")
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.default_ttl_seconds = default_ttl_seconds
        self.video_list_ttl_seconds = video_list_ttl_seconds
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "X-API-Key": self.api_token}

    async def _request(
        self,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        skip_cache: bool = False,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        key = cache_key(endpoint, params)
        if self.cache is not None and not skip_cache:
            cached = self.cache.read(key)
            if cached is not None:
                return cached

        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(headers=self.headers, transport=self.transport) as client:
                response = await client.get(url, params=params)
                attempt = 0
                while response.status_code == 429 and attempt < self.max_retries:
                    attempt += 1
                    delay = self.backoff_base_seconds * (2 ** attempt)
                    logger.warning(
                        "Vidalytics rate limited on %s, retry %d/%d in %.1fs",
                        endpoint, attempt, self.max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Vidalytics request to {endpoint} failed: {e}")
            raise VidalyticsConnectionError(endpoint, e) from e

        if response.status_code == 429:
            raise VidalyticsRateLimitError(endpoint, self.max_retries)
        if response.is_error:
            raise VidalyticsAPIError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise VidalyticsAPIError(
                response.status_code, f"invalid JSON from {endpoint}: {response.text[:200]}"
            ) from e
        if not isinstance(payload, dict) or payload.get("content") is None:
            raise VidalyticsAPIError(
                response.status_code, f"missing content envelope from {endpoint}"
            )

        content = payload["content"]
        if self.cache is not None:
            self.cache.write(key, content, cache_ttl or self.default_ttl_seconds)
        return content

    async def get_usage(self) -> Dict[str, Optional[int]]:
        raw = await self._request("/stats/usage", skip_cache=True)
        return {
            "monthly_limit": raw.get("monthly_limit"),
            "current_usage": raw.get("current_usage", 0),
            "remaining": raw.get("remaining"),
        }

    async def list_videos(self) -> List[Video]:
        raw = await self._request("/video", cache_ttl=self.video_list_ttl_seconds)
        return [_to_video(item) for item in raw.get("data", [])]

    async def get_video_stats(
        self,
        video_id: str,
        date_from: str,
        date_to: str,
        url_params: Optional[Dict[str, str]] = None,
    ) -> VideoStats:
        params = _date_params(date_from, date_to, url_params)
        raw = await self._request(f"/stats/video/{video_id}", params)
        return _to_video_stats(video_id, raw)

    async def get_drop_off(
        self,
        video_id: str,
        date_from: str,
        date_to: str,
        url_params: Optional[Dict[str, str]] = None,
    ) -> DropOffData:
        params = _date_params(date_from, date_to, url_params)
        raw = await self._request(f"/stats/video/{video_id}/drop-off", params)
        watches = ((raw or {}).get("all") or {}).get("watches") or {}
        return build_drop_off(video_id, watches)


def _date_params(
    date_from: str,
    date_to: str,
    url_params: Optional[Dict[str, str]],
) -> Dict[str, str]:
    params = {"dateFrom": date_from, "dateTo": date_to}
    # e.g. affiliate filters: urlParam[aff]=123
    for key, value in (url_params or {}).items():
        params[f"urlParam[{key}]"] = value
    return params


def _to_video(item: Dict[str, Any]) -> Video:
    thumbnail = item.get("thumbnail") or {}
    return Video(
        id=str(item["id"]),
        title=item.get("title", ""),
        date_created=item.get("date_created", "") or "",
        last_published=item.get("last_published", "") or "",
        status=item.get("status", "") or "",
        views=int(item.get("views", 0) or 0),
        folder_id=str(item.get("folder_id", "") or ""),
        thumbnail_url=thumbnail.get("desktop", "") or "",
        video_url=item.get("url", "") or "",
    )


def _to_video_stats(video_id: str, raw: Dict[str, Any]) -> VideoStats:
    def num(key: str) -> float:
        return raw.get(key) or 0

    return VideoStats(
        video_id=video_id,
        plays=int(num("plays")),
        plays_unique=int(num("playsUnique")),
        play_rate=float(num("playRate")),
        unique_play_rate=float(num("uniquePlayRate")),
        engagement=float(num("engagement")),
        impressions=int(num("impressions")),
        conversion_count=int(num("conversionCount")),
        conversion_rate=float(num("conversionRate")),
        revenue=float(num("revenue")),
        revenue_average=float(num("revenueAverage")),
        revenue_per_viewer=float(num("revenuePerViewer")),
        unmute_rate=float(num("unmuteRate")),
        unmute_count=int(num("unmuteCount")),
        pg_opt_in_rate=float(num("pgOptInRate")),
        pg_events_count=int(num("pgEventsCount")),
    )


def build_drop_off(video_id: str, watches: Dict[str, Any]) -> DropOffData:
    """Translate the {second: viewers} watch map into an ordered DropOffData."""
    samples = []
    seen = set()
    # fractional keys truncate to whole seconds; the earliest sample wins
    for raw_second, viewers in sorted((float(sec), int(v)) for sec, v in watches.items()):
        second = int(raw_second)
        if second in seen:
            continue
        seen.add(second)
        samples.append((second, viewers))
    total_viewers = samples[0][1] if samples else 0

    points = []
    previous = None
    for second, viewers in samples:
        prev_viewers = viewers if previous is None else previous
        points.append(DropOffPoint(
            second=second,
            viewers=viewers,
            percent_remaining=viewers / total_viewers * 100 if total_viewers > 0 else 0.0,
            drop_from_previous=(prev_viewers - viewers) / prev_viewers * 100 if prev_viewers > 0 else 0.0,
        ))
        previous = viewers

    return DropOffData(video_id=video_id, total_viewers=total_viewers, points=points)


def create_vidalytics_client(api_token: str) -> VidalyticsClient:
    """Create a Vidalytics client configured from application settings."""
    return VidalyticsClient(
        api_token=api_token,
        base_url=settings.VIDALYTICS_BASE_URL,
        cache=FileCache(settings.CACHE_DIR),
        max_retries=settings.RATE_LIMIT_MAX_RETRIES,
        backoff_base_seconds=settings.RATE_LIMIT_BACKOFF_SECONDS,
        default_ttl_seconds=settings.CACHE_TTL_SECONDS,
        video_list_ttl_seconds=settings.VIDEO_LIST_CACHE_TTL_SECONDS,
    )
