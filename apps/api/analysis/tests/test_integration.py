import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from unittest.mock import patch

from main import app
from ingestion.vidalytics import VidalyticsClient

VIDEOS_PAYLOAD = {
    "content": {
        "data": [
            {
                "id": "vid_1",
                "title": "Spring Launch VSL",
                "status": "published",
                "views": 1200,
                "thumbnail": {"desktop": "https://cdn.example.com/vid_1.jpg"},
                "url": "https://player.example.com/vid_1",
            },
            {
                "id": "vid_2",
                "title": "Webinar Replay",
                "status": "published",
                "views": 300,
                "url": "https://player.example.com/vid_2",
            },
        ]
    }
}

STATS_PAYLOADS = {
    "vid_1": {
        "plays": 1000, "playsUnique": 900, "playRate": 0.1, "engagement": 0.1,
        "conversionCount": 0, "conversionRate": 0, "unmuteRate": 0.05, "revenue": 0,
    },
    "vid_2": {
        "plays": 300, "playsUnique": 280, "playRate": 0.8, "engagement": 0.7,
        "conversionCount": 18, "conversionRate": 0.06, "unmuteRate": 0.7, "revenue": 900,
        "revenuePerViewer": 3.0, "revenueAverage": 50.0,
    },
}

DROP_OFF_PAYLOAD = {
    "content": {"all": {"watches": {"0": 100, "10": 98, "20": 40, "30": 38}}}
}


def vidalytics_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path.replace("/public/v1", "", 1)
    if path == "/video":
        return httpx.Response(200, json=VIDEOS_PAYLOAD)
    if path.endswith("/drop-off"):
        return httpx.Response(200, json=DROP_OFF_PAYLOAD)
    if path.startswith("/stats/video/"):
        video_id = path.rsplit("/", 1)[-1]
        if video_id in STATS_PAYLOADS:
            return httpx.Response(200, json={"content": STATS_PAYLOADS[video_id]})
    return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def mock_vidalytics_api():
    with patch("routers.analysis._get_vidalytics_client") as mock:
        mock.return_value = VidalyticsClient(
            api_token="test-token",
            transport=httpx.MockTransport(vidalytics_handler),
            backoff_base_seconds=0,
        )
        yield mock


@pytest.mark.asyncio
async def test_full_video_analysis_flow(mock_vidalytics_api):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/videos/vid_1/analysis", params={"from": "2026-09-01", "to": "2026-09-30"})

    assert response.status_code == 200
    data = response.json()

    analysis = data["analysis"]
    assert analysis["video_id"] == "vid_1"
    assert analysis["video_name"] == "Spring Launch VSL"
    assert analysis["overall_rating"] == "critical"
    assert analysis["metrics"]["engagement"]["rating"] == "critical"

    drops = analysis["significant_drops"]
    assert len(drops) == 1
    assert drops[0]["second"] == 20
    assert drops[0]["formatted_time"] == "0:20"
    assert drops[0]["relative_drop"] == 59.2
    assert drops[0]["drop_percentage"] == 58.0
    assert drops[0]["severity"] == "critical"
    assert drops[0]["segment"] == "mid-late"

    titles = [r["title"] for r in analysis["recommendations"]]
    assert titles[-1] == "Major Drop-off at 0:20"
    assert "Low Play Rate" in titles

    assert data["drop_off"]["total_viewers"] == 100
    assert [p["second"] for p in data["drop_off"]["points"]] == [0, 10, 20, 30]
    assert data["stats"]["plays_unique"] == 900


@pytest.mark.asyncio
async def test_video_list_and_summary_flow(mock_vidalytics_api):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        videos_response = await ac.get("/api/videos")
        summary_response = await ac.get("/api/summary")

    assert videos_response.status_code == 200
    videos = videos_response.json()["videos"]
    assert [v["video"]["id"] for v in videos] == ["vid_2", "vid_1"]
    assert videos[0]["rating"] == "excellent"
    assert videos[1]["video"]["thumbnail_url"] == "https://cdn.example.com/vid_1.jpg"
    assert videos[0]["video"]["thumbnail_url"] == ""

    assert summary_response.status_code == 200
    summary = summary_response.json()["summary"]
    assert summary["total_videos"] == 2
    assert summary["total_plays"] == 1300
    assert summary["total_revenue"] == 900.0
    assert summary["top_performers"][0]["video_name"] == "Webinar Replay"
    assert summary["worst_performers"][0]["video_name"] == "Spring Launch VSL"
    assert "Revenue Summary" in [r["title"] for r in summary["portfolio_recommendations"]]


@pytest.mark.asyncio
async def test_vendor_error_returns_502(mock_vidalytics_api):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/videos/vid_1_missing/analysis")

    # stats lookup for an unknown id is a vendor 404, surfaced as a gateway error
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_video_missing_from_list_returns_404(mock_vidalytics_api):
    STATS_PAYLOADS["orphan"] = {"plays": 5, "playRate": 0.2}
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/api/videos/orphan/analysis")
    finally:
        STATS_PAYLOADS.pop("orphan")

    assert response.status_code == 404
    assert response.json()["detail"] == "Video not found"


def unreachable_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def maintenance_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>maintenance</html>", headers={"content-type": "text/html"})


@pytest.mark.asyncio
@pytest.mark.parametrize("handler", [unreachable_handler, maintenance_handler])
@pytest.mark.parametrize(
    "path",
    ["/api/videos", "/api/videos/vid_1/analysis", "/api/summary", "/api/usage"],
)
async def test_unreachable_or_garbled_vendor_returns_502(handler, path):
    with patch("routers.analysis._get_vidalytics_client") as mock:
        mock.return_value = VidalyticsClient(
            api_token="test-token",
            transport=httpx.MockTransport(handler),
            backoff_base_seconds=0,
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get(path)

    assert response.status_code == 502
    assert "Vidalytics API error" in response.json()["detail"]
