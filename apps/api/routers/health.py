"""
Health check endpoints.
"""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import settings
from multimodal.llm import get_openai_client

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "cache": "unknown",
        "vidalytics_api_token": "configured" if settings.VIDALYTICS_API_TOKEN else "missing",
        "ai_analysis": "configured" if get_openai_client(settings.OPENAI_API_KEY) else "disabled",
    }

    # Check cache directory
    try:
        cache_dir = Path(settings.CACHE_DIR)
        cache_dir.mkdir(parents=True, exist_ok=True)
        marker = cache_dir / ".health"
        marker.write_text("ok")
        marker.unlink()
        health_status["cache"] = "up"
    except OSError as e:
        health_status["cache"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness check."""
    missing = []
    if not settings.VIDALYTICS_API_TOKEN:
        missing.append("VIDALYTICS_API_TOKEN")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness check."""
    return {"alive": True}
