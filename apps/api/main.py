"""
Video Performance Dashboard - FastAPI Backend
Main application entry point with health check and API routing.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from multimodal.llm import get_openai_client
from routers import health, analysis


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Video Performance Dashboard API...")
    if settings.VIDALYTICS_API_TOKEN:
        print(f"🔑 Vidalytics token: {settings.VIDALYTICS_API_TOKEN[:8]}...")
    else:
        print("⚠️ VIDALYTICS_API_TOKEN is not set; data endpoints will fail until it is configured.")
    if get_openai_client(settings.OPENAI_API_KEY) is not None:
        print(f"🤖 AI content analysis: enabled ({settings.OPENAI_MODEL})")
    yield
    # Shutdown
    print("👋 Shutting down API...")


app = FastAPI(
    title="Video Performance Dashboard API",
    description="Score marketing videos, find drop-offs and get actionable recommendations",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(analysis.router, prefix="/api", tags=["Analysis"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Video Performance Dashboard API",
        "version": "0.1.0",
        "status": "running"
    }
