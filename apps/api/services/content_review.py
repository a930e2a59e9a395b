"""
AI content review job: download the video, sample keyframes, transcribe the
audio, then ask the model for expert feedback grounded in the metrics.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from openai import OpenAI, OpenAIError

from analysis.models import SignificantDrop, Video, VideoStats
from multimodal.audio import WHISPER_MODEL, transcribe_audio
from multimodal.llm import (
    AI_CACHE_TTL_SECONDS,
    DEFAULT_MODEL,
    LLMNotConfiguredError,
    analyze_content,
    get_openai_client,
    read_cached_analysis,
)
from multimodal.models import ContentAnalysis
from multimodal.video import MediaProcessingError, download_video, extract_audio, extract_frames
from services.cache import FileCache

logger = logging.getLogger(__name__)


@dataclass
class MediaContext:
    transcript: str = ""
    frames: List[str] = field(default_factory=list)


def prepare_media(
    video_url: str,
    work_dir: str,
    client: OpenAI,
    frame_interval: int = 5,
    transcription_model: str = WHISPER_MODEL,
) -> MediaContext:
    """
    Download the video into work_dir and extract frames and a transcript.

    Each stage degrades on its own: a video that cannot be downloaded yields
    an empty context, failed frame extraction still allows a transcript and
    the reverse.
    """
    media = MediaContext()
    try:
        video_path = download_video(video_url, os.path.join(work_dir, "video.mp4"))
    except MediaProcessingError as e:
        logger.warning(f"Reviewing without media, download failed: {e}")
        return media

    try:
        media.frames = extract_frames(video_path, os.path.join(work_dir, "frames"), frame_interval)
        logger.info(f"Extracted {len(media.frames)} frames from {video_url}")
    except MediaProcessingError as e:
        logger.warning(f"Reviewing without frames: {e}")

    try:
        audio_path = extract_audio(video_path, os.path.join(work_dir, "audio.mp3"))
        media.transcript = transcribe_audio(audio_path, client, transcription_model)
        logger.info(f"Audio transcription complete for {video_url}")
    except (MediaProcessingError, OpenAIError, OSError) as e:
        logger.warning(f"Reviewing without transcript: {e}")

    return media


def review_video(
    video: Video,
    stats: VideoStats,
    drops: List[SignificantDrop],
    api_key: str,
    cache: Optional[FileCache] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 4000,
    video_context: Optional[str] = None,
    cache_ttl_seconds: float = AI_CACHE_TTL_SECONDS,
    frame_interval: int = 5,
    max_frames: int = 10,
    transcription_model: str = WHISPER_MODEL,
    work_root: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> Tuple[ContentAnalysis, bool, Optional[float]]:
    """Cached review first; otherwise process the media and run a fresh analysis."""
    cached = read_cached_analysis(cache, video.id)
    if cached is not None:
        analysis, cached_at = cached
        return analysis, True, cached_at

    client = client or get_openai_client(api_key)
    if client is None:
        raise LLMNotConfiguredError("AI analysis not available. Set OPENAI_API_KEY.")

    if work_root:
        os.makedirs(work_root, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix=f"review_{video.id}_", dir=work_root or None) as work_dir:
        media = prepare_media(video.video_url, work_dir, client, frame_interval, transcription_model)
        return analyze_content(
            video,
            stats,
            drops,
            api_key,
            cache=cache,
            model=model,
            max_tokens=max_tokens,
            video_context=video_context,
            transcript=media.transcript or None,
            cache_ttl_seconds=cache_ttl_seconds,
            client=client,
            frames=media.frames,
            max_frames=max_frames,
        )
