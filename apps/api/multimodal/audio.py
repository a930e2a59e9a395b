import logging
from typing import Any

from openai import OpenAI

from analysis.timecode import format_seconds

logger = logging.getLogger(__name__)

WHISPER_MODEL = "whisper-1"


def format_transcript(transcript: Any) -> str:
    """Render a Whisper result as one "[M:SS] text" line per segment."""
    segments = getattr(transcript, "segments", None)
    if segments is None and isinstance(transcript, dict):
        segments = transcript.get("segments")

    if segments:
        lines = []
        for seg in segments:
            start = seg["start"] if isinstance(seg, dict) else seg.start
            text = seg["text"] if isinstance(seg, dict) else seg.text
            lines.append(f"[{format_seconds(int(start))}] {text.strip()}")
        return "\n".join(lines)

    if isinstance(transcript, dict):
        return str(transcript.get("text", "")).strip()
    return str(getattr(transcript, "text", transcript) or "").strip()


def transcribe_audio(audio_path: str, client: OpenAI, model: str = WHISPER_MODEL) -> str:
    """
    Transcribe audio with the OpenAI Whisper API.
    Returns the timestamped transcript text.
    """
    try:
        with open(audio_path, "rb") as audio_file:
            transcript = client.audio.transcriptions.create(
                model=model,
                file=audio_file,
                response_format="verbose_json",
                timestamp_granularities=["segment"],
            )
    except Exception as e:
        logger.error(f"Error transcribing audio: {e}")
        raise
    return format_transcript(transcript)
