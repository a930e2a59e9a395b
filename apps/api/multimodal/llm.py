import base64
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAI
from pydantic import ValidationError

from analysis.models import SignificantDrop, Video, VideoStats
from services.cache import FileCache, cache_key
from .models import ContentAnalysis

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
AI_CACHE_TTL_SECONDS = 7 * 24 * 60 * 60

EXPERT_PANEL = [
    (
        "Alex Hormozi",
        "Offer Strategy & Scaling",
        "Is the offer irresistible? Is there enough value stacking? Is urgency real? Is the price-to-value ratio clear?",
    ),
    (
        "Stefan Georgi",
        "Direct Response Copywriter",
        "Script flow and emotional triggers. Are transitions smooth and the language conversational? Does it keep the reader sliding forward?",
    ),
    (
        "Russell Brunson",
        "Funnel Strategist & Story Seller",
        "Is story-based selling used well? Are hook, story and offer connected? Is the funnel positioning clear?",
    ),
    (
        "Dan Kennedy",
        "Direct Response Fundamentals",
        "Clear headline/hook, right market, sound sales psychology, and a compelling reason to act now.",
    ),
    (
        "Eugene Schwartz",
        "Market Awareness & Copy Sophistication",
        "Which awareness level is the audience at, and does the copy sophistication match it?",
    ),
]

RESPONSE_SCHEMA = """
{
  "expert_feedback": [
    {
      "expert_name": "string",
      "expert_role": "string",
      "overall_assessment": "2-3 sentences",
      "strengths": ["string"],
      "weaknesses": ["string"],
      "specific_fixes": [{"timestamp": "M:SS", "issue": "string", "fix": "string"}],
      "priority_action": "string",
      "cro_tests": [{"test_name": "string", "hypothesis": "string", "variant": "string", "expected_impact": "string"}]
    }
  ],
  "cro_tests": [
    {
      "test_name": "string",
      "hypothesis": "If we change X, then Y will happen because Z",
      "control": "string",
      "variant": "string",
      "expected_impact": "string",
      "implementation": "string"
    }
  ],
  "timestamp_analysis": [
    {
      "timestamp": "M:SS",
      "formatted_time": "M:SS",
      "content_description": "string",
      "audio_description": "string",
      "issue": "string",
      "fix": "string"
    }
  ],
  "script_structure": {
    "hook": "string", "problem": "string", "solution": "string",
    "proof": "string", "cta": "string", "overall_flow": "string"
  },
  "overall_verdict": "2-3 sentences"
}
"""


class LLMNotConfiguredError(RuntimeError):
    """No usable OpenAI API key is configured."""


class ContentAnalysisError(ValueError):
    """The model response could not be turned into a ContentAnalysis."""


def get_openai_client(api_key: str) -> Optional[OpenAI]:
    """Get OpenAI client, handling placeholders."""
    if not api_key or "your_" in api_key or api_key == "test-key":
        return None
    return OpenAI(api_key=api_key)


def format_drop_line(drop: SignificantDrop) -> str:
    return (
        f"- At {drop.formatted_time}: {drop.relative_drop}% of remaining viewers left "
        f"({drop.drop_percentage}% of all viewers, {drop.viewers_before} -> {drop.viewers_after} viewers, "
        f"severity: {drop.severity.value})"
    )


def build_analysis_prompt(
    video_title: str,
    stats: VideoStats,
    drops: List[SignificantDrop],
    video_context: Optional[str] = None,
    transcript: Optional[str] = None,
) -> str:
    drops_list = "\n".join(format_drop_line(d) for d in drops) or "No significant drop-offs detected."
    experts = "\n\n".join(
        f"### EXPERT {i}: {name}\nRole: {role}\nFocus: {focus}"
        for i, (name, role, focus) in enumerate(EXPERT_PANEL, start=1)
    )

    sections = [
        f'You are analyzing a video sales letter (VSL) / marketing video titled "{video_title}".',
        "## VIDEO PERFORMANCE DATA\n"
        f"- Play Rate: {stats.play_rate * 100:.1f}% of page visitors press play\n"
        f"- Engagement: {stats.engagement * 100:.1f}% average watch percentage\n"
        f"- Unmute Rate: {stats.unmute_rate * 100:.1f}% of viewers unmute\n"
        f"- Conversion Rate: {stats.conversion_rate * 100:.2f}%\n"
        f"- Total Plays: {stats.plays:,}\n"
        f"- Unique Plays: {stats.plays_unique:,}\n"
        f"- Revenue: ${stats.revenue:.2f}\n"
        f"- Revenue Per Viewer: ${stats.revenue_per_viewer:.2f}",
        f"## SIGNIFICANT DROP-OFF POINTS\n{drops_list}",
    ]
    if video_context:
        sections.append(f"## CONTEXT FROM THE MARKETER\n{video_context.strip()}")
    if transcript:
        sections.append(f"## TRANSCRIPT\n{transcript.strip()}")
    sections.extend([
        "## YOUR TASK\n"
        "Review this video from the perspective of five direct response marketers. "
        "Pay special attention to the drop-off timestamps.\n\n" + experts,
        "## RESPONSE FORMAT\nRespond with a strict JSON object matching this schema:\n" + RESPONSE_SCHEMA,
        "IMPORTANT:\n"
        "- Include a timestamp_analysis entry for every drop-off point listed above\n"
        "- Each expert should give at least 2 specific_fixes tied to timestamps\n"
        "- Each expert should propose 1-3 cro_tests of their own\n"
        "- Suggest 3-5 CRO tests specific to this video\n"
        "- All timestamps must use M:SS format",
    ])
    return "\n\n".join(sections)


def parse_analysis_response(text: str) -> Dict[str, Any]:
    """Parse the model's JSON, falling back to a fenced ```json block."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text or "")
        if not match:
            logger.error("Failed to parse LLM response: %s", (text or "")[:500])
            raise ContentAnalysisError("Failed to parse LLM response as JSON")
        try:
            parsed = json.loads(match.group(1).strip())
        except json.JSONDecodeError as exc:
            raise ContentAnalysisError("Failed to parse LLM response as JSON") from exc
    if not isinstance(parsed, dict):
        raise ContentAnalysisError("LLM response is not a JSON object")
    return parsed


def to_content_analysis(
    parsed: Dict[str, Any],
    video_id: str,
    transcript: str = "",
    analyzed_at: Optional[str] = None,
) -> ContentAnalysis:
    def as_list(key: str) -> list:
        value = parsed.get(key)
        return value if isinstance(value, list) else []

    script_structure = parsed.get("script_structure")
    try:
        return ContentAnalysis(
            video_id=video_id,
            analyzed_at=analyzed_at or datetime.now(timezone.utc).isoformat(),
            expert_feedback=as_list("expert_feedback"),
            cro_tests=as_list("cro_tests"),
            timestamp_analysis=as_list("timestamp_analysis"),
            script_structure=script_structure if isinstance(script_structure, dict) else {},
            overall_verdict=str(parsed.get("overall_verdict") or ""),
            transcript=transcript,
        )
    except ValidationError as exc:
        raise ContentAnalysisError(f"LLM response did not match schema: {exc}") from exc


def encode_image(image_path: str) -> str:
    """Encode image to base64 string."""
    with open(image_path, "rb") as image_file:
        return base64.b64encode(image_file.read()).decode("utf-8")


def select_frames(frames: List[str], max_frames: int = 10) -> List[str]:
    """Uniformly sample at most max_frames frames, keeping their order."""
    if max_frames <= 0:
        return []
    if len(frames) <= max_frames:
        return list(frames)
    step = len(frames) // max_frames
    return frames[::step][:max_frames]


def analysis_cache_key(video_id: str) -> str:
    return cache_key(f"ai-analysis-{video_id}")


def read_cached_analysis(
    cache: Optional[FileCache],
    video_id: str,
) -> Optional[Tuple[ContentAnalysis, float]]:
    """Return (analysis, cached_at) for a stored review, or None."""
    if cache is None:
        return None
    hit = cache.read_with_meta(analysis_cache_key(video_id))
    if hit is None:
        return None
    return ContentAnalysis(**hit.data), hit.timestamp


def request_json_completion(
    client: OpenAI,
    model: str,
    system_prompt: str,
    user_content: Any,
    max_tokens: int,
) -> Dict[str, Any]:
    """Run a JSON-mode chat completion and parse the reply into a dict."""
    try:
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            response_format={"type": "json_object"},
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.error(f"Error in LLM analysis: {e}")
        raise

    content = response.choices[0].message.content or ""
    return parse_analysis_response(content)


def analyze_content(
    video: Video,
    stats: VideoStats,
    drops: List[SignificantDrop],
    api_key: str,
    cache: Optional[FileCache] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 4000,
    video_context: Optional[str] = None,
    transcript: Optional[str] = None,
    cache_ttl_seconds: float = AI_CACHE_TTL_SECONDS,
    client: Optional[OpenAI] = None,
    frames: Optional[List[str]] = None,
    max_frames: int = 10,
) -> Tuple[ContentAnalysis, bool, Optional[float]]:
    """
    Qualitative review of a video's content using a multimodal LLM.

    Args:
        frames: Paths to keyframes extracted from the video, in playback order
        transcript: Timestamped transcript of the video's audio

    Returns:
        (analysis, cached, cached_at) where cached_at is the epoch time the
        cached entry was written, or None for a fresh analysis.
    """
    cached = read_cached_analysis(cache, video.id)
    if cached is not None:
        analysis, cached_at = cached
        return analysis, True, cached_at

    client = client or get_openai_client(api_key)
    if client is None:
        raise LLMNotConfiguredError("AI analysis not available. Set OPENAI_API_KEY.")

    prompt = build_analysis_prompt(video.title, stats, drops, video_context, transcript)
    text = f"{prompt}\n\nVideo URL: {video.video_url}"

    selected_frames = select_frames(frames or [], max_frames)
    if selected_frames:
        user_content: Any = [{
            "type": "text",
            "text": f"{text}\n\nThe {len(selected_frames)} attached images are keyframes from the video, in playback order.",
        }]
        for frame_path in selected_frames:
            user_content.append({
                "type": "image_url",
                "image_url": {"url": f"data:image/jpeg;base64,{encode_image(frame_path)}"},
            })
    else:
        user_content = text

    logger.info(
        "Starting AI analysis for %r (%s) with %d frames and %s transcript",
        video.title, video.id, len(selected_frames), "a" if transcript else "no",
    )
    parsed = request_json_completion(
        client,
        model,
        "You are an expert direct response video strategist.",
        user_content,
        max_tokens,
    )
    analysis = to_content_analysis(parsed, video.id, transcript or "")

    if cache is not None:
        cache.write(analysis_cache_key(video.id), analysis.model_dump(mode="json"), cache_ttl_seconds)
    logger.info("AI analysis complete and cached for %r", video.title)
    return analysis, False, None
