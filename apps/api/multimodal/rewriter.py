"""
Follow-up LLM jobs on a stored content review: rewrite the script in one
expert's voice, and generate further CRO tests that do not repeat earlier ones.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAI
from pydantic import ValidationError

from services.cache import FileCache, cache_key
from .llm import (
    AI_CACHE_TTL_SECONDS,
    DEFAULT_MODEL,
    ContentAnalysisError,
    LLMNotConfiguredError,
    get_openai_client,
    request_json_completion,
)
from .models import (
    ContentAnalysis,
    CROTest,
    ExpertFeedback,
    GeneratedCROTests,
    RewrittenScript,
    RewrittenScriptSection,
    ScriptStructure,
)

logger = logging.getLogger(__name__)

VSL_SECTIONS = ["Hook", "Problem", "Solution", "Proof", "CTA"]


class ExpertNotFoundError(LookupError):
    """The requested expert index is not part of the stored review."""


class MissingTranscriptError(ValueError):
    """The stored review has no transcript to work from."""


def rewrite_cache_key(video_id: str, expert_index: int) -> str:
    return cache_key(f"script-rewrite-{video_id}-expert{expert_index}")


def cro_batch_cache_key(video_id: str, expert_index: int, batch_number: int) -> str:
    return cache_key(f"new-cro-tests-{video_id}-expert{expert_index}-batch{batch_number}")


def select_expert(analysis: ContentAnalysis, expert_index: int) -> ExpertFeedback:
    if not 0 <= expert_index < len(analysis.expert_feedback):
        available = f"0-{len(analysis.expert_feedback) - 1}" if analysis.expert_feedback else "none"
        raise ExpertNotFoundError(f"Expert index {expert_index} not found. Available: {available}")
    return analysis.expert_feedback[expert_index]


def _require_transcript(analysis: ContentAnalysis) -> str:
    if not analysis.transcript.strip():
        raise MissingTranscriptError("No transcript available. Re-run the AI analysis to generate a transcript.")
    return analysis.transcript


def _expert_brief(expert: ExpertFeedback) -> str:
    strengths = "\n".join(f"- {s}" for s in expert.strengths) or "- none noted"
    weaknesses = "\n".join(f"- {w}" for w in expert.weaknesses) or "- none noted"
    fixes = "\n".join(f"- At {f.timestamp}: Issue: {f.issue} -> Fix: {f.fix}" for f in expert.specific_fixes) or "- none"
    return (
        f"Overall: {expert.overall_assessment}\n\n"
        f"Priority Action: {expert.priority_action}\n\n"
        f"### Strengths (KEEP these):\n{strengths}\n\n"
        f"### Weaknesses (FIX these):\n{weaknesses}\n\n"
        f"### Specific Fixes:\n{fixes}"
    )


def build_rewrite_prompt(
    transcript: str,
    expert: ExpertFeedback,
    script_structure: ScriptStructure,
    video_context: Optional[str] = None,
) -> str:
    cro_tests = "\n".join(
        f"- {t.test_name}: {t.hypothesis}\n  Variant: {t.variant}\n  Expected impact: {t.expected_impact}"
        for t in expert.cro_tests
    ) or "- none"
    section_schema = ",\n".join(
        f'    {{"section_name": "{name}", "original_text": "...", "rewritten_text": "...", '
        f'"changes_explained": "...", "expert_principle": "..."}}'
        for name in VSL_SECTIONS
    )

    sections = [
        f"You are {expert.expert_name}, {expert.expert_role}. You have just reviewed a video sales letter (VSL) "
        "and given feedback. Now REWRITE the entire script implementing your recommendations.",
        f"## YOUR EXPERT ASSESSMENT\n\n{_expert_brief(expert)}\n\n### CRO Tests to Implement:\n{cro_tests}",
        "## CURRENT SCRIPT STRUCTURE ANALYSIS\n"
        f"- Hook: {script_structure.hook}\n"
        f"- Problem: {script_structure.problem}\n"
        f"- Solution: {script_structure.solution}\n"
        f"- Proof: {script_structure.proof}\n"
        f"- CTA: {script_structure.cta}\n"
        f"- Overall Flow: {script_structure.overall_flow}",
    ]
    if video_context:
        sections.append(f"## CONTEXT FROM THE MARKETER\n{video_context.strip()}")
    sections.extend([
        f"## ORIGINAL TRANSCRIPT\n\n{transcript.strip()}",
        f"## YOUR TASK\n\nRewrite the ENTIRE script as {expert.expert_name} would write it. "
        "Keep the core message, product and general voice. Apply every specific fix, restructure where your "
        "feedback calls for it and keep the strengths you identified. "
        f"Split the rewrite into the VSL sections {', '.join(VSL_SECTIONS)}.",
        "## RESPONSE FORMAT\n\nRespond with a JSON object:\n"
        "{\n"
        f'  "changes_summary": "2-3 sentences in first person as {expert.expert_name}",\n'
        f'  "sections": [\n{section_schema}\n  ],\n'
        '  "full_rewritten_script": "the complete script, ready to record, stage directions in [brackets]"\n'
        "}",
        "IMPORTANT:\n"
        '- "original_text" maps the transcript onto each section\n'
        '- "rewritten_text" is the actual words to be spoken, not notes\n'
        "- Every change must tie back to your feedback",
    ])
    return "\n\n".join(sections)


def build_cro_tests_prompt(
    transcript: str,
    expert: ExpertFeedback,
    previous_test_names: List[str],
    video_context: Optional[str] = None,
) -> str:
    previous = "\n".join(f"- {name}" for name in previous_test_names) or "- none yet"
    sections = [
        f"You are {expert.expert_name}, {expert.expert_role}. You reviewed this video sales letter (VSL) "
        "and now design NEW conversion rate optimization (CRO) tests for it.",
        f"## YOUR EXPERT ASSESSMENT\n\n{_expert_brief(expert)}",
    ]
    if video_context:
        sections.append(f"## CONTEXT FROM THE MARKETER\n{video_context.strip()}")
    sections.extend([
        f"## TRANSCRIPT\n\n{transcript.strip()}",
        f"## TESTS ALREADY PROPOSED (do NOT repeat or rephrase these)\n{previous}",
        "## RESPONSE FORMAT\n\nRespond with a JSON object:\n"
        "{\n"
        '  "tests": [\n'
        '    {"test_name": "string", "hypothesis": "If we change X, then Y will happen because Z", '
        '"control": "string", "variant": "string", "expected_impact": "string", "implementation": "string"}\n'
        "  ]\n"
        "}\n\n"
        "Propose 3-5 tests, each specific to this script and tied to a timestamp or section where possible.",
    ])
    return "\n\n".join(sections)


def collect_previous_test_names(
    analysis: ContentAnalysis,
    expert_index: int,
    cache: Optional[FileCache] = None,
) -> Tuple[List[str], int]:
    """
    Names of every test already proposed for this expert and the next batch number.

    Covers the review's own tests plus every cached generated batch.
    """
    expert = select_expert(analysis, expert_index)
    names = [t.test_name for t in expert.cro_tests] + [t.test_name for t in analysis.cro_tests]

    batch_number = 1
    while cache is not None:
        batch = cache.read(cro_batch_cache_key(analysis.video_id, expert_index, batch_number))
        if batch is None:
            break
        names.extend(t["test_name"] for t in batch.get("tests", []))
        batch_number += 1

    unique = list(dict.fromkeys(name for name in names if name))
    return unique, batch_number


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def to_rewritten_script(
    parsed: Dict[str, Any],
    video_id: str,
    expert_index: int,
    expert_name: str,
) -> RewrittenScript:
    raw_sections = parsed.get("sections")
    sections = [
        RewrittenScriptSection(
            section_name=_as_str(s.get("section_name")),
            original_text=_as_str(s.get("original_text")),
            rewritten_text=_as_str(s.get("rewritten_text")),
            changes_explained=_as_str(s.get("changes_explained")),
            expert_principle=_as_str(s.get("expert_principle")),
        )
        for s in (raw_sections if isinstance(raw_sections, list) else [])
        if isinstance(s, dict)
    ]
    return RewrittenScript(
        video_id=video_id,
        expert_index=expert_index,
        expert_name=expert_name,
        rewritten_at=datetime.now(timezone.utc).isoformat(),
        sections=sections,
        full_rewritten_script=_as_str(parsed.get("full_rewritten_script")),
        changes_summary=_as_str(parsed.get("changes_summary")),
    )


def rewrite_script(
    analysis: ContentAnalysis,
    expert_index: int,
    api_key: str,
    cache: Optional[FileCache] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 8192,
    video_context: Optional[str] = None,
    cache_ttl_seconds: float = AI_CACHE_TTL_SECONDS,
    client: Optional[OpenAI] = None,
) -> Tuple[RewrittenScript, bool, Optional[float]]:
    """
    Rewrite the reviewed video's script as one expert from the panel.

    Returns:
        (rewritten_script, cached, cached_at)
    """
    expert = select_expert(analysis, expert_index)
    transcript = _require_transcript(analysis)

    key = rewrite_cache_key(analysis.video_id, expert_index)
    if cache is not None:
        hit = cache.read_with_meta(key)
        if hit is not None:
            return RewrittenScript(**hit.data), True, hit.timestamp

    client = client or get_openai_client(api_key)
    if client is None:
        raise LLMNotConfiguredError("Script rewriting not available. Set OPENAI_API_KEY.")

    logger.info("Starting script rewrite for %s as %s", analysis.video_id, expert.expert_name)
    parsed = request_json_completion(
        client,
        model,
        "You are a world-class direct response copywriter.",
        build_rewrite_prompt(transcript, expert, analysis.script_structure, video_context),
        max_tokens,
    )
    script = to_rewritten_script(parsed, analysis.video_id, expert_index, expert.expert_name)
    if not script.sections and not script.full_rewritten_script:
        raise ContentAnalysisError("LLM response contained no rewritten script")

    if cache is not None:
        cache.write(key, script.model_dump(mode="json"), cache_ttl_seconds)
    logger.info("Script rewrite complete and cached for %s", expert.expert_name)
    return script, False, None


def generate_cro_tests(
    analysis: ContentAnalysis,
    expert_index: int,
    previous_test_names: List[str],
    api_key: str,
    batch_number: int = 1,
    cache: Optional[FileCache] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 4000,
    video_context: Optional[str] = None,
    cache_ttl_seconds: float = AI_CACHE_TTL_SECONDS,
    client: Optional[OpenAI] = None,
) -> GeneratedCROTests:
    """Generate a new batch of CRO tests; names already proposed are dropped."""
    expert = select_expert(analysis, expert_index)
    transcript = _require_transcript(analysis)

    client = client or get_openai_client(api_key)
    if client is None:
        raise LLMNotConfiguredError("CRO test generation not available. Set OPENAI_API_KEY.")

    logger.info(
        "Generating CRO test batch %d for %s as %s (%d previous tests)",
        batch_number, analysis.video_id, expert.expert_name, len(previous_test_names),
    )
    parsed = request_json_completion(
        client,
        model,
        "You are a conversion rate optimization strategist for video sales letters.",
        build_cro_tests_prompt(transcript, expert, previous_test_names, video_context),
        max_tokens,
    )

    raw_tests = parsed.get("tests")
    seen = {name.strip().casefold() for name in previous_test_names}
    tests = []
    for raw in raw_tests if isinstance(raw_tests, list) else []:
        if not isinstance(raw, dict):
            continue
        try:
            test = CROTest(**raw)
        except ValidationError:
            logger.warning("Skipping malformed CRO test: %s", raw)
            continue
        name = test.test_name.strip().casefold()
        if not name or name in seen:
            continue
        seen.add(name)
        tests.append(test)

    if not tests:
        raise ContentAnalysisError("LLM returned no new CRO tests")

    result = GeneratedCROTests(
        video_id=analysis.video_id,
        expert_index=expert_index,
        expert_name=expert.expert_name,
        generated_at=datetime.now(timezone.utc).isoformat(),
        batch_number=batch_number,
        tests=tests,
        previous_test_names=list(previous_test_names),
    )
    if cache is not None:
        cache.write(
            cro_batch_cache_key(analysis.video_id, expert_index, batch_number),
            result.model_dump(mode="json"),
            cache_ttl_seconds,
        )
    return result
