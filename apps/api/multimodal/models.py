from typing import List
from pydantic import BaseModel

class SpecificFix(BaseModel):
    timestamp: str  # M:SS
    issue: str
    fix: str

class CROTest(BaseModel):
    test_name: str
    hypothesis: str
    control: str = ""
    variant: str = ""
    expected_impact: str = ""
    implementation: str = ""

class ExpertFeedback(BaseModel):
    expert_name: str
    expert_role: str = ""
    overall_assessment: str = ""
    strengths: List[str] = []
    weaknesses: List[str] = []
    specific_fixes: List[SpecificFix] = []
    priority_action: str = ""
    cro_tests: List[CROTest] = []

class TimestampAnalysis(BaseModel):
    timestamp: str
    formatted_time: str = ""
    content_description: str = ""
    audio_description: str = ""
    issue: str = ""
    fix: str = ""

class ScriptStructure(BaseModel):
    hook: str = ""
    problem: str = ""
    solution: str = ""
    proof: str = ""
    cta: str = ""
    overall_flow: str = ""

class ContentAnalysis(BaseModel):
    video_id: str
    analyzed_at: str
    expert_feedback: List[ExpertFeedback] = []
    cro_tests: List[CROTest] = []
    timestamp_analysis: List[TimestampAnalysis] = []
    script_structure: ScriptStructure = ScriptStructure()
    overall_verdict: str = ""
    transcript: str = ""

class RewrittenScriptSection(BaseModel):
    section_name: str
    original_text: str = ""
    rewritten_text: str = ""
    changes_explained: str = ""
    expert_principle: str = ""

class RewrittenScript(BaseModel):
    video_id: str
    expert_index: int
    expert_name: str
    rewritten_at: str
    sections: List[RewrittenScriptSection] = []
    full_rewritten_script: str = ""
    changes_summary: str = ""

class GeneratedCROTests(BaseModel):
    video_id: str
    expert_index: int
    expert_name: str
    generated_at: str
    batch_number: int
    tests: List[CROTest] = []
    previous_test_names: List[str] = []
