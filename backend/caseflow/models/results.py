"""
Domain results returned by the AI orchestration layer.

Every result is immutable. ``source`` tells model-derived results apart from
locally synthesized fallbacks; ``model_id`` is the provider model that
produced the content, or ``"fallback"``.
"""
from datetime import datetime, timezone
from typing import List, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from caseflow.models.cases import ProcessStep

ResultSource = Literal["model", "fallback"]
Priority = Literal["low", "medium", "high"]
AnalysisPriority = Literal["low", "medium", "high", "urgent"]
Decision = Literal["approved", "denied", "requires_additional_info"]
FieldImportance = Literal["required", "recommended", "optional"]

FALLBACK_MODEL_ID = "fallback"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class AIResult(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    generated_at: datetime = Field(default_factory=_utcnow)
    source: ResultSource = "model"
    model_id: str = FALLBACK_MODEL_ID

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


class Summary(AIResult):
    id: str = Field(default_factory=_new_id)
    case_id: str
    type: Literal["overall"] = "overall"
    content: str
    recommendations: List[str]
    confidence: float = Field(..., ge=0.0, le=1.0)
    version: int = Field(..., ge=1)


class Recommendation(AIResult):
    id: str = Field(default_factory=_new_id)
    case_id: str
    step: ProcessStep
    recommendations: List[str]
    priority: Priority
    confidence: float = Field(..., ge=0.0, le=1.0)


class AnalysisReport(AIResult):
    summary: str
    key_points: List[str]
    potential_issues: List[str]
    recommended_actions: List[str]
    priority_level: AnalysisPriority
    estimated_processing_time: str
    required_documents: List[str]


class FinalSummary(AIResult):
    case_id: str
    overall_summary: str
    key_decisions: List[str]
    outcomes: List[str]
    process_history: List[str]
    recommended_decision: Decision
    supporting_rationale: List[str]


class CompletenessReport(AIResult):
    case_id: str
    is_complete: bool
    missing_steps: List[str]
    missing_documents: List[str]
    recommendations: List[str]
    confidence: float = Field(..., ge=0.0, le=1.0)


class MissingField(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_name: str
    field_type: str
    importance: FieldImportance
    suggested_action: str


class MissingFieldsReport(AIResult):
    missing_fields: List[MissingField]
    completeness_score: float = Field(..., ge=0.0, le=100.0)
    priority_actions: List[str]
    estimated_completion_time: str
