"""
Case and application records consumed by the AI orchestration layer.

These mirror what the case service loads from storage; the AI layer only
reads them to build prompt contexts and never mutates them.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ProcessStep(str, Enum):
    RECEIVED = "received"
    IN_REVIEW = "in_review"
    ADDITIONAL_INFO_REQUIRED = "additional_info_required"
    READY_FOR_DECISION = "ready_for_decision"
    CONCLUDED = "concluded"


STEP_ORDER = list(ProcessStep)

# A detour taken only when the applicant owes more information.
OPTIONAL_STEPS = frozenset({ProcessStep.ADDITIONAL_INFO_REQUIRED})

# Keys of a ``status_updated`` audit entry's details that name workflow steps.
STEP_CHANGE_KEYS = ("previousStep", "newStep")


def required_steps_before(step: ProcessStep) -> List[ProcessStep]:
    """
    Required workflow steps that precede ``step``.

    Args:
        step: The step a case is currently at

    Returns:
        Steps in workflow order, optional detours excluded
    """
    index = STEP_ORDER.index(step)
    return [s for s in STEP_ORDER[:index] if s not in OPTIONAL_STEPS]


class CaseStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    WITHDRAWN = "withdrawn"
    ARCHIVED = "archived"


class CaseDocument(BaseModel):
    id: str
    filename: str
    path: str = ""
    uploaded_at: Optional[datetime] = None
    size: int = 0
    mime_type: str = "application/octet-stream"


class ApplicationData(BaseModel):
    applicant_name: str
    applicant_email: str = ""
    application_type: str
    submission_date: datetime
    documents: List[CaseDocument] = Field(default_factory=list)
    form_data: Dict[str, Any] = Field(default_factory=dict)


class CaseNote(BaseModel):
    id: str
    case_id: str
    content: str
    created_by: str = ""
    created_at: datetime


class AuditEntry(BaseModel):
    id: str
    case_id: str
    action: str
    details: Optional[Dict[str, Any]] = None
    user_id: str = ""
    timestamp: datetime


class StoredSummary(BaseModel):
    """A previously generated AI summary attached to a case."""

    id: str
    case_id: str
    type: Literal["overall", "step-specific"] = "overall"
    step: Optional[ProcessStep] = None
    content: str
    recommendations: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    generated_at: datetime
    version: int = 1


class Case(BaseModel):
    id: str
    application_data: ApplicationData
    status: CaseStatus = CaseStatus.ACTIVE
    current_step: ProcessStep = ProcessStep.RECEIVED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    notes: List[CaseNote] = Field(default_factory=list)
    ai_summaries: List[StoredSummary] = Field(default_factory=list)
    audit_trail: List[AuditEntry] = Field(default_factory=list)

    def latest_summary_version(self) -> int:
        """Highest version among the case's overall summaries (0 if none)."""
        versions = [s.version for s in self.ai_summaries if s.type == "overall"]
        return max(versions, default=0)

    def completed_steps(self) -> List[ProcessStep]:
        """
        Required steps the case went through before its current step.

        Step changes recorded in audit details are taken as the history.
        When the trail records none, reaching the current step implies
        every required step before it.
        """
        earlier = required_steps_before(self.current_step)
        visited = set()
        for entry in self.audit_trail:
            details = entry.details or {}
            for key in STEP_CHANGE_KEYS:
                try:
                    visited.add(ProcessStep(details[key]))
                except (KeyError, TypeError, ValueError):
                    continue
        if not visited:
            return earlier
        # Every case is created at the first step.
        visited.add(ProcessStep.RECEIVED)
        return [step for step in earlier if step in visited]
