"""Pydantic models for case records and AI results."""

from .cases import (
    ApplicationData,
    AuditEntry,
    Case,
    CaseDocument,
    CaseNote,
    CaseStatus,
    ProcessStep,
    StoredSummary,
)
from .results import (
    AnalysisReport,
    CompletenessReport,
    FinalSummary,
    MissingField,
    MissingFieldsReport,
    Recommendation,
    Summary,
)

__all__ = [
    "ApplicationData",
    "AuditEntry",
    "Case",
    "CaseDocument",
    "CaseNote",
    "CaseStatus",
    "ProcessStep",
    "StoredSummary",
    "AnalysisReport",
    "CompletenessReport",
    "FinalSummary",
    "MissingField",
    "MissingFieldsReport",
    "Recommendation",
    "Summary",
]
