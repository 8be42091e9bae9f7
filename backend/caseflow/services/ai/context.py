"""
Invocation context builders.

Each builder flattens a case or application record into the string-valued
mapping a template is rendered from. Contexts are built fresh per call.
"""
import json
from typing import Dict, Iterable

from caseflow.models.cases import ApplicationData, Case, CaseNote, ProcessStep

InvocationContext = Dict[str, str]

RECENT_SUMMARY_LIMIT = 3
RECENT_NOTE_LIMIT = 5


def _notes_text(notes: Iterable[CaseNote]) -> str:
    return "\n".join(f"{note.created_at.isoformat()}: {note.content}" for note in notes)


def _form_data_text(application: ApplicationData) -> str:
    if not application.form_data:
        return ""
    return json.dumps(application.form_data, indent=2, default=str)


def _form_fields_text(application: ApplicationData) -> str:
    # Fields with an empty value are treated as not provided.
    return ", ".join(
        key for key, value in application.form_data.items() if value not in (None, "", [], {})
    )


def _applicant_fields(application: ApplicationData) -> InvocationContext:
    return {
        "applicationType": application.application_type,
        "applicantName": application.applicant_name,
        "applicantEmail": application.applicant_email,
        "submissionDate": application.submission_date.isoformat(),
    }


def build_overall_summary_context(case: Case) -> InvocationContext:
    application = case.application_data
    return {
        "caseId": case.id,
        "status": case.status.value,
        "currentStep": case.current_step.value,
        **_applicant_fields(application),
        "documents": ", ".join(doc.filename for doc in application.documents),
        "formData": _form_data_text(application),
        "formDataFields": _form_fields_text(application),
        "caseNotes": _notes_text(case.notes),
    }


def build_step_recommendation_context(case: Case, step: ProcessStep) -> InvocationContext:
    application = case.application_data
    recent_summaries = case.ai_summaries[:RECENT_SUMMARY_LIMIT]
    return {
        "step": step.value,
        "caseId": case.id,
        "status": case.status.value,
        "currentStep": case.current_step.value,
        "applicationType": application.application_type,
        "applicantName": application.applicant_name,
        "documents": ", ".join(doc.filename for doc in application.documents),
        "recentSummaries": "\n---\n".join(summary.content for summary in recent_summaries),
        "recentNotes": _notes_text(case.notes[-RECENT_NOTE_LIMIT:]),
    }


def build_application_analysis_context(application: ApplicationData) -> InvocationContext:
    return {
        **_applicant_fields(application),
        "documents": ", ".join(
            f"{doc.filename} ({doc.mime_type})" for doc in application.documents
        ),
        "formData": _form_data_text(application),
        "formDataFields": _form_fields_text(application),
    }


def build_final_summary_context(case: Case) -> InvocationContext:
    application = case.application_data
    return {
        "caseId": case.id,
        "status": case.status.value,
        "currentStep": case.current_step.value,
        "applicationType": application.application_type,
        "applicantName": application.applicant_name,
        "processHistory": "\n".join(
            f"{entry.timestamp.isoformat()}: {entry.action}" for entry in case.audit_trail
        ),
        "aiSummaries": "\n---\n".join(
            f"{summary.generated_at.isoformat()} ({summary.type}): {summary.content}"
            for summary in case.ai_summaries
        ),
        "caseNotes": _notes_text(case.notes),
    }


def build_completeness_context(case: Case) -> InvocationContext:
    application = case.application_data
    return {
        "caseId": case.id,
        "status": case.status.value,
        "currentStep": case.current_step.value,
        "applicationType": application.application_type,
        "applicantName": application.applicant_name,
        "applicantEmail": application.applicant_email,
        "documents": ", ".join(doc.filename for doc in application.documents),
        "formDataFields": _form_fields_text(application),
        "completedSteps": ", ".join(step.value for step in case.completed_steps()),
    }


def build_missing_fields_context(application: ApplicationData) -> InvocationContext:
    return {
        **_applicant_fields(application),
        "formData": _form_data_text(application),
        "formDataFields": _form_fields_text(application),
        "documents": ", ".join(doc.filename for doc in application.documents),
    }
