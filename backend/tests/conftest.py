"""
Shared fixtures: case and application records, and a scripted model transport.
"""
import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple, Union

import pytest

from caseflow.models.cases import (
    ApplicationData,
    AuditEntry,
    Case,
    CaseDocument,
    CaseNote,
    CaseStatus,
    ProcessStep,
)
from caseflow.services.ai.schema import InvocationParameters, ModelResponse


class ScriptedTransport:
    """
    Stand-in for the model transport.

    Each call pops the next scripted reply: a dict (sent back as JSON text),
    a str (sent back verbatim) or an exception (raised). The last reply is
    reused once the script runs out.
    """

    def __init__(self, *replies: Union[dict, str, Exception], model_id: str = "x-ai/grok-beta"):
        self.replies = list(replies)
        self.model_id = model_id
        self.calls: List[Tuple[str, InvocationParameters]] = []

    async def invoke_model(self, prompt: str, parameters: InvocationParameters) -> ModelResponse:
        self.calls.append((prompt, parameters))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return ModelResponse(
            text=text,
            model_id=self.model_id,
            input_tokens=120,
            output_tokens=80,
            latency_ms=250.0,
        )


@pytest.fixture
def application() -> ApplicationData:
    return ApplicationData(
        applicant_name="John Doe",
        applicant_email="john.doe@example.com",
        application_type="permit",
        submission_date=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        documents=[
            CaseDocument(id="doc-1", filename="site_plan.pdf", mime_type="application/pdf"),
        ],
        form_data={"address": "12 Main Street", "projectType": "garage", "phone": ""},
    )


@pytest.fixture
def case(application: ApplicationData) -> Case:
    return Case(
        id="case-123",
        application_data=application,
        status=CaseStatus.ACTIVE,
        current_step=ProcessStep.IN_REVIEW,
        created_at=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        notes=[
            CaseNote(
                id="note-1",
                case_id="case-123",
                content="Applicant called about timeline",
                created_by="worker-1",
                created_at=datetime(2024, 3, 2, 10, 0, tzinfo=timezone.utc),
            ),
        ],
        audit_trail=[
            AuditEntry(
                id="audit-1",
                case_id="case-123",
                action="case_created",
                details={"applicationType": "permit", "applicantName": "John Doe"},
                timestamp=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
            ),
            AuditEntry(
                id="audit-2",
                case_id="case-123",
                action="status_updated",
                details={
                    "previousStatus": "active",
                    "newStatus": "active",
                    "previousStep": "received",
                    "newStep": "in_review",
                },
                timestamp=datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc),
            ),
        ],
    )


@pytest.fixture
def transport_factory():
    def _make(*replies: Any, model_id: Optional[str] = None) -> ScriptedTransport:
        if model_id:
            return ScriptedTransport(*replies, model_id=model_id)
        return ScriptedTransport(*replies)

    return _make
