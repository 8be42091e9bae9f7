"""
AI operation endpoints.

POST /ai/cases/*          case-level operations (summary, recommendation,
                          final summary, completeness)
POST /ai/applications/*   application-level operations (analysis, missing fields)
GET  /ai/templates        registered prompt templates
GET  /ai/interactions/... audit records for a case
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from caseflow.core.logging import get_logger
from caseflow.models.cases import ApplicationData, Case, ProcessStep
from caseflow.models.results import (
    AnalysisReport,
    CompletenessReport,
    FinalSummary,
    MissingFieldsReport,
    Recommendation,
    Summary,
)
from caseflow.services.ai.audit import InteractionRecord
from caseflow.services.ai.orchestration import AIOperationService

logger = get_logger(__name__)
router = APIRouter()


class StepRecommendationRequest(BaseModel):
    case: Case
    step: ProcessStep


def get_ai_service(request: Request) -> AIOperationService:
    """Service instance created at startup (overridable in tests)."""
    service = getattr(request.app.state, "ai_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="AI operation service not initialized")
    return service


@router.post("/cases/summary", response_model=Summary)
async def generate_summary(case: Case, service: AIOperationService = Depends(get_ai_service)):
    return await service.generate_overall_summary(case)


@router.post("/cases/recommendation", response_model=Recommendation)
async def generate_recommendation(
    body: StepRecommendationRequest,
    service: AIOperationService = Depends(get_ai_service),
):
    return await service.generate_step_recommendation(body.case, body.step)


@router.post("/cases/final-summary", response_model=FinalSummary)
async def generate_final_summary(case: Case, service: AIOperationService = Depends(get_ai_service)):
    return await service.generate_final_summary(case)


@router.post("/cases/completeness", response_model=CompletenessReport)
async def validate_completeness(case: Case, service: AIOperationService = Depends(get_ai_service)):
    return await service.validate_case_completeness(case)


@router.post("/applications/analysis", response_model=AnalysisReport)
async def analyze_application(
    application: ApplicationData,
    service: AIOperationService = Depends(get_ai_service),
):
    return await service.analyze_application(application)


@router.post("/applications/missing-fields", response_model=MissingFieldsReport)
async def detect_missing_fields(
    application: ApplicationData,
    service: AIOperationService = Depends(get_ai_service),
):
    return await service.detect_missing_fields(application)


@router.get("/templates")
async def list_templates(service: AIOperationService = Depends(get_ai_service)) -> List[Dict[str, Any]]:
    return [template.describe() for template in service.registry.list_templates()]


@router.get("/interactions/{case_id}", response_model=List[InteractionRecord])
async def list_interactions(case_id: str, service: AIOperationService = Depends(get_ai_service)):
    """
    Audit records written for a case.

    Only available with a store that can be queried (the in-memory store).
    Pending background writes are flushed first.
    """
    list_for_case = getattr(service.store, "list_for_case", None)
    if list_for_case is None:
        raise HTTPException(status_code=501, detail="Interaction store does not support queries")
    await service.auditor.flush()
    return list_for_case(case_id)
