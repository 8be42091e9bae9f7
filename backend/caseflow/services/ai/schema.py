"""
Pydantic contracts for the AI orchestration layer.

- Response payload schemas: the JSON shape each operation asks the model
  for. Field names follow the camelCase keys used in the prompts.
- ModelResponse / InvocationParameters: the transport contract.
- ValidationOutcome: result of checking raw model text against a schema.

Payload schemas are strict about primitive types: a string is not accepted
where a number or boolean is expected, and booleans are not numbers.
"""
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, StrictStr


def _require_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a number")
    return value


Number = Annotated[float, BeforeValidator(_require_number)]


class InvocationParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(1000, gt=0)


class ModelResponse(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    text: str
    model_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0
    finish_reason: Optional[str] = None
    cost_usd: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ValidationOutcome(BaseModel):
    """Outcome of validating one raw response; ``data`` is set only if valid."""

    valid: bool
    data: Optional[Any] = None
    errors: List[str] = Field(default_factory=list)


class ResponsePayload(BaseModel):
    """Base for operation response schemas."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    # Example rendered into the prompt's output-format instruction.
    FORMAT_EXAMPLE: ClassVar[Dict[str, Any]] = {}
    FORMAT_NOTES: ClassVar[List[str]] = []


class OverallSummaryPayload(ResponsePayload):
    content: StrictStr = Field(..., min_length=10)
    recommendations: List[StrictStr] = Field(..., min_length=1)
    confidence: Number = Field(..., ge=0.0, le=1.0)

    FORMAT_EXAMPLE = {
        "content": "detailed summary here",
        "recommendations": ["recommendation 1", "recommendation 2"],
        "confidence": 0.85,
    }
    FORMAT_NOTES = [
        "content: at least 10 characters",
        "recommendations: at least one entry",
        "confidence: number between 0 and 1",
    ]


class StepRecommendationPayload(ResponsePayload):
    recommendations: List[StrictStr] = Field(..., min_length=1)
    priority: Literal["low", "medium", "high"]
    confidence: Number = Field(..., ge=0.0, le=1.0)

    FORMAT_EXAMPLE = {
        "recommendations": ["specific recommendation 1", "specific recommendation 2"],
        "priority": "medium",
        "confidence": 0.8,
    }
    FORMAT_NOTES = [
        "recommendations: at least one entry",
        "priority: one of low, medium, high",
        "confidence: number between 0 and 1",
    ]


class ApplicationAnalysisPayload(ResponsePayload):
    summary: StrictStr = Field(..., min_length=10)
    key_points: List[StrictStr] = Field(..., alias="keyPoints")
    potential_issues: List[StrictStr] = Field(..., alias="potentialIssues")
    recommended_actions: List[StrictStr] = Field(..., alias="recommendedActions")
    priority_level: Literal["low", "medium", "high", "urgent"] = Field(..., alias="priorityLevel")
    estimated_processing_time: StrictStr = Field(..., min_length=1, alias="estimatedProcessingTime")
    required_documents: List[StrictStr] = Field(..., alias="requiredDocuments")

    FORMAT_EXAMPLE = {
        "summary": "application summary",
        "keyPoints": ["point 1", "point 2"],
        "potentialIssues": ["issue 1", "issue 2"],
        "recommendedActions": ["action 1", "action 2"],
        "priorityLevel": "medium",
        "estimatedProcessingTime": "2-3 business days",
        "requiredDocuments": ["document 1", "document 2"],
    }
    FORMAT_NOTES = [
        "summary: at least 10 characters",
        "priorityLevel: one of low, medium, high, urgent",
        "estimatedProcessingTime: non-empty",
    ]


class FinalSummaryPayload(ResponsePayload):
    overall_summary: StrictStr = Field(..., min_length=20, alias="overallSummary")
    key_decisions: List[StrictStr] = Field(..., alias="keyDecisions")
    outcomes: List[StrictStr]
    process_history: List[StrictStr] = Field(..., alias="processHistory")
    recommended_decision: Literal["approved", "denied", "requires_additional_info"] = Field(
        ..., alias="recommendedDecision"
    )
    supporting_rationale: List[StrictStr] = Field(..., min_length=1, alias="supportingRationale")

    FORMAT_EXAMPLE = {
        "overallSummary": "comprehensive case summary",
        "keyDecisions": ["decision 1", "decision 2"],
        "outcomes": ["outcome 1", "outcome 2"],
        "processHistory": ["step 1", "step 2"],
        "recommendedDecision": "approved",
        "supportingRationale": ["rationale 1", "rationale 2"],
    }
    FORMAT_NOTES = [
        "overallSummary: at least 20 characters",
        "recommendedDecision: one of approved, denied, requires_additional_info",
        "supportingRationale: at least one entry",
    ]


class CompletenessValidationPayload(ResponsePayload):
    is_complete: StrictBool = Field(..., alias="isComplete")
    missing_steps: List[StrictStr] = Field(..., alias="missingSteps")
    missing_documents: List[StrictStr] = Field(..., alias="missingDocuments")
    recommendations: List[StrictStr]
    confidence: Number = Field(..., ge=0.0, le=1.0)

    FORMAT_EXAMPLE = {
        "isComplete": True,
        "missingSteps": ["step1", "step2"],
        "missingDocuments": ["doc1", "doc2"],
        "recommendations": ["recommendation 1", "recommendation 2"],
        "confidence": 0.9,
    }
    FORMAT_NOTES = [
        "isComplete: true or false",
        "confidence: number between 0 and 1",
    ]


class MissingFieldPayload(ResponsePayload):
    field_name: StrictStr = Field(..., min_length=1, alias="fieldName")
    field_type: StrictStr = Field(..., min_length=1, alias="fieldType")
    importance: Literal["required", "recommended", "optional"]
    suggested_action: StrictStr = Field(..., min_length=1, alias="suggestedAction")


class MissingFieldsPayload(ResponsePayload):
    missing_fields: List[MissingFieldPayload] = Field(..., alias="missingFields")
    completeness_score: Number = Field(..., ge=0.0, le=100.0, alias="completenessScore")
    priority_actions: List[StrictStr] = Field(..., alias="priorityActions")
    estimated_completion_time: StrictStr = Field(..., min_length=1, alias="estimatedCompletionTime")

    FORMAT_EXAMPLE = {
        "missingFields": [
            {
                "fieldName": "field name",
                "fieldType": "text/number/file/etc",
                "importance": "required",
                "suggestedAction": "specific action needed",
            }
        ],
        "completenessScore": 75,
        "priorityActions": ["action 1", "action 2"],
        "estimatedCompletionTime": "1-2 hours",
    }
    FORMAT_NOTES = [
        "importance: one of required, recommended, optional",
        "completenessScore: number between 0 and 100",
        "estimatedCompletionTime: non-empty",
    ]
