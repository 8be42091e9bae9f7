"""
Template registry.

One OperationTemplate per AI operation: the prompt body (rendered by a pure
function), default invocation parameters and the response schema the model
output is validated against. Adding an AI-backed feature means registering
one more template here.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from caseflow.core.logging import get_logger
from caseflow.services.ai.errors import DuplicateTemplateError, UnknownOperationError
from caseflow.services.ai.prompts import placeholders, text_renderer
from caseflow.services.ai.schema import (
    ApplicationAnalysisPayload,
    CompletenessValidationPayload,
    FinalSummaryPayload,
    InvocationParameters,
    MissingFieldsPayload,
    OverallSummaryPayload,
    ResponsePayload,
    StepRecommendationPayload,
)

logger = get_logger(__name__)


class Operation(str, Enum):
    GENERATE_SUMMARY = "generate_summary"
    GENERATE_RECOMMENDATION = "generate_recommendation"
    ANALYZE_APPLICATION = "analyze_application"
    GENERATE_FINAL_SUMMARY = "generate_final_summary"
    VALIDATE_COMPLETENESS = "validate_completeness"
    DETECT_MISSING_FIELDS = "detect_missing_fields"


@dataclass(frozen=True)
class OperationTemplate:
    id: str
    operation: Operation
    name: str
    version: str
    description: str
    body: str
    invocation_parameters: InvocationParameters
    response_schema: Type[ResponsePayload]
    renderer: Callable[[Mapping[str, Any]], str] = field(init=False, repr=False, compare=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "renderer", text_renderer(self.body))

    @property
    def placeholders(self) -> List[str]:
        return placeholders(self.body)

    def describe(self) -> Dict[str, Any]:
        """Serializable metadata (no renderer, no schema class)."""
        return {
            "id": self.id,
            "operation": self.operation.value,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "placeholders": self.placeholders,
            "invocation_parameters": self.invocation_parameters.model_dump(),
            "response_schema": self.response_schema.__name__,
            "created_at": self.created_at.isoformat(),
        }


class TemplateRegistry:
    """Lookup of templates by id and by operation (exactly one per operation)."""

    def __init__(self, templates: Optional[List[OperationTemplate]] = None):
        self._by_id: Dict[str, OperationTemplate] = {}
        self._by_operation: Dict[Operation, OperationTemplate] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: OperationTemplate) -> None:
        if template.id in self._by_id:
            raise DuplicateTemplateError(template.id)
        if template.operation in self._by_operation:
            raise DuplicateTemplateError(template.operation.value)
        self._by_id[template.id] = template
        self._by_operation[template.operation] = template
        logger.debug(
            "ai_template_registered",
            template_id=template.id,
            operation=template.operation.value,
            version=template.version,
        )

    def get_template(self, template_id: str) -> OperationTemplate:
        try:
            return self._by_id[template_id]
        except KeyError:
            raise UnknownOperationError(template_id) from None

    def get_template_for_operation(self, operation: Any) -> OperationTemplate:
        try:
            return self._by_operation[Operation(operation)]
        except (KeyError, ValueError):
            raise UnknownOperationError(str(getattr(operation, "value", operation))) from None

    def list_templates(self) -> List[OperationTemplate]:
        return list(self._by_id.values())

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


OVERALL_SUMMARY_BODY = """You are assisting a case worker. Analyze the case below and write an overall summary.

Case ID: {{caseId}}
Status: {{status}}
Current Step: {{currentStep}}
Application Type: {{applicationType}}
Applicant: {{applicantName}}
Submission Date: {{submissionDate}}

Documents: {{documents}}

Form Data:
{{formData}}

Case Notes:
{{caseNotes}}

Provide:
1. A comprehensive summary of the case
2. Key recommendations for next steps
3. Your confidence (0-1) in the analysis"""

STEP_RECOMMENDATION_BODY = """You are assisting a case worker with the "{{step}}" step of a case.

Case ID: {{caseId}}
Current Status: {{status}}
Application Type: {{applicationType}}
Applicant: {{applicantName}}

Recent AI Summaries:
{{recentSummaries}}

Recent Case Notes:
{{recentNotes}}

For the "{{step}}" step, provide:
1. Specific recommendations for this step
2. A priority level (low, medium, high)
3. Your confidence (0-1) in the recommendations"""

APPLICATION_ANALYSIS_BODY = """Analyze the following newly submitted application.

Application Type: {{applicationType}}
Applicant: {{applicantName}}
Email: {{applicantEmail}}
Submission Date: {{submissionDate}}

Documents Provided: {{documents}}

Form Data:
{{formData}}

Provide:
1. A summary of the application
2. Key points identified
3. Potential issues or concerns
4. Recommended actions
5. A priority level (low, medium, high, urgent)
6. An estimated processing time
7. Required documents that may be missing"""

FINAL_SUMMARY_BODY = """Write the final summary for this concluded case.

Case ID: {{caseId}}
Final Status: {{status}}
Application Type: {{applicationType}}
Applicant: {{applicantName}}

Process History:
{{processHistory}}

AI Summaries Generated:
{{aiSummaries}}

Case Notes:
{{caseNotes}}

Provide:
1. An overall summary of the case
2. Key decisions made
3. Final outcomes
4. A short process history
5. A recommended decision (approved, denied, requires_additional_info)
6. Supporting rationale for that decision"""

COMPLETENESS_VALIDATION_BODY = """Check whether this case is complete for its current status.

Case ID: {{caseId}}
Current Status: {{status}}
Current Step: {{currentStep}}
Application Type: {{applicationType}}

Documents: {{documents}}
Form Data Fields: {{formDataFields}}

Process Steps Completed: {{completedSteps}}

Evaluate:
1. Whether the case is complete for its current status
2. Which process steps are missing
3. Which documents are missing
4. Recommendations for completing the case
5. Your confidence (0-1) in the assessment"""

MISSING_FIELDS_BODY = """Review this application for missing information.

Application Type: {{applicationType}}
Applicant: {{applicantName}}
Email: {{applicantEmail}}

Current Form Data:
{{formData}}

Documents Provided: {{documents}}

Identify:
1. Missing required fields
2. Missing recommended fields
3. Missing optional fields that would help processing
4. A completeness score (0-100)
5. Priority actions
6. The estimated time to complete the missing items"""


def default_templates() -> List[OperationTemplate]:
    return [
        OperationTemplate(
            id="overall_summary_v1",
            operation=Operation.GENERATE_SUMMARY,
            name="Overall Case Summary",
            version="1.0",
            description="Comprehensive case summary with recommendations",
            body=OVERALL_SUMMARY_BODY,
            invocation_parameters=InvocationParameters(temperature=0.3, max_output_tokens=1000),
            response_schema=OverallSummaryPayload,
        ),
        OperationTemplate(
            id="step_recommendation_v1",
            operation=Operation.GENERATE_RECOMMENDATION,
            name="Step-Specific Recommendations",
            version="1.0",
            description="Recommendations for a specific process step",
            body=STEP_RECOMMENDATION_BODY,
            invocation_parameters=InvocationParameters(temperature=0.4, max_output_tokens=800),
            response_schema=StepRecommendationPayload,
        ),
        OperationTemplate(
            id="application_analysis_v1",
            operation=Operation.ANALYZE_APPLICATION,
            name="Application Analysis",
            version="1.0",
            description="Analysis of a new application submission",
            body=APPLICATION_ANALYSIS_BODY,
            invocation_parameters=InvocationParameters(temperature=0.2, max_output_tokens=1200),
            response_schema=ApplicationAnalysisPayload,
        ),
        OperationTemplate(
            id="final_summary_v1",
            operation=Operation.GENERATE_FINAL_SUMMARY,
            name="Final Case Summary",
            version="1.0",
            description="Final summary for case conclusion",
            body=FINAL_SUMMARY_BODY,
            invocation_parameters=InvocationParameters(temperature=0.1, max_output_tokens=1500),
            response_schema=FinalSummaryPayload,
        ),
        OperationTemplate(
            id="completeness_validation_v1",
            operation=Operation.VALIDATE_COMPLETENESS,
            name="Case Completeness Validation",
            version="1.0",
            description="Completeness check before case conclusion",
            body=COMPLETENESS_VALIDATION_BODY,
            invocation_parameters=InvocationParameters(temperature=0.2, max_output_tokens=800),
            response_schema=CompletenessValidationPayload,
        ),
        OperationTemplate(
            id="missing_fields_v1",
            operation=Operation.DETECT_MISSING_FIELDS,
            name="Missing Fields Detection",
            version="1.0",
            description="Missing-field detection for application data",
            body=MISSING_FIELDS_BODY,
            invocation_parameters=InvocationParameters(temperature=0.3, max_output_tokens=1000),
            response_schema=MissingFieldsPayload,
        ),
    ]


def build_default_registry() -> TemplateRegistry:
    return TemplateRegistry(default_templates())
