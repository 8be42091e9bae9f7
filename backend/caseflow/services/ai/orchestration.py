"""
AI Orchestration Layer.

Every operation runs the same state machine:

    BUILDING -> INVOKING -> VALIDATING -> (SUCCEEDED | FALLBACK) -> AUDITED

- BUILDING: template lookup, context build, prompt render. Errors here are
  configuration errors and propagate to the caller.
- INVOKING: the injected ``invoke_model`` transport. Any failure is caught.
- VALIDATING: the shared response validator checks the raw text.
- SUCCEEDED: the validated payload is mapped to the domain result.
- FALLBACK: the fallback synthesizer builds a local result; the audit record
  is marked ``success=False`` with the failure reason.
- AUDITED: exactly one InteractionRecord per call, written in the background.

The six public operations differ only in the template they use, how they
build the context and how they map the payload to a domain result.
"""
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, List, Optional, Union
from uuid import uuid4

from pydantic import ValidationError

from caseflow.core.config import Settings
from caseflow.core.logging import case_context, get_logger
from caseflow.core.metrics import (
    record_ai_fallback,
    record_ai_operation,
    record_ai_validation_failure,
)
from caseflow.models.cases import ApplicationData, Case, ProcessStep
from caseflow.models.results import (
    AIResult,
    AnalysisReport,
    CompletenessReport,
    FinalSummary,
    MissingField,
    MissingFieldsReport,
    Recommendation,
    Summary,
)
from caseflow.services.ai.audit import (
    InMemoryInteractionStore,
    InteractionAuditor,
    InteractionRecord,
    InteractionStore,
)
from caseflow.services.ai.context import (
    InvocationContext,
    build_application_analysis_context,
    build_completeness_context,
    build_final_summary_context,
    build_missing_fields_context,
    build_overall_summary_context,
    build_step_recommendation_context,
)
from caseflow.services.ai.errors import AIOperationFailedError
from caseflow.services.ai.fallback import FallbackSynthesizer
from caseflow.services.ai.llm_client import build_llm_client
from caseflow.services.ai.prompts import render
from caseflow.services.ai.schema import (
    ApplicationAnalysisPayload,
    CompletenessValidationPayload,
    FinalSummaryPayload,
    InvocationParameters,
    MissingFieldsPayload,
    ModelResponse,
    OverallSummaryPayload,
    StepRecommendationPayload,
)
from caseflow.services.ai.templates import Operation, TemplateRegistry, build_default_registry
from caseflow.services.ai.validation import ResponseValidator, format_errors

logger = get_logger(__name__)

InvokeModel = Callable[[str, InvocationParameters], Awaitable[ModelResponse]]
ResultBuilder = Callable[[Any, ModelResponse], AIResult]

APPLICATION_CASE_PREFIX = "application:"


def application_audit_id() -> str:
    """Audit case ID for applications that are not yet attached to a case."""
    return f"{APPLICATION_CASE_PREFIX}{uuid4()}"


class AIOperationService:
    """
    Façade for the six AI-backed case operations.

    Args:
        invoke_model: Transport coroutine ``(prompt, parameters) -> ModelResponse``,
            or an object exposing it as ``invoke_model``.
        store: Interaction store for audit records (in-memory by default).
        registry: Template registry (the six default templates by default).
        fallback_enabled: When False, failures are audited and then raised as
            AIOperationFailedError instead of returning a fallback result.
        version_cache_size: Number of cases whose last issued summary version
            is remembered. Older entries fall back to the case's stored summaries.
    """

    def __init__(
        self,
        invoke_model: Union[InvokeModel, Any],
        store: Optional[InteractionStore] = None,
        registry: Optional[TemplateRegistry] = None,
        fallback: Optional[FallbackSynthesizer] = None,
        fallback_enabled: bool = True,
        version_cache_size: int = 10000,
    ):
        # Transport object (e.g. LLMClient) when one was passed; used for health reporting.
        self.transport = invoke_model if hasattr(invoke_model, "invoke_model") else None
        if self.transport is not None:
            invoke_model = self.transport.invoke_model
        self._invoke_model: InvokeModel = invoke_model
        self.store = store if store is not None else InMemoryInteractionStore()
        self.registry = registry or build_default_registry()
        self.validator = ResponseValidator(self.registry)
        self.fallback = fallback or FallbackSynthesizer()
        self.auditor = InteractionAuditor(self.store)
        self.fallback_enabled = fallback_enabled
        self.version_cache_size = version_cache_size
        self._summary_versions: "OrderedDict[str, int]" = OrderedDict()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def generate_overall_summary(self, case: Case) -> Summary:
        version = self._next_summary_version(case)

        def to_result(data: OverallSummaryPayload, response: ModelResponse) -> Summary:
            return Summary(
                case_id=case.id,
                content=data.content,
                recommendations=list(data.recommendations),
                confidence=data.confidence,
                version=version,
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.GENERATE_SUMMARY,
            case_id=case.id,
            build_context=lambda: build_overall_summary_context(case),
            to_result=to_result,
            version=version,
        )

    async def generate_step_recommendation(self, case: Case, step: ProcessStep) -> Recommendation:
        step = ProcessStep(step)

        def to_result(data: StepRecommendationPayload, response: ModelResponse) -> Recommendation:
            return Recommendation(
                case_id=case.id,
                step=step,
                recommendations=list(data.recommendations),
                priority=data.priority,
                confidence=data.confidence,
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.GENERATE_RECOMMENDATION,
            case_id=case.id,
            build_context=lambda: build_step_recommendation_context(case, step),
            to_result=to_result,
            step=step,
        )

    async def analyze_application(self, application: ApplicationData) -> AnalysisReport:
        def to_result(data: ApplicationAnalysisPayload, response: ModelResponse) -> AnalysisReport:
            return AnalysisReport(
                summary=data.summary,
                key_points=list(data.key_points),
                potential_issues=list(data.potential_issues),
                recommended_actions=list(data.recommended_actions),
                priority_level=data.priority_level,
                estimated_processing_time=data.estimated_processing_time,
                required_documents=list(data.required_documents),
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.ANALYZE_APPLICATION,
            case_id=application_audit_id(),
            build_context=lambda: build_application_analysis_context(application),
            to_result=to_result,
        )

    async def generate_final_summary(self, case: Case) -> FinalSummary:
        def to_result(data: FinalSummaryPayload, response: ModelResponse) -> FinalSummary:
            return FinalSummary(
                case_id=case.id,
                overall_summary=data.overall_summary,
                key_decisions=list(data.key_decisions),
                outcomes=list(data.outcomes),
                process_history=list(data.process_history),
                recommended_decision=data.recommended_decision,
                supporting_rationale=list(data.supporting_rationale),
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.GENERATE_FINAL_SUMMARY,
            case_id=case.id,
            build_context=lambda: build_final_summary_context(case),
            to_result=to_result,
        )

    async def validate_case_completeness(self, case: Case) -> CompletenessReport:
        def to_result(data: CompletenessValidationPayload, response: ModelResponse) -> CompletenessReport:
            return CompletenessReport(
                case_id=case.id,
                is_complete=data.is_complete,
                missing_steps=list(data.missing_steps),
                missing_documents=list(data.missing_documents),
                recommendations=list(data.recommendations),
                confidence=data.confidence,
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.VALIDATE_COMPLETENESS,
            case_id=case.id,
            build_context=lambda: build_completeness_context(case),
            to_result=to_result,
        )

    async def detect_missing_fields(self, application: ApplicationData) -> MissingFieldsReport:
        def to_result(data: MissingFieldsPayload, response: ModelResponse) -> MissingFieldsReport:
            return MissingFieldsReport(
                missing_fields=[
                    MissingField(
                        field_name=field.field_name,
                        field_type=field.field_type,
                        importance=field.importance,
                        suggested_action=field.suggested_action,
                    )
                    for field in data.missing_fields
                ],
                completeness_score=data.completeness_score,
                priority_actions=list(data.priority_actions),
                estimated_completion_time=data.estimated_completion_time,
                source="model",
                model_id=response.model_id,
            )

        return await self._run(
            Operation.DETECT_MISSING_FIELDS,
            case_id=application_audit_id(),
            build_context=lambda: build_missing_fields_context(application),
            to_result=to_result,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _next_summary_version(self, case: Case) -> int:
        # No await between read and write: concurrent calls get distinct versions.
        current = max(case.latest_summary_version(), self._summary_versions.get(case.id, 0))
        version = current + 1
        self._summary_versions[case.id] = version
        self._summary_versions.move_to_end(case.id)
        while len(self._summary_versions) > self.version_cache_size:
            self._summary_versions.popitem(last=False)
        return version

    async def _run(
        self,
        operation: Operation,
        case_id: str,
        build_context: Callable[[], InvocationContext],
        to_result: ResultBuilder,
        version: int = 1,
        step: Optional[ProcessStep] = None,
    ) -> Any:
        # BUILDING
        template = self.registry.get_template_for_operation(operation)
        context = build_context()
        prompt = render(template, context)

        start = time.time()
        response: Optional[ModelResponse] = None
        result: Optional[AIResult] = None
        error: Optional[str] = None
        errors: List[str] = []
        reason: Optional[str] = None

        with case_context(case_id):
            logger.info(
                "ai_operation_started",
                operation=operation.value,
                template_id=template.id,
                template_version=template.version,
            )

            # INVOKING
            try:
                response = await self._invoke_model(prompt, template.invocation_parameters)
            except Exception as exc:
                error = str(exc) or type(exc).__name__
                reason = "transport"
                logger.warning(
                    "ai_operation_transport_failed",
                    operation=operation.value,
                    error=error,
                    error_type=type(exc).__name__,
                )

            # VALIDATING
            if response is not None:
                outcome = self.validator.validate(template.id, response.text)
                if outcome.valid:
                    try:
                        result = to_result(outcome.data, response)
                    except ValidationError as exc:
                        errors = format_errors(exc)
                else:
                    errors = outcome.errors
                if result is None:
                    error = "; ".join(errors)
                    reason = "validation"
                    record_ai_validation_failure(operation.value)
                    logger.warning(
                        "ai_operation_response_invalid",
                        operation=operation.value,
                        model_id=response.model_id,
                        errors=errors,
                    )

            success = result is not None

            # FALLBACK
            if not success:
                record_ai_fallback(operation.value, reason or "unknown")
                if self.fallback_enabled:
                    result = self.fallback.synthesize(operation, context, version=version)
                    logger.info(
                        "ai_operation_fallback",
                        operation=operation.value,
                        reason=reason,
                        error=error,
                    )

            duration_ms = (time.time() - start) * 1000.0

            # AUDITED
            self._audit(
                template_id=template.id,
                template_version=template.version,
                operation=operation,
                case_id=case_id,
                prompt=prompt,
                response=response,
                success=success,
                error=error,
                duration_ms=duration_ms,
                fallback_used=not success and result is not None,
                step=step,
            )

            if success:
                outcome_label = "success"
            elif result is not None:
                outcome_label = "fallback"
            else:
                outcome_label = "error"
            record_ai_operation(operation.value, outcome_label, duration_ms / 1000.0)

            if result is None:
                raise AIOperationFailedError(operation.value, error or "unknown error", errors)

            logger.info(
                "ai_operation_completed",
                operation=operation.value,
                outcome=outcome_label,
                duration_ms=round(duration_ms, 1),
            )
            return result

    def _audit(
        self,
        template_id: str,
        template_version: str,
        operation: Operation,
        case_id: str,
        prompt: str,
        response: Optional[ModelResponse],
        success: bool,
        error: Optional[str],
        duration_ms: float,
        fallback_used: bool,
        step: Optional[ProcessStep],
    ) -> None:
        try:
            record = InteractionRecord(
                case_id=case_id,
                operation=operation.value,
                prompt=prompt,
                response_text=response.text if response else "",
                model_id=response.model_id if response else "unknown",
                input_tokens=response.input_tokens if response else 0,
                output_tokens=response.output_tokens if response else 0,
                tokens_used=response.total_tokens if response else 0,
                cost_usd=response.cost_usd if response else None,
                duration_ms=duration_ms,
                success=success,
                fallback_used=fallback_used,
                error=None if success else error,
                template_id=template_id,
                template_version=template_version,
                step_context=step,
            )
            self.auditor.record(record)
        except Exception as exc:
            logger.error(
                "ai_interaction_audit_failed",
                operation=operation.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )


def build_ai_operation_service(
    settings: Settings,
    store: Optional[InteractionStore] = None,
) -> AIOperationService:
    """Wire the service with the configured HTTP transport."""
    return AIOperationService(
        invoke_model=build_llm_client(settings),
        store=store if store is not None else InMemoryInteractionStore(
            max_records_per_case=settings.audit_max_records_per_case,
            max_cases=settings.audit_max_cases,
        ),
        fallback_enabled=settings.ai_fallback_enabled,
        version_cache_size=settings.summary_version_cache_size,
    )
