"""
Fallback synthesizer.

Builds a locally derived result when the model is unreachable or returns
invalid output. Results are deterministic functions of the invocation
context: completeness is the fraction of the operation's expected fields
that are present, and priority and confidence follow from it. Every result
has ``source="fallback"`` and its main text starts with FALLBACK_MARKER.

``synthesize`` never raises.
"""
from typing import Dict, List, Mapping, Tuple

from caseflow.core.logging import get_logger
from caseflow.models.cases import CaseStatus, ProcessStep, required_steps_before
from caseflow.models.results import (
    FALLBACK_MODEL_ID,
    AIResult,
    AnalysisReport,
    CompletenessReport,
    FinalSummary,
    MissingField,
    MissingFieldsReport,
    Recommendation,
    Summary,
)
from caseflow.services.ai.templates import Operation

logger = get_logger(__name__)

FALLBACK_MARKER = "[Fallback]"

# Context key -> (label, field type, importance)
FIELD_INFO: Dict[str, Tuple[str, str, str]] = {
    "applicantName": ("applicant name", "text", "required"),
    "applicantEmail": ("applicant email", "email", "required"),
    "applicationType": ("application type", "text", "required"),
    "submissionDate": ("submission date", "date", "required"),
    "documents": ("supporting documents", "file", "recommended"),
    "formDataFields": ("application form details", "form", "recommended"),
    "caseNotes": ("case notes", "text", "optional"),
    "recentSummaries": ("previous AI summaries", "text", "optional"),
    "recentNotes": ("recent case notes", "text", "optional"),
    "processHistory": ("process history", "text", "recommended"),
    "aiSummaries": ("AI summaries", "text", "optional"),
}

EXPECTED_FIELDS: Dict[Operation, List[str]] = {
    Operation.GENERATE_SUMMARY: [
        "applicantName", "applicantEmail", "applicationType", "submissionDate",
        "documents", "formDataFields", "caseNotes",
    ],
    Operation.GENERATE_RECOMMENDATION: [
        "applicantName", "applicationType", "documents", "recentSummaries", "recentNotes",
    ],
    Operation.ANALYZE_APPLICATION: [
        "applicantName", "applicantEmail", "applicationType", "submissionDate",
        "documents", "formDataFields",
    ],
    Operation.GENERATE_FINAL_SUMMARY: [
        "applicantName", "applicationType", "processHistory", "aiSummaries", "caseNotes",
    ],
    Operation.VALIDATE_COMPLETENESS: [
        "applicantName", "applicantEmail", "documents", "formDataFields",
    ],
    Operation.DETECT_MISSING_FIELDS: [
        "applicantName", "applicantEmail", "applicationType", "submissionDate",
        "documents", "formDataFields",
    ],
}

HIGH_PRIORITY_BELOW = 0.5
MEDIUM_PRIORITY_BELOW = 0.8
FALLBACK_CONFIDENCE_SCALE = 0.3
MINUTES_PER_MISSING_FIELD = 15


def _present(context: Mapping[str, str], key: str) -> bool:
    value = context.get(key)
    return bool(value and str(value).strip())


def _value(context: Mapping[str, str], key: str, default: str = "unknown") -> str:
    return str(context[key]).strip() if _present(context, key) else default


def _count_items(context: Mapping[str, str], key: str, sep: str = ",") -> int:
    if not _present(context, key):
        return 0
    return len([part for part in str(context[key]).split(sep) if part.strip()])


class FallbackSynthesizer:
    """Deterministic substitute results for every operation."""

    def synthesize(
        self,
        operation: Operation,
        context: Mapping[str, str],
        version: int = 1,
    ) -> AIResult:
        try:
            operation = Operation(operation)
            builder = getattr(self, f"_build_{operation.value}")
            return builder(context, version)
        except Exception as exc:
            logger.error(
                "ai_fallback_synthesis_failed",
                operation=str(operation),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return self._minimal(operation, context, version)

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------

    def completeness(self, operation: Operation, context: Mapping[str, str]) -> float:
        expected = EXPECTED_FIELDS[Operation(operation)]
        present = sum(1 for key in expected if _present(context, key))
        return present / len(expected)

    def missing_keys(self, operation: Operation, context: Mapping[str, str]) -> List[str]:
        return [key for key in EXPECTED_FIELDS[Operation(operation)] if not _present(context, key)]

    @staticmethod
    def priority_for(ratio: float) -> str:
        if ratio < HIGH_PRIORITY_BELOW:
            return "high"
        if ratio < MEDIUM_PRIORITY_BELOW:
            return "medium"
        return "low"

    @staticmethod
    def confidence_for(ratio: float) -> float:
        return round(FALLBACK_CONFIDENCE_SCALE * ratio, 2)

    def _gap_actions(self, missing: List[str]) -> List[str]:
        return [f"Collect or verify the {FIELD_INFO[key][0]}" for key in missing]

    # ------------------------------------------------------------------
    # Builders, one per operation
    # ------------------------------------------------------------------

    def _build_generate_summary(self, context: Mapping[str, str], version: int) -> Summary:
        op = Operation.GENERATE_SUMMARY
        ratio = self.completeness(op, context)
        content = (
            f"{FALLBACK_MARKER} Automated summary unavailable. "
            f"{_value(context, 'applicationType')} application from "
            f"{_value(context, 'applicantName')} is at step '{_value(context, 'currentStep')}' "
            f"with status '{_value(context, 'status')}'. "
            f"{_count_items(context, 'documents')} document(s) on file; "
            f"{round(ratio * 100)}% of the expected case information is present."
        )
        recommendations = self._gap_actions(self.missing_keys(op, context))
        recommendations.append("Review the case manually and regenerate the summary later")
        return Summary(
            case_id=_value(context, "caseId"),
            content=content,
            recommendations=recommendations,
            confidence=self.confidence_for(ratio),
            version=version,
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    def _build_generate_recommendation(self, context: Mapping[str, str], version: int) -> Recommendation:
        op = Operation.GENERATE_RECOMMENDATION
        ratio = self.completeness(op, context)
        step = ProcessStep(_value(context, "step", ProcessStep.RECEIVED.value))
        recommendations = [
            f"{FALLBACK_MARKER} AI recommendations unavailable; review the "
            f"'{step.value}' step manually."
        ]
        recommendations.extend(self._gap_actions(self.missing_keys(op, context)))
        return Recommendation(
            case_id=_value(context, "caseId"),
            step=step,
            recommendations=recommendations,
            priority=self.priority_for(ratio),
            confidence=self.confidence_for(ratio),
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    def _build_analyze_application(self, context: Mapping[str, str], version: int) -> AnalysisReport:
        op = Operation.ANALYZE_APPLICATION
        ratio = self.completeness(op, context)
        missing = self.missing_keys(op, context)
        document_count = _count_items(context, "documents")
        return AnalysisReport(
            summary=(
                f"{FALLBACK_MARKER} Automated analysis unavailable. "
                f"{_value(context, 'applicationType')} application from "
                f"{_value(context, 'applicantName')}; {round(ratio * 100)}% of the "
                f"expected application information is present."
            ),
            key_points=[
                f"Application type: {_value(context, 'applicationType')}",
                f"Documents provided: {document_count}",
                f"Form fields provided: {_count_items(context, 'formDataFields')}",
            ],
            potential_issues=[f"No {FIELD_INFO[key][0]} provided" for key in missing],
            recommended_actions=["Review the application manually"] + self._gap_actions(missing),
            priority_level=self.priority_for(ratio),
            estimated_processing_time="Unknown - manual review required",
            required_documents=[] if document_count else ["Supporting documents"],
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    def _build_generate_final_summary(self, context: Mapping[str, str], version: int) -> FinalSummary:
        status = _value(context, "status")
        if status == CaseStatus.APPROVED.value:
            decision = "approved"
        elif status == CaseStatus.DENIED.value:
            decision = "denied"
        else:
            decision = "requires_additional_info"
        history = [line.strip() for line in context.get("processHistory", "").split("\n") if line.strip()]
        return FinalSummary(
            case_id=_value(context, "caseId"),
            overall_summary=(
                f"{FALLBACK_MARKER} Automated final summary unavailable. "
                f"Case {_value(context, 'caseId')} for {_value(context, 'applicantName')} "
                f"({_value(context, 'applicationType')}) closed with status '{status}' "
                f"after {len(history)} recorded action(s)."
            ),
            key_decisions=[],
            outcomes=[f"Final status: {status}"],
            process_history=history,
            recommended_decision=decision,
            supporting_rationale=[
                f"{FALLBACK_MARKER} Decision derived from the recorded case status '{status}'"
            ],
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    def _build_validate_completeness(self, context: Mapping[str, str], version: int) -> CompletenessReport:
        op = Operation.VALIDATE_COMPLETENESS
        ratio = self.completeness(op, context)
        missing = self.missing_keys(op, context)

        try:
            current = ProcessStep(_value(context, "currentStep", ProcessStep.RECEIVED.value))
        except ValueError:
            current = ProcessStep.RECEIVED
        earlier = [step.value for step in required_steps_before(current)]
        if "completedSteps" in context:
            completed = {part.strip() for part in str(context["completedSteps"]).split(",")}
        else:
            completed = set(earlier)
        missing_steps = [step for step in earlier if step not in completed]
        missing_documents = [] if _present(context, "documents") else ["Supporting documents"]

        return CompletenessReport(
            case_id=_value(context, "caseId"),
            is_complete=not missing and not missing_steps,
            missing_steps=missing_steps,
            missing_documents=missing_documents,
            recommendations=[
                f"{FALLBACK_MARKER} Automated completeness check unavailable; verify the case manually."
            ] + self._gap_actions(missing),
            confidence=self.confidence_for(ratio),
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    def _build_detect_missing_fields(self, context: Mapping[str, str], version: int) -> MissingFieldsReport:
        op = Operation.DETECT_MISSING_FIELDS
        ratio = self.completeness(op, context)
        missing = self.missing_keys(op, context)
        fields = [
            MissingField(
                field_name=FIELD_INFO[key][0],
                field_type=FIELD_INFO[key][1],
                importance=FIELD_INFO[key][2],
                suggested_action=f"Ask the applicant to provide the {FIELD_INFO[key][0]}",
            )
            for key in missing
        ]
        required = [f.field_name for f in fields if f.importance == "required"]
        priority_actions = [
            f"{FALLBACK_MARKER} Automated field check unavailable; review the application manually."
        ]
        priority_actions.extend(f"Obtain the {name}" for name in required)
        minutes = MINUTES_PER_MISSING_FIELD * len(fields)
        return MissingFieldsReport(
            missing_fields=fields,
            completeness_score=round(ratio * 100, 1),
            priority_actions=priority_actions,
            estimated_completion_time=f"{minutes} minutes" if minutes else "No missing fields detected",
            source="fallback",
            model_id=FALLBACK_MODEL_ID,
        )

    # ------------------------------------------------------------------

    def _minimal(self, operation: Operation, context: Mapping[str, str], version: int) -> AIResult:
        """Last resort when a builder fails; uses literals only."""
        case_id = str(context.get("caseId") or "unknown")
        note = f"{FALLBACK_MARKER} Result unavailable; manual review required."
        common = {"source": "fallback", "model_id": FALLBACK_MODEL_ID}
        if operation == Operation.GENERATE_RECOMMENDATION:
            return Recommendation(
                case_id=case_id, step=ProcessStep.RECEIVED, recommendations=[note],
                priority="high", confidence=0.0, **common,
            )
        if operation == Operation.ANALYZE_APPLICATION:
            return AnalysisReport(
                summary=note, key_points=[], potential_issues=[], recommended_actions=[note],
                priority_level="high", estimated_processing_time="Unknown",
                required_documents=[], **common,
            )
        if operation == Operation.GENERATE_FINAL_SUMMARY:
            return FinalSummary(
                case_id=case_id, overall_summary=note, key_decisions=[], outcomes=[],
                process_history=[], recommended_decision="requires_additional_info",
                supporting_rationale=[note], **common,
            )
        if operation == Operation.VALIDATE_COMPLETENESS:
            return CompletenessReport(
                case_id=case_id, is_complete=False, missing_steps=[], missing_documents=[],
                recommendations=[note], confidence=0.0, **common,
            )
        if operation == Operation.DETECT_MISSING_FIELDS:
            return MissingFieldsReport(
                missing_fields=[], completeness_score=0.0, priority_actions=[note],
                estimated_completion_time="Unknown", **common,
            )
        return Summary(
            case_id=case_id, content=note, recommendations=[note], confidence=0.0,
            version=max(version, 1), **common,
        )
