"""
Unit tests for the shared response validator.
"""
import json

import pytest

from caseflow.services.ai.errors import UnknownOperationError
from caseflow.services.ai.schema import MissingFieldsPayload, OverallSummaryPayload
from caseflow.services.ai.templates import build_default_registry
from caseflow.services.ai.validation import (
    UNPARSEABLE_RESPONSE,
    ResponseValidator,
    parse_json_object,
)


@pytest.fixture
def validator():
    return ResponseValidator(build_default_registry())


VALID_SUMMARY = {
    "content": "Test summary",
    "recommendations": ["Test recommendation"],
    "confidence": 0.85,
}


class TestParseJsonObject:

    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
        assert parse_json_object('```\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("raw", [None, "", "   ", "not json", "[1, 2]", '"text"', "42", '{"a": 1'])
    def test_non_objects(self, raw):
        assert parse_json_object(raw) is None


def test_valid_summary(validator):
    outcome = validator.validate("overall_summary_v1", json.dumps(VALID_SUMMARY))

    assert outcome.valid
    assert outcome.errors == []
    assert isinstance(outcome.data, OverallSummaryPayload)
    assert outcome.data.confidence == pytest.approx(0.85)


def test_extra_keys_are_ignored(validator):
    outcome = validator.validate(
        "overall_summary_v1", json.dumps({**VALID_SUMMARY, "notes": "extra"})
    )
    assert outcome.valid


def test_integer_confidence_is_a_number(validator):
    outcome = validator.validate("overall_summary_v1", json.dumps({**VALID_SUMMARY, "confidence": 1}))
    assert outcome.valid


@pytest.mark.parametrize("raw", ["Looks good to me", "[]", ""])
def test_unparseable(validator, raw):
    outcome = validator.validate("overall_summary_v1", raw)

    assert not outcome.valid
    assert outcome.data is None
    assert outcome.errors == [UNPARSEABLE_RESPONSE]


@pytest.mark.parametrize(
    "override,field",
    [
        ({"confidence": 1.2}, "confidence"),
        ({"confidence": -0.1}, "confidence"),
        ({"confidence": "0.8"}, "confidence"),
        ({"confidence": True}, "confidence"),
        ({"content": "too short"}, "content"),
        ({"content": 42}, "content"),
        ({"recommendations": []}, "recommendations"),
        ({"recommendations": "do this"}, "recommendations"),
    ],
)
def test_summary_constraint_violations(validator, override, field):
    outcome = validator.validate("overall_summary_v1", json.dumps({**VALID_SUMMARY, **override}))

    assert not outcome.valid
    assert any(error.startswith(field) for error in outcome.errors)


def test_all_violations_are_listed(validator):
    outcome = validator.validate("overall_summary_v1", json.dumps({"confidence": 3}))

    fields = {error.split(":")[0] for error in outcome.errors}
    assert {"content", "recommendations", "confidence"} <= fields


def test_priority_must_be_enumerated(validator):
    payload = {"recommendations": ["a"], "priority": "urgent", "confidence": 0.5}
    outcome = validator.validate("step_recommendation_v1", json.dumps(payload))

    assert not outcome.valid
    assert outcome.errors[0].startswith("priority")


def test_completeness_requires_real_boolean(validator):
    payload = {
        "isComplete": "true",
        "missingSteps": [],
        "missingDocuments": [],
        "recommendations": [],
        "confidence": 0.9,
    }
    outcome = validator.validate("completeness_validation_v1", json.dumps(payload))

    assert not outcome.valid
    assert outcome.errors[0].startswith("isComplete")


def test_nested_missing_field_errors_have_paths(validator):
    payload = {
        "missingFields": [{"fieldName": "phone", "fieldType": "text", "importance": "nice"}],
        "completenessScore": 50,
        "priorityActions": [],
        "estimatedCompletionTime": "1 hour",
    }
    outcome = validator.validate("missing_fields_v1", json.dumps(payload))

    assert not outcome.valid
    assert any(error.startswith("missingFields.0.importance") for error in outcome.errors)
    assert any(error.startswith("missingFields.0.suggestedAction") for error in outcome.errors)


def test_missing_fields_valid(validator):
    payload = {
        "missingFields": [],
        "completenessScore": 100,
        "priorityActions": [],
        "estimatedCompletionTime": "none",
    }
    outcome = validator.validate("missing_fields_v1", json.dumps(payload))

    assert outcome.valid
    assert isinstance(outcome.data, MissingFieldsPayload)


def test_unknown_template(validator):
    with pytest.raises(UnknownOperationError):
        validator.validate("unknown_v1", json.dumps(VALID_SUMMARY))
