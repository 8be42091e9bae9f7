"""
Response validation.

Model output must be a JSON object matching the operation's response schema.
Plain prose is never accepted as content: domain results need structured
fields, so anything that does not parse is reported as unparseable.
"""
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from caseflow.core.logging import get_logger
from caseflow.services.ai.schema import ValidationOutcome
from caseflow.services.ai.templates import TemplateRegistry

logger = get_logger(__name__)

UNPARSEABLE_RESPONSE = "unparseable response"

# Models often wrap JSON in a markdown code fence despite instructions.
_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def parse_json_object(raw_text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the JSON object in ``raw_text``, or None if there is none."""
    if not raw_text:
        return None
    text = raw_text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def format_errors(exc: ValidationError) -> List[str]:
    """One ``path: message`` entry per failed check."""
    errors = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "root"
        errors.append(f"{path}: {error['msg']}")
    return errors


class ResponseValidator:
    """Checks raw model text against the registered response schemas."""

    def __init__(self, registry: TemplateRegistry):
        self._registry = registry

    def validate(self, template_id: str, raw_text: Optional[str]) -> ValidationOutcome:
        """
        Parse and validate ``raw_text`` for ``template_id``.

        Returns:
            ValidationOutcome with ``data`` set to the parsed payload model when
            every check passes, otherwise the full list of failed checks.

        Raises:
            UnknownOperationError if no template is registered under the id.
        """
        schema = self._registry.get_template(template_id).response_schema

        payload = parse_json_object(raw_text)
        if payload is None:
            logger.debug("ai_response_unparseable", template_id=template_id)
            return ValidationOutcome(valid=False, errors=[UNPARSEABLE_RESPONSE])

        try:
            data = schema.model_validate(payload)
        except ValidationError as exc:
            errors = format_errors(exc)
            logger.debug("ai_response_schema_invalid", template_id=template_id, errors=errors)
            return ValidationOutcome(valid=False, errors=errors)

        return ValidationOutcome(valid=True, data=data)
