"""
Prompt rendering.

Pure functions: merge an invocation context into a template body and append
the output-format instruction the response validator parses against.
"""
import json
import re
from datetime import date, datetime
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Type

if TYPE_CHECKING:
    from caseflow.services.ai.schema import ResponsePayload
    from caseflow.services.ai.templates import OperationTemplate

EMPTY_MARKER = "none"

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def format_value(value: Any) -> str:
    """Render one context value as prompt text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, indent=2, default=str)
    return str(value)


def placeholders(body: str) -> List[str]:
    """Placeholder names in order of first appearance."""
    seen: List[str] = []
    for name in PLACEHOLDER_RE.findall(body):
        if name not in seen:
            seen.append(name)
    return seen


def substitute(body: str, context: Mapping[str, Any]) -> str:
    """
    Replace every ``{{name}}`` in ``body``.

    Missing, None or blank values become ``none`` so the model never sees
    raw template syntax.
    """

    def _replace(match: "re.Match[str]") -> str:
        text = format_value(context.get(match.group(1))).strip()
        return text if text else EMPTY_MARKER

    return PLACEHOLDER_RE.sub(_replace, body)


def text_renderer(body: str) -> Callable[[Mapping[str, Any]], str]:
    return partial(substitute, body)


def format_instruction(schema: "Type[ResponsePayload]") -> str:
    """Describe the exact JSON object expected back from the model."""
    lines = [
        "Respond with a single JSON object only, with no markdown, comments or text outside it.",
        "Use exactly these keys and value types:",
        json.dumps(schema.FORMAT_EXAMPLE, indent=2),
    ]
    if schema.FORMAT_NOTES:
        lines.append("Constraints:")
        lines.extend(f"- {note}" for note in schema.FORMAT_NOTES)
    return "\n".join(lines)


def render(template: "OperationTemplate", context: Mapping[str, Any]) -> str:
    """Build the literal prompt text sent to the model."""
    body = template.renderer(context).rstrip()
    return f"{body}\n\n{format_instruction(template.response_schema)}"
