"""Turn free-form model output into a validated StructuredResume.

The model is asked for bare JSON but frequently wraps it in a fenced code
block with some prose around it. ``parse`` finds the first fenced block (or
falls back to the whole text) and decodes it; ``validate`` enforces the
StructuredResume schema on the result.
"""

import json
import logging
import re

from pydantic import ValidationError

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services.errors import ParseError, SchemaValidationError

logger = logging.getLogger(__name__)

# First ``` or ```json fenced block, non-greedy so trailing fences are ignored
_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

_LOG_PREVIEW_CHARS = 500


def extract_candidate(raw_text: str) -> str:
    """Return the JSON candidate substring of ``raw_text``."""
    match = _FENCE_RE.search(raw_text)
    if match:
        return match.group(1)
    return raw_text.strip()


def parse(raw_text: str) -> dict:
    """Decode the JSON object embedded in ``raw_text``.

    Only syntactic well-formedness is checked here; see ``validate``.
    Raises ParseError (with the raw text attached) on failure.
    """
    if not raw_text or not raw_text.strip():
        raise ParseError("Failed to parse AI response: empty output", raw_text=raw_text or "")

    candidate = extract_candidate(raw_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error(
            "Failed to parse AI response as JSON: %s; raw output: %.*s",
            e, _LOG_PREVIEW_CHARS, raw_text,
        )
        raise ParseError("Failed to parse AI response", raw_text=raw_text) from e

    if not isinstance(data, dict):
        logger.error("AI response is JSON but not an object: %.*s", _LOG_PREVIEW_CHARS, raw_text)
        raise ParseError("Failed to parse AI response: expected a JSON object", raw_text=raw_text)
    return data


def validate(data: dict) -> StructuredResume:
    """Check a parsed payload against the StructuredResume schema."""
    try:
        return StructuredResume.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        logger.error("AI response failed schema validation: %s", "; ".join(problems))
        raise SchemaValidationError(
            "AI response does not match the expected resume structure",
            errors=problems,
        ) from e


def normalize(raw_text: str) -> StructuredResume:
    """Parse and validate in one step."""
    return validate(parse(raw_text))
