"""
Parsing and validation of provider responses.

Providers return free text; this module turns it into a validated
{label, confidence, reasoning} dict or raises ResponseValidationError.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .core.exceptions import ResponseValidationError
from .core.types import ErrorKind


logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 200

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence, if present."""
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def extract_json_object(content: str) -> Tuple[bool, Optional[Dict[str, Any]], List[str]]:
    """
    Parse a JSON object from model output.

    This function handles:
    1. Direct JSON parsing
    2. Markdown code fences around the JSON
    3. Extraction of the first balanced {...} block embedded in text

    Args:
        content: Raw model output

    Returns:
        Tuple of (success, parsed_dict, error_list)

    Example:
        >>> ok, data, errors = extract_json_object('Sure: {"label": "Sports"}')
        >>> data["label"]
        'Sports'
    """
    errors = []

    if content is None:
        return False, None, ["Empty response"]

    try:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            return True, parsed, errors
        errors.append("Direct parse returned a non-object")
    except json.JSONDecodeError as e:
        errors.append(f"Direct parse failed: {e}")

    stripped = strip_code_fences(content)
    try:
        parsed = json.loads(stripped)
        if isinstance(parsed, dict):
            return True, parsed, errors
        errors.append("Fence-stripped parse returned a non-object")
    except json.JSONDecodeError as e:
        errors.append(f"Fence-stripped parse failed: {e}")

    start = stripped.find("{")
    if start < 0:
        errors.append("Embedded parse failed: no opening brace found")
        return False, None, errors

    # Simple bracket counting to find matching close, skipping string contents
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(stripped)):
        ch = stripped[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(stripped[start:i + 1])
                except json.JSONDecodeError as e:
                    errors.append(f"Embedded parse failed: {e}")
                    return False, None, errors
                if isinstance(parsed, dict):
                    return True, parsed, errors
                errors.append("Embedded parse returned a non-object")
                return False, None, errors

    errors.append("Embedded parse failed: no matching closing brace")
    return False, None, errors


def validate_classification_output(data: Dict[str, Any]) -> List[str]:
    """
    Validate a dictionary against the classification output contract.

    Returns a list of validation errors (empty if valid).
    """
    errors = []

    if not isinstance(data, dict):
        return ["Output must be an object"]

    if "label" not in data:
        errors.append("Missing required field: label")
    elif not isinstance(data["label"], str):
        errors.append("label must be a string")
    elif not data["label"].strip():
        errors.append("label must not be empty")
    elif len(data["label"]) > MAX_LABEL_LENGTH:
        errors.append(f"label must be at most {MAX_LABEL_LENGTH} characters")

    if "confidence" not in data:
        errors.append("Missing required field: confidence")
    else:
        conf = data["confidence"]
        if isinstance(conf, bool) or not isinstance(conf, (int, float)):
            errors.append("confidence must be a number")
        elif conf != conf or conf < 0.0 or conf > 1.0:
            errors.append("confidence must be between 0.0 and 1.0")

    if "reasoning" not in data:
        errors.append("Missing required field: reasoning")
    elif not isinstance(data["reasoning"], str):
        errors.append("reasoning must be a string")

    return errors


def parse_classification_response(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse and validate a provider's text output.

    Args:
        content: Raw text returned by the provider

    Returns:
        Dict with ``label`` (stripped), ``confidence`` (float) and ``reasoning``

    Raises:
        ResponseValidationError: With kind ``parse`` when no JSON object can be
            extracted, or kind ``validation`` when the object breaks the contract
    """
    ok, data, parse_errors = extract_json_object(content)
    if not ok:
        logger.debug(f"Unparsable provider output: {parse_errors}")
        raise ResponseValidationError(
            "Response is not a JSON object",
            validation_errors=parse_errors,
            kind=ErrorKind.PARSE.value,
        )

    errors = validate_classification_output(data)
    if errors:
        raise ResponseValidationError(
            f"Response failed validation: {'; '.join(errors)}",
            validation_errors=errors,
            kind=ErrorKind.VALIDATION.value,
        )

    return {
        "label": data["label"].strip(),
        "confidence": float(data["confidence"]),
        "reasoning": data["reasoning"],
    }
