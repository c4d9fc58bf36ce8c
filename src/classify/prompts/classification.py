"""
Prompts for content classification.

Model-agnostic prompts shared by every provider in the chain. The response
contract is a single JSON object: {"label": str, "confidence": float, "reasoning": str}.
"""

from typing import Dict, List

from ..core.types import ClassificationRequest


# Version identifier for prompt tracking
PROMPT_VERSION = "v1_label_confidence"


SYSTEM_PROMPT = """You are a content classifier. You will be given the title, source and a bounded excerpt of a captured article, video or post, plus the list of allowed categories. Pick the ONE category that best describes the content.

OUTPUT RULES (STRICT):
- Return ONLY a JSON object: {"label": "<category>", "confidence": <0.0-1.0>, "reasoning": "<one sentence>"}
- No markdown, no code fences, no extra keys, no commentary
- "label" must be one of the allowed categories, spelled exactly as listed

HINTS:
- Hints come from static domain and keyword rules
- Treat them as a soft prior, not as the answer

CONFIDENCE CALIBRATION:
- 0.90-1.00: title + excerpt clearly match one category
- 0.70-0.89: mostly clear, minor ambiguity
- below 0.70: uncertain
"""


def build_user_message(request: ClassificationRequest) -> str:
    """
    Build the user message for one classification request.

    Args:
        request: The classification request

    Returns:
        Plain-text user message embedding categories, content and hints
    """
    lines = ["Allowed categories:"]
    lines.extend(f"- {name}" for name in request.categories)
    lines.append("")
    lines.append("Content:")
    lines.append(f"Title: {request.title}")
    lines.append(f"Source: {request.source or 'unknown'}")
    lines.append(f"Text: {request.excerpt}")

    if request.hints:
        lines.append("")
        lines.append("Hints based on domain and keyword rules:")
        lines.extend(f"- {hint}" for hint in request.hints)

    lines.append("")
    lines.append(
        'Respond with ONLY the JSON object {"label", "confidence", "reasoning"}.'
    )
    return "\n".join(lines)


def build_messages(request: ClassificationRequest) -> List[Dict[str, str]]:
    """
    Build the chat messages list for the classification call.

    Args:
        request: The classification request

    Returns:
        List of message dicts for chat-style APIs
    """
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_message(request)},
    ]


# JSON schema used by providers that accept a structured-output schema
OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "label": {"type": "string"},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "reasoning": {"type": "string"},
    },
    "required": ["label", "confidence", "reasoning"],
}
