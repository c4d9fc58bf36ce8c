"""
DIY electronics actions: project details and components.
"""

import re
from typing import Any, Dict

from classify.core.types import ContentItem

from .text import has_term, item_text


DURATION = re.compile(r"(\d+)\s*(hours?|hrs?|minutes?|mins?|days?)", re.IGNORECASE)
TOOLS = ["soldering iron", "multimeter", "breadboard", "jumper wires", "screwdriver"]
COMPONENTS = [
    "arduino", "raspberry pi", "esp32", "esp8266", "atmega",
    "resistor", "capacitor", "transistor", "led", "sensor",
    "motor", "servo", "stepper", "relay", "switch",
]

# Checked in order, first match wins
DIFFICULTY_PATTERNS = [
    ("beginner", re.compile(r"beginner|easy|simple|basic", re.IGNORECASE)),
    ("advanced", re.compile(r"advanced|expert|complex|difficult", re.IGNORECASE)),
    ("intermediate", re.compile(r"intermediate|medium", re.IGNORECASE)),
]
PROJECT_TYPE_PATTERNS = [
    ("electronics", re.compile(r"electronics?|circuit|wiring", re.IGNORECASE)),
    ("woodworking", re.compile(r"woodworking|wood|lumber", re.IGNORECASE)),
    ("3d_printing", re.compile(r"3d print|printer|filament", re.IGNORECASE)),
    ("home_automation", re.compile(r"home|house|automation", re.IGNORECASE)),
]


def _first_match(patterns, text: str, default: str) -> str:
    return next((label for label, pattern in patterns if pattern.search(text)), default)


def project_details(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    duration = DURATION.search(text)
    return {
        "project_details": {
            "difficulty_level": _first_match(DIFFICULTY_PATTERNS, text, "unknown"),
            "estimated_duration": duration.group(0) if duration else "unknown",
            "tools_required": [tool for tool in TOOLS if has_term(text, tool)],
            "project_type": _first_match(PROJECT_TYPE_PATTERNS, text, "general"),
        }
    }


def components(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    found = [component for component in COMPONENTS if has_term(text, component)]

    if len(found) > 5:
        complexity = "advanced"
    elif len(found) > 2:
        complexity = "intermediate"
    else:
        complexity = "beginner"

    return {
        "components_identified": found,
        "component_count": len(found),
        "complexity": complexity,
    }
