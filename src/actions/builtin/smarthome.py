"""
Smart home actions: devices and automation rules.
"""

import re
from typing import Any, Dict

from classify.core.types import ContentItem

from .text import has_term, item_text


DEVICES = [
    "smart switch", "smart plug", "smart bulb", "smart lock",
    "thermostat", "camera", "doorbell", "sensor", "hub",
    "alexa", "google home", "home assistant", "zigbee", "z-wave",
]

ECOSYSTEMS = [
    ("Home Assistant", re.compile(r"home assistant|hass", re.IGNORECASE)),
    ("Amazon Alexa", re.compile(r"alexa|echo", re.IGNORECASE)),
    ("Google Home", re.compile(r"google home|nest", re.IGNORECASE)),
    ("Apple HomeKit", re.compile(r"apple homekit", re.IGNORECASE)),
]

TRIGGERS = ["when", "if", "trigger", "motion detected", "door opens"]
AUTOMATION_ACTIONS = ["turn on", "turn off", "set", "notify", "send"]

DEFAULT_MAX_RULES = 5


def identify_ecosystem(text: str) -> str:
    return next((name for name, pattern in ECOSYSTEMS if pattern.search(text)), "unknown")


def extract_devices(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    found = [device for device in DEVICES if has_term(text, device)]
    return {
        "smart_devices": found,
        "device_count": len(found),
        "ecosystem": identify_ecosystem(text),
    }


def extract_automation(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    rules = []
    for trigger in TRIGGERS:
        for action in AUTOMATION_ACTIONS:
            pattern = re.compile(
                rf"\b{re.escape(trigger)}\b[^.]+?\b{re.escape(action)}\b", re.IGNORECASE
            )
            rules.extend(pattern.findall(text))

    return {
        "automation_rules": rules[: config.get("max_rules", DEFAULT_MAX_RULES)],
        "rule_count": len(rules),
        "has_automations": bool(rules),
    }
