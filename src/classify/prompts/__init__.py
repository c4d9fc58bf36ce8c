"""
Prompt templates for classification providers.
"""

from .classification import (
    PROMPT_VERSION,
    SYSTEM_PROMPT,
    OUTPUT_SCHEMA,
    build_messages,
    build_user_message,
)

__all__ = [
    "PROMPT_VERSION",
    "SYSTEM_PROMPT",
    "OUTPUT_SCHEMA",
    "build_messages",
    "build_user_message",
]
