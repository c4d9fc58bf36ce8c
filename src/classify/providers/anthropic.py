"""
Anthropic classification provider (messages REST API).
"""

import logging

from ..core.types import ClassificationRequest
from ..prompts.classification import SYSTEM_PROMPT, build_user_message
from .base import ClassificationProvider


logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ClassificationProvider):
    """Provider backed by Anthropic's /messages endpoint."""

    name = "anthropic"

    def _complete(self, request: ClassificationRequest) -> str:
        payload = {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_user_message(request)}],
            "max_tokens": self.config.max_tokens or 300,
            "temperature": self.config.temperature,
        }
        payload.update(self.config.extra_params)

        headers = {
            "x-api-key": self.config.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        result = self._post_json(f"{self.base_url}/messages", payload, headers=headers)

        blocks = result.get("content") if isinstance(result, dict) else None
        if not isinstance(blocks, list):
            raise self._envelope_error("missing content blocks")
        texts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        if not texts:
            raise self._envelope_error("no text content block")
        return "".join(texts)
