"""
OpenAI classification provider (chat completions REST API).
"""

import logging

from ..core.types import ClassificationRequest
from ..prompts.classification import build_messages
from .base import ClassificationProvider


logger = logging.getLogger(__name__)


class OpenAIProvider(ClassificationProvider):
    """Provider backed by OpenAI's /chat/completions endpoint."""

    name = "openai"

    def _complete(self, request: ClassificationRequest) -> str:
        payload = {
            "model": self.model,
            "messages": build_messages(request),
            "temperature": self.config.temperature,
            "response_format": {"type": "json_object"},
        }
        if self.config.max_tokens is not None:
            payload["max_tokens"] = self.config.max_tokens
        payload.update(self.config.extra_params)

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        result = self._post_json(f"{self.base_url}/chat/completions", payload, headers=headers)

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._envelope_error(f"missing choices[0].message.content ({e})") from e
        if not isinstance(content, str):
            raise self._envelope_error("message content is not text")
        return content
