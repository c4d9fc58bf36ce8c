"""
Ollama classification provider.

Uses the native /api/chat endpoint in non-streaming mode with the output
schema passed as ``format`` for structured output.
"""

import logging

from ..core.types import ClassificationRequest
from ..prompts.classification import OUTPUT_SCHEMA, build_messages
from .base import ClassificationProvider


logger = logging.getLogger(__name__)


class OllamaProvider(ClassificationProvider):
    """
    Local Ollama provider; needs no API key.

    Example:
        >>> provider = OllamaProvider(ProviderConfig(name="ollama"))
        >>> attempt = provider.classify(request)
    """

    name = "ollama"

    def _complete(self, request: ClassificationRequest) -> str:
        payload = {
            "model": self.model,
            "messages": build_messages(request),
            "stream": False,
            "format": OUTPUT_SCHEMA,
        }

        options = {}
        if self.config.temperature is not None:
            options["temperature"] = self.config.temperature
        if self.config.max_tokens is not None:
            options["num_predict"] = self.config.max_tokens
        if options:
            payload["options"] = options

        payload.update(self.config.extra_params)

        result = self._post_json(f"{self.base_url}/api/chat", payload)

        message = result.get("message") if isinstance(result, dict) else None
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise self._envelope_error("missing message.content")
        return message["content"]
