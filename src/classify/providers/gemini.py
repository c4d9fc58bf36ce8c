"""
Google Gemini classification provider (generateContent REST API).
"""

import logging

from ..core.types import ClassificationRequest
from ..prompts.classification import SYSTEM_PROMPT, build_user_message
from .base import ClassificationProvider


logger = logging.getLogger(__name__)


class GeminiProvider(ClassificationProvider):
    """Provider backed by Gemini's models/{model}:generateContent endpoint."""

    name = "gemini"

    def _complete(self, request: ClassificationRequest) -> str:
        generation_config = {
            "temperature": self.config.temperature,
            "responseMimeType": "application/json",
        }
        if self.config.max_tokens is not None:
            generation_config["maxOutputTokens"] = self.config.max_tokens

        payload = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [
                {"role": "user", "parts": [{"text": build_user_message(request)}]}
            ],
            "generationConfig": generation_config,
        }
        payload.update(self.config.extra_params)

        url = f"{self.base_url}/models/{self.model}:generateContent"
        result = self._post_json(url, payload, params={"key": self.config.api_key or ""})

        try:
            parts = result["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._envelope_error(f"missing candidates[0].content.parts ({e})") from e
        texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
        text = "".join(texts)
        if not text:
            raise self._envelope_error("empty candidate text")
        return text
