"""
Base class for classification providers.

Every provider implements one operation, ``classify(request) -> ClassificationAttempt``,
with a uniform timeout and error contract: transport problems, quota rejections
and malformed output all come back as a failed attempt, never as an exception.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..core.exceptions import ProviderError, ResponseValidationError
from ..core.logging import log_with_context
from ..core.types import (
    ClassificationAttempt,
    ClassificationRequest,
    ErrorKind,
    ProviderConfig,
)
from ..parsing import parse_classification_response


logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("quota", "rate limit", "rate_limit", "resource_exhausted", "insufficient_quota")


class ClassificationProvider(ABC):
    """
    Abstract classification provider.

    Subclasses implement ``_complete`` (send the prompt, return the model's
    text). Error mapping, parsing and validation live here.
    """

    name: str = "base"

    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None):
        """
        Initialize the provider.

        Args:
            config: Provider configuration
            session: Optional shared requests session
        """
        self.config = config
        self.model = config.model
        self.base_url = (config.base_url or "").rstrip("/")
        self.timeout = config.timeout_seconds
        self.session = session or requests.Session()

        logger.debug(
            f"Initialized {self.__class__.__name__}: base_url={self.base_url}, "
            f"model={self.model}, timeout={self.timeout}s"
        )

    @abstractmethod
    def _complete(self, request: ClassificationRequest) -> str:
        """
        Send the classification prompt and return the model's raw text.

        Raises:
            ProviderError: If the call fails or the envelope is malformed
        """
        pass

    def classify(self, request: ClassificationRequest) -> ClassificationAttempt:
        """
        Classify one request.

        Args:
            request: The classification request

        Returns:
            ClassificationAttempt (success or typed failure)
        """
        start = time.monotonic()
        log_with_context(
            logger, logging.DEBUG, f"Calling provider {self.name}", provider=self.name
        )

        try:
            text = self._complete(request)
            parsed = parse_classification_response(text)
        except ProviderError as e:
            return self._failed(ErrorKind(e.kind), str(e), start)
        except ResponseValidationError as e:
            return self._failed(ErrorKind(e.kind), str(e), start)

        attempt = ClassificationAttempt(
            provider=self.name,
            success=True,
            raw_label=parsed["label"],
            confidence=parsed["confidence"],
            reasoning=parsed["reasoning"],
            model=self.model,
            duration_ms=self._elapsed_ms(start),
        )
        log_with_context(
            logger,
            logging.INFO,
            f"Provider {self.name} returned label '{attempt.raw_label}' "
            f"(confidence={attempt.confidence:.2f})",
            provider=self.name,
        )
        return attempt

    def _failed(self, kind: ErrorKind, message: str, start: float) -> ClassificationAttempt:
        log_with_context(
            logger,
            logging.WARNING,
            f"Provider {self.name} failed ({kind.value}): {message}",
            provider=self.name,
        )
        return ClassificationAttempt.failed(
            provider=self.name,
            error_kind=kind,
            error_message=message,
            model=self.model,
            duration_ms=self._elapsed_ms(start),
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)

    def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON response.

        Raises:
            ProviderError: With kind timeout/network/quota/http/parse
        """
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderError(
                f"Request to {self.name} timed out after {self.timeout}s: {e}",
                provider=self.name,
                kind=ErrorKind.TIMEOUT.value,
            ) from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(
                f"Failed to connect to {self.name}: {e}",
                provider=self.name,
                kind=ErrorKind.NETWORK.value,
            ) from e

        if response.status_code >= 400:
            body = response.text[:500] if response.text else ""
            raise ProviderError(
                f"{self.name} API error: {response.status_code} - {body}",
                provider=self.name,
                status_code=response.status_code,
                kind=self._http_error_kind(response.status_code, body),
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Invalid JSON envelope from {self.name}: {e}",
                provider=self.name,
                status_code=response.status_code,
                kind=ErrorKind.PARSE.value,
            ) from e

    @staticmethod
    def _http_error_kind(status_code: int, body: str) -> str:
        if status_code == 429:
            return ErrorKind.QUOTA.value
        lowered = body.lower()
        if any(marker in lowered for marker in QUOTA_MARKERS):
            return ErrorKind.QUOTA.value
        return ErrorKind.HTTP.value

    def _envelope_error(self, message: str) -> ProviderError:
        return ProviderError(
            f"Unexpected {self.name} response shape: {message}",
            provider=self.name,
            kind=ErrorKind.PARSE.value,
        )
