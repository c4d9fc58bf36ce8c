"""
Classification Provider Chain.

Calls providers in a fixed priority order. Each call has an independent
timeout; any failure (network, timeout, quota, unparsable or invalid output)
advances to the next provider. When every provider is exhausted the chain
returns a typed NoClassification result instead of raising.
"""

import logging
import time
from typing import List, Optional

from .cache import ClassificationCache
from .core.logging import CorrelationContext, log_with_context
from .core.types import (
    ChainResult,
    ClassificationAttempt,
    ClassificationRequest,
    ContentItem,
    ErrorKind,
    NoClassification,
)
from .core.utils import CallTimeoutError, call_with_timeout, content_fingerprint, truncate_text
from .providers.base import ClassificationProvider


logger = logging.getLogger(__name__)

# Slack on top of the provider's own HTTP timeout before the chain gives up on it
TIMEOUT_GRACE_SECONDS = 1.0


def _call_in_context(provider, request, context):
    """Run a provider call on a worker thread with the caller's log context."""
    with CorrelationContext(**context):
        return provider.classify(request)


class ProviderChain:
    """
    Ordered, fault-tolerant chain of classification providers.

    Example:
        >>> chain = ProviderChain(create_providers(config.providers), cache=ClassificationCache())
        >>> result = chain.classify(item, hints=["3D Printing"], categories=["Technology", "3D Printing"])
        >>> result.raw_label if result.success else result.no_classification.reason
    """

    def __init__(
        self,
        providers: List[ClassificationProvider],
        cache: Optional[ClassificationCache] = None,
        excerpt_chars: int = 2000,
    ):
        """
        Initialize the chain.

        Args:
            providers: Providers in priority order
            cache: Optional result cache
            excerpt_chars: Maximum characters of raw text sent to providers
        """
        self.providers = list(providers)
        self.cache = cache
        self.excerpt_chars = excerpt_chars

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    def build_request(
        self,
        item: ContentItem,
        hints: List[str],
        categories: List[str],
    ) -> ClassificationRequest:
        """Build the single request shared by every provider."""
        return ClassificationRequest(
            title=item.title or "",
            excerpt=truncate_text(item.raw_content, self.excerpt_chars),
            source=item.source_domain or item.url,
            hints=list(hints),
            categories=list(categories),
        )

    def classify(
        self,
        item: ContentItem,
        hints: List[str],
        categories: List[str],
    ) -> ChainResult:
        """
        Classify one content item.

        Args:
            item: Content item
            hints: Hint category names from the matcher engine
            categories: Vocabulary of active category names

        Returns:
            ChainResult with every attempt and either a classification or a
            NoClassification. Never raises for provider failures.
        """
        fingerprint = content_fingerprint(item)

        if self.cache is not None:
            cached = self.cache.get(fingerprint)
            if cached is not None:
                log_with_context(
                    logger,
                    logging.DEBUG,
                    f"Cache hit for fingerprint {fingerprint[:12]} "
                    f"(label='{cached.raw_label}')",
                    provider=cached.provider,
                )
                return ChainResult(
                    attempts=[],
                    classification=cached,
                    from_cache=True,
                    fingerprint=fingerprint,
                )

        request = self.build_request(item, hints, categories)
        attempts = []

        for provider in self.providers:
            attempt = self._call_with_timeout(provider, request)
            attempts.append(attempt)
            if attempt.success:
                if self.cache is not None:
                    self.cache.put(fingerprint, attempt)
                return ChainResult(
                    attempts=attempts,
                    classification=attempt,
                    fingerprint=fingerprint,
                )

        reason = (
            "no providers configured"
            if not self.providers
            else f"all {len(self.providers)} providers exhausted"
        )
        log_with_context(
            logger,
            logging.ERROR,
            f"Classification chain exhausted: {reason} "
            f"({', '.join(f'{a.provider}={a.error_kind.value}' for a in attempts)})",
        )
        return ChainResult(
            attempts=attempts,
            no_classification=NoClassification(reason=reason),
            fingerprint=fingerprint,
        )

    def _call_with_timeout(
        self,
        provider: ClassificationProvider,
        request: ClassificationRequest,
    ) -> ClassificationAttempt:
        """Run one provider call under its own timeout."""
        timeout = provider.timeout + TIMEOUT_GRACE_SECONDS
        start = time.monotonic()
        context = CorrelationContext.get_current()

        try:
            return call_with_timeout(
                _call_in_context,
                timeout,
                provider,
                request,
                context,
                thread_name=f"provider-{provider.name}",
            )
        except CallTimeoutError:
            # The provider thread finishes on its own; its result is discarded
            message = f"Provider {provider.name} did not answer within {timeout:.1f}s"
        except Exception as e:
            message = f"Provider {provider.name} raised unexpectedly: {type(e).__name__}: {e}"
            log_with_context(
                logger, logging.ERROR, message, provider=provider.name, exc_info=True
            )
            return ClassificationAttempt.failed(
                provider=provider.name,
                error_kind=ErrorKind.INTERNAL,
                error_message=message,
                model=provider.model,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        log_with_context(logger, logging.WARNING, message, provider=provider.name)
        return ClassificationAttempt.failed(
            provider=provider.name,
            error_kind=ErrorKind.TIMEOUT,
            error_message=message,
            model=provider.model,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    def close(self) -> None:
        """Release provider HTTP sessions."""
        for provider in self.providers:
            provider.session.close()
