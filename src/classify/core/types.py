"""
Core data types for the classification pipeline.

Uses dataclasses with ``from_env()`` constructors so every component can be
built either from a YAML file or straight from the environment.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


DEFAULT_PROVIDER_ORDER = ["gemini", "openai", "anthropic", "ollama"]

DEFAULT_MODELS = {
    "gemini": "gemini-1.5-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
    "ollama": "llama3.2",
}

DEFAULT_BASE_URLS = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
    "ollama": "http://localhost:11434",
}

API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class ErrorKind(str, Enum):
    """Why a classification attempt failed."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    QUOTA = "quota"
    HTTP = "http"
    PARSE = "parse"
    VALIDATION = "validation"
    INTERNAL = "internal"


@dataclass
class ContentItem:
    """
    A captured content item, read-only input to the pipeline.

    Attributes:
        id: Identifier assigned by the content store
        url: Canonical URL of the item
        title: Item title
        raw_content: Extracted raw text
        source_domain: Domain the item was captured from
    """
    id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    raw_content: Optional[str] = None
    source_domain: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentItem":
        """Build from a content-store record (camelCase or snake_case keys)."""
        item_id = data.get("id")
        return cls(
            id=str(item_id) if item_id is not None else None,
            url=data.get("url"),
            title=data.get("title"),
            raw_content=data.get("raw_content", data.get("rawContent")),
            source_domain=data.get("source_domain", data.get("sourceDomain")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "raw_content": self.raw_content,
            "source_domain": self.source_domain,
        }


@dataclass
class ClassificationRequest:
    """
    A single classification request shared by every provider in the chain.

    Attributes:
        title: Content title
        excerpt: Length-bounded excerpt of the raw text
        source: Source domain (or URL when no domain is known)
        hints: Hint category names from the matcher engine
        categories: Full vocabulary of active category names
    """
    title: str
    excerpt: str
    source: Optional[str] = None
    hints: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)


@dataclass
class ClassificationAttempt:
    """
    Outcome of one provider call.

    Attributes:
        provider: Provider name
        success: Whether a validated {label, confidence, reasoning} was produced
        raw_label: Label returned by the provider
        confidence: Provider's confidence (0-1)
        reasoning: Provider's reasoning text
        model: Model used
        duration_ms: Time spent on the call
        error_kind: Failure category (if failed)
        error_message: Failure description (if failed)
    """
    provider: str
    success: bool
    raw_label: Optional[str] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    model: Optional[str] = None
    duration_ms: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def failed(
        cls,
        provider: str,
        error_kind: ErrorKind,
        error_message: str,
        model: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> "ClassificationAttempt":
        """Create a failed attempt."""
        return cls(
            provider=provider,
            success=False,
            model=model,
            duration_ms=duration_ms,
            error_kind=error_kind,
            error_message=error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "success": self.success,
            "raw_label": self.raw_label,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "model": self.model,
            "duration_ms": self.duration_ms,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
        }


@dataclass
class NoClassification:
    """
    Typed result returned when every provider was exhausted.

    Attributes:
        reason: Short description of why nothing was classified
    """
    reason: str = "all providers exhausted"


@dataclass
class ChainResult:
    """
    Result of running the provider chain for one item.

    Exactly one of ``classification`` / ``no_classification`` is set.
    """
    attempts: List[ClassificationAttempt] = field(default_factory=list)
    classification: Optional[ClassificationAttempt] = None
    no_classification: Optional[NoClassification] = None
    from_cache: bool = False
    fingerprint: Optional[str] = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.classification is not None

    @property
    def raw_label(self) -> Optional[str]:
        return self.classification.raw_label if self.classification else None

    @property
    def confidence(self) -> Optional[float]:
        return self.classification.confidence if self.classification else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "raw_label": self.raw_label,
            "confidence": self.confidence,
            "provider": self.classification.provider if self.classification else None,
            "from_cache": self.from_cache,
            "no_classification": self.no_classification.reason if self.no_classification else None,
            "attempts": [a.to_dict() for a in self.attempts],
        }


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


@dataclass
class ProviderConfig:
    """
    Configuration for one classification provider.

    Attributes:
        name: Provider name ('gemini', 'openai', 'anthropic', 'ollama')
        model: Model identifier
        base_url: Base URL for the provider API
        api_key: API key (not needed for ollama)
        timeout_seconds: Independent per-call timeout
        temperature: Sampling temperature
        max_tokens: Maximum tokens in response
        enabled: Whether the provider participates in the chain
        extra_params: Additional provider-specific parameters
    """
    name: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    temperature: float = 0.1
    max_tokens: Optional[int] = 300
    enabled: bool = True
    extra_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.model is None:
            self.model = DEFAULT_MODELS.get(self.name)
        if self.base_url is None:
            self.base_url = DEFAULT_BASE_URLS.get(self.name)

    @property
    def requires_api_key(self) -> bool:
        return self.name in API_KEY_ENV_VARS

    @property
    def is_usable(self) -> bool:
        """True when enabled and credentials are present (if required)."""
        if not self.enabled:
            return False
        return bool(self.api_key) or not self.requires_api_key

    @classmethod
    def from_env(cls, name: str) -> "ProviderConfig":
        """
        Create provider configuration from environment variables.

        Environment variables:
            <PROVIDER>_API_KEY: API key for gemini/openai/anthropic
            <PROVIDER>_MODEL: Model override
            <PROVIDER>_BASE_URL: Base URL override
            CLASSIFY_PROVIDER_TIMEOUT_SECONDS: Per-call timeout (default: 30)
        """
        prefix = name.upper()
        api_key_var = API_KEY_ENV_VARS.get(name)
        return cls(
            name=name,
            model=os.environ.get(f"{prefix}_MODEL") or None,
            base_url=os.environ.get(f"{prefix}_BASE_URL") or None,
            api_key=os.environ.get(api_key_var) if api_key_var else None,
            timeout_seconds=_env_float("CLASSIFY_PROVIDER_TIMEOUT_SECONDS", 30.0),
        )


@dataclass
class CacheConfig:
    """
    Configuration for the classification result cache.

    Attributes:
        ttl_seconds: Time-to-live for cached results
        max_entries: Maximum number of cached entries
    """
    ttl_seconds: float = 3600.0
    max_entries: int = 1000

    @classmethod
    def from_env(cls) -> "CacheConfig":
        return cls(
            ttl_seconds=_env_float("CLASSIFY_CACHE_TTL_SECONDS", 3600.0),
            max_entries=_env_int("CLASSIFY_CACHE_MAX_ENTRIES", 1000),
        )


@dataclass
class ChainConfig:
    """
    Configuration for the provider chain.

    Attributes:
        excerpt_chars: Maximum characters of raw text sent to providers
        providers: Provider configurations in priority order
    """
    excerpt_chars: int = 2000
    providers: List[ProviderConfig] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "ChainConfig":
        """
        Create chain configuration from environment variables.

        Environment variables:
            CLASSIFY_PROVIDER_ORDER: Comma-separated provider names
                (default: gemini,openai,anthropic,ollama)
            CLASSIFY_EXCERPT_CHARS: Excerpt length (default: 2000)
        """
        order_value = os.environ.get("CLASSIFY_PROVIDER_ORDER", "")
        order = [p.strip().lower() for p in order_value.split(",") if p.strip()]
        if not order:
            order = list(DEFAULT_PROVIDER_ORDER)
        return cls(
            excerpt_chars=_env_int("CLASSIFY_EXCERPT_CHARS", 2000),
            providers=[ProviderConfig.from_env(name) for name in order],
        )
