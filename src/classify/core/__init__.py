"""
Core subpackage for the classification pipeline.

Contains types, exceptions, and logging utilities.
"""

from .types import (
    ErrorKind,
    ContentItem,
    ClassificationRequest,
    ClassificationAttempt,
    NoClassification,
    ChainResult,
    ProviderConfig,
    CacheConfig,
    ChainConfig,
)
from .exceptions import (
    PipelineError,
    ProviderError,
    ResponseValidationError,
    ConfigError,
)

__all__ = [
    # Types
    "ErrorKind",
    "ContentItem",
    "ClassificationRequest",
    "ClassificationAttempt",
    "NoClassification",
    "ChainResult",
    "ProviderConfig",
    "CacheConfig",
    "ChainConfig",
    # Exceptions
    "PipelineError",
    "ProviderError",
    "ResponseValidationError",
    "ConfigError",
]
