"""
Category taxonomy: rule tables, matcher engine, resolver and alias learning.
"""

from .exceptions import RuleStoreError, SnapshotUnavailableError, SnapshotValidationError
from .models import (
    Action,
    Category,
    CategoryAction,
    CategoryAlias,
    Matcher,
    MatcherType,
    ResolutionResult,
    ResolutionTier,
    RuleTables,
    normalize_label,
)
from .matcher_engine import MatcherEngine
from .resolver import CategoryResolver, resolve_label
from .snapshot import RuleSnapshot, SnapshotHolder

__all__ = [
    "Action",
    "Category",
    "CategoryAction",
    "CategoryAlias",
    "CategoryResolver",
    "Matcher",
    "MatcherEngine",
    "MatcherType",
    "ResolutionResult",
    "ResolutionTier",
    "RuleSnapshot",
    "RuleStoreError",
    "RuleTables",
    "SnapshotHolder",
    "SnapshotUnavailableError",
    "SnapshotValidationError",
    "normalize_label",
    "resolve_label",
]
