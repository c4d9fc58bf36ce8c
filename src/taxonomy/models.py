"""
Core data models for the category taxonomy.

Categories, actions, bindings, matchers and aliases are operator-curated rule
rows. They are loaded from the rule store into an immutable snapshot.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


_WHITESPACE = re.compile(r"\s+")


def normalize_label(value: Optional[str]) -> str:
    """
    Normalize a label or alias for comparison.

    Trims, lower-cases and collapses internal whitespace runs to one space.

    Example:
        >>> normalize_label("  Machine   Learning ")
        'machine learning'
    """
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.strip()).lower()


class MatcherType(str, Enum):
    """Kind of static matcher rule."""
    DOMAIN = "domain"
    KEYWORD = "keyword"


class ResolutionTier(str, Enum):
    """How a raw label became a primary category."""
    EXACT = "exact"
    ALIAS = "alias"
    FALLBACK = "fallback"


TIER_CONFIDENCE: Dict[ResolutionTier, float] = {
    ResolutionTier.EXACT: 1.0,
    ResolutionTier.ALIAS: 0.9,
    ResolutionTier.FALLBACK: 0.5,
}


@dataclass
class Category:
    """
    A primary content category.

    Attributes:
        id: Category identifier
        name: Unique display name
        description: Free-text description
        priority: Ordering key (lower first)
        is_active: Whether the category participates in classification
        is_fallback: Whether this is the single catch-all category
    """
    id: Optional[int] = None
    name: str = ""
    description: Optional[str] = None
    priority: int = 100
    is_active: bool = True
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "is_active": self.is_active,
            "is_fallback": self.is_fallback,
        }


@dataclass
class Action:
    """
    A named enrichment operation.

    Attributes:
        id: Action identifier
        name: Unique action name
        handler_key: Opaque key resolved against the action registry
        description: Free-text description
        is_active: Whether the action may be dispatched
    """
    id: Optional[int] = None
    name: str = ""
    handler_key: str = ""
    description: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "handler_key": self.handler_key,
            "description": self.description,
            "is_active": self.is_active,
        }


@dataclass
class CategoryAction:
    """
    Binding of an action to a category.

    Attributes:
        id: Binding identifier (insertion order breaks execution_order ties)
        category_id: Bound category
        action_id: Bound action
        execution_order: Position within the category's action sequence
        config: Action-specific parameters
        is_active: Whether the binding is dispatched
    """
    id: Optional[int] = None
    category_id: int = 0
    action_id: int = 0
    execution_order: int = 0
    config: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True

    def config_json(self) -> str:
        return json.dumps(self.config or {}, sort_keys=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "action_id": self.action_id,
            "execution_order": self.execution_order,
            "config": self.config,
            "is_active": self.is_active,
        }


@dataclass
class Matcher:
    """
    A domain or keyword rule that adds (or excludes) a category hint.

    Attributes:
        id: Matcher identifier (secondary hint ordering key)
        category_id: Category hinted (or excluded)
        matcher_type: domain or keyword
        pattern: Domain (matches itself and subdomains) or keyword
        is_exclusion: True to remove rather than add the category
        is_active: Whether the matcher is evaluated
    """
    id: Optional[int] = None
    category_id: int = 0
    matcher_type: MatcherType = MatcherType.DOMAIN
    pattern: str = ""
    is_exclusion: bool = False
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "matcher_type": self.matcher_type.value,
            "pattern": self.pattern,
            "is_exclusion": self.is_exclusion,
            "is_active": self.is_active,
        }


@dataclass
class CategoryAlias:
    """
    Operator-learned mapping from a raw label to a category.

    Attributes:
        id: Alias identifier
        alias: Normalized alias string (unique)
        category_id: Target category
        confidence_threshold: Stored threshold for operator reference
    """
    id: Optional[int] = None
    alias: str = ""
    category_id: int = 0
    confidence_threshold: float = 0.7

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "alias": self.alias,
            "category_id": self.category_id,
            "confidence_threshold": self.confidence_threshold,
        }


@dataclass
class RuleTables:
    """Raw rule rows as loaded from the store, before validation."""
    categories: List[Category] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)
    bindings: List[CategoryAction] = field(default_factory=list)
    matchers: List[Matcher] = field(default_factory=list)
    aliases: List[CategoryAlias] = field(default_factory=list)


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of resolving a raw label to a primary category.

    Attributes:
        category: Resolved category
        tier: exact, alias or fallback
        confidence: Fixed per-tier confidence
        raw_label: The label that was resolved (may be None)
    """
    category: Category
    tier: ResolutionTier
    confidence: float
    raw_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_id": self.category.id,
            "category": self.category.name,
            "tier": self.tier.value,
            "confidence": self.confidence,
            "raw_label": self.raw_label,
        }
