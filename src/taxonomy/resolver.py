"""
Category Resolver.

Maps a raw classifier label to a primary category through three tiers,
short-circuiting on the first match:

1. exact    - label equals an active category name (case-insensitive), confidence 1.0
2. alias    - normalized label equals a registered alias, confidence 0.9
3. fallback - anything else, including no label at all, confidence 0.5

Resolution never fails: every input resolves to some category.
"""

import logging
from typing import Optional

from classify.core.logging import log_with_context

from .models import TIER_CONFIDENCE, ResolutionResult, ResolutionTier, normalize_label
from .snapshot import RuleSnapshot


logger = logging.getLogger(__name__)


def resolve_label(snapshot: RuleSnapshot, raw_label: Optional[str]) -> ResolutionResult:
    """
    Resolve a raw label against a snapshot.

    Args:
        snapshot: Current rule snapshot
        raw_label: Label returned by the classifier (may be None or empty)

    Returns:
        ResolutionResult with category, tier and fixed tier confidence
    """
    category = snapshot.category_by_name(raw_label)
    if category is not None:
        return ResolutionResult(
            category=category,
            tier=ResolutionTier.EXACT,
            confidence=TIER_CONFIDENCE[ResolutionTier.EXACT],
            raw_label=raw_label,
        )

    normalized = normalize_label(raw_label)
    if normalized:
        category = snapshot.aliases.get(normalized)
        if category is not None:
            return ResolutionResult(
                category=category,
                tier=ResolutionTier.ALIAS,
                confidence=TIER_CONFIDENCE[ResolutionTier.ALIAS],
                raw_label=raw_label,
            )

    return ResolutionResult(
        category=snapshot.fallback,
        tier=ResolutionTier.FALLBACK,
        confidence=TIER_CONFIDENCE[ResolutionTier.FALLBACK],
        raw_label=raw_label,
    )


class CategoryResolver:
    """
    Resolver bound to a snapshot holder, logging fallback resolutions so
    operators can discover labels worth aliasing.
    """

    def __init__(self, holder):
        """
        Args:
            holder: SnapshotHolder providing the current snapshot
        """
        self.holder = holder

    def resolve(
        self,
        raw_label: Optional[str],
        snapshot: Optional[RuleSnapshot] = None,
    ) -> ResolutionResult:
        """
        Resolve against the given snapshot, or the current one.

        Raises:
            SnapshotUnavailableError: If no snapshot is installed
        """
        result = resolve_label(snapshot or self.holder.current(), raw_label)

        if result.tier == ResolutionTier.FALLBACK:
            log_with_context(
                logger,
                logging.INFO,
                f"Label {raw_label!r} resolved to fallback category "
                f"'{result.category.name}'; consider adding an alias",
                category=result.category.name,
                tier=result.tier.value,
            )
        else:
            logger.debug(
                f"Label {raw_label!r} resolved to '{result.category.name}' ({result.tier.value})"
            )
        return result
