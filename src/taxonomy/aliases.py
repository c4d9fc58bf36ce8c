"""
Alias Learning Interface.

Lets an operator bind an unrecognized raw label to a primary category, and
optionally re-resolve previously stored items carrying that label in the
background. Reprocessing never runs on the synchronous classification path.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .models import CategoryAlias, ResolutionResult, normalize_label
from .resolver import resolve_label
from .snapshot import SnapshotHolder
from .store.base import RuleStore


logger = logging.getLogger(__name__)


@dataclass
class StoredClassification:
    """
    A previously stored classification, as supplied by the content store.

    Attributes:
        item_id: Content item identifier
        raw_label: Raw label stored at classification time
        category_id: Category the item is currently filed under
    """
    item_id: str
    raw_label: Optional[str]
    category_id: Optional[int] = None


class StoredItemSource(ABC):
    """Access to stored classifications, implemented by the content store."""

    @abstractmethod
    def find_by_raw_label(self, raw_label: str) -> Iterable[StoredClassification]:
        """Return stored items whose raw label normalizes to ``raw_label``."""
        pass

    @abstractmethod
    def update_category(self, item_id: str, resolution: ResolutionResult) -> None:
        """Persist a new resolution for an item."""
        pass


@dataclass
class ReprocessReport:
    """Outcome of re-resolving stored items for one label."""
    raw_label: str
    matched: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class AliasLearningResult:
    """
    Result of ``learn_alias``.

    Attributes:
        alias: The stored alias row
        created: False when an existing alias was updated
        reprocess_future: Future for the background reprocessing (if requested)
    """
    alias: CategoryAlias
    created: bool
    reprocess_future: Optional[Future] = None


class AliasLearningService:
    """
    Upserts aliases and schedules out-of-band reprocessing.

    Example:
        >>> service = AliasLearningService(store, holder, item_source=my_source)
        >>> result = service.learn_alias("Machine Learning", tech_id, reprocess=True)
        >>> report = result.reprocess_future.result()
    """

    def __init__(
        self,
        store: RuleStore,
        holder: SnapshotHolder,
        item_source: Optional[StoredItemSource] = None,
        max_workers: int = 1,
    ):
        self.store = store
        self.holder = holder
        self.item_source = item_source
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="alias-reprocess"
        )

    def learn_alias(
        self,
        raw_label: str,
        category_id: int,
        confidence_threshold: float = 0.7,
        reprocess: bool = False,
    ) -> AliasLearningResult:
        """
        Bind a raw label to a category.

        A duplicate alias is an update, not a constraint error. The snapshot is
        reloaded before any reprocessing is scheduled.

        Args:
            raw_label: Label as returned by a classifier
            category_id: Target category
            confidence_threshold: Threshold stored with the alias
            reprocess: Schedule background re-resolution of stored items

        Returns:
            AliasLearningResult

        Raises:
            RuleStoreError: If the target category is missing or inactive
        """
        normalized = normalize_label(raw_label)
        existing = {a.alias for a in self.store.search_aliases(normalized)}
        alias = self.store.upsert_alias(normalized, category_id, confidence_threshold)
        self.holder.reload(self.store)

        created = normalized not in existing
        logger.info(
            f"Learned alias '{alias.alias}' -> category {category_id} "
            f"({'created' if created else 'updated'})"
        )

        future = None
        if reprocess:
            if self.item_source is None:
                logger.warning(
                    f"Reprocessing requested for '{normalized}' but no stored item source is configured"
                )
            else:
                future = self._executor.submit(self.reprocess_label, normalized)

        return AliasLearningResult(alias=alias, created=created, reprocess_future=future)

    def reprocess_label(self, raw_label: str) -> ReprocessReport:
        """
        Re-resolve stored items carrying ``raw_label`` against the current snapshot.

        Per-item failures are counted and reported; they do not stop the batch.
        """
        report = ReprocessReport(raw_label=raw_label)
        if self.item_source is None:
            return report

        snapshot = self.holder.current()
        for stored in self.item_source.find_by_raw_label(raw_label):
            report.matched += 1
            resolution = resolve_label(snapshot, stored.raw_label)
            if resolution.category.id == stored.category_id:
                report.unchanged += 1
                continue
            try:
                self.item_source.update_category(stored.item_id, resolution)
                report.updated += 1
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{stored.item_id}: {e}")
                logger.error(f"Failed to update item {stored.item_id}: {e}")

        logger.info(
            f"Reprocessed '{raw_label}': matched={report.matched} "
            f"updated={report.updated} failed={report.failed}"
        )
        return report

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
