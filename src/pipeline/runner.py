"""
Content Pipeline Runner.

Wires the matcher engine, provider chain, category resolver and action
dispatcher into one per-item run:

    Captured -> Hinted -> Classified | ClassificationFailed -> Resolved
             -> Dispatched -> Completed | PartiallyFailed

A classification failure is not terminal: the item resolves to the fallback
category and is still dispatched. Items are independent, so ``process_many``
runs them concurrently on a thread pool.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from actions.dispatcher import ActionDispatcher
from actions.handlers import DispatchSummary
from actions.registry import ActionRegistry, create_default_registry
from classify.cache import ClassificationCache
from classify.chain import ProviderChain
from classify.core.logging import CorrelationContext, log_with_context
from classify.core.types import ChainResult, ContentItem
from classify.providers.base import ClassificationProvider
from classify.providers.factory import create_providers
from taxonomy.matcher_engine import MatcherEngine
from taxonomy.models import ResolutionResult
from taxonomy.resolver import CategoryResolver
from taxonomy.snapshot import RuleSnapshot, SnapshotHolder
from taxonomy.store.base import RuleStore

from .config import PipelineConfig


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Per-item pipeline states."""
    CAPTURED = "captured"
    HINTED = "hinted"
    CLASSIFIED = "classified"
    CLASSIFICATION_FAILED = "classification_failed"
    RESOLVED = "resolved"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"


@dataclass
class PipelineResult:
    """
    Structured result of one item's run.

    Attributes:
        content_id: Content item id
        run_id: Unique id of this run
        hints: Hint category names from the matcher engine
        classification: Provider chain result
        resolution: Resolved category, tier and confidence
        dispatch: Aggregate action results
        states: State history, in order
        started_at: When the run started
        duration_ms: Wall time of the run
    """
    content_id: Optional[str]
    run_id: str
    hints: List[str] = field(default_factory=list)
    classification: Optional[ChainResult] = None
    resolution: Optional[ResolutionResult] = None
    dispatch: Optional[DispatchSummary] = None
    states: List[PipelineState] = field(default_factory=lambda: [PipelineState.CAPTURED])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: int = 0

    @property
    def final_state(self) -> PipelineState:
        return self.states[-1]

    @property
    def from_cache(self) -> bool:
        return bool(self.classification and self.classification.from_cache)

    def advance(self, state: PipelineState) -> None:
        self.states.append(state)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "content_id": self.content_id,
            "run_id": self.run_id,
            "state": self.final_state.value,
            "states": [s.value for s in self.states],
            "hints": self.hints,
            "classification": self.classification.to_dict() if self.classification else None,
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "actions": self.dispatch.to_dict() if self.dispatch else None,
            "from_cache": self.from_cache,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
        }


class ContentPipeline:
    """
    End-to-end classification and action dispatch for content items.

    Construction requires a loaded rule snapshot; there is no half-initialized
    state to check at call time.

    Example:
        >>> pipeline = ContentPipeline.from_config(PipelineConfig("config/pipeline.yaml"))
        >>> result = pipeline.process(ContentItem(id="1", title="...", source_domain="thingiverse.com"))
        >>> result.resolution.category.name, result.final_state
    """

    def __init__(
        self,
        holder: SnapshotHolder,
        chain: ProviderChain,
        dispatcher: ActionDispatcher,
        matcher_engine: Optional[MatcherEngine] = None,
        store: Optional[RuleStore] = None,
        max_workers: int = 4,
    ):
        """
        Initialize the pipeline.

        Args:
            holder: Snapshot holder (must already hold a snapshot)
            chain: Classification provider chain
            dispatcher: Action dispatcher
            matcher_engine: Hint generator (default engine if None)
            store: Rule store used by reload_rules
            max_workers: Default concurrency for process_many

        Raises:
            SnapshotUnavailableError: If the holder has no snapshot
        """
        holder.current()
        self.holder = holder
        self.chain = chain
        self.dispatcher = dispatcher
        self.matcher_engine = matcher_engine or MatcherEngine()
        self.resolver = CategoryResolver(holder)
        self.store = store
        self.max_workers = max_workers

    @classmethod
    def from_config(
        cls,
        config: Optional[PipelineConfig] = None,
        store: Optional[RuleStore] = None,
        registry: Optional[ActionRegistry] = None,
        providers: Optional[List[ClassificationProvider]] = None,
    ) -> "ContentPipeline":
        """
        Build a pipeline from configuration.

        Args:
            config: Pipeline configuration (defaults + environment if None)
            store: Rule store (created from config if None)
            registry: Action registry (built-in library if None)
            providers: Providers in chain order (created from config if None)

        Returns:
            Ready ContentPipeline

        Raises:
            SnapshotValidationError: If the rule tables break an invariant
            RuleStoreError: If the rule tables cannot be read
        """
        config = config or PipelineConfig()
        if store is None:
            store = config.store_config().create_store()
        if registry is None:
            registry = create_default_registry()

        holder = SnapshotHolder(known_handler_keys=registry.list_keys())
        snapshot = holder.reload(store)
        registry.validate_bindings(snapshot)

        chain_config = config.chain_config()
        if providers is None:
            providers = create_providers(chain_config.providers)
        if not providers:
            logger.warning(
                "No classification providers are usable; every item will resolve "
                "to the fallback category"
            )

        cache_config = config.cache_config()
        chain = ProviderChain(
            providers,
            cache=ClassificationCache.from_config(cache_config) if cache_config else None,
            excerpt_chars=chain_config.excerpt_chars,
        )
        dispatcher = ActionDispatcher(registry, holder, config.dispatcher_config())

        logger.info(
            f"Pipeline ready: providers={chain.provider_names} rules={snapshot.counts()}"
        )
        return cls(
            holder=holder,
            chain=chain,
            dispatcher=dispatcher,
            matcher_engine=MatcherEngine(excerpt_chars=chain_config.excerpt_chars),
            store=store,
            max_workers=int(config.get("pipeline.max_workers", 4)),
        )

    def process(self, item: ContentItem) -> PipelineResult:
        """
        Run one item through the pipeline.

        The whole run reads a single snapshot, so a concurrent reload cannot
        change the rules halfway through an item.

        Args:
            item: Content item

        Returns:
            PipelineResult (action and provider failures are recorded, not raised)

        Raises:
            SnapshotUnavailableError: If no rule snapshot is loaded
        """
        start = time.monotonic()
        run_id = str(uuid.uuid4())
        result = PipelineResult(content_id=item.id, run_id=run_id)

        with CorrelationContext(
            content_id=item.id,
            run_id=run_id,
            correlation_id=f"{item.id}-{run_id[:8]}",
        ):
            snapshot = self.holder.current()

            result.hints = self.matcher_engine.hints(snapshot, item)
            result.advance(PipelineState.HINTED)

            result.classification = self.chain.classify(
                item, result.hints, snapshot.category_names
            )
            result.advance(
                PipelineState.CLASSIFIED
                if result.classification.success
                else PipelineState.CLASSIFICATION_FAILED
            )

            result.resolution = self.resolver.resolve(
                result.classification.raw_label, snapshot=snapshot
            )
            result.advance(PipelineState.RESOLVED)

            result.dispatch = self.dispatcher.dispatch(
                item, result.resolution.category, snapshot=snapshot
            )
            result.advance(PipelineState.DISPATCHED)
            result.advance(
                PipelineState.PARTIALLY_FAILED
                if result.dispatch.partially_failed
                else PipelineState.COMPLETED
            )

            result.duration_ms = int((time.monotonic() - start) * 1000)
            log_with_context(
                logger,
                logging.INFO,
                f"Processed item -> {result.resolution.category.name} "
                f"({result.resolution.tier.value}), "
                f"actions {result.dispatch.executed}/{result.dispatch.total}, "
                f"state={result.final_state.value} in {result.duration_ms}ms",
                category=result.resolution.category.name,
                tier=result.resolution.tier.value,
            )
        return result

    def process_many(
        self,
        items: Iterable[ContentItem],
        max_workers: Optional[int] = None,
    ) -> List[PipelineResult]:
        """
        Process independent items concurrently.

        Args:
            items: Content items
            max_workers: Thread count (pipeline default if None)

        Returns:
            Results in input order
        """
        items = list(items)
        if not items:
            return []

        workers = min(max_workers or self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipeline") as executor:
            results = list(executor.map(self.process, items))

        partial = sum(1 for r in results if r.final_state == PipelineState.PARTIALLY_FAILED)
        logger.info(f"Processed {len(results)} items ({partial} partially failed)")
        return results

    def reload_rules(self) -> RuleSnapshot:
        """
        Reload the rule tables and swap the snapshot.

        In-flight runs keep the snapshot they started with.

        Raises:
            ValueError: If the pipeline was built without a store
        """
        if self.store is None:
            raise ValueError("Pipeline has no rule store to reload from")
        snapshot = self.holder.reload(self.store)
        self.dispatcher.registry.validate_bindings(snapshot)
        return snapshot

    def close(self) -> None:
        """Release provider HTTP sessions."""
        self.chain.close()
