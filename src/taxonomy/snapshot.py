"""
Immutable in-memory rule snapshot.

A snapshot is built once from the rule tables, validated, and then only read.
Reloads build a fresh snapshot and swap the holder's reference, so readers
always see either the old or the new snapshot, never a mix.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .exceptions import SnapshotUnavailableError, SnapshotValidationError
from .models import (
    Action,
    Category,
    CategoryAction,
    Matcher,
    RuleTables,
    normalize_label,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundAction:
    """An active binding together with its action."""
    binding: CategoryAction
    action: Action

    @property
    def handler_key(self) -> str:
        return self.action.handler_key

    @property
    def config(self) -> Dict:
        return self.binding.config


@dataclass(frozen=True)
class RuleSnapshot:
    """
    Validated, read-only view of the rule tables.

    Build with ``RuleSnapshot.build(tables)``; never construct directly.
    """
    categories: Tuple[Category, ...]
    fallback: Category
    categories_by_id: Dict[int, Category]
    categories_by_name: Dict[str, Category]
    aliases: Dict[str, Category]
    actions_by_id: Dict[int, Action]
    bindings: Dict[int, Tuple[BoundAction, ...]]
    matchers: Tuple[Matcher, ...]
    warnings: Tuple[str, ...] = ()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def category_names(self) -> List[str]:
        """Active category names in priority order."""
        return [c.name for c in self.categories]

    def category_by_name(self, name: Optional[str]) -> Optional[Category]:
        """Active category whose name equals ``name`` case-insensitively."""
        if not name:
            return None
        return self.categories_by_name.get(name.strip().lower())

    def actions_for(self, category_id: int) -> Tuple[BoundAction, ...]:
        """Active bound actions for a category, in execution order."""
        return self.bindings.get(category_id, ())

    def counts(self) -> Dict[str, int]:
        return {
            "categories": len(self.categories),
            "actions": len(self.actions_by_id),
            "bindings": sum(len(b) for b in self.bindings.values()),
            "matchers": len(self.matchers),
            "aliases": len(self.aliases),
        }

    @classmethod
    def build(
        cls,
        tables: RuleTables,
        known_handler_keys: Optional[Iterable[str]] = None,
    ) -> "RuleSnapshot":
        """
        Validate rule tables and build a snapshot.

        Args:
            tables: Rows loaded from the rule store
            known_handler_keys: Registered handler keys; unknown keys on active
                actions are reported as warnings

        Returns:
            The snapshot

        Raises:
            SnapshotValidationError: If any invariant is broken
        """
        errors: List[str] = []
        warnings: List[str] = []

        active_categories = sorted(
            (c for c in tables.categories if c.is_active),
            key=lambda c: (c.priority, c.id or 0),
        )
        categories_by_id = {c.id: c for c in active_categories}

        fallbacks = [c for c in active_categories if c.is_fallback]
        if len(fallbacks) != 1:
            errors.append(
                f"Expected exactly one active fallback category, found {len(fallbacks)}"
                + (f" ({', '.join(c.name for c in fallbacks)})" if fallbacks else "")
            )

        categories_by_name: Dict[str, Category] = {}
        for category in active_categories:
            key = category.name.strip().lower()
            if not key:
                errors.append(f"Category {category.id} has an empty name")
            elif key in categories_by_name:
                errors.append(f"Duplicate category name: {category.name}")
            else:
                categories_by_name[key] = category

        aliases: Dict[str, Category] = {}
        seen_aliases = set()
        for alias in tables.aliases:
            key = normalize_label(alias.alias)
            if not key:
                warnings.append(f"Skipping empty alias {alias.id}")
                continue
            if key in seen_aliases:
                errors.append(f"Duplicate alias: {key}")
                continue
            seen_aliases.add(key)
            target = categories_by_id.get(alias.category_id)
            if target is None:
                warnings.append(
                    f"Skipping alias '{key}': target category {alias.category_id} is not active"
                )
                continue
            aliases[key] = target

        all_actions = {a.id: a for a in tables.actions}
        actions_by_id = {a.id: a for a in tables.actions if a.is_active}
        known = set(known_handler_keys) if known_handler_keys is not None else None
        if known is not None:
            for action in actions_by_id.values():
                if action.handler_key not in known:
                    warnings.append(
                        f"Action '{action.name}' uses unknown handler key '{action.handler_key}'"
                    )

        all_category_ids = {c.id for c in tables.categories}
        grouped: Dict[int, List[CategoryAction]] = {}
        seen_pairs = set()
        for binding in tables.bindings:
            pair = (binding.category_id, binding.action_id)
            if pair in seen_pairs:
                errors.append(
                    f"Duplicate binding for category {binding.category_id} / action {binding.action_id}"
                )
                continue
            seen_pairs.add(pair)
            if binding.action_id not in all_actions:
                errors.append(
                    f"Binding {binding.id} references missing action {binding.action_id}"
                )
                continue
            if binding.category_id not in all_category_ids:
                errors.append(
                    f"Binding {binding.id} references missing category {binding.category_id}"
                )
                continue
            if (
                not binding.is_active
                or binding.category_id not in categories_by_id
                or binding.action_id not in actions_by_id
            ):
                continue
            grouped.setdefault(binding.category_id, []).append(binding)

        bindings = {
            category_id: tuple(
                BoundAction(binding=b, action=actions_by_id[b.action_id])
                for b in sorted(rows, key=lambda b: (b.execution_order, b.id or 0))
            )
            for category_id, rows in grouped.items()
        }

        matchers = tuple(
            m for m in sorted(tables.matchers, key=lambda m: m.id or 0)
            if m.is_active and m.category_id in categories_by_id and m.pattern.strip()
        )

        if errors:
            raise SnapshotValidationError(
                f"Rule tables failed validation: {'; '.join(errors)}", errors=errors
            )

        for warning in warnings:
            logger.warning(warning)

        return cls(
            categories=tuple(active_categories),
            fallback=fallbacks[0],
            categories_by_id=categories_by_id,
            categories_by_name=categories_by_name,
            aliases=aliases,
            actions_by_id=actions_by_id,
            bindings=bindings,
            matchers=matchers,
            warnings=tuple(warnings),
        )


class SnapshotHolder:
    """
    Holds the current snapshot and swaps it atomically.

    Reads are a single attribute access; writers serialize on a lock so two
    concurrent reloads cannot interleave.
    """

    def __init__(
        self,
        snapshot: Optional[RuleSnapshot] = None,
        known_handler_keys: Optional[Iterable[str]] = None,
    ):
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self.known_handler_keys = (
            set(known_handler_keys) if known_handler_keys is not None else None
        )

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def current(self) -> RuleSnapshot:
        """
        Return the installed snapshot.

        Raises:
            SnapshotUnavailableError: If nothing has been installed yet
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotUnavailableError("No rule snapshot is loaded")
        return snapshot

    def install(self, snapshot: RuleSnapshot) -> RuleSnapshot:
        """Swap in a new snapshot and return the previous one (if any)."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info(f"Installed rule snapshot: {snapshot.counts()}")
        return previous

    def reload(self, store) -> RuleSnapshot:
        """
        Load tables from the store, build a snapshot and install it.

        On failure the previous snapshot stays installed and the error propagates.

        Args:
            store: RuleStore to load from

        Returns:
            The newly installed snapshot
        """
        with self._lock:
            tables = store.load_tables()
            snapshot = RuleSnapshot.build(tables, self.known_handler_keys)
            self._snapshot = snapshot
        logger.info(f"Reloaded rule snapshot: {snapshot.counts()}")
        return snapshot
