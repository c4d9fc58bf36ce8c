"""
Administrative surface for the rule tables.

Every mutation goes to the store and is followed by a snapshot reload, so
in-flight pipeline runs keep reading the old snapshot until the swap.
"""

import logging
from typing import Any, Dict, List, Optional

from .exceptions import RuleStoreError
from .models import Action, Category, CategoryAction, CategoryAlias, Matcher, MatcherType
from .snapshot import SnapshotHolder
from .store.base import RuleStore


logger = logging.getLogger(__name__)


class RuleAdmin:
    """
    Operator-facing operations over categories, actions, matchers, bindings
    and aliases.

    Example:
        >>> admin = RuleAdmin(store, holder)
        >>> admin.create_category("Gardening", priority=9)
        >>> admin.bind_action("Gardening", "summarize", execution_order=1)
    """

    def __init__(self, store: RuleStore, holder: SnapshotHolder, action_registry=None):
        """
        Args:
            store: Persisted rule store
            holder: Snapshot holder to reload after each mutation
            action_registry: Optional ActionRegistry used to validate binding configs
        """
        self.store = store
        self.holder = holder
        self.action_registry = action_registry

    def _reload(self) -> None:
        self.holder.reload(self.store)

    def _category(self, category: Any) -> Category:
        """Resolve a category id or name."""
        if isinstance(category, int):
            found = self.store.get_category(category)
        else:
            found = self.store.get_category_by_name(str(category))
        if found is None:
            raise RuleStoreError(f"Unknown category: {category}")
        return found

    def _action(self, action: Any) -> Action:
        """Resolve an action id or name."""
        if isinstance(action, int):
            found = next((a for a in self.store.list_actions() if a.id == action), None)
        else:
            found = self.store.get_action_by_name(str(action))
        if found is None:
            raise RuleStoreError(f"Unknown action: {action}")
        return found

    # Categories

    def list_categories(self, include_inactive: bool = True) -> List[Category]:
        return self.store.list_categories(include_inactive=include_inactive)

    def create_category(
        self,
        name: str,
        description: Optional[str] = None,
        priority: int = 100,
        is_fallback: bool = False,
    ) -> Category:
        category = self.store.create_category(
            Category(name=name, description=description, priority=priority, is_fallback=is_fallback)
        )
        self._reload()
        return category

    def update_category(self, category: Any, **fields: Any) -> Category:
        updated = self.store.update_category(self._category(category).id, **fields)
        self._reload()
        return updated

    def delete_category(self, category: Any) -> bool:
        deleted = self.store.delete_category(self._category(category).id)
        self._reload()
        return deleted

    def set_fallback(self, category: Any) -> Category:
        updated = self.store.set_fallback_category(self._category(category).id)
        self._reload()
        return updated

    # Actions

    def list_actions(self, include_inactive: bool = True) -> List[Action]:
        return self.store.list_actions(include_inactive=include_inactive)

    def create_action(
        self,
        name: str,
        handler_key: str,
        description: Optional[str] = None,
    ) -> Action:
        if self.action_registry is not None and not self.action_registry.has(handler_key):
            logger.warning(f"Creating action '{name}' with unregistered handler key '{handler_key}'")
        action = self.store.create_action(
            Action(name=name, handler_key=handler_key, description=description)
        )
        self._reload()
        return action

    def update_action(self, action: Any, **fields: Any) -> Action:
        updated = self.store.update_action(self._action(action).id, **fields)
        self._reload()
        return updated

    # Bindings

    def list_bindings(self, category: Any = None) -> List[CategoryAction]:
        category_id = self._category(category).id if category is not None else None
        return self.store.list_bindings(category_id)

    def _check_config(self, action: Action, config: Optional[Dict[str, Any]]) -> None:
        if self.action_registry is None:
            return
        errors = self.action_registry.validate_config(action.handler_key, config or {})
        if errors:
            raise RuleStoreError(
                f"Invalid config for action '{action.name}': {'; '.join(errors)}"
            )

    def bind_action(
        self,
        category: Any,
        action: Any,
        execution_order: int = 0,
        config: Optional[Dict[str, Any]] = None,
    ) -> CategoryAction:
        resolved_category = self._category(category)
        resolved_action = self._action(action)
        self._check_config(resolved_action, config)
        binding = self.store.bind_action(
            resolved_category.id, resolved_action.id, execution_order, config
        )
        self._reload()
        return binding

    def update_binding(self, binding_id: int, **fields: Any) -> CategoryAction:
        if "config" in fields:
            binding = next(
                (b for b in self.store.list_bindings() if b.id == binding_id), None
            )
            if binding is None:
                raise RuleStoreError(f"Binding {binding_id} does not exist")
            self._check_config(self._action(binding.action_id), fields["config"])
        updated = self.store.update_binding(binding_id, **fields)
        self._reload()
        return updated

    def unbind_action(self, category: Any, action: Any) -> bool:
        removed = self.store.unbind_action(self._category(category).id, self._action(action).id)
        self._reload()
        return removed

    # Matchers

    def list_matchers(self, category: Any = None) -> List[Matcher]:
        category_id = self._category(category).id if category is not None else None
        return self.store.list_matchers(category_id)

    def create_matcher(
        self,
        category: Any,
        matcher_type: str,
        pattern: str,
        is_exclusion: bool = False,
    ) -> Matcher:
        matcher = self.store.create_matcher(
            Matcher(
                category_id=self._category(category).id,
                matcher_type=MatcherType(matcher_type),
                pattern=pattern,
                is_exclusion=is_exclusion,
            )
        )
        self._reload()
        return matcher

    def set_matcher_active(self, matcher_id: int, is_active: bool) -> bool:
        changed = self.store.set_matcher_active(matcher_id, is_active)
        self._reload()
        return changed

    def delete_matcher(self, matcher_id: int) -> bool:
        deleted = self.store.delete_matcher(matcher_id)
        self._reload()
        return deleted

    # Aliases

    def list_aliases(self) -> List[CategoryAlias]:
        return self.store.list_aliases()

    def search_aliases(self, term: str) -> List[CategoryAlias]:
        return self.store.search_aliases(term)

    def delete_alias(self, alias: str) -> bool:
        deleted = self.store.delete_alias(alias)
        self._reload()
        return deleted
