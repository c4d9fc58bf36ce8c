"""
Action Dispatcher - Executes a category's bound actions.

This module provides the dispatcher that:
1. Looks up the category's bindings in the current rule snapshot
2. Resolves each binding's handler key via the action registry
3. Validates the binding config against the handler's schema
4. Runs the handler under a per-action timeout
5. Records every outcome and keeps going

Actions run strictly in execution order. A failing action never stops the
ones after it; only an unavailable snapshot propagates.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from classify.core.logging import CorrelationContext, log_with_context
from classify.core.types import ContentItem
from classify.core.utils import CallTimeoutError, call_with_timeout
from taxonomy.models import Category
from taxonomy.snapshot import BoundAction, RuleSnapshot, SnapshotHolder

from .exceptions import ActionConfigError, ActionTimeoutError, HandlerNotFoundError
from .handlers import ActionErrorKind, ActionExecutionRecord, DispatchSummary
from .registry import ActionDefinition, ActionRegistry


logger = logging.getLogger(__name__)


# Sample item used by test_action when none is supplied
SAMPLE_CONTENT = ContentItem(
    id="test",
    url="https://test.com/test",
    title="Test Content",
    raw_content="This is test content for action validation.",
    source_domain="test.com",
)


def _execute_in_context(handler, item, config, context):
    """Run a handler on a worker thread with the caller's log context."""
    with CorrelationContext(**context):
        return handler.execute(item, config)


@dataclass
class DispatcherConfig:
    """
    Configuration for the action dispatcher.

    Attributes:
        action_timeout_seconds: Per-action time limit
    """
    action_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "DispatcherConfig":
        """Create config from environment variables."""
        return cls(
            action_timeout_seconds=float(os.environ.get("ACTION_TIMEOUT_SECONDS", "30")),
        )


class ActionDispatcher:
    """
    Runs the ordered actions bound to a category.

    Example:
        >>> dispatcher = ActionDispatcher(get_action_registry(), holder)
        >>> summary = dispatcher.dispatch(item, resolution.category)
        >>> summary.executed, summary.errors
    """

    def __init__(
        self,
        registry: ActionRegistry,
        holder: SnapshotHolder,
        config: Optional[DispatcherConfig] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            registry: Action registry used to resolve handler keys
            holder: Snapshot holder supplying category bindings
            config: Dispatcher configuration (defaults if None)
        """
        self.registry = registry
        self.holder = holder
        self.config = config or DispatcherConfig()

    def dispatch(
        self,
        item: ContentItem,
        category: Union[Category, int],
        snapshot: Optional[RuleSnapshot] = None,
    ) -> DispatchSummary:
        """
        Execute every active action bound to a category, in order.

        Args:
            item: Content item being processed
            category: Resolved category (or its id)
            snapshot: Snapshot to read bindings from (current one if None)

        Returns:
            DispatchSummary with one record per bound action

        Raises:
            SnapshotUnavailableError: If no rule snapshot is loaded
        """
        start = time.monotonic()
        snapshot = snapshot or self.holder.current()

        category_id = category if isinstance(category, int) else category.id
        resolved = snapshot.categories_by_id.get(category_id)
        category_name = resolved.name if resolved else getattr(category, "name", None)

        summary = DispatchSummary(
            content_id=item.id,
            category_id=category_id,
            category_name=category_name,
        )

        bound_actions = snapshot.actions_for(category_id)
        if not bound_actions:
            log_with_context(
                logger,
                logging.WARNING,
                f"No actions found for category {category_name} ({category_id})",
                category=category_name,
            )
            summary.total_ms = int((time.monotonic() - start) * 1000)
            return summary

        log_with_context(
            logger,
            logging.INFO,
            f"Dispatching {len(bound_actions)} actions for category {category_name}: "
            f"{', '.join(b.action.name for b in bound_actions)}",
            category=category_name,
        )

        for bound in bound_actions:
            summary.records.append(self._execute_bound(item, bound))

        summary.total_ms = int((time.monotonic() - start) * 1000)
        log_with_context(
            logger,
            logging.INFO if summary.errors == 0 else logging.WARNING,
            f"Dispatch completed for category {category_name}: "
            f"executed={summary.executed} total={summary.total} errors={summary.errors} "
            f"in {summary.total_ms}ms",
            category=category_name,
        )
        return summary

    def _execute_bound(self, item: ContentItem, bound: BoundAction) -> ActionExecutionRecord:
        """Resolve, validate and run one binding."""
        action = bound.action
        record_fields = {
            "action_id": action.id,
            "execution_order": bound.binding.execution_order,
        }

        definition = self.registry.get(bound.handler_key)
        if definition is None:
            message = str(HandlerNotFoundError(bound.handler_key))
            log_with_context(
                logger,
                logging.ERROR,
                f"Configuration mismatch: action '{action.name}' is bound to "
                f"unregistered handler key '{bound.handler_key}'",
                action=action.name,
                handler_key=bound.handler_key,
            )
            return ActionExecutionRecord.failed(
                action.name,
                bound.handler_key,
                ActionErrorKind.HANDLER_NOT_FOUND,
                message,
                **record_fields,
            )

        return self._run(item, action.name, definition, bound.config, record_fields)

    def _run(
        self,
        item: ContentItem,
        action_name: str,
        definition: ActionDefinition,
        config: Optional[Dict[str, Any]],
        record_fields: Dict[str, Any],
    ) -> ActionExecutionRecord:
        """Validate config and execute a handler under the action timeout."""
        handler_key = definition.handler_key
        config = dict(config or {})

        errors = definition.validate_config(config)
        if errors:
            message = str(ActionConfigError(f"Invalid config: {'; '.join(errors)}", errors))
            log_with_context(
                logger,
                logging.ERROR,
                f"Action '{action_name}' skipped: {message}",
                action=action_name,
                handler_key=handler_key,
            )
            return ActionExecutionRecord.failed(
                action_name,
                handler_key,
                ActionErrorKind.INVALID_CONFIG,
                message,
                **record_fields,
            )

        log_with_context(
            logger,
            logging.DEBUG,
            f"Executing action '{action_name}'",
            action=action_name,
            handler_key=handler_key,
        )

        start = time.monotonic()
        context = CorrelationContext.get_current()
        timeout = self.config.action_timeout_seconds

        try:
            result = call_with_timeout(
                _execute_in_context,
                timeout,
                definition.handler,
                item,
                config,
                context,
                thread_name=f"action-{handler_key}",
            )
        except CallTimeoutError:
            # The handler thread finishes on its own; its result is discarded
            error = ActionTimeoutError(handler_key, timeout)
            return self._failure(
                action_name, handler_key, ActionErrorKind.TIMEOUT, str(error), start, record_fields
            )
        except Exception as e:
            return self._failure(
                action_name,
                handler_key,
                ActionErrorKind.EXECUTION_ERROR,
                f"{type(e).__name__}: {e}",
                start,
                record_fields,
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        if not isinstance(result, dict):
            return self._failure(
                action_name,
                handler_key,
                ActionErrorKind.EXECUTION_ERROR,
                f"Handler returned unexpected type: {type(result).__name__}",
                start,
                record_fields,
            )

        log_with_context(
            logger,
            logging.INFO,
            f"Action '{action_name}' executed in {duration_ms}ms",
            action=action_name,
            handler_key=handler_key,
        )
        return ActionExecutionRecord.succeeded(
            action_name, handler_key, result, duration_ms=duration_ms, **record_fields
        )

    def _failure(
        self,
        action_name: str,
        handler_key: str,
        error_kind: ActionErrorKind,
        message: str,
        start: float,
        record_fields: Dict[str, Any],
    ) -> ActionExecutionRecord:
        duration_ms = int((time.monotonic() - start) * 1000)
        log_with_context(
            logger,
            logging.ERROR,
            f"Action '{action_name}' failed ({error_kind.value}): {message}",
            action=action_name,
            handler_key=handler_key,
        )
        return ActionExecutionRecord.failed(
            action_name, handler_key, error_kind, message, duration_ms=duration_ms, **record_fields
        )

    def test_action(
        self,
        handler_key: str,
        content: Optional[ContentItem] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> ActionExecutionRecord:
        """
        Run a single handler outside of any category.

        Args:
            handler_key: Handler to run
            content: Item to run against (a small sample item if None)
            config: Optional binding config

        Returns:
            ActionExecutionRecord (never raises for handler failures)
        """
        definition = self.registry.get(handler_key)
        if definition is None:
            logger.error(f"Action test failed: handler not found: {handler_key}")
            return ActionExecutionRecord.failed(
                handler_key,
                handler_key,
                ActionErrorKind.HANDLER_NOT_FOUND,
                str(HandlerNotFoundError(handler_key)),
            )

        record = self._run(content or SAMPLE_CONTENT, handler_key, definition, config, {})
        logger.info(f"Action test completed: {handler_key} success={record.success}")
        return record
