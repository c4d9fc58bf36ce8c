"""
Action Handlers - Base types for content enrichment actions.

This module provides the base types for action execution:
- ActionHandler: The single "execute" capability every action implements
- ActionExecutionRecord: Outcome of one action within a dispatch
- DispatchSummary: Aggregate outcome of a category's actions
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from classify.core.types import ContentItem


logger = logging.getLogger(__name__)


class ActionErrorKind(str, Enum):
    """Why an action failed."""
    HANDLER_NOT_FOUND = "handler_not_found"
    INVALID_CONFIG = "invalid_config"
    EXECUTION_ERROR = "execution_error"
    TIMEOUT = "timeout"


class ActionHandler(ABC):
    """
    Interface for a content enrichment action.

    Handlers receive a read-only content item and the binding's validated
    config, and return a JSON-serializable payload. Failures are signalled
    by raising; the dispatcher records them.
    """

    @abstractmethod
    def execute(self, item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the action.

        Args:
            item: Content item being processed
            config: Per-binding configuration (already validated)

        Returns:
            Result payload
        """
        pass


class FunctionHandler(ActionHandler):
    """Adapts a plain ``func(item, config) -> dict`` to ActionHandler."""

    def __init__(self, func: Callable[[ContentItem, Dict[str, Any]], Dict[str, Any]]):
        self.func = func

    def execute(self, item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
        return self.func(item, config)

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self.func, '__name__', self.func)!r})"


@dataclass
class ActionExecutionRecord:
    """
    Outcome of one action.

    Attributes:
        action_name: Name of the Action row
        handler_key: Handler key the action resolved against
        success: Whether the handler returned a payload
        result: Handler payload (if successful)
        error: Error description (if failed)
        error_kind: Failure category (if failed)
        duration_ms: Wall time spent on the action
        action_id: Action row id (None for ad hoc test runs)
        execution_order: Binding execution order
        executed_at: When the action finished
    """
    action_name: str
    handler_key: str
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[ActionErrorKind] = None
    duration_ms: int = 0
    action_id: Optional[int] = None
    execution_order: Optional[int] = None
    executed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def succeeded(
        cls,
        action_name: str,
        handler_key: str,
        result: Dict[str, Any],
        duration_ms: int = 0,
        **kwargs: Any,
    ) -> "ActionExecutionRecord":
        """Create a successful record."""
        return cls(
            action_name=action_name,
            handler_key=handler_key,
            success=True,
            result=result,
            duration_ms=duration_ms,
            **kwargs,
        )

    @classmethod
    def failed(
        cls,
        action_name: str,
        handler_key: str,
        error_kind: ActionErrorKind,
        error: str,
        duration_ms: int = 0,
        **kwargs: Any,
    ) -> "ActionExecutionRecord":
        """Create a failed record."""
        return cls(
            action_name=action_name,
            handler_key=handler_key,
            success=False,
            error=error,
            error_kind=error_kind,
            duration_ms=duration_ms,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = {
            "action": self.action_name,
            "handler_key": self.handler_key,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "executed_at": self.executed_at.isoformat(),
        }
        if self.action_id is not None:
            result["action_id"] = self.action_id
        if self.execution_order is not None:
            result["execution_order"] = self.execution_order
        if self.success:
            result["result"] = self.result
        else:
            result["error"] = self.error
            result["error_kind"] = self.error_kind.value if self.error_kind else None
        return result


@dataclass
class DispatchSummary:
    """
    Aggregate result of dispatching a category's actions.

    ``executed`` counts successful actions, ``errors`` counts failed ones,
    and ``total`` counts every bound action that was attempted.
    """
    content_id: Optional[str]
    category_id: Optional[int]
    category_name: Optional[str]
    records: List[ActionExecutionRecord] = field(default_factory=list)
    total_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def executed(self) -> int:
        return sum(1 for r in self.records if r.success)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.records if not r.success)

    @property
    def failed_records(self) -> List[ActionExecutionRecord]:
        return [r for r in self.records if not r.success]

    @property
    def partially_failed(self) -> bool:
        return self.errors > 0

    def record_for(self, action_name: str) -> Optional[ActionExecutionRecord]:
        """First record for an action name."""
        return next((r for r in self.records if r.action_name == action_name), None)

    @property
    def processing_metrics(self) -> Dict[str, Any]:
        """Timing breakdown across actions."""
        action_times = [
            {
                "action": r.action_name,
                "duration_ms": r.duration_ms,
                "failed": not r.success,
            }
            for r in self.records
        ]
        average = (
            sum(r.duration_ms for r in self.records) / len(self.records)
            if self.records
            else 0
        )
        return {
            "total_ms": self.total_ms,
            "action_times": action_times,
            "average_action_ms": average,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = {
            "content_id": self.content_id,
            "category_id": self.category_id,
            "category": self.category_name,
            "executed": self.executed,
            "total": self.total,
            "errors": self.errors,
            "results": {r.action_name: r.to_dict() for r in self.records},
            "processing_metrics": self.processing_metrics,
        }
        if self.failed_records:
            result["error_details"] = [
                {
                    "action": r.action_name,
                    "handler_key": r.handler_key,
                    "error": r.error,
                    "error_kind": r.error_kind.value if r.error_kind else None,
                }
                for r in self.failed_records
            ]
        return result
