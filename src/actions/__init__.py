"""
Action registry and dispatcher for category-specific content enrichment.
"""

from .dispatcher import ActionDispatcher, DispatcherConfig
from .exceptions import (
    ActionConfigError,
    ActionError,
    ActionTimeoutError,
    DuplicateHandlerError,
    HandlerNotFoundError,
)
from .handlers import (
    ActionErrorKind,
    ActionExecutionRecord,
    ActionHandler,
    DispatchSummary,
    FunctionHandler,
)
from .registry import (
    ActionDefinition,
    ActionRegistry,
    create_default_registry,
    get_action_registry,
)

__all__ = [
    "ActionConfigError",
    "ActionDefinition",
    "ActionDispatcher",
    "ActionError",
    "ActionErrorKind",
    "ActionExecutionRecord",
    "ActionHandler",
    "ActionRegistry",
    "ActionTimeoutError",
    "DispatchSummary",
    "DispatcherConfig",
    "DuplicateHandlerError",
    "FunctionHandler",
    "HandlerNotFoundError",
    "create_default_registry",
    "get_action_registry",
]
