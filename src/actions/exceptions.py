"""
Exceptions raised by the action registry and dispatcher.

The dispatcher converts these into ActionExecutionRecord failures; they only
escape to callers from registry operations and ``ActionRegistry.require``.
"""

from typing import List

from classify.core.exceptions import PipelineError


class ActionError(PipelineError):
    """Base exception for action errors."""
    pass


class HandlerNotFoundError(ActionError):
    """
    No handler is registered for a handler key.

    Attributes:
        handler_key: The key that could not be resolved
    """

    def __init__(self, handler_key: str):
        super().__init__(f"Handler not found: {handler_key}")
        self.handler_key = handler_key


class ActionConfigError(ActionError):
    """Per-action configuration failed validation."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


class ActionTimeoutError(ActionError):
    """An action did not finish within its timeout."""

    def __init__(self, handler_key: str, timeout_seconds: float):
        super().__init__(f"Action {handler_key} timed out after {timeout_seconds:g} seconds")
        self.handler_key = handler_key
        self.timeout_seconds = timeout_seconds


class DuplicateHandlerError(ActionError):
    """A handler key is already registered."""
    pass
