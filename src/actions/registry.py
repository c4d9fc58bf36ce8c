"""
Action Registry - Central catalog of action handlers.

Maps stable handler keys (e.g. 'general.summarize') to ActionHandler
implementations together with a per-action config schema. The registry is
populated at startup; bindings in the rule snapshot are validated against it
at load time so unknown keys and bad configs are reported before any item is
processed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .exceptions import DuplicateHandlerError, HandlerNotFoundError
from .handlers import ActionHandler, FunctionHandler


logger = logging.getLogger(__name__)


# Value checks available to config schemas
CONFIG_FIELD_TYPES = {
    "positive_int": lambda v: isinstance(v, int) and not isinstance(v, bool) and v > 0,
    "positive_number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0,
    "string": lambda v: isinstance(v, str),
    "bool": lambda v: isinstance(v, bool),
    "string_list": lambda v: isinstance(v, list) and all(isinstance(x, str) for x in v),
}

_TYPE_DESCRIPTIONS = {
    "positive_int": "a positive integer",
    "positive_number": "a positive number",
    "string": "a string",
    "bool": "a boolean",
    "string_list": "a list of strings",
}


def validate_config_schema(schema: Dict[str, str], config: Optional[Dict[str, Any]]) -> List[str]:
    """
    Validate a config mapping against a schema.

    Every key is optional; keys not in the schema are rejected.

    Args:
        schema: Mapping of config key to field type (see CONFIG_FIELD_TYPES)
        config: Config to validate (None is treated as empty)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        return []
    if not isinstance(config, dict):
        return [f"config must be a mapping, got {type(config).__name__}"]

    errors = []
    for key, value in config.items():
        field_type = schema.get(key)
        if field_type is None:
            allowed = ", ".join(sorted(schema)) or "none"
            errors.append(f"Unknown config key '{key}' (allowed: {allowed})")
        elif not CONFIG_FIELD_TYPES[field_type](value):
            errors.append(f"'{key}' must be {_TYPE_DESCRIPTIONS[field_type]}, got {value!r}")
    return errors


@dataclass
class ActionDefinition:
    """
    A registered action handler.

    Attributes:
        handler_key: Stable identifier referenced by Action rows
        handler: The implementation
        description: Human-readable description
        config_schema: Accepted config keys and their types
    """
    handler_key: str
    handler: ActionHandler
    description: Optional[str] = None
    config_schema: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        unknown = [t for t in self.config_schema.values() if t not in CONFIG_FIELD_TYPES]
        if unknown:
            raise ValueError(
                f"Unknown config field types for {self.handler_key}: {', '.join(unknown)}"
            )

    def validate_config(self, config: Optional[Dict[str, Any]]) -> List[str]:
        return validate_config_schema(self.config_schema, config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handler_key": self.handler_key,
            "description": self.description,
            "config_schema": dict(self.config_schema),
        }


class ActionRegistry:
    """
    Registry of action handlers keyed by handler key.

    Example:
        >>> registry = ActionRegistry()
        >>> registry.register_function("general.wordCount", word_count,
        ...                            config_schema={"min_length": "positive_int"})
        >>> registry.get("general.wordCount").handler.execute(item, {})
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._definitions: Dict[str, ActionDefinition] = {}

    def register(self, definition: ActionDefinition, replace: bool = False) -> None:
        """
        Register an action definition.

        Args:
            definition: The definition to register
            replace: Overwrite an existing registration instead of raising

        Raises:
            DuplicateHandlerError: If the key is taken and replace is False
        """
        if definition.handler_key in self._definitions:
            if not replace:
                raise DuplicateHandlerError(
                    f"Handler key already registered: {definition.handler_key}"
                )
            logger.warning(f"Overwriting existing handler: {definition.handler_key}")
        self._definitions[definition.handler_key] = definition
        logger.debug(f"Registered handler: {definition.handler_key}")

    def register_function(
        self,
        handler_key: str,
        func: Union[Callable, ActionHandler],
        description: Optional[str] = None,
        config_schema: Optional[Dict[str, str]] = None,
        replace: bool = False,
    ) -> ActionDefinition:
        """Register a plain ``func(item, config)`` (or an ActionHandler)."""
        handler = func if isinstance(func, ActionHandler) else FunctionHandler(func)
        definition = ActionDefinition(
            handler_key=handler_key,
            handler=handler,
            description=description,
            config_schema=dict(config_schema or {}),
        )
        self.register(definition, replace=replace)
        return definition

    def get(self, handler_key: str) -> Optional[ActionDefinition]:
        """
        Get a definition by handler key.

        Returns:
            The definition, or None if not registered
        """
        return self._definitions.get(handler_key)

    def require(self, handler_key: str) -> ActionDefinition:
        """
        Get a definition by handler key.

        Raises:
            HandlerNotFoundError: If the key is not registered
        """
        definition = self.get(handler_key)
        if definition is None:
            raise HandlerNotFoundError(handler_key)
        return definition

    def has(self, handler_key: str) -> bool:
        return handler_key in self._definitions

    def __contains__(self, handler_key: str) -> bool:
        return self.has(handler_key)

    def __len__(self) -> int:
        return len(self._definitions)

    def list_keys(self) -> List[str]:
        """List registered handler keys, sorted."""
        return sorted(self._definitions)

    def list_definitions(self) -> List[ActionDefinition]:
        return [self._definitions[k] for k in self.list_keys()]

    def validate_config(self, handler_key: str, config: Optional[Dict[str, Any]]) -> List[str]:
        """
        Validate a binding config for a handler key.

        Returns a list of validation errors (empty if valid).
        """
        definition = self.get(handler_key)
        if definition is None:
            return [f"Handler not found: {handler_key}"]
        return definition.validate_config(config)

    def validate_bindings(self, snapshot) -> List[str]:
        """
        Check every active binding in a rule snapshot against the registry.

        Args:
            snapshot: RuleSnapshot to check

        Returns:
            List of issues (unknown handler keys, invalid configs)
        """
        issues = []
        for category in snapshot.categories:
            for bound in snapshot.actions_for(category.id):
                prefix = f"{category.name} -> {bound.action.name}"
                if not self.has(bound.handler_key):
                    issues.append(f"{prefix}: unknown handler key '{bound.handler_key}'")
                    continue
                for error in self.validate_config(bound.handler_key, bound.config):
                    issues.append(f"{prefix}: {error}")

        for issue in issues:
            logger.warning(f"Binding check: {issue}")
        return issues


def create_default_registry() -> ActionRegistry:
    """Create a registry populated with the built-in action library."""
    from .builtin import register_builtin_actions

    registry = ActionRegistry()
    register_builtin_actions(registry)
    logger.debug(f"Loaded {len(registry)} built-in handlers")
    return registry


# Global registry instance
_registry: Optional[ActionRegistry] = None


def get_action_registry() -> ActionRegistry:
    """Get the global action registry (built-ins loaded)."""
    global _registry
    if _registry is None:
        _registry = create_default_registry()
    return _registry
