"""
Configuration loader for the content pipeline.

Loads a YAML file (merged over built-in defaults), applies environment
variable overrides and hands out the typed configs each component takes.
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from actions.dispatcher import DispatcherConfig
from classify.core.exceptions import ConfigError
from classify.core.types import (
    API_KEY_ENV_VARS,
    DEFAULT_PROVIDER_ORDER,
    CacheConfig,
    ChainConfig,
    ProviderConfig,
)


logger = logging.getLogger(__name__)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass
class StoreConfig:
    """
    Configuration for the rule store.

    Attributes:
        backend: 'sqlite' or 'sqlserver'
        sqlite_path: SQLite database path
        connection_string: Full SQL Server ODBC connection string
        sqlserver: SQL Server connection pieces (host, port, database, ...)
        seed_path: Seed file applied by ``init-db --seed``
    """
    backend: str = "sqlite"
    sqlite_path: str = "local/rules.db"
    connection_string: Optional[str] = None
    sqlserver: Dict[str, Any] = field(default_factory=dict)
    seed_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """
        Create store configuration from environment variables.

        Environment variables:
            RULES_DB_BACKEND: sqlite (default) or sqlserver
            RULES_SQLITE_PATH: SQLite path (default: local/rules.db)
            RULES_SQLSERVER_CONN_STR: SQL Server connection string
        """
        return cls(
            backend=os.environ.get("RULES_DB_BACKEND", "sqlite"),
            sqlite_path=os.environ.get("RULES_SQLITE_PATH", "local/rules.db"),
            connection_string=os.environ.get("RULES_SQLSERVER_CONN_STR") or None,
        )

    def create_store(self, auto_init: bool = True):
        """Create the configured RuleStore."""
        from taxonomy.store import create_rule_store

        return create_rule_store(
            backend=self.backend,
            db_path=self.sqlite_path,
            connection_string=self.connection_string,
            sqlserver_options=self.sqlserver or None,
            auto_init=auto_init,
        )


class PipelineConfig:
    """
    Configuration for the content pipeline.

    Example:
        >>> config = PipelineConfig(Path("config/pipeline.yaml"))
        >>> config.get("classification.excerpt_chars")
        2000
        >>> chain_config = config.chain_config()
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)

        Raises:
            ConfigError: If the file is missing or is not valid YAML
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._default_config()
        if self.config_path:
            self.config = _deep_merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a mapping")
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "classification": {
                "excerpt_chars": 2000,
                "providers": {
                    "order": list(DEFAULT_PROVIDER_ORDER),
                    "timeout_seconds": 30,
                    "temperature": 0.1,
                    "max_tokens": 300,
                },
            },
            "cache": {
                "enabled": True,
                "ttl_seconds": 3600,
                "max_entries": 1000,
            },
            "actions": {
                "timeout_seconds": 30,
            },
            "rules": {
                "backend": "sqlite",
                "sqlite_path": "local/rules.db",
                "seed_path": "config/seed_rules.yaml",
                "sqlserver": {},
            },
            "pipeline": {
                "max_workers": 4,
            },
            "logging": {
                "level": "INFO",
                "structured": False,
            },
        }

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        classification = self.config.setdefault("classification", {})
        providers = classification.setdefault("providers", {})

        order = os.environ.get("CLASSIFY_PROVIDER_ORDER")
        if order:
            providers["order"] = [p.strip().lower() for p in order.split(",") if p.strip()]

        overrides = [
            ("CLASSIFY_PROVIDER_TIMEOUT_SECONDS", providers, "timeout_seconds", float),
            ("CLASSIFY_EXCERPT_CHARS", classification, "excerpt_chars", int),
            ("CLASSIFY_CACHE_TTL_SECONDS", self.config.setdefault("cache", {}), "ttl_seconds", float),
            ("CLASSIFY_CACHE_MAX_ENTRIES", self.config["cache"], "max_entries", int),
            ("ACTION_TIMEOUT_SECONDS", self.config.setdefault("actions", {}), "timeout_seconds", float),
            ("RULES_DB_BACKEND", self.config.setdefault("rules", {}), "backend", str),
            ("RULES_SQLITE_PATH", self.config["rules"], "sqlite_path", str),
            ("RULES_SQLSERVER_CONN_STR", self.config["rules"], "connection_string", str),
        ]
        for env_var, section, key, cast in overrides:
            value = os.environ.get(env_var)
            if value:
                try:
                    section[key] = cast(value)
                except ValueError as e:
                    raise ConfigError(f"Invalid value for {env_var}: {value!r}") from e

        for name in set(providers.get("order", [])) | set(API_KEY_ENV_VARS):
            prefix = name.upper()
            section = providers.get(name) or {}
            for suffix, key in (("MODEL", "model"), ("BASE_URL", "base_url")):
                value = os.environ.get(f"{prefix}_{suffix}")
                if value:
                    section[key] = value
            key_var = API_KEY_ENV_VARS.get(name)
            if key_var and os.environ.get(key_var):
                section["api_key"] = os.environ[key_var]
            if section:
                providers[name] = section

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def provider_configs(self) -> List[ProviderConfig]:
        """Provider configurations in chain order."""
        providers = self.get("classification.providers", {})
        configs = []
        for name in providers.get("order", []):
            section = providers.get(name) or {}
            configs.append(ProviderConfig(
                name=name,
                model=section.get("model"),
                base_url=section.get("base_url"),
                api_key=section.get("api_key"),
                timeout_seconds=float(section.get("timeout_seconds", providers.get("timeout_seconds", 30))),
                temperature=float(section.get("temperature", providers.get("temperature", 0.1))),
                max_tokens=section.get("max_tokens", providers.get("max_tokens", 300)),
                enabled=bool(section.get("enabled", True)),
                extra_params=section.get("extra_params") or {},
            ))
        return configs

    def chain_config(self) -> ChainConfig:
        return ChainConfig(
            excerpt_chars=int(self.get("classification.excerpt_chars", 2000)),
            providers=self.provider_configs(),
        )

    def cache_config(self) -> Optional[CacheConfig]:
        """Cache configuration, or None when caching is disabled."""
        if not self.get("cache.enabled", True):
            return None
        return CacheConfig(
            ttl_seconds=float(self.get("cache.ttl_seconds", 3600)),
            max_entries=int(self.get("cache.max_entries", 1000)),
        )

    def dispatcher_config(self) -> DispatcherConfig:
        return DispatcherConfig(
            action_timeout_seconds=float(self.get("actions.timeout_seconds", 30)),
        )

    def store_config(self) -> StoreConfig:
        rules = self.get("rules", {})
        return StoreConfig(
            backend=rules.get("backend", "sqlite"),
            sqlite_path=rules.get("sqlite_path", "local/rules.db"),
            connection_string=rules.get("connection_string"),
            sqlserver=rules.get("sqlserver") or {},
            seed_path=rules.get("seed_path"),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns a list of validation errors (empty if valid).
        """
        errors = []
        known = set(DEFAULT_PROVIDER_ORDER)
        for name in self.get("classification.providers.order", []):
            if name not in known:
                errors.append(f"Unknown provider in classification.providers.order: {name}")

        positives = [
            "classification.excerpt_chars",
            "cache.ttl_seconds",
            "cache.max_entries",
            "actions.timeout_seconds",
            "pipeline.max_workers",
        ]
        for key in positives:
            value = self.get(key)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                errors.append(f"{key} must be a positive number, got {value!r}")

        if self.get("rules.backend") not in ("sqlite", "sqlserver"):
            errors.append(f"rules.backend must be 'sqlite' or 'sqlserver', got {self.get('rules.backend')!r}")
        return errors
