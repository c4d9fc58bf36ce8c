"""
Rule store implementations.

To select a backend, set the RULES_DB_BACKEND environment variable:
    - RULES_DB_BACKEND=sqlite (default; local development and tests)
    - RULES_DB_BACKEND=sqlserver
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .base import RuleStore, SqlRuleStore
from .sqlite_store import SqliteRuleStore


logger = logging.getLogger(__name__)


def _get_sqlserver_store():
    # Deferred so the sqlite backend works on hosts without an ODBC driver manager
    from .sqlserver_store import SqlServerRuleStore
    return SqlServerRuleStore


def create_rule_store(
    backend: Optional[str] = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    sqlserver_options: Optional[Dict[str, Any]] = None,
    auto_init: bool = True,
) -> RuleStore:
    """
    Factory function to create the rule store for the configured backend.

    Args:
        backend: 'sqlite' or 'sqlserver'. Defaults to RULES_DB_BACKEND or 'sqlite'.
        db_path: SQLite database path (default: RULES_SQLITE_PATH or local/rules.db)
        connection_string: SQL Server ODBC connection string (default: from env)
        sqlserver_options: SQL Server host/port/database/... keyword arguments,
            used when no connection string is given
        auto_init: Whether to create tables automatically

    Returns:
        RuleStore instance

    Raises:
        ValueError: If backend is not recognized
    """
    if backend is None:
        backend = os.environ.get("RULES_DB_BACKEND", "sqlite")
    backend = backend.lower()

    if backend == "sqlite":
        if db_path is None:
            db_path = os.environ.get("RULES_SQLITE_PATH", "local/rules.db")
        logger.debug(f"Using SQLite rule store at {db_path}")
        return SqliteRuleStore(db_path=db_path, auto_init=auto_init)

    if backend == "sqlserver":
        SqlServerRuleStore = _get_sqlserver_store()
        if connection_string:
            return SqlServerRuleStore(connection_string=connection_string, auto_init=auto_init)
        if sqlserver_options:
            return SqlServerRuleStore(auto_init=auto_init, **sqlserver_options)
        return SqlServerRuleStore.from_env(auto_init=auto_init)

    raise ValueError(
        f"Unknown backend: {backend}. Supported backends: 'sqlite', 'sqlserver'"
    )


__all__ = ["RuleStore", "SqlRuleStore", "SqliteRuleStore", "create_rule_store"]
