"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).parent.parent
SEED_PATH = REPO_ROOT / "config" / "seed_rules.yaml"


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_connection_string() -> str:
    """Build a SQL Server connection string from RULES_SQLSERVER_* variables."""
    conn_str = os.environ.get("RULES_SQLSERVER_CONN_STR")
    if conn_str:
        return conn_str

    password = os.environ.get("RULES_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")
    if not password:
        return ""

    host = os.environ.get("RULES_SQLSERVER_HOST", "localhost")
    port = os.environ.get("RULES_SQLSERVER_PORT", "1433")
    database = os.environ.get("RULES_SQLSERVER_DATABASE", "ContentPipeline")
    username = os.environ.get("RULES_SQLSERVER_USER", "sa")
    driver = os.environ.get("RULES_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server")
    return (
        f"Driver={{{driver}}};"
        f"Server={host},{port};"
        f"Database={database};"
        f"UID={username};"
        f"PWD={password};"
        f"TrustServerCertificate=yes"
    )


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    conn_str = sqlserver_connection_string()
    if not conn_str:
        return False

    try:
        import pyodbc

        conn = pyodbc.connect(conn_str, timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set RULES_SQLSERVER_CONN_STR or MSSQL_SA_PASSWORD)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def sqlite_store():
    """Empty in-memory rule store."""
    from taxonomy.store.sqlite_store import SqliteRuleStore

    store = SqliteRuleStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def seeded_store(sqlite_store):
    """In-memory rule store loaded with config/seed_rules.yaml."""
    from taxonomy.seed_loader import apply_seed, load_seed_file

    apply_seed(sqlite_store, load_seed_file(SEED_PATH))
    return sqlite_store


@pytest.fixture
def action_registry():
    """Registry holding the built-in action library."""
    from actions.registry import create_default_registry

    return create_default_registry()


@pytest.fixture
def seeded_holder(seeded_store, action_registry):
    """Snapshot holder loaded from the seeded store."""
    from taxonomy.snapshot import SnapshotHolder

    holder = SnapshotHolder(known_handler_keys=action_registry.list_keys())
    holder.reload(seeded_store)
    return holder


@pytest.fixture(scope="session")
def sqlserver_conn_str() -> str:
    return sqlserver_connection_string()
