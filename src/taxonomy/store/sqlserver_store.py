"""
SQL Server-based rule store.

Tables live in a dedicated schema (default ``rules``). The single-fallback
invariant is enforced by a filtered unique index.
"""

import logging
import os
import re
import threading
from typing import Any, Dict, List, Optional, Sequence

import pyodbc

from .base import SqlRuleStore


logger = logging.getLogger(__name__)


class SqlServerRuleStore(SqlRuleStore):
    """
    SQL Server implementation of the rule store.

    Example:
        >>> store = SqlServerRuleStore.from_env()
        >>> tables = store.load_tables()
    """

    integrity_errors = (pyodbc.IntegrityError,)
    database_errors = (pyodbc.Error,)

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "ContentPipeline",
        username: str = "sa",
        password: str = "",
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "rules",
        trust_server_certificate: bool = True,
        auto_init: bool = True,
    ):
        """
        Initialize the SQL Server rule store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: SQL Server username
            password: SQL Server password
            driver: ODBC driver name
            schema: Schema name for the rule tables
            trust_server_certificate: Whether to trust self-signed certificates
            auto_init: Whether to create schema and tables automatically
        """
        super().__init__()

        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]{0,127}$", schema):
            raise ValueError(f"Invalid schema name: {schema}")
        self.schema = schema

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self._thread_local = threading.local()
        self._connections = []
        self._connections_lock = threading.Lock()

        if auto_init:
            self.init_schema()

    @classmethod
    def resolve_env_config(cls) -> Dict[str, Any]:
        """Resolve connection settings from RULES_SQLSERVER_* environment variables."""
        return {
            "host": os.environ.get("RULES_SQLSERVER_HOST", "localhost"),
            "port": int(os.environ.get("RULES_SQLSERVER_PORT", "1433")),
            "database": os.environ.get("RULES_SQLSERVER_DATABASE", "ContentPipeline"),
            "username": os.environ.get("RULES_SQLSERVER_USER", "sa"),
            "password": os.environ.get("RULES_SQLSERVER_PASSWORD", ""),
            "driver": os.environ.get("RULES_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server"),
        }

    @classmethod
    def from_env(cls, auto_init: bool = True) -> "SqlServerRuleStore":
        """Create store from environment variables."""
        conn_str = os.environ.get("RULES_SQLSERVER_CONN_STR")
        if conn_str:
            return cls(connection_string=conn_str, auto_init=auto_init)
        return cls(auto_init=auto_init, **cls.resolve_env_config())

    def _get_connection(self):
        """Get (or create) a thread-local connection."""
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            try:
                conn = pyodbc.connect(self.connection_string, autocommit=False)
            except pyodbc.Error as e:
                logger.error(f"Failed to connect to SQL Server: {e}")
                raise
            self._thread_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
            logger.debug(f"Connected to SQL Server rule store (schema: {self.schema})")
        return conn

    def _table(self, name: str) -> str:
        return f"[{self.schema}].[{name}]"

    def _insert(self, cursor, table: str, columns: Sequence[str], values: Sequence[Any]) -> int:
        placeholders = ", ".join("?" for _ in columns)
        cursor.execute(
            f"INSERT INTO {self._table(table)} ({', '.join(columns)}) "
            f"OUTPUT INSERTED.id VALUES ({placeholders})",
            tuple(values),
        )
        return int(cursor.fetchone()[0])

    def _schema_statements(self) -> List[str]:
        s = self.schema

        def create_table(name: str, body: str) -> str:
            return f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = '{name}' AND s.name = '{s}')
                BEGIN
                    CREATE TABLE [{s}].[{name}] ({body})
                END
            """

        def create_index(name: str, table: str, body: str) -> str:
            return f"""
                IF NOT EXISTS (SELECT * FROM sys.indexes
                               WHERE name = '{name}' AND object_id = OBJECT_ID('[{s}].[{table}]'))
                BEGIN
                    {body}
                END
            """

        return [
            f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = '{s}')
                BEGIN
                    EXEC('CREATE SCHEMA [{s}]')
                END
            """,
            create_table("categories", """
                id INT IDENTITY(1,1) PRIMARY KEY,
                name NVARCHAR(100) NOT NULL CONSTRAINT uq_categories_name UNIQUE,
                description NVARCHAR(MAX) NULL,
                priority INT NOT NULL DEFAULT 100,
                is_active BIT NOT NULL DEFAULT 1,
                is_fallback BIT NOT NULL DEFAULT 0,
                created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME(),
                updated_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
            """),
            create_index(
                "ux_categories_single_fallback",
                "categories",
                f"CREATE UNIQUE INDEX ux_categories_single_fallback "
                f"ON [{s}].[categories] (is_fallback) WHERE is_fallback = 1",
            ),
            create_table("actions", """
                id INT IDENTITY(1,1) PRIMARY KEY,
                name NVARCHAR(100) NOT NULL CONSTRAINT uq_actions_name UNIQUE,
                handler_key NVARCHAR(200) NOT NULL,
                description NVARCHAR(MAX) NULL,
                is_active BIT NOT NULL DEFAULT 1,
                created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
            """),
            create_table("category_actions", f"""
                id INT IDENTITY(1,1) PRIMARY KEY,
                category_id INT NOT NULL REFERENCES [{s}].[categories] (id) ON DELETE CASCADE,
                action_id INT NOT NULL REFERENCES [{s}].[actions] (id) ON DELETE CASCADE,
                execution_order INT NOT NULL DEFAULT 0,
                config NVARCHAR(MAX) NOT NULL DEFAULT '{{}}',
                is_active BIT NOT NULL DEFAULT 1,
                created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME(),
                CONSTRAINT uq_category_actions_pair UNIQUE (category_id, action_id),
                CONSTRAINT ck_category_actions_config CHECK (ISJSON(config) = 1)
            """),
            create_table("matchers", f"""
                id INT IDENTITY(1,1) PRIMARY KEY,
                category_id INT NOT NULL REFERENCES [{s}].[categories] (id) ON DELETE CASCADE,
                matcher_type NVARCHAR(20) NOT NULL
                    CONSTRAINT ck_matchers_type CHECK (matcher_type IN ('domain', 'keyword')),
                pattern NVARCHAR(500) NOT NULL,
                is_exclusion BIT NOT NULL DEFAULT 0,
                is_active BIT NOT NULL DEFAULT 1,
                created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
            """),
            create_table("category_aliases", f"""
                id INT IDENTITY(1,1) PRIMARY KEY,
                alias NVARCHAR(200) NOT NULL CONSTRAINT uq_category_aliases_alias UNIQUE,
                category_id INT NOT NULL REFERENCES [{s}].[categories] (id) ON DELETE CASCADE,
                confidence_threshold FLOAT NOT NULL DEFAULT 0.7,
                created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME(),
                updated_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
            """),
        ]

    def close(self) -> None:
        """Close every thread-local connection opened by this store."""
        with self._connections_lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            try:
                conn.close()
            except pyodbc.Error as e:
                logger.debug(f"Error closing SQL Server connection: {e}")
        self._thread_local = threading.local()
