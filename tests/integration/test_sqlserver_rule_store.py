"""
Integration tests for the SQL Server rule store.

These tests verify that:
1. The rule schema and tables are created
2. The seed file loads and builds a valid snapshot
3. Uniqueness and fallback constraints hold on SQL Server

Each test runs in its own throwaway schema. Skipped unless SQL Server is
reachable (see tests/conftest.py).
"""

import uuid
from pathlib import Path

import pytest

from taxonomy.exceptions import RuleStoreError
from taxonomy.models import Category, MatcherType
from taxonomy.seed_loader import apply_seed, load_seed_file
from taxonomy.snapshot import RuleSnapshot


SEED_PATH = Path(__file__).parents[2] / "config" / "seed_rules.yaml"
RULE_TABLES = ["category_aliases", "matchers", "category_actions", "actions", "categories"]


@pytest.fixture
def sqlserver_rule_store(sqlserver_conn_str):
    from taxonomy.store.sqlserver_store import SqlServerRuleStore

    schema = f"rules_test_{uuid.uuid4().hex[:8]}"
    store = SqlServerRuleStore(connection_string=sqlserver_conn_str, schema=schema)
    yield store

    conn = store._get_connection()
    cursor = conn.cursor()
    for table in RULE_TABLES:
        cursor.execute(f"DROP TABLE IF EXISTS [{schema}].[{table}]")
    cursor.execute(f"DROP SCHEMA [{schema}]")
    conn.commit()
    store.close()


@pytest.mark.integration
class TestRuleSchema:
    """Tests to verify the rule tables exist."""

    def test_tables_exist(self, sqlserver_rule_store):
        store = sqlserver_rule_store
        cursor = store._get_connection().cursor()

        cursor.execute("""
            SELECT t.name FROM sys.tables t
            JOIN sys.schemas s ON t.schema_id = s.schema_id
            WHERE s.name = ?
        """, (store.schema,))

        tables = {row[0] for row in cursor.fetchall()}
        assert tables == set(RULE_TABLES)

    def test_init_schema_is_idempotent(self, sqlserver_rule_store):
        sqlserver_rule_store.init_schema()
        assert sqlserver_rule_store.load_tables().categories == []


@pytest.mark.integration
class TestSeededRules:
    """Tests for loading the seed file into SQL Server."""

    def test_seed_builds_snapshot(self, sqlserver_rule_store):
        report = apply_seed(sqlserver_rule_store, load_seed_file(SEED_PATH))
        snapshot = RuleSnapshot.build(sqlserver_rule_store.load_tables())

        assert report.created["categories"] == 9
        assert snapshot.fallback.name == "Uncategorized"
        assert snapshot.counts()["matchers"] == 23
        assert [b.action.name for b in snapshot.actions_for(snapshot.fallback.id)] == [
            "summarize",
            "extract_keywords",
            "calculate_reading_time",
        ]

    def test_binding_config_round_trips(self, sqlserver_rule_store):
        apply_seed(sqlserver_rule_store, load_seed_file(SEED_PATH))
        politics = sqlserver_rule_store.get_category_by_name("US Politics")

        bindings = sqlserver_rule_store.list_bindings(politics.id)

        assert {b.execution_order: b.config for b in bindings}[3] == {"max_sentences": 5}

    def test_domain_matchers_loaded(self, sqlserver_rule_store):
        apply_seed(sqlserver_rule_store, load_seed_file(SEED_PATH))
        matchers = sqlserver_rule_store.list_matchers()
        assert all(m.matcher_type == MatcherType.DOMAIN for m in matchers)


@pytest.mark.integration
class TestConstraints:
    """Tests for constraint enforcement."""

    def test_duplicate_category_name(self, sqlserver_rule_store):
        sqlserver_rule_store.create_category(Category(name="Technology"))
        with pytest.raises(RuleStoreError):
            sqlserver_rule_store.create_category(Category(name="Technology"))

    def test_fallback_cannot_be_deleted(self, sqlserver_rule_store):
        fallback = sqlserver_rule_store.create_category(Category(name="General", is_fallback=True))
        with pytest.raises(RuleStoreError, match="Cannot delete fallback"):
            sqlserver_rule_store.delete_category(fallback.id)

    def test_alias_upsert_moves_target(self, sqlserver_rule_store):
        tech = sqlserver_rule_store.create_category(Category(name="Technology"))
        dev = sqlserver_rule_store.create_category(Category(name="Software Development"))

        sqlserver_rule_store.upsert_alias("coding", tech.id)
        sqlserver_rule_store.upsert_alias("coding", dev.id)

        aliases = sqlserver_rule_store.search_aliases("coding")
        assert [(a.alias, a.category_id) for a in aliases] == [("coding", dev.id)]
