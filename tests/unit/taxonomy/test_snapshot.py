"""
Unit tests for RuleSnapshot.build and SnapshotHolder.

Tests for:
- Fallback invariant
- Name uniqueness
- Binding ordering and filtering
- Warnings for unknown handler keys and dangling aliases
- Atomic swap and failed reloads
"""

import pytest
from unittest.mock import MagicMock

from taxonomy.exceptions import SnapshotUnavailableError, SnapshotValidationError
from taxonomy.models import (
    Action,
    Category,
    CategoryAction,
    CategoryAlias,
    Matcher,
    MatcherType,
    RuleTables,
)
from taxonomy.snapshot import RuleSnapshot, SnapshotHolder


def make_tables(**overrides) -> RuleTables:
    """Small valid rule set: Technology, Sports and a General fallback."""
    tables = RuleTables(
        categories=[
            Category(id=1, name="Technology", priority=2),
            Category(id=2, name="Sports", priority=1),
            Category(id=3, name="General", priority=99, is_fallback=True),
        ],
        actions=[
            Action(id=10, name="A", handler_key="general.summarize"),
            Action(id=11, name="B", handler_key="general.extractKeywords"),
            Action(id=12, name="C", handler_key="general.calculateReadingTime"),
        ],
        bindings=[
            CategoryAction(id=100, category_id=1, action_id=11, execution_order=2),
            CategoryAction(id=101, category_id=1, action_id=10, execution_order=1),
            CategoryAction(id=102, category_id=1, action_id=12, execution_order=3),
        ],
        matchers=[
            Matcher(id=1, category_id=1, matcher_type=MatcherType.DOMAIN, pattern="techcrunch.com"),
        ],
        aliases=[CategoryAlias(id=1, alias="tech", category_id=1)],
    )
    for key, value in overrides.items():
        setattr(tables, key, value)
    return tables


class TestRuleSnapshotBuild:
    """Tests for RuleSnapshot.build validation."""

    def test_valid_tables(self):
        snapshot = RuleSnapshot.build(make_tables())

        assert snapshot.fallback.name == "General"
        assert snapshot.category_names == ["Sports", "Technology", "General"]
        assert snapshot.aliases["tech"].name == "Technology"
        assert snapshot.warnings == ()

    def test_bindings_follow_execution_order(self):
        snapshot = RuleSnapshot.build(make_tables())

        names = [bound.action.name for bound in snapshot.actions_for(1)]
        assert names == ["A", "B", "C"]
        assert snapshot.actions_for(2) == ()

    def test_equal_order_breaks_ties_by_id(self):
        tables = make_tables(bindings=[
            CategoryAction(id=7, category_id=1, action_id=11, execution_order=1),
            CategoryAction(id=5, category_id=1, action_id=10, execution_order=1),
        ])
        snapshot = RuleSnapshot.build(tables)
        assert [b.action.name for b in snapshot.actions_for(1)] == ["A", "B"]

    def test_no_fallback(self):
        tables = make_tables()
        tables.categories[2].is_fallback = False

        with pytest.raises(SnapshotValidationError) as exc_info:
            RuleSnapshot.build(tables)
        assert "found 0" in exc_info.value.errors[0]

    def test_two_fallbacks(self):
        tables = make_tables()
        tables.categories[0].is_fallback = True

        with pytest.raises(SnapshotValidationError, match="found 2"):
            RuleSnapshot.build(tables)

    def test_inactive_fallback_does_not_count(self):
        tables = make_tables()
        tables.categories[2].is_active = False

        with pytest.raises(SnapshotValidationError):
            RuleSnapshot.build(tables)

    def test_duplicate_names_case_insensitive(self):
        tables = make_tables()
        tables.categories.append(Category(id=4, name="SPORTS", priority=5))

        with pytest.raises(SnapshotValidationError, match="Duplicate category name"):
            RuleSnapshot.build(tables)

    def test_binding_to_missing_action(self):
        tables = make_tables()
        tables.bindings.append(CategoryAction(id=200, category_id=2, action_id=99))

        with pytest.raises(SnapshotValidationError, match="missing action 99"):
            RuleSnapshot.build(tables)

    def test_inactive_rows_are_excluded(self):
        tables = make_tables()
        tables.bindings[0].is_active = False
        tables.actions[2].is_active = False
        tables.categories[1].is_active = False

        snapshot = RuleSnapshot.build(tables)

        assert [b.action.name for b in snapshot.actions_for(1)] == ["A"]
        assert snapshot.category_by_name("Sports") is None

    def test_unknown_handler_key_is_a_warning(self):
        tables = make_tables()
        tables.actions[0].handler_key = "nobody.home"

        snapshot = RuleSnapshot.build(tables, known_handler_keys=["general.extractKeywords"])

        assert any("nobody.home" in w for w in snapshot.warnings)
        assert len(snapshot.actions_for(1)) == 3

    def test_alias_to_inactive_category_is_skipped(self):
        tables = make_tables()
        tables.aliases.append(CategoryAlias(id=2, alias="football", category_id=2))
        tables.categories[1].is_active = False

        snapshot = RuleSnapshot.build(tables)

        assert "football" not in snapshot.aliases
        assert any("football" in w for w in snapshot.warnings)

    def test_matchers_of_inactive_categories_dropped(self):
        tables = make_tables()
        tables.categories[0].is_active = False

        snapshot = RuleSnapshot.build(tables)

        assert snapshot.matchers == ()

    def test_category_by_name(self):
        snapshot = RuleSnapshot.build(make_tables())
        assert snapshot.category_by_name("  technology ").id == 1
        assert snapshot.category_by_name(None) is None


class TestSnapshotHolder:
    """Tests for SnapshotHolder."""

    def test_empty_holder_raises(self):
        holder = SnapshotHolder()
        assert holder.is_loaded is False
        with pytest.raises(SnapshotUnavailableError):
            holder.current()

    def test_install_swaps(self):
        first = RuleSnapshot.build(make_tables())
        second = RuleSnapshot.build(make_tables())
        holder = SnapshotHolder(first)

        previous = holder.install(second)

        assert previous is first
        assert holder.current() is second

    def test_failed_reload_keeps_previous_snapshot(self):
        good = RuleSnapshot.build(make_tables())
        holder = SnapshotHolder(good)

        bad_tables = make_tables()
        bad_tables.categories[2].is_fallback = False
        store = MagicMock()
        store.load_tables.return_value = bad_tables

        with pytest.raises(SnapshotValidationError):
            holder.reload(store)
        assert holder.current() is good

    def test_reload_from_store(self, seeded_store):
        holder = SnapshotHolder()
        snapshot = holder.reload(seeded_store)

        assert holder.current() is snapshot
        assert snapshot.fallback.name == "Uncategorized"
        assert snapshot.counts()["categories"] == 9
