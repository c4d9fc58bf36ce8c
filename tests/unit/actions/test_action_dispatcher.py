"""
Unit tests for ActionDispatcher.

Tests for:
- Strict execution order
- Failure isolation (handler errors, missing handlers, invalid config, timeouts)
- Summary counts and metrics
- Ad hoc action tests
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from actions.dispatcher import SAMPLE_CONTENT, ActionDispatcher, DispatcherConfig
from actions.handlers import ActionErrorKind
from actions.registry import ActionRegistry
from classify.core.logging import CorrelationContext
from classify.core.types import ContentItem
from taxonomy.exceptions import SnapshotUnavailableError
from taxonomy.models import Action, Category, CategoryAction, RuleTables
from taxonomy.snapshot import RuleSnapshot, SnapshotHolder


@pytest.fixture
def calls():
    return []


@pytest.fixture
def registry(calls):
    registry = ActionRegistry()

    def recorder(name):
        def handler(item, config):
            calls.append(name)
            return {"name": name, "config": config}
        return handler

    def boom(item, config):
        calls.append("boom")
        raise RuntimeError("handler exploded")

    def not_a_dict(item, config):
        return ["not", "a", "dict"]

    registry.register_function("test.a", recorder("A"))
    registry.register_function("test.b", recorder("B"), config_schema={"limit": "positive_int"})
    registry.register_function("test.c", recorder("C"))
    registry.register_function("test.boom", boom)
    registry.register_function("test.list", not_a_dict)
    return registry


def build_snapshot(bindings, actions=None):
    """One Technology category (id 1) plus a General fallback (id 9)."""
    actions = actions or [
        Action(id=1, name="A", handler_key="test.a"),
        Action(id=2, name="B", handler_key="test.b"),
        Action(id=3, name="C", handler_key="test.c"),
        Action(id=4, name="Boom", handler_key="test.boom"),
        Action(id=5, name="Ghost", handler_key="test.missing"),
        Action(id=6, name="List", handler_key="test.list"),
    ]
    return RuleSnapshot.build(RuleTables(
        categories=[
            Category(id=1, name="Technology", priority=1),
            Category(id=9, name="General", priority=99, is_fallback=True),
        ],
        actions=actions,
        bindings=bindings,
    ))


@pytest.fixture
def item():
    return ContentItem(id="item-1", title="Rust 2.0 released", raw_content="Rust news.")


def binding(binding_id, action_id, order, config=None):
    return CategoryAction(
        id=binding_id, category_id=1, action_id=action_id, execution_order=order, config=config or {}
    )


class TestActionDispatcher:
    """Tests for ActionDispatcher.dispatch."""

    def test_runs_in_execution_order(self, registry, item, calls):
        snapshot = build_snapshot([binding(1, 2, 2), binding(2, 1, 1), binding(3, 3, 3)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, snapshot.categories_by_id[1])

        assert calls == ["A", "B", "C"]
        assert [r.action_name for r in summary.records] == ["A", "B", "C"]
        assert [r.execution_order for r in summary.records] == [1, 2, 3]
        assert summary.executed == 3
        assert summary.errors == 0
        assert summary.partially_failed is False

    def test_failure_does_not_stop_later_actions(self, registry, item, calls):
        snapshot = build_snapshot([binding(1, 1, 1), binding(2, 4, 2), binding(3, 3, 3)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 1)

        assert calls == ["A", "boom", "C"]
        assert summary.executed == 2
        assert summary.errors == 1
        assert summary.total == 3
        failed = summary.record_for("Boom")
        assert failed.error_kind == ActionErrorKind.EXECUTION_ERROR
        assert failed.error == "RuntimeError: handler exploded"
        assert summary.partially_failed is True

    def test_missing_handler_is_recorded(self, registry, item, calls, caplog):
        snapshot = build_snapshot([binding(1, 5, 1), binding(2, 1, 2)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 1)

        ghost = summary.record_for("Ghost")
        assert ghost.success is False
        assert ghost.error_kind == ActionErrorKind.HANDLER_NOT_FOUND
        assert ghost.error == "Handler not found: test.missing"
        assert calls == ["A"]
        assert "Configuration mismatch" in caplog.text

    def test_invalid_config_skips_handler(self, registry, item, calls):
        snapshot = build_snapshot([binding(1, 2, 1, config={"limit": -3}), binding(2, 3, 2)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 1)

        record = summary.record_for("B")
        assert record.error_kind == ActionErrorKind.INVALID_CONFIG
        assert record.error.startswith("Invalid config: 'limit' must be a positive integer")
        assert calls == ["C"]

    def test_config_is_passed_to_handler(self, registry, item):
        snapshot = build_snapshot([binding(1, 2, 1, config={"limit": 4})])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 1)

        assert summary.records[0].result == {"name": "B", "config": {"limit": 4}}

    def test_non_dict_result_is_failure(self, registry, item):
        snapshot = build_snapshot([binding(1, 6, 1)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 1)

        record = summary.records[0]
        assert record.error_kind == ActionErrorKind.EXECUTION_ERROR
        assert record.error == "Handler returned unexpected type: list"

    def test_timeout_is_recorded(self, registry, item, calls):
        release = threading.Event()

        def slow(item, config):
            release.wait(5)
            return {"late": True}

        registry.register_function("test.slow", slow)
        actions = [
            Action(id=1, name="A", handler_key="test.a"),
            Action(id=7, name="Slow", handler_key="test.slow"),
        ]
        snapshot = build_snapshot([binding(1, 7, 1), binding(2, 1, 2)], actions=actions)
        dispatcher = ActionDispatcher(
            registry, SnapshotHolder(snapshot), DispatcherConfig(action_timeout_seconds=0.05)
        )

        summary = dispatcher.dispatch(item, 1)
        release.set()

        slow_record = summary.record_for("Slow")
        assert slow_record.error_kind == ActionErrorKind.TIMEOUT
        assert slow_record.error == "Action test.slow timed out after 0.05 seconds"
        assert calls == ["A"]
        assert summary.executed == 1

    def test_hung_handlers_do_not_block_later_actions(self, registry, item, calls):
        release = threading.Event()

        def hang(item, config):
            release.wait(5)
            return {}

        registry.register_function("test.hang", hang)
        actions = [
            Action(id=1, name="A", handler_key="test.a"),
            Action(id=8, name="Hang", handler_key="test.hang"),
        ]
        snapshot = build_snapshot([binding(1, 8, 1), binding(2, 1, 2)], actions=actions)
        dispatcher = ActionDispatcher(
            registry, SnapshotHolder(snapshot), DispatcherConfig(action_timeout_seconds=0.1)
        )

        summaries = [dispatcher.dispatch(item, 1) for _ in range(6)]
        release.set()

        assert calls == ["A"] * 6
        for summary in summaries:
            assert summary.record_for("Hang").error_kind == ActionErrorKind.TIMEOUT
            assert summary.record_for("A").success is True
            assert summary.executed == 1

    def test_timeout_ignores_concurrent_load(self, item):
        registry = ActionRegistry()

        def steady(item, config):
            time.sleep(0.2)
            return {"ok": True}

        registry.register_function("test.steady", steady)
        snapshot = build_snapshot(
            [binding(1, 1, 1)], actions=[Action(id=1, name="Steady", handler_key="test.steady")]
        )
        dispatcher = ActionDispatcher(
            registry, SnapshotHolder(snapshot), DispatcherConfig(action_timeout_seconds=0.5)
        )

        with ThreadPoolExecutor(max_workers=12) as pool:
            summaries = list(pool.map(lambda _: dispatcher.dispatch(item, 1), range(12)))

        assert all(s.records[0].success for s in summaries)
        assert sum(s.executed for s in summaries) == 12

    def test_category_without_actions(self, registry, item):
        snapshot = build_snapshot([])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        summary = dispatcher.dispatch(item, 9)

        assert summary.total == 0
        assert summary.category_name == "General"
        assert summary.partially_failed is False

    def test_snapshot_unavailable_propagates(self, registry, item):
        dispatcher = ActionDispatcher(registry, SnapshotHolder())
        with pytest.raises(SnapshotUnavailableError):
            dispatcher.dispatch(item, 1)

    def test_handlers_see_correlation_context(self, item):
        seen = {}

        def capture(item, config):
            seen.update(CorrelationContext.get_current())
            return {}

        registry = ActionRegistry()
        registry.register_function("test.capture", capture)
        snapshot = build_snapshot(
            [binding(1, 1, 1)], actions=[Action(id=1, name="Capture", handler_key="test.capture")]
        )
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        with CorrelationContext(content_id="item-1", run_id="run-9"):
            dispatcher.dispatch(item, 1)

        assert seen == {"content_id": "item-1", "run_id": "run-9"}

    def test_summary_dict(self, registry, item):
        snapshot = build_snapshot([binding(1, 1, 1), binding(2, 4, 2)])
        dispatcher = ActionDispatcher(registry, SnapshotHolder(snapshot))

        data = dispatcher.dispatch(item, 1).to_dict()

        assert data["content_id"] == "item-1"
        assert data["category"] == "Technology"
        assert data["executed"] == 1
        assert data["errors"] == 1
        assert set(data["results"]) == {"A", "Boom"}
        assert data["error_details"][0]["error_kind"] == "execution_error"
        assert len(data["processing_metrics"]["action_times"]) == 2


class TestTestAction:
    """Tests for ActionDispatcher.test_action."""

    def test_uses_sample_content(self, registry):
        dispatcher = ActionDispatcher(registry, SnapshotHolder())
        record = dispatcher.test_action("test.a")

        assert record.success is True
        assert record.action_name == "test.a"
        assert SAMPLE_CONTENT.title == "Test Content"

    def test_unknown_handler(self, registry):
        dispatcher = ActionDispatcher(registry, SnapshotHolder())
        record = dispatcher.test_action("test.nope")

        assert record.error_kind == ActionErrorKind.HANDLER_NOT_FOUND

    def test_invalid_config(self, registry):
        dispatcher = ActionDispatcher(registry, SnapshotHolder())
        record = dispatcher.test_action("test.b", config={"unknown": 1})

        assert record.error_kind == ActionErrorKind.INVALID_CONFIG


class TestDispatcherConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ACTION_TIMEOUT_SECONDS", "2.5")

        config = DispatcherConfig.from_env()

        assert config.action_timeout_seconds == 2.5
