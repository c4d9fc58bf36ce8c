"""
Unit tests for ContentPipeline.

Runs the seeded rule tables end to end with scripted providers:
- Hints, classification, resolution tiers and dispatch
- Fallback when every provider fails
- Partial action failure
- Batch processing and rule reloads
"""

import json
import pytest
from unittest.mock import MagicMock

from actions.dispatcher import ActionDispatcher
from actions.registry import create_default_registry
from classify.chain import ProviderChain
from classify.core.exceptions import ProviderError
from classify.core.types import ContentItem, ProviderConfig
from classify.providers.base import ClassificationProvider
from pipeline.config import PipelineConfig
from pipeline.runner import ContentPipeline, PipelineState
from taxonomy.exceptions import SnapshotUnavailableError
from taxonomy.models import Category, ResolutionTier
from taxonomy.snapshot import SnapshotHolder


class FixedProvider(ClassificationProvider):
    """Provider that always answers the same text or raises the same error."""

    def __init__(self, name, label=None, text=None, error=None):
        self.name = name
        super().__init__(ProviderConfig(name=name), session=MagicMock())
        if label is not None:
            text = json.dumps({"label": label, "confidence": 0.8, "reasoning": "scripted"})
        self.text = text
        self.error = error
        self.calls = 0

    def _complete(self, request):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CLASSIFY_PROVIDER_ORDER", "ACTION_TIMEOUT_SECONDS", "CLASSIFY_EXCERPT_CHARS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_pipeline(seeded_store):
    pipelines = []

    def factory(providers, registry=None):
        pipeline = ContentPipeline.from_config(
            PipelineConfig(), store=seeded_store, registry=registry, providers=providers
        )
        pipelines.append(pipeline)
        return pipeline

    yield factory
    for pipeline in pipelines:
        pipeline.close()


@pytest.fixture
def tech_item():
    return ContentItem(
        id="101",
        url="https://example.com/rust",
        title="Rust adoption grows",
        raw_content="Teams are moving services from Python to Rust for performance.",
        source_domain="example.com",
    )


@pytest.fixture
def printing_item():
    return ContentItem(
        id="202",
        url="https://www.thingiverse.com/thing:123",
        title="Headphone holder",
        raw_content="Printed in PLA with 20% infill. Layer height 0.2mm.",
        source_domain="thingiverse.com",
    )


class TestProcess:
    """Tests for ContentPipeline.process."""

    def test_exact_label_runs_category_actions(self, make_pipeline, tech_item):
        broken = FixedProvider("gemini", text="I think this is about technology")
        working = FixedProvider("openai", label="Technology")
        pipeline = make_pipeline([broken, working])

        result = pipeline.process(tech_item)

        assert result.hints == []
        assert result.classification.success is True
        assert [a.provider for a in result.classification.attempts] == ["gemini", "openai"]
        assert result.resolution.category.name == "Technology"
        assert result.resolution.tier == ResolutionTier.EXACT
        assert result.resolution.confidence == 1.0
        assert [r.action_name for r in result.dispatch.records] == [
            "extract_tech_trends",
            "analyze_technical_depth",
            "extract_tools_technologies",
            "summarize",
        ]
        assert result.final_state == PipelineState.COMPLETED
        assert result.states == [
            PipelineState.CAPTURED,
            PipelineState.HINTED,
            PipelineState.CLASSIFIED,
            PipelineState.RESOLVED,
            PipelineState.DISPATCHED,
            PipelineState.COMPLETED,
        ]

    def test_alias_label(self, make_pipeline, tech_item):
        pipeline = make_pipeline([FixedProvider("ollama", label="Tech")])

        result = pipeline.process(tech_item)

        assert result.resolution.category.name == "Technology"
        assert result.resolution.tier == ResolutionTier.ALIAS
        assert result.resolution.confidence == 0.9

    def test_unknown_label_falls_back(self, make_pipeline, tech_item):
        pipeline = make_pipeline([FixedProvider("ollama", label="Gardening")])

        result = pipeline.process(tech_item)

        assert result.classification.success is True
        assert result.resolution.category.name == "Uncategorized"
        assert result.resolution.tier == ResolutionTier.FALLBACK

    def test_all_providers_failing_still_dispatches(self, make_pipeline, printing_item):
        providers = [
            FixedProvider("gemini", error=ProviderError("quota exhausted", provider="gemini", kind="quota")),
            FixedProvider("ollama", error=ProviderError("connection refused", provider="ollama")),
        ]
        pipeline = make_pipeline(providers)

        result = pipeline.process(printing_item)

        assert result.hints == ["3D Printing"]
        assert result.classification.success is False
        assert PipelineState.CLASSIFICATION_FAILED in result.states
        assert result.resolution.category.name == "Uncategorized"
        assert result.resolution.confidence == 0.5
        assert [r.action_name for r in result.dispatch.records] == [
            "summarize",
            "extract_keywords",
            "calculate_reading_time",
        ]
        assert result.final_state == PipelineState.COMPLETED

    def test_no_providers(self, make_pipeline, printing_item):
        pipeline = make_pipeline([])

        result = pipeline.process(printing_item)

        assert result.classification.no_classification.reason == "no providers configured"
        assert result.resolution.category.is_fallback is True

    def test_failing_action_marks_partial(self, make_pipeline, tech_item):
        registry = create_default_registry()

        def broken(item, config):
            raise RuntimeError("trend service down")

        registry.register_function("tech.extractTrends", broken, replace=True)
        pipeline = make_pipeline([FixedProvider("openai", label="Technology")], registry=registry)

        result = pipeline.process(tech_item)

        assert result.dispatch.executed == 3
        assert result.dispatch.errors == 1
        assert result.final_state == PipelineState.PARTIALLY_FAILED

    def test_repeat_item_uses_cache(self, make_pipeline, tech_item):
        provider = FixedProvider("openai", label="Technology")
        pipeline = make_pipeline([provider])

        pipeline.process(tech_item)
        second = pipeline.process(tech_item)

        assert provider.calls == 1
        assert second.from_cache is True

    def test_result_dict(self, make_pipeline, tech_item):
        pipeline = make_pipeline([FixedProvider("openai", label="Technology")])

        data = pipeline.process(tech_item).to_dict()

        assert data["content_id"] == "101"
        assert data["state"] == "completed"
        assert data["resolution"]["tier"] == "exact"
        assert data["actions"]["executed"] == 4
        assert json.dumps(data)


class TestProcessMany:
    """Tests for ContentPipeline.process_many."""

    def test_keeps_input_order(self, make_pipeline):
        pipeline = make_pipeline([FixedProvider("openai", label="Sports")])
        items = [
            ContentItem(id=str(n), title=f"Match report {n}", raw_content=f"Final score {n}-0.")
            for n in range(6)
        ]

        results = pipeline.process_many(items, max_workers=3)

        assert [r.content_id for r in results] == [str(n) for n in range(6)]
        assert all(r.resolution.category.name == "Sports" for r in results)

    def test_empty_batch(self, make_pipeline):
        assert make_pipeline([]).process_many([]) == []


class TestReloadRules:
    """Tests for ContentPipeline.reload_rules."""

    def test_new_category_is_visible_after_reload(self, make_pipeline, seeded_store, tech_item):
        pipeline = make_pipeline([FixedProvider("openai", label="Gardening")])
        seeded_store.create_category(Category(name="Gardening", priority=9))

        before = pipeline.process(tech_item)
        pipeline.reload_rules()
        after = pipeline.process(ContentItem(id="102", title="Raised beds", raw_content="Soil mixes."))

        assert before.resolution.tier == ResolutionTier.FALLBACK
        assert after.resolution.category.name == "Gardening"
        assert after.resolution.tier == ResolutionTier.EXACT
        assert after.dispatch.total == 0

    def test_reload_without_store(self, seeded_holder, action_registry):
        chain = ProviderChain([])
        dispatcher = ActionDispatcher(action_registry, seeded_holder)
        pipeline = ContentPipeline(seeded_holder, chain, dispatcher)

        with pytest.raises(ValueError, match="no rule store"):
            pipeline.reload_rules()
        pipeline.close()

    def test_requires_loaded_snapshot(self, action_registry):
        holder = SnapshotHolder()
        with pytest.raises(SnapshotUnavailableError):
            ContentPipeline(holder, ProviderChain([]), ActionDispatcher(action_registry, holder))
