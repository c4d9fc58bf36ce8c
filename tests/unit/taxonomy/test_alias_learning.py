"""
Unit tests for alias learning and background reprocessing.
"""

from typing import Dict, List

import pytest

from taxonomy.aliases import AliasLearningService, StoredClassification, StoredItemSource
from taxonomy.exceptions import RuleStoreError
from taxonomy.models import ResolutionResult, ResolutionTier
from taxonomy.resolver import resolve_label


class InMemoryItemSource(StoredItemSource):
    """Stored classifications kept in a dict."""

    def __init__(self, items: List[StoredClassification], fail_ids=()):
        self.items = {i.item_id: i for i in items}
        self.updates: Dict[str, ResolutionResult] = {}
        self.fail_ids = set(fail_ids)

    def find_by_raw_label(self, raw_label):
        return [i for i in self.items.values() if (i.raw_label or "").lower() == raw_label]

    def update_category(self, item_id, resolution):
        if item_id in self.fail_ids:
            raise IOError("content store unavailable")
        self.updates[item_id] = resolution


@pytest.fixture
def technology_id(seeded_store):
    return seeded_store.get_category_by_name("Technology").id


@pytest.fixture
def fallback_id(seeded_store):
    return seeded_store.get_category_by_name("Uncategorized").id


class TestAliasLearningService:
    """Tests for AliasLearningService."""

    def test_learned_alias_resolves_immediately(self, seeded_store, seeded_holder, technology_id):
        service = AliasLearningService(seeded_store, seeded_holder)
        before = resolve_label(seeded_holder.current(), "Machine Learning")
        assert before.tier == ResolutionTier.FALLBACK

        result = service.learn_alias("Machine  Learning", technology_id)
        service.shutdown()

        assert result.created is True
        assert result.alias.alias == "machine learning"
        assert result.reprocess_future is None

        after = resolve_label(seeded_holder.current(), "machine learning")
        assert after.tier == ResolutionTier.ALIAS
        assert after.category.name == "Technology"
        assert after.confidence == 0.9

    def test_inactive_target_is_rejected(self, seeded_store, seeded_holder):
        sports = seeded_store.get_category_by_name("Sports")
        seeded_store.update_category(sports.id, is_active=False)
        seeded_holder.reload(seeded_store)
        service = AliasLearningService(seeded_store, seeded_holder)

        with pytest.raises(RuleStoreError, match="inactive"):
            service.learn_alias("Football News", sports.id)
        service.shutdown()

        assert seeded_store.search_aliases("football news") == []
        after = resolve_label(seeded_holder.current(), "football news")
        assert after.tier == ResolutionTier.FALLBACK

    def test_duplicate_alias_is_update(self, seeded_store, seeded_holder, technology_id, fallback_id):
        service = AliasLearningService(seeded_store, seeded_holder)
        service.learn_alias("gizmos", fallback_id)

        result = service.learn_alias("Gizmos", technology_id, confidence_threshold=0.9)
        service.shutdown()

        assert result.created is False
        assert result.alias.category_id == technology_id
        assert result.alias.confidence_threshold == 0.9

    def test_reprocess_without_source_warns(self, seeded_store, seeded_holder, technology_id, caplog):
        service = AliasLearningService(seeded_store, seeded_holder)
        result = service.learn_alias("machine learning", technology_id, reprocess=True)
        service.shutdown()

        assert result.reprocess_future is None
        assert "no stored item source" in caplog.text

    def test_reprocess_updates_stored_items(
        self, seeded_store, seeded_holder, technology_id, fallback_id
    ):
        source = InMemoryItemSource([
            StoredClassification("1", "Machine Learning", fallback_id),
            StoredClassification("2", "machine learning", technology_id),
            StoredClassification("3", "machine learning", fallback_id),
            StoredClassification("4", "cooking", fallback_id),
        ], fail_ids={"3"})
        service = AliasLearningService(seeded_store, seeded_holder, item_source=source)

        result = service.learn_alias("Machine Learning", technology_id, reprocess=True)
        report = result.reprocess_future.result(timeout=5)
        service.shutdown()

        assert report.matched == 3
        assert report.updated == 1
        assert report.unchanged == 1
        assert report.failed == 1
        assert report.errors[0].startswith("3:")
        assert source.updates["1"].category.id == technology_id
        assert source.updates["1"].tier == ResolutionTier.ALIAS
