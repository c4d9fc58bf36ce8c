"""
Unit tests for the matcher engine.

Tests for:
- Domain normalization and subdomain matching
- Keyword matching over title and text
- Exclusion matchers
- Hint ordering
"""

import pytest

from classify.core.types import ContentItem
from taxonomy.matcher_engine import MatcherEngine, domain_matches, normalize_domain
from taxonomy.models import Category, Matcher, MatcherType, RuleTables
from taxonomy.snapshot import RuleSnapshot


class TestNormalizeDomain:
    """Tests for normalize_domain."""

    @pytest.mark.parametrize("value,expected", [
        ("thingiverse.com", "thingiverse.com"),
        ("WWW.Thingiverse.COM", "thingiverse.com"),
        ("https://www.thingiverse.com:443/thing:1", "thingiverse.com"),
        ("thingiverse.com.", "thingiverse.com"),
        ("cdn.thingiverse.com/path", "cdn.thingiverse.com"),
    ])
    def test_normalizes(self, value, expected):
        assert normalize_domain(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "not a domain", "a..b"])
    def test_malformed_is_empty(self, value):
        assert normalize_domain(value) == ""


class TestDomainMatches:

    def test_exact_and_subdomain(self):
        assert domain_matches("thingiverse.com", "thingiverse.com")
        assert domain_matches("cdn.thingiverse.com", "thingiverse.com")

    def test_suffix_is_not_subdomain(self):
        assert not domain_matches("notthingiverse.com", "thingiverse.com")

    def test_empty(self):
        assert not domain_matches("", "thingiverse.com")


@pytest.fixture
def snapshot():
    return RuleSnapshot.build(RuleTables(
        categories=[
            Category(id=1, name="Technology", priority=2),
            Category(id=2, name="3D Printing", priority=6),
            Category(id=3, name="Smart Home", priority=7),
            Category(id=4, name="Uncategorized", priority=99, is_fallback=True),
        ],
        matchers=[
            Matcher(id=1, category_id=2, matcher_type=MatcherType.DOMAIN, pattern="thingiverse.com"),
            Matcher(id=2, category_id=3, matcher_type=MatcherType.KEYWORD, pattern="home assistant"),
            Matcher(id=3, category_id=1, matcher_type=MatcherType.KEYWORD, pattern="esp32"),
            Matcher(id=4, category_id=2, matcher_type=MatcherType.KEYWORD, pattern="benchy"),
            Matcher(id=5, category_id=1, matcher_type=MatcherType.KEYWORD, pattern="sponsored",
                    is_exclusion=True),
            Matcher(id=6, category_id=3, matcher_type=MatcherType.DOMAIN, pattern="esphome.io",
                    is_active=False),
        ],
    ))


class TestMatcherEngine:
    """Tests for MatcherEngine.hints."""

    def test_domain_hint(self, snapshot):
        item = ContentItem(source_domain="thingiverse.com", title="Calibration cube")
        assert MatcherEngine().hints(snapshot, item) == ["3D Printing"]

    def test_subdomain_hint(self, snapshot):
        item = ContentItem(source_domain="www.cdn.thingiverse.com")
        assert MatcherEngine().hints(snapshot, item) == ["3D Printing"]

    def test_domain_from_url_when_missing(self, snapshot):
        item = ContentItem(url="https://www.thingiverse.com/thing:763622")
        assert MatcherEngine().hints(snapshot, item) == ["3D Printing"]

    def test_keyword_in_title_case_insensitive(self, snapshot):
        item = ContentItem(title="My Home Assistant dashboard")
        assert MatcherEngine().hints(snapshot, item) == ["Smart Home"]

    def test_keyword_in_text(self, snapshot):
        item = ContentItem(title="Weekend build", raw_content="Flashing an ESP32 with new firmware")
        assert MatcherEngine().hints(snapshot, item) == ["Technology"]

    def test_ordered_by_priority(self, snapshot):
        item = ContentItem(
            source_domain="thingiverse.com",
            title="ESP32 mount for Home Assistant sensors",
        )
        assert MatcherEngine().hints(snapshot, item) == ["Technology", "3D Printing", "Smart Home"]

    def test_exclusion_removes_category(self, snapshot):
        item = ContentItem(title="ESP32 deals (sponsored)")
        assert MatcherEngine().hints(snapshot, item) == []

    def test_each_category_once(self, snapshot):
        item = ContentItem(source_domain="thingiverse.com", title="Benchy remix")
        assert MatcherEngine().hints(snapshot, item) == ["3D Printing"]

    def test_inactive_matcher_ignored(self, snapshot):
        assert MatcherEngine().hints(snapshot, ContentItem(source_domain="esphome.io")) == []

    def test_malformed_domain_yields_no_domain_hints(self, snapshot):
        item = ContentItem(source_domain="not a domain", title="nothing relevant")
        assert MatcherEngine().hints(snapshot, item) == []

    def test_excerpt_limit(self, snapshot):
        item = ContentItem(raw_content=("filler " * 100) + "esp32")
        assert MatcherEngine(excerpt_chars=50).hints(snapshot, item) == []
        assert MatcherEngine().hints(snapshot, item) == ["Technology"]

    def test_seeded_rules(self, seeded_holder):
        item = ContentItem(source_domain="printables.com", title="Filament spool holder")
        assert MatcherEngine().hints(seeded_holder.current(), item) == ["3D Printing"]
