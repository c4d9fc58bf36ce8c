"""
Matcher Engine.

Derives category hints from static domain and keyword rules before any
classifier is called. Pure function over the snapshot: a malformed or absent
domain simply yields no domain hints.
"""

import logging
from typing import Dict, List, Optional, Set
from urllib.parse import urlsplit

from classify.core.types import ContentItem

from .models import MatcherType
from .snapshot import RuleSnapshot


logger = logging.getLogger(__name__)


def normalize_domain(value: Optional[str]) -> str:
    """
    Normalize a domain (or URL) for matching.

    Lower-cases, drops scheme, path, port, a trailing dot and a leading ``www.``.
    Returns an empty string for anything that does not look like a host name.

    Example:
        >>> normalize_domain("https://WWW.Thingiverse.com:443/thing:1")
        'thingiverse.com'
    """
    if not value or not isinstance(value, str):
        return ""

    candidate = value.strip().lower()
    if not candidate:
        return ""

    try:
        if "://" in candidate:
            host = urlsplit(candidate).hostname or ""
        else:
            host = urlsplit(f"//{candidate}").hostname or ""
    except ValueError:
        logger.debug(f"Unparsable domain: {value!r}")
        return ""

    host = host.rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    if not host or " " in host or ".." in host:
        return ""
    return host


def domain_matches(domain: str, pattern: str) -> bool:
    """True if ``domain`` equals ``pattern`` or is a subdomain of it."""
    if not domain or not pattern:
        return False
    return domain == pattern or domain.endswith("." + pattern)


class MatcherEngine:
    """
    Evaluates active matchers against a content item.

    Example:
        >>> engine = MatcherEngine()
        >>> engine.hints(snapshot, ContentItem(source_domain="thingiverse.com"))
        ['3D Printing']
    """

    def __init__(self, excerpt_chars: Optional[int] = None):
        """
        Args:
            excerpt_chars: Limit keyword matching to this much raw text (None = all)
        """
        self.excerpt_chars = excerpt_chars

    def hints(self, snapshot: RuleSnapshot, item: ContentItem) -> List[str]:
        """
        Generate hint category names for an item.

        Args:
            snapshot: Current rule snapshot
            item: Content item

        Returns:
            Category names ordered by category priority, then matcher id
        """
        domain = normalize_domain(item.source_domain) or normalize_domain(item.url)
        title = (item.title or "").lower()
        text = item.raw_content or ""
        if self.excerpt_chars is not None:
            text = text[: self.excerpt_chars]
        text = text.lower()

        first_matcher: Dict[int, int] = {}
        excluded: Set[int] = set()

        for matcher in snapshot.matchers:
            if matcher.matcher_type == MatcherType.DOMAIN:
                fired = domain_matches(domain, normalize_domain(matcher.pattern))
            else:
                keyword = matcher.pattern.strip().lower()
                fired = bool(keyword) and (keyword in title or keyword in text)

            if not fired:
                continue

            if matcher.is_exclusion:
                excluded.add(matcher.category_id)
            elif matcher.category_id not in first_matcher:
                first_matcher[matcher.category_id] = matcher.id or 0

        hinted = [
            snapshot.categories_by_id[category_id]
            for category_id in first_matcher
            if category_id not in excluded
        ]
        hinted.sort(key=lambda c: (c.priority, first_matcher[c.id]))

        if hinted:
            logger.debug(f"Hints for domain '{domain}': {[c.name for c in hinted]}")
        return [c.name for c in hinted]
