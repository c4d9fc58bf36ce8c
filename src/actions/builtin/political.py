"""
Political content actions: loaded language and source credibility.

Both run locally; AI-backed bias, quality and summary analysis are not part
of the action library.
"""

import re
from typing import Any, Dict

from classify.core.types import ContentItem
from taxonomy.matcher_engine import normalize_domain

from .text import extract_context, titled_text, word_count


# (pattern, weight, category)
_LOADED_LANGUAGE_SOURCES = [
    (r"radical|extremist|terrorist|fascist|communist|socialist", 0.9, "political_labels"),
    (r"destroy|demolish|annihilate|obliterate|devastate", 0.8, "destructive_verbs"),
    (r"fake news|propaganda|brainwash|indoctrinate", 0.8, "media_attacks"),
    (r"outrageous|shocking|devastating|catastrophic|alarming", 0.7, "emotional_intensifiers"),
    (r"betrayal|conspiracy|scandal|corruption|cover-up", 0.8, "accusatory_terms"),
    (r"real Americans|patriots|traitors|enemies of the people", 0.9, "divisive_identity"),
    (r"they want to|they're trying to|their agenda", 0.6, "othering_language"),
    (r"always|never|every single|completely|totally|absolutely", 0.5, "absolutes"),
    (r"disaster|crisis|emergency|urgent|critical", 0.6, "crisis_language"),
]
LOADED_LANGUAGE_PATTERNS = [
    (re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE), weight, category)
    for pattern, weight, category in _LOADED_LANGUAGE_SOURCES
]

# Lower bound of each intensity band
INTENSITY_BANDS = [
    (0.8, "very_high"),
    (0.6, "high"),
    (0.4, "medium"),
    (0.2, "low"),
]

# tier -> (score, domains)
CREDIBILITY_TIERS = {
    "high": (9.0, [
        "reuters.com", "ap.org", "npr.org", "bbc.com", "pbs.org",
        "c-span.org", "factcheck.org", "snopes.com", "politifact.com",
    ]),
    "medium-high": (6.75, [
        "washingtonpost.com", "nytimes.com", "wsj.com", "economist.com",
        "theatlantic.com", "newyorker.com", "usatoday.com", "abcnews.go.com",
        "cbsnews.com", "nbcnews.com", "cnn.com",
    ]),
    "medium": (5.0, [
        "foxnews.com", "msnbc.com", "politico.com", "thehill.com",
        "huffpost.com", "salon.com", "slate.com", "vox.com",
    ]),
    "low": (3.0, [
        "breitbart.com", "dailywire.com", "thegatewaypundit.com",
        "infowars.com", "naturalnews.com", "zerohedge.com",
    ]),
}
SOURCE_CREDIBILITY = {
    domain: (tier, score)
    for tier, (score, domains) in CREDIBILITY_TIERS.items()
    for domain in domains
}
NEUTRAL_CREDIBILITY = 5.0


def intensity(score: float) -> str:
    return next((label for bound, label in INTENSITY_BANDS if score >= bound), "minimal")


def detect_loaded_language(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = titled_text(item)
    phrases = []
    total_weight = 0.0

    for pattern, weight, category in LOADED_LANGUAGE_PATTERNS:
        for match in pattern.findall(text):
            phrases.append({
                "phrase": match,
                "category": category,
                "weight": weight,
                "context": extract_context(text, match),
            })
            total_weight += weight

    words = max(word_count(text), 1)
    score = min(1.0, total_weight / max(words / 100, 1))

    return {
        "loaded_language": phrases,
        "loaded_language_score": score,
        "analysis": {
            "total_phrases": len(phrases),
            "total_weight": total_weight,
            "word_count": words,
            "intensity": intensity(score),
        },
    }


def assess_credibility(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    domain = normalize_domain(item.source_domain or item.url)
    known = SOURCE_CREDIBILITY.get(domain)

    if known:
        tier, score = known
        return {
            "source_domain": domain,
            "credibility_score": score,
            "tier": tier,
            "known_source": True,
            "reasoning": f"Known source in {tier} credibility tier",
        }

    return {
        "source_domain": domain or None,
        "credibility_score": NEUTRAL_CREDIBILITY,
        "tier": "unknown",
        "known_source": False,
        "reasoning": "Unknown source - assigned neutral credibility score",
    }
