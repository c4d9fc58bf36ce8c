"""
General-purpose actions: extractive summary, keywords, reading time.

Used by every category; the fallback category runs all three.
"""

from typing import Any, Dict

from classify.core.types import ContentItem
from classify.core.utils import compute_content_hash
from taxonomy.matcher_engine import normalize_domain

from .text import (
    DEFAULT_WORDS_PER_MINUTE,
    extract_keywords,
    item_text,
    reading_time_minutes,
    split_sentences,
    word_count,
)


DEFAULT_MAX_SENTENCES = 2
DEFAULT_MAX_KEYWORDS = 10
DEFAULT_MAX_CHARS = 300


def build_summary(text: str, max_sentences: int = DEFAULT_MAX_SENTENCES, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """
    Extractive summary: the first sentence plus the sentences that carry the
    most top keywords, kept in document order.
    """
    if not text:
        return ""

    sentences = split_sentences(text)
    if not sentences:
        return text[:200] + ("..." if len(text) > 200 else "")
    if len(sentences) == 1 or max_sentences == 1:
        return sentences[0] + "."

    top_keywords = extract_keywords(text)[:5]
    scored = []
    for index, sentence in enumerate(sentences[1:10], start=1):
        lowered = sentence.lower()
        score = sum(1 for keyword in top_keywords if keyword in lowered)
        scored.append((score, index, sentence))

    picked = sorted(scored, key=lambda s: (-s[0], s[1]))[: max_sentences - 1]
    chosen = [sentences[0]] + [s for _, _, s in sorted(picked, key=lambda s: s[1])]

    summary = ". ".join(chosen) + "."
    if len(summary) > max_chars:
        return summary[: max_chars - 3] + "..."
    return summary


def summarize(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    return {
        "title": item.title or "Untitled",
        "source_domain": normalize_domain(item.url or item.source_domain) or "unknown",
        "summary": build_summary(
            text,
            max_sentences=config.get("max_sentences", DEFAULT_MAX_SENTENCES),
            max_chars=config.get("max_chars", DEFAULT_MAX_CHARS),
        ),
        "keywords": extract_keywords(text, config.get("max_keywords", DEFAULT_MAX_KEYWORDS)),
        "reading_time": reading_time_minutes(text),
        "content_hash": compute_content_hash(
            f"{item.title or ''}|{item.url or ''}|{text}"
        ),
    }


def keywords(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    found = extract_keywords(item_text(item), config.get("max_keywords", DEFAULT_MAX_KEYWORDS))
    return {"keywords": found, "keyword_count": len(found)}


def reading_time(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    wpm = config.get("words_per_minute", DEFAULT_WORDS_PER_MINUTE)
    return {
        "reading_time": reading_time_minutes(text, wpm),
        "word_count": word_count(text),
        "words_per_minute": wpm,
    }
