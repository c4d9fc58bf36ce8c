"""
Text helpers shared by the built-in actions.
"""

import math
import re
from collections import Counter
from typing import List, Optional

from classify.core.types import ContentItem


STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "as", "is", "was", "are", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "must", "can", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "me", "him", "her", "us", "them", "my", "your",
    "his", "its", "our", "their", "mine", "yours", "hers", "ours", "theirs",
])

DEFAULT_WORDS_PER_MINUTE = 250
CONTEXT_CHARS = 50


def item_text(item: ContentItem) -> str:
    """Raw text of an item ('' when absent)."""
    return item.raw_content or ""


def titled_text(item: ContentItem) -> str:
    """Title followed by raw text."""
    return f"{item.title or ''} {item_text(item)}"


def word_count(text: str) -> int:
    return len(text.split())


def term_pattern(term: str) -> "re.Pattern":
    """Case-insensitive whole-term pattern that also works for terms like 'c++'."""
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def count_term(text: str, term: str) -> int:
    return len(term_pattern(term).findall(text))


def has_term(text: str, term: str) -> bool:
    return term_pattern(term).search(text) is not None


def extract_context(text: str, term: str, context_chars: int = CONTEXT_CHARS) -> str:
    """Up to ``context_chars`` characters either side of the first occurrence of term."""
    index = text.lower().find(term.lower())
    if index == -1:
        return term
    start = max(0, index - context_chars)
    end = min(len(text), index + len(term) + context_chars)
    return text[start:end]


def extract_keywords(text: Optional[str], max_keywords: int = 10) -> List[str]:
    """
    Most frequent non-stop-words.

    Words shorter than three characters are ignored; a candidate must occur
    more than once or be longer than four characters.
    """
    if not text:
        return []

    words = [
        word
        for word in re.sub(r"[^\w\s]", " ", text.lower()).split()
        if len(word) > 2 and word not in STOP_WORDS
    ]
    if not words:
        return []

    # most_common keeps first-seen order for equal counts
    candidates = Counter(words).most_common(15)
    return [
        word for word, frequency in candidates
        if frequency > 1 or len(word) > 4
    ][:max_keywords]


def reading_time_minutes(text: Optional[str], words_per_minute: float = DEFAULT_WORDS_PER_MINUTE) -> int:
    """Estimated reading time; 0 for empty text, otherwise at least one minute."""
    if not text or not text.strip():
        return 0
    return max(1, math.ceil(word_count(text) / words_per_minute))


def split_sentences(text: str) -> List[str]:
    """Sentences of reasonable length (21 to 199 characters)."""
    normalized = re.sub(r"\s+", " ", text)
    sentences = (s.strip() for s in re.split(r"[.!?]+", normalized))
    return [s for s in sentences if 20 < len(s) < 200]
