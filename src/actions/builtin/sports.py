"""
Sports actions: statistics, teams and players.
"""

import re
from typing import Any, Dict

from classify.core.types import ContentItem

from .text import extract_context, item_text


STAT_PATTERNS = [
    ("score", re.compile(r"\b\d+\s*-\s*\d+\b")),
    ("percentage", re.compile(r"\b\d+\.\d+%")),
    ("yards", re.compile(r"\b\d+\s+yards?\b", re.IGNORECASE)),
    ("points", re.compile(r"\b\d+\s+points?\b", re.IGNORECASE)),
    ("time", re.compile(r"\b\d+:\d+\b")),
]

TEAM_PATTERNS = [
    re.compile(r"\b[A-Z][a-z]+\s+(?:Lakers|Warriors|Celtics|Bulls|Heat|Spurs)\b"),
    re.compile(r"\b(?:New York|Los Angeles|Chicago|Boston|Miami)\s+[A-Z][a-z]+\b"),
    re.compile(r"\b[A-Z][a-z]+\s+(?:FC|United|City|Arsenal|Chelsea)\b"),
]

PLAYER_PATTERN = re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\b")
NOT_A_PLAYER = re.compile(
    r"^(?:Last|First|New|Old|Big|Small|Good|Bad|Next|This|That|The|And|But|For|With|From)\s",
    re.IGNORECASE,
)

DEFAULT_MAX_PLAYERS = 10


def _unique(values):
    return list(dict.fromkeys(values))


def extract_stats(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    stats = []
    for stat_type, pattern in STAT_PATTERNS:
        for match in pattern.findall(text):
            stats.append({
                "type": stat_type,
                "value": match,
                "context": extract_context(text, match),
            })

    return {
        "sports_stats": stats,
        "stat_count": len(stats),
        "has_scores": any(s["type"] == "score" for s in stats),
    }


def teams_and_players(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    teams = _unique(m for pattern in TEAM_PATTERNS for m in pattern.findall(text))

    candidates = [name for name in PLAYER_PATTERN.findall(text) if not NOT_A_PLAYER.match(name)]
    players = _unique(candidates[: config.get("max_players", DEFAULT_MAX_PLAYERS)])

    return {
        "teams": teams,
        "players": players,
        "team_count": len(teams),
        "player_count": len(players),
    }
