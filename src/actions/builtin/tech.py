"""
Technology actions: trends, technical depth, tools and technologies.
"""

import re
from typing import Any, Dict, List

from classify.core.types import ContentItem

from .text import count_term, extract_context, has_term, item_text, word_count


TREND_KEYWORDS = [
    "artificial intelligence", "machine learning", "blockchain", "cryptocurrency",
    "quantum computing", "edge computing", "cloud computing", "5G", "6G",
    "internet of things", "iot", "augmented reality", "virtual reality",
    "autonomous vehicles", "robotics", "automation", "cybersecurity",
]

CODE_PATTERNS = [
    re.compile(r"```[\s\S]*?```"),
    re.compile(r"`[^`]+`"),
    re.compile(r"\b[A-Z_]+\s*=\s*[^;]+"),
    re.compile(r"function\s+\w+\s*\("),
    re.compile(r"class\s+\w+"),
]

TECHNICAL_TERMS = [
    "algorithm", "api", "framework", "library", "database", "server",
    "client", "protocol", "encryption", "authentication", "deployment",
    "scalability", "performance", "optimization", "architecture",
]

TECHNOLOGIES = {
    "languages": ["javascript", "python", "java", "typescript", "rust", "go", "c++", "c#"],
    "frameworks": ["react", "vue", "angular", "svelte", "next.js", "express", "django", "flask"],
    "databases": ["mysql", "postgresql", "mongodb", "redis", "elasticsearch", "sqlite"],
    "cloud": ["aws", "azure", "gcp", "docker", "kubernetes", "terraform"],
    "tools": ["git", "webpack", "vite", "eslint", "prettier", "jest", "cypress"],
}

# Stack label -> (technology group, technology)
PRIMARY_STACKS = [
    ("React", "frameworks", "react"),
    ("Vue", "frameworks", "vue"),
    ("Angular", "frameworks", "angular"),
    ("Node.js", "languages", "javascript"),
    ("Python", "languages", "python"),
    ("Java", "languages", "java"),
]


def extract_trends(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    trends = []
    for keyword in TREND_KEYWORDS:
        mentions = count_term(text, keyword)
        if mentions:
            trends.append({
                "trend": keyword,
                "mentions": mentions,
                "context": extract_context(text, keyword),
            })

    trends.sort(key=lambda t: t["mentions"], reverse=True)
    return {
        "tech_trends": trends,
        "trend_count": len(trends),
        "top_trend": trends[0] if trends else None,
    }


def technical_depth(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    code_blocks = sum(len(pattern.findall(text)) for pattern in CODE_PATTERNS)
    term_count = sum(count_term(text, term) for term in TECHNICAL_TERMS)
    density = term_count / max(word_count(text), 1)

    if code_blocks > 5 or density > 0.05:
        depth = "advanced"
    elif code_blocks > 2 or density > 0.02:
        depth = "intermediate"
    else:
        depth = "beginner"

    return {
        "technical_depth": depth,
        "code_blocks": code_blocks,
        "technical_terms": term_count,
        "technical_density": density,
        "complexity_score": min(10, code_blocks * 2 + density * 100),
    }


def primary_stack(found: Dict[str, List[str]]) -> List[str]:
    return [label for label, group, tech in PRIMARY_STACKS if tech in found.get(group, [])]


def tools_and_technologies(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    found = {
        group: [tech for tech in techs if has_term(text, tech)]
        for group, techs in TECHNOLOGIES.items()
    }
    return {
        "technologies_found": found,
        "total_technologies": sum(len(v) for v in found.values()),
        "primary_stack": primary_stack(found),
    }
