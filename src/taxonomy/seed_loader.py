"""
Seed loader for the rule tables.

Reads a YAML seed file (categories, actions, bindings by name, matchers and
aliases) and inserts whatever is missing. Applying the same seed twice is a
no-op.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .exceptions import RuleStoreError
from .models import Action, Category, Matcher, MatcherType, normalize_label
from .store.base import RuleStore


logger = logging.getLogger(__name__)


class SeedValidationError(ValueError):
    """Seed file is malformed."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


@dataclass
class RuleSeed:
    """Parsed seed file contents."""
    categories: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    bindings: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    matchers: List[Dict[str, Any]] = field(default_factory=list)
    aliases: List[Dict[str, Any]] = field(default_factory=list)
    source_path: str = ""


@dataclass
class SeedReport:
    """Counts of rows created and skipped by ``apply_seed``."""
    created: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, int] = field(default_factory=dict)

    def _bump(self, bucket: Dict[str, int], table: str) -> None:
        bucket[table] = bucket.get(table, 0) + 1

    def record(self, table: str, created: bool) -> None:
        self._bump(self.created if created else self.skipped, table)

    @property
    def total_created(self) -> int:
        return sum(self.created.values())


def validate_seed(seed: RuleSeed) -> List[str]:
    """
    Validate cross references in a seed.

    Returns a list of validation errors (empty if valid).
    """
    errors = []

    category_names = set()
    fallbacks = 0
    for i, category in enumerate(seed.categories):
        name = category.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"categories[{i}]: Missing required field: name")
            continue
        if name.lower() in category_names:
            errors.append(f"categories[{i}]: Duplicate category name: {name}")
        category_names.add(name.lower())
        if category.get("is_fallback"):
            fallbacks += 1

    if fallbacks > 1:
        errors.append(f"Seed declares {fallbacks} fallback categories; at most one allowed")

    action_names = set()
    for i, action in enumerate(seed.actions):
        if not action.get("name"):
            errors.append(f"actions[{i}]: Missing required field: name")
            continue
        if not action.get("handler_key"):
            errors.append(f"actions[{i}]: Missing required field: handler_key")
        action_names.add(action["name"])

    for category_name, rows in seed.bindings.items():
        if category_name.lower() not in category_names:
            errors.append(f"bindings: Unknown category: {category_name}")
        if not isinstance(rows, list):
            errors.append(f"bindings[{category_name}] must be a list")
            continue
        for row in rows:
            if not isinstance(row, dict) or row.get("action") not in action_names:
                errors.append(f"bindings[{category_name}]: Unknown action: {row}")
            elif not isinstance(row.get("config", {}), dict):
                errors.append(f"bindings[{category_name}].{row['action']}: config must be a mapping")

    for i, matcher in enumerate(seed.matchers):
        if str(matcher.get("category", "")).lower() not in category_names:
            errors.append(f"matchers[{i}]: Unknown category: {matcher.get('category')}")
        if matcher.get("type") not in {t.value for t in MatcherType}:
            errors.append(f"matchers[{i}]: type must be 'domain' or 'keyword'")
        if not matcher.get("pattern"):
            errors.append(f"matchers[{i}]: Missing required field: pattern")

    for i, alias in enumerate(seed.aliases):
        if not normalize_label(alias.get("alias")):
            errors.append(f"aliases[{i}]: Missing required field: alias")
        if str(alias.get("category", "")).lower() not in category_names:
            errors.append(f"aliases[{i}]: Unknown category: {alias.get('category')}")

    return errors


def load_seed_file(path: Union[str, Path]) -> RuleSeed:
    """
    Load and validate a YAML seed file.

    Args:
        path: Path to the seed file

    Returns:
        Parsed RuleSeed

    Raises:
        FileNotFoundError: If the file does not exist
        SeedValidationError: If the file is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SeedValidationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise SeedValidationError(f"Seed file {path} must contain a mapping")

    seed = RuleSeed(
        categories=data.get("categories") or [],
        actions=data.get("actions") or [],
        bindings=data.get("bindings") or {},
        matchers=data.get("matchers") or [],
        aliases=data.get("aliases") or [],
        source_path=str(path),
    )

    errors = validate_seed(seed)
    if errors:
        raise SeedValidationError(
            f"Seed file {path} failed validation ({len(errors)} errors)", errors=errors
        )

    logger.info(
        f"Loaded seed {path.name}: {len(seed.categories)} categories, "
        f"{len(seed.actions)} actions, {len(seed.matchers)} matchers"
    )
    return seed


def apply_seed(store: RuleStore, seed: RuleSeed) -> SeedReport:
    """
    Insert every seed row that does not already exist.

    Args:
        store: Target rule store
        seed: Parsed seed

    Returns:
        SeedReport with created/skipped counts per table
    """
    report = SeedReport()

    categories: Dict[str, Category] = {
        c.name.lower(): c for c in store.list_categories(include_inactive=True)
    }
    has_fallback = any(c.is_fallback for c in categories.values())

    for row in seed.categories:
        key = row["name"].lower()
        if key in categories:
            report.record("categories", created=False)
            continue
        is_fallback = bool(row.get("is_fallback", False))
        if is_fallback and has_fallback:
            logger.warning(
                f"Store already has a fallback category; seeding '{row['name']}' without the flag"
            )
            is_fallback = False
        categories[key] = store.create_category(
            Category(
                name=row["name"],
                description=row.get("description"),
                priority=int(row.get("priority", 100)),
                is_active=bool(row.get("is_active", True)),
                is_fallback=is_fallback,
            )
        )
        has_fallback = has_fallback or is_fallback
        report.record("categories", created=True)

    actions: Dict[str, Action] = {a.name: a for a in store.list_actions(include_inactive=True)}
    for row in seed.actions:
        if row["name"] in actions:
            report.record("actions", created=False)
            continue
        actions[row["name"]] = store.create_action(
            Action(
                name=row["name"],
                handler_key=row["handler_key"],
                description=row.get("description"),
                is_active=bool(row.get("is_active", True)),
            )
        )
        report.record("actions", created=True)

    existing_pairs = {(b.category_id, b.action_id) for b in store.list_bindings()}
    for category_name, rows in seed.bindings.items():
        category = categories[category_name.lower()]
        for row in rows:
            action = actions[row["action"]]
            if (category.id, action.id) in existing_pairs:
                report.record("category_actions", created=False)
                continue
            store.bind_action(
                category.id,
                action.id,
                execution_order=int(row.get("order", 0)),
                config=row.get("config") or {},
            )
            existing_pairs.add((category.id, action.id))
            report.record("category_actions", created=True)

    existing_matchers = {
        (m.category_id, m.matcher_type.value, m.pattern.lower())
        for m in store.list_matchers()
    }
    for row in seed.matchers:
        category = categories[str(row["category"]).lower()]
        key = (category.id, row["type"], str(row["pattern"]).strip().lower())
        if key in existing_matchers:
            report.record("matchers", created=False)
            continue
        store.create_matcher(
            Matcher(
                category_id=category.id,
                matcher_type=MatcherType(row["type"]),
                pattern=str(row["pattern"]).strip(),
                is_exclusion=bool(row.get("exclusion", False)),
                is_active=bool(row.get("active", True)),
            )
        )
        existing_matchers.add(key)
        report.record("matchers", created=True)

    existing_aliases = {a.alias for a in store.list_aliases()}
    for row in seed.aliases:
        alias = normalize_label(row["alias"])
        if alias in existing_aliases:
            report.record("category_aliases", created=False)
            continue
        category = categories[str(row["category"]).lower()]
        try:
            store.upsert_alias(
                alias, category.id, float(row.get("confidence_threshold", 0.7))
            )
        except RuleStoreError as e:
            logger.error(f"Failed to seed alias '{alias}': {e}")
            raise
        existing_aliases.add(alias)
        report.record("category_aliases", created=True)

    logger.info(f"Seed applied: created={report.created} skipped={report.skipped}")
    return report
