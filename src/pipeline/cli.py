#!/usr/bin/env python3
"""
CLI for the content classification pipeline.

Usage:
    python -m pipeline.cli --help
    python -m pipeline.cli init-db --seed config/seed_rules.yaml
    python -m pipeline.cli hints --url https://www.thingiverse.com/thing:1
    python -m pipeline.cli resolve "machine learning"
    python -m pipeline.cli classify --title "..." --url "..." --text "..." --json
    python -m pipeline.cli alias "machine learning" Technology --reprocess
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from actions.dispatcher import ActionDispatcher
from actions.registry import create_default_registry
from classify.core.exceptions import PipelineError
from classify.core.logging import configure_logging
from classify.core.types import ContentItem
from taxonomy.admin import RuleAdmin
from taxonomy.aliases import AliasLearningService
from taxonomy.matcher_engine import MatcherEngine, normalize_domain
from taxonomy.models import Category
from taxonomy.resolver import CategoryResolver
from taxonomy.seed_loader import SeedValidationError, apply_seed, load_seed_file
from taxonomy.snapshot import SnapshotHolder

from .config import PipelineConfig
from .runner import ContentPipeline


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, structured: bool = False) -> None:
    """Configure logging (to stderr, so --json output stays clean)."""
    level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=level, structured=structured, stream=sys.stderr)


def _load_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(args.config) if args.config else PipelineConfig()


def _open_store(args: argparse.Namespace, auto_init: bool = True):
    return _load_config(args).store_config().create_store(auto_init=auto_init)


def _open_admin(args: argparse.Namespace):
    """Store, holder (loaded) and admin for rule-table commands."""
    store = _open_store(args)
    registry = create_default_registry()
    holder = SnapshotHolder(known_handler_keys=registry.list_keys())
    holder.reload(store)
    return store, holder, RuleAdmin(store, holder, action_registry=registry)


def _lookup_category(store, value: str) -> Category:
    """Find a category by id or name."""
    category = store.get_category(int(value)) if value.isdigit() else store.get_category_by_name(value)
    if category is None:
        raise PipelineError(f"Unknown category: {value}")
    return category


def _item_from_args(args: argparse.Namespace) -> List[ContentItem]:
    if getattr(args, "file", None):
        with open(args.file, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = data if isinstance(data, list) else [data]
        return [ContentItem.from_dict(record) for record in records]

    domain = args.domain or normalize_domain(args.url) or None
    return [ContentItem(
        id=args.id,
        url=args.url,
        title=args.title,
        raw_content=args.text,
        source_domain=domain,
    )]


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the rule tables and optionally apply a seed file."""
    store = _open_store(args, auto_init=False)
    try:
        store.init_schema()
        print("Rule tables ready")

        if args.seed:
            seed_path = args.seed if isinstance(args.seed, str) else None
            seed_path = seed_path or _load_config(args).store_config().seed_path
            try:
                seed = load_seed_file(Path(seed_path))
            except SeedValidationError as e:
                print(f"Seed file is invalid: {e}", file=sys.stderr)
                for error in e.errors:
                    print(f"  - {error}", file=sys.stderr)
                return 1
            report = apply_seed(store, seed)
            print(f"Seed applied from {seed_path}")
            for table in sorted(set(report.created) | set(report.skipped)):
                print(
                    f"  {table}: {report.created.get(table, 0)} created, "
                    f"{report.skipped.get(table, 0)} skipped"
                )
    finally:
        store.close()
    return 0


def cmd_categories(args: argparse.Namespace) -> int:
    """List categories and their bound actions."""
    store, holder, admin = _open_admin(args)
    try:
        snapshot = holder.current()
        categories = admin.list_categories(include_inactive=args.all)
        if args.json:
            _print_json([c.to_dict() for c in categories])
            return 0

        print(f"\nCategories ({len(categories)})")
        print("=" * 50)
        for category in categories:
            flags = []
            if category.is_fallback:
                flags.append("fallback")
            if not category.is_active:
                flags.append("inactive")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            print(f"{category.id:>4}  {category.priority:>3}  {category.name}{suffix}")
            for bound in snapshot.actions_for(category.id):
                print(f"            {bound.binding.execution_order}. {bound.action.name} ({bound.handler_key})")
    finally:
        store.close()
    return 0


def cmd_actions(args: argparse.Namespace) -> int:
    """List actions and whether their handler key is registered."""
    store, _, admin = _open_admin(args)
    registry = admin.action_registry
    try:
        actions = admin.list_actions(include_inactive=True)
        if args.json:
            _print_json([
                {**a.to_dict(), "registered": registry.has(a.handler_key)} for a in actions
            ])
            return 0

        print(f"\nActions ({len(actions)})")
        print("=" * 50)
        for action in actions:
            marker = "" if registry.has(action.handler_key) else "  ** unregistered handler **"
            state = "" if action.is_active else " (inactive)"
            print(f"{action.id:>4}  {action.name}{state} -> {action.handler_key}{marker}")

        unused = sorted(set(registry.list_keys()) - {a.handler_key for a in actions})
        if unused:
            print(f"\nRegistered handlers without an action: {', '.join(unused)}")
    finally:
        store.close()
    return 0


def cmd_hints(args: argparse.Namespace) -> int:
    """Show matcher hints for an item."""
    store, holder, _ = _open_admin(args)
    try:
        engine = MatcherEngine()
        for item in _item_from_args(args):
            hints = engine.hints(holder.current(), item)
            if args.json:
                _print_json({"id": item.id, "hints": hints})
            else:
                print(f"Hints: {', '.join(hints) if hints else '(none)'}")
    finally:
        store.close()
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve a raw label to a category."""
    store, holder, _ = _open_admin(args)
    try:
        result = CategoryResolver(holder).resolve(args.label)
        if args.json:
            _print_json(result.to_dict())
        else:
            print(f"\nResolution for: {args.label!r}")
            print("=" * 50)
            print(f"Category:   {result.category.name}")
            print(f"Tier:       {result.tier.value}")
            print(f"Confidence: {result.confidence}")
    finally:
        store.close()
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    """Run items through the full pipeline."""
    pipeline = ContentPipeline.from_config(_load_config(args))
    try:
        items = _item_from_args(args)
        results = pipeline.process_many(items) if len(items) > 1 else [pipeline.process(items[0])]
    finally:
        pipeline.close()

    if args.json:
        payload = [r.to_dict() for r in results]
        _print_json(payload if len(payload) > 1 else payload[0])
        return 0

    for result in results:
        print(f"\nItem: {result.content_id or '(no id)'}")
        print("=" * 50)
        print(f"Hints:      {', '.join(result.hints) or '(none)'}")
        classification = result.classification
        if classification.success:
            cached = " (cached)" if classification.from_cache else ""
            print(
                f"Label:      {classification.raw_label} "
                f"[{classification.classification.provider}, {classification.confidence}]{cached}"
            )
        else:
            print(f"Label:      none ({classification.no_classification.reason})")
        print(f"Category:   {result.resolution.category.name} ({result.resolution.tier.value})")
        print(f"Actions:    {result.dispatch.executed}/{result.dispatch.total} succeeded")
        for record in result.dispatch.failed_records:
            print(f"  FAILED {record.action_name}: {record.error_kind.value}: {record.error}")
        print(f"State:      {result.final_state.value}")
    return 0


def cmd_alias(args: argparse.Namespace) -> int:
    """Bind a raw label to a category."""
    store, holder, _ = _open_admin(args)
    service = AliasLearningService(store, holder)
    try:
        category = _lookup_category(store, args.category)
        result = service.learn_alias(
            args.label,
            category.id,
            confidence_threshold=args.threshold,
            reprocess=args.reprocess,
        )
        verb = "Created" if result.created else "Updated"
        print(f"{verb} alias '{result.alias.alias}' -> {category.name}")
        if args.reprocess and result.reprocess_future is None:
            print("Reprocessing skipped: no stored content source is configured")
    finally:
        service.shutdown()
        store.close()
    return 0


def cmd_aliases(args: argparse.Namespace) -> int:
    """List or search aliases."""
    store, holder, admin = _open_admin(args)
    try:
        aliases = admin.search_aliases(args.search) if args.search else admin.list_aliases()
        names = {c.id: c.name for c in admin.list_categories()}
        for alias in aliases:
            print(f"{alias.alias!r:30} -> {names.get(alias.category_id, alias.category_id)}")
        if not aliases:
            print("(no aliases)")
    finally:
        store.close()
    return 0


def cmd_add_category(args: argparse.Namespace) -> int:
    """Create a category."""
    store, _, admin = _open_admin(args)
    try:
        category = admin.create_category(
            args.name, description=args.description, priority=args.priority
        )
        print(f"Created category {category.id}: {category.name}")
    finally:
        store.close()
    return 0


def cmd_set_fallback(args: argparse.Namespace) -> int:
    """Move the fallback flag to another category."""
    store, _, admin = _open_admin(args)
    try:
        category = admin.set_fallback(_lookup_category(store, args.category).id)
        print(f"Fallback category is now: {category.name}")
    finally:
        store.close()
    return 0


def cmd_bind(args: argparse.Namespace) -> int:
    """Bind an action to a category."""
    store, _, admin = _open_admin(args)
    try:
        config = json.loads(args.config_json) if args.config_json else None
        category = _lookup_category(store, args.category)
        binding = admin.bind_action(
            category.id, args.action, execution_order=args.order, config=config
        )
        print(f"Bound {args.action} to {category.name} at order {binding.execution_order}")
    finally:
        store.close()
    return 0


def cmd_add_matcher(args: argparse.Namespace) -> int:
    """Create a domain or keyword matcher."""
    store, _, admin = _open_admin(args)
    try:
        category = _lookup_category(store, args.category)
        matcher = admin.create_matcher(
            category.id, args.type, args.pattern, is_exclusion=args.exclude
        )
        kind = "exclusion" if matcher.is_exclusion else "matcher"
        print(f"Created {args.type} {kind} {matcher.id} for {category.name}: {matcher.pattern}")
    finally:
        store.close()
    return 0


def cmd_test_action(args: argparse.Namespace) -> int:
    """Run one action handler against sample or supplied content."""
    registry = create_default_registry()
    dispatcher = ActionDispatcher(registry, SnapshotHolder(), _load_config(args).dispatcher_config())
    content = None
    if args.text or args.title or args.url:
        content = ContentItem(
            id="test",
            title=args.title,
            url=args.url,
            raw_content=args.text,
            source_domain=normalize_domain(args.url) or None,
        )
    config = json.loads(args.config_json) if args.config_json else None
    record = dispatcher.test_action(args.handler_key, content=content, config=config)

    _print_json(record.to_dict())
    return 0 if record.success else 1


def _add_item_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--id", help="Content item id")
    parser.add_argument("--title", help="Item title")
    parser.add_argument("--url", help="Item URL")
    parser.add_argument("--domain", help="Source domain (derived from --url if omitted)")
    parser.add_argument("--text", help="Raw text")
    parser.add_argument("--file", help="JSON file with one item or a list of items")
    parser.add_argument("--json", action="store_true", help="Output JSON")


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Content classification and action-dispatch pipeline CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-c", "--config", help="Pipeline YAML config file")
    parser.add_argument("--structured-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init_parser = subparsers.add_parser("init-db", help="Create the rule tables")
    init_parser.add_argument(
        "--seed", nargs="?", const=True, default=None,
        help="Apply a seed file (default: rules.seed_path from config)",
    )
    init_parser.set_defaults(func=cmd_init_db)

    categories_parser = subparsers.add_parser("categories", help="List categories")
    categories_parser.add_argument("--all", action="store_true", help="Include inactive")
    categories_parser.add_argument("--json", action="store_true", help="Output JSON")
    categories_parser.set_defaults(func=cmd_categories)

    actions_parser = subparsers.add_parser("actions", help="List actions")
    actions_parser.add_argument("--json", action="store_true", help="Output JSON")
    actions_parser.set_defaults(func=cmd_actions)

    hints_parser = subparsers.add_parser("hints", help="Show matcher hints for an item")
    _add_item_arguments(hints_parser)
    hints_parser.set_defaults(func=cmd_hints)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a raw label")
    resolve_parser.add_argument("label", help="Raw classifier label")
    resolve_parser.add_argument("--json", action="store_true", help="Output JSON")
    resolve_parser.set_defaults(func=cmd_resolve)

    classify_parser = subparsers.add_parser("classify", help="Run items through the pipeline")
    _add_item_arguments(classify_parser)
    classify_parser.set_defaults(func=cmd_classify)

    alias_parser = subparsers.add_parser("alias", help="Bind a raw label to a category")
    alias_parser.add_argument("label", help="Raw label")
    alias_parser.add_argument("category", help="Target category id or name")
    alias_parser.add_argument("--threshold", type=float, default=0.7, help="Confidence threshold")
    alias_parser.add_argument("--reprocess", action="store_true", help="Reprocess stored items")
    alias_parser.set_defaults(func=cmd_alias)

    aliases_parser = subparsers.add_parser("aliases", help="List aliases")
    aliases_parser.add_argument("--search", help="Substring to search for")
    aliases_parser.set_defaults(func=cmd_aliases)

    add_category_parser = subparsers.add_parser("add-category", help="Create a category")
    add_category_parser.add_argument("name", help="Category name")
    add_category_parser.add_argument("--description", help="Description")
    add_category_parser.add_argument("--priority", type=int, default=100, help="Priority (lower first)")
    add_category_parser.set_defaults(func=cmd_add_category)

    fallback_parser = subparsers.add_parser("set-fallback", help="Change the fallback category")
    fallback_parser.add_argument("category", help="Category id or name")
    fallback_parser.set_defaults(func=cmd_set_fallback)

    bind_parser = subparsers.add_parser("bind", help="Bind an action to a category")
    bind_parser.add_argument("category", help="Category id or name")
    bind_parser.add_argument("action", help="Action name")
    bind_parser.add_argument("--order", type=int, default=0, help="Execution order")
    bind_parser.add_argument("--config-json", help="Binding config as JSON")
    bind_parser.set_defaults(func=cmd_bind)

    matcher_parser = subparsers.add_parser("add-matcher", help="Create a matcher")
    matcher_parser.add_argument("category", help="Category id or name")
    matcher_parser.add_argument("type", choices=["domain", "keyword"], help="Matcher type")
    matcher_parser.add_argument("pattern", help="Domain or keyword")
    matcher_parser.add_argument("--exclude", action="store_true", help="Exclusion matcher")
    matcher_parser.set_defaults(func=cmd_add_matcher)

    test_parser = subparsers.add_parser("test-action", help="Run one action handler")
    test_parser.add_argument("handler_key", help="Handler key, e.g. general.summarize")
    test_parser.add_argument("--title", help="Item title")
    test_parser.add_argument("--url", help="Item URL")
    test_parser.add_argument("--text", help="Raw text")
    test_parser.add_argument("--config-json", help="Action config as JSON")
    test_parser.set_defaults(func=cmd_test_action)

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.structured_logs)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except PipelineError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
