"""
Rule store interface and shared SQL implementation.

Both backends speak DB-API with ``?`` placeholders (sqlite3 and pyodbc), so the
queries live here and the backends only supply connections, DDL and the
dialect-specific "insert and return the new id".
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import RuleStoreError
from ..models import (
    Action,
    Category,
    CategoryAction,
    CategoryAlias,
    Matcher,
    MatcherType,
    RuleTables,
    normalize_label,
)


logger = logging.getLogger(__name__)


class RuleStore(ABC):
    """
    Abstract base class for persisted rule tables.

    Storage-level invariants every implementation enforces:
    - unique category and action names
    - at most one fallback category (exactly one once seeded)
    - unique (category, action) binding
    - unique normalized alias
    """

    @abstractmethod
    def init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        pass

    @abstractmethod
    def load_tables(self) -> RuleTables:
        """Load every rule row (active and inactive) for snapshot building."""
        pass

    # Categories
    @abstractmethod
    def list_categories(self, include_inactive: bool = True) -> List[Category]:
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def get_category_by_name(self, name: str) -> Optional[Category]:
        pass

    @abstractmethod
    def create_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def update_category(self, category_id: int, **fields: Any) -> Category:
        pass

    @abstractmethod
    def delete_category(self, category_id: int) -> bool:
        pass

    @abstractmethod
    def set_fallback_category(self, category_id: int) -> Category:
        """Move the fallback flag to ``category_id`` in one transaction."""
        pass

    # Actions
    @abstractmethod
    def list_actions(self, include_inactive: bool = True) -> List[Action]:
        pass

    @abstractmethod
    def get_action_by_name(self, name: str) -> Optional[Action]:
        pass

    @abstractmethod
    def create_action(self, action: Action) -> Action:
        pass

    @abstractmethod
    def update_action(self, action_id: int, **fields: Any) -> Action:
        pass

    # Bindings
    @abstractmethod
    def list_bindings(self, category_id: Optional[int] = None) -> List[CategoryAction]:
        pass

    @abstractmethod
    def bind_action(
        self,
        category_id: int,
        action_id: int,
        execution_order: int = 0,
        config: Optional[Dict[str, Any]] = None,
    ) -> CategoryAction:
        pass

    @abstractmethod
    def update_binding(self, binding_id: int, **fields: Any) -> CategoryAction:
        pass

    @abstractmethod
    def unbind_action(self, category_id: int, action_id: int) -> bool:
        pass

    # Matchers
    @abstractmethod
    def list_matchers(self, category_id: Optional[int] = None) -> List[Matcher]:
        pass

    @abstractmethod
    def create_matcher(self, matcher: Matcher) -> Matcher:
        pass

    @abstractmethod
    def set_matcher_active(self, matcher_id: int, is_active: bool) -> bool:
        pass

    @abstractmethod
    def delete_matcher(self, matcher_id: int) -> bool:
        pass

    # Aliases
    @abstractmethod
    def list_aliases(self) -> List[CategoryAlias]:
        pass

    @abstractmethod
    def upsert_alias(
        self,
        alias: str,
        category_id: int,
        confidence_threshold: float = 0.7,
    ) -> CategoryAlias:
        """
        Insert or update an alias; a duplicate alias is an update.

        Raises:
            RuleStoreError: If the alias is empty or the category is missing or inactive
        """
        pass

    @abstractmethod
    def delete_alias(self, alias: str) -> bool:
        pass

    @abstractmethod
    def search_aliases(self, term: str) -> List[CategoryAlias]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


CATEGORY_COLUMNS = "id, name, description, priority, is_active, is_fallback"
ACTION_COLUMNS = "id, name, handler_key, description, is_active"
BINDING_COLUMNS = "id, category_id, action_id, execution_order, config, is_active"
MATCHER_COLUMNS = "id, category_id, matcher_type, pattern, is_exclusion, is_active"
ALIAS_COLUMNS = "id, alias, category_id, confidence_threshold"

CATEGORY_FIELDS = {"name", "description", "priority", "is_active", "is_fallback"}
ACTION_FIELDS = {"name", "handler_key", "description", "is_active"}
BINDING_FIELDS = {"execution_order", "config", "is_active"}


def row_to_category(row) -> Category:
    return Category(
        id=int(row[0]),
        name=row[1],
        description=row[2],
        priority=int(row[3]),
        is_active=bool(row[4]),
        is_fallback=bool(row[5]),
    )


def row_to_action(row) -> Action:
    return Action(
        id=int(row[0]),
        name=row[1],
        handler_key=row[2],
        description=row[3],
        is_active=bool(row[4]),
    )


def row_to_binding(row) -> CategoryAction:
    config = row[4]
    try:
        parsed = json.loads(config) if config else {}
    except json.JSONDecodeError as e:
        raise RuleStoreError(f"Binding {row[0]} has invalid config JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise RuleStoreError(f"Binding {row[0]} config must be a JSON object")
    return CategoryAction(
        id=int(row[0]),
        category_id=int(row[1]),
        action_id=int(row[2]),
        execution_order=int(row[3]),
        config=parsed,
        is_active=bool(row[5]),
    )


def row_to_matcher(row) -> Matcher:
    return Matcher(
        id=int(row[0]),
        category_id=int(row[1]),
        matcher_type=MatcherType(row[2]),
        pattern=row[3],
        is_exclusion=bool(row[4]),
        is_active=bool(row[5]),
    )


def row_to_alias(row) -> CategoryAlias:
    return CategoryAlias(
        id=int(row[0]),
        alias=row[1],
        category_id=int(row[2]),
        confidence_threshold=float(row[3]),
    )


class SqlRuleStore(RuleStore):
    """
    Rule store over a DB-API connection with ``?`` placeholders.

    Subclasses provide ``_get_connection``, ``_schema_statements``,
    ``_insert`` and the driver's exception classes.
    """

    # Driver exception classes, set by subclasses
    integrity_errors: Tuple[type, ...] = ()
    database_errors: Tuple[type, ...] = ()

    def __init__(self):
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _get_connection(self):
        """Return an open DB-API connection (not autocommit)."""
        pass

    @abstractmethod
    def _schema_statements(self) -> List[str]:
        """DDL statements creating every table and index."""
        pass

    @abstractmethod
    def _insert(self, cursor, table: str, columns: Sequence[str], values: Sequence[Any]) -> int:
        """Insert one row and return its generated id."""
        pass

    def _table(self, name: str) -> str:
        return name

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self):
        """
        Yield a cursor inside a transaction.

        Commits on success; rolls back and raises RuleStoreError on driver errors.
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except self.integrity_errors as e:
                conn.rollback()
                raise RuleStoreError(f"Constraint violation: {e}") from e
            except self.database_errors as e:
                conn.rollback()
                logger.error(f"Rule store error: {e}")
                raise RuleStoreError(f"Rule store error: {e}") from e
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        with self._transaction() as cursor:
            cursor.execute(sql, tuple(params))
            return cursor.fetchall()

    def init_schema(self) -> None:
        with self._transaction() as cursor:
            for statement in self._schema_statements():
                cursor.execute(statement)
        logger.debug("Initialized rule store schema")

    def load_tables(self) -> RuleTables:
        with self._transaction() as cursor:
            cursor.execute(f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')} ORDER BY id")
            categories = [row_to_category(r) for r in cursor.fetchall()]
            cursor.execute(f"SELECT {ACTION_COLUMNS} FROM {self._table('actions')} ORDER BY id")
            actions = [row_to_action(r) for r in cursor.fetchall()]
            cursor.execute(f"SELECT {BINDING_COLUMNS} FROM {self._table('category_actions')} ORDER BY id")
            bindings = [row_to_binding(r) for r in cursor.fetchall()]
            cursor.execute(f"SELECT {MATCHER_COLUMNS} FROM {self._table('matchers')} ORDER BY id")
            matchers = [row_to_matcher(r) for r in cursor.fetchall()]
            cursor.execute(f"SELECT {ALIAS_COLUMNS} FROM {self._table('category_aliases')} ORDER BY id")
            aliases = [row_to_alias(r) for r in cursor.fetchall()]

        return RuleTables(
            categories=categories,
            actions=actions,
            bindings=bindings,
            matchers=matchers,
            aliases=aliases,
        )

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def list_categories(self, include_inactive: bool = True) -> List[Category]:
        where = "" if include_inactive else " WHERE is_active = 1"
        rows = self._fetchall(
            f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')}{where} "
            f"ORDER BY priority, id"
        )
        return [row_to_category(r) for r in rows]

    def get_category(self, category_id: int) -> Optional[Category]:
        rows = self._fetchall(
            f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')} WHERE id = ?",
            (category_id,),
        )
        return row_to_category(rows[0]) if rows else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        rows = self._fetchall(
            f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')} "
            f"WHERE LOWER(name) = ?",
            (name.strip().lower(),),
        )
        return row_to_category(rows[0]) if rows else None

    def _require_category(self, cursor, category_id: int) -> Category:
        cursor.execute(
            f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')} WHERE id = ?",
            (category_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise RuleStoreError(f"Category {category_id} does not exist")
        return row_to_category(row)

    def create_category(self, category: Category) -> Category:
        """
        Create a category.

        Creating a fallback category moves the fallback flag to it.
        """
        if not category.name or not category.name.strip():
            raise RuleStoreError("Category name must not be empty")
        if category.is_fallback and not category.is_active:
            raise RuleStoreError("The fallback category must be active")

        with self._transaction() as cursor:
            if category.is_fallback:
                cursor.execute(
                    f"UPDATE {self._table('categories')} SET is_fallback = 0, "
                    f"updated_at = CURRENT_TIMESTAMP WHERE is_fallback = 1"
                )
            new_id = self._insert(
                cursor,
                "categories",
                ("name", "description", "priority", "is_active", "is_fallback"),
                (
                    category.name.strip(),
                    category.description,
                    category.priority,
                    int(category.is_active),
                    int(category.is_fallback),
                ),
            )
            created = self._require_category(cursor, new_id)

        logger.info(f"Created category {created.id} '{created.name}'")
        return created

    def update_category(self, category_id: int, **fields: Any) -> Category:
        """
        Update category columns.

        Refuses to deactivate or unflag the current fallback; use
        ``set_fallback_category`` to move the flag instead.
        """
        unknown = set(fields) - CATEGORY_FIELDS
        if unknown:
            raise RuleStoreError(f"Unknown category fields: {sorted(unknown)}")

        with self._transaction() as cursor:
            current = self._require_category(cursor, category_id)

            if current.is_fallback:
                if "is_active" in fields and not fields["is_active"]:
                    raise RuleStoreError(
                        f"Cannot deactivate fallback category '{current.name}'"
                    )
                if "is_fallback" in fields and not fields["is_fallback"]:
                    raise RuleStoreError(
                        f"Cannot unset fallback on '{current.name}'; "
                        "set another category as fallback instead"
                    )

            if fields.get("is_fallback") and not current.is_fallback:
                if not fields.get("is_active", current.is_active):
                    raise RuleStoreError("The fallback category must be active")
                cursor.execute(
                    f"UPDATE {self._table('categories')} SET is_fallback = 0, "
                    f"updated_at = CURRENT_TIMESTAMP WHERE is_fallback = 1"
                )

            if "name" in fields and not (fields["name"] or "").strip():
                raise RuleStoreError("Category name must not be empty")

            if fields:
                assignments = ", ".join(f"{column} = ?" for column in fields)
                values = [
                    int(v) if isinstance(v, bool) else v for v in fields.values()
                ]
                cursor.execute(
                    f"UPDATE {self._table('categories')} SET {assignments}, "
                    f"updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*values, category_id),
                )
            updated = self._require_category(cursor, category_id)

        logger.info(f"Updated category {category_id}: {sorted(fields)}")
        return updated

    def delete_category(self, category_id: int) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                f"SELECT {CATEGORY_COLUMNS} FROM {self._table('categories')} WHERE id = ?",
                (category_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return False
            category = row_to_category(row)
            if category.is_fallback:
                raise RuleStoreError(f"Cannot delete fallback category '{category.name}'")

            for table in ("category_actions", "matchers", "category_aliases"):
                cursor.execute(
                    f"DELETE FROM {self._table(table)} WHERE category_id = ?",
                    (category_id,),
                )
            cursor.execute(
                f"DELETE FROM {self._table('categories')} WHERE id = ?", (category_id,)
            )

        logger.info(f"Deleted category {category_id} '{category.name}'")
        return True

    def set_fallback_category(self, category_id: int) -> Category:
        with self._transaction() as cursor:
            target = self._require_category(cursor, category_id)
            if not target.is_active:
                raise RuleStoreError(
                    f"Cannot make inactive category '{target.name}' the fallback"
                )
            cursor.execute(
                f"UPDATE {self._table('categories')} SET is_fallback = 0, "
                f"updated_at = CURRENT_TIMESTAMP WHERE is_fallback = 1 AND id <> ?",
                (category_id,),
            )
            cursor.execute(
                f"UPDATE {self._table('categories')} SET is_fallback = 1, "
                f"updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (category_id,),
            )
            updated = self._require_category(cursor, category_id)

        logger.info(f"Fallback category is now '{updated.name}'")
        return updated

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def list_actions(self, include_inactive: bool = True) -> List[Action]:
        where = "" if include_inactive else " WHERE is_active = 1"
        rows = self._fetchall(
            f"SELECT {ACTION_COLUMNS} FROM {self._table('actions')}{where} ORDER BY id"
        )
        return [row_to_action(r) for r in rows]

    def get_action_by_name(self, name: str) -> Optional[Action]:
        rows = self._fetchall(
            f"SELECT {ACTION_COLUMNS} FROM {self._table('actions')} WHERE name = ?",
            (name,),
        )
        return row_to_action(rows[0]) if rows else None

    def _require_action(self, cursor, action_id: int) -> Action:
        cursor.execute(
            f"SELECT {ACTION_COLUMNS} FROM {self._table('actions')} WHERE id = ?",
            (action_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise RuleStoreError(f"Action {action_id} does not exist")
        return row_to_action(row)

    def create_action(self, action: Action) -> Action:
        if not action.name or not action.handler_key:
            raise RuleStoreError("Action name and handler_key are required")

        with self._transaction() as cursor:
            new_id = self._insert(
                cursor,
                "actions",
                ("name", "handler_key", "description", "is_active"),
                (action.name, action.handler_key, action.description, int(action.is_active)),
            )
            created = self._require_action(cursor, new_id)

        logger.info(f"Created action {created.id} '{created.name}' ({created.handler_key})")
        return created

    def update_action(self, action_id: int, **fields: Any) -> Action:
        unknown = set(fields) - ACTION_FIELDS
        if unknown:
            raise RuleStoreError(f"Unknown action fields: {sorted(unknown)}")

        with self._transaction() as cursor:
            self._require_action(cursor, action_id)
            if fields:
                assignments = ", ".join(f"{column} = ?" for column in fields)
                values = [int(v) if isinstance(v, bool) else v for v in fields.values()]
                cursor.execute(
                    f"UPDATE {self._table('actions')} SET {assignments} WHERE id = ?",
                    (*values, action_id),
                )
            updated = self._require_action(cursor, action_id)

        logger.info(f"Updated action {action_id}: {sorted(fields)}")
        return updated

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def list_bindings(self, category_id: Optional[int] = None) -> List[CategoryAction]:
        if category_id is None:
            rows = self._fetchall(
                f"SELECT {BINDING_COLUMNS} FROM {self._table('category_actions')} "
                f"ORDER BY category_id, execution_order, id"
            )
        else:
            rows = self._fetchall(
                f"SELECT {BINDING_COLUMNS} FROM {self._table('category_actions')} "
                f"WHERE category_id = ? ORDER BY execution_order, id",
                (category_id,),
            )
        return [row_to_binding(r) for r in rows]

    def _require_binding(self, cursor, binding_id: int) -> CategoryAction:
        cursor.execute(
            f"SELECT {BINDING_COLUMNS} FROM {self._table('category_actions')} WHERE id = ?",
            (binding_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise RuleStoreError(f"Binding {binding_id} does not exist")
        return row_to_binding(row)

    def bind_action(
        self,
        category_id: int,
        action_id: int,
        execution_order: int = 0,
        config: Optional[Dict[str, Any]] = None,
    ) -> CategoryAction:
        with self._transaction() as cursor:
            self._require_category(cursor, category_id)
            self._require_action(cursor, action_id)
            new_id = self._insert(
                cursor,
                "category_actions",
                ("category_id", "action_id", "execution_order", "config", "is_active"),
                (category_id, action_id, execution_order, json.dumps(config or {}, sort_keys=True), 1),
            )
            created = self._require_binding(cursor, new_id)

        logger.info(
            f"Bound action {action_id} to category {category_id} at order {execution_order}"
        )
        return created

    def update_binding(self, binding_id: int, **fields: Any) -> CategoryAction:
        unknown = set(fields) - BINDING_FIELDS
        if unknown:
            raise RuleStoreError(f"Unknown binding fields: {sorted(unknown)}")

        values: Dict[str, Any] = {}
        for column, value in fields.items():
            if column == "config":
                values[column] = json.dumps(value or {}, sort_keys=True)
            elif isinstance(value, bool):
                values[column] = int(value)
            else:
                values[column] = value

        with self._transaction() as cursor:
            self._require_binding(cursor, binding_id)
            if values:
                assignments = ", ".join(f"{column} = ?" for column in values)
                cursor.execute(
                    f"UPDATE {self._table('category_actions')} SET {assignments} WHERE id = ?",
                    (*values.values(), binding_id),
                )
            updated = self._require_binding(cursor, binding_id)

        return updated

    def unbind_action(self, category_id: int, action_id: int) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                f"DELETE FROM {self._table('category_actions')} "
                f"WHERE category_id = ? AND action_id = ?",
                (category_id, action_id),
            )
            deleted = cursor.rowcount > 0
        return deleted

    # ------------------------------------------------------------------
    # Matchers
    # ------------------------------------------------------------------

    def list_matchers(self, category_id: Optional[int] = None) -> List[Matcher]:
        if category_id is None:
            rows = self._fetchall(
                f"SELECT {MATCHER_COLUMNS} FROM {self._table('matchers')} ORDER BY id"
            )
        else:
            rows = self._fetchall(
                f"SELECT {MATCHER_COLUMNS} FROM {self._table('matchers')} "
                f"WHERE category_id = ? ORDER BY id",
                (category_id,),
            )
        return [row_to_matcher(r) for r in rows]

    def create_matcher(self, matcher: Matcher) -> Matcher:
        pattern = (matcher.pattern or "").strip()
        if not pattern:
            raise RuleStoreError("Matcher pattern must not be empty")

        with self._transaction() as cursor:
            self._require_category(cursor, matcher.category_id)
            new_id = self._insert(
                cursor,
                "matchers",
                ("category_id", "matcher_type", "pattern", "is_exclusion", "is_active"),
                (
                    matcher.category_id,
                    MatcherType(matcher.matcher_type).value,
                    pattern,
                    int(matcher.is_exclusion),
                    int(matcher.is_active),
                ),
            )
            cursor.execute(
                f"SELECT {MATCHER_COLUMNS} FROM {self._table('matchers')} WHERE id = ?",
                (new_id,),
            )
            created = row_to_matcher(cursor.fetchone())

        return created

    def set_matcher_active(self, matcher_id: int, is_active: bool) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                f"UPDATE {self._table('matchers')} SET is_active = ? WHERE id = ?",
                (int(is_active), matcher_id),
            )
            changed = cursor.rowcount > 0
        return changed

    def delete_matcher(self, matcher_id: int) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                f"DELETE FROM {self._table('matchers')} WHERE id = ?", (matcher_id,)
            )
            deleted = cursor.rowcount > 0
        return deleted

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def list_aliases(self) -> List[CategoryAlias]:
        rows = self._fetchall(
            f"SELECT {ALIAS_COLUMNS} FROM {self._table('category_aliases')} ORDER BY alias"
        )
        return [row_to_alias(r) for r in rows]

    def _select_alias(self, cursor, alias: str) -> Optional[CategoryAlias]:
        cursor.execute(
            f"SELECT {ALIAS_COLUMNS} FROM {self._table('category_aliases')} WHERE alias = ?",
            (alias,),
        )
        row = cursor.fetchone()
        return row_to_alias(row) if row else None

    def upsert_alias(
        self,
        alias: str,
        category_id: int,
        confidence_threshold: float = 0.7,
    ) -> CategoryAlias:
        normalized = normalize_label(alias)
        if not normalized:
            raise RuleStoreError("Alias must not be empty")

        with self._transaction() as cursor:
            category = self._require_category(cursor, category_id)
            if not category.is_active:
                raise RuleStoreError(
                    f"Category {category.name} ({category_id}) is inactive; "
                    f"an alias to it would never resolve"
                )
            existing = self._select_alias(cursor, normalized)
            if existing is None:
                self._insert(
                    cursor,
                    "category_aliases",
                    ("alias", "category_id", "confidence_threshold"),
                    (normalized, category_id, confidence_threshold),
                )
            else:
                cursor.execute(
                    f"UPDATE {self._table('category_aliases')} "
                    f"SET category_id = ?, confidence_threshold = ?, "
                    f"updated_at = CURRENT_TIMESTAMP WHERE alias = ?",
                    (category_id, confidence_threshold, normalized),
                )
            saved = self._select_alias(cursor, normalized)

        logger.info(
            f"{'Created' if existing is None else 'Updated'} alias '{normalized}' "
            f"-> category {category_id}"
        )
        return saved

    def delete_alias(self, alias: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute(
                f"DELETE FROM {self._table('category_aliases')} WHERE alias = ?",
                (normalize_label(alias),),
            )
            deleted = cursor.rowcount > 0
        return deleted

    def search_aliases(self, term: str) -> List[CategoryAlias]:
        pattern = f"%{normalize_label(term)}%"
        rows = self._fetchall(
            f"SELECT {ALIAS_COLUMNS} FROM {self._table('category_aliases')} "
            f"WHERE alias LIKE ? ORDER BY alias",
            (pattern,),
        )
        return [row_to_alias(r) for r in rows]
