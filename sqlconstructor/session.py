# File: sqlconstructor/session.py
"""
SQL Constructor - Editing Session
=================================
``QueryBuilder`` holds the mutable query-editing state and re-runs the
whole pipeline after every action::

    qb = QueryBuilder(schema)
    qb.add_field("users", "email")
    qb.add_field("roles", "role_name")
    print(qb.sql)

Every action ends in ``refresh()``, which calls ``generator.recompute``,
adopts the reconciled joins and FROM table, and persists the state through
the injected ``StateStore``.

While orphaned tables block rendering, ``sql`` keeps its previous value and
``temp_error`` carries the banner; the banner clears itself once
``BuilderConfig.error_banner_seconds`` have passed on the injected clock.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from sqlconstructor.generator import RecomputeResult, recompute
from sqlconstructor.models import (
    FILTER_SLOTS,
    BuilderConfig,
    FilterState,
    JoinClause,
    JoinType,
    QueryState,
    SavedQuery,
    SchemaDefinition,
    UIField,
)
from sqlconstructor.storage import MemoryStore, StateStore

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.session")

# ---------------------------------------------------------------------------
# Persistence keys
# ---------------------------------------------------------------------------
KEY_FROM: str = "sql_builder_from"
KEY_JOINS: str = "sql_builder_joins"
KEY_FIELDS: str = "sql_builder_fields"
KEY_GROUP_BY_ACTIVE: str = "sql_builder_group_by_active"
KEY_FILTER_GROUP_COUNT: str = "sql_builder_filter_group_count"
KEY_USE_QUOTES: str = "sql_builder_use_quotes"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _clamp_group_count(count: Any) -> int:
    try:
        value: int = int(count or 1)
    except (TypeError, ValueError):
        return 1
    return max(1, min(FILTER_SLOTS, value))


def _merged(current: ModelT, changes: Dict[str, Any]) -> ModelT:
    """
    Re-validate ``current`` with ``changes`` applied.

    Keys may be attribute names (``group_by_type``) or wire names
    (``groupByType``); both land on the same field.
    """
    data: Dict[str, Any] = current.model_dump(by_alias=True)
    for key, value in changes.items():
        info = type(current).model_fields.get(key)
        data[info.alias if info is not None and info.alias else key] = value
    return type(current).model_validate(data)


class QueryBuilder:
    """
    Stateful editing session over one schema.

    Args:
        schema: Active schema.
        store: Persistence port; defaults to a fresh ``MemoryStore``.
        clock: Monotonic time source in seconds, for the error banner.
        config: Builder settings.  ``use_quotes``, ``is_group_by_active``
            and ``filter_group_count`` seed the session when the store has
            no saved value.
    """

    def __init__(
        self,
        schema: SchemaDefinition,
        store: Optional[StateStore] = None,
        clock: Callable[[], float] = time.monotonic,
        config: Optional[BuilderConfig] = None,
    ) -> None:
        self.schema: SchemaDefinition = schema
        self.store: StateStore = store if store is not None else MemoryStore()
        self.clock: Callable[[], float] = clock
        self.config: BuilderConfig = config or BuilderConfig()

        self.from_table: str = str(self.store.load(KEY_FROM, "") or "")
        self.joins: List[JoinClause] = self._load_models(KEY_JOINS, JoinClause)
        self.fields: List[UIField] = self._load_models(KEY_FIELDS, UIField)
        self.is_group_by_active: bool = bool(
            self.store.load(KEY_GROUP_BY_ACTIVE, self.config.is_group_by_active)
        )
        self.filter_group_count: int = _clamp_group_count(
            self.store.load(KEY_FILTER_GROUP_COUNT, self.config.filter_group_count)
        )
        self.use_quotes: bool = bool(
            self.store.load(KEY_USE_QUOTES, self.config.use_quotes)
        )
        self.loaded_query_id: Optional[str] = None

        self.sql: str = ""
        self.join_errors: List[str] = []
        self.orphaned_tables: List[str] = []
        self.last_result: Optional[RecomputeResult] = None
        self._temp_error: Optional[str] = None
        self._temp_error_at: float = 0.0

        self.refresh()

    # -- Persistence --------------------------------------------------------

    def _load_models(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        raw: Any = self.store.load(key, [])
        if not isinstance(raw, list):
            logger.warning("Stored '%s' is not a list, ignoring it.", key)
            return []
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as exc:
            logger.warning("Stored '%s' is invalid, ignoring it: %s", key, exc)
            return []

    def _persist(self) -> None:
        self.store.save(KEY_FROM, self.from_table)
        self.store.save(KEY_JOINS, [j.model_dump(by_alias=True) for j in self.joins])
        self.store.save(KEY_FIELDS, [f.model_dump(by_alias=True) for f in self.fields])
        self.store.save(KEY_GROUP_BY_ACTIVE, self.is_group_by_active)
        self.store.save(KEY_FILTER_GROUP_COUNT, self.filter_group_count)
        self.store.save(KEY_USE_QUOTES, self.use_quotes)

    # -- Derived state ------------------------------------------------------

    @property
    def temp_error(self) -> Optional[str]:
        """Orphan banner, or ``None`` once it has expired."""
        if self._temp_error is None:
            return None
        if self.clock() - self._temp_error_at >= self.config.error_banner_seconds:
            self._temp_error = None
        return self._temp_error

    @property
    def display_sql(self) -> str:
        """What a terminal pane shows: the banner while it lasts, else SQL."""
        return self.temp_error or self.sql

    def builder_config(self) -> BuilderConfig:
        return self.config.model_copy(
            update={
                "use_quotes": self.use_quotes,
                "is_group_by_active": self.is_group_by_active,
                "filter_group_count": self.filter_group_count,
            }
        )

    def snapshot(self) -> QueryState:
        """Serialisable copy of the current query state."""
        return QueryState(
            from_table=self.from_table,
            joins=[j.model_copy() for j in self.joins],
            fields=[f.model_copy(deep=True) for f in self.fields],
            is_group_by_active=self.is_group_by_active,
            filter_group_count=self.filter_group_count,
        )

    # -- Pipeline -----------------------------------------------------------

    def refresh(self) -> RecomputeResult:
        """Recompute joins, validation and SQL, then persist."""
        result: RecomputeResult = recompute(
            self.schema,
            self.fields,
            self.joins,
            self.builder_config(),
            self.from_table,
        )

        if result.root:
            self.from_table = result.root
        if result.changed(self.joins):
            self.joins = result.joins
        else:
            logger.debug("Join list unchanged, keeping the current one.")
        self.join_errors = result.errors
        self.orphaned_tables = result.orphaned_tables

        if result.temp_error is not None:
            self._temp_error = result.temp_error
            self._temp_error_at = self.clock()
        else:
            self._temp_error = None
            self.sql = result.sql or ""

        self.last_result = result
        self._persist()
        return result

    # -- Field actions ------------------------------------------------------

    def add_field(
        self, table: Optional[str] = None, column: Optional[str] = None
    ) -> Optional[UIField]:
        """
        Append a field.  The table defaults to the FROM table and the column
        to that table's first column; nothing happens if neither resolves.
        """
        target: str = table or self.from_table
        if not column:
            columns = self.schema.get_columns(target)
            column = columns[0].column_name if columns else ""
        if not target or not column:
            logger.info("add_field ignored: no column to add for table '%s'.", target)
            return None

        new_field: UIField = UIField(table=target, column=column)
        self.fields.append(new_field)
        self.refresh()
        return new_field

    def update_field(self, index: int, **changes: Any) -> UIField:
        """Merge ``changes`` (attribute or wire names) into field ``index``."""
        updated: UIField = _merged(self.fields[index], changes)
        self.fields[index] = updated
        self.refresh()
        return updated

    def remove_field(self, index: int) -> UIField:
        removed: UIField = self.fields.pop(index)
        self.refresh()
        return removed

    def move_field(self, source: int, target: int) -> None:
        """Drag-and-drop reorder.  Moving onto index 0 changes the FROM table."""
        if source == target:
            return
        item: UIField = self.fields.pop(source)
        self.fields.insert(target, item)
        self.refresh()

    def update_field_filter(
        self,
        index: int,
        group: int,
        op: Optional[str] = None,
        val: Optional[str] = None,
    ) -> None:
        """Set the operator and / or value of one filter slot."""
        current: UIField = self.fields[index]
        filters: List[FilterState] = [s.model_copy() for s in current.filters]
        while len(filters) <= group:
            filters.append(FilterState())
        slot: FilterState = filters[group]
        filters[group] = FilterState(
            op=op if op is not None else slot.op,
            val=val if val is not None else slot.val,
        )
        self.fields[index] = current.model_copy(update={"filters": filters})
        self.refresh()

    def update_field_having(
        self, index: int, op: Optional[str] = None, val: Optional[str] = None
    ) -> None:
        current: UIField = self.fields[index]
        having: FilterState = current.having or FilterState()
        self.fields[index] = current.model_copy(
            update={
                "having": FilterState(
                    op=op if op is not None else having.op,
                    val=val if val is not None else having.val,
                )
            }
        )
        self.refresh()

    # -- Settings -----------------------------------------------------------

    def set_group_by_active(self, active: bool) -> None:
        self.is_group_by_active = bool(active)
        self.refresh()

    def set_filter_group_count(self, count: int) -> None:
        self.filter_group_count = _clamp_group_count(count)
        self.refresh()

    def set_use_quotes(self, use_quotes: bool) -> None:
        self.use_quotes = bool(use_quotes)
        self.refresh()

    # -- Join actions -------------------------------------------------------

    def add_manual_join(
        self,
        table1: str,
        column1: str,
        table2: str,
        column2: str,
        join_type: str = JoinType.INNER.value,
    ) -> JoinClause:
        """A user-owned join; the reconciler may reorient it but never drops it."""
        join: JoinClause = JoinClause(
            type=join_type,
            table1=table1,
            column1=column1,
            table2=table2,
            column2=column2,
            is_auto=False,
        )
        self.joins.append(join)
        self.refresh()
        return join

    def _join_index(self, join_id: str) -> int:
        for i, j in enumerate(self.joins):
            if j.id == join_id:
                return i
        raise KeyError(f"No join with id '{join_id}'.")

    def update_join(self, join_id: str, **changes: Any) -> JoinClause:
        index: int = self._join_index(join_id)
        updated: JoinClause = _merged(self.joins[index], changes)
        self.joins[index] = updated
        self.refresh()
        return updated

    def remove_join(self, join_id: str) -> JoinClause:
        removed: JoinClause = self.joins.pop(self._join_index(join_id))
        self.refresh()
        return removed

    # -- Whole-state actions ------------------------------------------------

    def reset(self, schema: Optional[SchemaDefinition] = None) -> None:
        """
        Clear the query.  Passing a schema switches to it; the FROM table
        falls back to that schema's first table.
        """
        if schema is not None:
            self.schema = schema
        self.loaded_query_id = None
        self.joins = []
        self.fields = []
        self.join_errors = []
        self.is_group_by_active = False
        self.filter_group_count = 1
        self.from_table = self.schema.tables[0].table_name if self.schema.tables else ""
        self.refresh()

    def load_query(self, saved: SavedQuery) -> None:
        state: QueryState = saved.state
        self.from_table = state.from_table
        self.joins = [j.model_copy() for j in state.joins]
        self.fields = [f.model_copy(deep=True) for f in state.fields]
        self.is_group_by_active = bool(state.is_group_by_active)
        self.filter_group_count = _clamp_group_count(state.filter_group_count)
        self.loaded_query_id = saved.id
        logger.info("Loaded query '%s' (%s).", saved.name, saved.id)
        self.refresh()

    def __repr__(self) -> str:
        return (
            f"<QueryBuilder from={self.from_table!r} "
            f"{len(self.fields)} field(s), {len(self.joins)} join(s)>"
        )


__all__: List[str] = [
    "KEY_FIELDS",
    "KEY_FILTER_GROUP_COUNT",
    "KEY_FROM",
    "KEY_GROUP_BY_ACTIVE",
    "KEY_JOINS",
    "KEY_USE_QUOTES",
    "QueryBuilder",
]
