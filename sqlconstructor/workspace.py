# File: sqlconstructor/workspace.py
"""
SQL Constructor - Workspace
===========================
Named schemas plus the queries saved against them.

The bundled default schema is always present.  Queries are bound to a
schema by name; renaming a schema through ``import_schema`` carries its
queries along, deleting it deletes them.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional

from pydantic import ValidationError

from sqlconstructor.defaults import default_schema
from sqlconstructor.generator import extract_tables
from sqlconstructor.models import (
    QueryState,
    SavedQuery,
    SchemaDefinition,
    TableSchema,
    WorkspaceSchema,
    new_id,
)
from sqlconstructor.storage import MemoryStore, StateStore

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.workspace")

KEY_SCHEMAS: str = "sql_constructor_schemas"
KEY_ACTIVE_SCHEMA: str = "sql_constructor_active_schema"
KEY_QUERIES: str = "sql_constructor_queries"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class Workspace:
    """
    Schemas, the active schema name and saved queries, persisted through a
    ``StateStore``.
    """

    def __init__(self, store: Optional[StateStore] = None) -> None:
        self.store: StateStore = store if store is not None else MemoryStore()

        self.schemas: List[WorkspaceSchema] = self._load_schemas()
        self.saved_queries: List[SavedQuery] = self._load_queries()
        self._active_name: str = str(self.store.load(KEY_ACTIVE_SCHEMA, "") or "")
        self._ensure_active()

    # -- Loading ------------------------------------------------------------

    def _load_schemas(self) -> List[WorkspaceSchema]:
        raw: Any = self.store.load(KEY_SCHEMAS, [])
        schemas: List[WorkspaceSchema] = []
        if isinstance(raw, list):
            for item in raw:
                try:
                    schemas.append(WorkspaceSchema.model_validate(item))
                except ValidationError as exc:
                    logger.warning("Skipping stored schema: %s", exc)

        default: WorkspaceSchema = default_schema()
        if not any(s.name == default.name for s in schemas):
            schemas.insert(0, default)
        return schemas

    def _load_queries(self) -> List[SavedQuery]:
        raw: Any = self.store.load(KEY_QUERIES, [])
        if not isinstance(raw, list):
            return []
        queries: List[SavedQuery] = []
        for item in raw:
            try:
                queries.append(SavedQuery.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping stored query: %s", exc)
        return queries

    # -- Persistence --------------------------------------------------------

    def _save_schemas(self) -> None:
        self.store.save(KEY_SCHEMAS, [s.model_dump(by_alias=True) for s in self.schemas])

    def _save_queries(self) -> None:
        self.store.save(
            KEY_QUERIES, [q.model_dump(by_alias=True) for q in self.saved_queries]
        )

    def _ensure_active(self) -> None:
        """Fall back to the first schema when the active name is unknown."""
        if self.schemas and self.get_schema(self._active_name) is None:
            self._active_name = self.schemas[0].name
        self.store.save(KEY_ACTIVE_SCHEMA, self._active_name)

    # -- Schemas ------------------------------------------------------------

    @property
    def active_name(self) -> str:
        return self._active_name

    @property
    def active_schema(self) -> SchemaDefinition:
        found: Optional[WorkspaceSchema] = self.get_schema(self._active_name)
        return found.schema_def if found else SchemaDefinition()

    @property
    def schema_names(self) -> List[str]:
        return [s.name for s in self.schemas]

    def get_schema(self, name: str) -> Optional[WorkspaceSchema]:
        for s in self.schemas:
            if s.name == name:
                return s
        return None

    def select_schema(self, name: str) -> None:
        if self.get_schema(name) is None:
            raise KeyError(f"Unknown schema '{name}'.")
        self._active_name = name
        self._ensure_active()

    def import_schema(
        self, name: str, document: Any, replace_active: bool = False
    ) -> WorkspaceSchema:
        """
        Add a schema from an imported document, or replace the active one.

        With ``replace_active`` the active schema takes the new name and
        tables, and queries bound to the old name follow the rename.  In both
        cases the imported schema becomes active.

        Raises:
            ValueError: Empty name or an unrecognised document shape.
        """
        if not name or not name.strip():
            raise ValueError("Schema name is required.")

        tables: List[TableSchema] = [
            TableSchema.model_validate(t) for t in extract_tables(document)
        ]
        imported: WorkspaceSchema = WorkspaceSchema(name=name, tables=tables)

        if replace_active:
            old_name: str = self._active_name
            self.schemas = [imported if s.name == old_name else s for s in self.schemas]
            if name != old_name:
                for i, q in enumerate(self.saved_queries):
                    if q.schema_name == old_name:
                        self.saved_queries[i] = q.model_copy(update={"schema_name": name})
                self._save_queries()
        else:
            self.schemas.append(imported)

        self._active_name = name
        self._save_schemas()
        self._ensure_active()
        logger.info("Imported schema '%s' with %d table(s).", name, len(tables))
        return imported

    def delete_schema(self) -> None:
        """Drop the active schema and every query saved against it."""
        doomed: str = self._active_name
        self.schemas = [s for s in self.schemas if s.name != doomed]
        self.saved_queries = [q for q in self.saved_queries if q.schema_name != doomed]
        self._save_schemas()
        self._save_queries()
        self._active_name = self.schemas[0].name if self.schemas else ""
        self._ensure_active()
        logger.info("Deleted schema '%s'.", doomed)

    # -- Queries ------------------------------------------------------------

    def save_query(
        self, name: str, state: QueryState, query_id: Optional[str] = None
    ) -> SavedQuery:
        """Insert or replace (by id) a query bound to the active schema."""
        saved: SavedQuery = SavedQuery(
            id=query_id or new_id(),
            name=name,
            schema_name=self._active_name,
            state=state,
            last_modified=_epoch_ms(),
        )
        for i, q in enumerate(self.saved_queries):
            if q.id == saved.id:
                self.saved_queries[i] = saved
                break
        else:
            self.saved_queries.append(saved)
        self._save_queries()
        return saved

    def delete_query(self, query_id: str) -> None:
        self.saved_queries = [q for q in self.saved_queries if q.id != query_id]
        self._save_queries()

    def get_query(self, query_id: str) -> Optional[SavedQuery]:
        for q in self.saved_queries:
            if q.id == query_id:
                return q
        return None

    def queries_for_active_schema(self) -> List[SavedQuery]:
        return [q for q in self.saved_queries if q.schema_name == self._active_name]

    def has_unsaved_changes(
        self, state: QueryState, query_id: Optional[str] = None
    ) -> bool:
        """
        True when ``state`` differs from the saved query ``query_id``.

        Without a loaded query, any field counts as unsaved work.
        """
        if not query_id:
            return len(state.fields) > 0
        saved: Optional[SavedQuery] = self.get_query(query_id)
        if saved is None:
            return True
        return state.model_dump(by_alias=True) != saved.state.model_dump(by_alias=True)

    def __repr__(self) -> str:
        return (
            f"<Workspace {len(self.schemas)} schema(s), "
            f"{len(self.saved_queries)} quer(y/ies), active={self._active_name!r}>"
        )


__all__: List[str] = [
    "KEY_ACTIVE_SCHEMA",
    "KEY_QUERIES",
    "KEY_SCHEMAS",
    "Workspace",
]
