# File: sqlconstructor/generator.py
"""
SQL Constructor - Recompute Pipeline (Orchestrator)
===================================================

Connects every phase together::

    Fields + Joins → Join Reconciliation → Validation
                   → Query Definition → SQL Text

``recompute`` is the single entry point used by the editing session and by
the CLI.  It is pure: given the same schema, fields, joins and config it
returns the same result, join ids included.

Error handling strategy:
    - Unreachable tables are reported as join errors and appended to the SQL
      as a warning comment; they never raise.
    - Orphaned tables suppress SQL entirely and set a temporary banner.
    - HAVING / ORDER BY violations replace the SQL with a comment string.
    - A missing or unknown FROM table (``QueryBuildError``) is rendered as
      ``-- Error: ...``.

The module also hosts the file loaders for schema documents (JSON / YAML)
and saved queries.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

import yaml

from sqlconstructor.definition import build_query_definition
from sqlconstructor.models import (
    BuilderConfig,
    JoinClause,
    QueryDefinition,
    QueryState,
    SavedQuery,
    SchemaDefinition,
    TableSchema,
    UIField,
)
from sqlconstructor.reconciler import ReconcileResult, join_hash, reconcile_joins
from sqlconstructor.sqlbuilder import (
    QueryBuildError,
    append_warnings,
    build_select_query,
)
from sqlconstructor.utils import Timer, read_file
from sqlconstructor.validators import (
    HAVING_WITHOUT_GROUP_BY,
    INVALID_ORDER_BY,
    ORPHANED_TABLES,
    ValidationError,
    ValidationResult,
    validate_query,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.generator")

EMPTY_QUERY_SQL: str = "-- Select a schema and a column to begin building your query"


# ---------------------------------------------------------------------------
# Recompute result
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class RecomputeResult:
    """
    Everything one recompute pass produces.

    ``sql`` is ``None`` only when orphaned tables block rendering; callers
    keep showing their previous SQL and display ``temp_error`` instead.
    """

    root: str = ""
    joins: List[JoinClause] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    orphaned_tables: List[str] = field(default_factory=list)
    temp_error: Optional[str] = None
    sql: Optional[str] = None
    query_definition: Optional[QueryDefinition] = None
    render_error: Optional[str] = None
    validation: ValidationResult = field(default_factory=ValidationResult)

    @property
    def is_renderable(self) -> bool:
        return self.query_definition is not None and self.sql is not None

    def changed(self, previous: Sequence[JoinClause]) -> bool:
        """True when the reconciled joins differ from ``previous`` in a visible way."""
        return join_hash(self.joins) != join_hash(previous)

    def summary(self) -> str:
        status: str = "blocked" if self.temp_error else "ok"
        return (
            f"Recompute [{status}]: root='{self.root}', {len(self.joins)} join(s), "
            f"{len(self.errors)} join error(s), "
            f"{len(self.orphaned_tables)} orphan(s)."
        )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def recompute(
    schema: SchemaDefinition,
    fields: Sequence[UIField],
    joins: Sequence[JoinClause],
    config: Optional[BuilderConfig] = None,
    from_table: str = "",
    limit: Optional[int] = None,
) -> RecomputeResult:
    """
    Run Reconciler → Validator → Builder → Generator, in that order.

    Args:
        schema: Active schema.
        fields: Field list; ``fields[0].table`` is the FROM table.
        joins: Join list from the previous pass (manual joins survive,
            auto joins lend their ids).
        config: Rendering settings; defaults to ``BuilderConfig()``.
        from_table: Previous FROM table, used when ``fields`` is empty.
        limit: Optional row limit appended to the query.

    Returns:
        A ``RecomputeResult``.  Never raises for user-state problems.
    """
    cfg: BuilderConfig = config or BuilderConfig()

    with Timer("recompute"):
        reconciled: ReconcileResult = reconcile_joins(schema, fields, joins, from_table)
        result: RecomputeResult = RecomputeResult(
            root=reconciled.root,
            joins=reconciled.joins,
            errors=list(reconciled.errors),
            orphaned_tables=list(reconciled.orphaned_tables),
        )

        validation: ValidationResult = validate_query(
            reconciled.root,
            reconciled.joins,
            fields,
            cfg.is_group_by_active,
            schema,
        )
        result.validation = validation

        orphaned: Optional[ValidationError] = validation.first_error(ORPHANED_TABLES)
        if orphaned is not None:
            result.temp_error = f"-- ❌ Error: {orphaned.message}"
            logger.info("SQL suppressed: %s", orphaned.message)
            return result

        for code in (HAVING_WITHOUT_GROUP_BY, INVALID_ORDER_BY):
            blocking: Optional[ValidationError] = validation.first_error(code)
            if blocking is not None:
                result.sql = f"-- ⚠️ Error: {blocking.message}"
                return result

        if not reconciled.root:
            result.sql = EMPTY_QUERY_SQL
            return result

        query_def: QueryDefinition = build_query_definition(
            fields,
            reconciled.joins,
            reconciled.root,
            cfg.is_group_by_active,
            cfg.filter_group_count,
            limit=limit,
        )
        result.query_definition = query_def

        try:
            sql: str = build_select_query(query_def, schema, cfg.use_quotes)
        except QueryBuildError as exc:
            logger.warning("Rendering failed: %s", exc)
            result.render_error = str(exc)
            result.sql = f"-- Error: {exc}"
            return result

        result.sql = append_warnings(sql, reconciled.errors)

    logger.debug(result.summary())
    return result


def render_state(
    state: QueryState,
    schema: SchemaDefinition,
    use_quotes: bool = False,
    limit: Optional[int] = None,
) -> RecomputeResult:
    """Recompute a saved ``QueryState`` snapshot."""
    config: BuilderConfig = BuilderConfig(
        use_quotes=use_quotes,
        is_group_by_active=state.is_group_by_active,
        filter_group_count=state.filter_group_count,
    )
    return recompute(
        schema, state.fields, state.joins, config, state.from_table, limit=limit
    )


# ---------------------------------------------------------------------------
# Document loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Any:
    """Load and parse a JSON file.  Raises ValueError on parse errors."""
    try:
        return json.loads(read_file(path))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    try:
        return yaml.safe_load(read_file(path))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc


def load_document(path: Path) -> Any:
    """
    Load a JSON or YAML document.

    Dispatches based on file extension; unknown extensions are tried as JSON
    first, then YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s', trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def extract_tables(data: Any) -> List[Any]:
    """
    Pull the table list out of an imported schema document.

    Accepted shapes, checked in this order:
        - ``[{"schema": [...]}, ...]``: first element's ``schema``
        - ``{"schema": [...]}``
        - ``[...]``: a bare list of tables

    Raises:
        ValueError: ``"Invalid format"`` for anything else.
    """
    if isinstance(data, list) and data and isinstance(data[0], dict):
        nested: Any = data[0].get("schema")
        if nested:
            return list(nested)
    if isinstance(data, dict) and data.get("schema"):
        return list(data["schema"])
    if isinstance(data, list):
        return data
    raise ValueError("Invalid format")


def parse_schema_document(data: Any) -> SchemaDefinition:
    """Validate an imported schema document into a ``SchemaDefinition``."""
    tables: List[TableSchema] = [
        TableSchema.model_validate(t) for t in extract_tables(data)
    ]
    schema: SchemaDefinition = SchemaDefinition(tables=tables)
    logger.info("Parsed schema with %d table(s).", schema.table_count)
    return schema


def load_schema_file(path: Path) -> SchemaDefinition:
    """Load a schema document (JSON or YAML) from disk."""
    return parse_schema_document(load_document(path))


def parse_query_document(data: Any) -> SavedQuery:
    """
    Accept either a full ``SavedQuery`` document or a bare query state.

    A bare state is wrapped in a ``SavedQuery`` named after its FROM table.
    """
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a mapping at top level, got {type(data).__name__}."
        )
    if "state" in data:
        return SavedQuery.model_validate(data)

    state: QueryState = QueryState.model_validate(data)
    return SavedQuery(name=state.from_table or "query", state=state)


def load_query_file(path: Path) -> SavedQuery:
    return parse_query_document(load_document(path))


__all__: List[str] = [
    "EMPTY_QUERY_SQL",
    "RecomputeResult",
    "extract_tables",
    "load_document",
    "load_query_file",
    "load_schema_file",
    "parse_query_document",
    "parse_schema_document",
    "recompute",
    "render_state",
]
