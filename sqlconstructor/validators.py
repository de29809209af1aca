# File: sqlconstructor/validators.py
"""
SQL Constructor - Query & Schema Validators
===========================================
A **pure-function validation pipeline** over the models in
``sqlconstructor.models``.

Pydantic handles per-field structure.  This module adds the semantic
checks that decide whether SQL can be rendered at all:

- Query-state checks (orphaned tables, HAVING without GROUP BY, ORDER BY on
  a column that is neither grouped nor aggregated) are *errors*; the
  orchestrator turns them into comment strings instead of SQL.
- Field reference / operator checks are *warnings*; rendering goes on.
- Schema checks run on imported schema documents before they are used.

Usage:
    from sqlconstructor.validators import validate_query
    result = validate_query(from_table, joins, fields, group_by_active)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from sqlconstructor.models import (
    JoinClause,
    SchemaDefinition,
    UIField,
)
from sqlconstructor.utils import get_operators

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.validators")

# Error codes the orchestrator treats as render-blocking.
ORPHANED_TABLES: str = "ORPHANED_TABLES"
HAVING_WITHOUT_GROUP_BY: str = "HAVING_WITHOUT_GROUP_BY"
INVALID_ORDER_BY: str = "INVALID_ORDER_BY"

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def first_error(self, code: Optional[str] = None) -> Optional[ValidationError]:
        """First error, optionally restricted to one code."""
        for item in self._items:
            if item.is_error and (code is None or item.code == code):
                return item
        return None

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "❌",
                "warning": "⚠️",
                "info": "ℹ️",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            if item.context:
                for k, v in item.context.items():
                    lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Query-state validators
# ---------------------------------------------------------------------------


def validate_orphaned_tables(
    from_table: str, joins: Sequence[JoinClause], fields: Sequence[UIField]
) -> ValidationResult:
    """
    Field tables that are neither the FROM table nor on either side of a
    join.  Reported once, with the tables sorted.
    """
    result: ValidationResult = ValidationResult()

    connected: Set[str] = {from_table} if from_table else set()
    for j in joins:
        connected.add(j.table1)
        connected.add(j.table2)

    orphans: List[str] = sorted({f.table for f in fields if f.table} - connected)
    if orphans:
        result.add_error(
            ORPHANED_TABLES,
            f"Table(s) not joined: {', '.join(orphans)}. "
            f"Add a manual link to include them in the query.",
            {"tables": orphans},
        )
    return result


def validate_having_requires_group_by(
    fields: Sequence[UIField], group_by_active: bool
) -> ValidationResult:
    """A HAVING filter needs at least one ``Group By`` field."""
    result: ValidationResult = ValidationResult()
    if not group_by_active:
        return result

    has_having: bool = any(f.has_having for f in fields)
    has_group_field: bool = any(f.is_grouped for f in fields)
    if has_having and not has_group_field:
        result.add_error(
            HAVING_WITHOUT_GROUP_BY,
            "HAVING requires at least one field to be grouped "
            "(set Group Type to 'Group By').",
        )
    return result


def validate_order_by_targets(
    fields: Sequence[UIField], group_by_active: bool
) -> ValidationResult:
    """
    In grouping mode a sorted field must be grouped, aggregated or an
    expression.  Only the first offender is reported.
    """
    result: ValidationResult = ValidationResult()
    if not group_by_active:
        return result

    for f in fields:
        if not f.sort_dir:
            continue
        if f.is_grouped or f.is_aggregated or f.is_expression:
            continue
        result.add_error(
            INVALID_ORDER_BY,
            f"Cannot sort by '{f.column}' because it is neither grouped "
            f"nor aggregated.",
            {"table": f.table, "column": f.column, "group_by_type": f.group_by_type},
        )
        break
    return result


def validate_field_references(
    fields: Sequence[UIField], schema: SchemaDefinition
) -> ValidationResult:
    """Fields pointing at tables or columns the schema does not know."""
    result: ValidationResult = ValidationResult()

    for f in fields:
        ctx: Dict[str, Any] = {"field": f.id, "table": f.table, "column": f.column}
        table = schema.get_table(f.table)
        if table is None:
            result.add_warning(
                "UNKNOWN_TABLE",
                f"Field '{f.table}.{f.column}' references unknown table '{f.table}'.",
                ctx,
            )
            continue
        if f.is_expression and f.expression:
            continue
        if table.get_column(f.column) is None:
            result.add_warning(
                "UNKNOWN_COLUMN",
                f"Column '{f.column}' not found in table '{f.table}'.",
                ctx,
            )
    return result


def validate_field_operators(
    fields: Sequence[UIField], schema: SchemaDefinition
) -> ValidationResult:
    """Filter operators that are not offered for the column's type."""
    result: ValidationResult = ValidationResult()

    for f in fields:
        data_type: str = schema.get_data_type(f.table, f.column)
        allowed: List[str] = get_operators(data_type)
        for index, slot in enumerate(f.filters):
            if slot.op and slot.op not in allowed:
                result.add_warning(
                    "UNSUPPORTED_OPERATOR",
                    f"Operator '{slot.op}' is unusual for "
                    f"'{f.table}.{f.column}' ({data_type}).",
                    {"field": f.id, "slot": index, "data_type": data_type},
                )
    return result


def validate_query(
    from_table: str,
    joins: Sequence[JoinClause],
    fields: Sequence[UIField],
    group_by_active: bool = False,
    schema: Optional[SchemaDefinition] = None,
) -> ValidationResult:
    """
    **Master query validation entry point.**

    Runs the render-blocking checks in the order the orchestrator reports
    them (orphans, HAVING, ORDER BY), then the advisory ones when a schema
    is given.
    """
    result: ValidationResult = ValidationResult()
    result.merge(validate_orphaned_tables(from_table, joins, fields))
    result.merge(validate_having_requires_group_by(fields, group_by_active))
    result.merge(validate_order_by_targets(fields, group_by_active))

    if schema is not None:
        result.merge(validate_field_references(fields, schema))
        result.merge(validate_field_operators(fields, schema))

    if result.has_errors:
        logger.info("Query validation found problems. %s", result.summary())
    else:
        logger.debug("Query validation passed. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Schema validators
# ---------------------------------------------------------------------------


def validate_table_names(schema: SchemaDefinition) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    seen: Set[str] = set()

    for table in schema.tables:
        if table.table_name in seen:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Table name '{table.table_name}' is defined more than once.",
                {"table": table.table_name},
            )
        seen.add(table.table_name)
    return result


def validate_column_names(schema: SchemaDefinition) -> ValidationResult:
    result: ValidationResult = ValidationResult()

    for table in schema.tables:
        seen: Set[str] = set()
        for col in table.columns:
            if col.column_name in seen:
                result.add_error(
                    "DUPLICATE_COLUMN_NAME",
                    f"Column '{col.column_name}' is duplicated in table "
                    f"'{table.table_name}'.",
                    {"table": table.table_name, "column": col.column_name},
                )
            seen.add(col.column_name)
    return result


def validate_primary_keys(schema: SchemaDefinition) -> ValidationResult:
    """
    Every primary-key column must exist.  A table without a primary key is
    only a warning: it can still be queried and joined.
    """
    result: ValidationResult = ValidationResult()

    for table in schema.tables:
        ctx: Dict[str, Any] = {"table": table.table_name}
        if not table.primary_key:
            result.add_warning(
                "MISSING_PRIMARY_KEY",
                f"Table '{table.table_name}' has no primary key.",
                ctx,
            )
            continue
        names: Set[str] = set(table.column_names)
        for pk in table.primary_key:
            if pk not in names:
                result.add_error(
                    "PK_COLUMN_MISSING",
                    f"Primary key column '{pk}' not found in table "
                    f"'{table.table_name}'.",
                    {**ctx, "column": pk},
                )
    return result


def validate_foreign_keys(schema: SchemaDefinition) -> ValidationResult:
    """
    Cross-table FK validation:
    - Constrained column exists in the owning table
    - Referenced table exists
    - Referenced column exists in the referenced table
    """
    result: ValidationResult = ValidationResult()

    for table in schema.tables:
        names: Set[str] = set(table.column_names)
        for fk in table.fk_list:
            ctx: Dict[str, Any] = {
                "table": table.table_name,
                "column": fk.column,
                "ref_table": fk.ref_table,
                "ref_column": fk.ref_column,
            }
            label: str = (
                f"FK '{table.table_name}.{fk.column}' → "
                f"'{fk.ref_table}.{fk.ref_column}'"
            )

            if fk.column not in names:
                result.add_error(
                    "FK_COLUMN_MISSING",
                    f"{label}: column '{fk.column}' not found in "
                    f"'{table.table_name}'.",
                    ctx,
                )

            target = schema.get_table(fk.ref_table)
            if target is None:
                result.add_error(
                    "FK_TARGET_TABLE_MISSING",
                    f"{label}: table '{fk.ref_table}' does not exist.",
                    ctx,
                )
                continue

            if target.get_column(fk.ref_column) is None:
                result.add_error(
                    "FK_TARGET_COLUMN_MISSING",
                    f"{label}: column '{fk.ref_column}' not found in "
                    f"'{fk.ref_table}'.",
                    ctx,
                )
    return result


def validate_schema(schema: SchemaDefinition) -> ValidationResult:
    """Run all schema-level validators.  Returns a merged ``ValidationResult``."""
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[SchemaDefinition], ValidationResult]] = [
        validate_table_names,
        validate_column_names,
        validate_primary_keys,
        validate_foreign_keys,
    ]

    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(schema))

    if not schema.tables:
        result.add_info("EMPTY_SCHEMA", "Schema contains no tables.")

    logger.info("Schema validation complete: %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "HAVING_WITHOUT_GROUP_BY",
    "INVALID_ORDER_BY",
    "ORPHANED_TABLES",
    "ValidationError",
    "ValidationResult",
    "validate_column_names",
    "validate_field_operators",
    "validate_field_references",
    "validate_foreign_keys",
    "validate_having_requires_group_by",
    "validate_order_by_targets",
    "validate_orphaned_tables",
    "validate_primary_keys",
    "validate_query",
    "validate_schema",
    "validate_table_names",
]

logger.debug("sqlconstructor.validators loaded, %d public symbols.", len(__all__))
