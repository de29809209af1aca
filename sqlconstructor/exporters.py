# File: sqlconstructor/exporters.py
"""
SQL Constructor - TypeScript Interface Exporter
===============================================
Turns a schema into one ``export interface`` per table::

    export interface UserRoles {
      userId: number;
      roleId: number;
    }

Table names become PascalCase, column names camelCase, nullable columns
optional properties.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from sqlconstructor.models import ColumnSchema, SchemaDefinition, TableSchema
from sqlconstructor.utils import Timer, to_camel_case, to_pascal_case, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.exporters")

EMPTY_SCHEMA_TS: str = "// No schema definitions found"

# Substring matches, checked in order.
_TS_NUMBER_HINTS: Tuple[str, ...] = (
    "integer",
    "int",
    "smallint",
    "bigint",
    "serial",
    "bigserial",
    "decimal",
    "numeric",
    "real",
    "double precision",
    "money",
)
_TS_ANY_HINTS: Tuple[str, ...] = ("json", "jsonb")


def map_data_type_to_ts(data_type: Optional[str]) -> str:
    """
    TypeScript type for a column type: ``number``, ``boolean``, ``any`` or
    ``string``.

    Matching is by substring, so ``"integer[]"`` is a number and
    ``"interval"`` (contains "int") is one too.
    """
    lower: str = (data_type or "").lower()
    if any(hint in lower for hint in _TS_NUMBER_HINTS):
        return "number"
    if "boolean" in lower:
        return "boolean"
    if any(hint in lower for hint in _TS_ANY_HINTS):
        return "any"
    return "string"


def _render_property(column: ColumnSchema) -> str:
    optional: str = "?" if column.nullable else ""
    return (
        f"  {to_camel_case(column.column_name)}{optional}: "
        f"{map_data_type_to_ts(column.data_type)};"
    )


def render_interface(table: TableSchema) -> str:
    props: str = "\n".join(_render_property(c) for c in table.columns)
    return f"export interface {to_pascal_case(table.table_name)} {{\n{props}\n}}"


def generate_typescript_interfaces(schema: SchemaDefinition) -> str:
    """All interfaces, separated by a blank line."""
    if not schema.tables:
        return EMPTY_SCHEMA_TS
    return "\n\n".join(render_interface(t) for t in schema.tables)


def export_typescript(schema: SchemaDefinition, path: Path) -> int:
    """Write the interfaces to ``path`` atomically.  Returns bytes written."""
    with Timer("export-ts"):
        written: int = write_file(path, generate_typescript_interfaces(schema) + "\n")
    logger.info("Exported %d interface(s) to %s.", schema.table_count, path)
    return written


__all__: List[str] = [
    "EMPTY_SCHEMA_TS",
    "export_typescript",
    "generate_typescript_interfaces",
    "map_data_type_to_ts",
    "render_interface",
]
