# File: sqlconstructor/sqlbuilder.py
"""
SQL Constructor - SQL Text Generator
====================================
Renders a ``QueryDefinition`` plus the schema into Postgres-flavoured SQL.

Clause order is fixed::

    SELECT
      <select list>
    FROM <root>
    <JOIN lines, in reconciler order>
    WHERE (<and-group>)
      OR (<and-group>)
    GROUP BY ...
    HAVING ...
    ORDER BY ...
    LIMIT n;

Only a missing or unknown FROM table is fatal (``QueryBuildError``); every
other oddity degrades to best-effort text.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence, Tuple, Union

from sqlconstructor.models import (
    UNARY_OPERATORS,
    GroupByType,
    JoinClause,
    Operator,
    QueryDefinition,
    SchemaDefinition,
    SelectField,
    WhereClause,
)
from sqlconstructor.utils import (
    get_effective_type_for_aggregation,
    is_boolean_type,
    is_numeric_type,
    is_temporal_type,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.sqlbuilder")


class QueryBuildError(ValueError):
    """The query cannot be rendered at all (missing or unknown FROM table)."""


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_NUMERIC_LITERAL_RE: re.Pattern[str] = re.compile(
    r"^-?\d+(\.\d+)?([eE][-+]?\d+)?$"
)
_ISO_DATE_RE: re.Pattern[str] = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DMY_DATE_RE: re.Pattern[str] = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")
_DATE_KEYWORDS: Tuple[str, ...] = ("NOW()", "CURRENT_DATE")
_IIF_CALL_RE: re.Pattern[str] = re.compile(r"\bIIF\s*\(", re.IGNORECASE)
_COLUMN_REF_RE: re.Pattern[str] = re.compile(r"^([^.\s()'\"]+)\.([^.\s()'\"]+)$")


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------


def escape_id(identifier: str, use_quotes: bool = False) -> str:
    """Identifier, double-quoted when ``use_quotes``.  ``*`` is never quoted."""
    if identifier == "*":
        return "*"
    return f'"{identifier}"' if use_quotes else identifier


def quote_literal(text: str) -> str:
    """Single-quoted SQL string literal with embedded quotes doubled."""
    return "'" + text.replace("'", "''") + "'"


def escape_value(
    value: Union[str, int, float, bool, None], data_type: Optional[str] = None
) -> str:
    """
    Render a user-entered value as a SQL literal for a column of ``data_type``.

    - ``None`` renders as ``NULL``.
    - boolean columns render bare ``true`` / ``false``.
    - numeric columns pass valid numeric literals through; an empty value
      renders ``0``; anything else is quoted like text.
    - date / timestamp columns accept ``YYYY-MM-DD`` (time part dropped) or
      ``DD/MM/YYYY`` and render a quoted ISO date; ``NOW()`` and
      ``CURRENT_DATE`` pass through; anything else is quoted like text.
    - comma-separated input (not starting with ``'`` or ``#``) becomes a
      parenthesised list of quoted items.
    - everything else is a quoted string.
    """
    if value is None:
        return "NULL"

    if isinstance(value, bool):
        str_val: str = "true" if value else "false"
    else:
        str_val = str(value)

    if is_boolean_type(data_type):
        return "true" if str_val.strip().lower() == "true" else "false"

    if is_numeric_type(data_type):
        stripped: str = str_val.strip()
        if not stripped:
            return "0"
        if _NUMERIC_LITERAL_RE.match(stripped):
            return stripped

    elif is_temporal_type(data_type):
        iso = _ISO_DATE_RE.match(str_val)
        if iso:
            return f"'{iso.group(0)}'"
        dmy = _DMY_DATE_RE.match(str_val)
        if dmy:
            day, month, year = dmy.groups()
            return f"'{year}-{month.zfill(2)}-{day.zfill(2)}'"
        if str_val.upper() in _DATE_KEYWORDS:
            return str_val

    if "," in str_val and not str_val.startswith(("'", "#")):
        items: List[str] = [quote_literal(v.strip()) for v in str_val.split(",")]
        return "(" + ", ".join(items) + ")"

    return quote_literal(str_val)


def _escape_in_list(value: str, data_type: Optional[str]) -> str:
    """``(a, b, c)`` with each item escaped for the column type."""
    stripped: str = value.strip()
    if stripped.startswith("("):
        return stripped
    items: List[str] = [
        escape_value(item.strip(), data_type)
        for item in stripped.split(",")
        if item.strip()
    ]
    return "(" + ", ".join(items) + ")"


# ---------------------------------------------------------------------------
# IIF → CASE
# ---------------------------------------------------------------------------


def _split_call_arguments(text: str, start: int) -> Optional[Tuple[List[str], int]]:
    """
    Split the arguments of a call whose opening parenthesis ends at ``start``.

    Returns the raw arguments and the index just past the closing
    parenthesis, or ``None`` when the parentheses never balance.  Commas
    nested in parentheses or string literals do not split.
    """
    args: List[str] = []
    current: List[str] = []
    depth: int = 0
    quote: Optional[str] = None

    for i in range(start, len(text)):
        ch: str = text[i]
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == "(":
            depth += 1
            current.append(ch)
        elif ch == ")":
            if depth == 0:
                args.append("".join(current))
                return args, i + 1
            depth -= 1
            current.append(ch)
        elif ch == "," and depth == 0:
            args.append("".join(current))
            current = []
        else:
            current.append(ch)

    return None


def transpile_iif(text: Optional[str]) -> str:
    """
    Rewrite ``IIF(cond, a, b)`` as ``CASE WHEN cond THEN a ELSE b END``.

    Arguments are split at top-level commas and transpiled recursively, so
    nested calls work.  Calls without exactly three arguments, or with
    unbalanced parentheses, are left untouched.

    Examples:
        >>> transpile_iif("> IIF(x > 1, 10, 0)")
        '> CASE WHEN x > 1 THEN 10 ELSE 0 END'
    """
    if not text:
        return text or ""

    out: List[str] = []
    pos: int = 0

    while True:
        match = _IIF_CALL_RE.search(text, pos)
        if match is None:
            out.append(text[pos:])
            break

        parsed = _split_call_arguments(text, match.end())
        if parsed is None or len(parsed[0]) != 3:
            out.append(text[pos:match.end()])
            pos = match.end()
            continue

        args, end = parsed
        cond, then, otherwise = (transpile_iif(a.strip()) for a in args)
        out.append(text[pos:match.start()])
        out.append(f"CASE WHEN {cond} THEN {then} ELSE {otherwise} END")
        pos = end

    return "".join(out)


# ---------------------------------------------------------------------------
# Column references
# ---------------------------------------------------------------------------


def _column_ref(table: str, column: str, use_quotes: bool) -> str:
    return f"{escape_id(table, use_quotes)}.{escape_id(column, use_quotes)}"


def _wrap_aggregate(aggregation: str, ref: str, data_type: str) -> str:
    if aggregation == GroupByType.SUM and is_boolean_type(data_type):
        return f"SUM({ref}::int)"
    return f"{aggregation}({ref})"


def _projected_expression(
    field: SelectField, schema: SchemaDefinition, use_quotes: bool
) -> str:
    """Column reference, aggregate call or custom expression for a select field."""
    ref: str = _column_ref(field.table, field.column, use_quotes)
    if not field.aggregation:
        return ref
    if field.aggregation == GroupByType.EXPRESSION:
        return transpile_iif(field.expression) if field.expression else ref
    return _wrap_aggregate(
        field.aggregation, ref, schema.get_data_type(field.table, field.column)
    )


# ---------------------------------------------------------------------------
# Conditions (WHERE / HAVING)
# ---------------------------------------------------------------------------


def build_condition(
    clause: WhereClause, schema: SchemaDefinition, use_quotes: bool = False
) -> str:
    """Render one predicate."""
    data_type: str = schema.get_data_type(clause.table, clause.column)

    if clause.expression:
        identifier: str = transpile_iif(clause.expression)
    else:
        identifier = _column_ref(clause.table, clause.column, use_quotes)
        if clause.aggregation and clause.aggregation != GroupByType.EXPRESSION:
            identifier = _wrap_aggregate(clause.aggregation, identifier, data_type)

    operator: str = clause.operator
    value: str = clause.value or ""

    if operator == Operator.SQL:
        return f"{identifier} {transpile_iif(value)}"

    if operator in UNARY_OPERATORS:
        return f"{identifier} {operator}"

    value_type: str = get_effective_type_for_aggregation(data_type, clause.aggregation)

    if operator in (Operator.LIKE, Operator.NOT_LIKE):
        return f"{identifier} {operator} {quote_literal(f'%{value}%')}"

    if operator == Operator.IN:
        return f"{identifier} IN {_escape_in_list(value, value_type)}"

    return f"{identifier} {operator} {escape_value(value, value_type)}"


def build_condition_string(
    groups: Sequence[Sequence[WhereClause]],
    schema: SchemaDefinition,
    use_quotes: bool = False,
    bare_single_group: bool = False,
) -> str:
    """
    ``(a AND b)`` per group, groups joined with ``OR``.  Empty groups vanish.

    With ``bare_single_group`` a lone group renders without parentheses
    (``a AND b``), as HAVING does.
    """
    conjunctions: List[str] = [
        " AND ".join(build_condition(c, schema, use_quotes) for c in group)
        for group in groups
        if group
    ]
    if bare_single_group and len(conjunctions) == 1:
        return conjunctions[0]
    return "\n  OR ".join(f"({c})" for c in conjunctions)


# ---------------------------------------------------------------------------
# Clause builders
# ---------------------------------------------------------------------------


def _render_select(
    query_def: QueryDefinition, schema: SchemaDefinition, use_quotes: bool
) -> str:
    if not query_def.select:
        return f"{escape_id(query_def.from_table, use_quotes)}.*"

    parts: List[str] = []
    for field in query_def.select:
        expr: str = _projected_expression(field, schema, use_quotes)
        if field.alias:
            expr = f"{expr} AS {escape_id(field.alias, use_quotes)}"
        parts.append(expr)
    return ",\n  ".join(parts)


def render_join(join: JoinClause, use_quotes: bool = False) -> str:
    """``<TYPE> t2 ON t1.c1 = t2.c2``."""
    return (
        f"{join.type} {escape_id(join.table2, use_quotes)} ON "
        f"{_column_ref(join.table1, join.column1, use_quotes)} = "
        f"{_column_ref(join.table2, join.column2, use_quotes)}"
    )


def _render_group_by(entries: Sequence[str], use_quotes: bool) -> str:
    rendered: List[str] = []
    for entry in entries:
        match = _COLUMN_REF_RE.match(entry)
        if match:
            rendered.append(_column_ref(match.group(1), match.group(2), use_quotes))
        else:
            rendered.append(transpile_iif(entry))
    return ", ".join(rendered)


def _render_order_by(
    query_def: QueryDefinition, schema: SchemaDefinition, use_quotes: bool
) -> str:
    """Sort keys re-use the aggregation of the matching select field."""
    keys: List[str] = []
    for order in query_def.order_by or []:
        selected: Optional[SelectField] = next(
            (
                s
                for s in query_def.select
                if s.table == order.table and s.column == order.column
            ),
            None,
        )
        if selected is not None:
            ref: str = _projected_expression(selected, schema, use_quotes)
        else:
            ref = _column_ref(order.table, order.column, use_quotes)
        keys.append(f"{ref} {order.direction}")
    return ", ".join(keys)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def build_select_query(
    query_def: QueryDefinition,
    schema: SchemaDefinition,
    use_quotes: bool = False,
) -> str:
    """
    Render ``query_def`` as a single SELECT statement ending in ``;``.

    Raises:
        QueryBuildError: ``from`` is empty or not a schema table.
    """
    if not query_def.from_table:
        raise QueryBuildError("Query definition must have a 'from' table specified.")
    if not schema.has_table(query_def.from_table):
        raise QueryBuildError(f"Main table '{query_def.from_table}' not found in schema.")

    sql: str = "SELECT\n  " + _render_select(query_def, schema, use_quotes)
    sql += f"\nFROM {escape_id(query_def.from_table, use_quotes)}"

    for join in query_def.joins:
        sql += "\n" + render_join(join, use_quotes)

    where: str = build_condition_string(query_def.where_groups, schema, use_quotes)
    if where:
        sql += "\nWHERE " + where

    if query_def.group_by:
        sql += "\nGROUP BY " + _render_group_by(query_def.group_by, use_quotes)

    having: str = build_condition_string(
        query_def.having_groups or [], schema, use_quotes, bare_single_group=True
    )
    if having:
        sql += "\nHAVING " + having

    if query_def.order_by:
        sql += "\nORDER BY " + _render_order_by(query_def, schema, use_quotes)

    if query_def.limit is not None:
        sql += f"\nLIMIT {query_def.limit}"

    logger.debug(
        "Rendered SELECT from '%s' (%d chars).", query_def.from_table, len(sql) + 1
    )
    return sql + ";"


def append_warnings(sql: str, warnings: Sequence[str]) -> str:
    """Attach join-path warnings as a trailing block comment."""
    if not warnings:
        return sql
    return sql + "\n\n/*\nWARNINGS:\n" + "\n".join(warnings) + "\n*/"


__all__: List[str] = [
    "QueryBuildError",
    "append_warnings",
    "build_condition",
    "build_condition_string",
    "build_select_query",
    "escape_id",
    "escape_value",
    "quote_literal",
    "render_join",
    "transpile_iif",
]
