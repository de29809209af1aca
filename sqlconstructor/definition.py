# File: sqlconstructor/definition.py
"""
SQL Constructor - Query Definition Builder
==========================================
Pure transform from the editing state (field list + joins + grouping
settings) into an abstract ``QueryDefinition``.

Nothing here looks at column types; type-driven decisions (escaping,
boolean SUM casts) belong to the SQL text generator.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, List, Optional, Sequence

from sqlconstructor.models import (
    FILTER_SLOTS,
    AGGREGATIONS,
    GroupByType,
    JoinClause,
    OrderByClause,
    QueryDefinition,
    SelectField,
    UIField,
    WhereClause,
)
from sqlconstructor.utils import is_aggregate_expression

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.definition")

_HAVING_TYPES: FrozenSet[str] = AGGREGATIONS | {GroupByType.EXPRESSION.value}


# ---------------------------------------------------------------------------
# Clause builders
# ---------------------------------------------------------------------------


def build_select_list(
    fields: Sequence[UIField], group_by_active: bool
) -> List[SelectField]:
    """Visible, non-``Where`` fields, aggregated only in grouping mode."""
    select: List[SelectField] = []
    for f in fields:
        if f.group_by_type == GroupByType.WHERE or not f.is_visible:
            continue
        aggregation: Optional[str] = None
        if group_by_active and f.group_by_type != GroupByType.GROUP_BY:
            aggregation = f.group_by_type or None
        select.append(
            SelectField(
                table=f.table,
                column=f.column,
                alias=f.alias or None,
                aggregation=aggregation,
                expression=f.expression,
            )
        )
    return select


def build_where_groups(
    fields: Sequence[UIField], group_by_active: bool, filter_group_count: int
) -> List[List[WhereClause]]:
    """
    One AND-group per filter slot, in slot order.

    Slots beyond ``filter_group_count`` are ignored even if they hold a
    filter; empty groups are dropped.
    """
    count: int = max(1, min(FILTER_SLOTS, filter_group_count))
    groups: List[List[WhereClause]] = []

    for index in range(count):
        clauses: List[WhereClause] = []
        for f in fields:
            if index >= len(f.filters):
                continue
            slot = f.filters[index]
            if not slot.op:
                continue
            clauses.append(
                WhereClause(
                    id=f"{f.id}-where-{index}",
                    table=f.table,
                    column=f.column,
                    operator=slot.op,
                    value=slot.val,
                    expression=(
                        f.expression
                        if group_by_active and f.is_expression
                        else None
                    ),
                )
            )
        if clauses:
            groups.append(clauses)

    return groups


def build_having_groups(
    fields: Sequence[UIField], group_by_active: bool
) -> List[List[WhereClause]]:
    """A single OR-group holding every aggregate / expression HAVING filter."""
    if not group_by_active:
        return []

    clauses: List[WhereClause] = []
    for f in fields:
        if f.group_by_type not in _HAVING_TYPES or not f.has_having:
            continue
        clauses.append(
            WhereClause(
                id=f"{f.id}-having",
                table=f.table,
                column=f.column,
                operator=f.having.op,
                value=f.having.val,
                aggregation=f.group_by_type,
                expression=f.expression if f.is_expression else None,
            )
        )
    return [clauses] if clauses else []


def build_group_by(fields: Sequence[UIField]) -> List[str]:
    """
    GROUP BY entries.

    Plain grouped fields contribute ``table.column``.  Expression fields
    contribute their text unless it starts with an aggregate call, which
    cannot appear in GROUP BY.
    """
    group_by: List[str] = []
    for f in fields:
        if f.is_grouped or not f.group_by_type:
            group_by.append(f"{f.table}.{f.column}")
        elif f.is_expression and f.expression:
            if not is_aggregate_expression(f.expression):
                group_by.append(f.expression)
    return group_by


def build_order_by(fields: Sequence[UIField]) -> List[OrderByClause]:
    return [
        OrderByClause(table=f.table, column=f.column, direction=f.sort_dir)
        for f in fields
        if f.sort_dir
    ]


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def build_query_definition(
    fields: Sequence[UIField],
    joins: Sequence[JoinClause],
    from_table: str,
    group_by_active: bool = False,
    filter_group_count: int = 1,
    limit: Optional[int] = None,
) -> QueryDefinition:
    """
    Assemble the abstract query for the current editing state.

    Args:
        fields: Field list, in display order.
        joins: Ordered join list from the reconciler.
        from_table: Root table.
        group_by_active: Grouping / aggregation mode.
        filter_group_count: Number of filter slots (1-3) rendered as
            OR-groups.
        limit: Optional row limit.

    Returns:
        A ``QueryDefinition``; ``group_by`` is ``None`` outside grouping
        mode.
    """
    query_def: QueryDefinition = QueryDefinition(
        from_table=from_table,
        joins=list(joins),
        select=build_select_list(fields, group_by_active),
        group_by=build_group_by(fields) if group_by_active else None,
        where_groups=build_where_groups(fields, group_by_active, filter_group_count),
        having_groups=build_having_groups(fields, group_by_active),
        order_by=build_order_by(fields),
        limit=limit,
    )

    logger.debug(
        "Query definition for '%s': %d select, %d where group(s), %d join(s).",
        from_table,
        len(query_def.select),
        len(query_def.where_groups),
        len(query_def.joins),
    )
    return query_def


__all__: List[str] = [
    "build_group_by",
    "build_having_groups",
    "build_order_by",
    "build_query_definition",
    "build_select_list",
    "build_where_groups",
]
