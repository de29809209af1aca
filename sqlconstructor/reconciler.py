# File: sqlconstructor/reconciler.py
"""
SQL Constructor - Join Reconciler
=================================
Re-derives the complete, ordered JOIN list from the field list.

Workflow::

    1. Root table = fields[0].table (fallbacks when there are no fields).
    2. Grow the connectivity set from the root through manual joins.
    3. For each field table not yet connected, ask the path finder for a
       path from the connectivity set and plan the auto joins it returns.
    4. Pool manual + auto joins and order them so that every join's
       ``table1`` is already defined, reversing joins where needed.

The reconciler is stateless: the previous join list is an input (for manual
joins and for auto-join identity), the new list is the output.  Running it
again on its own output yields the same list, ids included.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlconstructor.models import JoinClause, SchemaDefinition, UIField
from sqlconstructor.pathfinder import find_join_path

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.reconciler")


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class ReconcileResult:
    """Output of ``reconcile_joins``."""

    root: str = ""
    joins: List[JoinClause] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    connected_tables: Set[str] = field(default_factory=set)
    orphaned_tables: List[str] = field(default_factory=list)


def join_hash(joins: Sequence[JoinClause]) -> str:
    """Stable fingerprint of an ordered join list (``table1-type-table2`` triples)."""
    return "|".join(f"{j.table1}-{j.type}-{j.table2}" for j in joins)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def determine_root(
    fields: Sequence[UIField], schema: SchemaDefinition, from_table: str = ""
) -> str:
    """
    The FROM table.

    ``fields[0].table`` when there are fields; otherwise the previous FROM
    table if the schema still has it; otherwise the first schema table.
    """
    if fields:
        return fields[0].table
    if from_table and schema.has_table(from_table):
        return from_table
    if schema.tables:
        return schema.tables[0].table_name
    return ""


def _field_tables(fields: Iterable[UIField]) -> List[str]:
    """Distinct field tables in first-appearance order."""
    seen: Set[str] = set()
    ordered: List[str] = []
    for f in fields:
        if f.table and f.table not in seen:
            seen.add(f.table)
            ordered.append(f.table)
    return ordered


def _expand_through(joins: Sequence[JoinClause], connected: Dict[str, None]) -> None:
    """
    Grow ``connected`` transitively, treating ``joins`` as undirected edges.

    ``connected`` is an insertion-ordered set (dict keys) so that the path
    finder sees its sources in a stable order.
    """
    changes: bool = True
    while changes:
        changes = False
        for j in joins:
            has1: bool = j.table1 in connected
            has2: bool = j.table2 in connected
            if has1 and not has2:
                connected[j.table2] = None
                changes = True
            elif has2 and not has1:
                connected[j.table1] = None
                changes = True


def _find_by_pair(joins: Sequence[JoinClause], join: JoinClause) -> Optional[JoinClause]:
    for candidate in joins:
        if candidate.connects(join.table1, join.table2):
            return candidate
    return None


def _preserve_identity(
    path_join: JoinClause, previous_auto: Sequence[JoinClause]
) -> JoinClause:
    """
    Reuse id and type of a previous auto join on the same table pair.

    The new path's orientation wins; when it is the opposite of the previous
    one, LEFT and RIGHT swap so the join keeps its meaning.
    """
    existing: Optional[JoinClause] = _find_by_pair(previous_auto, path_join)
    if existing is None:
        return path_join

    join_type: str = existing.type
    if existing.table1 == path_join.table2:
        join_type = existing.swapped().type

    return path_join.model_copy(
        update={"id": existing.id, "type": join_type, "is_auto": True}
    )


def order_joins(root: str, pool: Sequence[JoinClause]) -> List[JoinClause]:
    """
    Order (and reorient) joins so each one's ``table1`` is already defined.

    Joins touching only undefined tables wait for a later pass; joins with
    both sides defined close a cycle and are kept as-is.  Anything still
    unplaced when a pass makes no progress is appended unchanged rather
    than dropped.
    """
    remaining: List[JoinClause] = list(pool)
    ordered: List[JoinClause] = []
    defined: Set[str] = {root}

    while remaining:
        deferred: List[JoinClause] = []
        for j in remaining:
            has1: bool = j.table1 in defined
            has2: bool = j.table2 in defined
            if has1 and not has2:
                ordered.append(j)
                defined.add(j.table2)
            elif has2 and not has1:
                ordered.append(j.swapped())
                defined.add(j.table1)
            elif has1 and has2:
                ordered.append(j)
            else:
                deferred.append(j)

        if len(deferred) == len(remaining):
            logger.warning(
                "%d join(s) are not connected to '%s'; appending unordered.",
                len(deferred),
                root,
            )
            ordered.extend(deferred)
            break
        remaining = deferred

    return ordered


def find_orphaned_tables(
    root: str, joins: Sequence[JoinClause], fields: Sequence[UIField]
) -> List[str]:
    """Field tables (sorted) that are neither the root nor part of any join."""
    connected: Set[str] = {root} if root else set()
    for j in joins:
        connected.add(j.table1)
        connected.add(j.table2)
    return sorted(t for t in set(_field_tables(fields)) if t not in connected)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def reconcile_joins(
    schema: SchemaDefinition,
    fields: Sequence[UIField],
    joins: Sequence[JoinClause],
    from_table: str = "",
) -> ReconcileResult:
    """
    Re-derive the ordered join list for ``fields``.

    Args:
        schema: The FK graph.
        fields: Field list; ``fields[0]`` fixes the root.
        joins: Previous join list.  Manual joins are kept; auto joins are
            only used to carry ids and types over.
        from_table: Previous FROM table, used when ``fields`` is empty.

    Returns:
        A ``ReconcileResult``.  Unreachable tables produce an error string
        and show up in ``orphaned_tables``; nothing is raised.
    """
    root: str = determine_root(fields, schema, from_table)
    result: ReconcileResult = ReconcileResult(root=root)

    if not fields:
        result.connected_tables = {root} if root else set()
        return result

    manual: List[JoinClause] = [j for j in joins if not j.is_auto]
    previous_auto: List[JoinClause] = [j for j in joins if j.is_auto]
    planned: List[JoinClause] = []

    connected: Dict[str, None] = {root: None}
    _expand_through(manual, connected)

    for target in _field_tables(fields):
        if target in connected:
            continue

        path: Optional[List[JoinClause]] = find_join_path(
            list(connected), target, schema
        )
        if path is None:
            logger.info("No relationship reaches table '%s'.", target)
            result.errors.append(
                f"Could not join table '{target}': No relationship found."
            )
            continue

        for path_join in path:
            covered_by_manual: bool = _find_by_pair(manual, path_join) is not None
            if not covered_by_manual and _find_by_pair(planned, path_join) is None:
                planned.append(_preserve_identity(path_join, previous_auto))
            connected[path_join.table1] = None
            connected[path_join.table2] = None

    result.joins = order_joins(root, [*manual, *planned])
    result.orphaned_tables = find_orphaned_tables(root, result.joins, fields)

    defined: Set[str] = {root}
    for j in result.joins:
        defined.add(j.table1)
        defined.add(j.table2)
    result.connected_tables = defined

    logger.debug(
        "Reconciled %d join(s) (%d manual, %d auto) from root '%s'.",
        len(result.joins),
        len(manual),
        len(planned),
        root,
    )
    return result


__all__: List[str] = [
    "ReconcileResult",
    "determine_root",
    "find_orphaned_tables",
    "join_hash",
    "order_joins",
    "reconcile_joins",
]
