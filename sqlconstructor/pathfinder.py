# File: sqlconstructor/pathfinder.py
"""
SQL Constructor - Join Path Finder
==================================
Breadth-first search over the foreign-key graph.

The graph is directed (``orders.user_id → users.user_id``) but reachability
is undirected: a table can be reached through its own FKs (forward edges) or
through FKs pointing at it (reverse edges).  Direction only decides which
column ends up on which side of the produced ``JoinClause``.

Every produced join is oriented ``table1 = table we came from`` and
``table2 = table we reached``, typed ``INNER JOIN`` and marked ``is_auto``.

Tie-breaking is deterministic: the current table's own FKs are tried before
FKs pointing at it, both in schema declaration order.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional, Set, Tuple

from sqlconstructor.models import (
    ForeignKey,
    JoinClause,
    JoinType,
    SchemaDefinition,
    TableSchema,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.pathfinder")


def _forward_join(current: str, fk: ForeignKey) -> JoinClause:
    """``current`` owns the FK: ``current.fk.column = ref_table.ref_column``."""
    return JoinClause(
        type=JoinType.INNER,
        table1=current,
        column1=fk.column,
        table2=fk.ref_table,
        column2=fk.ref_column,
        is_auto=True,
    )


def _reverse_join(current: str, owner: str, fk: ForeignKey) -> JoinClause:
    """``owner`` holds an FK to ``current``: ``current.ref_column = owner.column``."""
    return JoinClause(
        type=JoinType.INNER,
        table1=current,
        column1=fk.ref_column,
        table2=owner,
        column2=fk.column,
        is_auto=True,
    )


def _first_fk_to(table: TableSchema, ref_table: str) -> Optional[ForeignKey]:
    for fk in table.fk_list:
        if fk.ref_table == ref_table:
            return fk
    return None


def _direct_join(
    current: TableSchema, target: str, schema: SchemaDefinition
) -> Optional[JoinClause]:
    """Single-hop edge from ``current`` to ``target``, forward first."""
    fk: Optional[ForeignKey] = _first_fk_to(current, target)
    if fk is not None:
        return _forward_join(current.table_name, fk)

    target_schema: Optional[TableSchema] = schema.get_table(target)
    if target_schema is not None:
        fk = _first_fk_to(target_schema, current.table_name)
        if fk is not None:
            return _reverse_join(current.table_name, target, fk)

    return None


def _neighbours(
    current: TableSchema, schema: SchemaDefinition
) -> Iterator[Tuple[str, JoinClause]]:
    """Yield ``(neighbour, join)`` pairs: own FKs first, then tables pointing here."""
    for fk in current.fk_list:
        yield fk.ref_table, _forward_join(current.table_name, fk)

    for other in schema.tables:
        if other.table_name == current.table_name:
            continue
        fk = _first_fk_to(other, current.table_name)
        if fk is not None:
            yield other.table_name, _reverse_join(
                current.table_name, other.table_name, fk
            )


def find_join_path(
    source_tables: Iterable[str],
    target: str,
    schema: SchemaDefinition,
) -> Optional[List[JoinClause]]:
    """
    Shortest chain of joins connecting ``target`` to any of ``source_tables``.

    Args:
        source_tables: Tables already present in the query.  The search
            starts from all of them at once.
        target: Table to reach.
        schema: The FK graph.

    Returns:
        ``[]`` when ``target`` is already a source, the list of joins in
        application order when a path exists, ``None`` otherwise.  A missing
        path is not an error at this level; callers decide how to report it.
    """
    sources: List[str] = [t for t in source_tables if t]
    if not target or not sources or not len(schema):
        return None

    if target in sources:
        return []

    queue: Deque[Tuple[str, List[JoinClause]]] = deque()
    visited: Set[str] = set()

    for table in sources:
        if table not in visited:
            visited.add(table)
            queue.append((table, []))

    while queue:
        current_name, path = queue.popleft()
        current: Optional[TableSchema] = schema.get_table(current_name)
        if current is None:
            continue

        direct: Optional[JoinClause] = _direct_join(current, target, schema)
        if direct is not None:
            logger.debug(
                "Path to '%s' found via '%s' in %d hop(s).",
                target,
                current_name,
                len(path) + 1,
            )
            return [*path, direct]

        for neighbour, join in _neighbours(current, schema):
            if neighbour in visited:
                continue
            visited.add(neighbour)
            if neighbour == target:
                return [*path, join]
            queue.append((neighbour, [*path, join]))

    logger.debug(
        "No FK path from %s to '%s' (%d table(s) explored).",
        sources,
        target,
        len(visited),
    )
    return None


__all__: List[str] = ["find_join_path"]
