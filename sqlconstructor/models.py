# File: sqlconstructor/models.py
"""
SQL Constructor - Core Data Models
==================================
Pydantic V2 models for the static schema description and for the query
editing state.  These models are the single source of truth for the whole
pipeline: Join Reconciliation → Validation → Query Definition → SQL Text.

Wire names follow the JSON documents produced by the schema importer and by
saved workspaces (``table_name``, ``isAuto``, ``groupByType``, ...).  Python
attributes are snake_case; ``model_dump(by_alias=True)`` gives the wire form
back, so every document round-trips without loss.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.models")

# Number of independent OR-group filter slots carried by every field.
FILTER_SLOTS: int = 3


def new_id() -> str:
    """Return a short identifier, unique within a session."""
    return uuid.uuid4().hex[:9]


# ---------------------------------------------------------------------------
# Enums: fixed sets used across the package
# ---------------------------------------------------------------------------


class JoinType(str, Enum):
    """SQL join kinds offered by the builder."""

    INNER = "INNER JOIN"
    LEFT = "LEFT JOIN"
    RIGHT = "RIGHT JOIN"
    FULL = "FULL JOIN"


def flip_join_type(join_type: str) -> str:
    """LEFT ↔ RIGHT; INNER and FULL are symmetric and stay as they are."""
    if join_type == JoinType.LEFT:
        return JoinType.RIGHT.value
    if join_type == JoinType.RIGHT:
        return JoinType.LEFT.value
    return JoinType(join_type).value


class Operator(str, Enum):
    """Filter / HAVING operators."""

    EQ = "="
    NE = "<>"
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IN = "IN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"
    SQL = "SQL"


class GroupByType(str, Enum):
    """Role of a field when grouping is active."""

    GROUP_BY = "Group By"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"
    EXPRESSION = "Expression"
    WHERE = "Where"


AGGREGATIONS: FrozenSet[str] = frozenset(
    {
        GroupByType.SUM.value,
        GroupByType.AVG.value,
        GroupByType.MIN.value,
        GroupByType.MAX.value,
        GroupByType.COUNT.value,
    }
)

UNARY_OPERATORS: FrozenSet[str] = frozenset(
    {Operator.IS_NULL.value, Operator.IS_NOT_NULL.value}
)


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

# Imported schema documents often carry extra keys (comments, sizes, ...).
_DOCUMENT_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="ignore",
)


def _as_text(value: Any) -> Any:
    """Coerce scalars to ``str`` (pydantic V2 no longer does it in lax mode)."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


# ---------------------------------------------------------------------------
# Schema Model
# ---------------------------------------------------------------------------


class ForeignKey(BaseModel):
    """Directed edge: this table's ``column`` references ``ref_table.ref_column``."""

    model_config = _DOCUMENT_CONFIG

    column: str = Field(..., min_length=1, description="Local column name.")
    ref_table: str = Field(..., min_length=1, description="Referenced table.")
    ref_column: str = Field(..., min_length=1, description="Referenced column.")

    def __repr__(self) -> str:
        return f"<FK {self.column} → {self.ref_table}.{self.ref_column}>"


class ColumnSchema(BaseModel):
    """A single column of a table."""

    model_config = _DOCUMENT_CONFIG

    column_name: str = Field(..., min_length=1, description="Column name.")
    data_type: str = Field(
        default="text",
        description="Semantic type name, e.g. 'integer' or 'character varying'.",
    )
    is_nullable: Literal["YES", "NO"] = Field(
        default="YES", description="Nullability flag as reported by the catalog."
    )
    default: Optional[str] = Field(default=None, description="Column default.")

    @field_validator("is_nullable", mode="before")
    @classmethod
    def _normalise_nullable(cls, v: Any) -> Any:
        if isinstance(v, bool):
            return "YES" if v else "NO"
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("default", mode="before")
    @classmethod
    def _default_as_text(cls, v: Any) -> Any:
        return _as_text(v)

    @property
    def nullable(self) -> bool:
        return self.is_nullable == "YES"

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Column {self.column_name} {self.data_type}{null_flag}>"


class TableSchema(BaseModel):
    """Static structure of one table.  Immutable once loaded."""

    model_config = _DOCUMENT_CONFIG

    table_name: str = Field(..., min_length=1, description="Table name.")
    columns: List[ColumnSchema] = Field(default_factory=list)
    primary_key: List[str] = Field(default_factory=list)
    foreign_keys: Optional[List[ForeignKey]] = Field(default=None)

    @field_validator("primary_key", mode="before")
    @classmethod
    def _primary_key_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @property
    def fk_list(self) -> List[ForeignKey]:
        return self.foreign_keys or []

    @property
    def column_names(self) -> List[str]:
        return [c.column_name for c in self.columns]

    def get_column(self, name: str) -> Optional[ColumnSchema]:
        for col in self.columns:
            if col.column_name == name:
                return col
        return None

    def __repr__(self) -> str:
        return (
            f"<Table {self.table_name} "
            f"({len(self.columns)} cols, {len(self.fk_list)} FKs)>"
        )


class SchemaDefinition(BaseModel):
    """
    The whole database schema owned by the active workspace.

    Invariant: ``get_table`` is an O(1) lookup cache built once from
    ``tables``.  When two tables share a name the first one wins, matching
    the order-based lookup used everywhere else.
    """

    model_config = _DOCUMENT_CONFIG

    tables: List[TableSchema] = Field(default_factory=list)

    _table_map: Dict[str, TableSchema] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        table_map: Dict[str, TableSchema] = {}
        for table in self.tables:
            table_map.setdefault(table.table_name, table)
        self._table_map = table_map

    @classmethod
    def from_tables(cls, tables: List[Any]) -> "SchemaDefinition":
        return cls.model_validate({"tables": tables})

    def get_table(self, name: str) -> Optional[TableSchema]:
        return self._table_map.get(name)

    def has_table(self, name: str) -> bool:
        return name in self._table_map

    def get_column(self, table: str, column: str) -> Optional[ColumnSchema]:
        table_schema: Optional[TableSchema] = self.get_table(table)
        return table_schema.get_column(column) if table_schema else None

    def get_data_type(self, table: str, column: str) -> str:
        """Declared type of ``table.column``; unknown columns read as ``text``."""
        col: Optional[ColumnSchema] = self.get_column(table, column)
        return col.data_type if col else "text"

    def get_columns(self, table: str) -> List[ColumnSchema]:
        table_schema: Optional[TableSchema] = self.get_table(table)
        return list(table_schema.columns) if table_schema else []

    @computed_field  # type: ignore[misc]
    @property
    def table_names(self) -> List[str]:
        return [t.table_name for t in self.tables]

    @computed_field  # type: ignore[misc]
    @property
    def table_count(self) -> int:
        return len(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def __repr__(self) -> str:
        return f"<SchemaDefinition {self.table_count} tables>"


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


class JoinClause(BaseModel):
    """
    One JOIN line.  ``table1`` is the side already defined in the query,
    ``table2`` the table being joined.

    ``is_auto`` joins are owned by the reconciler and regenerated on every
    recompute; manual joins belong to the user.
    """

    model_config = _SHARED_CONFIG

    id: str = Field(default_factory=new_id)
    type: JoinType = Field(default=JoinType.INNER.value)
    table1: str = Field(..., min_length=1)
    column1: str = Field(..., min_length=1)
    table2: str = Field(..., min_length=1)
    column2: str = Field(..., min_length=1)
    is_auto: bool = Field(default=False, alias="isAuto")

    @property
    def pair(self) -> FrozenSet[str]:
        """Unordered table pair, for orientation-independent comparisons."""
        return frozenset((self.table1, self.table2))

    def connects(self, table_a: str, table_b: str) -> bool:
        return (self.table1 == table_a and self.table2 == table_b) or (
            self.table1 == table_b and self.table2 == table_a
        )

    def swapped(self) -> "JoinClause":
        """Same join seen from the other side: tables, columns and LEFT/RIGHT flip."""
        return self.model_copy(
            update={
                "table1": self.table2,
                "column1": self.column2,
                "table2": self.table1,
                "column2": self.column1,
                "type": flip_join_type(self.type),
            }
        )

    def __repr__(self) -> str:
        auto: str = " auto" if self.is_auto else ""
        return (
            f"<Join {self.type} {self.table1}.{self.column1} = "
            f"{self.table2}.{self.column2}{auto}>"
        )


# ---------------------------------------------------------------------------
# UI field state
# ---------------------------------------------------------------------------


class FilterState(BaseModel):
    """One filter slot: operator (or empty) and raw user value."""

    model_config = _SHARED_CONFIG

    op: str = Field(default="")
    val: str = Field(default="")

    @field_validator("op", "val", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Any:
        if v is None:
            return ""
        return _as_text(v)

    @property
    def is_active(self) -> bool:
        return bool(self.op)


def _empty_filters() -> List[FilterState]:
    return [FilterState() for _ in range(FILTER_SLOTS)]


class UIField(BaseModel):
    """
    One selected column (or custom expression) on the canvas.

    The field at index 0 of a field list defines the FROM table.
    """

    model_config = _SHARED_CONFIG

    id: str = Field(default_factory=new_id)
    table: str = Field(..., min_length=1)
    column: str = Field(..., min_length=1)
    alias: str = Field(default="")
    is_visible: bool = Field(default=True, alias="isVisible")
    group_by_type: str = Field(default=GroupByType.GROUP_BY.value, alias="groupByType")
    expression: Optional[str] = Field(default=None)
    filters: List[FilterState] = Field(default_factory=_empty_filters)
    having: Optional[FilterState] = Field(default_factory=FilterState)
    sort_dir: str = Field(default="", alias="sortDir")

    @field_validator("alias", "group_by_type", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("filters", mode="after")
    @classmethod
    def _pad_filters(cls, v: List[FilterState]) -> List[FilterState]:
        if len(v) < FILTER_SLOTS:
            v = list(v) + [FilterState() for _ in range(FILTER_SLOTS - len(v))]
        return v

    @field_validator("sort_dir", mode="before")
    @classmethod
    def _normalise_sort(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in ("", "ASC", "DESC"):
                raise ValueError(f"sortDir must be '', 'ASC' or 'DESC', got {v!r}.")
        return v

    @property
    def is_aggregated(self) -> bool:
        return self.group_by_type in AGGREGATIONS

    @property
    def is_expression(self) -> bool:
        return self.group_by_type == GroupByType.EXPRESSION

    @property
    def is_grouped(self) -> bool:
        return self.group_by_type == GroupByType.GROUP_BY

    @property
    def has_having(self) -> bool:
        return self.having is not None and self.having.is_active

    def __repr__(self) -> str:
        return f"<Field {self.table}.{self.column} [{self.group_by_type}]>"


# ---------------------------------------------------------------------------
# Query definition (schema-independent, assembled just before rendering)
# ---------------------------------------------------------------------------


class WhereClause(BaseModel):
    """A single predicate in a WHERE or HAVING group."""

    model_config = _SHARED_CONFIG

    id: str = Field(default_factory=new_id)
    table: str
    column: str
    operator: str
    value: str = Field(default="")
    aggregation: Optional[str] = Field(default=None)
    expression: Optional[str] = Field(default=None)


class SelectField(BaseModel):
    """One projected column."""

    model_config = _SHARED_CONFIG

    table: str
    column: str
    alias: Optional[str] = Field(default=None)
    aggregation: Optional[str] = Field(default=None)
    expression: Optional[str] = Field(default=None)


class OrderByClause(BaseModel):
    """One sort key."""

    model_config = _SHARED_CONFIG

    table: str
    column: str
    direction: Literal["ASC", "DESC"] = Field(default="ASC")


class QueryDefinition(BaseModel):
    """Abstract query handed to the SQL text generator."""

    model_config = _SHARED_CONFIG

    from_table: str = Field(default="", alias="from")
    joins: List[JoinClause] = Field(default_factory=list)
    select: List[SelectField] = Field(default_factory=list)
    group_by: Optional[List[str]] = Field(default=None, alias="groupBy")
    where_groups: List[List[WhereClause]] = Field(
        default_factory=list, alias="whereGroups"
    )
    having_groups: Optional[List[List[WhereClause]]] = Field(
        default=None, alias="havingGroups"
    )
    order_by: Optional[List[OrderByClause]] = Field(default=None, alias="orderBy")
    limit: Optional[int] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Persistence snapshots
# ---------------------------------------------------------------------------


class QueryState(BaseModel):
    """Full serialisable snapshot of the query-editing state."""

    model_config = _SHARED_CONFIG

    from_table: str = Field(default="", alias="from")
    joins: List[JoinClause] = Field(default_factory=list)
    fields: List[UIField] = Field(default_factory=list)
    is_group_by_active: bool = Field(default=False, alias="isGroupByActive")
    filter_group_count: int = Field(default=1, alias="filterGroupCount")

    @field_validator("filter_group_count", mode="before")
    @classmethod
    def _clamp_group_count(cls, v: Any) -> Any:
        if not v:
            return 1
        if isinstance(v, int):
            return max(1, min(FILTER_SLOTS, v))
        return v

    @field_validator("is_group_by_active", mode="before")
    @classmethod
    def _falsy_group_by(cls, v: Any) -> Any:
        return False if v is None else v


class SavedQuery(BaseModel):
    """A named query snapshot bound to a workspace schema."""

    model_config = _SHARED_CONFIG

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    schema_name: str = Field(default="", alias="schemaName")
    state: QueryState = Field(default_factory=QueryState)
    last_modified: int = Field(default=0, alias="lastModified")


class WorkspaceSchema(BaseModel):
    """A named schema stored in the workspace."""

    model_config = _DOCUMENT_CONFIG

    name: str = Field(..., min_length=1)
    tables: List[TableSchema] = Field(default_factory=list)

    @property
    def schema_def(self) -> SchemaDefinition:
        return SchemaDefinition(tables=self.tables)


# ---------------------------------------------------------------------------
# Builder configuration
# ---------------------------------------------------------------------------


class BuilderConfig(BaseModel):
    """
    Settings that shape rendering but are not part of the field list.

    A single instance (together with a schema, fields and joins) is all
    ``recompute`` needs.
    """

    model_config = _SHARED_CONFIG

    use_quotes: bool = Field(
        default=False, description="Wrap identifiers in double quotes."
    )
    is_group_by_active: bool = Field(
        default=False, description="Grouping / aggregation mode."
    )
    filter_group_count: int = Field(
        default=1,
        ge=1,
        le=FILTER_SLOTS,
        description="Number of OR-groups rendered from the filter slots.",
    )
    error_banner_seconds: float = Field(
        default=3.0, ge=0.0, description="Lifetime of the orphan-table banner."
    )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "AGGREGATIONS",
    "FILTER_SLOTS",
    "UNARY_OPERATORS",
    "BuilderConfig",
    "ColumnSchema",
    "FilterState",
    "ForeignKey",
    "GroupByType",
    "JoinClause",
    "JoinType",
    "Operator",
    "OrderByClause",
    "QueryDefinition",
    "QueryState",
    "SavedQuery",
    "SchemaDefinition",
    "SelectField",
    "TableSchema",
    "UIField",
    "WhereClause",
    "WorkspaceSchema",
    "flip_join_type",
    "new_id",
]

logger.debug("sqlconstructor.models loaded, %d public symbols.", len(__all__))
