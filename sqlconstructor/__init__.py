# File: sqlconstructor/__init__.py
"""
SQL Constructor - Visual Query Construction Engine
==================================================

Builds SQL SELECT statements from a static schema and a list of selected
fields.  Joins between the tables in use are discovered through the
foreign-key graph, ordered so every JOIN only refers to tables already in
the query, and rendered together with filters, grouping, HAVING and sort
settings.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────┐
    │ QueryBuilder │────▶│   recompute   │────▶│  reconciler  │──▶ pathfinder
    │ (session.py) │     │ (generator.py)│     └──────────────┘
    └──────────────┘     └───────┬───────┘
                                 │
                    ┌────────────┼────────────┐
                    ▼            ▼            ▼
             ┌──────────┐ ┌────────────┐ ┌────────────┐
             │validators│ │ definition │ │ sqlbuilder │
             └──────────┘ └────────────┘ └────────────┘

Usage::

    from sqlconstructor import QueryBuilder, default_schema
    qb = QueryBuilder(default_schema().schema_def)
    qb.add_field("users", "email")
    qb.add_field("roles", "role_name")
    print(qb.sql)

Public API:
    - QueryBuilder           Stateful editing session
    - recompute              Pure pipeline entry point
    - find_join_path         FK graph search
    - reconcile_joins        Join discovery + ordering
    - build_query_definition Abstract query assembly
    - build_select_query     SQL text rendering
    - validate_query / validate_schema
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from sqlconstructor.models import (
    BuilderConfig,
    ColumnSchema,
    FilterState,
    ForeignKey,
    GroupByType,
    JoinClause,
    JoinType,
    Operator,
    OrderByClause,
    QueryDefinition,
    QueryState,
    SavedQuery,
    SchemaDefinition,
    SelectField,
    TableSchema,
    UIField,
    WhereClause,
    WorkspaceSchema,
)
from sqlconstructor.pathfinder import find_join_path
from sqlconstructor.reconciler import ReconcileResult, reconcile_joins
from sqlconstructor.definition import build_query_definition
from sqlconstructor.sqlbuilder import QueryBuildError, build_select_query
from sqlconstructor.validators import ValidationResult, validate_query, validate_schema
from sqlconstructor.generator import (
    RecomputeResult,
    load_query_file,
    load_schema_file,
    parse_schema_document,
    recompute,
    render_state,
)
from sqlconstructor.storage import JsonFileStore, MemoryStore, StateStore
from sqlconstructor.session import QueryBuilder
from sqlconstructor.workspace import Workspace
from sqlconstructor.exporters import generate_typescript_interfaces
from sqlconstructor.defaults import default_schema

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Models
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
    # Engine
    "QueryBuildError",
    "ReconcileResult",
    "RecomputeResult",
    "build_query_definition",
    "build_select_query",
    "find_join_path",
    "reconcile_joins",
    "recompute",
    "render_state",
    # Validation
    "ValidationResult",
    "validate_query",
    "validate_schema",
    # Loading & persistence
    "JsonFileStore",
    "MemoryStore",
    "StateStore",
    "load_query_file",
    "load_schema_file",
    "parse_schema_document",
    # Session & workspace
    "QueryBuilder",
    "Workspace",
    "default_schema",
    # Export
    "generate_typescript_interfaces",
]
