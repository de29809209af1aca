# File: sqlconstructor/defaults.py
"""
SQL Constructor - Bundled Schemas
=================================
The "Project Management (Default)" schema shipped with every workspace::

    departments ← projects ← tasks → users ← user_roles → roles
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlconstructor.models import WorkspaceSchema

DEFAULT_SCHEMA_NAME: str = "Project Management (Default)"


def _col(
    name: str, data_type: str, nullable: bool = False, default: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "column_name": name,
        "data_type": data_type,
        "is_nullable": "YES" if nullable else "NO",
        "default": default,
    }


def _fk(column: str, ref_table: str, ref_column: str) -> Dict[str, str]:
    return {"column": column, "ref_table": ref_table, "ref_column": ref_column}


DEFAULT_TABLES: List[Dict[str, Any]] = [
    {
        "table_name": "users",
        "columns": [
            _col("user_id", "integer"),
            _col("first_name", "character varying"),
            _col("last_name", "character varying"),
            _col("email", "character varying"),
            _col("created_at", "timestamp", default="now()"),
        ],
        "primary_key": ["user_id"],
        "foreign_keys": None,
    },
    {
        "table_name": "roles",
        "columns": [
            _col("role_id", "integer"),
            _col("role_name", "character varying"),
        ],
        "primary_key": ["role_id"],
        "foreign_keys": None,
    },
    {
        "table_name": "user_roles",
        "columns": [
            _col("user_id", "integer"),
            _col("role_id", "integer"),
        ],
        "primary_key": ["user_id", "role_id"],
        "foreign_keys": [
            _fk("user_id", "users", "user_id"),
            _fk("role_id", "roles", "role_id"),
        ],
    },
    {
        "table_name": "departments",
        "columns": [
            _col("dept_id", "integer"),
            _col("dept_name", "character varying"),
        ],
        "primary_key": ["dept_id"],
        "foreign_keys": None,
    },
    {
        "table_name": "projects",
        "columns": [
            _col("project_id", "integer"),
            _col("project_name", "character varying"),
            _col("start_date", "date"),
            _col("end_date", "date", nullable=True),
            _col("dept_id", "integer"),
        ],
        "primary_key": ["project_id"],
        "foreign_keys": [_fk("dept_id", "departments", "dept_id")],
    },
    {
        "table_name": "tasks",
        "columns": [
            _col("task_id", "integer"),
            _col("project_id", "integer"),
            _col("assigned_to", "integer"),
            _col("task_name", "character varying"),
            _col("status", "character varying"),
            _col("due_date", "date"),
        ],
        "primary_key": ["task_id"],
        "foreign_keys": [
            _fk("project_id", "projects", "project_id"),
            _fk("assigned_to", "users", "user_id"),
        ],
    },
]


def default_schema() -> WorkspaceSchema:
    """A fresh copy of the bundled schema."""
    return WorkspaceSchema.model_validate(
        {"name": DEFAULT_SCHEMA_NAME, "tables": DEFAULT_TABLES}
    )


__all__: List[str] = ["DEFAULT_SCHEMA_NAME", "DEFAULT_TABLES", "default_schema"]
