"""
tests/conftest.py
Shared fixtures for the sqlconstructor test suite.

No external mocking libraries are used; real file I/O is performed inside
temporary directories managed by pytest's tmp_path fixture, and time is
driven by a hand-advanced fake clock.
"""

from __future__ import annotations

import copy
import json
import pathlib
from typing import Any, Callable, Dict, List

import pytest
import yaml

from sqlconstructor.defaults import DEFAULT_TABLES
from sqlconstructor.models import FilterState, SchemaDefinition, UIField
from sqlconstructor.storage import MemoryStore


# ---------------------------------------------------------------------------
# Raw schema data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def default_tables() -> List[Dict[str, Any]]:
    """Deep copy of the bundled project-management tables."""
    return copy.deepcopy(DEFAULT_TABLES)


@pytest.fixture()
def shop_tables() -> List[Dict[str, Any]]:
    """
    A small shop schema with one column of every interesting type and an
    isolated ``audit_log`` table that no foreign key reaches.

        customers ← orders ← order_items → products
    """
    return [
        {
            "table_name": "customers",
            "columns": [
                {"column_name": "customer_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "name", "data_type": "character varying", "is_nullable": "NO"},
                {"column_name": "vip", "data_type": "boolean", "is_nullable": "NO"},
            ],
            "primary_key": ["customer_id"],
            "foreign_keys": None,
        },
        {
            "table_name": "orders",
            "columns": [
                {"column_name": "order_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "customer_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "total", "data_type": "numeric", "is_nullable": "YES"},
                {"column_name": "paid", "data_type": "boolean", "is_nullable": "NO"},
                {
                    "column_name": "created_at",
                    "data_type": "timestamp with time zone",
                    "is_nullable": "NO",
                },
                {"column_name": "note", "data_type": "text", "is_nullable": "YES"},
                {"column_name": "tags", "data_type": "text[]", "is_nullable": "YES"},
            ],
            "primary_key": ["order_id"],
            "foreign_keys": [
                {"column": "customer_id", "ref_table": "customers", "ref_column": "customer_id"}
            ],
        },
        {
            "table_name": "products",
            "columns": [
                {"column_name": "product_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "title", "data_type": "character varying", "is_nullable": "NO"},
                {"column_name": "price", "data_type": "numeric", "is_nullable": "NO"},
            ],
            "primary_key": ["product_id"],
        },
        {
            "table_name": "order_items",
            "columns": [
                {"column_name": "order_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "product_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "quantity", "data_type": "integer", "is_nullable": "NO"},
            ],
            "primary_key": ["order_id", "product_id"],
            "foreign_keys": [
                {"column": "order_id", "ref_table": "orders", "ref_column": "order_id"},
                {"column": "product_id", "ref_table": "products", "ref_column": "product_id"},
            ],
        },
        {
            "table_name": "audit_log",
            "columns": [
                {"column_name": "entry_id", "data_type": "integer", "is_nullable": "NO"},
                {"column_name": "order_ref", "data_type": "integer", "is_nullable": "YES"},
                {"column_name": "message", "data_type": "text", "is_nullable": "YES"},
            ],
            "primary_key": ["entry_id"],
            "foreign_keys": None,
        },
    ]


# ---------------------------------------------------------------------------
# Schema model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def pm_schema(default_tables: List[Dict[str, Any]]) -> SchemaDefinition:
    """The bundled project-management schema as a model."""
    return SchemaDefinition.from_tables(default_tables)


@pytest.fixture()
def shop_schema(shop_tables: List[Dict[str, Any]]) -> SchemaDefinition:
    return SchemaDefinition.from_tables(shop_tables)


@pytest.fixture()
def empty_schema() -> SchemaDefinition:
    return SchemaDefinition()


# ---------------------------------------------------------------------------
# Field factory
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_field() -> Callable[..., UIField]:
    """
    Build a ``UIField`` tersely.

    ``where`` sets the first filter slot, ``having`` the HAVING filter; both
    take an ``(op, val)`` tuple.  Any other keyword is passed through.
    """

    def _make(
        table: str,
        column: str,
        where: Any = None,
        having: Any = None,
        **kwargs: Any,
    ) -> UIField:
        data: Dict[str, Any] = {"table": table, "column": column, **kwargs}
        if where is not None:
            data["filters"] = [FilterState(op=where[0], val=where[1])]
        if having is not None:
            data["having"] = FilterState(op=having[0], val=having[1])
        return UIField(**data)

    return _make


# ---------------------------------------------------------------------------
# Time & storage
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now: float = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


# ---------------------------------------------------------------------------
# Files on disk
# ---------------------------------------------------------------------------


@pytest.fixture()
def shop_schema_json_path(
    shop_tables: List[Dict[str, Any]], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Shop schema written as an exported ``[{"schema": [...]}]`` document."""
    path = tmp_path / "shop.json"
    path.write_text(json.dumps([{"schema": shop_tables}], indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def shop_schema_yaml_path(
    shop_tables: List[Dict[str, Any]], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Shop schema written as YAML with a top-level ``schema`` key."""
    path = tmp_path / "shop.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump({"schema": shop_tables}, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def scenario_query_dict() -> Dict[str, Any]:
    """Saved query (wire format) joining users to roles in the bundled schema."""
    return {
        "id": "q1",
        "name": "Users and roles",
        "schemaName": "Project Management (Default)",
        "lastModified": 0,
        "state": {
            "from": "users",
            "joins": [],
            "fields": [
                {"id": "f1", "table": "users", "column": "user_id"},
                {"id": "f2", "table": "roles", "column": "role_name"},
            ],
            "isGroupByActive": False,
            "filterGroupCount": 1,
        },
    }


@pytest.fixture()
def scenario_query_path(
    scenario_query_dict: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    path = tmp_path / "query.json"
    path.write_text(json.dumps(scenario_query_dict), encoding="utf-8")
    return path
