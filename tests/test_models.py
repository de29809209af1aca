"""
tests/test_models.py
Unit tests for sqlconstructor.models and sqlconstructor.utils.

Tests cover:
- Lenient schema document parsing (bool nullability, extra keys, string PKs)
- SchemaDefinition lookups and the "text" type fallback
- JoinClause orientation helpers
- UIField defaults, filter padding and sort normalisation
- Wire-format round-trips through model_dump(by_alias=True)
- Data-type predicates, operator tables and name casing
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

import pytest
from pydantic import ValidationError

from sqlconstructor.models import (
    FILTER_SLOTS,
    BuilderConfig,
    ColumnSchema,
    JoinClause,
    JoinType,
    QueryState,
    SavedQuery,
    SchemaDefinition,
    TableSchema,
    UIField,
    flip_join_type,
    new_id,
)
from sqlconstructor.utils import (
    format_data_type,
    get_aggregation_options,
    get_effective_type_for_aggregation,
    get_operators,
    is_aggregate_expression,
    is_array_type,
    is_numeric_type,
    is_temporal_type,
    to_camel_case,
    to_pascal_case,
)


# ===========================================================================
# Schema models
# ===========================================================================


class TestSchemaModels:
    """Tests for ColumnSchema / TableSchema / SchemaDefinition."""

    def test_bool_nullability_is_normalised(self) -> None:
        col = ColumnSchema(column_name="a", data_type="integer", is_nullable=False)
        assert col.is_nullable == "NO"
        assert not col.nullable

    def test_lowercase_nullability_is_normalised(self) -> None:
        col = ColumnSchema(column_name="a", is_nullable="yes")
        assert col.nullable
        assert col.data_type == "text"

    def test_numeric_default_becomes_text(self) -> None:
        col = ColumnSchema(column_name="a", default=0)
        assert col.default == "0"

    def test_extra_document_keys_are_ignored(self) -> None:
        table = TableSchema.model_validate(
            {"table_name": "t", "columns": [], "comment": "imported", "size": 12}
        )
        assert table.table_name == "t"

    def test_string_primary_key_becomes_list(self) -> None:
        table = TableSchema(table_name="t", primary_key="id")
        assert table.primary_key == ["id"]

    def test_fk_list_is_empty_when_null(self) -> None:
        table = TableSchema(table_name="t", foreign_keys=None)
        assert table.fk_list == []

    def test_schema_lookup(self, pm_schema: SchemaDefinition) -> None:
        assert pm_schema.has_table("tasks")
        assert pm_schema.get_table("nope") is None
        assert pm_schema.get_column("users", "email").data_type == "character varying"
        assert pm_schema.get_data_type("projects", "start_date") == "date"

    def test_unknown_column_type_falls_back_to_text(self, pm_schema: SchemaDefinition) -> None:
        assert pm_schema.get_data_type("users", "missing") == "text"
        assert pm_schema.get_data_type("missing", "missing") == "text"

    def test_table_names_and_count(self, pm_schema: SchemaDefinition) -> None:
        assert pm_schema.table_names == [
            "users", "roles", "user_roles", "departments", "projects", "tasks",
        ]
        assert pm_schema.table_count == 6
        assert len(pm_schema) == 6

    def test_first_duplicate_table_wins(self) -> None:
        schema = SchemaDefinition.from_tables(
            [
                {"table_name": "t", "columns": [{"column_name": "first"}]},
                {"table_name": "t", "columns": [{"column_name": "second"}]},
            ]
        )
        assert schema.get_table("t").column_names == ["first"]

    def test_blank_table_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TableSchema(table_name="")


# ===========================================================================
# Joins
# ===========================================================================


class TestJoinClause:
    """Tests for JoinClause orientation helpers."""

    def test_flip_join_type(self) -> None:
        assert flip_join_type("LEFT JOIN") == "RIGHT JOIN"
        assert flip_join_type("RIGHT JOIN") == "LEFT JOIN"
        assert flip_join_type("INNER JOIN") == "INNER JOIN"
        assert flip_join_type("FULL JOIN") == "FULL JOIN"

    def test_default_type_is_plain_string(self) -> None:
        join = JoinClause(table1="a", column1="x", table2="b", column2="y")
        assert join.type == "INNER JOIN"
        assert f"{join.type}" == "INNER JOIN"

    def test_enum_member_is_stored_as_value(self) -> None:
        join = JoinClause(type=JoinType.LEFT, table1="a", column1="x", table2="b", column2="y")
        assert join.type == "LEFT JOIN"

    def test_unknown_join_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JoinClause(type="CROSS JOIN", table1="a", column1="x", table2="b", column2="y")

    def test_swapped_flips_sides_and_type(self) -> None:
        join = JoinClause(
            id="j1", type="LEFT JOIN", table1="a", column1="x", table2="b", column2="y"
        )
        swapped = join.swapped()
        assert (swapped.table1, swapped.column1) == ("b", "y")
        assert (swapped.table2, swapped.column2) == ("a", "x")
        assert swapped.type == "RIGHT JOIN"
        assert swapped.id == "j1"

    def test_pair_and_connects_ignore_orientation(self) -> None:
        join = JoinClause(table1="a", column1="x", table2="b", column2="y")
        assert join.pair == join.swapped().pair
        assert join.connects("b", "a")
        assert not join.connects("a", "c")

    def test_is_auto_wire_alias(self) -> None:
        join = JoinClause.model_validate(
            {"table1": "a", "column1": "x", "table2": "b", "column2": "y", "isAuto": True}
        )
        assert join.is_auto
        assert join.model_dump(by_alias=True)["isAuto"] is True


# ===========================================================================
# Field state
# ===========================================================================


class TestUIField:
    """Tests for UIField defaults and normalisation."""

    def test_defaults(self) -> None:
        field = UIField(table="users", column="email")
        assert field.group_by_type == "Group By"
        assert field.is_visible
        assert len(field.filters) == FILTER_SLOTS
        assert not any(s.is_active for s in field.filters)
        assert field.sort_dir == ""
        assert not field.has_having

    def test_short_filter_list_is_padded(self) -> None:
        field = UIField.model_validate(
            {"table": "t", "column": "c", "filters": [{"op": "=", "val": "1"}]}
        )
        assert len(field.filters) == FILTER_SLOTS
        assert field.filters[0].op == "="

    def test_null_filter_values_become_empty(self) -> None:
        field = UIField.model_validate(
            {"table": "t", "column": "c", "filters": [{"op": None, "val": None}]}
        )
        assert field.filters[0].op == ""
        assert field.filters[0].val == ""

    def test_numeric_filter_value_becomes_text(self) -> None:
        field = UIField.model_validate(
            {"table": "t", "column": "c", "filters": [{"op": ">", "val": 5}]}
        )
        assert field.filters[0].val == "5"

    def test_sort_dir_normalised(self) -> None:
        assert UIField(table="t", column="c", sort_dir="desc").sort_dir == "DESC"

    def test_invalid_sort_dir_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UIField(table="t", column="c", sort_dir="UP")

    def test_role_predicates(self, make_field: Callable[..., UIField]) -> None:
        assert make_field("t", "c", group_by_type="SUM").is_aggregated
        assert make_field("t", "c", group_by_type="Expression").is_expression
        assert make_field("t", "c").is_grouped
        assert make_field("t", "c", having=(">", "1")).has_having

    def test_extra_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UIField.model_validate({"table": "t", "column": "c", "colour": "red"})


# ===========================================================================
# Persistence snapshots
# ===========================================================================


class TestSnapshots:
    """Tests for QueryState / SavedQuery wire round-trips."""

    def test_saved_query_round_trip(self, scenario_query_dict: Dict[str, Any]) -> None:
        saved = SavedQuery.model_validate(scenario_query_dict)
        assert saved.state.from_table == "users"
        assert saved.schema_name == "Project Management (Default)"

        again = SavedQuery.model_validate(saved.model_dump(by_alias=True))
        assert again == saved

    def test_wire_names(self) -> None:
        dumped = QueryState(from_table="users").model_dump(by_alias=True)
        assert set(dumped) == {
            "from", "joins", "fields", "isGroupByActive", "filterGroupCount",
        }

    def test_filter_group_count_clamped(self) -> None:
        assert QueryState(filter_group_count=9).filter_group_count == 3
        assert QueryState(filter_group_count=0).filter_group_count == 1

    def test_null_group_by_flag(self) -> None:
        assert QueryState.model_validate({"isGroupByActive": None}).is_group_by_active is False

    def test_builder_config_bounds(self) -> None:
        assert BuilderConfig().error_banner_seconds == 3.0
        with pytest.raises(ValidationError):
            BuilderConfig(filter_group_count=4)

    def test_new_id_is_unique(self) -> None:
        ids: List[str] = [new_id() for _ in range(200)]
        assert len(set(ids)) == len(ids)


# ===========================================================================
# utils
# ===========================================================================


class TestTypeHelpers:
    """Tests for data-type predicates and option tables."""

    @pytest.mark.parametrize("data_type", ["integer", "BIGINT", "double precision", "money"])
    def test_numeric_types(self, data_type: str) -> None:
        assert is_numeric_type(data_type)

    def test_non_numeric_types(self) -> None:
        assert not is_numeric_type("character varying")
        assert not is_numeric_type(None)

    def test_temporal_types(self) -> None:
        assert is_temporal_type("date")
        assert is_temporal_type("timestamp without time zone")
        assert not is_temporal_type("time")

    def test_array_types(self) -> None:
        assert is_array_type("text[]")
        assert is_array_type("ARRAY")
        assert not is_array_type("text")

    def test_operator_table_brackets(self) -> None:
        for data_type in (None, "integer", "boolean", "text", "text[]"):
            ops = get_operators(data_type)
            assert ops[0] == ""
            assert ops[-1] == "SQL"

    def test_like_only_for_text(self) -> None:
        assert "LIKE" in get_operators("character varying")
        assert "LIKE" not in get_operators("integer")
        assert "LIKE" not in get_operators("date")

    def test_aggregation_options(self) -> None:
        assert "AVG" in get_aggregation_options("integer")
        assert "SUM" in get_aggregation_options("boolean")
        assert "AVG" not in get_aggregation_options("boolean")
        assert "SUM" not in get_aggregation_options("text")

    def test_effective_aggregation_type(self) -> None:
        assert get_effective_type_for_aggregation("text", "COUNT") == "bigint"
        assert get_effective_type_for_aggregation("integer", "AVG") == "decimal"
        assert get_effective_type_for_aggregation("date", "MAX") == "date"
        assert get_effective_type_for_aggregation("date", None) == "date"

    def test_aggregate_expression_heuristic(self) -> None:
        assert is_aggregate_expression("count(*)")
        assert is_aggregate_expression("  SUM (x)")
        assert not is_aggregate_expression("UPPER(name)")

    def test_format_data_type(self) -> None:
        assert format_data_type("timestamp with time zone") == "date"
        assert format_data_type("character varying") == "text"
        assert format_data_type(None) == "unknown"


class TestCasing:
    """Tests for identifier casing helpers."""

    def test_camel_case(self) -> None:
        assert to_camel_case("first_name") == "firstName"
        assert to_camel_case("created-at") == "createdAt"
        assert to_camel_case("userID") == "userID"
        assert to_camel_case("") == ""

    def test_pascal_case(self) -> None:
        assert to_pascal_case("user_roles") == "UserRoles"
        assert to_pascal_case("tasks") == "Tasks"
