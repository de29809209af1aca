"""
tests/test_validators.py
Comprehensive unit tests for sqlconstructor.validators.

Tests cover:
- ValidationResult bookkeeping and reporting
- Orphaned-table detection
- HAVING without a grouped field
- ORDER BY targets in grouping mode
- Advisory field reference / operator warnings
- Schema sanity checks for imported documents
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List

from sqlconstructor.models import JoinClause, SchemaDefinition, UIField
from sqlconstructor.validators import (
    HAVING_WITHOUT_GROUP_BY,
    INVALID_ORDER_BY,
    ORPHANED_TABLES,
    ValidationError,
    ValidationResult,
    validate_column_names,
    validate_field_operators,
    validate_field_references,
    validate_foreign_keys,
    validate_having_requires_group_by,
    validate_order_by_targets,
    validate_orphaned_tables,
    validate_primary_keys,
    validate_query,
    validate_schema,
    validate_table_names,
)


# ===========================================================================
# ValidationResult
# ===========================================================================


class TestValidationResult:
    """Tests for the ValidationResult container."""

    def test_empty_result_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result)
        assert len(result) == 0

    def test_error_makes_invalid(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "boom")
        assert not result.is_valid
        assert result.error_count == 1

    def test_warning_keeps_valid(self) -> None:
        result = ValidationResult()
        result.add_warning("W1", "careful")
        assert result.is_valid
        assert result.has_warnings

    def test_merge(self) -> None:
        a = ValidationResult()
        a.add_error("E1", "one")
        b = ValidationResult()
        b.add_warning("W1", "two")
        a.merge(b)
        assert a.error_count == 1
        assert a.warning_count == 1

    def test_first_error_by_code(self) -> None:
        result = ValidationResult()
        result.add_warning("X", "not an error")
        result.add_error("A", "first")
        result.add_error("B", "second")
        assert result.first_error().code == "A"
        assert result.first_error("B").message == "second"
        assert result.first_error("X") is None

    def test_report_mentions_codes(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "boom", {"table": "t"})
        report = result.format_report()
        assert "E1" in report
        assert "boom" in report

    def test_error_to_dict(self) -> None:
        err = ValidationError("error", "E1", "boom", {"k": 1})
        assert err.is_error
        assert err.to_dict() == {"level": "error", "code": "E1", "message": "boom", "context": {"k": 1}}


# ===========================================================================
# Query-state validators
# ===========================================================================


class TestOrphanedTables:
    def test_orphans_reported_sorted(self, make_field: Callable[..., UIField]) -> None:
        fields = [make_field("users", "email"), make_field("zeta", "x"), make_field("alpha", "x")]
        result = validate_orphaned_tables("users", [], fields)
        err = result.first_error(ORPHANED_TABLES)
        assert err is not None
        assert err.message == (
            "Table(s) not joined: alpha, zeta. Add a manual link to include them in the query."
        )
        assert err.context["tables"] == ["alpha", "zeta"]

    def test_joined_tables_are_not_orphans(self, make_field: Callable[..., UIField]) -> None:
        join = JoinClause(table1="users", column1="user_id", table2="tasks", column2="assigned_to")
        fields = [make_field("users", "email"), make_field("tasks", "task_name")]
        assert validate_orphaned_tables("users", [join], fields).is_valid


class TestHavingRequiresGroupBy:
    def test_error_when_no_grouped_field(self, make_field: Callable[..., UIField]) -> None:
        fields = [make_field("tasks", "status", group_by_type="COUNT", having=(">", "5"))]
        err = validate_having_requires_group_by(fields, True).first_error(HAVING_WITHOUT_GROUP_BY)
        assert err is not None
        assert err.message.startswith("HAVING requires at least one field to be grouped")

    def test_ok_with_grouped_field(self, make_field: Callable[..., UIField]) -> None:
        fields = [
            make_field("tasks", "status", group_by_type="COUNT", having=(">", "5")),
            make_field("tasks", "project_id"),
        ]
        assert validate_having_requires_group_by(fields, True).is_valid

    def test_ignored_outside_grouping(self, make_field: Callable[..., UIField]) -> None:
        fields = [make_field("tasks", "status", group_by_type="COUNT", having=(">", "5"))]
        assert validate_having_requires_group_by(fields, False).is_valid


class TestOrderByTargets:
    def test_where_field_cannot_be_sorted(self, make_field: Callable[..., UIField]) -> None:
        fields = [
            make_field("tasks", "project_id"),
            make_field("tasks", "due_date", group_by_type="Where", sort_dir="ASC"),
            make_field("tasks", "status", group_by_type="Where", sort_dir="DESC"),
        ]
        result = validate_order_by_targets(fields, True)
        assert result.error_count == 1
        assert result.first_error(INVALID_ORDER_BY).message == (
            "Cannot sort by 'due_date' because it is neither grouped nor aggregated."
        )

    def test_grouped_aggregated_expression_ok(self, make_field: Callable[..., UIField]) -> None:
        fields = [
            make_field("tasks", "project_id", sort_dir="ASC"),
            make_field("tasks", "task_id", group_by_type="COUNT", sort_dir="DESC"),
            make_field("tasks", "status", group_by_type="Expression", expression="1", sort_dir="ASC"),
        ]
        assert validate_order_by_targets(fields, True).is_valid

    def test_ignored_outside_grouping(self, make_field: Callable[..., UIField]) -> None:
        fields = [make_field("tasks", "due_date", group_by_type="Where", sort_dir="ASC")]
        assert validate_order_by_targets(fields, False).is_valid


class TestAdvisoryChecks:
    def test_unknown_table_and_column(
        self, pm_schema: SchemaDefinition, make_field: Callable[..., UIField]
    ) -> None:
        fields = [make_field("ghost", "x"), make_field("users", "nope"), make_field("users", "email")]
        result = validate_field_references(fields, pm_schema)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["UNKNOWN_TABLE", "UNKNOWN_COLUMN"]

    def test_expression_field_needs_no_column(
        self, pm_schema: SchemaDefinition, make_field: Callable[..., UIField]
    ) -> None:
        fields = [make_field("users", "calc", group_by_type="Expression", expression="1 + 1")]
        assert not validate_field_references(fields, pm_schema).has_warnings

    def test_unusual_operator(self, pm_schema: SchemaDefinition, make_field: Callable[..., UIField]) -> None:
        fields = [make_field("tasks", "task_id", where=("LIKE", "1"))]
        result = validate_field_operators(fields, pm_schema)
        assert [w.code for w in result.warnings] == ["UNSUPPORTED_OPERATOR"]
        assert result.warnings[0].context["slot"] == 0

    def test_validate_query_runs_everything(
        self, pm_schema: SchemaDefinition, make_field: Callable[..., UIField]
    ) -> None:
        fields = [
            make_field("users", "email", group_by_type="COUNT", having=(">", "1"), sort_dir="ASC"),
            make_field("ghost", "x"),
        ]
        result = validate_query("users", [], fields, True, pm_schema)
        codes = {e.code for e in result.errors}
        assert codes == {ORPHANED_TABLES}
        assert "UNKNOWN_TABLE" in {w.code for w in result.warnings}

    def test_validate_query_without_schema_skips_advice(self, make_field: Callable[..., UIField]) -> None:
        result = validate_query("ghost", [], [make_field("ghost", "x")])
        assert result.is_valid
        assert not result.has_warnings


# ===========================================================================
# Schema validators
# ===========================================================================


class TestSchemaValidators:
    """Sanity checks for imported schemas."""

    def test_bundled_schema_is_clean(self, pm_schema: SchemaDefinition) -> None:
        result = validate_schema(pm_schema)
        assert result.is_valid
        assert not result.has_warnings

    def test_duplicate_table(self, default_tables: List[Dict[str, Any]]) -> None:
        schema = SchemaDefinition.from_tables(default_tables + [copy.deepcopy(default_tables[0])])
        result = validate_table_names(schema)
        assert [e.code for e in result.errors] == ["DUPLICATE_TABLE_NAME"]

    def test_duplicate_column(self) -> None:
        schema = SchemaDefinition.from_tables(
            [{"table_name": "t", "columns": [{"column_name": "a"}, {"column_name": "a"}],
              "primary_key": ["a"]}]
        )
        assert [e.code for e in validate_column_names(schema).errors] == ["DUPLICATE_COLUMN_NAME"]

    def test_missing_primary_key_is_warning(self) -> None:
        schema = SchemaDefinition.from_tables([{"table_name": "t", "columns": [{"column_name": "a"}]}])
        result = validate_primary_keys(schema)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["MISSING_PRIMARY_KEY"]

    def test_primary_key_column_missing(self) -> None:
        schema = SchemaDefinition.from_tables(
            [{"table_name": "t", "columns": [{"column_name": "a"}], "primary_key": ["id"]}]
        )
        assert [e.code for e in validate_primary_keys(schema).errors] == ["PK_COLUMN_MISSING"]

    def test_broken_foreign_keys(self) -> None:
        schema = SchemaDefinition.from_tables(
            [
                {"table_name": "a", "columns": [{"column_name": "id"}], "primary_key": ["id"]},
                {
                    "table_name": "b",
                    "columns": [{"column_name": "id"}, {"column_name": "a_id"}],
                    "primary_key": ["id"],
                    "foreign_keys": [
                        {"column": "missing", "ref_table": "a", "ref_column": "id"},
                        {"column": "a_id", "ref_table": "ghost", "ref_column": "id"},
                        {"column": "a_id", "ref_table": "a", "ref_column": "nope"},
                    ],
                },
            ]
        )
        codes = [e.code for e in validate_foreign_keys(schema).errors]
        assert codes == ["FK_COLUMN_MISSING", "FK_TARGET_TABLE_MISSING", "FK_TARGET_COLUMN_MISSING"]

    def test_empty_schema_info(self, empty_schema: SchemaDefinition) -> None:
        result = validate_schema(empty_schema)
        assert result.is_valid
        assert "EMPTY_SCHEMA" in result.format_report(include_info=True)
