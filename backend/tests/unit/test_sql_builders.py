"""
Unit Tests for the SQL builders used by the database tools

Validates identifier quoting and parameter binding for tables and columns
that are discovered at runtime.
"""

import pytest

from cloudguard.utils.logging_security import (
    create_audit_log_entry,
    redact_database_url,
    sanitize_error_message_for_log,
    sanitize_for_log,
)
from cloudguard.utils.mutation_builders import InsertBuilder
from cloudguard.utils.query_builder import QueryBuilder, quote_identifier


@pytest.mark.unit
class TestQuoteIdentifier:
    """Test identifier validation"""

    def test_plain_and_qualified(self) -> None:
        """Each dotted part is quoted"""
        assert quote_identifier("resources") == '"resources"'
        assert quote_identifier("public.cost_history") == '"public"."cost_history"'

    @pytest.mark.parametrize("name", ["resources; DROP TABLE users", 'a"b', "1table", ""])
    def test_rejects_unsafe_names(self, name) -> None:
        """Anything but a plain identifier is refused"""
        with pytest.raises(ValueError):
            quote_identifier(name)


@pytest.mark.unit
class TestQueryBuilder:
    """Test SELECT construction"""

    def test_simple_select(self) -> None:
        """Test basic SELECT * query"""
        query, params = QueryBuilder('"resources"').build()

        assert query == 'SELECT * FROM "resources"'
        assert params == {}

    def test_where_and_order(self) -> None:
        """Conditions are ANDed and values bound by name"""
        query, params = (
            QueryBuilder("information_schema.columns")
            .select("column_name", "data_type")
            .where("table_schema = :schema", "public", "schema")
            .where("table_name = :table", "alerts", "table")
            .order_by("ordinal_position")
            .build()
        )

        assert query == (
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = :schema AND table_name = :table ORDER BY ordinal_position ASC"
        )
        assert params == {"schema": "public", "table": "alerts"}

    def test_generated_param_names(self) -> None:
        """Unnamed parameters get sequential names"""
        _, params = QueryBuilder("t").where("a = :param_0", 1).where("b = :param_1", 2).build()

        assert params == {"param_0": 1, "param_1": 2}

    def test_invalid_direction(self) -> None:
        """Only ASC and DESC are allowed"""
        with pytest.raises(ValueError):
            QueryBuilder("t").order_by("id", "sideways")

    def test_params_are_copied(self) -> None:
        """Mutating returned params does not affect the builder"""
        builder = QueryBuilder("t").where("a = :a", 1, "a")
        _, params = builder.build()
        params["a"] = 99

        assert builder.build()[1] == {"a": 1}


@pytest.mark.unit
class TestInsertBuilder:
    """Test INSERT construction"""

    def test_values_dict_with_conflict_skip(self) -> None:
        """Columns come from the row and values are positional parameters"""
        query, params = (
            InsertBuilder('"resources"').values_dict({"id": 1, "name": "web-01"}).on_conflict_do_nothing().build()
        )

        assert query == 'INSERT INTO "resources" ("id", "name") VALUES (:v0_0, :v0_1) ON CONFLICT DO NOTHING'
        assert params == {"v0_0": 1, "v0_1": "web-01"}

    def test_conflict_target(self) -> None:
        """Conflict columns are quoted"""
        query, _ = InsertBuilder("t").columns("id").values(1).on_conflict_do_nothing("id").build()

        assert query.endswith('ON CONFLICT ("id") DO NOTHING')

    def test_multiple_rows(self) -> None:
        """Each row gets its own placeholder group"""
        query, params = InsertBuilder("t").columns("a", "b").values(1, 2).values(3, 4).build()

        assert "VALUES (:v0_0, :v0_1), (:v1_0, :v1_1)" in query
        assert params == {"v0_0": 1, "v0_1": 2, "v1_0": 3, "v1_1": 4}

    def test_row_length_mismatch(self) -> None:
        """Rows must match the column count"""
        with pytest.raises(ValueError):
            InsertBuilder("t").columns("a", "b").values(1).build()

    def test_requires_columns_and_values(self) -> None:
        """Empty inserts are refused"""
        with pytest.raises(ValueError):
            InsertBuilder("t").build()
        with pytest.raises(ValueError):
            InsertBuilder("t").columns("a").build()

    def test_unsafe_column_rejected(self) -> None:
        """Column names from source rows are validated"""
        with pytest.raises(ValueError):
            InsertBuilder("t").values_dict({"a; --": 1}).build()


@pytest.mark.unit
class TestLogHygiene:
    """Test log sanitization used by the tools and services"""

    def test_database_url_redacted(self) -> None:
        """Passwords never reach the log"""
        assert redact_database_url("postgresql://app:hunter2@db:5432/cg") == "postgresql://app:****@db:5432/cg"
        message = sanitize_error_message_for_log("could not connect: postgresql://app:hunter2@db/cg")
        assert "hunter2" not in message

    def test_newlines_stripped(self) -> None:
        """Injected line breaks are removed"""
        assert "\n" not in sanitize_for_log("ok\nFAKE ENTRY")
        entry = create_audit_log_entry("remediation_approve", user_id=1, resource_type="remediation", resource_id=5)
        assert entry == "action=remediation_approve | user=1 | resource=remediation:5 | success=True"
