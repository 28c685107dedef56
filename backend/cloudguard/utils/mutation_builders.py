"""
Mutation Builder Utilities - Fluent SQL INSERT Construction

Complements QueryBuilder for the operational tools that copy rows between
databases. Column names come from the source row, so they are validated and
quoted; values are always bound as parameters.

Usage:
    builder = (InsertBuilder('"resources"')
        .values_dict({"id": 1, "name": "web-01"})
        .on_conflict_do_nothing()
    )
    query, params = builder.build()
    # INSERT INTO "resources" ("id", "name") VALUES (:v0_0, :v0_1) ON CONFLICT DO NOTHING
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .query_builder import quote_identifier


@dataclass
class InsertBuilder:
    """
    Fluent interface for building INSERT queries.

    Attributes:
        table: Table name to insert into (already quoted if needed)
        _columns: List of column names
        _values_list: List of value tuples (for multi-row inserts)
        _on_conflict: ON CONFLICT clause configuration
    """

    table: str
    _columns: List[str] = field(default_factory=list)
    _values_list: List[Tuple[Any, ...]] = field(default_factory=list)
    _on_conflict: Optional[Dict[str, Any]] = None

    def columns(self, *cols: str) -> "InsertBuilder":
        """Specify columns for the INSERT."""
        self._columns = list(cols)
        return self

    def values(self, *vals: Any) -> "InsertBuilder":
        """Add a row of values, in column order."""
        self._values_list.append(vals)
        return self

    def values_dict(self, data: Dict[str, Any]) -> "InsertBuilder":
        """
        Add a row of values from a dictionary.

        If columns haven't been set, they will be inferred from dict keys.
        """
        if not self._columns:
            self._columns = list(data.keys())
        self._values_list.append(tuple(data.get(col) for col in self._columns))
        return self

    def on_conflict_do_nothing(self, *conflict_cols: str) -> "InsertBuilder":
        """
        Add ON CONFLICT DO NOTHING.

        Without conflict columns any unique/primary-key violation is skipped.
        """
        self._on_conflict = {"columns": list(conflict_cols), "action": "nothing"}
        return self

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build final INSERT query with parameters.

        Parameter names are positional (``v{row}_{col}``) so that column names
        with unusual characters never leak into bind names.

        Raises:
            ValueError: If no columns or values are specified, or a row has the
                wrong number of values.
        """
        if not self._columns:
            raise ValueError("InsertBuilder requires columns to be specified")
        if not self._values_list:
            raise ValueError("InsertBuilder requires at least one row of values")

        params: Dict[str, Any] = {}
        columns_str = ", ".join(quote_identifier(col) for col in self._columns)
        query_parts = [f"INSERT INTO {self.table} ({columns_str})"]

        value_rows = []
        for row_idx, row_values in enumerate(self._values_list):
            if len(row_values) != len(self._columns):
                raise ValueError(
                    f"Row {row_idx} has {len(row_values)} values but {len(self._columns)} columns specified"
                )
            placeholders = []
            for col_idx, value in enumerate(row_values):
                param_name = f"v{row_idx}_{col_idx}"
                placeholders.append(f":{param_name}")
                params[param_name] = value
            value_rows.append(f"({', '.join(placeholders)})")

        query_parts.append(f"VALUES {', '.join(value_rows)}")

        if self._on_conflict:
            if self._on_conflict["columns"]:
                target = ", ".join(quote_identifier(c) for c in self._on_conflict["columns"])
                query_parts.append(f"ON CONFLICT ({target}) DO NOTHING")
            else:
                query_parts.append("ON CONFLICT DO NOTHING")

        return " ".join(query_parts), params
