"""
QueryBuilder Utility - Fluent SQL Query Construction
Parameterized SELECT building for the operational database tools, which work
against arbitrary tables discovered at runtime rather than ORM models.

Security Features:
- Automatic parameter binding for values
- Identifier validation and quoting for table/column names

Usage:
    builder = (QueryBuilder("information_schema.tables")
        .select("table_name")
        .where("table_schema = :schema", "public", "schema")
        .where("table_type = :table_type", "BASE TABLE", "table_type")
        .order_by("table_name")
    )

    query, params = builder.build()
    result = conn.execute(text(query), params)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def quote_identifier(name: str) -> str:
    """
    Quote a (optionally schema-qualified) SQL identifier.

    Raises:
        ValueError: If any part is not a plain identifier
    """
    parts = name.split(".")
    for part in parts:
        if not IDENTIFIER_PATTERN.match(part):
            raise ValueError(f"Invalid SQL identifier: {name!r}")
    return ".".join(f'"{part}"' for part in parts)


@dataclass
class QueryBuilder:
    """
    Fluent interface for building SELECT queries.

    Attributes:
        table: Table name (pass a quoted name for tables discovered at runtime)
        _select: List of columns to select
        _where: List of WHERE conditions with parameter names
        _order_by: ORDER BY clause
        _params: Dictionary of query parameters
    """

    table: str
    _select: List[str] = field(default_factory=lambda: ["*"])
    _where: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    _order_by: Optional[str] = None
    _params: Dict[str, Any] = field(default_factory=dict)

    def select(self, *columns: str) -> "QueryBuilder":
        """
        Specify columns to select

        Example:
            builder.select("column_name", "data_type")
        """
        self._select = list(columns) if columns else ["*"]
        return self

    def where(self, condition: str, value: Any = None, param_name: Optional[str] = None) -> "QueryBuilder":
        """
        Add WHERE condition with parameterization

        Args:
            condition: SQL condition with :param_name placeholders
            value: Value to bind to parameter (None for conditions without params)
            param_name: Parameter name (auto-generated if not provided)

        Example:
            builder.where("table_name = :table", "resources", "table")
        """
        if value is not None:
            if param_name is None:
                param_name = f"param_{len(self._params)}"
            self._where.append((condition, param_name))
            self._params[param_name] = value
        else:
            self._where.append((condition, None))

        return self

    def order_by(self, column: str, direction: str = "ASC") -> "QueryBuilder":
        """
        Add ORDER BY clause

        Raises:
            ValueError: If direction is not ASC or DESC
        """
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError("Direction must be ASC or DESC")

        self._order_by = f"{column} {direction}"
        return self

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build final SQL query with parameters

        Returns:
            Tuple of (sql_query, parameters_dict)
        """
        query_parts = [f"SELECT {', '.join(self._select)}", f"FROM {self.table}"]

        if self._where:
            query_parts.append(f"WHERE {' AND '.join(cond for cond, _ in self._where)}")

        if self._order_by:
            query_parts.append(f"ORDER BY {self._order_by}")

        return " ".join(query_parts), self._params.copy()

