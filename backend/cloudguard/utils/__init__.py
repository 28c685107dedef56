"""
CloudGuard Utility Functions
Shared helpers for SQL construction and log hygiene
"""

from cloudguard.utils.mutation_builders import InsertBuilder  # noqa: F401
from cloudguard.utils.query_builder import QueryBuilder, quote_identifier  # noqa: F401
