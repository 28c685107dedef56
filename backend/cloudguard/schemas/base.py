"""
Shared schema building blocks.

The dashboard exchanges camelCase JSON; models are declared in snake_case
and serialized by alias.
"""

from enum import Enum
from typing import Generic, List, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class Severity(str, Enum):
    """Severity scale shared by drifts, anomalies, alerts and controls."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER = {
    Severity.CRITICAL.value: 4,
    Severity.HIGH.value: 3,
    Severity.MEDIUM.value: 2,
    Severity.LOW.value: 1,
}


class CloudProvider(str, Enum):
    AWS = "AWS"
    GCP = "GCP"
    AZURE = "AZURE"


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class PaginatedResponse(CamelModel, Generic[T]):
    """Envelope for paginated list endpoints."""

    data: List[T]
    page: int
    page_size: int
    total: int
    total_pages: int


def total_pages(total: int, page_size: int) -> int:
    """Number of pages needed for ``total`` items (0 when empty)."""
    if page_size <= 0:
        return 0
    return (total + page_size - 1) // page_size
