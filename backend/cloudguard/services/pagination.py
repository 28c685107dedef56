"""
Pagination helpers shared by list endpoints
"""

from typing import Any, Dict, Tuple

from sqlalchemy.orm import Query

from ..schemas.base import total_pages

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def paginate(query: Query, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Tuple[list, int]:
    """
    Apply LIMIT/OFFSET to an ORM query.

    Returns:
        (items, total) where total is the unpaginated row count
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

    total = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def envelope(items: list, total: int, page: int, page_size: int) -> Dict[str, Any]:
    """Build the ``{data, page, pageSize, total, totalPages}`` payload."""
    return {
        "data": items,
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages(total, page_size),
    }


def page_from_offset(limit: int, offset: int) -> int:
    """Translate limit/offset query parameters to a 1-based page number."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if offset < 0:
        raise ValueError("offset must be >= 0")
    return offset // limit + 1
