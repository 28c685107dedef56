"""
Partial update helper shared by the services
"""

from typing import Any, Dict, Iterable


def apply_changes(instance: Any, changes: Dict[str, Any], required: Iterable[str] = ()) -> None:
    """
    Copy the fields present in ``changes`` onto an ORM row.

    ``changes`` comes from ``model_dump(exclude_unset=True)``, so an explicit
    null clears a nullable column.

    Raises:
        ValueError: A field in ``required`` is set to null
    """
    for field in required:
        if field in changes and changes[field] is None:
            raise ValueError(f"{field} cannot be null")
    for field, value in changes.items():
        setattr(instance, field, value)
