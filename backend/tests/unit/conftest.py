"""
Unit test fixtures and helpers.

Factories for inventory rows used across the service and route tests.
"""

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytest
from sqlalchemy.orm import Session

from cloudguard.database import CostHistory, Resource


@pytest.fixture
def make_resource(db_session: Session) -> Callable[..., Resource]:
    """Create and commit a Resource; keyword arguments override the defaults."""

    def factory(**overrides: Any) -> Resource:
        values: Dict[str, Any] = {
            "name": "web-server-1",
            "type": "EC2",
            "provider": "AWS",
            "region": "us-east-1",
            "status": "running",
            "tags": {},
            "cost": 10000,
        }
        values.update(overrides)
        resource = Resource(**values)
        db_session.add(resource)
        db_session.commit()
        db_session.refresh(resource)
        return resource

    return factory


@pytest.fixture
def add_cost_history(db_session: Session) -> Callable[..., List[CostHistory]]:
    """
    Insert one daily cost point per amount, oldest first, ending today
    (or ``end`` when given).
    """

    def factory(
        amounts: List[int],
        provider: str = "AWS",
        service_category: str = "EC2",
        end: Optional[date] = None,
    ) -> List[CostHistory]:
        end = end or date.today()
        start = end - timedelta(days=len(amounts) - 1)
        rows = [
            CostHistory(
                provider=provider,
                service_category=service_category,
                date=start + timedelta(days=offset),
                amount=amount,
            )
            for offset, amount in enumerate(amounts)
        ]
        db_session.add_all(rows)
        db_session.commit()
        return rows

    return factory
