"""
Recommendation Service

Optimization recommendations come from three places: direct creation, the
LLM analysis service and the resource cleanup job. Savings are in cents.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import CostHistory, Recommendation, Resource
from ..schemas.resource_schemas import OptimizationStatus, RecommendationCreate, RecommendationUpdate
from .analysis_service import AnalysisService
from .errors import InvalidStateTransition, NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate
from .updates import apply_changes

logger = logging.getLogger(__name__)

IDLE_STATUSES = ("stopped", "terminated")
IDLE_ACCESS_DAYS = 30


class RecommendationService:
    def __init__(self, db: Session):
        self.db = db

    def list_recommendations(
        self,
        rec_type: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(Recommendation)
        if rec_type:
            query = query.filter(Recommendation.type == rec_type)
        if status:
            query = query.filter(Recommendation.status == status)
        return paginate(
            query.order_by(Recommendation.potential_savings.desc(), Recommendation.id.desc()), page, page_size
        )

    def get_recommendation(self, recommendation_id: int) -> Recommendation:
        recommendation = self.db.query(Recommendation).filter(Recommendation.id == recommendation_id).first()
        if not recommendation:
            raise NotFoundError("Recommendation", recommendation_id)
        return recommendation

    def create_recommendation(self, data: RecommendationCreate, commit: bool = True) -> Recommendation:
        recommendation = Recommendation(**data.model_dump(mode="json"))
        self.db.add(recommendation)
        if commit:
            self.db.commit()
            self.db.refresh(recommendation)
        else:
            self.db.flush()
        return recommendation

    def update_recommendation(self, recommendation_id: int, data: RecommendationUpdate) -> Recommendation:
        """
        Update a recommendation.

        Raises:
            InvalidStateTransition: Applying or dismissing a recommendation
                that is no longer open
        """
        recommendation = self.get_recommendation(recommendation_id)
        changes = data.model_dump(exclude_unset=True, mode="json")

        new_status = changes.get("status")
        if new_status in (OptimizationStatus.APPLIED.value, OptimizationStatus.DISMISSED.value):
            if recommendation.status != OptimizationStatus.OPEN.value:
                operation = "apply" if new_status == OptimizationStatus.APPLIED.value else "dismiss"
                raise InvalidStateTransition("recommendation", recommendation.status, operation)

        apply_changes(recommendation, changes, required=("status", "title", "description"))
        self.db.commit()
        self.db.refresh(recommendation)
        return recommendation

    def get_total_savings(self) -> int:
        """Sum of potential savings over open recommendations (cents)."""
        total = (
            self.db.query(func.coalesce(func.sum(Recommendation.potential_savings), 0))
            .filter(Recommendation.status == OptimizationStatus.OPEN.value)
            .scalar()
        )
        return int(total or 0)

    async def generate_recommendations(self, analysis: AnalysisService, provider: Optional[str] = None) -> List[Recommendation]:
        """
        Ask the analysis service for recommendations and store them.

        An unavailable analysis service yields no recommendations.
        """
        query = self.db.query(Resource)
        if provider:
            query = query.filter(Resource.provider == provider.upper())
        resources = query.order_by(Resource.id).all()
        if not resources:
            return []

        resource_data = [_resource_payload(resource) for resource in resources]
        history_query = self.db.query(CostHistory).filter(CostHistory.date >= date.today() - timedelta(days=30))
        if provider:
            history_query = history_query.filter(CostHistory.provider == provider.upper())
        cost_history = [
            {"date": row.date.isoformat(), "provider": row.provider, "service": row.service_category, "amount": row.amount}
            for row in history_query.order_by(CostHistory.date).all()
        ]

        generated = await analysis.generate_optimization_recommendations(
            resource_data, cost_history, provider.upper() if provider else "MULTI"
        )
        created = [self.create_recommendation(item, commit=False) for item in generated]
        self.db.commit()
        logger.info(f"Stored {len(created)} generated recommendations")
        return created

    def recommend_resource_cleanup(self) -> Dict[str, Any]:
        """
        Flag idle resources.

        Stopped/terminated resources that still accrue cost and resources not
        accessed for more than 30 days get an "unused resources"
        recommendation, unless an open one already names them.
        """
        already_flagged = set()
        for (affected,) in self.db.query(Recommendation.resources_affected).filter(
            Recommendation.status == OptimizationStatus.OPEN.value,
            Recommendation.type == "unused_resources",
        ):
            already_flagged.update(affected or [])

        flagged = []
        for resource in self.db.query(Resource).order_by(Resource.id).all():
            if resource.id in already_flagged:
                continue
            tags = resource.tags or {}
            last_access = tags.get("lastAccessDays")
            idle_status = resource.status in IDLE_STATUSES and (resource.cost or 0) > 0
            stale = isinstance(last_access, (int, float)) and last_access > IDLE_ACCESS_DAYS
            if not (idle_status or stale):
                continue

            reason = (
                f"is {resource.status} but still costs ${(resource.cost or 0) / 100:,.2f}/month"
                if idle_status
                else f"has not been accessed for {int(last_access)} days"
            )
            self.create_recommendation(
                RecommendationCreate(
                    title=f"Remove unused {resource.type} '{resource.name}'",
                    description=f"{resource.type} '{resource.name}' in {resource.region} {reason}.",
                    type="unused_resources",
                    potential_savings=resource.cost or 0,
                    resources_affected=[resource.id],
                ),
                commit=False,
            )
            flagged.append(resource.id)

        self.db.commit()
        return {"resources_flagged": len(flagged), "resource_ids": flagged}


def _resource_payload(resource: Resource) -> Dict[str, Any]:
    return {
        "id": resource.id,
        "name": resource.name,
        "type": resource.type,
        "provider": resource.provider,
        "region": resource.region,
        "status": resource.status,
        "tags": resource.tags or {},
        "monthlyCostCents": resource.cost,
    }
