"""
Resource Inventory Service

CRUD over tracked cloud resources with provider/type/region/status filters.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..database import (
    Alert,
    CostAnomaly,
    CostOptimizationSuggestion,
    RemediationAction,
    Resource,
    SecurityDrift,
    Vulnerability,
)
from ..schemas.resource_schemas import ResourceCreate, ResourceUpdate
from .errors import NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate
from .updates import apply_changes

logger = logging.getLogger(__name__)


class ResourceService:
    """Inventory of cloud resources. Monthly cost is kept in cents."""

    def __init__(self, db: Session):
        self.db = db

    def list_resources(
        self,
        provider: Optional[str] = None,
        resource_type: Optional[str] = None,
        region: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(Resource)
        if provider:
            query = query.filter(Resource.provider == provider.upper())
        if resource_type:
            query = query.filter(Resource.type == resource_type)
        if region:
            query = query.filter(Resource.region == region)
        if status:
            query = query.filter(Resource.status == status)
        return paginate(query.order_by(Resource.id), page, page_size)

    def get_resource(self, resource_id: int) -> Resource:
        resource = self.db.query(Resource).filter(Resource.id == resource_id).first()
        if not resource:
            raise NotFoundError("Resource", resource_id)
        return resource

    def create_resource(self, data: ResourceCreate, user_id: Optional[int] = None) -> Resource:
        values = data.model_dump()
        values["provider"] = values["provider"].upper()
        if values.get("user_id") is None:
            values["user_id"] = user_id
        resource = Resource(**values)
        self.db.add(resource)
        self.db.commit()
        self.db.refresh(resource)
        logger.info(f"Created resource {resource.id} ({resource.provider}/{resource.type})")
        return resource

    def update_resource(self, resource_id: int, data: ResourceUpdate) -> Resource:
        resource = self.get_resource(resource_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("provider"):
            changes["provider"] = changes["provider"].upper()
        apply_changes(resource, changes, required=("name", "type", "provider", "region", "status"))
        resource.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(resource)
        return resource

    def delete_resource(self, resource_id: int) -> None:
        """Delete a resource along with its drifts, anomalies and remediation actions."""
        resource = self.get_resource(resource_id)
        for model in (RemediationAction, SecurityDrift, CostAnomaly, CostOptimizationSuggestion):
            self.db.query(model).filter(model.resource_id == resource_id).delete(synchronize_session=False)
        for model in (Alert, Vulnerability):
            self.db.query(model).filter(model.resource_id == resource_id).update(
                {model.resource_id: None}, synchronize_session=False
            )
        self.db.delete(resource)
        self.db.commit()
        logger.info(f"Deleted resource {resource_id}")
