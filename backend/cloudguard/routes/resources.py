"""
Resource Inventory API Endpoints

Endpoints:
    GET /api/resources - List resources (filters: provider, type, region, status)
    POST /api/resources - Register a resource
    GET /api/resources/{id} - Resource details
    PUT /api/resources/{id} - Update a resource
    DELETE /api/resources/{id} - Delete a resource
    POST /api/resources/{id}/analysis/cost - LLM cost anomaly analysis
    POST /api/resources/{id}/analysis/security - LLM security drift analysis
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import CostHistory, get_db
from ..schemas.analysis_schemas import CostAnomalyAnalysisResult, SecurityDriftAnalysisResult
from ..schemas.base import PaginatedResponse
from ..schemas.resource_schemas import ResourceCreate, ResourceResponse, ResourceUpdate
from ..services.analysis_service import AnalysisService, get_analysis_service
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..services.resource_service import ResourceService
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/resources", tags=["resources"])


@router.get("", response_model=PaginatedResponse[ResourceResponse])
async def list_resources(
    provider: Optional[str] = Query(None, description="AWS, GCP or AZURE"),
    type: Optional[str] = Query(None, description="Resource type, e.g. EC2"),
    region: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list resources"):
        items, total = ResourceService(db).list_resources(provider, type, region, status, page, page_size)
    return envelope(items, total, page, page_size)


@router.post("", response_model=ResourceResponse, status_code=201)
async def create_resource(
    resource: ResourceCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create resource"):
        created = ResourceService(db).create_resource(resource, user_id=current_user.get("id"))
    audit_logger.info(create_audit_log_entry("RESOURCE_CREATED", current_user.get("id"), "resource", created.id))
    return created


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get resource"):
        return ResourceService(db).get_resource(resource_id)


@router.put("/{resource_id}", response_model=ResourceResponse)
async def update_resource(
    resource_id: int,
    update: ResourceUpdate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("update resource"):
        updated = ResourceService(db).update_resource(resource_id, update)
    audit_logger.info(create_audit_log_entry("RESOURCE_UPDATED", current_user.get("id"), "resource", resource_id))
    return updated


@router.delete("/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> None:
    with translate_service_errors("delete resource"):
        ResourceService(db).delete_resource(resource_id)
    audit_logger.info(create_audit_log_entry("RESOURCE_DELETED", current_user.get("id"), "resource", resource_id))


def _resource_context(db: Session, resource_id: int):
    resource = ResourceService(db).get_resource(resource_id)
    resource_data = ResourceResponse.model_validate(resource).model_dump(mode="json", by_alias=True)
    history = (
        db.query(CostHistory)
        .filter(
            CostHistory.provider == resource.provider,
            CostHistory.service_category == resource.type,
            CostHistory.date >= date.today() - timedelta(days=30),
        )
        .order_by(CostHistory.date)
        .all()
    )
    cost_history = [{"date": row.date.isoformat(), "amount": row.amount} for row in history]
    return resource, resource_data, cost_history


@router.post("/{resource_id}/analysis/cost", response_model=CostAnomalyAnalysisResult)
async def analyze_resource_cost(
    resource_id: int,
    db: Session = Depends(get_db),
    analysis: AnalysisService = Depends(get_analysis_service),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("load resource"):
        resource, resource_data, cost_history = _resource_context(db, resource_id)
    return await analysis.analyze_cost_anomalies(resource_data, cost_history, resource.provider)


@router.post("/{resource_id}/analysis/security", response_model=SecurityDriftAnalysisResult)
async def analyze_resource_security(
    resource_id: int,
    db: Session = Depends(get_db),
    analysis: AnalysisService = Depends(get_analysis_service),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("load resource"):
        resource, resource_data, _ = _resource_context(db, resource_id)
    return await analysis.analyze_security_drifts(resource_data, resource.provider)
