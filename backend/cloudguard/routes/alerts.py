"""
Alerts API Endpoints

Endpoints:
    GET /api/alerts - List alerts (filters: type, severity, status, resourceId)
    GET /api/alerts/summary - Counts by type and severity
    POST /api/alerts - Create an alert
    GET /api/alerts/{id} - Alert details
    PUT /api/alerts/{id} - Update title, message or status
    POST /api/alerts/{id}/acknowledge - Mark acknowledged
    POST /api/alerts/{id}/resolve - Mark resolved
    DELETE /api/alerts/{id} - Delete an alert

Alert type and severity cannot be changed after creation.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.base import PaginatedResponse
from ..schemas.resource_schemas import AlertCreate, AlertResponse, AlertStatus, AlertSummary, AlertUpdate
from ..services.alert_service import AlertService
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=PaginatedResponse[AlertResponse])
async def list_alerts(
    type: Optional[str] = Query(None, description="security, cost or resource"),
    severity: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    resource_id: Optional[int] = Query(None, alias="resourceId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list alerts"):
        items, total = AlertService(db).list_alerts(type, severity, status, resource_id, page, page_size)
    return envelope(items, total, page, page_size)


@router.get("/summary", response_model=AlertSummary)
async def alert_summary(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("summarize alerts"):
        return AlertService(db).get_summary()


@router.post("", response_model=AlertResponse, status_code=201)
async def create_alert(
    alert: AlertCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create alert"):
        return AlertService(db).create_alert(alert)


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get alert"):
        return AlertService(db).get_alert(alert_id)


@router.put("/{alert_id}", response_model=AlertResponse)
async def update_alert(
    alert_id: int,
    update: AlertUpdate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("update alert"):
        updated = AlertService(db).update_alert(alert_id, update)
    audit_logger.info(create_audit_log_entry("ALERT_UPDATED", current_user.get("id"), "alert", alert_id))
    return updated


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("acknowledge alert"):
        return AlertService(db).set_status(alert_id, AlertStatus.ACKNOWLEDGED)


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("resolve alert"):
        return AlertService(db).set_status(alert_id, AlertStatus.RESOLVED)


@router.delete("/{alert_id}", status_code=204)
async def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> None:
    with translate_service_errors("delete alert"):
        AlertService(db).delete_alert(alert_id)
    audit_logger.info(create_audit_log_entry("ALERT_DELETED", current_user.get("id"), "alert", alert_id))
