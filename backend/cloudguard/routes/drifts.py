"""
Security Drift API Endpoints

Endpoints:
    GET /api/drifts - List drifts (filters: severity, status, resourceId)
    GET /api/drifts/summary - Counts by severity and status
    POST /api/drifts/detect - Scan resources for configuration drift
    POST /api/drifts - Record a drift
    GET /api/drifts/{id} - Drift details
    PUT /api/drifts/{id} - Update status or details ("approved" accepts it as baseline)
    DELETE /api/drifts/{id} - Delete a drift
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.base import PaginatedResponse
from ..schemas.resource_schemas import DriftCreate, DriftDetectionResult, DriftResponse, DriftSummary, DriftUpdate
from ..services.drift_service import DriftService
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/drifts", tags=["drifts"])


@router.get("", response_model=PaginatedResponse[DriftResponse])
async def list_drifts(
    severity: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    resource_id: Optional[int] = Query(None, alias="resourceId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list drifts"):
        items, total = DriftService(db).list_drifts(severity, status, resource_id, page, page_size)
    return envelope(items, total, page, page_size)


@router.get("/summary", response_model=DriftSummary)
async def drift_summary(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("summarize drifts"):
        return DriftService(db).get_summary()


@router.post("/detect", response_model=DriftDetectionResult)
async def detect_drifts(
    provider: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("detect drifts"):
        result = DriftService(db).detect_drifts(provider)
    audit_logger.info(
        create_audit_log_entry(
            "DRIFT_DETECTION_RUN",
            current_user.get("id"),
            "drift",
            None,
            additional_context={"drifts": result["drifts_detected"]},
        )
    )
    return result


@router.post("", response_model=DriftResponse, status_code=201)
async def create_drift(
    drift: DriftCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create drift"):
        return DriftService(db).create_drift(drift)


@router.get("/{drift_id}", response_model=DriftResponse)
async def get_drift(
    drift_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get drift"):
        return DriftService(db).get_drift(drift_id)


@router.put("/{drift_id}", response_model=DriftResponse)
async def update_drift(
    drift_id: int,
    update: DriftUpdate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("update drift"):
        updated = DriftService(db).update_drift(drift_id, update)
    audit_logger.info(
        create_audit_log_entry(
            "DRIFT_UPDATED", current_user.get("id"), "drift", drift_id, additional_context={"status": updated.status}
        )
    )
    return updated


@router.delete("/{drift_id}", status_code=204)
async def delete_drift(
    drift_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> None:
    with translate_service_errors("delete drift"):
        DriftService(db).delete_drift(drift_id)
    audit_logger.info(create_audit_log_entry("DRIFT_DELETED", current_user.get("id"), "drift", drift_id))
