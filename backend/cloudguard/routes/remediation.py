"""
Remediation Queue API Endpoints

Endpoints:
    GET /api/v1/remediation - List actions (filter: status)
    GET /api/v1/remediation/summary - Counts per status
    GET /api/v1/remediation/pending - Actions awaiting approval
    POST /api/v1/remediation - Propose an action
    GET /api/v1/remediation/{id} - Action details
    POST /api/v1/remediation/{id}/approve - Approve a pending action
    POST /api/v1/remediation/{id}/reject - Reject a pending action
    POST /api/v1/remediation/{id}/execute - Execute an approved action

Approve and reject answer 409 unless the action is pending approval;
execute answers 409 unless it is approved.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.automation_schemas import RemediationActionCreate, RemediationActionResponse, RemediationSummary
from ..schemas.base import PaginatedResponse
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..services.remediation_service import RemediationService
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/v1/remediation", tags=["remediation"])


@router.get("", response_model=PaginatedResponse[RemediationActionResponse])
async def list_actions(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list remediation actions"):
        items, total = RemediationService(db).list_actions(status, page, page_size)
    return envelope(items, total, page, page_size)


@router.get("/summary", response_model=RemediationSummary)
async def remediation_summary(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("summarize remediation actions"):
        return RemediationService(db).get_summary()


@router.get("/pending", response_model=List[RemediationActionResponse])
async def pending_actions(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list pending remediation actions"):
        return RemediationService(db).list_pending()


@router.post("", response_model=RemediationActionResponse, status_code=201)
async def create_action(
    action: RemediationActionCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create remediation action"):
        created = RemediationService(db).create_action(action, requested_by=current_user.get("id"))
    audit_logger.info(
        create_audit_log_entry("REMEDIATION_REQUESTED", current_user.get("id"), "remediation_action", created.id)
    )
    return created


@router.get("/{action_id}", response_model=RemediationActionResponse)
async def get_action(
    action_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get remediation action"):
        return RemediationService(db).get_action(action_id)


@router.post("/{action_id}/approve", response_model=RemediationActionResponse)
async def approve_action(
    action_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("approve remediation action"):
        action = RemediationService(db).approve_action(action_id, user_id=current_user.get("id"))
    audit_logger.info(
        create_audit_log_entry("REMEDIATION_APPROVED", current_user.get("id"), "remediation_action", action_id)
    )
    return action


@router.post("/{action_id}/reject", response_model=RemediationActionResponse)
async def reject_action(
    action_id: int,
    reason: Optional[str] = Body(None, embed=True),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("reject remediation action"):
        action = RemediationService(db).reject_action(action_id, user_id=current_user.get("id"), reason=reason)
    audit_logger.info(
        create_audit_log_entry("REMEDIATION_REJECTED", current_user.get("id"), "remediation_action", action_id)
    )
    return action


@router.post("/{action_id}/execute", response_model=RemediationActionResponse)
async def execute_action(
    action_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("execute remediation action"):
        action = RemediationService(db).execute_action(action_id)
    audit_logger.info(
        create_audit_log_entry(
            "REMEDIATION_EXECUTED",
            current_user.get("id"),
            "remediation_action",
            action_id,
            success=action.status == "executed",
        )
    )
    return action
