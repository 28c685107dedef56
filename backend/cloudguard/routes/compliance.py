"""
Compliance API Endpoints

Endpoints:
    GET /api/v1/compliance/overview - Compliance posture across enabled frameworks
    GET /api/v1/compliance/frameworks - List frameworks
    GET /api/v1/compliance/frameworks/{id} - Framework details
    GET /api/v1/compliance/frameworks/{id}/controls - Controls of a framework
    POST /api/v1/compliance/frameworks/{id}/enable - Enable a framework
    POST /api/v1/compliance/frameworks/{id}/disable - Disable a framework
    GET /api/v1/compliance/assessments - Recent assessments
    POST /api/v1/compliance/assessments - Run an assessment
    GET /api/v1/compliance/assessments/{id} - Assessment with findings
    GET /api/v1/compliance/controls/failing - Failing controls, most severe first
    GET /api/v1/compliance/trend - Compliance percentage over time
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.compliance_schemas import (
    AssessmentResponse,
    ComplianceOverview,
    ComplianceTrend,
    ControlResponse,
    FailingControl,
    FrameworkResponse,
    RunAssessmentRequest,
)
from ..services.compliance_service import ComplianceService
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"])


@router.get("/overview", response_model=ComplianceOverview)
async def compliance_overview(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("get compliance overview"):
        return ComplianceService(db).get_overview()


@router.get("/frameworks", response_model=List[FrameworkResponse])
async def list_frameworks(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list frameworks"):
        return ComplianceService(db).list_frameworks()


@router.get("/frameworks/{framework_id}", response_model=FrameworkResponse)
async def get_framework(
    framework_id: str,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get framework"):
        return ComplianceService(db).get_framework(framework_id)


@router.get("/frameworks/{framework_id}/controls", response_model=List[ControlResponse])
async def list_controls(
    framework_id: str,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list controls"):
        return ComplianceService(db).list_controls(framework_id)


def _toggle_framework(framework_id: str, enabled: bool, db: Session, current_user: Dict[str, Any]):
    with translate_service_errors("enable framework" if enabled else "disable framework"):
        framework = ComplianceService(db).set_framework_enabled(framework_id, enabled)
    audit_logger.info(
        create_audit_log_entry(
            "FRAMEWORK_ENABLED" if enabled else "FRAMEWORK_DISABLED",
            current_user.get("id"),
            "compliance_framework",
            framework_id,
        )
    )
    return framework


@router.post("/frameworks/{framework_id}/enable", response_model=FrameworkResponse)
async def enable_framework(
    framework_id: str,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    return _toggle_framework(framework_id, True, db, current_user)


@router.post("/frameworks/{framework_id}/disable", response_model=FrameworkResponse)
async def disable_framework(
    framework_id: str,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    return _toggle_framework(framework_id, False, db, current_user)


@router.get("/assessments", response_model=List[AssessmentResponse])
async def list_assessments(
    framework_id: Optional[str] = Query(None, alias="frameworkId"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list assessments"):
        return ComplianceService(db).list_assessments(framework_id, limit)


@router.post("/assessments", response_model=AssessmentResponse, status_code=201)
async def run_assessment(
    request: RunAssessmentRequest,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("run assessment"):
        assessment = ComplianceService(db).run_assessment(request.framework_id)
    audit_logger.info(
        create_audit_log_entry(
            "ASSESSMENT_RUN",
            current_user.get("id"),
            "compliance_assessment",
            assessment.id,
            additional_context={"framework": request.framework_id},
        )
    )
    return assessment


@router.get("/assessments/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get assessment"):
        return ComplianceService(db).get_assessment(assessment_id)


@router.get("/controls/failing", response_model=List[FailingControl])
async def failing_controls(
    framework_id: Optional[str] = Query(None, alias="frameworkId"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    with translate_service_errors("list failing controls"):
        return ComplianceService(db).get_failing_controls(framework_id, limit)


@router.get("/trend", response_model=ComplianceTrend)
async def compliance_trend(
    framework_id: Optional[str] = Query(None, alias="frameworkId"),
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("get compliance trend"):
        return ComplianceService(db).get_trend(framework_id, days)
