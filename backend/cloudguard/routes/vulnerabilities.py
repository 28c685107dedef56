"""
Vulnerabilities API Endpoints

Endpoints:
    GET /api/vulnerabilities - List vulnerabilities (filters: severity, status, resourceId)
    GET /api/vulnerabilities/summary - Open counts by severity
    GET /api/vulnerabilities/top - Most severe open vulnerabilities
    GET /api/vulnerabilities/{id} - Vulnerability details
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.base import PaginatedResponse
from ..schemas.resource_schemas import VulnerabilityResponse, VulnerabilitySummary
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..services.vulnerability_service import VulnerabilityService
from .errors import translate_service_errors

router = APIRouter(prefix="/api/vulnerabilities", tags=["vulnerabilities"])


@router.get("", response_model=PaginatedResponse[VulnerabilityResponse])
async def list_vulnerabilities(
    severity: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    resource_id: Optional[int] = Query(None, alias="resourceId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list vulnerabilities"):
        items, total = VulnerabilityService(db).list_vulnerabilities(severity, status, resource_id, page, page_size)
    return envelope(items, total, page, page_size)


@router.get("/summary", response_model=VulnerabilitySummary)
async def vulnerability_summary(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("summarize vulnerabilities"):
        return VulnerabilityService(db).get_summary()


@router.get("/top", response_model=List[VulnerabilityResponse])
async def top_vulnerabilities(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list top vulnerabilities"):
        return VulnerabilityService(db).get_top(limit)


@router.get("/{vulnerability_id}", response_model=VulnerabilityResponse)
async def get_vulnerability(
    vulnerability_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get vulnerability"):
        return VulnerabilityService(db).get_vulnerability(vulnerability_id)
