"""
Cost Analytics API Endpoints

Endpoints:
    GET /api/v1/costs/overview - Spend totals, provider/service breakdown, trend
    GET /api/v1/costs/trends - Period-over-period trend
    GET /api/v1/costs/forecast - Linear forecast with confidence bounds
    GET /api/v1/costs/anomalies - Detected cost anomalies (limit/offset)
    GET /api/v1/costs/optimizations - Optimization suggestions (limit/offset)
    POST /api/v1/costs/optimizations/{id}/apply - Mark a suggestion applied
    POST /api/v1/costs/optimizations/{id}/dismiss - Dismiss a suggestion
    GET /api/v1/costs/savings - Potential savings of open suggestions
    POST /api/v1/costs/sync - Record today's cost points from the inventory
    POST /api/v1/costs/detect-anomalies - Run spike detection

All amounts are integer cents.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.base import PaginatedResponse
from ..schemas.cost_schemas import (
    AnomalyDetectionResult,
    CostForecast,
    CostOptimizationResponse,
    CostOverview,
    CostPeriod,
    CostSyncRequest,
    CostSyncResult,
    CostTrend,
    PotentialSavings,
)
from ..schemas.resource_schemas import CostAnomalyResponse
from ..services.cost_service import CostService
from ..services.pagination import envelope, page_from_offset
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/v1/costs", tags=["costs"])


@router.get("/overview", response_model=CostOverview)
async def cost_overview(
    provider: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("get cost overview"):
        return CostService(db).get_overview(provider)


@router.get("/trends", response_model=CostTrend)
async def cost_trends(
    provider: Optional[str] = Query(None),
    period: CostPeriod = Query(CostPeriod.MONTHLY),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("get cost trends"):
        return CostService(db).get_trends(provider, period)


@router.get("/forecast", response_model=CostForecast)
async def cost_forecast(
    provider: Optional[str] = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("forecast costs"):
        return CostService(db).get_forecast(provider, days)


@router.get("/anomalies", response_model=PaginatedResponse[CostAnomalyResponse])
async def list_anomalies(
    status: Optional[str] = Query(None),
    provider: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list cost anomalies"):
        items, total = CostService(db).list_anomalies(status, provider, limit, offset)
    return envelope(items, total, page_from_offset(limit, offset), limit)


@router.get("/optimizations", response_model=PaginatedResponse[CostOptimizationResponse])
async def list_optimizations(
    status: Optional[str] = Query(None),
    provider: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list optimizations"):
        items, total = CostService(db).list_optimizations(status, provider, limit, offset)
    return envelope(items, total, page_from_offset(limit, offset), limit)


@router.post("/optimizations/{optimization_id}/apply", response_model=CostOptimizationResponse)
async def apply_optimization(
    optimization_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("apply optimization"):
        optimization = CostService(db).apply_optimization(optimization_id)
    audit_logger.info(
        create_audit_log_entry("OPTIMIZATION_APPLIED", current_user.get("id"), "cost_optimization", optimization_id)
    )
    return optimization


@router.post("/optimizations/{optimization_id}/dismiss", response_model=CostOptimizationResponse)
async def dismiss_optimization(
    optimization_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("dismiss optimization"):
        optimization = CostService(db).dismiss_optimization(optimization_id)
    audit_logger.info(
        create_audit_log_entry("OPTIMIZATION_DISMISSED", current_user.get("id"), "cost_optimization", optimization_id)
    )
    return optimization


@router.get("/savings", response_model=PotentialSavings)
async def potential_savings(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("compute potential savings"):
        return CostService(db).get_savings()


@router.post("/sync", response_model=CostSyncResult)
async def sync_costs(
    request: Optional[CostSyncRequest] = Body(None),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    provider = request.provider if request else None
    with translate_service_errors("sync costs"):
        result = CostService(db).sync_costs(provider)
    audit_logger.info(
        create_audit_log_entry(
            "COSTS_SYNCED",
            current_user.get("id"),
            "cost_history",
            None,
            additional_context={"records": result["records_synced"]},
        )
    )
    return result


@router.post("/detect-anomalies", response_model=AnomalyDetectionResult)
async def detect_anomalies(
    provider: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("detect cost anomalies"):
        detected = CostService(db).detect_anomalies(provider)
    return {"anomalies_detected": detected, "provider": provider}
