"""
Recommendations API Endpoints

Endpoints:
    GET /api/recommendations - List recommendations (filters: type, status)
    GET /api/recommendations/savings - Total potential savings of open items
    POST /api/recommendations/generate - Generate recommendations with the analysis service
    POST /api/recommendations - Create a recommendation
    GET /api/recommendations/{id} - Recommendation details
    PUT /api/recommendations/{id} - Update (apply/dismiss require an open item)
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.base import PaginatedResponse
from ..schemas.resource_schemas import (
    GenerateRecommendationsResult,
    RecommendationCreate,
    RecommendationResponse,
    RecommendationUpdate,
    SavingsResponse,
)
from ..services.analysis_service import AnalysisService, get_analysis_service
from ..services.pagination import DEFAULT_PAGE_SIZE, envelope
from ..services.recommendation_service import RecommendationService
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


@router.get("", response_model=PaginatedResponse[RecommendationResponse])
async def list_recommendations(
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("list recommendations"):
        items, total = RecommendationService(db).list_recommendations(type, status, page, page_size)
    return envelope(items, total, page, page_size)


@router.get("/savings", response_model=SavingsResponse)
async def total_savings(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, int]:
    with translate_service_errors("compute savings"):
        return {"total_savings": RecommendationService(db).get_total_savings()}


@router.post("/generate", response_model=GenerateRecommendationsResult)
async def generate_recommendations(
    provider: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    analysis: AnalysisService = Depends(get_analysis_service),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("generate recommendations"):
        created = await RecommendationService(db).generate_recommendations(analysis, provider)
    audit_logger.info(
        create_audit_log_entry(
            "RECOMMENDATIONS_GENERATED",
            current_user.get("id"),
            "recommendation",
            None,
            additional_context={"count": len(created)},
        )
    )
    return {"message": f"Generated {len(created)} recommendations", "generated": len(created)}


@router.post("", response_model=RecommendationResponse, status_code=201)
async def create_recommendation(
    recommendation: RecommendationCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create recommendation"):
        return RecommendationService(db).create_recommendation(recommendation)


@router.get("/{recommendation_id}", response_model=RecommendationResponse)
async def get_recommendation(
    recommendation_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get recommendation"):
        return RecommendationService(db).get_recommendation(recommendation_id)


@router.put("/{recommendation_id}", response_model=RecommendationResponse)
async def update_recommendation(
    recommendation_id: int,
    update: RecommendationUpdate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("update recommendation"):
        updated = RecommendationService(db).update_recommendation(recommendation_id, update)
    audit_logger.info(
        create_audit_log_entry(
            "RECOMMENDATION_UPDATED",
            current_user.get("id"),
            "recommendation",
            recommendation_id,
            additional_context={"status": updated.status},
        )
    )
    return updated
