"""
Authentication and Trial API Endpoints

Endpoints:
    POST /api/register - Create an account and return a token
    POST /api/login - Exchange credentials for a token
    POST /api/logout - Revoke the current token
    GET /api/user - Current user profile
    GET /api/trial-status - Trial status with days remaining
    POST /api/start-trial - Start the free trial
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth import audit_logger, create_user_token, get_current_user, jwt_manager
from ..config import get_settings
from ..database import get_db
from ..schemas.auth_schemas import LoginRequest, TokenResponse, TrialStatusResponse, UserCreate, UserResponse
from ..services.trial_service import TrialService
from ..services.user_service import UserService
from .errors import translate_service_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def _token_response(user) -> TokenResponse:
    return TokenResponse(
        access_token=create_user_token(user),
        expires_in=get_settings().access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(user_data: UserCreate, request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    with translate_service_errors("register user"):
        user = UserService(db).register(user_data)
    audit_logger.log_security_event("USER_REGISTERED", f"user {user.id}", _client_host(request))
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    user = UserService(db).authenticate(credentials.username, credentials.password)
    audit_logger.log_login_attempt(credentials.username, user is not None, _client_host(request))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _token_response(user)


@router.post("/logout")
async def logout(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, str]:
    jwt_manager.revoke(current_user)
    return {"message": "Logged out successfully"}


@router.get("/user", response_model=UserResponse)
async def get_user(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> UserResponse:
    with translate_service_errors("get user"):
        return UserService(db).get_user(current_user["id"])


@router.get("/trial-status", response_model=TrialStatusResponse)
async def trial_status(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("get trial status"):
        return TrialService(db).get_status(current_user["id"])


@router.post("/start-trial", response_model=TrialStatusResponse)
async def start_trial(
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("start trial"):
        return TrialService(db).start_trial(current_user["id"])
