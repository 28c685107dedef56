"""
Trial Service

Free trial lifecycle: inactive -> active -> expired. Expiry is evaluated
lazily whenever the status is read.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import User
from ..schemas.auth_schemas import TrialStatus
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class TrialService:
    def __init__(self, db: Session, trial_days: Optional[int] = None):
        self.db = db
        self.trial_days = trial_days if trial_days is not None else get_settings().trial_days

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def get_status(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Current trial status, expiring the trial when its time has run out.
        """
        now = now or datetime.utcnow()
        user = self._get_user(user_id)

        if user.trial_status == TrialStatus.INACTIVE.value or user.trial_started_at is None:
            return {
                "status": TrialStatus.INACTIVE.value,
                "message": "Trial not started yet",
                "days_remaining": self.trial_days,
                "trial_started_at": None,
            }

        elapsed_days = (now - user.trial_started_at).total_seconds() / 86400
        days_remaining = max(0, math.ceil(self.trial_days - elapsed_days))

        if user.trial_status == TrialStatus.EXPIRED.value or days_remaining <= 0:
            if user.trial_status != TrialStatus.EXPIRED.value:
                user.trial_status = TrialStatus.EXPIRED.value
                self.db.commit()
                logger.info(f"Trial expired for user {user.id}")
            return {
                "status": TrialStatus.EXPIRED.value,
                "message": f"Your {self.trial_days}-day trial has expired. Upgrade to continue using CloudGuard.",
                "days_remaining": 0,
                "trial_started_at": user.trial_started_at,
            }

        return {
            "status": TrialStatus.ACTIVE.value,
            "message": f"{days_remaining} {'day' if days_remaining == 1 else 'days'} remaining in your trial",
            "days_remaining": days_remaining,
            "trial_started_at": user.trial_started_at,
        }

    def start_trial(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Start the trial.

        Raises:
            ValueError: Trial already active or already expired
        """
        user = self._get_user(user_id)
        if user.trial_status == TrialStatus.ACTIVE.value:
            raise ValueError("Trial already active")
        if user.trial_status == TrialStatus.EXPIRED.value:
            raise ValueError("Trial already expired")

        user.trial_status = TrialStatus.ACTIVE.value
        user.trial_started_at = now or datetime.utcnow()
        self.db.commit()
        logger.info(f"Trial started for user {user.id}")
        return self.get_status(user_id, now=now)
