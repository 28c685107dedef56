"""
User Service

Registration and credential checks.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import PasswordManager
from ..database import User
from ..schemas.auth_schemas import TrialStatus, UserCreate
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def register(self, data: UserCreate) -> User:
        """
        Create a user with an inactive trial.

        Raises:
            ValueError: Username or email already taken
        """
        existing = (
            self.db.query(User).filter(or_(User.username == data.username, User.email == data.email)).first()
        )
        if existing:
            if existing.username == data.username:
                raise ValueError("Username already exists")
            raise ValueError("Email already registered")

        user = User(
            username=data.username,
            email=data.email,
            password=PasswordManager.hash_password(data.password),
            full_name=data.full_name,
            role="user",
            trial_status=TrialStatus.INACTIVE.value,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, else None."""
        user = self.db.query(User).filter(User.username == username).first()
        if not user or not PasswordManager.verify_password(password, user.password):
            return None
        user.last_login_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user
