"""
Authentication for CloudGuard
HS256 bearer tokens and Argon2id password hashing
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import get_settings
from .utils.logging_security import sanitize_for_log

logger = logging.getLogger(__name__)
settings = get_settings()

# Argon2id password hashing
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=65536,  # 64MB
    argon2__time_cost=3,
    argon2__parallelism=1,
)

security = HTTPBearer()


class JWTManager:
    """Access token issue, verification and logout revocation"""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self._revoked: Set[str] = set()

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed access token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        to_encode.update(
            {
                "exp": expire,
                "iat": datetime.utcnow(),
                "jti": secrets.token_urlsafe(32),  # JWT ID for revocation
            }
        )
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify signature, expiry and revocation"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            )

        if payload.get("jti") in self._revoked:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has been revoked")
        return payload

    def revoke(self, payload: Dict[str, Any]) -> None:
        jti = payload.get("jti")
        if jti:
            self._revoked.add(jti)


# Global JWT manager instance
jwt_manager = JWTManager(settings.secret_key, settings.algorithm)


class PasswordManager:
    """Password hashing helpers"""

    @staticmethod
    def hash_password(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            return False


class SecurityAuditLogger:
    """Security event audit logging"""

    def __init__(self):
        self.audit_logger = logging.getLogger("cloudguard.audit")

    def log_login_attempt(self, username: str, success: bool, ip_address: Optional[str]):
        result = "SUCCESS" if success else "FAILED"
        self.audit_logger.info(
            f"LOGIN_{result} - User: {sanitize_for_log(username)}, IP: {sanitize_for_log(ip_address)}"
        )

    def log_security_event(self, event_type: str, details: str, ip_address: Optional[str]):
        self.audit_logger.warning(
            f"SECURITY_{event_type} - Details: {sanitize_for_log(details, allow_special=True)}, "
            f"IP: {sanitize_for_log(ip_address)}"
        )


audit_logger = SecurityAuditLogger()


def create_user_token(user) -> str:
    """Issue an access token for a User row"""
    return jwt_manager.create_access_token({"sub": user.username, "id": user.id, "role": user.role or "user"})


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """Current user claims from the bearer token"""
    payload = jwt_manager.verify_token(credentials.credentials)
    if payload.get("sub") is None or payload.get("id") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return payload
