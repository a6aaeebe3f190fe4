from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy.orm import Session

from nexus_hr.db import get_db
from nexus_hr.errors import ApiError
from nexus_hr.models import User, UserRole
from nexus_hr.rate_limit import SlidingWindowCounter
from nexus_hr.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_settings = get_settings()
_FAILED_ATTEMPTS = SlidingWindowCounter(
    max_hits=_settings.auth_rate_limit_max_attempts,
    window=timedelta(seconds=_settings.rate_limit_window_seconds),
)

MANAGEMENT_ROLES: tuple[UserRole, ...] = (UserRole.ADMIN, UserRole.HR)
SUPERVISOR_ROLES: tuple[UserRole, ...] = (UserRole.ADMIN, UserRole.HR, UserRole.MANAGER)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller resolved from the bearer token."""

    id: str
    email: str
    role: UserRole
    employee_id: str | None = None

    @property
    def actor_id(self) -> str:
        return self.employee_id or self.id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_login_attempt_allowed(ip: str) -> None:
    if _FAILED_ATTEMPTS.is_exhausted(ip):
        raise ApiError(
            status_code=429,
            code="TOO_MANY_ATTEMPTS",
            message="Too many login attempts, please try again later.",
        )


def register_login_failure(ip: str) -> None:
    _FAILED_ATTEMPTS.hit(ip)


def register_login_success(ip: str) -> None:
    _FAILED_ATTEMPTS.clear(ip)


def reset_login_attempts() -> None:
    _FAILED_ATTEMPTS.reset()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Seeded or imported rows may carry a hash passlib does not recognise.
        return False


def create_access_token(user: User) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in, claims


def decode_token(token: str, *, expected_type: str = "access") -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Invalid or expired token") from exc

    if payload.get("typ") != expected_type:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Invalid or expired token")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Invalid or expired token")

    return payload


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="AUTH_REQUIRED", message="Authentication required")

    payload = decode_token(credentials.credentials)
    user = db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Invalid or expired token")

    current = CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        employee_id=user.employee.id if user.employee is not None else None,
    )
    request.state.actor = current.role.value
    request.state.actor_id = current.id
    return current


def require_roles(*roles: UserRole) -> Callable[..., CurrentUser]:
    if not roles:
        raise ValueError("require_roles needs at least one role")
    allowed = frozenset(roles)

    def _dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions")
        return current_user

    return _dependency
