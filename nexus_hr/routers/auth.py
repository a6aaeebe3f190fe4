from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import ApiError, failure_message
from nexus_hr.models import User
from nexus_hr.rate_limit import client_ip
from nexus_hr.schemas import (
    AuthPayload,
    Envelope,
    LoginRequest,
    MessageEnvelope,
    PasswordChangeRequest,
    RegisterRequest,
    UserRead,
)
from nexus_hr.security import (
    CurrentUser,
    create_access_token,
    ensure_login_attempt_allowed,
    get_current_user,
    register_login_failure,
    register_login_success,
)
from nexus_hr.services.accounts import authenticate, change_password, get_user, register_user, to_user_read

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_payload(user: User) -> AuthPayload:
    token, _expires_in, _claims = create_access_token(user)
    return AuthPayload(token=token, user=to_user_read(user))


@router.post("/register", response_model=Envelope[AuthPayload], status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, request: Request, db: Session = Depends(get_db)) -> Envelope:
    ip = client_ip(request)
    ensure_login_attempt_allowed(ip)
    with failure_message("Failed to register user"):
        try:
            user = register_user(db, payload)
        except ApiError:
            register_login_failure(ip)
            raise
        register_login_success(ip)
        request.state.actor_id = user.id
        audit_request(
            db,
            request,
            None,
            action="USER_REGISTERED",
            entity_type="user",
            entity_id=user.id,
            details={"email": user.email, "role": user.role.value},
        )
        return Envelope(data=_auth_payload(user), message="User registered successfully")


@router.post("/login", response_model=Envelope[AuthPayload])
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)) -> Envelope:
    ip = client_ip(request)
    ensure_login_attempt_allowed(ip)
    with failure_message("Failed to login"):
        user = authenticate(db, str(payload.email), payload.password)
        if user is None:
            register_login_failure(ip)
            audit_request(
                db,
                request,
                None,
                action="LOGIN_FAILED",
                entity_type="user",
                success=False,
                details={"email": str(payload.email).lower()},
            )
            raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials")

        register_login_success(ip)
        request.state.actor = user.role.value
        request.state.actor_id = user.id
        audit_request(
            db,
            request,
            None,
            action="LOGIN_SUCCESS",
            entity_type="user",
            entity_id=user.id,
        )
        return Envelope(data=_auth_payload(user), message="Login successful")


@router.get("/profile", response_model=Envelope[UserRead])
def profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch profile"):
        return Envelope(data=to_user_read(get_user(db, current_user.id)))


@router.post("/logout", response_model=MessageEnvelope)
def logout(current_user: CurrentUser = Depends(get_current_user)) -> MessageEnvelope:
    # tokens are stateless; the client drops its copy
    return MessageEnvelope(message="Logged out successfully")


@router.post("/refresh", response_model=Envelope[AuthPayload])
def refresh(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to refresh token"):
        user = get_user(db, current_user.id)
        return Envelope(data=_auth_payload(user), message="Token refreshed")


@router.post("/password/change", response_model=MessageEnvelope)
def password_change(
    payload: PasswordChangeRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to change password"):
        change_password(
            db,
            current_user.id,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
        audit_request(db, request, current_user, action="PASSWORD_CHANGED", entity_type="user", entity_id=current_user.id)
        return MessageEnvelope(message="Password changed successfully")
