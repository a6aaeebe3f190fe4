from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nexus_hr.errors import ApiError, bad_request, not_found
from nexus_hr.models import Employee, EmployeeStatus, User, UserRole
from nexus_hr.schemas import RegisterRequest, UserRead, check_password_strength
from nexus_hr.security import hash_password, verify_password
from nexus_hr.services.employees import generate_employee_code

PLACEHOLDER = "Not Assigned"


def to_user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        employee_id=user.employee.id if user.employee is not None else None,
        created_at=user.created_at,
    )


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Create a login account plus a placeholder employee profile HR fills in later."""
    email = str(payload.email).lower()
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        raise bad_request("User already exists", code="EMAIL_TAKEN")

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        # open registration: the requested role is honoured, ADMIN included
        role=payload.role or UserRole.EMPLOYEE,
        is_active=True,
    )
    db.add(user)
    db.flush()

    if db.scalar(select(Employee.id).where(Employee.email == email)) is None:
        db.add(
            Employee(
                employee_code=generate_employee_code(),
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=email,
                position=PLACEHOLDER,
                department=PLACEHOLDER,
                location=PLACEHOLDER,
                hire_date=datetime.now(timezone.utc).date(),
                status=EmployeeStatus.ACTIVE,
                user_id=user.id,
            )
        )

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise bad_request("User already exists", code="EMAIL_TAKEN") from exc
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.scalar(select(User).where(User.email == email.lower()))
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise not_found("User")
    return user


def change_password(db: Session, user_id: str, *, current_password: str, new_password: str) -> None:
    user = get_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise bad_request("Current password is incorrect", code="INVALID_PASSWORD")
    try:
        check_password_strength(new_password)
    except ValueError as exc:
        raise ApiError(status_code=400, code="WEAK_PASSWORD", message=str(exc)) from exc

    user.password_hash = hash_password(new_password)
    db.commit()
