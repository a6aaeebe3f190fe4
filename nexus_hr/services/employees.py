from __future__ import annotations

import logging
import secrets
import time
from datetime import date
from typing import Any, Literal

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import ApiError, bad_request, not_found
from nexus_hr.models import Employee, EmployeeStatus, User, UserRole
from nexus_hr.schemas import BulkImportError, BulkImportResult, EmployeeCreate, EmployeeUpdate
from nexus_hr.security import hash_password
from nexus_hr.services.exports import ExportBundle, ExportColumn
from nexus_hr.services.pagination import PageParams, paginate

logger = logging.getLogger("nexus_hr.employees")

SortOrder = Literal["asc", "desc"]

SORTABLE_COLUMNS: dict[str, Any] = {
    "firstName": Employee.first_name,
    "lastName": Employee.last_name,
    "email": Employee.email,
    "employeeId": Employee.employee_code,
    "department": Employee.department,
    "position": Employee.position,
    "location": Employee.location,
    "hireDate": Employee.hire_date,
    "salary": Employee.salary,
    "status": Employee.status,
    "createdAt": Employee.created_at,
}

_NON_NULLABLE_FIELDS = frozenset(
    {"first_name", "last_name", "email", "position", "department", "location", "hire_date", "status"}
)

EXPORT_COLUMNS = [
    ExportColumn("employeeId", "Employee ID"),
    ExportColumn("firstName", "First Name"),
    ExportColumn("lastName", "Last Name"),
    ExportColumn("email", "Email"),
    ExportColumn("phone", "Phone"),
    ExportColumn("position", "Position"),
    ExportColumn("department", "Department"),
    ExportColumn("location", "Location"),
    ExportColumn("hireDate", "Hire Date"),
    ExportColumn("salary", "Salary"),
    ExportColumn("manager", "Manager"),
    ExportColumn("skills", "Skills"),
    ExportColumn("status", "Status"),
]


def generate_employee_code() -> str:
    # millisecond stamp alone collides inside a bulk import
    return f"EMP{int(time.time() * 1000)}{secrets.token_hex(2).upper()}"


def _search_clause(search: str) -> ColumnElement[bool]:
    pattern = f"%{search.strip()}%"
    return or_(
        Employee.first_name.ilike(pattern),
        Employee.last_name.ilike(pattern),
        Employee.email.ilike(pattern),
        Employee.employee_code.ilike(pattern),
    )


def _base_filters(
    *,
    search: str | None,
    department: str | None,
    status: EmployeeStatus | None,
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if search and search.strip():
        clauses.append(_search_clause(search))
    if department:
        clauses.append(Employee.department == department)
    if status is not None:
        clauses.append(Employee.status == status)
    return clauses


def list_employees(
    db: Session,
    params: PageParams,
    *,
    search: str | None = None,
    department: str | None = None,
    status: EmployeeStatus | None = None,
) -> tuple[list[Employee], int]:
    stmt = (
        select(Employee)
        .where(*_base_filters(search=search, department=department, status=status))
        .order_by(Employee.created_at.desc(), Employee.id.asc())
    )
    return paginate(db, stmt, params)


def parse_skills(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def search_employees(
    db: Session,
    params: PageParams,
    *,
    search: str | None = None,
    department: str | None = None,
    status: EmployeeStatus | None = None,
    position: str | None = None,
    location: str | None = None,
    hired_after: date | None = None,
    hired_before: date | None = None,
    salary_min: float | None = None,
    salary_max: float | None = None,
    skills: list[str] | None = None,
    sort_by: str = "createdAt",
    sort_order: SortOrder = "desc",
) -> tuple[list[Employee], int]:
    if sort_by not in SORTABLE_COLUMNS:
        raise bad_request(f"Cannot sort by '{sort_by}'")
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise bad_request("salaryMin must not exceed salaryMax")

    clauses = _base_filters(search=search, department=department, status=status)
    if position:
        clauses.append(Employee.position.ilike(f"%{position}%"))
    if location:
        clauses.append(Employee.location.ilike(f"%{location}%"))
    if hired_after is not None:
        clauses.append(Employee.hire_date >= hired_after)
    if hired_before is not None:
        clauses.append(Employee.hire_date <= hired_before)
    if salary_min is not None:
        clauses.append(Employee.salary >= salary_min)
    if salary_max is not None:
        clauses.append(Employee.salary <= salary_max)

    column = SORTABLE_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    stmt = select(Employee).where(*clauses).order_by(ordering, Employee.id.asc())

    if not skills:
        return paginate(db, stmt, params)

    # skills live in a JSON array; containment is checked here so sqlite and postgres behave the same
    wanted = {skill.lower() for skill in skills}
    matched = [
        employee
        for employee in db.scalars(stmt).all()
        if wanted.issubset({str(item).lower() for item in employee.skills or []})
    ]
    return matched[params.offset : params.offset + params.limit], len(matched)


def get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.scalar(
        select(Employee).options(selectinload(Employee.user)).where(Employee.id == employee_id)
    )
    if employee is None:
        raise not_found("Employee")
    return employee


def _ensure_email_available(db: Session, email: str, *, exclude_employee_id: str | None = None) -> None:
    stmt = select(Employee.id).where(Employee.email == email)
    if exclude_employee_id is not None:
        stmt = stmt.where(Employee.id != exclude_employee_id)
    if db.scalar(stmt) is not None:
        raise bad_request("Employee with this email already exists", code="EMAIL_TAKEN")


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    """Create the employee and its login account in one commit.

    The account gets a random password; the employee sets a real one through
    the password change flow.
    """
    email = str(payload.email).lower()
    _ensure_email_available(db, email)

    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(secrets.token_urlsafe(16)),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=UserRole.EMPLOYEE,
            is_active=True,
        )
        db.add(user)
        db.flush()
    elif user.employee is not None:
        raise bad_request("Employee with this email already exists", code="EMAIL_TAKEN")

    employee = Employee(
        employee_code=payload.employee_code or generate_employee_code(),
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        phone=payload.phone,
        position=payload.position,
        department=payload.department,
        location=payload.location,
        hire_date=payload.hire_date,
        salary=payload.salary,
        manager=payload.manager,
        skills=list(payload.skills),
        status=EmployeeStatus.ACTIVE,
        user_id=user.id,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise bad_request("Employee ID or email already in use", code="DUPLICATE_EMPLOYEE") from exc
    db.refresh(employee)
    return employee


def update_employee(db: Session, employee_id: str, payload: EmployeeUpdate) -> Employee:
    employee = get_employee(db, employee_id)
    changes = payload.model_dump(exclude_unset=True)

    if "email" in changes and changes["email"] is not None:
        changes["email"] = str(changes["email"]).lower()
        _ensure_email_available(db, changes["email"], exclude_employee_id=employee.id)

    for field_name, value in changes.items():
        if value is None and field_name in _NON_NULLABLE_FIELDS:
            continue
        if field_name == "skills":
            value = list(value or [])
        setattr(employee, field_name, value)

    db.commit()
    db.refresh(employee)
    return employee


def delete_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee")
    db.delete(employee)
    db.commit()
    return employee


def bulk_import_employees(db: Session, payloads: list[EmployeeCreate]) -> BulkImportResult:
    """Rows are committed one at a time; a failing row never undoes the rows before it."""
    if not payloads:
        raise bad_request("Invalid employees data")

    success = 0
    errors: list[BulkImportError] = []
    for payload in payloads:
        try:
            create_employee(db, payload)
        except ApiError as exc:
            errors.append(BulkImportError(email=str(payload.email), error=exc.message))
            continue
        success += 1

    logger.info(
        "employee_bulk_import",
        extra={"success": success, "failed": len(errors)},
    )
    return BulkImportResult(success=success, failed=len(errors), errors=errors)


def export_employees(
    db: Session,
    *,
    department: str | None = None,
    status: EmployeeStatus | None = None,
) -> ExportBundle:
    stmt = (
        select(Employee)
        .where(*_base_filters(search=None, department=department, status=status))
        .order_by(Employee.created_at.desc(), Employee.id.asc())
    )
    rows = [
        {
            "employeeId": employee.employee_code,
            "firstName": employee.first_name,
            "lastName": employee.last_name,
            "email": employee.email,
            "phone": employee.phone,
            "position": employee.position,
            "department": employee.department,
            "location": employee.location,
            "hireDate": employee.hire_date,
            "salary": employee.salary,
            "manager": employee.manager,
            "skills": employee.skills or [],
            "status": employee.status,
        }
        for employee in db.scalars(stmt).all()
    ]
    return ExportBundle(
        name="employees",
        columns=EXPORT_COLUMNS,
        rows=rows,
        filters={"department": department, "status": status},
    )
