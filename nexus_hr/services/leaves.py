from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import Employee, LeaveRequest, LeaveStatus, LeaveType
from nexus_hr.schemas import (
    LeaveBalance,
    LeaveBalanceItem,
    LeaveCreate,
    LeaveDecision,
    LeavePolicy,
    LeaveUpdate,
)
from nexus_hr.services.pagination import PageParams, paginate

LEAVE_ENTITLEMENTS: dict[LeaveType, float] = {
    LeaveType.ANNUAL: 20,
    LeaveType.SICK: 10,
    LeaveType.PERSONAL: 5,
    LeaveType.MATERNITY: 90,
    LeaveType.PATERNITY: 10,
    LeaveType.UNPAID: 0,
    LeaveType.BEREAVEMENT: 3,
}

_POLICY_DESCRIPTIONS: dict[LeaveType, str] = {
    LeaveType.ANNUAL: "Paid annual vacation leave",
    LeaveType.SICK: "Paid sick leave with medical certificate for absences over 2 days",
    LeaveType.PERSONAL: "Paid personal leave for personal matters",
    LeaveType.MATERNITY: "Paid maternity leave",
    LeaveType.PATERNITY: "Paid paternity leave",
    LeaveType.UNPAID: "Unpaid leave, subject to approval",
    LeaveType.BEREAVEMENT: "Paid leave following the death of a family member",
}


def calculate_leave_days(start_date: date, end_date: date, *, is_half_day: bool = False) -> float:
    """Inclusive calendar-day count; a half-day request is always 0.5."""
    if end_date < start_date:
        raise bad_request("End date must be on or after start date", code="INVALID_DATE_RANGE")
    if is_half_day:
        return 0.5
    return float((end_date - start_date).days + 1)


def summarize_leave_balance(
    requests: Iterable[LeaveRequest],
    *,
    entitlements: dict[LeaveType, float] = LEAVE_ENTITLEMENTS,
) -> list[LeaveBalanceItem]:
    used: dict[LeaveType, float] = {leave_type: 0.0 for leave_type in entitlements}
    for request in requests:
        if request.status != LeaveStatus.APPROVED:
            continue
        used[request.leave_type] = used.get(request.leave_type, 0.0) + float(request.days)

    return [
        LeaveBalanceItem(
            leave_type=leave_type,
            entitled=entitled,
            used=used.get(leave_type, 0.0),
            remaining=entitled - used.get(leave_type, 0.0),
        )
        for leave_type, entitled in entitlements.items()
    ]


def _require_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee")
    return employee


def get_leave_request(db: Session, request_id: str) -> LeaveRequest:
    leave = db.scalar(
        select(LeaveRequest).options(selectinload(LeaveRequest.employee)).where(LeaveRequest.id == request_id)
    )
    if leave is None:
        raise not_found("Leave request")
    return leave


def create_leave_request(db: Session, payload: LeaveCreate) -> LeaveRequest:
    _require_employee(db, payload.employee_id)
    days = calculate_leave_days(payload.start_date, payload.end_date, is_half_day=payload.is_half_day)

    leave = LeaveRequest(
        employee_id=payload.employee_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=days,
        is_half_day=payload.is_half_day,
        reason=payload.reason,
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    return leave


def list_leave_requests(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    status: LeaveStatus | None = None,
    leave_type: LeaveType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[LeaveRequest], int]:
    stmt = select(LeaveRequest).options(selectinload(LeaveRequest.employee))
    if employee_id:
        stmt = stmt.where(LeaveRequest.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    if leave_type is not None:
        stmt = stmt.where(LeaveRequest.leave_type == leave_type)
    if start_date is not None:
        stmt = stmt.where(LeaveRequest.start_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(LeaveRequest.end_date <= end_date)
    stmt = stmt.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.asc())
    return paginate(db, stmt, params)


def update_leave_request(db: Session, request_id: str, payload: LeaveUpdate) -> LeaveRequest:
    leave = get_leave_request(db, request_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    for field_name, value in changes.items():
        setattr(leave, field_name, value)

    if {"start_date", "end_date", "is_half_day"} & changes.keys():
        leave.days = calculate_leave_days(leave.start_date, leave.end_date, is_half_day=leave.is_half_day)

    db.commit()
    db.refresh(leave)
    return leave


def delete_leave_request(db: Session, request_id: str) -> None:
    leave = db.get(LeaveRequest, request_id)
    if leave is None:
        raise not_found("Leave request")
    db.delete(leave)
    db.commit()


def decide_leave_request(
    db: Session,
    request_id: str,
    *,
    status: LeaveStatus,
    payload: LeaveDecision,
    approver_id: str,
    now: datetime | None = None,
) -> LeaveRequest:
    """Record an approval or rejection.

    There is no PENDING precondition: deciding an already-decided request
    overwrites the earlier decision.
    """
    leave = get_leave_request(db, request_id)
    leave.status = status
    leave.approver_id = payload.approver_id or approver_id
    leave.approver_comments = payload.comments
    leave.approved_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(leave)
    return leave


def get_leave_balance(db: Session, employee_id: str, *, year: int) -> LeaveBalance:
    _require_employee(db, employee_id)
    requests = db.scalars(
        select(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.APPROVED,
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.end_date <= date(year, 12, 31),
        )
    ).all()
    return LeaveBalance(employee_id=employee_id, year=year, balances=summarize_leave_balance(requests))


def get_leave_calendar(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    department: str | None = None,
) -> list[LeaveRequest]:
    stmt = (
        select(LeaveRequest)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .options(selectinload(LeaveRequest.employee))
        .where(LeaveRequest.status == LeaveStatus.APPROVED)
    )
    # overlap with the requested window
    if start_date is not None:
        stmt = stmt.where(LeaveRequest.end_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(LeaveRequest.start_date <= end_date)
    if department:
        stmt = stmt.where(Employee.department == department)
    return list(db.scalars(stmt.order_by(LeaveRequest.start_date.asc())).all())


def list_leave_policies() -> list[LeavePolicy]:
    return [
        LeavePolicy(
            leave_type=leave_type,
            days_per_year=days,
            description=_POLICY_DESCRIPTIONS[leave_type],
        )
        for leave_type, days in LEAVE_ENTITLEMENTS.items()
    ]
