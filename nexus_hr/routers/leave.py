from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import LeaveRequest, LeaveStatus, LeaveType
from nexus_hr.schemas import (
    Envelope,
    LeaveBalance,
    LeaveCreate,
    LeaveDecision,
    LeavePolicy,
    LeaveRead,
    LeaveUpdate,
    MessageEnvelope,
    PageMeta,
)
from nexus_hr.security import SUPERVISOR_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.leaves import (
    create_leave_request,
    decide_leave_request,
    delete_leave_request,
    get_leave_balance,
    get_leave_calendar,
    get_leave_request,
    list_leave_policies,
    list_leave_requests,
    update_leave_request,
)
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/leave", tags=["leave"])


def _audit_decision(
    db: Session,
    request: Request,
    current_user: CurrentUser,
    leave: LeaveRequest,
    action: str,
) -> None:
    audit_request(
        db,
        request,
        current_user,
        action=action,
        entity_type="leave_request",
        entity_id=leave.id,
        details={
            "employee_id": leave.employee_id,
            "approver_id": leave.approver_id,
            "days": float(leave.days),
        },
    )


@router.post("/requests", response_model=Envelope[LeaveRead], status_code=status.HTTP_201_CREATED)
def create_request_endpoint(
    payload: LeaveCreate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create leave request"):
        leave = create_leave_request(db, payload)
        audit_request(
            db,
            request,
            current_user,
            action="LEAVE_REQUESTED",
            entity_type="leave_request",
            entity_id=leave.id,
            details={"employee_id": leave.employee_id, "leave_type": leave.leave_type.value},
        )
        return Envelope(data=LeaveRead.model_validate(leave), message="Leave request submitted successfully")


@router.get("/requests", response_model=Envelope[list[LeaveRead]])
def list_requests_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    leave_type: LeaveType | None = Query(default=None, alias="leaveType"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch leave requests"):
        rows, total = list_leave_requests(
            db,
            params,
            employee_id=employee_id,
            status=status_filter,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
        )
        return Envelope(
            data=[LeaveRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/requests/{request_id}", response_model=Envelope[LeaveRead])
def get_request_endpoint(
    request_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch leave request"):
        return Envelope(data=LeaveRead.model_validate(get_leave_request(db, request_id)))


@router.put("/requests/{request_id}", response_model=Envelope[LeaveRead])
def update_request_endpoint(
    request_id: str,
    payload: LeaveUpdate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update leave request"):
        leave = update_leave_request(db, request_id, payload)
        return Envelope(data=LeaveRead.model_validate(leave), message="Leave request updated successfully")


@router.delete("/requests/{request_id}", response_model=MessageEnvelope)
def delete_request_endpoint(
    request_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete leave request"):
        delete_leave_request(db, request_id)
        return MessageEnvelope(message="Leave request deleted successfully")


@router.post("/requests/{request_id}/approve", response_model=Envelope[LeaveRead])
def approve_request_endpoint(
    request_id: str,
    payload: LeaveDecision,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*SUPERVISOR_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to approve leave request"):
        leave = decide_leave_request(
            db,
            request_id,
            status=LeaveStatus.APPROVED,
            payload=payload,
            approver_id=current_user.actor_id,
        )
        _audit_decision(db, request, current_user, leave, "LEAVE_APPROVED")
        return Envelope(data=LeaveRead.model_validate(leave), message="Leave request approved")


@router.post("/requests/{request_id}/reject", response_model=Envelope[LeaveRead])
def reject_request_endpoint(
    request_id: str,
    payload: LeaveDecision,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*SUPERVISOR_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to reject leave request"):
        leave = decide_leave_request(
            db,
            request_id,
            status=LeaveStatus.REJECTED,
            payload=payload,
            approver_id=current_user.actor_id,
        )
        _audit_decision(db, request, current_user, leave, "LEAVE_REJECTED")
        return Envelope(data=LeaveRead.model_validate(leave), message="Leave request rejected")


@router.get("/balance/{employee_id}", response_model=Envelope[LeaveBalance])
def balance_endpoint(
    employee_id: str,
    year: int | None = Query(default=None, ge=1970, le=9999),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch leave balance"):
        target_year = year or datetime.now(timezone.utc).year
        return Envelope(data=get_leave_balance(db, employee_id, year=target_year))


@router.get("/calendar", response_model=Envelope[list[LeaveRead]])
def calendar_endpoint(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    department: str | None = Query(default=None),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch leave calendar"):
        rows = get_leave_calendar(db, start_date=start_date, end_date=end_date, department=department)
        return Envelope(data=[LeaveRead.model_validate(item) for item in rows])


@router.get("/policies", response_model=Envelope[list[LeavePolicy]])
def policies_endpoint(_current_user: CurrentUser = Depends(get_current_user)) -> Envelope:
    return Envelope(data=list_leave_policies())
