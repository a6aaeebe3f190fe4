from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import bad_request, failure_message
from nexus_hr.models import AttendanceRecord, AttendanceStatus
from nexus_hr.schemas import (
    AttendanceRead,
    AttendanceStats,
    AttendanceSummary,
    AttendanceUpdate,
    ClockInRequest,
    ClockOutRequest,
    Envelope,
    MarkAbsentRequest,
    PageMeta,
)
from nexus_hr.security import MANAGEMENT_ROLES, SUPERVISOR_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.attendance import (
    clock_in,
    clock_out,
    export_attendance,
    get_attendance_stats,
    get_monthly_summary,
    list_attendance,
    mark_absent,
    update_attendance,
)
from nexus_hr.services.exports import ExportFormat, build_export_response
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


def _resolve_employee_id(requested: str | None, current_user: CurrentUser) -> str:
    employee_id = requested or current_user.employee_id
    if not employee_id:
        raise bad_request("employeeId is required", code="EMPLOYEE_REQUIRED")
    return employee_id


def _audit_transition(
    db: Session,
    request: Request,
    current_user: CurrentUser,
    record: AttendanceRecord,
    action: str,
) -> None:
    request.state.employee_id = record.employee_id
    audit_request(
        db,
        request,
        current_user,
        action=action,
        entity_type="attendance_record",
        entity_id=record.id,
        details={
            "employee_id": record.employee_id,
            "date": record.date.isoformat(),
            "status": record.status.value,
        },
    )


@router.post("/clock-in", response_model=Envelope[AttendanceRead])
def clock_in_endpoint(
    payload: ClockInRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to clock in"):
        employee_id = _resolve_employee_id(payload.employee_id, current_user)
        record = clock_in(db, employee_id, location=payload.location, notes=payload.notes)
        _audit_transition(db, request, current_user, record, "ATTENDANCE_CLOCK_IN")
        return Envelope(data=AttendanceRead.model_validate(record), message="Clocked in successfully")


@router.post("/clock-out", response_model=Envelope[AttendanceRead])
def clock_out_endpoint(
    payload: ClockOutRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to clock out"):
        employee_id = _resolve_employee_id(payload.employee_id, current_user)
        record = clock_out(db, employee_id, notes=payload.notes)
        _audit_transition(db, request, current_user, record, "ATTENDANCE_CLOCK_OUT")
        return Envelope(data=AttendanceRead.model_validate(record), message="Clocked out successfully")


@router.post("/mark-absent", response_model=Envelope[AttendanceRead], status_code=status.HTTP_201_CREATED)
def mark_absent_endpoint(
    payload: MarkAbsentRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*SUPERVISOR_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to mark absent"):
        record = mark_absent(db, payload.employee_id, day=payload.date, notes=payload.notes)
        _audit_transition(db, request, current_user, record, "ATTENDANCE_MARKED_ABSENT")
        return Envelope(data=AttendanceRead.model_validate(record), message="Marked absent successfully")


@router.get("/records", response_model=Envelope[list[AttendanceRead]])
def list_records_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    status_filter: AttendanceStatus | None = Query(default=None, alias="status"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch attendance records"):
        rows, total = list_attendance(
            db,
            params,
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            status=status_filter,
        )
        return Envelope(
            data=[AttendanceRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/stats", response_model=Envelope[AttendanceStats])
def stats_endpoint(
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch attendance statistics"):
        return Envelope(data=get_attendance_stats(db))


@router.get("/summary/{employee_id}", response_model=Envelope[AttendanceSummary])
def summary_endpoint(
    employee_id: str,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch attendance summary"):
        return Envelope(data=get_monthly_summary(db, employee_id, year=year, month=month))


@router.get("/export")
def export_endpoint(
    export_format: ExportFormat = Query(default="json", alias="format"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    department: str | None = Query(default=None),
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Response:
    with failure_message("Failed to export attendance"):
        bundle = export_attendance(db, start_date=start_date, end_date=end_date, department=department)
        return build_export_response(bundle, export_format)


@router.put("/{record_id}", response_model=Envelope[AttendanceRead])
def update_record_endpoint(
    record_id: str,
    payload: AttendanceUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update attendance record"):
        record = update_attendance(db, record_id, payload)
        _audit_transition(db, request, current_user, record, "ATTENDANCE_UPDATED")
        return Envelope(data=AttendanceRead.model_validate(record), message="Attendance updated successfully")
