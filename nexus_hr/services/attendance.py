from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import ApiError, bad_request, not_found
from nexus_hr.models import AttendanceRecord, AttendanceStatus, Employee, EmployeeStatus
from nexus_hr.schemas import AttendanceRead, AttendanceStats, AttendanceSummary, AttendanceUpdate
from nexus_hr.services.exports import ExportBundle, ExportColumn
from nexus_hr.services.pagination import PageParams, paginate
from nexus_hr.settings import get_attendance_timezone

EXPORT_COLUMNS = [
    ExportColumn("employeeId", "Employee ID"),
    ExportColumn("employeeName", "Employee Name"),
    ExportColumn("department", "Department"),
    ExportColumn("date", "Date"),
    ExportColumn("clockIn", "Clock In"),
    ExportColumn("clockOut", "Clock Out"),
    ExportColumn("workHours", "Work Hours"),
    ExportColumn("status", "Status"),
    ExportColumn("location", "Location"),
    ExportColumn("notes", "Notes"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    # sqlite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_day(moment: datetime, tz: ZoneInfo | None = None) -> date:
    return ensure_aware(moment).astimezone(tz or get_attendance_timezone()).date()


def calculate_work_hours(clock_in: datetime, clock_out: datetime) -> float:
    """Elapsed hours between clock-in and clock-out, rounded to two decimals."""
    seconds = (ensure_aware(clock_out) - ensure_aware(clock_in)).total_seconds()
    return round(seconds / 3600, 2)


def _require_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee")
    return employee


def _record_for_day(db: Session, employee_id: str, day: date) -> AttendanceRecord | None:
    return db.scalar(
        select(AttendanceRecord).where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.date == day,
        )
    )


def _commit_day_record(db: Session, message: str, code: str) -> None:
    # one record per employee and day; a concurrent insert trips the unique constraint
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise bad_request(message, code=code) from exc


def clock_in(
    db: Session,
    employee_id: str,
    *,
    location: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> AttendanceRecord:
    _require_employee(db, employee_id)
    now = ensure_aware(now or _utcnow())
    today = local_day(now)

    record = _record_for_day(db, employee_id, today)
    if record is not None and record.clock_in is not None:
        raise bad_request("Already clocked in today", code="ALREADY_CLOCKED_IN")

    if record is None:
        record = AttendanceRecord(employee_id=employee_id, date=today)
        db.add(record)
    record.clock_in = now
    record.status = AttendanceStatus.PRESENT
    record.location = location
    if notes is not None:
        record.notes = notes

    _commit_day_record(db, "Already clocked in today", "ALREADY_CLOCKED_IN")
    db.refresh(record)
    return record


def clock_out(
    db: Session,
    employee_id: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> AttendanceRecord:
    _require_employee(db, employee_id)
    now = ensure_aware(now or _utcnow())

    record = _record_for_day(db, employee_id, local_day(now))
    if record is None or record.clock_in is None:
        raise ApiError(status_code=404, code="CLOCK_IN_NOT_FOUND", message="No clock-in record found")
    if record.clock_out is not None:
        raise bad_request("Already clocked out", code="ALREADY_CLOCKED_OUT")

    record.clock_out = now
    record.work_hours = calculate_work_hours(record.clock_in, now)
    if notes is not None:
        record.notes = notes

    db.commit()
    db.refresh(record)
    return record


def mark_absent(
    db: Session,
    employee_id: str,
    *,
    day: date | None = None,
    notes: str | None = None,
) -> AttendanceRecord:
    _require_employee(db, employee_id)
    day = day or local_day(_utcnow())

    if _record_for_day(db, employee_id, day) is not None:
        raise bad_request("Attendance record already exists for this date", code="ATTENDANCE_EXISTS")

    record = AttendanceRecord(
        employee_id=employee_id,
        date=day,
        status=AttendanceStatus.ABSENT,
        notes=notes,
    )
    db.add(record)
    _commit_day_record(db, "Attendance record already exists for this date", "ATTENDANCE_EXISTS")
    db.refresh(record)
    return record


def update_attendance(db: Session, record_id: str, payload: AttendanceUpdate) -> AttendanceRecord:
    record = db.get(AttendanceRecord, record_id)
    if record is None:
        raise not_found("Attendance record")

    changes = payload.model_dump(exclude_unset=True)
    for field_name, value in changes.items():
        if value is None and field_name in {"status", "break_minutes"}:
            continue
        setattr(record, field_name, value)

    if payload.clock_in is not None and payload.clock_out is not None:
        record.work_hours = calculate_work_hours(payload.clock_in, payload.clock_out)

    db.commit()
    db.refresh(record)
    return record


def list_attendance(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: AttendanceStatus | None = None,
) -> tuple[list[AttendanceRecord], int]:
    stmt = select(AttendanceRecord).options(selectinload(AttendanceRecord.employee))
    if employee_id:
        stmt = stmt.where(AttendanceRecord.employee_id == employee_id)
    if start_date is not None:
        stmt = stmt.where(AttendanceRecord.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(AttendanceRecord.date <= end_date)
    if status is not None:
        stmt = stmt.where(AttendanceRecord.status == status)
    stmt = stmt.order_by(AttendanceRecord.date.desc(), AttendanceRecord.created_at.desc())
    return paginate(db, stmt, params)


def get_attendance_stats(db: Session, *, now: datetime | None = None) -> AttendanceStats:
    today = local_day(now or _utcnow())
    total_employees = db.scalar(
        select(func.count()).select_from(Employee).where(Employee.status == EmployeeStatus.ACTIVE)
    ) or 0

    counts: dict[AttendanceStatus, int] = {
        status: count
        for status, count in db.execute(
            select(AttendanceRecord.status, func.count())
            .where(AttendanceRecord.date == today)
            .group_by(AttendanceRecord.status)
        ).all()
    }
    average_hours = db.scalar(
        select(func.avg(AttendanceRecord.work_hours)).where(
            AttendanceRecord.date == today,
            AttendanceRecord.work_hours.is_not(None),
        )
    )

    present = counts.get(AttendanceStatus.PRESENT, 0)
    late = counts.get(AttendanceStatus.LATE, 0)
    half_day = counts.get(AttendanceStatus.HALF_DAY, 0)
    marked = sum(counts.values())
    attended = present + late + half_day
    return AttendanceStats(
        date=today,
        total_employees=total_employees,
        present=present,
        late=late,
        absent=counts.get(AttendanceStatus.ABSENT, 0),
        on_leave=counts.get(AttendanceStatus.ON_LEAVE, 0),
        not_marked=max(0, total_employees - marked),
        attendance_rate=round(attended / total_employees * 100, 2) if total_employees else 0.0,
        average_work_hours=round(float(average_hours or 0), 2),
    )


def get_monthly_summary(db: Session, employee_id: str, *, year: int, month: int) -> AttendanceSummary:
    _require_employee(db, employee_id)
    if not 1 <= month <= 12:
        raise bad_request("month must be between 1 and 12")

    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    records = list(
        db.scalars(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
            .order_by(AttendanceRecord.date.asc())
        ).all()
    )

    def _count(status: AttendanceStatus) -> int:
        return sum(1 for record in records if record.status == status)

    present = _count(AttendanceStatus.PRESENT)
    late = _count(AttendanceStatus.LATE)
    half_days = _count(AttendanceStatus.HALF_DAY)
    total_hours = round(sum(record.work_hours or 0 for record in records), 2)
    worked_days = sum(1 for record in records if record.work_hours)
    total_days = len(records)
    return AttendanceSummary(
        employee_id=employee_id,
        year=year,
        month=month,
        total_days=total_days,
        present_days=present,
        absent_days=_count(AttendanceStatus.ABSENT),
        late_days=late,
        half_days=half_days,
        leave_days=_count(AttendanceStatus.ON_LEAVE),
        total_work_hours=total_hours,
        average_work_hours=round(total_hours / worked_days, 2) if worked_days else 0.0,
        attendance_rate=round((present + late + half_days) / total_days * 100, 2) if total_days else 0.0,
        records=[AttendanceRead.model_validate(record) for record in records],
    )


def export_attendance(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    department: str | None = None,
) -> ExportBundle:
    stmt = select(AttendanceRecord, Employee).join(Employee, AttendanceRecord.employee_id == Employee.id)
    if start_date is not None:
        stmt = stmt.where(AttendanceRecord.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(AttendanceRecord.date <= end_date)
    if department:
        stmt = stmt.where(Employee.department == department)
    stmt = stmt.order_by(AttendanceRecord.date.desc(), Employee.last_name.asc())

    rows = [
        {
            "employeeId": employee.employee_code,
            "employeeName": employee.full_name,
            "department": employee.department,
            "date": record.date,
            "clockIn": record.clock_in,
            "clockOut": record.clock_out,
            "workHours": record.work_hours,
            "status": record.status,
            "location": record.location,
            "notes": record.notes,
        }
        for record, employee in db.execute(stmt).all()
    ]
    return ExportBundle(
        name="attendance",
        columns=EXPORT_COLUMNS,
        rows=rows,
        filters={"startDate": start_date, "endDate": end_date, "department": department},
    )
