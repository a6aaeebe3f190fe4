from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import extract, select
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import Employee, PayrollRecord, PayrollStatus
from nexus_hr.schemas import PayrollProcessRequest, PayrollUpdate, TaxSummary, TaxSummaryItem
from nexus_hr.services.pagination import PageParams, paginate

_AMOUNT_FIELDS = ("base_salary", "allowances", "deductions", "tax_amount", "bonus")


@dataclass(frozen=True, slots=True)
class PayrollTotals:
    gross_salary: float
    net_salary: float


def compute_payroll_totals(
    *,
    base_salary: float,
    allowances: float = 0,
    deductions: float = 0,
    tax_amount: float = 0,
    bonus: float = 0,
) -> PayrollTotals:
    """gross = base + allowances + bonus; net = gross - deductions - tax. No rounding."""
    gross = base_salary + allowances + bonus
    return PayrollTotals(gross_salary=gross, net_salary=gross - deductions - tax_amount)


def _apply_totals(record: PayrollRecord) -> None:
    totals = compute_payroll_totals(
        base_salary=record.base_salary,
        allowances=record.allowances,
        deductions=record.deductions,
        tax_amount=record.tax_amount,
        bonus=record.bonus,
    )
    record.gross_salary = totals.gross_salary
    record.net_salary = totals.net_salary


def process_payroll(db: Session, payload: PayrollProcessRequest) -> PayrollRecord:
    if db.get(Employee, payload.employee_id) is None:
        raise not_found("Employee")

    record = PayrollRecord(
        employee_id=payload.employee_id,
        pay_period_start=payload.pay_period_start,
        pay_period_end=payload.pay_period_end,
        base_salary=payload.base_salary,
        allowances=payload.allowances,
        deductions=payload.deductions,
        tax_amount=payload.tax_amount,
        bonus=payload.bonus,
        status=PayrollStatus.PENDING,
    )
    _apply_totals(record)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_payroll_record(db: Session, record_id: str) -> PayrollRecord:
    record = db.scalar(
        select(PayrollRecord).options(selectinload(PayrollRecord.employee)).where(PayrollRecord.id == record_id)
    )
    if record is None:
        raise not_found("Payroll record")
    return record


def list_payroll_records(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    status: PayrollStatus | None = None,
    year: int | None = None,
    month: int | None = None,
) -> tuple[list[PayrollRecord], int]:
    if month is not None and not 1 <= month <= 12:
        raise bad_request("month must be between 1 and 12")

    stmt = select(PayrollRecord).options(selectinload(PayrollRecord.employee))
    if employee_id:
        stmt = stmt.where(PayrollRecord.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(PayrollRecord.status == status)
    if year is not None:
        stmt = stmt.where(extract("year", PayrollRecord.pay_period_start) == year)
    if month is not None:
        stmt = stmt.where(extract("month", PayrollRecord.pay_period_start) == month)
    stmt = stmt.order_by(PayrollRecord.pay_period_start.desc(), PayrollRecord.created_at.desc())
    return paginate(db, stmt, params)


def update_payroll_record(db: Session, record_id: str, payload: PayrollUpdate) -> PayrollRecord:
    record = get_payroll_record(db, record_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    for field_name, value in changes.items():
        setattr(record, field_name, value)
    if record.pay_period_end < record.pay_period_start:
        raise bad_request("payPeriodEnd must be on or after payPeriodStart")

    if any(field_name in changes for field_name in _AMOUNT_FIELDS):
        _apply_totals(record)
    if changes.get("status") == PayrollStatus.PAID and record.payment_date is None:
        record.payment_date = datetime.now(timezone.utc)

    db.commit()
    db.refresh(record)
    return record


def mark_payslip_sent(db: Session, record_id: str, *, now: datetime | None = None) -> PayrollRecord:
    record = get_payroll_record(db, record_id)
    record.status = PayrollStatus.PAID
    record.payment_date = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(record)
    return record


def get_tax_summary(db: Session, *, year: int, employee_id: str | None = None) -> TaxSummary:
    stmt = (
        select(PayrollRecord, Employee)
        .join(Employee, PayrollRecord.employee_id == Employee.id)
        .where(
            PayrollRecord.status == PayrollStatus.PAID,
            PayrollRecord.pay_period_start >= date(year, 1, 1),
            PayrollRecord.pay_period_start <= date(year, 12, 31),
        )
        .order_by(Employee.last_name.asc(), Employee.first_name.asc())
    )
    if employee_id:
        stmt = stmt.where(PayrollRecord.employee_id == employee_id)

    items: dict[str, TaxSummaryItem] = {}
    for record, employee in db.execute(stmt).all():
        item = items.get(employee.id)
        if item is None:
            item = TaxSummaryItem(
                employee_id=employee.id,
                employee_name=employee.full_name,
                record_count=0,
                total_gross=0,
                total_tax=0,
                total_net=0,
                total_bonus=0,
            )
            items[employee.id] = item
        item.record_count += 1
        item.total_gross += record.gross_salary
        item.total_tax += record.tax_amount
        item.total_net += record.net_salary
        item.total_bonus += record.bonus

    employees = list(items.values())
    return TaxSummary(
        year=year,
        employees=employees,
        total_gross=sum(item.total_gross for item in employees),
        total_tax=sum(item.total_tax for item in employees),
        total_net=sum(item.total_net for item in employees),
    )
