from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import PayrollRecord, PayrollStatus
from nexus_hr.schemas import (
    Envelope,
    PageMeta,
    PayrollProcessRequest,
    PayrollRead,
    PayrollUpdate,
    TaxSummary,
)
from nexus_hr.security import MANAGEMENT_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.pagination import PageParams, page_params
from nexus_hr.services.payroll import (
    get_payroll_record,
    get_tax_summary,
    list_payroll_records,
    mark_payslip_sent,
    process_payroll,
    update_payroll_record,
)

router = APIRouter(prefix="/api/payroll", tags=["payroll"])


def _amounts(record: PayrollRecord) -> dict[str, object]:
    return {
        "employee_id": record.employee_id,
        "gross_salary": record.gross_salary,
        "net_salary": record.net_salary,
        "status": record.status.value,
    }


def _page(rows: list[PayrollRecord], total: int, params: PageParams) -> Envelope:
    return Envelope(
        data=[PayrollRead.model_validate(item) for item in rows],
        meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
    )


@router.post("/process", response_model=Envelope[PayrollRead], status_code=status.HTTP_201_CREATED)
def process_endpoint(
    payload: PayrollProcessRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to process payroll"):
        record = process_payroll(db, payload)
        audit_request(
            db,
            request,
            current_user,
            action="PAYROLL_PROCESSED",
            entity_type="payroll_record",
            entity_id=record.id,
            details=_amounts(record),
        )
        return Envelope(data=PayrollRead.model_validate(record), message="Payroll processed successfully")


@router.get("/records", response_model=Envelope[list[PayrollRead]])
def list_records_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    status_filter: PayrollStatus | None = Query(default=None, alias="status"),
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch payroll records"):
        rows, total = list_payroll_records(
            db,
            params,
            employee_id=employee_id,
            status=status_filter,
            year=year,
            month=month,
        )
        return _page(rows, total, params)


@router.get("/records/employee/{employee_id}", response_model=Envelope[list[PayrollRead]])
def employee_records_endpoint(
    employee_id: str,
    year: int | None = Query(default=None, ge=1970, le=9999),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch employee payroll"):
        rows, total = list_payroll_records(db, params, employee_id=employee_id, year=year)
        return _page(rows, total, params)


@router.get("/records/{record_id}", response_model=Envelope[PayrollRead])
def get_record_endpoint(
    record_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch payroll record"):
        return Envelope(data=PayrollRead.model_validate(get_payroll_record(db, record_id)))


@router.put("/records/{record_id}", response_model=Envelope[PayrollRead])
def update_record_endpoint(
    record_id: str,
    payload: PayrollUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update payroll record"):
        record = update_payroll_record(db, record_id, payload)
        audit_request(
            db,
            request,
            current_user,
            action="PAYROLL_UPDATED",
            entity_type="payroll_record",
            entity_id=record.id,
            details=_amounts(record),
        )
        return Envelope(data=PayrollRead.model_validate(record), message="Payroll record updated successfully")


@router.post("/payslips/{record_id}/send", response_model=Envelope[PayrollRead])
def send_payslip_endpoint(
    record_id: str,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to send payslip"):
        record = mark_payslip_sent(db, record_id)
        audit_request(
            db,
            request,
            current_user,
            action="PAYSLIP_SENT",
            entity_type="payroll_record",
            entity_id=record.id,
            details=_amounts(record),
        )
        return Envelope(data=PayrollRead.model_validate(record), message="Payslip sent successfully")


@router.get("/tax-summary/{year}", response_model=Envelope[TaxSummary])
def tax_summary_endpoint(
    year: int,
    employee_id: str | None = Query(default=None, alias="employeeId"),
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch tax summary"):
        return Envelope(data=get_tax_summary(db, year=year, employee_id=employee_id))
