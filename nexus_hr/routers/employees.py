from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import EmployeeStatus, UserRole
from nexus_hr.schemas import (
    BulkImportRequest,
    BulkImportResult,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeRead,
    EmployeeUpdate,
    Envelope,
    MessageEnvelope,
    PageMeta,
)
from nexus_hr.security import MANAGEMENT_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.employees import (
    bulk_import_employees,
    create_employee,
    delete_employee,
    export_employees,
    get_employee,
    list_employees,
    parse_skills,
    search_employees,
    update_employee,
)
from nexus_hr.services.exports import ExportFormat, build_export_response
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/employees", tags=["employees"])


@router.get("", response_model=Envelope[list[EmployeeRead]])
def list_employees_endpoint(
    search: str | None = Query(default=None),
    department: str | None = Query(default=None),
    status_filter: EmployeeStatus | None = Query(default=None, alias="status"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch employees"):
        rows, total = list_employees(db, params, search=search, department=department, status=status_filter)
        return Envelope(
            data=[EmployeeRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/search", response_model=Envelope[list[EmployeeRead]])
def search_employees_endpoint(
    search: str | None = Query(default=None),
    department: str | None = Query(default=None),
    status_filter: EmployeeStatus | None = Query(default=None, alias="status"),
    position: str | None = Query(default=None),
    location: str | None = Query(default=None),
    hired_after: date | None = Query(default=None, alias="hiredAfter"),
    hired_before: date | None = Query(default=None, alias="hiredBefore"),
    salary_min: float | None = Query(default=None, alias="salaryMin", ge=0),
    salary_max: float | None = Query(default=None, alias="salaryMax", ge=0),
    skills: str | None = Query(default=None),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to search employees"):
        rows, total = search_employees(
            db,
            params,
            search=search,
            department=department,
            status=status_filter,
            position=position,
            location=location,
            hired_after=hired_after,
            hired_before=hired_before,
            salary_min=salary_min,
            salary_max=salary_max,
            skills=parse_skills(skills),
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return Envelope(
            data=[EmployeeRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/export")
def export_employees_endpoint(
    export_format: ExportFormat = Query(default="json", alias="format"),
    department: str | None = Query(default=None),
    status_filter: EmployeeStatus | None = Query(default=None, alias="status"),
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Response:
    with failure_message("Failed to export employees"):
        bundle = export_employees(db, department=department, status=status_filter)
        return build_export_response(bundle, export_format)


@router.post("/bulk-import", response_model=Envelope[BulkImportResult])
def bulk_import_endpoint(
    payload: BulkImportRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to import employees"):
        result = bulk_import_employees(db, payload.employees)
        audit_request(
            db,
            request,
            current_user,
            action="EMPLOYEES_BULK_IMPORTED",
            entity_type="employee",
            details={"success": result.success, "failed": result.failed},
        )
        return Envelope(
            data=result,
            message=f"Imported {result.success} employees, {result.failed} failed",
        )


@router.get("/{employee_id}", response_model=Envelope[EmployeeDetail])
def get_employee_endpoint(
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch employee"):
        return Envelope(data=EmployeeDetail.model_validate(get_employee(db, employee_id)))


@router.post("", response_model=Envelope[EmployeeRead], status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create employee"):
        employee = create_employee(db, payload)
        audit_request(
            db,
            request,
            current_user,
            action="EMPLOYEE_CREATED",
            entity_type="employee",
            entity_id=employee.id,
            details={"employee_code": employee.employee_code, "email": employee.email},
        )
        return Envelope(data=EmployeeRead.model_validate(employee), message="Employee created successfully")


@router.put("/{employee_id}", response_model=Envelope[EmployeeRead])
def update_employee_endpoint(
    employee_id: str,
    payload: EmployeeUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update employee"):
        employee = update_employee(db, employee_id, payload)
        audit_request(
            db,
            request,
            current_user,
            action="EMPLOYEE_UPDATED",
            entity_type="employee",
            entity_id=employee.id,
            details={"fields": sorted(payload.model_dump(exclude_unset=True))},
        )
        return Envelope(data=EmployeeRead.model_validate(employee), message="Employee updated successfully")


@router.delete("/{employee_id}", response_model=MessageEnvelope)
def delete_employee_endpoint(
    employee_id: str,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete employee"):
        employee = delete_employee(db, employee_id)
        audit_request(
            db,
            request,
            current_user,
            action="EMPLOYEE_DELETED",
            entity_type="employee",
            entity_id=employee_id,
            details={"employee_code": employee.employee_code},
        )
        return MessageEnvelope(message="Employee deleted successfully")
