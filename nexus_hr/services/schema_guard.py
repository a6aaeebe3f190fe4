from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, Inspector
from sqlalchemy.exc import SQLAlchemyError


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checkedAtUtc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issueCount": len(self.issues),
            "warningCount": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "password_hash", "role", "is_active"},
    "employees": {"id", "employee_code", "email", "status", "user_id"},
    "attendance_records": {"id", "employee_id", "date", "clock_in", "clock_out", "work_hours", "status"},
    "leave_requests": {"id", "employee_id", "leave_type", "days", "status", "approver_id"},
    "payroll_records": {"id", "employee_id", "gross_salary", "net_salary", "status"},
    "documents": {"id", "category", "file_path"},
    "document_permissions": {"id", "document_id", "employee_id"},
    "assets": {"id", "serial_number", "status", "employee_id"},
    "performance_reviews": {"id", "employee_id", "review_type"},
    "goals": {"id", "employee_id", "progress"},
    "feedback": {"id", "to_employee_id", "from_employee_id"},
    "onboarding_checklists": {"id", "employee_id", "status"},
    "onboarding_tasks": {"id", "checklist_id", "status"},
    "audit_logs": {"id", "action", "details"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "user_role": {"ADMIN", "HR", "MANAGER", "EMPLOYEE"},
    "attendance_status": {"PRESENT", "ABSENT", "LATE", "HALF_DAY", "ON_LEAVE"},
    "leave_status": {"PENDING", "APPROVED", "REJECTED"},
}


def _missing_columns(inspector: Inspector) -> list[str]:
    problems: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(column.get("name")) for column in inspector.get_columns(table_name)}
        except Exception as exc:  # missing table or lost connection
            problems.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        absent = sorted(required_columns - present)
        if absent:
            problems.append(f"MISSING_COLUMNS:{table_name}:{','.join(absent)}")
    return problems


def _enum_labels(inspector: Inspector) -> dict[str, set[str]]:
    labels_by_name: dict[str, set[str]] = {}
    for item in inspector.get_enums() or []:
        name = str(item.get("name") or "").strip()
        labels = item.get("labels")
        if name and isinstance(labels, list):
            labels_by_name[name] = {str(label) for label in labels}
    return labels_by_name


def _alembic_version(engine: Engine) -> str:
    with engine.connect() as connection:
        row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    return str(row).strip() if row is not None else ""


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Check that the connected database carries the tables, columns and enum labels the models expect."""
    inspector = inspect(engine)
    issues = _missing_columns(inspector)
    warnings: list[str] = []

    try:
        labels_by_name = _enum_labels(inspector)
    except (NotImplementedError, SQLAlchemyError) as exc:
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        labels_by_name = {}

    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        absent = sorted(required_values - labels_by_name[enum_name])
        if absent:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(absent)}")

    try:
        if not _alembic_version(engine):
            issues.append("ALEMBIC_VERSION_EMPTY")
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=datetime.now(timezone.utc),
        issues=issues,
        warnings=warnings,
    )
