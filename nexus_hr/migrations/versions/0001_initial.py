"""Initial HR schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


user_role = _enum("user_role", "ADMIN", "HR", "MANAGER", "EMPLOYEE")
employee_status = _enum("employee_status", "ACTIVE", "INACTIVE", "ON_LEAVE", "TERMINATED")
attendance_status = _enum("attendance_status", "PRESENT", "ABSENT", "LATE", "HALF_DAY", "ON_LEAVE")
leave_type = _enum(
    "leave_type", "ANNUAL", "SICK", "PERSONAL", "MATERNITY", "PATERNITY", "UNPAID", "BEREAVEMENT"
)
leave_status = _enum("leave_status", "PENDING", "APPROVED", "REJECTED")
payroll_status = _enum("payroll_status", "PENDING", "PAID")
document_category = _enum(
    "document_category", "CONTRACT", "POLICY", "CERTIFICATE", "ID", "PAYSLIP", "PERFORMANCE", "OTHER"
)
asset_category = _enum(
    "asset_category", "LAPTOP", "PHONE", "TABLET", "MONITOR", "KEYBOARD", "MOUSE", "HEADSET", "OTHER"
)
asset_status = _enum("asset_status", "AVAILABLE", "ASSIGNED", "UNDER_REPAIR", "RETIRED")
review_type = _enum("review_type", "ANNUAL", "QUARTERLY", "PROBATION", "PROJECT")
review_status = _enum("review_status", "DRAFT", "SUBMITTED", "COMPLETED")
goal_category = _enum("goal_category", "PERFORMANCE", "DEVELOPMENT", "BEHAVIORAL", "PROJECT")
goal_status = _enum("goal_status", "NOT_STARTED", "IN_PROGRESS", "COMPLETED", "CANCELLED")
feedback_type = _enum("feedback_type", "POSITIVE", "CONSTRUCTIVE", "GENERAL")
onboarding_status = _enum("onboarding_status", "PENDING", "IN_PROGRESS", "COMPLETED")
onboarding_task_status = _enum("onboarding_task_status", "PENDING", "IN_PROGRESS", "COMPLETED", "SKIPPED")

ALL_ENUMS = (
    user_role,
    employee_status,
    attendance_status,
    leave_type,
    leave_status,
    payroll_status,
    document_category,
    asset_category,
    asset_status,
    review_type,
    review_status,
    goal_category,
    goal_status,
    feedback_type,
    onboarding_status,
    onboarding_task_status,
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _employee_fk(name: str = "employee_id", *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(length=36), nullable=nullable)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "employees",
        _id(),
        sa.Column("employee_code", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("position", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("hire_date", sa.Date(), nullable=False),
        sa.Column("salary", sa.Float(), nullable=True),
        sa.Column("manager", sa.String(length=255), nullable=True),
        sa.Column(
            "skills",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("status", employee_status, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", name="uq_employees_user_id"),
    )
    op.create_index("ix_employees_employee_code", "employees", ["employee_code"], unique=True)
    op.create_index("ix_employees_email", "employees", ["email"], unique=True)
    op.create_index("ix_employees_department", "employees", ["department"])
    op.create_index("ix_employees_status", "employees", ["status"])

    op.create_table(
        "attendance_records",
        _id(),
        _employee_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("clock_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clock_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_hours", sa.Float(), nullable=True),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_records_employee_date"),
    )
    op.create_index("ix_attendance_records_employee_id", "attendance_records", ["employee_id"])
    op.create_index("ix_attendance_records_date", "attendance_records", ["date"])

    op.create_table(
        "leave_requests",
        _id(),
        _employee_fk(),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Float(), nullable=False),
        sa.Column("is_half_day", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", leave_status, nullable=False),
        sa.Column("approver_id", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approver_comments", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"])
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"])

    op.create_table(
        "payroll_records",
        _id(),
        _employee_fk(),
        sa.Column("pay_period_start", sa.Date(), nullable=False),
        sa.Column("pay_period_end", sa.Date(), nullable=False),
        sa.Column("base_salary", sa.Float(), nullable=False),
        sa.Column("allowances", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("deductions", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("bonus", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("gross_salary", sa.Float(), nullable=False),
        sa.Column("net_salary", sa.Float(), nullable=False),
        sa.Column("status", payroll_status, nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_payroll_records_employee_id", "payroll_records", ["employee_id"])

    op.create_table(
        "documents",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("category", document_category, nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("mime_type", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("is_confidential", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        _employee_fk(nullable=True),
        sa.Column("uploaded_by", sa.String(length=36), nullable=False),
        _timestamp("uploaded_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_documents_employee_id", "documents", ["employee_id"])

    op.create_table(
        "document_permissions",
        _id(),
        sa.Column("document_id", sa.String(length=36), nullable=False),
        _employee_fk(),
        sa.Column("can_view", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("can_edit", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("can_delete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("document_id", "employee_id", name="uq_document_permissions_document_employee"),
    )
    op.create_index("ix_document_permissions_document_id", "document_permissions", ["document_id"])
    op.create_index("ix_document_permissions_employee_id", "document_permissions", ["employee_id"])

    op.create_table(
        "assets",
        _id(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", asset_category, nullable=False),
        sa.Column("serial_number", sa.String(length=100), nullable=False),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("purchase_price", sa.Float(), nullable=False),
        sa.Column("status", asset_status, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _employee_fk(nullable=True),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("condition", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("serial_number", name="uq_assets_serial_number"),
    )
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_employee_id", "assets", ["employee_id"])

    op.create_table(
        "performance_reviews",
        _id(),
        _employee_fk(),
        sa.Column("reviewer_id", sa.String(length=36), nullable=False),
        sa.Column("review_type", review_type, nullable=False),
        sa.Column("review_period_start", sa.Date(), nullable=False),
        sa.Column("review_period_end", sa.Date(), nullable=False),
        sa.Column("overall_rating", sa.Float(), nullable=True),
        sa.Column("strengths", sa.Text(), nullable=True),
        sa.Column("areas_for_improvement", sa.Text(), nullable=True),
        sa.Column("goals", sa.Text(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("status", review_status, nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_performance_reviews_employee_id", "performance_reviews", ["employee_id"])

    op.create_table(
        "goals",
        _id(),
        _employee_fk(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=False),
        sa.Column("category", goal_category, nullable=False),
        sa.Column("status", goal_status, nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_goals_employee_id", "goals", ["employee_id"])

    op.create_table(
        "feedback",
        _id(),
        _employee_fk("to_employee_id"),
        _employee_fk("from_employee_id"),
        sa.Column("feedback_type", feedback_type, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["to_employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_feedback_to_employee_id", "feedback", ["to_employee_id"])
    op.create_index("ix_feedback_from_employee_id", "feedback", ["from_employee_id"])

    op.create_table(
        "onboarding_checklists",
        _id(),
        _employee_fk(),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_completion_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", onboarding_status, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_onboarding_checklists_employee_id", "onboarding_checklists", ["employee_id"])

    op.create_table(
        "onboarding_tasks",
        _id(),
        sa.Column("checklist_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("days_to_complete", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", onboarding_task_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(length=36), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["checklist_id"], ["onboarding_checklists.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_onboarding_tasks_checklist_id", "onboarding_tasks", ["checklist_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        _timestamp("ts_utc"),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("actor_role", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("onboarding_tasks")
    op.drop_table("onboarding_checklists")
    op.drop_table("feedback")
    op.drop_table("goals")
    op.drop_table("performance_reviews")
    op.drop_table("assets")
    op.drop_table("document_permissions")
    op.drop_table("documents")
    op.drop_table("payroll_records")
    op.drop_table("leave_requests")
    op.drop_table("attendance_records")
    op.drop_table("employees")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
