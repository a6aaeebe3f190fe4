import datetime as dt
import math
import re
from datetime import date, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from nexus_hr.models import (
    AssetCategory,
    AssetStatus,
    AttendanceStatus,
    DocumentCategory,
    EmployeeStatus,
    FeedbackType,
    GoalCategory,
    GoalStatus,
    LeaveStatus,
    LeaveType,
    OnboardingStatus,
    OnboardingTaskStatus,
    PayrollStatus,
    ReviewStatus,
    ReviewType,
    UserRole,
)

T = TypeVar("T")

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def check_password_strength(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    if not _SPECIAL_CHARACTERS.search(value):
        raise ValueError("Password must contain at least one special character")
    return value


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire. Both spellings are accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PageMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, *, total: int, page: int, limit: int) -> "PageMeta":
        return cls(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))


class Envelope(CamelModel, Generic[T]):
    status: Literal["success"] = "success"
    data: T | None = None
    message: str | None = None
    meta: PageMeta | None = None


class MessageEnvelope(CamelModel):
    status: Literal["success"] = "success"
    message: str


# Auth


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    role: UserRole | None = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str


class UserRead(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    employee_id: str | None = None
    created_at: datetime | None = None


class AuthPayload(CamelModel):
    token: str
    user: UserRead


# Employees


class EmployeeCreate(CamelModel):
    employee_code: str | None = Field(default=None, alias="employeeId", min_length=1, max_length=64)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    position: str = Field(min_length=1)
    department: str = Field(min_length=1)
    location: str = Field(min_length=1)
    hire_date: date
    salary: float | None = Field(default=None, gt=0)
    manager: str | None = None
    skills: list[str] = Field(default_factory=list)


class EmployeeUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    position: str | None = Field(default=None, min_length=1)
    department: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    hire_date: date | None = None
    salary: float | None = Field(default=None, gt=0)
    manager: str | None = None
    skills: list[str] | None = None
    status: EmployeeStatus | None = None


class EmployeeUserSummary(CamelModel):
    id: str
    email: str
    role: UserRole


class EmployeeRead(CamelModel):
    id: str
    employee_code: str = Field(alias="employeeId")
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    position: str
    department: str
    location: str
    hire_date: date
    salary: float | None = None
    manager: str | None = None
    skills: list[str] = Field(default_factory=list)
    status: EmployeeStatus
    user_id: str | None = None
    created_at: datetime
    updated_at: datetime


class EmployeeDetail(EmployeeRead):
    user: EmployeeUserSummary | None = None


class EmployeeSummary(CamelModel):
    id: str
    employee_code: str = Field(alias="employeeId")
    first_name: str
    last_name: str
    department: str


class BulkImportRequest(CamelModel):
    employees: list[EmployeeCreate]


class BulkImportError(CamelModel):
    email: str
    error: str


class BulkImportResult(CamelModel):
    success: int
    failed: int
    errors: list[BulkImportError] = Field(default_factory=list)


# Attendance


class ClockInRequest(CamelModel):
    employee_id: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=500)


class ClockOutRequest(CamelModel):
    employee_id: str | None = Field(default=None, min_length=1)
    notes: str | None = Field(default=None, max_length=500)


class MarkAbsentRequest(CamelModel):
    employee_id: str = Field(min_length=1)
    date: dt.date | None = None
    notes: str | None = Field(default=None, max_length=500)


class AttendanceUpdate(CamelModel):
    status: AttendanceStatus | None = None
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    work_hours: float | None = Field(default=None, ge=0)
    break_minutes: int | None = Field(default=None, ge=0)
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _validate_clock_order(self) -> "AttendanceUpdate":
        if self.clock_in is not None and self.clock_out is not None and self.clock_out < self.clock_in:
            raise ValueError("clockOut must be after clockIn")
        return self


class AttendanceRead(CamelModel):
    id: str
    employee_id: str
    date: dt.date
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    work_hours: float | None = None
    break_minutes: int = 0
    status: AttendanceStatus
    location: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


class AttendanceStats(CamelModel):
    date: dt.date
    total_employees: int
    present: int
    late: int
    absent: int
    on_leave: int
    not_marked: int
    attendance_rate: float
    average_work_hours: float


class AttendanceSummary(CamelModel):
    employee_id: str
    year: int
    month: int
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    half_days: int
    leave_days: int
    total_work_hours: float
    average_work_hours: float
    attendance_rate: float
    records: list[AttendanceRead] = Field(default_factory=list)


# Leave


class LeaveCreate(CamelModel):
    employee_id: str = Field(min_length=1)
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=10, max_length=1000)
    is_half_day: bool = False


class LeaveUpdate(CamelModel):
    leave_type: LeaveType | None = None
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, min_length=10, max_length=1000)
    is_half_day: bool | None = None


class LeaveDecision(CamelModel):
    approver_id: str | None = Field(default=None, min_length=1)
    comments: str | None = Field(default=None, max_length=500)


class LeaveRead(CamelModel):
    id: str
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: float
    is_half_day: bool
    reason: str
    status: LeaveStatus
    approver_id: str | None = None
    approved_at: datetime | None = None
    approver_comments: str | None = None
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


class LeaveBalanceItem(CamelModel):
    leave_type: LeaveType
    entitled: float
    used: float
    remaining: float


class LeaveBalance(CamelModel):
    employee_id: str
    year: int
    balances: list[LeaveBalanceItem]


class LeavePolicy(CamelModel):
    leave_type: LeaveType
    days_per_year: float
    description: str


# Payroll


class PayrollProcessRequest(CamelModel):
    employee_id: str = Field(min_length=1)
    pay_period_start: date
    pay_period_end: date
    base_salary: float = Field(gt=0)
    allowances: float = Field(default=0, ge=0)
    deductions: float = Field(default=0, ge=0)
    tax_amount: float = Field(default=0, ge=0)
    bonus: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _validate_period(self) -> "PayrollProcessRequest":
        if self.pay_period_end < self.pay_period_start:
            raise ValueError("payPeriodEnd must be on or after payPeriodStart")
        return self


class PayrollUpdate(CamelModel):
    pay_period_start: date | None = None
    pay_period_end: date | None = None
    base_salary: float | None = Field(default=None, gt=0)
    allowances: float | None = Field(default=None, ge=0)
    deductions: float | None = Field(default=None, ge=0)
    tax_amount: float | None = Field(default=None, ge=0)
    bonus: float | None = Field(default=None, ge=0)
    status: PayrollStatus | None = None


class PayrollRead(CamelModel):
    id: str
    employee_id: str
    pay_period_start: date
    pay_period_end: date
    base_salary: float
    allowances: float
    deductions: float
    tax_amount: float
    bonus: float
    gross_salary: float
    net_salary: float
    status: PayrollStatus
    payment_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


class TaxSummaryItem(CamelModel):
    employee_id: str
    employee_name: str
    record_count: int
    total_gross: float
    total_tax: float
    total_net: float
    total_bonus: float


class TaxSummary(CamelModel):
    year: int
    employees: list[TaxSummaryItem]
    total_gross: float
    total_tax: float
    total_net: float


# Documents


class DocumentCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    type: str = Field(min_length=1, max_length=64)
    category: DocumentCategory
    file_path: str = Field(min_length=1, max_length=1024)
    file_size: int = Field(default=0, ge=0)
    mime_type: str = Field(default="application/octet-stream", min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    tags: list[str] = Field(default_factory=list)
    is_confidential: bool = False
    expiry_date: date | None = None
    employee_id: str | None = None


class DocumentUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: DocumentCategory | None = None
    description: str | None = Field(default=None, max_length=1000)
    tags: list[str] | None = None
    is_confidential: bool | None = None
    expiry_date: date | None = None


class DocumentPermissionRead(CamelModel):
    id: str
    document_id: str
    employee_id: str
    can_view: bool
    can_edit: bool
    can_delete: bool


class DocumentRead(CamelModel):
    id: str
    name: str
    type: str
    category: DocumentCategory
    file_path: str
    file_size: int
    mime_type: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_confidential: bool
    expiry_date: date | None = None
    employee_id: str | None = None
    uploaded_by: str
    uploaded_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


class DocumentDetail(DocumentRead):
    permissions: list[DocumentPermissionRead] = Field(default_factory=list)


class DocumentShareRequest(CamelModel):
    employee_ids: list[str] = Field(min_length=1)
    can_edit: bool = False
    can_delete: bool = False


class DocumentDownload(CamelModel):
    id: str
    name: str
    mime_type: str
    file_size: int
    download_url: str


# Assets


class AssetCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    category: AssetCategory
    serial_number: str = Field(min_length=1, max_length=100)
    purchase_date: date
    purchase_price: float = Field(gt=0)
    status: AssetStatus = AssetStatus.AVAILABLE
    description: str | None = Field(default=None, max_length=1000)


class AssetUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: AssetCategory | None = None
    serial_number: str | None = Field(default=None, min_length=1, max_length=100)
    purchase_date: date | None = None
    purchase_price: float | None = Field(default=None, gt=0)
    status: AssetStatus | None = None
    description: str | None = Field(default=None, max_length=1000)
    condition: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=500)


class AssetAssignRequest(CamelModel):
    employee_id: str = Field(min_length=1)
    assigned_date: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)


class AssetReturnRequest(CamelModel):
    return_date: datetime | None = None
    condition: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=500)


class AssetRead(CamelModel):
    id: str
    name: str
    category: AssetCategory
    serial_number: str
    purchase_date: date
    purchase_price: float
    status: AssetStatus
    description: str | None = None
    employee_id: str | None = None
    assigned_date: datetime | None = None
    return_date: datetime | None = None
    condition: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


# Performance


class ReviewCreate(CamelModel):
    employee_id: str = Field(min_length=1)
    reviewer_id: str = Field(min_length=1)
    review_type: ReviewType
    review_period_start: date
    review_period_end: date
    overall_rating: float | None = Field(default=None, ge=1, le=5)
    strengths: str | None = Field(default=None, max_length=2000)
    areas_for_improvement: str | None = Field(default=None, max_length=2000)
    goals: str | None = Field(default=None, max_length=2000)
    comments: str | None = Field(default=None, max_length=2000)
    status: ReviewStatus = ReviewStatus.DRAFT


class ReviewUpdate(CamelModel):
    review_type: ReviewType | None = None
    review_period_start: date | None = None
    review_period_end: date | None = None
    overall_rating: float | None = Field(default=None, ge=1, le=5)
    strengths: str | None = Field(default=None, max_length=2000)
    areas_for_improvement: str | None = Field(default=None, max_length=2000)
    goals: str | None = Field(default=None, max_length=2000)
    comments: str | None = Field(default=None, max_length=2000)
    status: ReviewStatus | None = None


class ReviewRead(CamelModel):
    id: str
    employee_id: str
    reviewer_id: str
    review_type: ReviewType
    review_period_start: date
    review_period_end: date
    overall_rating: float | None = None
    strengths: str | None = None
    areas_for_improvement: str | None = None
    goals: str | None = None
    comments: str | None = None
    status: ReviewStatus
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None


class GoalCreate(CamelModel):
    employee_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    target_date: date
    category: GoalCategory
    status: GoalStatus = GoalStatus.NOT_STARTED
    progress: int = Field(default=0, ge=0, le=100)


class GoalUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    target_date: date | None = None
    category: GoalCategory | None = None
    status: GoalStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)


class GoalRead(CamelModel):
    id: str
    employee_id: str
    title: str
    description: str | None = None
    target_date: date
    category: GoalCategory
    status: GoalStatus
    progress: int
    created_at: datetime
    updated_at: datetime


class FeedbackCreate(CamelModel):
    to_employee_id: str = Field(min_length=1)
    from_employee_id: str = Field(min_length=1)
    feedback_type: FeedbackType
    content: str = Field(min_length=10, max_length=2000)
    is_anonymous: bool = False


class FeedbackUpdate(CamelModel):
    feedback_type: FeedbackType | None = None
    content: str | None = Field(default=None, min_length=10, max_length=2000)
    is_anonymous: bool | None = None


class FeedbackRead(CamelModel):
    id: str
    to_employee_id: str
    from_employee_id: str | None = None
    feedback_type: FeedbackType
    content: str
    is_anonymous: bool
    created_at: datetime
    updated_at: datetime


class PerformanceStats(CamelModel):
    employee_id: str
    total_reviews: int
    average_rating: float | None = None
    latest_rating: float | None = None
    goals_by_status: dict[str, int]
    average_goal_progress: float
    feedback_received: int


# Onboarding


class OnboardingChecklistCreate(CamelModel):
    employee_id: str = Field(min_length=1)
    template_id: str | None = None
    start_date: datetime
    expected_completion_date: datetime

    @model_validator(mode="after")
    def _validate_window(self) -> "OnboardingChecklistCreate":
        if self.expected_completion_date < self.start_date:
            raise ValueError("expectedCompletionDate must be after startDate")
        return self


class OnboardingAssignRequest(CamelModel):
    employee_id: str = Field(min_length=1)
    template_id: str | None = None


class OnboardingTaskUpdate(CamelModel):
    status: OnboardingTaskStatus
    notes: str | None = Field(default=None, max_length=1000)
    completed_by: str | None = None


class OnboardingTaskRead(CamelModel):
    id: str
    checklist_id: str
    title: str
    description: str | None = None
    sort_order: int = Field(alias="order")
    days_to_complete: int
    status: OnboardingTaskStatus
    notes: str | None = None
    completed_at: datetime | None = None
    completed_by: str | None = None


class OnboardingChecklistRead(CamelModel):
    id: str
    employee_id: str
    start_date: datetime
    expected_completion_date: datetime
    status: OnboardingStatus
    completed_at: datetime | None = None
    created_at: datetime
    tasks: list[OnboardingTaskRead] = Field(default_factory=list)


class OnboardingTemplate(CamelModel):
    id: str
    name: str
    description: str
    duration: int
    tasks: int


class OnboardingProgressCounts(CamelModel):
    percentage: int
    completed_tasks: int
    in_progress_tasks: int
    pending_tasks: int
    total_tasks: int


class OnboardingTimeline(CamelModel):
    start_date: datetime
    expected_completion_date: datetime
    days_since_start: int
    days_remaining: int
    is_overdue: bool


class OnboardingProgress(CamelModel):
    checklist_id: str
    employee_id: str
    status: OnboardingStatus
    progress: OnboardingProgressCounts
    timeline: OnboardingTimeline


# Audit


class AuditLogRead(CamelModel):
    id: int
    ts_utc: datetime
    actor_id: str
    actor_role: str
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    success: bool
    details: dict[str, Any] = Field(default_factory=dict)
