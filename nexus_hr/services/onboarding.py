from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import (
    Employee,
    OnboardingChecklist,
    OnboardingStatus,
    OnboardingTask,
    OnboardingTaskStatus,
)
from nexus_hr.schemas import (
    OnboardingChecklistCreate,
    OnboardingProgress,
    OnboardingProgressCounts,
    OnboardingTaskUpdate,
    OnboardingTemplate,
    OnboardingTimeline,
)

ONBOARDING_WINDOW = timedelta(days=30)

# (title, description, days to complete)
DEFAULT_TASKS: tuple[tuple[str, str, int], ...] = (
    ("Complete employment contract", "Sign and submit employment contract", 1),
    ("Setup workspace and equipment", "Assign desk, computer, and necessary equipment", 1),
    ("Create company accounts", "Email, Slack, and other company tool accounts", 1),
    ("Review company policies", "Read and acknowledge company handbook", 3),
    ("Meet the team", "Introduction to team members and key stakeholders", 5),
    ("Complete training modules", "Mandatory training on tools and processes", 7),
    ("Set initial goals", "Meet with manager to set 30-60-90 day goals", 7),
    ("Submit tax and bank documents", "Provide tax forms and bank details for payroll", 3),
)

TEMPLATES: tuple[OnboardingTemplate, ...] = (
    OnboardingTemplate(
        id="1",
        name="Standard Employee Onboarding",
        description="Default onboarding process for all employees",
        duration=30,
        tasks=8,
    ),
    OnboardingTemplate(
        id="2",
        name="Engineering Onboarding",
        description="Technical onboarding for engineering roles",
        duration=45,
        tasks=12,
    ),
    OnboardingTemplate(
        id="3",
        name="Sales Onboarding",
        description="Sales-specific onboarding with customer interaction training",
        duration=30,
        tasks=10,
    ),
    OnboardingTemplate(
        id="4",
        name="Manager Onboarding",
        description="Leadership onboarding for management positions",
        duration=60,
        tasks=15,
    ),
)

_FINISHED_TASK_STATUSES = frozenset({OnboardingTaskStatus.COMPLETED, OnboardingTaskStatus.SKIPPED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _build_checklist(
    employee_id: str,
    *,
    start_date: datetime,
    expected_completion_date: datetime,
    status: OnboardingStatus,
) -> OnboardingChecklist:
    checklist = OnboardingChecklist(
        employee_id=employee_id,
        start_date=start_date,
        expected_completion_date=expected_completion_date,
        status=status,
    )
    checklist.tasks = [
        OnboardingTask(
            title=title,
            description=description,
            sort_order=index,
            days_to_complete=days,
            status=OnboardingTaskStatus.PENDING,
        )
        for index, (title, description, days) in enumerate(DEFAULT_TASKS, start=1)
    ]
    return checklist


def _require_employee(db: Session, employee_id: str) -> None:
    if db.get(Employee, employee_id) is None:
        raise not_found("Employee")


def create_checklist(db: Session, payload: OnboardingChecklistCreate) -> OnboardingChecklist:
    _require_employee(db, payload.employee_id)
    checklist = _build_checklist(
        payload.employee_id,
        start_date=payload.start_date,
        expected_completion_date=payload.expected_completion_date,
        status=OnboardingStatus.PENDING,
    )
    db.add(checklist)
    db.commit()
    db.refresh(checklist)
    return checklist


def get_checklist_for_employee(db: Session, employee_id: str) -> OnboardingChecklist:
    checklist = db.scalar(
        select(OnboardingChecklist)
        .options(selectinload(OnboardingChecklist.tasks))
        .where(OnboardingChecklist.employee_id == employee_id)
        .order_by(OnboardingChecklist.created_at.desc())
        .limit(1)
    )
    if checklist is None:
        raise not_found("Onboarding checklist")
    return checklist


def update_task(
    db: Session,
    task_id: str,
    payload: OnboardingTaskUpdate,
    *,
    actor_id: str,
    now: datetime | None = None,
) -> OnboardingTask:
    task = db.get(OnboardingTask, task_id)
    if task is None:
        raise not_found("Onboarding task")
    now = now or _utcnow()

    task.status = payload.status
    if payload.notes is not None:
        task.notes = payload.notes
    if payload.status == OnboardingTaskStatus.COMPLETED:
        task.completed_at = now
        task.completed_by = payload.completed_by or actor_id
    else:
        task.completed_at = None
        task.completed_by = None

    checklist = task.checklist
    if all(item.status in _FINISHED_TASK_STATUSES for item in checklist.tasks):
        checklist.status = OnboardingStatus.COMPLETED
        checklist.completed_at = now
    elif checklist.status != OnboardingStatus.IN_PROGRESS:
        checklist.status = OnboardingStatus.IN_PROGRESS
        checklist.completed_at = None

    db.commit()
    db.refresh(task)
    return task


def list_templates() -> list[OnboardingTemplate]:
    return list(TEMPLATES)


def assign_onboarding(db: Session, employee_id: str, *, now: datetime | None = None) -> OnboardingChecklist:
    _require_employee(db, employee_id)
    existing = db.scalar(select(OnboardingChecklist.id).where(OnboardingChecklist.employee_id == employee_id))
    if existing is not None:
        raise bad_request("Employee already has an onboarding checklist", code="ONBOARDING_EXISTS")

    start = now or _utcnow()
    checklist = _build_checklist(
        employee_id,
        start_date=start,
        expected_completion_date=start + ONBOARDING_WINDOW,
        status=OnboardingStatus.IN_PROGRESS,
    )
    db.add(checklist)
    db.commit()
    db.refresh(checklist)
    return checklist


def get_progress(db: Session, employee_id: str, *, now: datetime | None = None) -> OnboardingProgress:
    checklist = get_checklist_for_employee(db, employee_id)
    now = now or _utcnow()

    tasks = checklist.tasks
    total = len(tasks)
    completed = sum(1 for task in tasks if task.status == OnboardingTaskStatus.COMPLETED)
    in_progress = sum(1 for task in tasks if task.status == OnboardingTaskStatus.IN_PROGRESS)
    pending = sum(1 for task in tasks if task.status == OnboardingTaskStatus.PENDING)

    start = _aware(checklist.start_date)
    expected = _aware(checklist.expected_completion_date)
    days_since_start = (now - start) // timedelta(days=1)
    days_remaining = (expected - now) // timedelta(days=1)

    return OnboardingProgress(
        checklist_id=checklist.id,
        employee_id=employee_id,
        status=checklist.status,
        progress=OnboardingProgressCounts(
            percentage=round(completed / total * 100) if total else 0,
            completed_tasks=completed,
            in_progress_tasks=in_progress,
            pending_tasks=pending,
            total_tasks=total,
        ),
        timeline=OnboardingTimeline(
            start_date=start,
            expected_completion_date=expected,
            days_since_start=days_since_start,
            days_remaining=days_remaining,
            is_overdue=days_remaining < 0,
        ),
    )
