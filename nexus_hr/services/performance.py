from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import (
    Employee,
    Feedback,
    Goal,
    GoalStatus,
    PerformanceReview,
    ReviewStatus,
    ReviewType,
)
from nexus_hr.schemas import (
    FeedbackCreate,
    FeedbackUpdate,
    GoalCreate,
    GoalUpdate,
    PerformanceStats,
    ReviewCreate,
    ReviewUpdate,
)
from nexus_hr.services.exports import ExportBundle, ExportColumn
from nexus_hr.services.pagination import PageParams, paginate

REVIEW_EXPORT_COLUMNS = [
    ExportColumn("employeeId", "Employee ID"),
    ExportColumn("employeeName", "Employee Name"),
    ExportColumn("department", "Department"),
    ExportColumn("reviewType", "Review Type"),
    ExportColumn("reviewPeriodStart", "Period Start"),
    ExportColumn("reviewPeriodEnd", "Period End"),
    ExportColumn("overallRating", "Overall Rating"),
    ExportColumn("status", "Status"),
    ExportColumn("reviewerId", "Reviewer"),
]


def _require_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("Employee")
    return employee


def _apply_changes(target: object, changes: dict[str, object], *, required: set[str]) -> None:
    for field_name, value in changes.items():
        if value is None and field_name in required:
            continue
        setattr(target, field_name, value)


# Reviews


def list_reviews(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    reviewer_id: str | None = None,
    review_type: ReviewType | None = None,
    status: ReviewStatus | None = None,
) -> tuple[list[PerformanceReview], int]:
    stmt = select(PerformanceReview).options(selectinload(PerformanceReview.employee))
    if employee_id:
        stmt = stmt.where(PerformanceReview.employee_id == employee_id)
    if reviewer_id:
        stmt = stmt.where(PerformanceReview.reviewer_id == reviewer_id)
    if review_type is not None:
        stmt = stmt.where(PerformanceReview.review_type == review_type)
    if status is not None:
        stmt = stmt.where(PerformanceReview.status == status)
    stmt = stmt.order_by(PerformanceReview.review_period_end.desc(), PerformanceReview.created_at.desc())
    return paginate(db, stmt, params)


def get_review(db: Session, review_id: str) -> PerformanceReview:
    review = db.scalar(
        select(PerformanceReview)
        .options(selectinload(PerformanceReview.employee))
        .where(PerformanceReview.id == review_id)
    )
    if review is None:
        raise not_found("Performance review")
    return review


def create_review(db: Session, payload: ReviewCreate) -> PerformanceReview:
    _require_employee(db, payload.employee_id)
    if payload.review_period_end < payload.review_period_start:
        raise bad_request("reviewPeriodEnd must be on or after reviewPeriodStart")

    review = PerformanceReview(**payload.model_dump())
    db.add(review)
    db.commit()
    db.refresh(review)
    return review


def update_review(db: Session, review_id: str, payload: ReviewUpdate) -> PerformanceReview:
    review = get_review(db, review_id)
    _apply_changes(
        review,
        payload.model_dump(exclude_unset=True),
        required={"review_type", "review_period_start", "review_period_end", "status"},
    )
    if review.review_period_end < review.review_period_start:
        raise bad_request("reviewPeriodEnd must be on or after reviewPeriodStart")
    db.commit()
    db.refresh(review)
    return review


# Goals


def list_goals(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    status: GoalStatus | None = None,
) -> tuple[list[Goal], int]:
    stmt = select(Goal)
    if employee_id:
        stmt = stmt.where(Goal.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(Goal.status == status)
    stmt = stmt.order_by(Goal.target_date.asc(), Goal.created_at.desc())
    return paginate(db, stmt, params)


def get_goal(db: Session, goal_id: str) -> Goal:
    goal = db.get(Goal, goal_id)
    if goal is None:
        raise not_found("Goal")
    return goal


def create_goal(db: Session, payload: GoalCreate) -> Goal:
    _require_employee(db, payload.employee_id)
    goal = Goal(**payload.model_dump())
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


def update_goal(db: Session, goal_id: str, payload: GoalUpdate) -> Goal:
    goal = get_goal(db, goal_id)
    _apply_changes(
        goal,
        payload.model_dump(exclude_unset=True),
        required={"title", "target_date", "category", "status", "progress"},
    )
    if goal.status == GoalStatus.COMPLETED:
        goal.progress = 100
    db.commit()
    db.refresh(goal)
    return goal


def delete_goal(db: Session, goal_id: str) -> None:
    goal = get_goal(db, goal_id)
    db.delete(goal)
    db.commit()


# Feedback


def list_feedback(
    db: Session,
    params: PageParams,
    *,
    to_employee_id: str | None = None,
    from_employee_id: str | None = None,
) -> tuple[list[Feedback], int]:
    stmt = select(Feedback)
    if to_employee_id:
        stmt = stmt.where(Feedback.to_employee_id == to_employee_id)
    if from_employee_id:
        stmt = stmt.where(Feedback.from_employee_id == from_employee_id)
    stmt = stmt.order_by(Feedback.created_at.desc(), Feedback.id.asc())
    return paginate(db, stmt, params)


def get_feedback(db: Session, feedback_id: str) -> Feedback:
    feedback = db.get(Feedback, feedback_id)
    if feedback is None:
        raise not_found("Feedback")
    return feedback


def create_feedback(db: Session, payload: FeedbackCreate) -> Feedback:
    _require_employee(db, payload.to_employee_id)
    _require_employee(db, payload.from_employee_id)
    if payload.to_employee_id == payload.from_employee_id:
        raise bad_request("Feedback cannot be given to yourself")

    feedback = Feedback(**payload.model_dump())
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    return feedback


def update_feedback(db: Session, feedback_id: str, payload: FeedbackUpdate) -> Feedback:
    feedback = get_feedback(db, feedback_id)
    _apply_changes(
        feedback,
        payload.model_dump(exclude_unset=True),
        required={"feedback_type", "content", "is_anonymous"},
    )
    db.commit()
    db.refresh(feedback)
    return feedback


def delete_feedback(db: Session, feedback_id: str) -> None:
    feedback = get_feedback(db, feedback_id)
    db.delete(feedback)
    db.commit()


def get_performance_stats(db: Session, employee_id: str) -> PerformanceStats:
    _require_employee(db, employee_id)

    ratings = list(
        db.scalars(
            select(PerformanceReview.overall_rating)
            .where(PerformanceReview.employee_id == employee_id)
            .order_by(PerformanceReview.review_period_end.desc(), PerformanceReview.created_at.desc())
        ).all()
    )
    rated = [float(item) for item in ratings if item is not None]

    goals_by_status = {status.value: 0 for status in GoalStatus}
    for status, count in db.execute(
        select(Goal.status, func.count()).where(Goal.employee_id == employee_id).group_by(Goal.status)
    ).all():
        goals_by_status[status.value] = count
    average_progress = db.scalar(select(func.avg(Goal.progress)).where(Goal.employee_id == employee_id))

    feedback_received = db.scalar(
        select(func.count()).select_from(Feedback).where(Feedback.to_employee_id == employee_id)
    ) or 0

    return PerformanceStats(
        employee_id=employee_id,
        total_reviews=len(ratings),
        average_rating=round(sum(rated) / len(rated), 2) if rated else None,
        latest_rating=rated[0] if rated else None,
        goals_by_status=goals_by_status,
        average_goal_progress=round(float(average_progress or 0), 2),
        feedback_received=feedback_received,
    )


def export_reviews(
    db: Session,
    *,
    employee_id: str | None = None,
    review_type: ReviewType | None = None,
    status: ReviewStatus | None = None,
) -> ExportBundle:
    stmt = select(PerformanceReview, Employee).join(Employee, PerformanceReview.employee_id == Employee.id)
    if employee_id:
        stmt = stmt.where(PerformanceReview.employee_id == employee_id)
    if review_type is not None:
        stmt = stmt.where(PerformanceReview.review_type == review_type)
    if status is not None:
        stmt = stmt.where(PerformanceReview.status == status)
    stmt = stmt.order_by(PerformanceReview.review_period_end.desc())

    rows = [
        {
            "employeeId": employee.employee_code,
            "employeeName": employee.full_name,
            "department": employee.department,
            "reviewType": review.review_type,
            "reviewPeriodStart": review.review_period_start,
            "reviewPeriodEnd": review.review_period_end,
            "overallRating": review.overall_rating,
            "status": review.status,
            "reviewerId": review.reviewer_id,
        }
        for review, employee in db.execute(stmt).all()
    ]
    return ExportBundle(
        name="performance-reviews",
        columns=REVIEW_EXPORT_COLUMNS,
        rows=rows,
        filters={"employeeId": employee_id, "reviewType": review_type, "status": status},
    )
