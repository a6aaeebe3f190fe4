from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import Feedback, GoalStatus, ReviewStatus, ReviewType
from nexus_hr.schemas import (
    Envelope,
    FeedbackCreate,
    FeedbackRead,
    FeedbackUpdate,
    GoalCreate,
    GoalRead,
    GoalUpdate,
    MessageEnvelope,
    PageMeta,
    PerformanceStats,
    ReviewCreate,
    ReviewRead,
    ReviewUpdate,
)
from nexus_hr.security import MANAGEMENT_ROLES, SUPERVISOR_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.exports import ExportFormat, build_export_response
from nexus_hr.services.pagination import PageParams, page_params
from nexus_hr.services.performance import (
    create_feedback,
    create_goal,
    create_review,
    delete_feedback,
    delete_goal,
    export_reviews,
    get_goal,
    get_performance_stats,
    get_review,
    list_feedback,
    list_goals,
    list_reviews,
    update_feedback,
    update_goal,
    update_review,
)

router = APIRouter(prefix="/api/performance", tags=["performance"])


def _feedback_read(feedback: Feedback) -> FeedbackRead:
    item = FeedbackRead.model_validate(feedback)
    if item.is_anonymous:
        item.from_employee_id = None
    return item


# Reviews


@router.get("/reviews", response_model=Envelope[list[ReviewRead]])
def list_reviews_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    reviewer_id: str | None = Query(default=None, alias="reviewerId"),
    review_type: ReviewType | None = Query(default=None, alias="reviewType"),
    status_filter: ReviewStatus | None = Query(default=None, alias="status"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch performance reviews"):
        rows, total = list_reviews(
            db,
            params,
            employee_id=employee_id,
            reviewer_id=reviewer_id,
            review_type=review_type,
            status=status_filter,
        )
        return Envelope(
            data=[ReviewRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/reviews/{review_id}", response_model=Envelope[ReviewRead])
def get_review_endpoint(
    review_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch performance review"):
        return Envelope(data=ReviewRead.model_validate(get_review(db, review_id)))


@router.post("/reviews", response_model=Envelope[ReviewRead], status_code=status.HTTP_201_CREATED)
def create_review_endpoint(
    payload: ReviewCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*SUPERVISOR_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create performance review"):
        review = create_review(db, payload)
        audit_request(
            db,
            request,
            current_user,
            action="REVIEW_CREATED",
            entity_type="performance_review",
            entity_id=review.id,
            details={"employee_id": review.employee_id, "review_type": review.review_type.value},
        )
        return Envelope(data=ReviewRead.model_validate(review), message="Performance review created successfully")


@router.put("/reviews/{review_id}", response_model=Envelope[ReviewRead])
def update_review_endpoint(
    review_id: str,
    payload: ReviewUpdate,
    _current_user: CurrentUser = Depends(require_roles(*SUPERVISOR_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update performance review"):
        review = update_review(db, review_id, payload)
        return Envelope(data=ReviewRead.model_validate(review), message="Performance review updated successfully")


# Goals


@router.get("/goals", response_model=Envelope[list[GoalRead]])
def list_goals_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    status_filter: GoalStatus | None = Query(default=None, alias="status"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch goals"):
        rows, total = list_goals(db, params, employee_id=employee_id, status=status_filter)
        return Envelope(
            data=[GoalRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/goals/{goal_id}", response_model=Envelope[GoalRead])
def get_goal_endpoint(
    goal_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch goal"):
        return Envelope(data=GoalRead.model_validate(get_goal(db, goal_id)))


@router.post("/goals", response_model=Envelope[GoalRead], status_code=status.HTTP_201_CREATED)
def create_goal_endpoint(
    payload: GoalCreate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create goal"):
        return Envelope(data=GoalRead.model_validate(create_goal(db, payload)), message="Goal created successfully")


@router.put("/goals/{goal_id}", response_model=Envelope[GoalRead])
def update_goal_endpoint(
    goal_id: str,
    payload: GoalUpdate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update goal"):
        goal = update_goal(db, goal_id, payload)
        return Envelope(data=GoalRead.model_validate(goal), message="Goal updated successfully")


@router.delete("/goals/{goal_id}", response_model=MessageEnvelope)
def delete_goal_endpoint(
    goal_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete goal"):
        delete_goal(db, goal_id)
        return MessageEnvelope(message="Goal deleted successfully")


# Feedback


@router.get("/feedback", response_model=Envelope[list[FeedbackRead]])
def list_feedback_endpoint(
    to_employee_id: str | None = Query(default=None, alias="toEmployeeId"),
    from_employee_id: str | None = Query(default=None, alias="fromEmployeeId"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch feedback"):
        rows, total = list_feedback(db, params, to_employee_id=to_employee_id, from_employee_id=from_employee_id)
        return Envelope(
            data=[_feedback_read(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.post("/feedback", response_model=Envelope[FeedbackRead], status_code=status.HTTP_201_CREATED)
def create_feedback_endpoint(
    payload: FeedbackCreate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to submit feedback"):
        feedback = create_feedback(db, payload)
        return Envelope(data=_feedback_read(feedback), message="Feedback submitted successfully")


@router.put("/feedback/{feedback_id}", response_model=Envelope[FeedbackRead])
def update_feedback_endpoint(
    feedback_id: str,
    payload: FeedbackUpdate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update feedback"):
        feedback = update_feedback(db, feedback_id, payload)
        return Envelope(data=_feedback_read(feedback), message="Feedback updated successfully")


@router.delete("/feedback/{feedback_id}", response_model=MessageEnvelope)
def delete_feedback_endpoint(
    feedback_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete feedback"):
        delete_feedback(db, feedback_id)
        return MessageEnvelope(message="Feedback deleted successfully")


@router.get("/stats/{employee_id}", response_model=Envelope[PerformanceStats])
def stats_endpoint(
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch performance statistics"):
        return Envelope(data=get_performance_stats(db, employee_id))


@router.get("/export")
def export_endpoint(
    export_format: ExportFormat = Query(default="json", alias="format"),
    employee_id: str | None = Query(default=None, alias="employeeId"),
    review_type: ReviewType | None = Query(default=None, alias="reviewType"),
    status_filter: ReviewStatus | None = Query(default=None, alias="status"),
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Response:
    with failure_message("Failed to export performance reviews"):
        bundle = export_reviews(db, employee_id=employee_id, review_type=review_type, status=status_filter)
        return build_export_response(bundle, export_format)
