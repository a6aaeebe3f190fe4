from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.schemas import (
    Envelope,
    OnboardingAssignRequest,
    OnboardingChecklistCreate,
    OnboardingChecklistRead,
    OnboardingProgress,
    OnboardingTaskRead,
    OnboardingTaskUpdate,
    OnboardingTemplate,
)
from nexus_hr.security import MANAGEMENT_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.onboarding import (
    assign_onboarding,
    create_checklist,
    get_checklist_for_employee,
    get_progress,
    list_templates,
    update_task,
)

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.post("/checklists", response_model=Envelope[OnboardingChecklistRead], status_code=status.HTTP_201_CREATED)
def create_checklist_endpoint(
    payload: OnboardingChecklistCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create onboarding checklist"):
        checklist = create_checklist(db, payload)
        audit_request(
            db,
            request,
            current_user,
            action="ONBOARDING_CHECKLIST_CREATED",
            entity_type="onboarding_checklist",
            entity_id=checklist.id,
            details={"employee_id": checklist.employee_id},
        )
        return Envelope(
            data=OnboardingChecklistRead.model_validate(checklist),
            message="Onboarding checklist created successfully",
        )


@router.get("/checklists/{employee_id}", response_model=Envelope[OnboardingChecklistRead])
def get_checklist_endpoint(
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch onboarding checklist"):
        return Envelope(data=OnboardingChecklistRead.model_validate(get_checklist_for_employee(db, employee_id)))


@router.put("/tasks/{task_id}", response_model=Envelope[OnboardingTaskRead])
def update_task_endpoint(
    task_id: str,
    payload: OnboardingTaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update onboarding task"):
        task = update_task(db, task_id, payload, actor_id=current_user.actor_id)
        return Envelope(data=OnboardingTaskRead.model_validate(task), message="Task updated successfully")


@router.get("/templates", response_model=Envelope[list[OnboardingTemplate]])
def templates_endpoint(_current_user: CurrentUser = Depends(get_current_user)) -> Envelope:
    return Envelope(data=list_templates())


@router.post("/assign", response_model=Envelope[OnboardingChecklistRead], status_code=status.HTTP_201_CREATED)
def assign_endpoint(
    payload: OnboardingAssignRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to assign onboarding"):
        checklist = assign_onboarding(db, payload.employee_id)
        audit_request(
            db,
            request,
            current_user,
            action="ONBOARDING_ASSIGNED",
            entity_type="onboarding_checklist",
            entity_id=checklist.id,
            details={"employee_id": checklist.employee_id, "template_id": payload.template_id},
        )
        return Envelope(
            data=OnboardingChecklistRead.model_validate(checklist),
            message="Onboarding assigned successfully",
        )


@router.get("/progress/{employee_id}", response_model=Envelope[OnboardingProgress])
def progress_endpoint(
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch onboarding progress"):
        return Envelope(data=get_progress(db, employee_id))
