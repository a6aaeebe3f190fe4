from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from nexus_hr.audit import list_audit_logs
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import UserRole
from nexus_hr.schemas import AuditLogRead, Envelope, PageMeta
from nexus_hr.security import CurrentUser, require_roles
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/logs", response_model=Envelope[list[AuditLogRead]])
def list_logs_endpoint(
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None, alias="entityType"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch audit logs"):
        rows, total = list_audit_logs(db, params, action=action, entity_type=entity_type)
        return Envelope(
            data=[AuditLogRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )
