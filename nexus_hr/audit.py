from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nexus_hr.models import AuditLog
from nexus_hr.rate_limit import client_ip
from nexus_hr.security import CurrentUser
from nexus_hr.services.pagination import PageParams, paginate

logger = logging.getLogger("nexus_hr.audit")

SYSTEM_ACTOR = "system"


def log_audit(
    db: Session,
    *,
    actor_id: str,
    actor_role: str,
    action: str,
    success: bool = True,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog | None:
    """Persist one audit row in its own commit.

    A failed write is logged and rolled back; it never fails the business
    action that triggered it. Returns the stored row, or ``None`` on failure.
    """
    context = {
        "action": action,
        "actor_role": actor_role,
        "actor_id": actor_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "success": success,
    }
    entry = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        ip=ip,
        user_agent=user_agent,
        details=details or {},
        **context,
    )
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("audit_log_write_failed", extra=context)
        return None

    logger.info("audit_event", extra={**context, "ip": ip, "details": details or {}})
    return entry


def audit_request(
    db: Session,
    request: Request,
    actor: CurrentUser | None,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    success: bool = True,
    details: dict[str, Any] | None = None,
) -> AuditLog | None:
    """``log_audit`` with actor, ip and user agent taken from the request."""
    return log_audit(
        db,
        actor_id=actor.id if actor is not None else SYSTEM_ACTOR,
        actor_role=actor.role.value if actor is not None else SYSTEM_ACTOR,
        action=action,
        success=success,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        details=details,
    )


def list_audit_logs(
    db: Session,
    params: PageParams,
    *,
    action: str | None = None,
    entity_type: str | None = None,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    return paginate(db, stmt.order_by(AuditLog.ts_utc.desc(), AuditLog.id.desc()), params)
