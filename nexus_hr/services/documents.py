from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import Document, DocumentCategory, DocumentPermission, Employee
from nexus_hr.schemas import DocumentCreate, DocumentDownload, DocumentShareRequest, DocumentUpdate
from nexus_hr.services.pagination import PageParams, paginate
from nexus_hr.settings import get_public_base_url


def list_documents(
    db: Session,
    params: PageParams,
    *,
    employee_id: str | None = None,
    category: DocumentCategory | None = None,
    document_type: str | None = None,
) -> tuple[list[Document], int]:
    stmt = select(Document).options(selectinload(Document.employee))
    if employee_id:
        stmt = stmt.where(Document.employee_id == employee_id)
    if category is not None:
        stmt = stmt.where(Document.category == category)
    if document_type:
        stmt = stmt.where(Document.type == document_type)
    stmt = stmt.order_by(Document.uploaded_at.desc(), Document.id.asc())
    return paginate(db, stmt, params)


def get_document(db: Session, document_id: str) -> Document:
    document = db.scalar(
        select(Document)
        .options(selectinload(Document.employee), selectinload(Document.permissions))
        .where(Document.id == document_id)
    )
    if document is None:
        raise not_found("Document")
    return document


def create_document(db: Session, payload: DocumentCreate, *, uploaded_by: str) -> Document:
    if payload.employee_id and db.get(Employee, payload.employee_id) is None:
        raise not_found("Employee")

    document = Document(**payload.model_dump(), uploaded_by=uploaded_by)
    document.tags = list(payload.tags)
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


def update_document(db: Session, document_id: str, payload: DocumentUpdate) -> Document:
    document = get_document(db, document_id)
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field_name in {"name", "category", "tags", "is_confidential"}:
            continue
        setattr(document, field_name, list(value) if field_name == "tags" else value)
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, document_id: str) -> None:
    document = db.get(Document, document_id)
    if document is None:
        raise not_found("Document")
    db.delete(document)
    db.commit()


def share_document(db: Session, document_id: str, payload: DocumentShareRequest) -> list[DocumentPermission]:
    """Grant view access (plus optional edit/delete) to each employee; existing grants are overwritten."""
    document = get_document(db, document_id)
    employee_ids = list(dict.fromkeys(item for item in payload.employee_ids if item))
    if not employee_ids:
        raise bad_request("employeeIds must contain at least one employee")

    known_ids = set(db.scalars(select(Employee.id).where(Employee.id.in_(employee_ids))).all())
    missing = [item for item in employee_ids if item not in known_ids]
    if missing:
        raise bad_request(f"Unknown employees: {', '.join(missing)}", code="EMPLOYEE_NOT_FOUND")

    existing = {permission.employee_id: permission for permission in document.permissions}
    granted: list[DocumentPermission] = []
    for employee_id in employee_ids:
        permission = existing.get(employee_id)
        if permission is None:
            permission = DocumentPermission(employee_id=employee_id)
            document.permissions.append(permission)
        permission.can_view = True
        permission.can_edit = payload.can_edit
        permission.can_delete = payload.can_delete
        granted.append(permission)

    db.commit()
    for permission in granted:
        db.refresh(permission)
    return granted


def revoke_document_access(db: Session, document_id: str, employee_id: str) -> None:
    document = get_document(db, document_id)
    permission = next((item for item in document.permissions if item.employee_id == employee_id), None)
    if permission is None:
        raise not_found("Document permission")
    document.permissions.remove(permission)
    db.commit()


def build_download(document: Document) -> DocumentDownload:
    return DocumentDownload(
        id=document.id,
        name=document.name,
        mime_type=document.mime_type,
        file_size=document.file_size,
        download_url=f"{get_public_base_url()}/uploads/{document.file_path.lstrip('/')}",
    )
