from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import DocumentCategory
from nexus_hr.schemas import (
    DocumentCreate,
    DocumentDetail,
    DocumentDownload,
    DocumentPermissionRead,
    DocumentRead,
    DocumentShareRequest,
    DocumentUpdate,
    Envelope,
    MessageEnvelope,
    PageMeta,
)
from nexus_hr.security import CurrentUser, get_current_user
from nexus_hr.services.documents import (
    build_download,
    create_document,
    delete_document,
    get_document,
    list_documents,
    revoke_document_access,
    share_document,
    update_document,
)
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.get("", response_model=Envelope[list[DocumentRead]])
def list_documents_endpoint(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    category: DocumentCategory | None = Query(default=None),
    document_type: str | None = Query(default=None, alias="type"),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch documents"):
        rows, total = list_documents(
            db,
            params,
            employee_id=employee_id,
            category=category,
            document_type=document_type,
        )
        return Envelope(
            data=[DocumentRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/{document_id}", response_model=Envelope[DocumentDetail])
def get_document_endpoint(
    document_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch document"):
        return Envelope(data=DocumentDetail.model_validate(get_document(db, document_id)))


@router.post("", response_model=Envelope[DocumentRead], status_code=status.HTTP_201_CREATED)
def create_document_endpoint(
    payload: DocumentCreate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to upload document"):
        document = create_document(db, payload, uploaded_by=current_user.id)
        audit_request(
            db,
            request,
            current_user,
            action="DOCUMENT_UPLOADED",
            entity_type="document",
            entity_id=document.id,
            details={"category": document.category.value, "employee_id": document.employee_id},
        )
        return Envelope(data=DocumentRead.model_validate(document), message="Document uploaded successfully")


@router.put("/{document_id}", response_model=Envelope[DocumentRead])
def update_document_endpoint(
    document_id: str,
    payload: DocumentUpdate,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update document"):
        document = update_document(db, document_id, payload)
        return Envelope(data=DocumentRead.model_validate(document), message="Document updated successfully")


@router.delete("/{document_id}", response_model=MessageEnvelope)
def delete_document_endpoint(
    document_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete document"):
        delete_document(db, document_id)
        audit_request(db, request, current_user, action="DOCUMENT_DELETED", entity_type="document", entity_id=document_id)
        return MessageEnvelope(message="Document deleted successfully")


@router.post("/{document_id}/share", response_model=Envelope[list[DocumentPermissionRead]])
def share_document_endpoint(
    document_id: str,
    payload: DocumentShareRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to share document"):
        permissions = share_document(db, document_id, payload)
        audit_request(
            db,
            request,
            current_user,
            action="DOCUMENT_SHARED",
            entity_type="document",
            entity_id=document_id,
            details={"employee_ids": [item.employee_id for item in permissions]},
        )
        return Envelope(
            data=[DocumentPermissionRead.model_validate(item) for item in permissions],
            message="Document shared successfully",
        )


@router.delete("/{document_id}/permissions/{employee_id}", response_model=MessageEnvelope)
def revoke_access_endpoint(
    document_id: str,
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to revoke document access"):
        revoke_document_access(db, document_id, employee_id)
        return MessageEnvelope(message="Document access revoked successfully")


@router.get("/{document_id}/download", response_model=Envelope[DocumentDownload])
def download_endpoint(
    document_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to prepare document download"):
        return Envelope(data=build_download(get_document(db, document_id)))
