from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from nexus_hr.audit import audit_request
from nexus_hr.db import get_db
from nexus_hr.errors import failure_message
from nexus_hr.models import Asset, AssetCategory, AssetStatus
from nexus_hr.schemas import (
    AssetAssignRequest,
    AssetCreate,
    AssetRead,
    AssetReturnRequest,
    AssetUpdate,
    Envelope,
    MessageEnvelope,
    PageMeta,
)
from nexus_hr.security import MANAGEMENT_ROLES, CurrentUser, get_current_user, require_roles
from nexus_hr.services.assets import (
    assign_asset,
    create_asset,
    delete_asset,
    get_asset,
    list_assets,
    list_employee_assets,
    return_asset,
    update_asset,
)
from nexus_hr.services.pagination import PageParams, page_params

router = APIRouter(prefix="/api/assets", tags=["assets"])


def _audit_asset(db: Session, request: Request, current_user: CurrentUser, asset: Asset, action: str) -> None:
    audit_request(
        db,
        request,
        current_user,
        action=action,
        entity_type="asset",
        entity_id=asset.id,
        details={
            "serial_number": asset.serial_number,
            "status": asset.status.value,
            "employee_id": asset.employee_id,
        },
    )


@router.post("", response_model=Envelope[AssetRead], status_code=status.HTTP_201_CREATED)
def create_asset_endpoint(
    payload: AssetCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to create asset"):
        asset = create_asset(db, payload)
        _audit_asset(db, request, current_user, asset, "ASSET_CREATED")
        return Envelope(data=AssetRead.model_validate(asset), message="Asset created successfully")


@router.get("", response_model=Envelope[list[AssetRead]])
def list_assets_endpoint(
    category: AssetCategory | None = Query(default=None),
    status_filter: AssetStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch assets"):
        rows, total = list_assets(db, params, category=category, status=status_filter, search=search)
        return Envelope(
            data=[AssetRead.model_validate(item) for item in rows],
            meta=PageMeta.build(total=total, page=params.page, limit=params.limit),
        )


@router.get("/employee/{employee_id}", response_model=Envelope[list[AssetRead]])
def employee_assets_endpoint(
    employee_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch employee assets"):
        return Envelope(data=[AssetRead.model_validate(item) for item in list_employee_assets(db, employee_id)])


@router.get("/{asset_id}", response_model=Envelope[AssetRead])
def get_asset_endpoint(
    asset_id: str,
    _current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to fetch asset"):
        return Envelope(data=AssetRead.model_validate(get_asset(db, asset_id)))


@router.put("/{asset_id}", response_model=Envelope[AssetRead])
def update_asset_endpoint(
    asset_id: str,
    payload: AssetUpdate,
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to update asset"):
        asset = update_asset(db, asset_id, payload)
        return Envelope(data=AssetRead.model_validate(asset), message="Asset updated successfully")


@router.delete("/{asset_id}", response_model=MessageEnvelope)
def delete_asset_endpoint(
    asset_id: str,
    _current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    with failure_message("Failed to delete asset"):
        delete_asset(db, asset_id)
        return MessageEnvelope(message="Asset deleted successfully")


@router.post("/{asset_id}/assign", response_model=Envelope[AssetRead])
def assign_asset_endpoint(
    asset_id: str,
    payload: AssetAssignRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to assign asset"):
        asset = assign_asset(db, asset_id, payload)
        _audit_asset(db, request, current_user, asset, "ASSET_ASSIGNED")
        return Envelope(data=AssetRead.model_validate(asset), message="Asset assigned successfully")


@router.post("/{asset_id}/return", response_model=Envelope[AssetRead])
def return_asset_endpoint(
    asset_id: str,
    payload: AssetReturnRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
) -> Envelope:
    with failure_message("Failed to return asset"):
        asset = return_asset(db, asset_id, payload)
        _audit_asset(db, request, current_user, asset, "ASSET_RETURNED")
        return Envelope(data=AssetRead.model_validate(asset), message="Asset returned successfully")
