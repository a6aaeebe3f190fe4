from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from nexus_hr.errors import bad_request, not_found
from nexus_hr.models import Asset, AssetCategory, AssetStatus, Employee
from nexus_hr.schemas import AssetAssignRequest, AssetCreate, AssetReturnRequest, AssetUpdate
from nexus_hr.services.pagination import PageParams, paginate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _commit_unique_serial(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise bad_request("An asset with this serial number already exists", code="SERIAL_TAKEN") from exc


def list_assets(
    db: Session,
    params: PageParams,
    *,
    category: AssetCategory | None = None,
    status: AssetStatus | None = None,
    search: str | None = None,
) -> tuple[list[Asset], int]:
    stmt = select(Asset).options(selectinload(Asset.employee))
    if category is not None:
        stmt = stmt.where(Asset.category == category)
    if status is not None:
        stmt = stmt.where(Asset.status == status)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Asset.name.ilike(pattern), Asset.serial_number.ilike(pattern)))
    stmt = stmt.order_by(Asset.created_at.desc(), Asset.id.asc())
    return paginate(db, stmt, params)


def get_asset(db: Session, asset_id: str) -> Asset:
    asset = db.scalar(select(Asset).options(selectinload(Asset.employee)).where(Asset.id == asset_id))
    if asset is None:
        raise not_found("Asset")
    return asset


def create_asset(db: Session, payload: AssetCreate) -> Asset:
    asset = Asset(**payload.model_dump())
    db.add(asset)
    _commit_unique_serial(db)
    db.refresh(asset)
    return asset


def update_asset(db: Session, asset_id: str, payload: AssetUpdate) -> Asset:
    asset = get_asset(db, asset_id)
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field_name in {"name", "category", "serial_number", "purchase_date", "purchase_price", "status"}:
            continue
        setattr(asset, field_name, value)
    _commit_unique_serial(db)
    db.refresh(asset)
    return asset


def delete_asset(db: Session, asset_id: str) -> None:
    asset = db.get(Asset, asset_id)
    if asset is None:
        raise not_found("Asset")
    db.delete(asset)
    db.commit()


def assign_asset(db: Session, asset_id: str, payload: AssetAssignRequest) -> Asset:
    asset = get_asset(db, asset_id)
    if db.get(Employee, payload.employee_id) is None:
        raise not_found("Employee")

    asset.employee_id = payload.employee_id
    asset.assigned_date = payload.assigned_date or _utcnow()
    asset.return_date = None
    asset.status = AssetStatus.ASSIGNED
    if payload.notes is not None:
        asset.notes = payload.notes
    db.commit()
    db.refresh(asset)
    return asset


def return_asset(db: Session, asset_id: str, payload: AssetReturnRequest) -> Asset:
    asset = get_asset(db, asset_id)
    asset.employee_id = None
    asset.assigned_date = None
    asset.return_date = payload.return_date or _utcnow()
    asset.condition = payload.condition
    asset.status = AssetStatus.AVAILABLE
    if payload.notes is not None:
        asset.notes = payload.notes
    db.commit()
    db.refresh(asset)
    return asset


def list_employee_assets(db: Session, employee_id: str) -> list[Asset]:
    stmt = (
        select(Asset)
        .where(Asset.employee_id == employee_id, Asset.status == AssetStatus.ASSIGNED)
        .order_by(Asset.assigned_date.desc())
    )
    return list(db.scalars(stmt).all())
