from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions, require
from asset_register.models.reference import Department
from asset_register.models.schemas import (
    AssetCreate,
    AssetFilter,
    AssetRead,
    AssetUpdate,
    DeletedAssetRead,
)
from asset_register.permissions.matrix import Action, PermissionMatrix
from asset_register.registry.service import AssetNotFound, AssetRegistry

router = APIRouter(prefix="/assets", tags=["assets"])


def asset_filter(
    department: Department | None = None,
    category: str | None = None,
    year_mode: str = "single",
    year: int | None = None,
    years: list[int] = Query(default=[]),
    year_start: int | None = None,
    year_end: int | None = None,
    include_older: bool = False,
) -> AssetFilter:
    try:
        return AssetFilter(
            department=department,
            category=category,
            year_mode=year_mode,
            year=year,
            years=years,
            year_start=year_start,
            year_end=year_end,
            include_older=include_older,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


def readable(assets, permissions: PermissionMatrix) -> list:
    return [
        a
        for a in assets
        if permissions.allows(a.department, a.category, Action.READ)
    ]


@router.get("/")
def list_assets(
    filters: AssetFilter = Depends(asset_filter),
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """List assets the caller may read, with department, category and year filters."""
    assets = readable(AssetRegistry(session).list_assets(filters), permissions)
    return {
        "items": [AssetRead.model_validate(a).model_dump() for a in assets],
        "total": len(assets),
    }


@router.get("/deleted")
def list_deleted_assets(
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Deletion history, newest first."""
    deleted = [
        d
        for d in AssetRegistry(session).list_deleted_assets()
        if permissions.allows(d.department, d.category, Action.READ)
    ]
    return [DeletedAssetRead.model_validate(d).model_dump() for d in deleted]


@router.get("/by-number/{asset_number}")
def get_asset_by_number(
    asset_number: str,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    try:
        asset = AssetRegistry(session).get_by_number(asset_number)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.READ)
    return AssetRead.model_validate(asset).model_dump()


@router.get("/{asset_id}")
def get_asset(
    asset_id: int,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    try:
        asset = AssetRegistry(session).get_asset(asset_id)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.READ)
    return AssetRead.model_validate(asset).model_dump()


@router.post("/", status_code=201)
def create_asset(
    body: AssetCreate,
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Register an asset; its number is encoded and its book value computed."""
    require(permissions, body.department, body.category, Action.CREATE)
    try:
        asset = AssetRegistry(session).create_asset(body, current_year=current_year)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return AssetRead.model_validate(asset).model_dump()


@router.patch("/{asset_id}")
def update_asset(
    asset_id: int,
    body: AssetUpdate,
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    registry = AssetRegistry(session)
    try:
        asset = registry.get_asset(asset_id)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.UPDATE)
    if body.department is not None or body.category is not None:
        require(
            permissions,
            body.department or asset.department,
            body.category,
            Action.UPDATE,
        )

    try:
        asset = registry.update_asset(asset_id, body, current_year=current_year)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return AssetRead.model_validate(asset).model_dump()


@router.delete("/{asset_id}")
def delete_asset(
    asset_id: int,
    reason: str = Query(..., description="Why the asset is removed"),
    deleted_by: str = Query("admin"),
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Archive an asset into the deletion history and remove it."""
    registry = AssetRegistry(session)
    try:
        asset = registry.get_asset(asset_id)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.DELETE)
    try:
        archived = registry.delete_asset(asset_id, reason, deleted_by)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return DeletedAssetRead.model_validate(archived).model_dump()
