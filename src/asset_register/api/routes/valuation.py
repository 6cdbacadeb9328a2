from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions, require
from asset_register.api.routes.assets import asset_filter, readable
from asset_register.financial.depreciation import depreciation_schedule
from asset_register.ingestion.asset_loader import load_depreciation_groups
from asset_register.models.schemas import AssetFilter
from asset_register.permissions.matrix import Action, PermissionMatrix
from asset_register.registry.service import AssetNotFound, AssetRegistry

router = APIRouter(prefix="/valuation", tags=["valuation"])


@router.get("/assets/{asset_id}")
def get_asset_valuation(
    asset_id: int,
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Current valuation of one asset plus its year-by-year schedule."""
    registry = AssetRegistry(session)
    try:
        asset = registry.get_asset(asset_id)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.READ)

    groups = load_depreciation_groups(session)
    group = groups.get(asset.depreciation_group_id)
    valuation = registry.valuate(asset, current_year=current_year)
    schedule = depreciation_schedule(
        float(asset.acquisition_value), asset.year, group, through_year=current_year
    )
    return {
        "asset_number": asset.asset_number,
        "depreciation_group": group.name if group else None,
        "valuation": valuation.model_dump(),
        "schedule": [row.model_dump() for row in schedule],
    }


@router.get("/totals")
def get_totals(
    filters: AssetFilter = Depends(asset_filter),
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Valuation totals across the filtered assets the caller may read."""
    registry = AssetRegistry(session)
    assets = readable(registry.list_assets(filters), permissions)
    totals = registry.totals(assets, current_year=current_year)
    return {"asset_count": len(assets), **totals.model_dump()}


@router.post("/revalue")
def revalue_assets(
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Recompute and store the book value of every asset."""
    if not permissions.is_admin:
        raise HTTPException(403, "Only administrators can revalue the register")
    changed = AssetRegistry(session).revalue_all(current_year=current_year)
    return {"changed": changed}
