from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions
from asset_register.api.routes.assets import readable
from asset_register.ingestion.asset_loader import load_assets
from asset_register.models.reference import Department
from asset_register.permissions.matrix import PermissionMatrix
from asset_register.reporting.summary import build_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def get_summary(
    department: Department | None = None,
    category: str | None = None,
    year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Totals, per-group stats and the cumulative value trend."""
    assets = readable(load_assets(session), permissions)
    return build_summary(assets, department, category, year).model_dump()
