from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions, require
from asset_register.models.schemas import AssetRead, ScanRead
from asset_register.permissions.matrix import Action, PermissionMatrix
from asset_register.registry.service import AssetNotFound, AssetRegistry

router = APIRouter(prefix="/scans", tags=["scans"])


class ScanRequest(BaseModel):
    nfc_uid: str
    device_id: str | None = None
    scanned_at: datetime | None = None


def _require_admin(permissions: PermissionMatrix) -> None:
    if not permissions.is_admin:
        raise HTTPException(403, "Only administrators can clear scan history")


@router.post("/", status_code=201)
def record_scan(
    body: ScanRequest,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Record an NFC tag scan and return the scanned asset."""
    registry = AssetRegistry(session)
    try:
        asset = registry.get_by_nfc_uid(body.nfc_uid)
    except AssetNotFound as e:
        raise HTTPException(404, str(e))
    require(permissions, asset.department, asset.category, Action.READ)

    scan = registry.record_scan(body.nfc_uid, body.device_id, body.scanned_at)
    return {
        "scan": ScanRead.model_validate(scan).model_dump(),
        "asset": AssetRead.model_validate(asset).model_dump(),
    }


@router.get("/")
def scan_history(
    limit: int = Query(50, ge=1, le=500),
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Newest scans of assets the caller may read."""
    scans = AssetRegistry(session).scan_history(limit)
    return [
        {
            **ScanRead.model_validate(s).model_dump(),
            "asset_number": s.asset.asset_number,
            "asset_name": s.asset.name,
        }
        for s in scans
        if permissions.allows(s.asset.department, s.asset.category, Action.READ)
    ]


@router.delete("/")
def clear_scan_history(
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    return {"deleted": AssetRegistry(session).clear_scan_history()}


@router.delete("/{scan_id}")
def delete_scan(
    scan_id: int,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    deleted = AssetRegistry(session).clear_scan_history(scan_id)
    if not deleted:
        raise HTTPException(404, f"Scan {scan_id} not found")
    return {"deleted": deleted}
