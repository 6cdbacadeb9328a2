from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions, require
from asset_register.api.routes.assets import asset_filter
from asset_register.config.settings import get_settings
from asset_register.ingestion.asset_loader import load_depreciation_groups
from asset_register.ingestion.spreadsheet import (
    ImportValidationError,
    import_workbook,
    write_export,
    write_template,
)
from asset_register.models.schemas import AssetCreate, AssetFilter, AssetRead
from asset_register.permissions.matrix import Action, PermissionMatrix
from asset_register.registry.service import AssetRegistry

router = APIRouter(prefix="/transfer", tags=["transfer"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(buffer: BytesIO, filename: str) -> StreamingResponse:
    buffer.seek(0)
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", status_code=201)
async def import_assets(
    request: Request,
    current_year: int | None = None,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Import an .xlsx workbook sent as the raw request body.

    The whole workbook is rejected when any row fails validation.
    """
    payload = await request.body()
    if not payload:
        raise HTTPException(400, "Request body must contain an .xlsx workbook")
    def authorize(asset: AssetCreate) -> None:
        require(permissions, asset.department, asset.category, Action.CREATE)

    try:
        created = import_workbook(
            session, payload, current_year=current_year, authorize=authorize
        )
    except ImportValidationError as e:
        raise HTTPException(400, {"message": "Validation errors", "errors": e.errors})
    except ValueError as e:
        raise HTTPException(400, f"Could not read workbook: {e}")

    return {
        "imported": len(created),
        "items": [AssetRead.model_validate(a).model_dump() for a in created],
    }


@router.get("/export")
def export_assets(
    filters: AssetFilter = Depends(asset_filter),
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Download the filtered assets the caller may export as .xlsx."""
    assets = [
        a
        for a in AssetRegistry(session).list_assets(filters)
        if permissions.allows(a.department, a.category, Action.EXPORT)
    ]
    buffer = BytesIO()
    write_export(
        assets,
        load_depreciation_groups(session),
        buffer,
        sheet_name=get_settings().export_sheet_name,
    )
    return _xlsx_response(buffer, "assets.xlsx")


@router.get("/template")
def download_template():
    buffer = BytesIO()
    write_template(buffer)
    return _xlsx_response(buffer, "asset_import_template.xlsx")
