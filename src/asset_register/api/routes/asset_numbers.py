from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from asset_register.codec.asset_number import decode, encode

router = APIRouter(prefix="/asset-numbers", tags=["asset-numbers"])


class EncodeRequest(BaseModel):
    department_code: str
    year: int
    building_code: str
    asset_type_code: str
    sequence_number: str


@router.post("/encode")
def encode_asset_number(body: EncodeRequest):
    """Build an asset number from its parts."""
    try:
        number = encode(
            body.department_code,
            body.year,
            body.building_code,
            body.asset_type_code,
            body.sequence_number,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"asset_number": number}


@router.get("/{asset_number}")
def decode_asset_number(asset_number: str, current_year: int | None = None):
    """Split an asset number into its parts."""
    try:
        identifier = decode(asset_number, current_year=current_year)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        **identifier.model_dump(),
        "department": identifier.department.value,
        "department_label": identifier.department.label,
    }
