"""Excel import and export of the asset register.

Workbooks use the register's Indonesian column headers so that files exported
here can be edited and imported back unchanged.
"""

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from io import BytesIO
from pathlib import Path
from zipfile import BadZipFile

import pandas as pd
from sqlalchemy.orm import Session

from asset_register.codec.asset_number import decode
from asset_register.ingestion.asset_loader import (
    load_depreciation_groups,
    load_nfc_uids,
)
from asset_register.models.orm import Asset
from asset_register.models.reference import (
    Department,
    categories_for,
    category_code_for_label,
)
from asset_register.models.schemas import AssetCreate, DepreciationGroup, ImportResult
from asset_register.registry.service import AssetRegistry, generate_nfc_uid

logger = logging.getLogger("asset_register.ingestion")

COL_ASSET_NUMBER = "Nomor Asset"
COL_NFC_UID = "NFC UID"
COL_YEAR = "Tahun"
COL_NAME = "Nama"
COL_BRAND = "Brand"
COL_ACQUISITION_VALUE = "Nilai Perolehan"
COL_DEPRECIATION = "Depresiasi"
COL_BOOK_VALUE = "Nilai Buku"
COL_DEPARTMENT = "Bidang"
COL_CATEGORY = "Kategori"
COL_PURCHASE_DATE = "Tanggal Pembelian"
COL_DEPRECIATION_GROUP = "Grup Depresiasi"

EXPORT_COLUMNS = [
    COL_ASSET_NUMBER,
    COL_NFC_UID,
    COL_YEAR,
    COL_NAME,
    COL_BRAND,
    COL_ACQUISITION_VALUE,
    COL_DEPRECIATION,
    COL_BOOK_VALUE,
    COL_DEPARTMENT,
    COL_CATEGORY,
    COL_PURCHASE_DATE,
    COL_DEPRECIATION_GROUP,
]

TEMPLATE_ROWS = [
    {
        COL_ASSET_NUMBER: "ST23A0010001",
        COL_NFC_UID: "ABC123DE",
        COL_YEAR: 2023,
        COL_NAME: "Laptop Dell XPS",
        COL_BRAND: "Dell",
        COL_ACQUISITION_VALUE: 15000000,
        COL_DEPARTMENT: "Sekretariat",
        COL_CATEGORY: "Aset Tetap",
        COL_DEPRECIATION_GROUP: "Kelompok 1",
    },
    {
        COL_ASSET_NUMBER: "PD23B0020002",
        COL_NFC_UID: "DEF456GH",
        COL_YEAR: 2023,
        COL_NAME: "Proyektor",
        COL_BRAND: "Epson",
        COL_ACQUISITION_VALUE: 8000000,
        COL_DEPARTMENT: "Bidang Pendidikan",
        COL_CATEGORY: "TKI",
        COL_DEPRECIATION_GROUP: "Kelompok 2",
    },
]

_BLANK = {"", "-"}


class ImportValidationError(ValueError):
    """Raised when one or more workbook rows fail validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Validation errors:\n" + "\n".join(errors))


def _cell(row: Mapping, column: str) -> str | None:
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return None if text in _BLANK else text


def _parse_amount(row: Mapping, column: str) -> float:
    raw = row.get(column)
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        amount = math.nan
    if math.isnan(amount) or amount < 0:
        raise ValueError("Acquisition value must be a valid number")
    return amount


def _unique_uid(taken: set[str]) -> str:
    uid = generate_nfc_uid(taken)
    taken.add(uid)
    return uid


def parse_import_rows(
    rows: Iterable[Mapping],
    groups: Iterable[DepreciationGroup],
    existing_nfc_uids: Iterable[str] = (),
    current_year: int | None = None,
) -> ImportResult:
    """Validate workbook rows and convert them into asset payloads.

    Every row is checked; failures are collected as ``"Row N: message"`` with
    1-based row numbers instead of stopping at the first bad row.
    """
    groups_by_name = {g.name: g for g in groups}
    taken_uids = set(existing_nfc_uids)
    seen_numbers: set[str] = set()
    assets: list[AssetCreate] = []
    errors: list[str] = []

    for index, row in enumerate(rows, start=1):
        try:
            identifier = decode(_cell(row, COL_ASSET_NUMBER) or "", current_year)
            number = identifier.asset_number
            if number in seen_numbers:
                raise ValueError(f"Duplicate asset number {number} in file")
            department = identifier.department

            category = None
            category_label = _cell(row, COL_CATEGORY)
            if category_label is not None:
                category = category_code_for_label(department, category_label)

            name = _cell(row, COL_NAME)
            if not name:
                raise ValueError("Name is required")

            acquisition_value = _parse_amount(row, COL_ACQUISITION_VALUE)

            group_name = _cell(row, COL_DEPRECIATION_GROUP)
            group = groups_by_name.get(group_name or "")
            if group is None:
                raise ValueError(f"Invalid depreciation group: {group_name}")

            nfc_uid = _cell(row, COL_NFC_UID)
            if nfc_uid is None:
                nfc_uid = _unique_uid(taken_uids)
            elif nfc_uid in taken_uids:
                raise ValueError(f"NFC UID {nfc_uid} is already assigned")
            else:
                taken_uids.add(nfc_uid)

            assets.append(
                AssetCreate(
                    name=name,
                    brand=_cell(row, COL_BRAND) or "No Brand",
                    department=department,
                    category=category,
                    year=identifier.year,
                    building_code=identifier.building_code,
                    asset_type_code=identifier.asset_type_code,
                    sequence_number=identifier.sequence_number,
                    acquisition_value=acquisition_value,
                    depreciation_group_id=group.id,
                    nfc_uid=nfc_uid,
                )
            )
            seen_numbers.add(number)
        except ValueError as e:
            errors.append(f"Row {index}: {e}")

    return ImportResult(assets=assets, errors=errors)


def read_workbook(source: Path | str | bytes | BytesIO) -> list[dict]:
    """Read the first sheet of a workbook into a list of row dicts."""
    if isinstance(source, bytes):
        source = BytesIO(source)
    try:
        df = pd.read_excel(source, sheet_name=0, dtype=object, engine="openpyxl")
    except BadZipFile:
        raise ValueError("File is not a valid .xlsx workbook") from None
    df.columns = [str(c).strip() for c in df.columns]
    return df.to_dict(orient="records")


def import_workbook(
    session: Session,
    source: Path | str | bytes | BytesIO,
    current_year: int | None = None,
    authorize: Callable[[AssetCreate], None] | None = None,
) -> list[Asset]:
    """Validate a workbook and register every asset in it.

    Nothing is created unless every row validates. ``authorize`` is called on
    every validated payload before the first asset is created; whatever it
    raises propagates.

    Raises:
        ImportValidationError: listing every failing row.
    """
    rows = read_workbook(source)
    groups = load_depreciation_groups(session).values()
    result = parse_import_rows(
        rows, groups, load_nfc_uids(session), current_year=current_year
    )
    if not result.ok:
        logger.warning("Import rejected: %d invalid rows", len(result.errors))
        raise ImportValidationError(result.errors)

    if authorize is not None:
        for payload in result.assets:
            authorize(payload)

    registry = AssetRegistry(session)
    created = []
    errors = []
    for index, payload in enumerate(result.assets, start=1):
        try:
            created.append(registry.create_asset(payload, current_year=current_year))
        except ValueError as e:
            errors.append(f"Row {index}: {e}")
    if errors:
        raise ImportValidationError(errors)

    logger.info("Imported %d assets", len(created))
    return created


def export_rows(
    assets: Iterable[Asset], groups: Mapping[int, DepreciationGroup]
) -> list[dict]:
    """Flatten register rows into export records keyed by column header."""
    records = []
    for asset in assets:
        group = groups.get(asset.depreciation_group_id)
        department = Department(asset.department)
        category = categories_for(department).get(asset.category or "", "-")
        records.append(
            {
                COL_ASSET_NUMBER: asset.asset_number,
                COL_NFC_UID: asset.nfc_uid or "-",
                COL_YEAR: asset.year,
                COL_NAME: asset.name,
                COL_BRAND: asset.brand,
                COL_ACQUISITION_VALUE: float(asset.acquisition_value),
                COL_DEPRECIATION: (
                    f"{group.rate * 100:.2f}% / tahun" if group else "-"
                ),
                COL_BOOK_VALUE: float(asset.book_value),
                COL_DEPARTMENT: department.label,
                COL_CATEGORY: category,
                COL_PURCHASE_DATE: (
                    asset.purchase_date.strftime("%d/%m/%Y")
                    if asset.purchase_date
                    else "-"
                ),
                COL_DEPRECIATION_GROUP: group.name if group else "-",
            }
        )
    return records


def write_export(
    assets: Iterable[Asset],
    groups: Mapping[int, DepreciationGroup],
    dest: Path | str | BytesIO,
    sheet_name: str = "Assets",
) -> int:
    """Write assets to an .xlsx workbook. Returns the number of rows written."""
    records = export_rows(assets, groups)
    df = pd.DataFrame(records, columns=EXPORT_COLUMNS)
    with pd.ExcelWriter(dest, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return len(records)


def write_template(dest: Path | str | BytesIO) -> None:
    """Write an import template with two example rows."""
    df = pd.DataFrame(TEMPLATE_ROWS)
    with pd.ExcelWriter(dest, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Template", index=False)
