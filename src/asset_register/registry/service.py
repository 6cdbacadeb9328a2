import logging
import secrets
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from asset_register.codec.asset_number import decode, encode
from asset_register.financial.depreciation import (
    compute_valuation,
    summarize_valuations,
    value_asset,
)
from asset_register.ingestion.asset_loader import (
    load_depreciation_groups,
    load_nfc_uids,
)
from asset_register.models.orm import Asset, AssetScan, DeletedAsset
from asset_register.models.orm import DepreciationGroup as DepreciationGroupRow
from asset_register.models.reference import Department
from asset_register.models.schemas import (
    AssetCreate,
    AssetFilter,
    AssetUpdate,
    AssetValuation,
    DepreciationGroup,
    validate_category,
)

logger = logging.getLogger("asset_register.registry")

_NUMBER_FIELDS = (
    "department",
    "year",
    "building_code",
    "asset_type_code",
    "sequence_number",
)
_VALUATION_FIELDS = ("acquisition_value", "year", "depreciation_group_id")
_CLEARABLE_FIELDS = (
    "category",
    "depreciation_group_id",
    "condition",
    "location",
    "description",
    "image_url",
)


class AssetNotFound(LookupError):
    pass


class DuplicateAssetNumber(ValueError):
    pass


def generate_nfc_uid(taken: Iterable[str] = ()) -> str:
    """Return a random 16-hex-digit NFC UID not present in ``taken``."""
    taken = set(taken)
    while True:
        uid = secrets.token_hex(8).upper()
        if uid not in taken:
            return uid


class AssetRegistry:
    """Create, edit, delete and value assets within one database session."""

    def __init__(self, session: Session):
        self.session = session

    # --- lookups ---

    def get_asset(self, asset_id: int) -> Asset:
        asset = self.session.get(Asset, asset_id)
        if asset is None:
            raise AssetNotFound(f"Asset {asset_id} not found")
        return asset

    def get_by_number(self, asset_number: str) -> Asset:
        number = asset_number.strip().upper()
        asset = self.session.execute(
            select(Asset).where(Asset.asset_number == number)
        ).scalar_one_or_none()
        if asset is None:
            raise AssetNotFound(f"Asset '{number}' not found")
        return asset

    def list_assets(self, filters: AssetFilter | None = None) -> list[Asset]:
        """List assets matching the department, category and year filters."""
        stmt = select(Asset)
        if filters is not None:
            if filters.department is not None:
                stmt = stmt.where(Asset.department == filters.department.value)
            if filters.category:
                stmt = stmt.where(Asset.category == filters.category)

            mode = filters.year_mode
            if mode == "single" and filters.year is not None:
                if filters.include_older:
                    stmt = stmt.where(Asset.year <= filters.year)
                else:
                    stmt = stmt.where(Asset.year == filters.year)
            elif mode == "multiple" and filters.years:
                stmt = stmt.where(Asset.year.in_(filters.years))
            elif (
                mode == "range"
                and filters.year_start is not None
                and filters.year_end is not None
            ):
                stmt = stmt.where(
                    Asset.year.between(filters.year_start, filters.year_end)
                )
            elif mode == "before" and filters.year is not None:
                stmt = stmt.where(Asset.year <= filters.year)

        return list(self.session.scalars(stmt.order_by(Asset.asset_number)).all())

    def list_deleted_assets(self) -> list[DeletedAsset]:
        return list(
            self.session.scalars(
                select(DeletedAsset).order_by(
                    DeletedAsset.deleted_at.desc(), DeletedAsset.id.desc()
                )
            ).all()
        )

    # --- mutations ---

    def _group(self, group_id: int | None) -> DepreciationGroup | None:
        if group_id is None:
            return None
        row = self.session.get(DepreciationGroupRow, group_id)
        if row is None:
            raise ValueError(f"Depreciation group {group_id} not found")
        return DepreciationGroup.model_validate(row)

    def _ensure_unique(
        self, asset_number: str, nfc_uid: str | None, exclude_id: int | None = None
    ) -> None:
        stmt = select(Asset.id).where(Asset.asset_number == asset_number)
        if exclude_id is not None:
            stmt = stmt.where(Asset.id != exclude_id)
        if self.session.execute(stmt).first():
            raise DuplicateAssetNumber(f"Asset number {asset_number} already exists")

        if nfc_uid:
            stmt = select(Asset.id).where(Asset.nfc_uid == nfc_uid)
            if exclude_id is not None:
                stmt = stmt.where(Asset.id != exclude_id)
            if self.session.execute(stmt).first():
                raise ValueError(f"NFC UID {nfc_uid} is already assigned")

    def create_asset(
        self, data: AssetCreate, current_year: int | None = None
    ) -> Asset:
        """Register a new asset and store its computed book value."""
        asset_number = encode(
            data.department.code,
            data.year,
            data.building_code,
            data.asset_type_code,
            data.sequence_number,
        )
        category = validate_category(data.department, data.category)
        group = self._group(data.depreciation_group_id)

        nfc_uid = data.nfc_uid
        if not nfc_uid:
            nfc_uid = generate_nfc_uid(load_nfc_uids(self.session))
        self._ensure_unique(asset_number, nfc_uid)

        valuation = compute_valuation(
            data.acquisition_value, data.year, group, current_year=current_year
        )

        asset = Asset(
            asset_number=asset_number,
            nfc_uid=nfc_uid,
            sequence_number=asset_number[8:],
            year=data.year,
            name=data.name,
            brand=data.brand or "No Brand",
            department=data.department.value,
            category=category,
            acquisition_value=Decimal(str(data.acquisition_value)),
            book_value=Decimal(str(round(valuation.book_value, 2))),
            depreciation_group_id=data.depreciation_group_id,
            condition=data.condition,
            location=data.location,
            description=data.description,
            image_url=data.image_url,
            purchase_date=data.purchase_date or datetime.now(),
        )
        self.session.add(asset)
        self.session.flush()
        logger.info("Created asset %s (%s)", asset.asset_number, asset.name)
        return asset

    def update_asset(
        self, asset_id: int, data: AssetUpdate, current_year: int | None = None
    ) -> Asset:
        """Apply a partial update, re-encoding the number if any of its parts change."""
        asset = self.get_asset(asset_id)
        fields = {
            k: v
            for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k in _CLEARABLE_FIELDS
        }

        department = Department(fields.get("department", asset.department))
        category = fields.get("category", asset.category)
        category = validate_category(department, category)

        asset_number = asset.asset_number
        if any(f in fields for f in _NUMBER_FIELDS):
            current = decode(asset.asset_number)
            asset_number = encode(
                department.code,
                fields.get("year", asset.year),
                fields.get("building_code") or current.building_code,
                fields.get("asset_type_code") or current.asset_type_code,
                fields.get("sequence_number") or current.sequence_number,
            )
        nfc_uid = fields.get("nfc_uid") or asset.nfc_uid
        self._ensure_unique(asset_number, nfc_uid, exclude_id=asset.id)

        for name in (
            "name",
            "brand",
            "year",
            "depreciation_group_id",
            "condition",
            "location",
            "description",
            "image_url",
        ):
            if name in fields:
                setattr(asset, name, fields[name])
        if "acquisition_value" in fields:
            asset.acquisition_value = Decimal(str(fields["acquisition_value"]))
        asset.department = department.value
        asset.category = category
        asset.asset_number = asset_number
        asset.sequence_number = asset_number[8:]
        asset.nfc_uid = nfc_uid

        if any(f in fields for f in _VALUATION_FIELDS):
            group = self._group(asset.depreciation_group_id)
            valuation = compute_valuation(
                float(asset.acquisition_value),
                asset.year,
                group,
                current_year=current_year,
            )
            asset.book_value = Decimal(str(round(valuation.book_value, 2)))

        self.session.flush()
        logger.info("Updated asset %s", asset.asset_number)
        return asset

    def delete_asset(self, asset_id: int, reason: str, deleted_by: str) -> DeletedAsset:
        """Archive an asset into the deletion history and remove it."""
        if not reason or not reason.strip():
            raise ValueError("A deletion reason is required")
        asset = self.get_asset(asset_id)

        archived = DeletedAsset(
            asset_id=asset.id,
            asset_number=asset.asset_number,
            nfc_uid=asset.nfc_uid,
            name=asset.name,
            brand=asset.brand,
            department=asset.department,
            category=asset.category,
            acquisition_value=asset.acquisition_value,
            book_value=asset.book_value if asset.book_value is not None else 0,
            year=asset.year,
            condition=asset.condition,
            image_url=asset.image_url,
            depreciation_group_id=asset.depreciation_group_id,
            deleted_at=datetime.now(),
            deleted_by=deleted_by,
            deletion_reason=reason.strip(),
        )
        self.session.add(archived)
        self.session.delete(asset)
        self.session.flush()
        logger.info(
            "Deleted asset %s by %s: %s", archived.asset_number, deleted_by, reason
        )
        return archived

    # --- NFC scans ---

    def get_by_nfc_uid(self, nfc_uid: str) -> Asset:
        asset = self.session.execute(
            select(Asset).where(Asset.nfc_uid == nfc_uid)
        ).scalar_one_or_none()
        if asset is None:
            raise AssetNotFound("Asset not found for this NFC tag")
        return asset

    def record_scan(
        self,
        nfc_uid: str,
        device_id: str | None = None,
        scanned_at: datetime | None = None,
    ) -> AssetScan:
        asset = self.get_by_nfc_uid(nfc_uid)
        scan = AssetScan(
            asset_id=asset.id,
            scanned_at=scanned_at or datetime.now(),
            device_id=device_id,
        )
        self.session.add(scan)
        self.session.flush()
        return scan

    def scan_history(self, limit: int = 50) -> list[AssetScan]:
        return list(
            self.session.scalars(
                select(AssetScan)
                .order_by(AssetScan.scanned_at.desc(), AssetScan.id.desc())
                .limit(limit)
            ).all()
        )

    def clear_scan_history(self, scan_id: int | None = None) -> int:
        """Delete one scan, or the whole history when no id is given."""
        stmt = delete(AssetScan)
        if scan_id is not None:
            stmt = stmt.where(AssetScan.id == scan_id)
        result = self.session.execute(stmt)
        return result.rowcount or 0

    # --- valuation ---

    def valuate(self, asset: Asset, current_year: int | None = None) -> AssetValuation:
        return value_asset(
            asset, load_depreciation_groups(self.session), current_year=current_year
        )

    def totals(
        self, assets: Iterable[Asset], current_year: int | None = None
    ) -> AssetValuation:
        """Fold the valuations of ``assets`` into one set of totals."""
        groups = load_depreciation_groups(self.session)
        return summarize_valuations(
            value_asset(a, groups, current_year=current_year) for a in assets
        )

    def revalue_all(self, current_year: int | None = None) -> int:
        """Recompute and store the book value of every asset.

        Returns:
            Number of assets whose stored book value changed.
        """
        groups = load_depreciation_groups(self.session)
        changed = 0
        for asset in self.session.scalars(select(Asset)).all():
            valuation = value_asset(asset, groups, current_year=current_year)
            new_value = Decimal(str(round(valuation.book_value, 2)))
            if asset.book_value != new_value:
                asset.book_value = new_value
                changed += 1
        self.session.flush()
        logger.info("Revalued assets: %d changed", changed)
        return changed
