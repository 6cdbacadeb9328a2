from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from asset_register.models.reference import (
    Department,
    DepreciationGroupType,
    categories_for,
)

# --- Asset number schemas ---


class AssetIdentifier(BaseModel):
    """Decoded form of a 12-character asset number."""

    model_config = ConfigDict(frozen=True)

    department_code: str
    year: int
    building_code: str
    asset_type_code: str
    sequence_number: str

    @property
    def department(self) -> Department:
        return Department.from_code(self.department_code)

    @property
    def asset_number(self) -> str:
        from asset_register.codec.asset_number import encode

        return encode(
            self.department_code,
            self.year,
            self.building_code,
            self.asset_type_code,
            self.sequence_number,
        )


# --- Depreciation schemas ---


class DepreciationGroup(BaseModel):
    """Reference record defining a yearly rate and useful life."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    code: str
    name: str
    rate: float
    years: int
    type: DepreciationGroupType


class AssetValuation(BaseModel):
    acquisition_value: float = 0.0
    accumulated_depreciation: float = 0.0
    current_year_depreciation: float = 0.0
    book_value: float = 0.0


class DepreciationYear(BaseModel):
    year: int
    age: int
    accumulated_depreciation: float
    current_year_depreciation: float
    book_value: float


# --- Asset schemas ---


class AssetCreate(BaseModel):
    name: str = Field(min_length=1)
    brand: str = "No Brand"
    department: Department
    category: str | None = None
    year: int = Field(ge=1000, le=9999)
    building_code: str
    asset_type_code: str
    sequence_number: str
    acquisition_value: float = Field(ge=0)
    depreciation_group_id: int | None = None
    nfc_uid: str | None = None
    condition: str | None = None
    location: str | None = None
    description: str | None = None
    image_url: str | None = None
    purchase_date: datetime | None = None

    @field_validator("asset_type_code", "sequence_number", mode="before")
    @classmethod
    def _digits_as_text(cls, v):
        if isinstance(v, int):
            return str(v)
        return v


class AssetUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    brand: str | None = None
    department: Department | None = None
    category: str | None = None
    year: int | None = Field(default=None, ge=1000, le=9999)
    building_code: str | None = None
    asset_type_code: str | None = None
    sequence_number: str | None = None
    acquisition_value: float | None = Field(default=None, ge=0)
    depreciation_group_id: int | None = None
    nfc_uid: str | None = None
    condition: str | None = None
    location: str | None = None
    description: str | None = None
    image_url: str | None = None


class AssetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_number: str
    nfc_uid: str | None
    name: str
    brand: str | None
    department: Department
    category: str | None
    year: int
    sequence_number: str
    acquisition_value: float
    book_value: float
    depreciation_group_id: int | None
    condition: str | None
    location: str | None
    purchase_date: datetime | None


class DeletedAssetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    asset_number: str
    name: str
    department: Department
    category: str | None
    acquisition_value: float
    book_value: float
    year: int | None
    deleted_at: datetime
    deleted_by: str
    deletion_reason: str


class AssetFilter(BaseModel):
    """Register listing filters; year_mode picks how the year fields apply."""

    department: Department | None = None
    category: str | None = None
    year_mode: str = "single"
    year: int | None = None
    years: list[int] = Field(default_factory=list)
    year_start: int | None = None
    year_end: int | None = None
    include_older: bool = False

    @field_validator("year_mode")
    @classmethod
    def _known_mode(cls, v: str) -> str:
        if v not in ("single", "multiple", "range", "before"):
            raise ValueError(f"Unsupported year filter mode: {v}")
        return v


class ScanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    scanned_at: datetime
    device_id: str | None


# --- Dashboard schemas ---


class GroupStats(BaseModel):
    label: str
    count: int = 0
    acquisition_value: float = 0.0
    book_value: float = 0.0
    nfc_count: int = 0


class ValueTrendPoint(BaseModel):
    year: int
    cumulative_acquisition_value: float
    cumulative_book_value: float


class DashboardSummary(BaseModel):
    total_assets: int
    total_acquisition_value: float
    total_book_value: float
    active_nfc_tags: int
    group_stats: dict[str, GroupStats]
    value_trend: list[ValueTrendPoint]


# --- Import schemas ---


class ImportResult(BaseModel):
    assets: list[AssetCreate]
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_category(department: Department, category: str | None) -> str | None:
    """Return the category to store for a department, or raise ValueError."""
    allowed = categories_for(department)
    if not allowed:
        return None
    if category is None:
        return None
    if category not in allowed:
        raise ValueError(
            f"Invalid category '{category}' for department '{department.value}'"
        )
    return category
