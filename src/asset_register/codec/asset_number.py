"""Fixed-width asset number codec.

An asset number is exactly 12 characters::

    DD YY B AAA SSSS
    |  |  | |   +-- sequence number, zero padded to 4 digits
    |  |  | +------ asset type code, zero padded to 3 digits
    |  |  +-------- building code (A-D)
    |  +----------- last two digits of the acquisition year
    +-------------- department code (ST, KM, PD, SK, IT)
"""

import re
from datetime import date

from asset_register.codec.errors import FormatError, ValidationError
from asset_register.models.reference import DEPARTMENT_CODES, BuildingCode
from asset_register.models.schemas import AssetIdentifier

ASSET_NUMBER_LENGTH = 12

# Two-digit years more than this far ahead of the current one are read as 19xx.
CENTURY_WINDOW = 10

DEPARTMENT_CODE_SET = frozenset(DEPARTMENT_CODES.values())
BUILDING_CODE_SET = frozenset(b.value for b in BuildingCode)

_ASSET_TYPE_RE = re.compile(r"[0-9]{3}")
_SEQUENCE_RE = re.compile(r"[0-9]{4}")


def _padded_digits(field: str, value: str | int, width: int) -> str:
    if isinstance(value, bool):
        raise ValidationError(field, value, "must be numeric")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(field, value, "must not be negative")
        text = str(value)
    else:
        text = str(value).strip()
    if not text or not text.isdigit() or not text.isascii():
        raise ValidationError(field, value, "must be numeric")
    if len(text) > width:
        raise ValidationError(field, value, f"must be at most {width} digits")
    return text.zfill(width)


def encode(
    department_code: str,
    year: int,
    building_code: str,
    asset_type_code: str | int,
    sequence_number: str | int,
) -> str:
    """Build a 12-character asset number from its fields.

    Raises:
        ValidationError: naming the first field that violates its constraint.
    """
    dept = str(department_code).strip().upper()
    if dept not in DEPARTMENT_CODE_SET:
        raise ValidationError(
            "department_code",
            department_code,
            f"must be one of {', '.join(DEPARTMENT_CODES.values())}",
        )

    if isinstance(year, bool) or not isinstance(year, int):
        raise ValidationError("year", year, "must be an integer")
    if not 1000 <= year <= 9999:
        raise ValidationError("year", year, "must have 4 digits")

    building = str(building_code).strip().upper()
    if len(building) != 1:
        raise ValidationError("building_code", building_code, "must be one letter")
    if building not in BUILDING_CODE_SET:
        raise ValidationError("building_code", building_code, "must be A, B, C, or D")

    asset_type = _padded_digits("asset_type_code", asset_type_code, 3)
    sequence = _padded_digits("sequence_number", sequence_number, 4)

    return f"{dept}{year % 100:02d}{building}{asset_type}{sequence}"


def expand_year(two_digit_year: int, current_year: int | None = None) -> int:
    """Resolve a two-digit year to a calendar year.

    Years more than ``CENTURY_WINDOW`` ahead of the current two-digit year are
    taken to be from the 1900s, everything else from the 2000s. Numbers issued
    more than ninety years ago, or dated well into the future, resolve to the
    wrong century.
    """
    if current_year is None:
        current_year = date.today().year
    current_two_digit = current_year % 100
    if two_digit_year > current_two_digit + CENTURY_WINDOW:
        return 1900 + two_digit_year
    return 2000 + two_digit_year


def decode(asset_number: str, current_year: int | None = None) -> AssetIdentifier:
    """Parse and validate an asset number.

    Args:
        asset_number: Raw asset number; surrounding whitespace and case are ignored.
        current_year: Reference year for century resolution. Defaults to today.

    Raises:
        FormatError: for the first failed check, in segment order.
    """
    clean = ("" if asset_number is None else str(asset_number)).strip().upper()

    if len(clean) != ASSET_NUMBER_LENGTH:
        raise FormatError(
            "length",
            clean,
            f"Asset number must be exactly {ASSET_NUMBER_LENGTH} characters long "
            f"(got {len(clean)})",
        )

    department = clean[0:2]
    year_part = clean[2:4]
    building = clean[4:5]
    asset_type = clean[5:8]
    sequence = clean[8:12]

    if department not in DEPARTMENT_CODE_SET:
        raise FormatError(
            "department_code",
            department,
            f"Invalid department code: {department}. "
            f"Must be one of: {', '.join(DEPARTMENT_CODES.values())}",
        )
    if not (year_part.isdigit() and year_part.isascii()):
        raise FormatError(
            "year", year_part, f"Invalid year part: {year_part}. Must be numeric."
        )
    if building not in BUILDING_CODE_SET:
        raise FormatError(
            "building_code",
            building,
            f"Invalid building code: {building}. Must be A, B, C, or D",
        )
    if not _ASSET_TYPE_RE.fullmatch(asset_type):
        raise FormatError(
            "asset_type_code",
            asset_type,
            f"Invalid asset code: {asset_type}. Must be 3 digits",
        )
    if not _SEQUENCE_RE.fullmatch(sequence):
        raise FormatError(
            "sequence_number",
            sequence,
            f"Invalid sequential number: {sequence}. Must be 4 digits",
        )

    return AssetIdentifier(
        department_code=department,
        year=expand_year(int(year_part), current_year),
        building_code=building,
        asset_type_code=asset_type,
        sequence_number=sequence,
    )

