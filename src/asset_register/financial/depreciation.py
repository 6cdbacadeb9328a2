from collections.abc import Iterable, Mapping
from datetime import date

from asset_register.models.orm import Asset
from asset_register.models.schemas import (
    AssetValuation,
    DepreciationGroup,
    DepreciationYear,
)

# Depreciated assets keep one currency unit of book value so they stay listed.
MINIMUM_BOOK_VALUE = 1.0


def compute_valuation(
    acquisition_value: float,
    acquisition_year: int,
    group: DepreciationGroup | None,
    stored_book_value: float | None = None,
    current_year: int | None = None,
) -> AssetValuation:
    """Straight-line valuation of one asset as of ``current_year``.

    The book value never drops below ``min(MINIMUM_BOOK_VALUE, acquisition_value)``,
    so an asset bought for less than 1 keeps its full value instead of being
    raised to 1. A non-positive acquisition value gives an all-zero valuation.

    Args:
        acquisition_value: Purchase value, non-negative.
        acquisition_year: Calendar year the asset was acquired.
        group: Depreciation group; ``None`` leaves the asset undepreciated.
        stored_book_value: Previously persisted book value. 0 marks the asset as
            fully depreciated and 1 as sitting at the floor; any other value is
            ignored.
        current_year: Year to value the asset in. Defaults to today.
    """
    if acquisition_value <= 0:
        return AssetValuation()

    if group is None:
        return AssetValuation(
            acquisition_value=acquisition_value, book_value=acquisition_value
        )

    if current_year is None:
        current_year = date.today().year
    age = max(current_year - acquisition_year, 0)

    floor = min(MINIMUM_BOOK_VALUE, acquisition_value)
    yearly = acquisition_value * group.rate
    accumulated = 0.0
    current = 0.0

    if stored_book_value == 0:
        accumulated = acquisition_value
    elif stored_book_value == MINIMUM_BOOK_VALUE:
        accumulated = acquisition_value - floor
    else:
        # Prior years stop one unit short so the current year can still apply.
        if age > 1:
            accumulated = max(
                min(yearly * (age - 1), acquisition_value - floor), 0.0
            )

        if age > 0:
            remaining = acquisition_value - accumulated
            if remaining > yearly + floor:
                current = yearly
            elif remaining > floor:
                current = remaining - floor

    book_value = max(acquisition_value - accumulated - current, floor)

    return AssetValuation(
        acquisition_value=acquisition_value,
        accumulated_depreciation=accumulated,
        current_year_depreciation=current,
        book_value=book_value,
    )


def summarize_valuations(valuations: Iterable[AssetValuation]) -> AssetValuation:
    """Sum each valuation field independently."""
    total = AssetValuation()
    for v in valuations:
        total = AssetValuation(
            acquisition_value=total.acquisition_value + v.acquisition_value,
            accumulated_depreciation=total.accumulated_depreciation
            + v.accumulated_depreciation,
            current_year_depreciation=total.current_year_depreciation
            + v.current_year_depreciation,
            book_value=total.book_value + v.book_value,
        )
    return total


def depreciation_schedule(
    acquisition_value: float,
    acquisition_year: int,
    group: DepreciationGroup | None,
    through_year: int | None = None,
) -> list[DepreciationYear]:
    """Year-by-year valuation from the acquisition year through ``through_year``.

    Args:
        acquisition_value: Purchase value.
        acquisition_year: Calendar year the asset was acquired.
        group: Depreciation group, or ``None`` for an undepreciated asset.
        through_year: Last year to include. Defaults to the current year.
    """
    if through_year is None:
        through_year = date.today().year

    schedule = []
    for year in range(acquisition_year, through_year + 1):
        v = compute_valuation(
            acquisition_value, acquisition_year, group, current_year=year
        )
        schedule.append(
            DepreciationYear(
                year=year,
                age=year - acquisition_year,
                accumulated_depreciation=round(v.accumulated_depreciation, 2),
                current_year_depreciation=round(v.current_year_depreciation, 2),
                book_value=round(v.book_value, 2),
            )
        )
    return schedule


def value_asset(
    asset: Asset,
    groups: Mapping[int, DepreciationGroup],
    current_year: int | None = None,
    use_stored_book_value: bool = True,
) -> AssetValuation:
    """Value a register row against the depreciation groups keyed by id."""
    group = None
    if asset.depreciation_group_id is not None:
        group = groups.get(asset.depreciation_group_id)
    stored = None
    if use_stored_book_value and asset.book_value is not None:
        stored = float(asset.book_value)
    return compute_valuation(
        float(asset.acquisition_value),
        asset.year,
        group,
        stored_book_value=stored,
        current_year=current_year,
    )
