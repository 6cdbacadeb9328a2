"""Register-wide totals and breakdowns shown on the dashboard."""

from collections.abc import Iterable

from asset_register.models.orm import Asset
from asset_register.models.reference import Department, categories_for
from asset_register.models.schemas import (
    DashboardSummary,
    GroupStats,
    ValueTrendPoint,
)

UNCATEGORIZED = "Uncategorized"


def filter_assets(
    assets: Iterable[Asset],
    department: Department | None = None,
    category: str | None = None,
    year: int | None = None,
) -> list[Asset]:
    """Keep assets matching every filter that is set."""
    out = []
    for asset in assets:
        if department is not None and asset.department != department.value:
            continue
        if category is not None and asset.category != category:
            continue
        if year is not None and asset.year != year:
            continue
        out.append(asset)
    return out


def _group_key(asset: Asset, department: Department | None) -> tuple[str, str]:
    if department is None:
        dept = Department(asset.department)
        return dept.value, dept.label
    key = asset.category or UNCATEGORIZED
    return key, categories_for(department).get(key, UNCATEGORIZED)


def group_stats(
    assets: Iterable[Asset], department: Department | None = None
) -> dict[str, GroupStats]:
    """Per-department stats, or per-category stats within one department."""
    stats: dict[str, GroupStats] = {}
    for asset in assets:
        key, label = _group_key(asset, department)
        entry = stats.setdefault(key, GroupStats(label=label))
        entry.count += 1
        entry.acquisition_value += float(asset.acquisition_value)
        entry.book_value += float(asset.book_value)
        if asset.nfc_uid:
            entry.nfc_count += 1
    return stats


def value_trend(assets: Iterable[Asset]) -> list[ValueTrendPoint]:
    """Running totals of acquisition and stored book value by acquisition year."""
    by_year: dict[int, list[float]] = {}
    for asset in assets:
        totals = by_year.setdefault(asset.year, [0.0, 0.0])
        totals[0] += float(asset.acquisition_value)
        totals[1] += float(asset.book_value)

    points = []
    acquisition = book = 0.0
    for year in sorted(by_year):
        acquisition += by_year[year][0]
        book += by_year[year][1]
        points.append(
            ValueTrendPoint(
                year=year,
                cumulative_acquisition_value=round(acquisition, 2),
                cumulative_book_value=round(book, 2),
            )
        )
    return points


def build_summary(
    assets: Iterable[Asset],
    department: Department | None = None,
    category: str | None = None,
    year: int | None = None,
) -> DashboardSummary:
    """Summarize the register after applying the dashboard filters."""
    selected = filter_assets(assets, department, category, year)
    return DashboardSummary(
        total_assets=len(selected),
        total_acquisition_value=round(
            sum(float(a.acquisition_value) for a in selected), 2
        ),
        total_book_value=round(sum(float(a.book_value) for a in selected), 2),
        active_nfc_tags=sum(1 for a in selected if a.nfc_uid),
        group_stats=group_stats(selected, department),
        value_trend=value_trend(selected),
    )
