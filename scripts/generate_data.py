"""Synthetic data generator for asset-register.

Generates a register of mosque-foundation assets spread over every department,
with NFC scan history and two sample roles.
"""

import argparse
import random
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

# Ensure src is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from sqlalchemy.orm import Session, sessionmaker

from asset_register.ingestion.asset_loader import load_depreciation_groups
from asset_register.models.database import (
    get_engine,
    init_db,
    seed_depreciation_groups,
)
from asset_register.models.orm import Base
from asset_register.models.reference import (
    BuildingCode,
    Department,
    DepreciationGroupType,
    categories_for,
)
from asset_register.models.schemas import AssetCreate
from asset_register.permissions.matrix import Action
from asset_register.permissions.roles import ADMIN_ROLE, RoleService
from asset_register.registry.service import AssetRegistry

SEED = 42
random.seed(SEED)

# (asset type code, name, brands, value_min, value_max, building?)
ASSET_SPECS = [
    ("001", "Laptop", ["Dell", "Lenovo", "HP", "Asus"], 6_000_000, 20_000_000, False),
    ("002", "Proyektor", ["Epson", "BenQ", "Sony"], 4_000_000, 12_000_000, False),
    ("003", "Printer", ["Canon", "Epson", "Brother"], 1_500_000, 6_000_000, False),
    ("010", "Meja Kerja", ["Informa", "Olympic"], 800_000, 3_000_000, False),
    ("011", "Kursi Lipat", ["Chitose", "Futura"], 150_000, 600_000, False),
    ("020", "Sound System", ["TOA", "Yamaha", "Bose"], 5_000_000, 40_000_000, False),
    ("030", "AC Split", ["Daikin", "Panasonic", "LG"], 3_500_000, 9_000_000, False),
    ("040", "Karpet Masjid", ["Turki", "Al-Hijaz"], 10_000_000, 60_000_000, False),
    ("100", "Gedung Serbaguna", ["No Brand"], 500_000_000, 2_000_000_000, True),
    ("101", "Pos Keamanan", ["No Brand"], 20_000_000, 80_000_000, True),
]

CONDITIONS = ["good", "good", "good", "fair", "damaged"]
LOCATIONS = ["Lantai 1", "Lantai 2", "Aula", "Kantor", "Gudang", "Ruang Kelas"]


def _pick_group(groups, building: bool):
    wanted = (
        DepreciationGroupType.BUILDING if building else DepreciationGroupType.NON_BUILDING
    )
    return random.choice([g for g in groups.values() if g.type == wanted])


def generate_assets(session: Session, count: int) -> list:
    """Create ``count`` assets with unique asset numbers."""
    registry = AssetRegistry(session)
    groups = load_depreciation_groups(session)
    this_year = date.today().year
    sequences: dict[tuple, int] = {}
    assets = []

    for _ in range(count):
        department = random.choice(list(Department))
        categories = list(categories_for(department))
        type_code, name, brands, vmin, vmax, building = random.choice(ASSET_SPECS)
        year = random.randint(this_year - 15, this_year)
        building_code = random.choice(list(BuildingCode)).value

        key = (department, year % 100, building_code, type_code)
        sequences[key] = sequences.get(key, 0) + 1

        value = round(random.uniform(vmin, vmax), -3)
        purchase_date = datetime(year, 1, 1) + timedelta(days=random.randint(0, 364))

        asset = registry.create_asset(
            AssetCreate(
                name=f"{name} {sequences[key]}",
                brand=random.choice(brands),
                department=department,
                category=random.choice(categories) if categories else None,
                year=year,
                building_code=building_code,
                asset_type_code=type_code,
                sequence_number=str(sequences[key]),
                acquisition_value=value,
                depreciation_group_id=_pick_group(groups, building).id,
                condition=random.choice(CONDITIONS),
                location=random.choice(LOCATIONS),
                purchase_date=purchase_date,
            )
        )
        assets.append(asset)

    return assets


def generate_scans(session: Session, assets: list, days: int = 90) -> int:
    """Record NFC scans over the last ``days`` days for a sample of assets."""
    registry = AssetRegistry(session)
    now = datetime.now()
    scan_count = 0
    for asset in random.sample(assets, k=min(len(assets), 25)):
        for _ in range(random.randint(1, 4)):
            registry.record_scan(
                asset.nfc_uid,
                device_id=f"reader-{random.randint(1, 3):02d}",
                scanned_at=now - timedelta(minutes=random.randint(0, days * 24 * 60)),
            )
            scan_count += 1
    return scan_count


def generate_roles(session: Session) -> int:
    """Create an admin role and a department-scoped education role."""
    service = RoleService(session)
    admin = service.create_role(ADMIN_ROLE, "Full access")
    service.assign_role("admin@example.org", admin.id)

    education = service.create_role("education-staff", "Education department staff")
    service.replace_permissions(
        education.id,
        {
            (Department.EDUCATION, None): [Action.READ, Action.EXPORT],
            (Department.EDUCATION, "tpa"): [Action.CREATE, Action.UPDATE],
        },
    )
    service.assign_role("guru@example.org", education.id)
    return 2


def main() -> None:
    """Run the full data generation pipeline."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--count", type=int, default=60, help="Number of assets")
    args = parser.parse_args()

    print("Initializing database...")
    engine = get_engine()
    Base.metadata.drop_all(engine)
    init_db(engine)

    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()

    try:
        groups = seed_depreciation_groups(session)
        print(f"  Seeded {groups} depreciation groups")

        print(f"Generating register ({args.count} assets)...")
        assets = generate_assets(session, args.count)
        print(f"  Created {len(assets)} assets")

        print("Generating NFC scan history...")
        scan_count = generate_scans(session, assets)
        print(f"  Recorded {scan_count} scans")

        print("Generating roles...")
        role_count = generate_roles(session)
        print(f"  Created {role_count} roles")

        session.commit()
        print("\nData generation complete!")

    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
