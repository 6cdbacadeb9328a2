import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from asset_register.ingestion.asset_loader import load_depreciation_groups
from asset_register.models.database import seed_depreciation_groups
from asset_register.models.orm import Base
from asset_register.models.reference import Department
from asset_register.models.schemas import AssetCreate
from asset_register.registry.service import AssetRegistry

CURRENT_YEAR = 2024


@pytest.fixture(scope="session")
def engine():
    eng = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    sess = Session(bind=connection)
    yield sess
    sess.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def groups(session):
    """Default depreciation groups keyed by name."""
    seed_depreciation_groups(session)
    return {g.name: g for g in load_depreciation_groups(session).values()}


@pytest.fixture
def registry(session):
    return AssetRegistry(session)


@pytest.fixture
def sample_laptop(registry, groups):
    """A 15M laptop bought in 2020 in the 4-year group."""
    return registry.create_asset(
        AssetCreate(
            name="Laptop Dell XPS",
            brand="Dell",
            department=Department.SECRETARIAT,
            category="fixed",
            year=2020,
            building_code="A",
            asset_type_code="001",
            sequence_number="0001",
            acquisition_value=15_000_000,
            depreciation_group_id=groups["Kelompok 1"].id,
            nfc_uid="04A1B2C3D4E5F601",
        ),
        current_year=CURRENT_YEAR,
    )


@pytest.fixture
def sample_projector(registry, groups):
    """An 8M projector bought in 2023 for the TKI kindergarten."""
    return registry.create_asset(
        AssetCreate(
            name="Proyektor",
            brand="Epson",
            department=Department.EDUCATION,
            category="tki",
            year=2023,
            building_code="B",
            asset_type_code="002",
            sequence_number="0002",
            acquisition_value=8_000_000,
            depreciation_group_id=groups["Kelompok 2"].id,
        ),
        current_year=CURRENT_YEAR,
    )


@pytest.fixture
def sample_server(registry, groups):
    """An ICT server with no NFC tag assigned through the payload."""
    return registry.create_asset(
        AssetCreate(
            name="Server Rack",
            department=Department.ICT,
            year=2022,
            building_code="C",
            asset_type_code="5",
            sequence_number="12",
            acquisition_value=40_000_000,
            depreciation_group_id=groups["Kelompok 2"].id,
        ),
        current_year=CURRENT_YEAR,
    )


@pytest.fixture
def sample_assets(sample_laptop, sample_projector, sample_server):
    return [sample_laptop, sample_projector, sample_server]
