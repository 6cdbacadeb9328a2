from io import BytesIO
from unittest.mock import patch

import pandas as pd
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from asset_register.api.dependencies import get_db
from asset_register.api.main import app
from asset_register.api.routes.transfer import XLSX_MEDIA_TYPE
from asset_register.config.settings import Settings
from asset_register.ingestion.asset_loader import load_depreciation_groups
from asset_register.models.database import seed_depreciation_groups
from asset_register.models.orm import Base
from asset_register.models.reference import Department
from asset_register.models.schemas import AssetCreate
from asset_register.permissions.roles import ADMIN_ROLE, RoleService
from asset_register.registry.service import AssetRegistry

_test_engine = create_engine(
    "sqlite:///:memory:",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(_test_engine)
_TestSessionLocal = sessionmaker(bind=_test_engine, expire_on_commit=False)

LAPTOP_NFC = "04A1B2C3D4E5F601"


def _seed():
    session = _TestSessionLocal()

    seed_depreciation_groups(session)
    groups = {g.name: g for g in load_depreciation_groups(session).values()}
    registry = AssetRegistry(session)
    registry.create_asset(
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
            nfc_uid=LAPTOP_NFC,
        ),
        current_year=2024,
    )
    registry.create_asset(
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
        current_year=2024,
    )
    registry.create_asset(
        AssetCreate(
            name="Sound System",
            brand="TOA",
            department=Department.SOCIAL_AFFAIRS,
            category="youth",
            year=2021,
            building_code="C",
            asset_type_code="020",
            sequence_number="0001",
            acquisition_value=20_000_000,
            depreciation_group_id=groups["Kelompok 2"].id,
        ),
        current_year=2024,
    )

    roles = RoleService(session)
    admin = roles.create_role(ADMIN_ROLE)
    roles.assign_role("boss", admin.id)
    staff = roles.create_role("tki-staff")
    roles.replace_permissions(
        staff.id, {("education", "tki"): ["read", "create", "update", "export"]}
    )
    roles.assign_role("guru", staff.id)

    session.commit()
    session.close()


_seed()


def _override_get_db():
    session = _TestSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


app.dependency_overrides[get_db] = _override_get_db

GURU = {"X-User-Id": "guru"}
OUTSIDER = {"X-User-Id": "outsider"}


def _workbook(rows: list[dict]) -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, index=False)
    return buffer.getvalue()


def _asset_body(**overrides) -> dict:
    body = {
        "name": "Papan Tulis",
        "department": "education",
        "category": "tki",
        "year": 2024,
        "building_code": "A",
        "asset_type_code": "050",
        "sequence_number": "1",
        "acquisition_value": 1_200_000,
    }
    body.update(overrides)
    return body


@pytest.fixture(scope="module")
def client():
    with patch("asset_register.api.main.get_engine", return_value=_test_engine):
        with TestClient(app) as c:
            yield c


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestAssetRoutes:
    def test_list_assets(self, client):
        resp = client.get("/api/v1/assets/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] >= 3
        numbers = [a["asset_number"] for a in data["items"]]
        assert "ST20A0010001" in numbers
        assert numbers == sorted(numbers)

    def test_list_with_filters(self, client):
        resp = client.get("/api/v1/assets/?department=education&year=2023")
        assert resp.status_code == 200
        for item in resp.json()["items"]:
            assert item["department"] == "education"
            assert item["year"] == 2023

    def test_list_year_range(self, client):
        resp = client.get(
            "/api/v1/assets/?year_mode=range&year_start=2020&year_end=2021"
        )
        assert resp.status_code == 200
        years = {item["year"] for item in resp.json()["items"]}
        assert years <= {2020, 2021}

    def test_list_bad_year_mode(self, client):
        resp = client.get("/api/v1/assets/?year_mode=decade")
        assert resp.status_code == 400

    def test_list_is_scoped_by_permissions(self, client):
        resp = client.get("/api/v1/assets/", headers=GURU)
        assert resp.status_code == 200
        for item in resp.json()["items"]:
            assert (item["department"], item["category"]) == ("education", "tki")

    def test_outsider_sees_nothing(self, client):
        resp = client.get("/api/v1/assets/", headers=OUTSIDER)
        assert resp.json()["total"] == 0

    def test_get_by_number(self, client):
        resp = client.get("/api/v1/assets/by-number/st20a0010001")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Laptop Dell XPS"
        assert data["book_value"] == 1

    def test_get_missing(self, client):
        resp = client.get("/api/v1/assets/999999")
        assert resp.status_code == 404

    def test_get_forbidden(self, client):
        asset = client.get("/api/v1/assets/by-number/ST20A0010001").json()
        resp = client.get(f"/api/v1/assets/{asset['id']}", headers=GURU)
        assert resp.status_code == 403

    def test_create(self, client):
        resp = client.post(
            "/api/v1/assets/?current_year=2024", json=_asset_body()
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["asset_number"] == "PD24A0500001"
        assert data["book_value"] == 1_200_000
        assert len(data["nfc_uid"]) == 16

    def test_create_invalid_category(self, client):
        resp = client.post(
            "/api/v1/assets/",
            json=_asset_body(category="fixed", sequence_number="2"),
        )
        assert resp.status_code == 400

    def test_create_invalid_building(self, client):
        resp = client.post(
            "/api/v1/assets/",
            json=_asset_body(building_code="Q", sequence_number="3"),
        )
        assert resp.status_code == 400
        assert "building_code" in resp.json()["detail"]

    def test_create_duplicate(self, client):
        body = _asset_body(sequence_number="4")
        assert client.post("/api/v1/assets/", json=body).status_code == 201
        resp = client.post("/api/v1/assets/", json=body)
        assert resp.status_code == 400
        assert "already exists" in resp.json()["detail"]

    def test_create_with_category_permission(self, client):
        resp = client.post(
            "/api/v1/assets/", json=_asset_body(sequence_number="5"), headers=GURU
        )
        assert resp.status_code == 201

    def test_create_outside_permission(self, client):
        resp = client.post(
            "/api/v1/assets/",
            json=_asset_body(category="sdi", sequence_number="6"),
            headers=GURU,
        )
        assert resp.status_code == 403

    def test_update(self, client):
        created = client.post(
            "/api/v1/assets/", json=_asset_body(sequence_number="7")
        ).json()
        resp = client.patch(
            f"/api/v1/assets/{created['id']}",
            json={"building_code": "D", "name": "Papan Tulis Kaca"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["asset_number"] == "PD24D0500007"
        assert data["name"] == "Papan Tulis Kaca"

    def test_update_missing(self, client):
        resp = client.patch("/api/v1/assets/999999", json={"name": "x"})
        assert resp.status_code == 404

    def test_delete_requires_reason(self, client):
        created = client.post(
            "/api/v1/assets/", json=_asset_body(sequence_number="8")
        ).json()
        resp = client.delete(f"/api/v1/assets/{created['id']}")
        assert resp.status_code == 422

    def test_delete_archives(self, client):
        created = client.post(
            "/api/v1/assets/", json=_asset_body(sequence_number="9")
        ).json()
        resp = client.delete(
            f"/api/v1/assets/{created['id']}?reason=Hilang&deleted_by=boss"
        )
        assert resp.status_code == 200
        assert resp.json()["deletion_reason"] == "Hilang"

        assert client.get(f"/api/v1/assets/{created['id']}").status_code == 404
        deleted = client.get("/api/v1/assets/deleted").json()
        assert "PD24A0500009" in [d["asset_number"] for d in deleted]

    def test_delete_needs_permission(self, client):
        created = client.post(
            "/api/v1/assets/", json=_asset_body(sequence_number="10")
        ).json()
        resp = client.delete(
            f"/api/v1/assets/{created['id']}?reason=x", headers=GURU
        )
        assert resp.status_code == 403


class TestAssetNumberRoutes:
    def test_encode(self, client):
        resp = client.post(
            "/api/v1/asset-numbers/encode",
            json={
                "department_code": "ST",
                "year": 2023,
                "building_code": "A",
                "asset_type_code": "1",
                "sequence_number": "1",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["asset_number"] == "ST23A0010001"

    def test_encode_invalid(self, client):
        resp = client.post(
            "/api/v1/asset-numbers/encode",
            json={
                "department_code": "ST",
                "year": 2023,
                "building_code": "A",
                "asset_type_code": "1234",
                "sequence_number": "1",
            },
        )
        assert resp.status_code == 400
        assert "asset_type_code" in resp.json()["detail"]

    def test_decode(self, client):
        resp = client.get("/api/v1/asset-numbers/SK96C0200001?current_year=2024")
        assert resp.status_code == 200
        data = resp.json()
        assert data["year"] == 1996
        assert data["department"] == "social_affairs"

    def test_decode_invalid(self, client):
        resp = client.get("/api/v1/asset-numbers/ST23A001001")
        assert resp.status_code == 400
        assert "12 characters" in resp.json()["detail"]


class TestValuationRoutes:
    def test_asset_valuation(self, client):
        asset = client.get("/api/v1/assets/by-number/ST20A0010001").json()
        resp = client.get(
            f"/api/v1/valuation/assets/{asset['id']}?current_year=2024"
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["depreciation_group"] == "Kelompok 1"
        assert data["valuation"]["book_value"] == 1
        assert [row["book_value"] for row in data["schedule"]] == [
            15_000_000,
            11_250_000,
            7_500_000,
            3_750_000,
            1,
        ]

    def test_valuation_missing(self, client):
        assert client.get("/api/v1/valuation/assets/999999").status_code == 404

    def test_totals(self, client):
        resp = client.get(
            "/api/v1/valuation/totals?department=social_affairs&current_year=2024"
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["asset_count"] == 1
        assert data["acquisition_value"] == 20_000_000
        assert data["book_value"] == 12_500_000

    def test_revalue_requires_admin(self, client):
        resp = client.post("/api/v1/valuation/revalue", headers=GURU)
        assert resp.status_code == 403

    def test_revalue(self, client):
        resp = client.post(
            "/api/v1/valuation/revalue?current_year=2024", headers={"X-User-Id": "boss"}
        )
        assert resp.status_code == 200
        assert "changed" in resp.json()


class TestDashboardRoutes:
    def test_summary(self, client):
        resp = client.get("/api/v1/dashboard/summary")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_assets"] >= 3
        assert "secretariat" in data["group_stats"]
        years = [p["year"] for p in data["value_trend"]]
        assert years == sorted(years)

    def test_summary_by_category(self, client):
        resp = client.get("/api/v1/dashboard/summary?department=social_affairs")
        data = resp.json()
        assert list(data["group_stats"]) == ["youth"]
        assert data["group_stats"]["youth"]["label"] == "Seksi Remaja"


class TestScanRoutes:
    def test_record_scan(self, client):
        resp = client.post(
            "/api/v1/scans/", json={"nfc_uid": LAPTOP_NFC, "device_id": "reader-01"}
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["asset"]["asset_number"] == "ST20A0010001"
        assert data["scan"]["device_id"] == "reader-01"

    def test_unknown_tag(self, client):
        resp = client.post("/api/v1/scans/", json={"nfc_uid": "FFFFFFFF"})
        assert resp.status_code == 404

    def test_history_and_clear(self, client):
        client.post("/api/v1/scans/", json={"nfc_uid": LAPTOP_NFC})
        history = client.get("/api/v1/scans/?limit=10").json()
        assert history[0]["asset_number"] == "ST20A0010001"

        resp = client.delete(f"/api/v1/scans/{history[0]['id']}")
        assert resp.json()["deleted"] == 1
        assert client.delete(f"/api/v1/scans/{history[0]['id']}").status_code == 404

        client.delete("/api/v1/scans/")
        assert client.get("/api/v1/scans/").json() == []

    def test_history_hidden_without_read(self, client):
        client.post("/api/v1/scans/", json={"nfc_uid": LAPTOP_NFC})
        assert client.get("/api/v1/scans/", headers=OUTSIDER).json() == []
        assert client.get("/api/v1/scans/", headers=GURU).json() == []
        assert client.get("/api/v1/scans/").json() != []

    def test_clear_requires_admin(self, client):
        scan = client.post("/api/v1/scans/", json={"nfc_uid": LAPTOP_NFC}).json()
        scan_id = scan["scan"]["id"]

        resp = client.delete(f"/api/v1/scans/{scan_id}", headers=OUTSIDER)
        assert resp.status_code == 403
        assert client.delete("/api/v1/scans/", headers=OUTSIDER).status_code == 403
        assert client.delete("/api/v1/scans/", headers=GURU).status_code == 403

        ids = [s["id"] for s in client.get("/api/v1/scans/").json()]
        assert scan_id in ids

    def test_record_requires_read(self, client):
        before = len(client.get("/api/v1/scans/?limit=500").json())
        resp = client.post(
            "/api/v1/scans/", json={"nfc_uid": LAPTOP_NFC}, headers=OUTSIDER
        )
        assert resp.status_code == 403
        assert len(client.get("/api/v1/scans/?limit=500").json()) == before


class TestTransferRoutes:
    def test_template(self, client):
        resp = client.get("/api/v1/transfer/template")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == XLSX_MEDIA_TYPE
        df = pd.read_excel(BytesIO(resp.content), engine="openpyxl")
        assert len(df) == 2

    def test_import(self, client):
        payload = _workbook(
            [
                {
                    "Nomor Asset": "KM22A0300001",
                    "Nama": "AC Split",
                    "Nilai Perolehan": 4_000_000,
                    "Grup Depresiasi": "Kelompok 1",
                },
                {
                    "Nomor Asset": "KM22A0300002",
                    "Nama": "AC Split",
                    "Nilai Perolehan": 4_000_000,
                    "Grup Depresiasi": "Kelompok 1",
                },
            ]
        )
        resp = client.post(
            "/api/v1/transfer/import?current_year=2024",
            content=payload,
            headers={"Content-Type": XLSX_MEDIA_TYPE},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["imported"] == 2
        assert data["items"][0]["book_value"] == 2_000_000

    def test_import_rejects_whole_file(self, client):
        before = client.get("/api/v1/assets/").json()["total"]
        payload = _workbook(
            [
                {
                    "Nomor Asset": "KM22A0300010",
                    "Nama": "AC Split",
                    "Nilai Perolehan": 4_000_000,
                    "Grup Depresiasi": "Kelompok 1",
                },
                {
                    "Nomor Asset": "KM22A030001",
                    "Nama": "AC Split",
                    "Nilai Perolehan": 4_000_000,
                    "Grup Depresiasi": "Kelompok 1",
                },
            ]
        )
        resp = client.post("/api/v1/transfer/import", content=payload)
        assert resp.status_code == 400
        errors = resp.json()["detail"]["errors"]
        assert len(errors) == 1
        assert errors[0].startswith("Row 2:")
        assert client.get("/api/v1/assets/").json()["total"] == before

    def test_import_garbage(self, client):
        resp = client.post("/api/v1/transfer/import", content=b"not a workbook")
        assert resp.status_code == 400

    def test_import_empty(self, client):
        resp = client.post("/api/v1/transfer/import", content=b"")
        assert resp.status_code == 400

    def test_import_needs_permission(self, client):
        before = client.get("/api/v1/assets/").json()["total"]
        payload = _workbook(
            [
                {
                    "Nomor Asset": "IT22A0300001",
                    "Nama": "Switch",
                    "Nilai Perolehan": 4_000_000,
                    "Grup Depresiasi": "Kelompok 1",
                }
            ]
        )
        resp = client.post("/api/v1/transfer/import", content=payload, headers=GURU)
        assert resp.status_code == 403
        assert client.get("/api/v1/assets/").json()["total"] == before
        assert client.get("/api/v1/assets/by-number/IT22A0300001").status_code == 404

    def test_export_scoped_by_permission(self, client):
        resp = client.get("/api/v1/transfer/export", headers=GURU)
        assert resp.status_code == 200
        df = pd.read_excel(BytesIO(resp.content), engine="openpyxl")
        assert set(df["Bidang"]) <= {"Bidang Pendidikan"}
        assert set(df["Kategori"]) <= {"TKI"}

    def test_export_filtered(self, client):
        resp = client.get("/api/v1/transfer/export?department=secretariat")
        df = pd.read_excel(BytesIO(resp.content), engine="openpyxl")
        assert list(df["Nomor Asset"]) == ["ST20A0010001"]


class TestRoleRoutes:
    def test_my_permissions(self, client):
        data = client.get("/api/v1/permissions/me", headers=GURU).json()
        assert data["is_admin"] is False
        assert data["level"] == "category"
        assert "update" in data["grants"]["education"]["tki"]

    def test_admin_by_default(self, client):
        assert client.get("/api/v1/permissions/me").json()["is_admin"] is True

    def test_list_roles(self, client):
        resp = client.get("/api/v1/roles", headers={"X-User-Id": "boss"})
        assert resp.status_code == 200
        names = [r["name"] for r in resp.json()]
        assert ADMIN_ROLE in names
        assert "tki-staff" in names

    def test_roles_require_admin(self, client):
        assert client.get("/api/v1/roles", headers=GURU).status_code == 403

    def test_role_lifecycle(self, client):
        resp = client.post("/api/v1/roles", json={"name": "madrasah-staff"})
        assert resp.status_code == 201
        role_id = resp.json()["id"]

        resp = client.put(
            f"/api/v1/roles/{role_id}/permissions",
            json={
                "grants": [
                    {
                        "department": "education",
                        "category": "madrasah",
                        "actions": ["read", "create"],
                    },
                    {"department": "ict", "actions": ["read"]},
                ]
            },
        )
        assert resp.status_code == 200
        assert len(resp.json()["permissions"]) == 2

        assert client.put(f"/api/v1/roles/{role_id}/users/ustadz").status_code == 200
        me = client.get("/api/v1/permissions/me", headers={"X-User-Id": "ustadz"})
        assert "create" in me.json()["grants"]["education"]["madrasah"]

        assert client.delete(f"/api/v1/roles/{role_id}/users/ustadz").status_code == 200
        assert client.delete(f"/api/v1/roles/{role_id}").status_code == 200
        assert client.delete(f"/api/v1/roles/{role_id}").status_code == 404

    def test_unknown_permission_key(self, client):
        role_id = client.post("/api/v1/roles", json={"name": "bad-keys"}).json()["id"]
        resp = client.put(
            f"/api/v1/roles/{role_id}/permissions",
            json={
                "grants": [{"department": "ict", "category": "tki", "actions": ["read"]}]
            },
        )
        assert resp.status_code == 400

    def test_duplicate_role(self, client):
        resp = client.post("/api/v1/roles", json={"name": ADMIN_ROLE})
        assert resp.status_code == 400


class TestUserHeader:
    def test_header_required_when_configured(self, client):
        with patch(
            "asset_register.api.dependencies.get_settings",
            return_value=Settings(require_user_header=True),
        ):
            resp = client.get("/api/v1/assets/")
        assert resp.status_code == 401
