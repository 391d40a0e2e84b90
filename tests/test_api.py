"""REST API routes, served from the in-memory storage fixture."""

import psycopg
import pytest

from jjm_dashboard import ingest
from jjm_dashboard.ingest import ImportResult, IngestError


class TestHealthAndRegions:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_list_regions(self, client):
        regions = client.get("/api/regions").json()
        assert {r["region_name"] for r in regions} >= {"Pune", "Nashik", "Amravati"}

    def test_get_region_case_insensitive(self, client):
        resp = client.get("/api/regions/pune")
        assert resp.status_code == 200
        assert resp.json()["region_name"] == "Pune"

    def test_unknown_region(self, client):
        assert client.get("/api/regions/Atlantis").status_code == 404

    def test_summary_all_regions(self, client, sim_data):
        summary = client.get("/api/regions/summary").json()
        schemes = sim_data["schemes"]
        assert summary["total_schemes_integrated"] == len(schemes)
        assert summary["total_villages_integrated"] == int(schemes["total_villages_integrated"].sum())
        assert summary["partial_esr"] == summary["total_esr_integrated"] - summary["fully_completed_esr"]

    def test_summary_one_region(self, client, sim_data):
        summary = client.get("/api/regions/summary", params={"region": "Pune"}).json()
        pune = sim_data["schemes"][sim_data["schemes"]["region"] == "Pune"]
        assert summary["total_schemes_integrated"] == len(pune)

    def test_summary_unknown_region(self, client):
        resp = client.get("/api/regions/summary", params={"region": "Atlantis"})
        assert resp.status_code == 404


class TestSchemeStatus:
    def test_filter_by_front_end_label(self, client, sim_data):
        rows = client.get("/api/scheme-status", params={"status": "In Progress"}).json()
        expected = int((sim_data["schemes"]["scheme_status"] == "Partial").sum())
        assert len(rows) == expected
        assert {r["scheme_status"] for r in rows} <= {"Partial"}

    def test_status_all_returns_everything(self, client, sim_data):
        rows = client.get("/api/scheme-status", params={"status": "all", "region": "all"}).json()
        assert len(rows) == len(sim_data["schemes"])

    def test_filter_by_region(self, client):
        rows = client.get("/api/scheme-status", params={"region": "Konkan"}).json()
        assert rows
        assert {r["region"] for r in rows} == {"Konkan"}

    def test_get_scheme(self, client, sim_data):
        scheme_id = sim_data["schemes"].iloc[0]["scheme_id"]
        resp = client.get(f"/api/scheme-status/{scheme_id}")
        assert resp.status_code == 200
        assert resp.json()[0]["scheme_id"] == scheme_id
        assert resp.json()[0]["dashboard_url"].startswith("http")

    def test_unknown_scheme(self, client):
        assert client.get("/api/scheme-status/does-not-exist").status_code == 404


class TestWaterSchemeData:
    def test_zero_supply_filter(self, client):
        rows = client.get("/api/water-scheme-data", params={"zeroSupplyForWeek": "true"}).json()
        assert rows
        assert all(r["consistent_zero_lpcd_for_a_week"] == 1 for r in rows)

    def test_lpcd_range_filter(self, client):
        rows = client.get("/api/water-scheme-data", params={"minLpcd": 55, "maxLpcd": 80}).json()
        assert rows
        assert all(55 <= r["lpcd_value_day1"] <= 80 for r in rows)

    def test_population_stats(self, client, sim_data):
        stats = client.get("/api/water-scheme-data/population-stats", params={"region": "Nagpur"}).json()
        villages = sim_data["villages"]
        assert stats["total_villages"] == int((villages["region"] == "Nagpur").sum())
        assert stats["villages_with_water"] + stats["villages_no_water"] == stats["total_villages"]


class TestEsr:
    def test_stats(self, client, sim_data):
        stats = client.get("/api/esr/stats").json()
        assert stats["total_esr"] == len(sim_data["esrs"])
        assert stats["fully_connected"] <= stats["chlorine_connected"]

    def test_list_by_region(self, client):
        rows = client.get("/api/esr", params={"region": "Pune"}).json()
        assert {r["region"] for r in rows} == {"Pune"}


class TestTodayUpdates:
    def test_first_visit_empty_then_reports_growth(self, client, fake_storage):
        assert client.get("/api/updates/today").json() == []

        (state,) = fake_storage.state.values()
        state["prevTotals"]["villages"] -= 3

        updates = client.get("/api/updates/today").json()
        assert [(u["type"], u["count"]) for u in updates] == [("village", 3)]

        # Earlier updates of the day are kept
        assert client.get("/api/updates/today").json() == updates


class TestImports:
    @pytest.fixture
    def recorded(self, monkeypatch):
        calls = []

        def fake_import(storage, path):
            calls.append((path.suffix, path.read_bytes()))
            return ImportResult(kind="schemes", source=str(path), status="imported", inserted=2, regions=["Pune"])

        monkeypatch.setitem(ingest.IMPORTERS, "schemes", fake_import)
        monkeypatch.setitem(ingest.IMPORTERS, "lpcd", fake_import)
        return calls

    def test_scheme_upload(self, client, recorded):
        resp = client.post("/api/scheme-status/import", files={"file": ("schemes.csv", b"Scheme ID\n1\n")})
        assert resp.status_code == 200
        body = resp.json()
        assert body["inserted"] == 2
        assert body["regions"] == ["Pune"]
        assert recorded == [(".csv", b"Scheme ID\n1\n")]

    def test_bad_suffix(self, client, recorded):
        resp = client.post("/api/scheme-status/import", files={"file": ("schemes.pdf", b"%PDF")})
        assert resp.status_code == 400
        assert recorded == []

    def test_excel_route_rejects_csv(self, client, recorded):
        resp = client.post("/api/water-scheme-data/import/excel", files={"file": ("lpcd.csv", b"a,b")})
        assert resp.status_code == 400

    def test_csv_route(self, client, recorded):
        resp = client.post("/api/water-scheme-data/import/csv", files={"file": ("lpcd.csv", b"a,b")})
        assert resp.status_code == 200
        assert recorded[0][0] == ".csv"

    def test_ingest_error_is_client_error(self, client, monkeypatch):
        def reject(storage, path):
            raise IngestError("No scheme rows found")

        monkeypatch.setitem(ingest.IMPORTERS, "schemes", reject)
        resp = client.post("/api/scheme-status/import", files={"file": ("s.xlsx", b"not a workbook")})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No scheme rows found"

    def test_unexpected_error_is_server_error(self, client, monkeypatch):
        def explode(storage, path):
            raise ValueError("boom")

        monkeypatch.setitem(ingest.IMPORTERS, "schemes", explode)
        resp = client.post("/api/scheme-status/import", files={"file": ("s.xlsx", b"x")})
        assert resp.status_code == 500
        assert resp.json()["detail"] == "boom"


def test_database_error_returns_500(client, fake_storage, monkeypatch):
    def unavailable(*args, **kwargs):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(fake_storage, "list_regions", unavailable)
    resp = client.get("/api/regions")
    assert resp.status_code == 500
    assert "connection refused" in resp.json()["detail"]
