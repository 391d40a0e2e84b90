"""
Shared pytest fixtures for the JJM dashboard test suite.

Provides workbook builders (openpyxl, written to tmp_path), an in-memory
storage stand-in for the API, and a FastAPI TestClient wired to it.
"""

from datetime import datetime, timezone
from pathlib import Path

import openpyxl
import pandas as pd
import pytest
from fastapi.testclient import TestClient

from jjm_dashboard import kpis
from jjm_dashboard.api import app, get_storage
from jjm_dashboard.storage import resolve_status_filter
from jjm_dashboard.transforms import REGION_COUNTERS, build_region_summary


@pytest.fixture
def make_workbook(tmp_path):
    """Factory: {sheet name: rows} -> path of a saved .xlsx."""

    def _make(sheets: dict[str, list[list]], name: str = "book.xlsx") -> Path:
        wb = openpyxl.Workbook()
        wb.remove(wb.active)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make


SCHEME_HEADER = [
    "Sr No.", "Region", "Circle", "Division", "Sub Division", "Block", "Scheme ID",
    "Scheme Name", "Number of Village", "Total Villages Integrated",
    "Fully completed Villages", "Total Number of ESR", "Total ESR Integrated on IoT",
    "No. Fully Completed ESR", "Flow Meters Conneted", "Pressure Transmitter Conneted",
    "Residual Chlorine Conneted", "Fully completion Scheme Status",
]


@pytest.fixture
def scheme_header():
    return list(SCHEME_HEADER)


class FakeStorage:
    """In-memory stand-in for PostgresStorage, backed by frames."""

    def __init__(self, schemes: pd.DataFrame, villages: pd.DataFrame, esrs: pd.DataFrame):
        self.schemes = schemes
        self.villages = villages
        self.esrs = esrs
        self.state: dict[str, dict] = {}

    def list_regions(self):
        return build_region_summary(self.schemes).to_dict("records")

    def get_region(self, name):
        for r in self.list_regions():
            if r["region_name"].lower() == name.lower():
                return r
        return None

    def region_summary(self, region=None):
        if region in (None, "", "all"):
            return kpis.region_summary_totals(self.list_regions())
        row = self.get_region(region)
        return None if row is None else {c: row[c] for c in REGION_COUNTERS}

    def list_schemes(self, region=None, status=None, scheme_id=None):
        df = self.schemes
        if region not in (None, "", "all"):
            df = df[df["region"] == region]
        wanted = resolve_status_filter(status)
        if wanted:
            df = df[df["scheme_status"].str.lower() == wanted.lower()]
        if scheme_id:
            df = df[df["scheme_id"] == scheme_id]
        return df.to_dict("records")

    def get_scheme(self, scheme_id):
        return self.list_schemes(scheme_id=scheme_id)

    def list_villages(self, region=None, min_lpcd=None, max_lpcd=None, zero_supply_for_week=False):
        df = self.villages
        if region not in (None, "", "all"):
            df = df[df["region"] == region]
        day1 = pd.to_numeric(df["lpcd_value_day1"], errors="coerce")
        mask = pd.Series(True, index=df.index)
        if min_lpcd is not None:
            mask &= day1 >= min_lpcd
        if max_lpcd is not None:
            mask &= day1 <= max_lpcd
        if zero_supply_for_week:
            mask &= df["consistent_zero_lpcd_for_a_week"] == 1
        return df[mask].to_dict("records")

    def population_stats(self, region=None):
        return kpis.population_stats(pd.DataFrame(self.list_villages(region=region)))

    def list_esrs(self, region=None):
        df = self.esrs
        if region not in (None, "", "all"):
            df = df[df["region"] == region]
        return df.to_dict("records")

    def esr_stats(self, region=None):
        return kpis.esr_stats(pd.DataFrame(self.list_esrs(region)))

    def get_today_updates(self, today=None):
        key = f"daily_updates_{(today or datetime.now(timezone.utc).date()).isoformat()}"
        state = self.state.get(key, {})
        current = kpis.current_totals(self.list_regions(), self.list_schemes())
        updates = kpis.diff_totals(state.get("prevTotals"), current, "now") + state.get("updates", [])
        self.state[key] = {"updates": updates, "prevTotals": current}
        return updates


@pytest.fixture(scope="session")
def sim_data():
    from jjm_dashboard.simulator import generate_all

    return generate_all(seed=7)


@pytest.fixture
def fake_storage(sim_data):
    return FakeStorage(sim_data["schemes"], sim_data["villages"], sim_data["esrs"])


@pytest.fixture
def client(fake_storage):
    """TestClient whose storage dependency yields the in-memory fake."""
    app.dependency_overrides[get_storage] = lambda: fake_storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
