"""KPI functions."""

import pandas as pd

from jjm_dashboard.kpis import (
    current_totals,
    diff_totals,
    esr_stats,
    population_stats,
    region_summary_totals,
)
from jjm_dashboard.transforms import REGION_COUNTERS


def _village(population, *lpcd):
    days = list(lpcd) + [None] * (7 - len(lpcd))
    rec = {"population": population}
    rec.update({f"lpcd_value_day{i + 1}": v for i, v in enumerate(days)})
    return rec


class TestPopulationStats:
    def test_coverage(self):
        df = pd.DataFrame([
            _village(1000, 60, 70),
            _village(500, 40, 0),
            _village(250, 30, 20),
            _village(250),
        ])
        stats = population_stats(df)
        assert stats["total_villages"] == 4
        assert stats["total_population"] == 2000
        # latest values: 70, 0, 20, none
        assert stats["villages_with_water"] == 2
        assert stats["population_with_water"] == 1250
        assert stats["percent_villages_with_water"] == 50.0
        assert stats["percent_population_with_water"] == 62.5
        assert stats["villages_no_water"] == 2
        assert stats["population_no_water"] == 750
        assert stats["villages_lpcd_above_55"] == 1
        assert stats["villages_lpcd_below_55"] == 1

    def test_threshold_inclusive(self):
        stats = population_stats(pd.DataFrame([_village(10, 55)]))
        assert stats["villages_lpcd_above_55"] == 1
        assert stats["villages_lpcd_below_55"] == 0

    def test_no_villages(self):
        stats = population_stats(pd.DataFrame())
        assert stats["total_villages"] == 0
        assert stats["percent_population_with_water"] == 0.0
        assert len(stats) == 12

    def test_rounding(self):
        df = pd.DataFrame([_village(1, 60), _village(1, 0), _village(1, 0)])
        assert population_stats(df)["percent_villages_with_water"] == 33.33


class TestRegionTotals:
    def test_sums_every_counter(self):
        regions = [
            {"region_name": "A", **{c: 1 for c in REGION_COUNTERS}},
            {"region_name": "B", **{c: 2 for c in REGION_COUNTERS}, "rca_integrated": None},
        ]
        totals = region_summary_totals(regions)
        assert totals["total_esr_integrated"] == 3
        assert totals["rca_integrated"] == 1
        assert set(totals) == set(REGION_COUNTERS)


class TestEsrStats:
    def test_counts(self):
        df = pd.DataFrame([
            {"chlorine_connected": 1, "pressure_connected": 1, "flow_meter_connected": 1, "overall_status": "Online"},
            {"chlorine_connected": 1, "pressure_connected": 0, "flow_meter_connected": 1, "overall_status": "offline"},
            {"chlorine_connected": 0, "pressure_connected": 0, "flow_meter_connected": 0, "overall_status": None},
        ])
        assert esr_stats(df) == {
            "total_esr": 3,
            "chlorine_connected": 2,
            "pressure_connected": 1,
            "flow_meter_connected": 2,
            "fully_connected": 1,
            "online": 1,
        }

    def test_empty(self):
        assert esr_stats(pd.DataFrame())["total_esr"] == 0


class TestDailyUpdates:
    def test_first_visit_has_no_updates(self):
        assert diff_totals(None, {"villages": 5}, "t") == []

    def test_reports_growth_only(self):
        prev = {"villages": 5, "esr": 10, "completedSchemes": 2, "flowMeters": 4, "rca": 1, "pt": 3}
        cur = {"villages": 8, "esr": 10, "completedSchemes": 3, "flowMeters": 2, "rca": 1, "pt": 3}
        updates = diff_totals(prev, cur, "2025-03-16T10:00:00")
        assert [(u["type"], u["count"], u["status"]) for u in updates] == [
            ("village", 3, "new"),
            ("scheme", 1, "completed"),
        ]
        assert all(u["region"] == "All Regions" for u in updates)

    def test_current_totals(self):
        regions = [{c: 2 for c in REGION_COUNTERS}]
        schemes = [{"scheme_status": "Fully-Completed"}, {"scheme_status": "Partial"}]
        totals = current_totals(regions, schemes)
        assert totals["villages"] == 2
        assert totals["completedSchemes"] == 1
        assert totals["pt"] == 2
