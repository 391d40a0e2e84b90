"""Status derivation, LPCD flags, invariants and the region rollup."""

import pandas as pd
import pytest

from jjm_dashboard.config import REGIONS
from jjm_dashboard.simulator import generate_all
from jjm_dashboard.transforms import (
    REGION_COUNTERS,
    apply_scheme_derivations,
    balance_to_complete_esr,
    build_region_summary,
    check_scheme_invariants,
    compute_lpcd_flags,
    derive_scheme_status,
    latest_lpcd,
)


def _scheme(**overrides):
    base = {
        "scheme_id": "1",
        "scheme_name": "S",
        "region": "Nashik",
        "number_of_village": 5,
        "total_villages_integrated": 4,
        "fully_completed_villages": 2,
        "total_number_of_esr": 6,
        "total_esr_integrated": 5,
        "no_fully_completed_esr": 3,
        "balance_to_complete_esr": None,
        "flow_meters_connected": 2,
        "pressure_transmitter_connected": 1,
        "residual_chlorine_analyzer_connected": 4,
        "scheme_functional_status": "Functional",
        "scheme_status": None,
    }
    base.update(overrides)
    return base


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEME STATUS
# ═══════════════════════════════════════════════════════════════════════════════

class TestDeriveSchemeStatus:
    @pytest.mark.parametrize("text, expected", [
        ("Fully Completed", "Fully-Completed"),
        ("fully-completed", "Fully-Completed"),
        ("Completed", "Fully-Completed"),
        ("In Progress", "Partial"),
        ("Partially completed", "Partial"),
        ("Not Connected", "Not-Connected"),
        ("Non-Functional", "Not-Connected"),
        ("Not completed", "Not-Connected"),
        ("Incomplete", "Partial"),
        ("Disconnected", "Not-Connected"),
        ("Not Functional", "Not-Connected"),
    ])
    def test_explicit_text(self, text, expected):
        assert derive_scheme_status(text) == expected

    def test_incomplete_is_not_completed(self):
        counts = {
            "total_esr_integrated": 3, "no_fully_completed_esr": 1,
            "total_villages_integrated": 2, "fully_completed_villages": 0,
        }
        assert derive_scheme_status("Incomplete", counts=counts) == "Partial"

    def test_disconnected_beats_completed_counts(self):
        counts = {
            "total_esr_integrated": 3, "no_fully_completed_esr": 3,
            "total_villages_integrated": 2, "fully_completed_villages": 2,
        }
        assert derive_scheme_status("Disconnected", counts=counts) == "Not-Connected"

    def test_text_beats_counts(self):
        counts = {"total_esr_integrated": 0, "total_villages_integrated": 0}
        assert derive_scheme_status("Completed", counts=counts) == "Fully-Completed"

    def test_nothing_integrated(self):
        counts = {"total_esr_integrated": 0, "total_villages_integrated": 0}
        assert derive_scheme_status(None, counts=counts) == "Not-Connected"
        assert derive_scheme_status(None) == "Not-Connected"

    def test_everything_completed(self):
        counts = {
            "total_esr_integrated": 3, "no_fully_completed_esr": 3,
            "total_villages_integrated": 2, "fully_completed_villages": 2,
        }
        assert derive_scheme_status("", counts=counts) == "Fully-Completed"

    def test_partial_progress(self):
        counts = {
            "total_esr_integrated": 3, "no_fully_completed_esr": 1,
            "total_villages_integrated": 2, "fully_completed_villages": 2,
        }
        assert derive_scheme_status(None, counts=counts) == "Partial"

    def test_functional_status_fallback(self):
        counts = {"total_esr_integrated": 3, "total_villages_integrated": 2}
        assert derive_scheme_status(None, "Non-Functional", counts) == "Not-Connected"
        assert derive_scheme_status(None, "Functional", counts) == "Partial"


class TestSchemeDerivations:
    def test_balance_floor(self):
        assert balance_to_complete_esr(6, 4) == 2
        assert balance_to_complete_esr(2, 5) == 0
        assert balance_to_complete_esr(None, None) == 0

    def test_apply_keeps_given_balance(self):
        df = pd.DataFrame([_scheme(), _scheme(scheme_id="2", balance_to_complete_esr=9)])
        out = apply_scheme_derivations(df)
        assert list(out["balance_to_complete_esr"]) == [3, 9]
        assert list(out["scheme_status"]) == ["Partial", "Partial"]


# ═══════════════════════════════════════════════════════════════════════════════
# LPCD
# ═══════════════════════════════════════════════════════════════════════════════

class TestLpcdFlags:
    def test_counts_against_threshold(self):
        flags = compute_lpcd_flags([10, 55, 60, 54.9, 0, 100, 70])
        assert flags == {
            "consistent_zero_lpcd_for_a_week": 0,
            "below_55_lpcd_count": 3,
            "above_55_lpcd_count": 4,
        }

    def test_zero_week(self):
        assert compute_lpcd_flags([0] * 7)["consistent_zero_lpcd_for_a_week"] == 1

    def test_zero_week_needs_all_days(self):
        flags = compute_lpcd_flags([0, 0, 0, None, 0, 0, 0])
        assert flags["consistent_zero_lpcd_for_a_week"] == 0
        assert flags["below_55_lpcd_count"] == 6

    def test_no_values(self):
        assert set(compute_lpcd_flags([None] * 7).values()) == {0}

    def test_latest_lpcd(self):
        assert latest_lpcd([1, 2, None]) == 2.0
        assert latest_lpcd([None, None]) is None


# ═══════════════════════════════════════════════════════════════════════════════
# INVARIANTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestInvariants:
    def test_clean_rows(self):
        assert check_scheme_invariants(pd.DataFrame([_scheme()])).empty

    def test_reports_violation(self, caplog):
        df = pd.DataFrame([_scheme(fully_completed_villages=7)])
        report = check_scheme_invariants(df)
        assert list(report["rule"]) == ["fully_completed_villages <= total_villages_integrated"]
        assert report.iloc[0]["lower"] == 7
        assert "violates" in caplog.text

    def test_blank_outer_total_not_checked(self):
        df = pd.DataFrame([_scheme(number_of_village=0, total_number_of_esr=None)])
        assert check_scheme_invariants(df).empty

    def test_empty_frame(self):
        report = check_scheme_invariants(pd.DataFrame())
        assert report.empty
        assert "rule" in report.columns


# ═══════════════════════════════════════════════════════════════════════════════
# REGION ROLLUP
# ═══════════════════════════════════════════════════════════════════════════════

class TestRegionSummary:
    def test_counts_match_scheme_rows(self):
        schemes = apply_scheme_derivations(pd.DataFrame([
            _scheme(),
            _scheme(scheme_id="2", scheme_status="Fully Completed"),
            _scheme(scheme_id="3", region="Pune"),
        ]))
        summary = build_region_summary(schemes).set_index("region_name")

        nashik = summary.loc["Nashik"]
        assert nashik["total_schemes_integrated"] == 2
        assert nashik["fully_completed_schemes"] == 1
        assert nashik["total_villages_integrated"] == 8
        assert nashik["fully_completed_esr"] == 6
        assert nashik["partial_esr"] == 4
        assert nashik["rca_integrated"] == 8

        assert summary.loc["Pune", "total_schemes_integrated"] == 1
        assert summary.loc["Konkan", "total_schemes_integrated"] == 0

    def test_every_known_region_present(self):
        summary = build_region_summary(pd.DataFrame())
        assert list(summary["region_name"]) == REGIONS
        assert (summary[REGION_COUNTERS] == 0).all().all()

    def test_unknown_region_appended(self):
        schemes = apply_scheme_derivations(pd.DataFrame([_scheme(region="Thane")]))
        summary = build_region_summary(schemes)
        assert "Thane" in set(summary["region_name"])


class TestSimulator:
    def test_generated_schemes_respect_invariants(self):
        data = generate_all(seed=3)
        assert check_scheme_invariants(data["schemes"]).empty
        assert data["schemes"]["scheme_id"].is_unique
        assert data["schemes"]["dashboard_url"].notna().all()

    def test_villages_follow_schemes(self):
        data = generate_all(seed=3)
        villages = data["villages"]
        expected = int(data["schemes"]["total_villages_integrated"].sum())
        assert len(villages) == expected
        assert set(villages["scheme_id"]) <= set(data["schemes"]["scheme_id"])
        assert villages["consistent_zero_lpcd_for_a_week"].isin([0, 1]).all()

    def test_deterministic(self):
        a = generate_all(seed=11)["schemes"]
        b = generate_all(seed=11)["schemes"]
        pd.testing.assert_frame_equal(a, b)
