"""
KPI computation functions: pure functions with no side effects.

Provides village population/LPCD statistics, all-region totals, ESR sensor
statistics, and the daily-update diff used by the 'today' feed.
"""

import logging
from typing import Any

import pandas as pd

from .config import LPCD_THRESHOLD, LPCD_VALUE_FIELDS, STATUS_FULLY_COMPLETED
from .transforms import REGION_COUNTERS, latest_lpcd

logger = logging.getLogger(__name__)


def _pct(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def population_stats(villages_df: pd.DataFrame, threshold: float = LPCD_THRESHOLD) -> dict[str, Any]:
    """Village and population coverage figures.

    Logic
    -----
    - A village 'has water' when its latest available LPCD value is > 0.
      Villages with no LPCD value at all count as having no water.
    - villages_lpcd_above_55: latest >= threshold.
    - villages_lpcd_below_55: 0 < latest < threshold.
    - Percentages are rounded to 2 dp; 0 when the denominator is 0.
    """
    total_villages = len(villages_df)
    if total_villages == 0:
        return {
            "total_villages": 0,
            "total_population": 0,
            "villages_with_water": 0,
            "population_with_water": 0,
            "percent_villages_with_water": 0.0,
            "percent_population_with_water": 0.0,
            "villages_no_water": 0,
            "population_no_water": 0,
            "percent_villages_no_water": 0.0,
            "percent_population_no_water": 0.0,
            "villages_lpcd_above_55": 0,
            "villages_lpcd_below_55": 0,
        }

    lpcd_cols = [c for c in LPCD_VALUE_FIELDS if c in villages_df.columns]
    lpcd = villages_df[lpcd_cols].apply(pd.to_numeric, errors="coerce")
    latest = pd.Series(
        [latest_lpcd(list(row)) for row in lpcd.itertuples(index=False)],
        index=villages_df.index,
        dtype=float,
    ).fillna(0)
    if "population" in villages_df.columns:
        population = pd.to_numeric(villages_df["population"], errors="coerce").fillna(0)
    else:
        population = pd.Series(0, index=villages_df.index)

    has_water = latest > 0
    villages_with_water = int(has_water.sum())
    total_population = int(population.sum())
    population_with_water = int(population[has_water].sum())

    return {
        "total_villages": total_villages,
        "total_population": total_population,
        "villages_with_water": villages_with_water,
        "population_with_water": population_with_water,
        "percent_villages_with_water": _pct(villages_with_water, total_villages),
        "percent_population_with_water": _pct(population_with_water, total_population),
        "villages_no_water": total_villages - villages_with_water,
        "population_no_water": total_population - population_with_water,
        "percent_villages_no_water": _pct(total_villages - villages_with_water, total_villages),
        "percent_population_no_water": _pct(total_population - population_with_water, total_population),
        "villages_lpcd_above_55": int((latest >= threshold).sum()),
        "villages_lpcd_below_55": int(((latest > 0) & (latest < threshold)).sum()),
    }


def region_summary_totals(regions: list[dict[str, Any]]) -> dict[str, int]:
    """Sum every region counter across regions (the 'all regions' summary)."""
    return {
        counter: int(sum((r.get(counter) or 0) for r in regions))
        for counter in REGION_COUNTERS
    }


def esr_stats(esr_df: pd.DataFrame) -> dict[str, int]:
    """Sensor connectivity counts over ESR rows."""
    if esr_df.empty:
        return {
            "total_esr": 0,
            "chlorine_connected": 0,
            "pressure_connected": 0,
            "flow_meter_connected": 0,
            "fully_connected": 0,
            "online": 0,
        }
    flags = esr_df[["chlorine_connected", "pressure_connected", "flow_meter_connected"]].apply(
        pd.to_numeric, errors="coerce"
    ).fillna(0)
    online = esr_df["overall_status"].fillna("").astype(str).str.lower().eq("online")
    return {
        "total_esr": len(esr_df),
        "chlorine_connected": int(flags["chlorine_connected"].sum()),
        "pressure_connected": int(flags["pressure_connected"].sum()),
        "flow_meter_connected": int(flags["flow_meter_connected"].sum()),
        "fully_connected": int((flags == 1).all(axis=1).sum()),
        "online": int(online.sum()),
    }


# ---------------------------------------------------------------------------
# Daily updates
# ---------------------------------------------------------------------------
# totals key -> (update type, update status)
_UPDATE_KINDS = {
    "villages": ("village", "new"),
    "esr": ("esr", "new"),
    "completedSchemes": ("scheme", "completed"),
    "flowMeters": ("flow_meter", "new"),
    "rca": ("rca", "new"),
    "pt": ("pressure_transmitter", "new"),
}


def current_totals(regions: list[dict[str, Any]], schemes: list[dict[str, Any]]) -> dict[str, int]:
    """Counters compared between two visits of the 'today' feed."""
    totals = region_summary_totals(regions)
    return {
        "villages": totals["total_villages_integrated"],
        "esr": totals["total_esr_integrated"],
        "completedSchemes": sum(1 for s in schemes if s.get("scheme_status") == STATUS_FULLY_COMPLETED),
        "flowMeters": totals["flow_meter_integrated"],
        "rca": totals["rca_integrated"],
        "pt": totals["pressure_transmitter_integrated"],
    }


def diff_totals(
    prev: dict[str, int] | None,
    current: dict[str, int],
    timestamp: str,
    region: str = "All Regions",
) -> list[dict[str, Any]]:
    """One update per counter that grew since `prev`.

    No previous totals (first visit of the day) yields no updates.
    """
    if not prev:
        return []
    updates = []
    for key, (kind, status) in _UPDATE_KINDS.items():
        delta = (current.get(key) or 0) - (prev.get(key) or 0)
        if delta > 0:
            updates.append({
                "type": kind,
                "count": delta,
                "status": status,
                "timestamp": timestamp,
                "region": region,
            })
    return updates
