"""
Dashboard-ready output functions.

These are the entry points for the Streamlit front end. Each function takes
plain frames (from the database or the simulator) and returns dicts or
DataFrames ready for cards, charts and tables.
"""

import logging

import pandas as pd

from .config import LPCD_THRESHOLD, LPCD_VALUE_FIELDS, SCHEME_STATUSES
from .kpis import esr_stats, population_stats, region_summary_totals
from .transforms import REGION_COUNTERS, build_region_summary, latest_lpcd

logger = logging.getLogger(__name__)


def _filter_region(df: pd.DataFrame, region: str | None) -> pd.DataFrame:
    if df.empty or region in (None, "", "all"):
        return df
    return df[df["region"] == region]


def get_overview(
    schemes: pd.DataFrame,
    villages: pd.DataFrame,
    esrs: pd.DataFrame,
    region: str | None = None,
) -> dict:
    """Single entry point for the summary cards.

    Returns
    -------
    dict with 'summary' (region counters, summed when region is None),
    'population' (population_stats) and 'esr' (esr_stats).
    """
    regions = build_region_summary(schemes).to_dict("records")
    if region in (None, "", "all"):
        summary = region_summary_totals(regions)
    else:
        match = [r for r in regions if r["region_name"] == region]
        summary = {c: int(match[0][c]) for c in REGION_COUNTERS} if match else region_summary_totals([])
    return {
        "summary": summary,
        "population": population_stats(_filter_region(villages, region)),
        "esr": esr_stats(_filter_region(esrs, region)),
    }


def get_region_table(regions: list[dict] | pd.DataFrame) -> pd.DataFrame:
    """Region counters with completion percentages, one row per region.

    Returns
    -------
    DataFrame with columns: region_name, REGION_COUNTERS, pct_schemes_completed,
    pct_villages_completed, pct_esr_completed
    """
    df = pd.DataFrame(regions)
    if df.empty:
        return pd.DataFrame(columns=["region_name", *REGION_COUNTERS])
    df = df[["region_name", *REGION_COUNTERS]].copy()

    def pct(num: str, den: str) -> pd.Series:
        den_values = df[den].astype(float)
        den_values = den_values.where(den_values != 0)
        return (df[num].astype(float) / den_values * 100).round(1).fillna(0.0)

    df["pct_schemes_completed"] = pct("fully_completed_schemes", "total_schemes_integrated")
    df["pct_villages_completed"] = pct("fully_completed_villages", "total_villages_integrated")
    df["pct_esr_completed"] = pct("fully_completed_esr", "total_esr_integrated")
    return df.sort_values("region_name").reset_index(drop=True)


def get_status_hierarchy(schemes: pd.DataFrame) -> pd.DataFrame:
    """Region -> status -> scheme rows for a sunburst, sized by villages.

    Returns
    -------
    DataFrame with columns: region, scheme_status, scheme_name, villages
    """
    if schemes.empty:
        return pd.DataFrame(columns=["region", "scheme_status", "scheme_name", "villages"])
    df = schemes[["region", "scheme_status", "scheme_name", "number_of_village"]].copy()
    df["villages"] = pd.to_numeric(df.pop("number_of_village"), errors="coerce").fillna(0).clip(lower=1)
    df["region"] = df["region"].fillna("Unknown Region")
    df["scheme_status"] = pd.Categorical(df["scheme_status"], categories=list(SCHEME_STATUSES))
    return df.sort_values(["region", "scheme_status"]).reset_index(drop=True)


def get_scheme_table(schemes: pd.DataFrame, region: str | None = None, status: str | None = None) -> pd.DataFrame:
    """Scheme rows for the detail table, optionally filtered."""
    cols = [
        "region", "scheme_id", "scheme_name", "block", "scheme_status",
        "total_villages_integrated", "fully_completed_villages",
        "total_esr_integrated", "no_fully_completed_esr", "dashboard_url",
    ]
    df = _filter_region(schemes, region)
    if status and not df.empty:
        df = df[df["scheme_status"] == status]
    return df.reindex(columns=cols).reset_index(drop=True)


def get_lpcd_distribution(villages: pd.DataFrame, threshold: float = LPCD_THRESHOLD) -> pd.DataFrame:
    """Latest LPCD per village with its band.

    Returns
    -------
    DataFrame with columns: region, scheme_id, village_name, population,
    latest_lpcd, band ('No supply', 'Below 55', '55 and above')
    """
    cols = ["region", "scheme_id", "village_name", "population", "latest_lpcd", "band"]
    if villages.empty:
        return pd.DataFrame(columns=cols)
    df = villages[["region", "scheme_id", "village_name", "population"]].copy()
    lpcd = villages[LPCD_VALUE_FIELDS].apply(pd.to_numeric, errors="coerce")
    df["latest_lpcd"] = [latest_lpcd(list(row)) for row in lpcd.itertuples(index=False)]
    latest = df["latest_lpcd"].astype(float).fillna(0)
    df["band"] = "No supply"
    df.loc[(latest > 0) & (latest < threshold), "band"] = f"Below {threshold:g}"
    df.loc[latest >= threshold, "band"] = f"{threshold:g} and above"
    return df[cols]


def get_zero_supply_villages(villages: pd.DataFrame) -> pd.DataFrame:
    """Villages with zero LPCD on all seven days."""
    if villages.empty:
        return villages
    flag = pd.to_numeric(villages["consistent_zero_lpcd_for_a_week"], errors="coerce").fillna(0)
    return villages[flag == 1].reset_index(drop=True)
