"""
Data transforms: derived scheme status, LPCD flags, ESR balance, invariant
checks, and the per-region rollup of scheme rows.
"""

import logging
import re
from typing import Any

import pandas as pd

from .config import (
    LPCD_THRESHOLD,
    REGIONS,
    STATUS_FULLY_COMPLETED,
    STATUS_NOT_CONNECTED,
    STATUS_PARTIAL,
)

logger = logging.getLogger(__name__)

REGION_COUNTERS = [
    "total_esr_integrated",
    "fully_completed_esr",
    "partial_esr",
    "total_villages_integrated",
    "fully_completed_villages",
    "total_schemes_integrated",
    "fully_completed_schemes",
    "flow_meter_integrated",
    "rca_integrated",
    "pressure_transmitter_integrated",
]

_COMPLETED_WORDS = ("fully completed", "fully-completed", "completed", "complete")
_NOT_CONNECTED_WORDS = (
    "not connected", "not-connected", "disconnected",
    "non-functional", "non functional", "not functional",
)
_PARTIAL_WORDS = ("partial", "partially", "in progress", "in-progress", "incomplete")


def _has_word(text: str, words: tuple[str, ...]) -> bool:
    """True when any of `words` occurs in `text` as a whole word."""
    return any(
        re.search(r"(?<![a-z0-9])" + re.escape(w) + r"(?![a-z0-9])", text) for w in words
    )


# ---------------------------------------------------------------------------
# Scheme status
# ---------------------------------------------------------------------------
def derive_scheme_status(
    raw_status: Any,
    functional_status: Any = None,
    counts: dict[str, Any] | None = None,
) -> str:
    """Classify a scheme as Fully-Completed, Partial or Not-Connected.

    Logic
    -----
    - An explicit status text wins: 'not connected' / 'disconnected' /
      'non-functional' variants, then 'partial' / 'in progress' /
      'incomplete', then 'completed' variants. Words match whole, so
      'Incomplete' never reads as 'complete'.
    - With no usable text: zero integrated ESRs and villages means
      Not-Connected; every integrated ESR and village fully completed (at
      least one of each) means Fully-Completed; anything else is Partial.

    Without a status text, a 'Non-Functional' `functional_status` also means
    Not-Connected.
    """
    s = _lower_text(raw_status)
    if not s:
        functional = _lower_text(functional_status)
        if _has_word(functional, _NOT_CONNECTED_WORDS):
            return STATUS_NOT_CONNECTED
    else:
        # Order matters: 'not completed' must not read as completed
        if _has_word(s, _NOT_CONNECTED_WORDS) or s.startswith("not "):
            return STATUS_NOT_CONNECTED
        if _has_word(s, _PARTIAL_WORDS):
            return STATUS_PARTIAL
        if _has_word(s, _COMPLETED_WORDS):
            return STATUS_FULLY_COMPLETED

    counts = counts or {}
    esr_total = _num(counts.get("total_esr_integrated"))
    esr_done = _num(counts.get("no_fully_completed_esr"))
    vil_total = _num(counts.get("total_villages_integrated"))
    vil_done = _num(counts.get("fully_completed_villages"))

    if esr_total == 0 and vil_total == 0:
        return STATUS_NOT_CONNECTED
    if esr_total > 0 and vil_total > 0 and esr_done >= esr_total and vil_done >= vil_total:
        return STATUS_FULLY_COMPLETED
    return STATUS_PARTIAL


def _lower_text(val: Any) -> str:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return ""
    return " ".join(str(val).replace("\u00a0", " ").split()).lower()


def _num(val: Any) -> float:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return 0.0
    try:
        return float(val)
    except (TypeError, ValueError):
        return 0.0


def balance_to_complete_esr(total_number_of_esr: Any, no_fully_completed_esr: Any) -> int:
    """ESRs still to complete, floored at zero."""
    return max(int(_num(total_number_of_esr) - _num(no_fully_completed_esr)), 0)


def apply_scheme_derivations(df: pd.DataFrame) -> pd.DataFrame:
    """Fill derived scheme columns in place: scheme_status and ESR balance."""
    if df.empty:
        return df
    counts_cols = [
        "total_esr_integrated",
        "no_fully_completed_esr",
        "total_villages_integrated",
        "fully_completed_villages",
    ]
    df["scheme_status"] = [
        derive_scheme_status(
            row.get("scheme_status"),
            row.get("scheme_functional_status"),
            {c: row.get(c) for c in counts_cols},
        )
        for row in df.to_dict("records")
    ]
    missing_balance = df["balance_to_complete_esr"].isna()
    if missing_balance.any():
        df.loc[missing_balance, "balance_to_complete_esr"] = [
            balance_to_complete_esr(t, d)
            for t, d in zip(
                df.loc[missing_balance, "total_number_of_esr"],
                df.loc[missing_balance, "no_fully_completed_esr"],
            )
        ]
    return df


# ---------------------------------------------------------------------------
# LPCD
# ---------------------------------------------------------------------------
def compute_lpcd_flags(values: list[Any], threshold: float = LPCD_THRESHOLD) -> dict[str, int]:
    """Weekly LPCD counters over the non-null values of days 1-7.

    Returns
    -------
    dict with consistent_zero_lpcd_for_a_week (1 iff all 7 present and all
    zero), below_55_lpcd_count (< threshold), above_55_lpcd_count
    (>= threshold). No values at all gives zeros everywhere.
    """
    present = [float(v) for v in values if v is not None and not pd.isna(v)]
    if not present:
        return {
            "consistent_zero_lpcd_for_a_week": 0,
            "below_55_lpcd_count": 0,
            "above_55_lpcd_count": 0,
        }
    all_zero = len(present) == 7 and all(v == 0 for v in present)
    return {
        "consistent_zero_lpcd_for_a_week": 1 if all_zero else 0,
        "below_55_lpcd_count": sum(1 for v in present if v < threshold),
        "above_55_lpcd_count": sum(1 for v in present if v >= threshold),
    }


def latest_lpcd(values: list[Any]) -> float | None:
    """Most recent non-null LPCD value (day 7 is the latest day)."""
    for v in reversed(values):
        if v is not None and not pd.isna(v):
            return float(v)
    return None


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------
_INVARIANTS = [
    ("fully_completed_villages", "total_villages_integrated"),
    ("total_villages_integrated", "number_of_village"),
    ("no_fully_completed_esr", "total_esr_integrated"),
    ("total_esr_integrated", "total_number_of_esr"),
]
_OPTIONAL_TOTALS = {"number_of_village", "total_number_of_esr"}


def check_scheme_invariants(df: pd.DataFrame) -> pd.DataFrame:
    """Return one row per violated rule.

    Rules: fully_completed_villages <= total_villages_integrated <=
    number_of_village, and the same chain for ESRs. The outer totals
    (number_of_village, total_number_of_esr) are often left blank, so a zero
    total is not checked.

    Returns
    -------
    DataFrame with columns: scheme_id, scheme_name, region, rule, lower, upper
    """
    rows = []
    if df.empty:
        return pd.DataFrame(columns=["scheme_id", "scheme_name", "region", "rule", "lower", "upper"])

    for rec in df.to_dict("records"):
        for low_col, high_col in _INVARIANTS:
            low, high = _num(rec.get(low_col)), _num(rec.get(high_col))
            if high <= 0 and high_col in _OPTIONAL_TOTALS:
                continue
            if low > high:
                rows.append({
                    "scheme_id": rec.get("scheme_id"),
                    "scheme_name": rec.get("scheme_name"),
                    "region": rec.get("region"),
                    "rule": f"{low_col} <= {high_col}",
                    "lower": low,
                    "upper": high,
                })

    report = pd.DataFrame(rows, columns=["scheme_id", "scheme_name", "region", "rule", "lower", "upper"])
    for rec in rows:
        logger.warning(
            "Scheme %s (%s) violates %s: %s > %s",
            rec["scheme_id"], rec["region"], rec["rule"], rec["lower"], rec["upper"],
        )
    return report


# ---------------------------------------------------------------------------
# Region rollup
# ---------------------------------------------------------------------------
def build_region_summary(schemes_df: pd.DataFrame, regions: list[str] | None = None) -> pd.DataFrame:
    """Aggregate scheme rows into one counter row per region.

    Mirrors the SQL recomputation in storage.recompute_region_summaries.
    Regions listed in `regions` (default: all known regions) with no
    schemes get zero counters.

    Returns
    -------
    DataFrame with columns: region_name + REGION_COUNTERS
    """
    names = list(regions or REGIONS)
    if not schemes_df.empty:
        for r in schemes_df["region"].dropna().unique():
            if r not in names:
                names.append(r)

    records = []
    for name in names:
        part = schemes_df[schemes_df["region"] == name] if not schemes_df.empty else schemes_df
        rec = {"region_name": name}
        if part.empty:
            rec.update({c: 0 for c in REGION_COUNTERS})
            records.append(rec)
            continue

        def total(col: str) -> int:
            return int(pd.to_numeric(part[col], errors="coerce").fillna(0).sum())

        rec["total_schemes_integrated"] = len(part)
        rec["fully_completed_schemes"] = int((part["scheme_status"] == STATUS_FULLY_COMPLETED).sum())
        rec["total_villages_integrated"] = total("total_villages_integrated")
        rec["fully_completed_villages"] = total("fully_completed_villages")
        rec["total_esr_integrated"] = total("total_esr_integrated")
        rec["fully_completed_esr"] = total("no_fully_completed_esr")
        rec["partial_esr"] = rec["total_esr_integrated"] - rec["fully_completed_esr"]
        rec["flow_meter_integrated"] = total("flow_meters_connected")
        rec["rca_integrated"] = total("residual_chlorine_analyzer_connected")
        rec["pressure_transmitter_integrated"] = total("pressure_transmitter_connected")
        records.append(rec)

    return pd.DataFrame(records, columns=["region_name", *REGION_COUNTERS])
