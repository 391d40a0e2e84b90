"""
Simulated data generator for the JJM dashboard.

Produces scheme, village and ESR frames shaped exactly like the loader
outputs, for demo mode and tests. All values are synthetic. Generated
schemes satisfy fully_completed <= integrated <= total for villages and ESRs.
"""

import numpy as np
import pandas as pd

from .config import (
    DEFAULT_AGENCY,
    LPCD_DATE_FIELDS,
    LPCD_VALUE_FIELDS,
    REGIONS,
    WATER_DATE_FIELDS,
    WATER_VALUE_FIELDS,
)
from .dashboard_urls import esr_dashboard_url, scheme_dashboard_url, village_dashboard_url
from .loaders.esr import ESR_COLUMNS
from .loaders.scheme_status import schemes_frame
from .loaders.water_scheme import WATER_COLUMNS
from .transforms import compute_lpcd_flags

# ---------------------------------------------------------------------------
# Typical scheme parameters per region: (schemes, mean villages per scheme)
# ---------------------------------------------------------------------------
_REGION_PARAMS = {
    "Amravati": (11, 9),
    "Chhatrapati Sambhajinagar": (11, 8),
    "Konkan": (4, 12),
    "Nagpur": (16, 8),
    "Nashik": (15, 9),
    "Pune": (13, 7),
}

_VILLAGE_PREFIXES = ["Wadi", "Pur", "Gaon", "Nagar", "Khed", "Ner", "Pada", "Tanda"]


def _rng(seed: int) -> np.random.Generator:
    return np.random.default_rng(seed)


def generate_schemes(seed: int = 42) -> pd.DataFrame:
    """Synthetic scheme status rows for every region."""
    rng = _rng(seed)
    records = []
    scheme_no = 20_000_000
    for region in REGIONS:
        n_schemes, mean_villages = _REGION_PARAMS.get(region, (8, 8))
        for i in range(n_schemes):
            scheme_no += int(rng.integers(1, 400))
            villages = max(int(rng.poisson(mean_villages)), 1)
            integrated = int(rng.integers(0, villages + 1))
            completed = int(rng.integers(0, integrated + 1))
            esr_total = villages + int(rng.integers(0, 4))
            esr_integrated = int(rng.integers(0, esr_total + 1))
            esr_completed = int(rng.integers(0, esr_integrated + 1))
            functional = int(rng.integers(0, integrated + 1))
            partial = int(rng.integers(0, integrated - functional + 1))
            records.append({
                "sr_no": i + 1,
                "scheme_id": str(scheme_no),
                "region": region,
                "circle": f"{region.split()[-1]} Circle",
                "division": f"{region.split()[-1]} Division {i % 3 + 1}",
                "sub_division": f"Sub Division {i % 4 + 1}",
                "block": f"Block {i % 5 + 1}",
                "scheme_name": f"RR {region.split()[-1]} Scheme {i + 1}",
                "agency": DEFAULT_AGENCY,
                "number_of_village": villages,
                "total_villages_integrated": integrated,
                "no_of_functional_village": functional,
                "no_of_partial_village": partial,
                "no_of_non_functional_village": integrated - functional - partial,
                "fully_completed_villages": completed,
                "total_number_of_esr": esr_total,
                "total_esr_integrated": esr_integrated,
                "no_fully_completed_esr": esr_completed,
                "balance_to_complete_esr": None,
                "flow_meters_connected": int(rng.integers(0, esr_integrated + 1)),
                "pressure_transmitter_connected": int(rng.integers(0, esr_integrated + 1)),
                "residual_chlorine_analyzer_connected": int(rng.integers(0, esr_integrated + 1)),
                "scheme_functional_status": "Functional" if functional else "Non-Functional",
                "scheme_status": None,
                "dashboard_url": None,
            })
    df = schemes_frame(records)
    df["dashboard_url"] = [scheme_dashboard_url(r) for r in df.to_dict("records")]
    return df


def generate_villages(schemes: pd.DataFrame, seed: int = 42, end_date: str = "2025-03-16") -> pd.DataFrame:
    """Synthetic village LPCD rows for the integrated villages of each scheme.

    Roughly one village in twelve reports zero supply all week.
    """
    rng = _rng(seed + 1)
    lpcd_dates = pd.date_range(end=end_date, periods=len(LPCD_VALUE_FIELDS)).strftime("%Y-%m-%d").tolist()
    water_dates = lpcd_dates[:len(WATER_VALUE_FIELDS)]

    records = []
    for scheme in schemes.to_dict("records"):
        n = int(scheme["total_villages_integrated"] or 0)
        for v in range(n):
            population = int(rng.integers(300, 6000))
            if rng.random() < 1 / 12:
                lpcd = [0.0] * len(LPCD_VALUE_FIELDS)
            else:
                base = float(rng.normal(62, 25))
                lpcd = [round(max(base + float(rng.normal(0, 8)), 0.0), 2) for _ in LPCD_VALUE_FIELDS]
                # Occasional missing reading
                if rng.random() < 0.1:
                    lpcd[int(rng.integers(0, len(lpcd)))] = None
            rec = {k: scheme[k] for k in ("region", "circle", "division", "sub_division", "block", "scheme_id", "scheme_name")}
            rec["village_name"] = f"{_VILLAGE_PREFIXES[v % len(_VILLAGE_PREFIXES)]} {scheme['scheme_id'][-3:]}-{v + 1}"
            rec["population"] = population
            rec["number_of_esr"] = int(rng.integers(1, 3))
            for field, value in zip(LPCD_VALUE_FIELDS, lpcd):
                rec[field] = value
            for field, value in zip(WATER_VALUE_FIELDS, lpcd):
                rec[field] = None if value is None else round(value * population / 1000, 2)
            rec.update(dict(zip(LPCD_DATE_FIELDS, lpcd_dates)))
            rec.update(dict(zip(WATER_DATE_FIELDS, water_dates)))
            rec.update(compute_lpcd_flags(lpcd))
            rec["dashboard_url"] = village_dashboard_url(rec)
            records.append(rec)

    df = pd.DataFrame(records, columns=WATER_COLUMNS)
    return df.astype(object).where(pd.notna(df), None)


def generate_esrs(villages: pd.DataFrame, seed: int = 42) -> pd.DataFrame:
    """Synthetic ESR connectivity rows, number_of_esr per village."""
    rng = _rng(seed + 2)
    records = []
    for village in villages.to_dict("records"):
        for e in range(int(village["number_of_esr"] or 0)):
            connected = [int(rng.random() < p) for p in (0.7, 0.6, 0.8)]
            rec = {k: village[k] for k in ("region", "circle", "division", "sub_division", "block", "scheme_id", "scheme_name", "village_name")}
            rec["esr_name"] = f"ESR {e + 1} {village['village_name']}"
            rec["chlorine_connected"], rec["pressure_connected"], rec["flow_meter_connected"] = connected
            rec["chlorine_status"] = "Online" if connected[0] and rng.random() < 0.8 else "Offline"
            rec["pressure_status"] = "Online" if connected[1] and rng.random() < 0.8 else "Offline"
            rec["flow_meter_status"] = "Online" if connected[2] and rng.random() < 0.8 else "Offline"
            rec["overall_status"] = "Online" if all(connected) else "Offline"
            rec["dashboard_url"] = esr_dashboard_url(rec)
            records.append(rec)
    return pd.DataFrame(records, columns=ESR_COLUMNS)


def generate_all(seed: int = 42) -> dict[str, pd.DataFrame]:
    """Schemes, villages and ESRs generated from one seed."""
    schemes = generate_schemes(seed)
    villages = generate_villages(schemes, seed)
    esrs = generate_esrs(villages, seed)
    return {"schemes": schemes, "villages": villages, "esrs": esrs}
