"""
Loader for ESR-level sensor connectivity workbooks.

Source: 'ESR_*.xlsx'

Structure:
    One sheet per region named like 'Region - Pune Data'. Each row is one
    ESR with Yes/No connectivity for chlorine, pressure and flow meter
    sensors and their Online/Offline state.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import ESR_COLUMN_VARIANTS
from .columns import detect_region, extract_records
from .utils import IngestError, clean_text, read_sheets, yes_no_flag

logger = logging.getLogger(__name__)

ESR_CONNECTION_FIELDS = ["chlorine_connected", "pressure_connected", "flow_meter_connected"]
ESR_STATUS_FIELDS = ["chlorine_status", "pressure_status", "flow_meter_status", "overall_status"]

ESR_COLUMNS = [
    "region", "circle", "division", "sub_division", "block",
    "scheme_id", "scheme_name", "village_name", "esr_name",
    *ESR_CONNECTION_FIELDS,
    *ESR_STATUS_FIELDS,
    "dashboard_url",
]


def normalise_esr_record(raw: dict[str, Any], sheet_region: str | None) -> dict[str, Any] | None:
    """Coerce one ESR row; None when scheme ID, village or ESR name is missing."""
    rec = {f: clean_text(raw.get(f)) for f in ESR_COLUMNS if f not in ESR_CONNECTION_FIELDS}
    if rec["scheme_id"] is None or rec["village_name"] is None or rec["esr_name"] is None:
        return None
    rec["region"] = sheet_region or detect_region(rec["region"]) or rec["region"]
    for f in ESR_CONNECTION_FIELDS:
        rec[f] = yes_no_flag(raw.get(f))
    for f in ESR_STATUS_FIELDS:
        rec[f] = rec[f] or "Unknown"
    rec["dashboard_url"] = None
    return rec


def load_esr_data(path: str | Path) -> tuple[pd.DataFrame, int]:
    """Load ESR connectivity rows from every region sheet.

    Sheets whose name does not resolve to a region are only used when the
    rows carry their own Region column.

    Returns
    -------
    (DataFrame with ESR_COLUMNS, number of rows skipped)
    """
    sheets = read_sheets(path)

    records: list[dict[str, Any]] = []
    skipped = 0
    for sheet_name, rows in sheets.items():
        sheet_region = detect_region(sheet_name)
        raw_rows, mapping = extract_records(rows, ESR_COLUMN_VARIANTS)
        if "esr_name" not in mapping.values():
            logger.warning("Sheet '%s' has no ESR Name column; skipped", sheet_name)
            continue
        if sheet_region is None and "region" not in mapping.values():
            logger.warning("Sheet '%s': region unknown; skipped", sheet_name)
            continue

        loaded = 0
        for raw in raw_rows:
            rec = normalise_esr_record(raw, sheet_region)
            if rec is None:
                skipped += 1
                continue
            records.append(rec)
            loaded += 1
        logger.info("Sheet '%s' [%s]: %d ESRs", sheet_name, sheet_region, loaded)

    if not records:
        raise IngestError(f"No ESR rows found in {Path(path).name}")

    df = pd.DataFrame(records, columns=ESR_COLUMNS)
    df = df.drop_duplicates(subset=["scheme_id", "village_name", "esr_name"], keep="last").reset_index(drop=True)
    df = df.astype(object).where(pd.notna(df), None)
    logger.info("Loaded %d ESR rows from %s (%d skipped)", len(df), path, skipped)
    return df, skipped
