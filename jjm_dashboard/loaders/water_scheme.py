"""
Loader for village-level water consumption (LPCD) extracts.

Source: 'LPCD_*.xlsx' / daily CSV exports.

Structure:
    One row per (scheme, village). Hierarchy columns, population and ESR
    count, then six days of water volume, seven days of LPCD, the matching
    date columns, and three weekly counters. Exports either carry a header
    row ('water value day1', 'lpcd value day1', ...) or come header-less in
    the fixed 39-column order of WATER_POSITIONAL_COLUMNS.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import (
    LPCD_DATE_FIELDS,
    LPCD_FLAG_FIELDS,
    LPCD_VALUE_FIELDS,
    WATER_COLUMN_VARIANTS,
    WATER_DATE_FIELDS,
    WATER_POSITIONAL_COLUMNS,
    WATER_VALUE_FIELDS,
)
from ..transforms import compute_lpcd_flags
from .columns import detect_region, extract_records, find_header_row, reconcile_columns
from .utils import IngestError, clean_text, is_blank_row, normalise_date, read_sheets, safe_float, safe_int

logger = logging.getLogger(__name__)

WATER_TEXT_FIELDS = ["region", "circle", "division", "sub_division", "block", "scheme_id", "scheme_name", "village_name"]

WATER_COLUMNS = [
    *WATER_TEXT_FIELDS,
    "population",
    "number_of_esr",
    *WATER_VALUE_FIELDS,
    *LPCD_VALUE_FIELDS,
    *WATER_DATE_FIELDS,
    *LPCD_DATE_FIELDS,
    *LPCD_FLAG_FIELDS,
    "dashboard_url",
]

_MIN_HEADER_MATCHES = 3


def normalise_village_record(raw: dict[str, Any], sheet_region: str | None = None) -> dict[str, Any] | None:
    """Coerce one raw row into a canonical village record.

    Returns None when scheme_id or village_name is missing. LPCD counters
    are always recomputed from the seven LPCD values; counters present in
    the file are ignored.
    """
    rec: dict[str, Any] = {f: clean_text(raw.get(f)) for f in WATER_TEXT_FIELDS}
    if rec["scheme_id"] is None or rec["village_name"] is None:
        return None

    column_region = rec["region"]
    rec["region"] = sheet_region or detect_region(column_region) or column_region
    rec["population"] = safe_int(raw.get("population"), default=None)
    rec["number_of_esr"] = safe_int(raw.get("number_of_esr"), default=None)
    for f in WATER_VALUE_FIELDS + LPCD_VALUE_FIELDS:
        rec[f] = safe_float(raw.get(f))
    for f in WATER_DATE_FIELDS + LPCD_DATE_FIELDS:
        rec[f] = normalise_date(raw.get(f))

    rec.update(compute_lpcd_flags([rec[f] for f in LPCD_VALUE_FIELDS]))
    rec["dashboard_url"] = None
    return rec


def _positional_records(rows: list[list[Any]]) -> list[dict[str, Any]]:
    """Map header-less rows by column position."""
    records = []
    for row in rows:
        rec = {
            field: (row[idx] if idx < len(row) else None)
            for idx, field in enumerate(WATER_POSITIONAL_COLUMNS)
        }
        if is_blank_row(list(rec.values())):
            continue
        records.append(rec)
    return records


def sheet_water_records(rows: list[list[Any]]) -> tuple[list[dict[str, Any]], str]:
    """Raw records for one sheet and the mapping mode used.

    Header-based mapping is used when some row in the first 15 reconciles
    at least three columns; otherwise the positional layout applies.
    """
    header_idx = find_header_row(rows, WATER_COLUMN_VARIANTS, min_matches=_MIN_HEADER_MATCHES)
    if header_idx is not None and len(reconcile_columns(list(rows[header_idx]), WATER_COLUMN_VARIANTS)) >= _MIN_HEADER_MATCHES:
        records, _ = extract_records(rows, WATER_COLUMN_VARIANTS, min_matches=_MIN_HEADER_MATCHES)
        return records, "header"
    return _positional_records(rows), "positional"


def load_water_scheme_data(path: str | Path) -> tuple[pd.DataFrame, int]:
    """Load village water/LPCD rows from every sheet of a workbook or CSV.

    Returns
    -------
    (DataFrame with WATER_COLUMNS, number of rows skipped for lacking a
    scheme ID or village name). Duplicate (scheme_id, village_name) pairs
    keep the last occurrence.
    """
    sheets = read_sheets(path)

    records: list[dict[str, Any]] = []
    skipped = 0
    for sheet_name, rows in sheets.items():
        sheet_region = detect_region(sheet_name)
        raw_rows, mode = sheet_water_records(rows)
        loaded = 0
        for raw in raw_rows:
            rec = normalise_village_record(raw, sheet_region)
            if rec is None:
                skipped += 1
                logger.warning("Sheet '%s': row without scheme ID or village skipped", sheet_name)
                continue
            records.append(rec)
            loaded += 1
        logger.info("Sheet '%s' (%s mapping): %d villages", sheet_name, mode, loaded)

    if not records:
        raise IngestError(f"No village rows found in {Path(path).name}")

    df = pd.DataFrame(records, columns=WATER_COLUMNS)
    before = len(df)
    df = df.drop_duplicates(subset=["scheme_id", "village_name"], keep="last").reset_index(drop=True)
    if len(df) < before:
        logger.warning("Dropped %d duplicate scheme/village rows", before - len(df))
    df = df.astype(object).where(pd.notna(df), None)

    logger.info("Loaded %d village rows from %s", len(df), path)
    return df, skipped
