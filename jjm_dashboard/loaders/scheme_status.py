"""
Loader for per-region scheme status workbooks.

Source: 'scheme_status_*.xlsx' / region-wise CSV exports.

Structure per sheet:
    One sheet per region (sheet name carries the region, e.g. 'Region - Pune',
    'CS Region', 'Amaravati'). Zero or more banner rows sit above the header
    row. Headers vary in spelling between regions and reporting periods.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import (
    DEFAULT_AGENCY,
    REGION_AGENCIES,
    SCHEME_COLUMN_VARIANTS,
    SCHEME_COUNT_FIELDS,
)
from ..transforms import apply_scheme_derivations
from .columns import detect_region, extract_records
from .utils import IngestError, clean_text, read_sheets, safe_int

logger = logging.getLogger(__name__)

SCHEME_TEXT_FIELDS = [
    "scheme_id",
    "region",
    "circle",
    "division",
    "sub_division",
    "block",
    "scheme_name",
    "agency",
    "scheme_functional_status",
    "scheme_status",
    "dashboard_url",
]

SCHEME_COLUMNS = ["sr_no", *SCHEME_TEXT_FIELDS, *SCHEME_COUNT_FIELDS]


def normalise_scheme_record(
    raw: dict[str, Any],
    sheet_region: str | None = None,
) -> dict[str, Any] | None:
    """Coerce one reconciled row into a canonical scheme record.

    Returns None when the row has no scheme_id.

    Assumptions
    -----------
    - Region detected from the sheet name wins over the region column, whose
      text is normalised through the alias table when it matches one.
    - Count columns default to 0, except balance_to_complete_esr which stays
      None so it can be derived from the ESR totals.
    """
    scheme_id = clean_text(raw.get("scheme_id"))
    if scheme_id is None:
        return None

    rec: dict[str, Any] = {"sr_no": safe_int(raw.get("sr_no"), default=None)}
    for field in SCHEME_TEXT_FIELDS:
        rec[field] = clean_text(raw.get(field))
    rec["scheme_id"] = scheme_id

    column_region = rec["region"]
    rec["region"] = sheet_region or detect_region(column_region) or column_region
    if rec["scheme_name"] is None:
        rec["scheme_name"] = f"Scheme {scheme_id}"
    if rec["agency"] is None:
        rec["agency"] = REGION_AGENCIES.get(rec["region"], DEFAULT_AGENCY)

    for field in SCHEME_COUNT_FIELDS:
        default = None if field == "balance_to_complete_esr" else 0
        rec[field] = safe_int(raw.get(field), default=default)
    return rec


def schemes_frame(records: list[dict[str, Any]]) -> pd.DataFrame:
    """Build the canonical scheme frame and fill derived columns."""
    df = pd.DataFrame(records, columns=SCHEME_COLUMNS)
    df = df.astype(object).where(pd.notna(df), None)
    return apply_scheme_derivations(df)


def load_scheme_status(path: str | Path) -> tuple[pd.DataFrame, int]:
    """Load every sheet of a scheme status workbook or CSV.

    Parameters
    ----------
    path : Path to an .xlsx, .xls or .csv file.

    Returns
    -------
    (DataFrame with SCHEME_COLUMNS, number of rows skipped for lacking a
    scheme ID).

    Raises
    ------
    IngestError when no sheet yields a single scheme row.
    """
    sheets = read_sheets(path)

    records: list[dict[str, Any]] = []
    skipped = 0
    for sheet_name, rows in sheets.items():
        sheet_region = detect_region(sheet_name)
        try:
            raw_rows, mapping = extract_records(rows, SCHEME_COLUMN_VARIANTS)
        except Exception:
            logger.exception("Failed to parse sheet '%s' in %s", sheet_name, path)
            continue
        if "scheme_id" not in mapping.values():
            logger.warning("Sheet '%s' has no Scheme ID column; skipped", sheet_name)
            continue

        loaded = 0
        for raw in raw_rows:
            rec = normalise_scheme_record(raw, sheet_region)
            if rec is None:
                skipped += 1
                logger.warning("Sheet '%s': row without scheme ID skipped", sheet_name)
                continue
            records.append(rec)
            loaded += 1
        logger.info(
            "Sheet '%s' [%s]: %d schemes",
            sheet_name, sheet_region or "region from column", loaded,
        )

    if not records:
        raise IngestError(f"No scheme rows found in {Path(path).name}")

    df = schemes_frame(records)
    logger.info("Loaded %d scheme rows from %s", len(df), path)
    return df, skipped
