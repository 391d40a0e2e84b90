"""
Shared utilities for data ingestion: sheet reading, header detection,
text cleaning, numeric and date coercion.
"""

import logging
import re
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd

logger = logging.getLogger(__name__)

NBSP = "\u00a0"

_NULL_TOKENS = {"", "n/a", "na", "-", "--", "null", "none", "nan", "#n/a"}

SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm", ".xls", ".csv")


class IngestError(RuntimeError):
    """Raised when a source file cannot be ingested at all."""


def clean_text(val: Any) -> str | None:
    """Strip a cell value and replace non-breaking spaces.

    Returns None for empty cells and null markers such as 'N/A'.
    """
    if val is None:
        return None
    if isinstance(val, float) and pd.isna(val):
        return None
    if isinstance(val, float) and val.is_integer():
        # Scheme IDs read from xlsx come back as 20019176.0
        val = int(val)
    s = str(val).replace(NBSP, " ").strip()
    s = re.sub(r"\s+", " ", s)
    if s.lower() in _NULL_TOKENS:
        return None
    return s


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values.

    Strings lose thousands separators and any trailing unit text
    ('1,234', '56 LPCD', '78%').
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        if pd.isna(val):
            return None
        return float(val)
    s = str(val).replace(NBSP, " ").strip()
    if s.startswith("=") or s.lower() in _NULL_TOKENS:
        return None
    s = re.sub(r"[^0-9.\-]", "", s)
    if not s or s in ("-", ".", "-."):
        return None
    try:
        return float(s)
    except ValueError:
        logger.debug("Could not parse number from %r", val)
        return None


def safe_int(val: Any, default: int | None = 0) -> int | None:
    """Coerce to int via safe_float, rounding; `default` when not numeric."""
    f = safe_float(val)
    if f is None:
        return default
    return int(round(f))


def normalise_date(val: Any) -> str | None:
    """Convert an Excel serial number, datetime or string to 'YYYY-MM-DD'.

    Excel serial numbers use the 1899-12-30 epoch. Strings that do not parse
    as dates (e.g. '11-Mar') are kept as written.
    """
    if val is None:
        return None
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        if pd.isna(val):
            return None
        try:
            ts = pd.Timestamp("1899-12-30") + pd.Timedelta(days=int(val))
        except (ValueError, OverflowError):
            logger.warning("Could not convert serial number %s to date", val)
            return None
        return ts.strftime("%Y-%m-%d")
    if hasattr(val, "strftime"):
        return val.strftime("%Y-%m-%d")
    s = clean_text(val)
    if s is None:
        return None
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}.*", s) or re.fullmatch(r"\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}", s):
        try:
            return pd.Timestamp(s, dayfirst=not s[:4].isdigit()).strftime("%Y-%m-%d")
        except (ValueError, TypeError):
            logger.debug("Keeping unparsed date text %r", s)
    return s


def yes_no_flag(val: Any) -> int:
    """'Yes'/'Connected'/1 -> 1, anything else -> 0."""
    s = clean_text(val)
    if s is None:
        return 0
    s = s.lower()
    if s in ("yes", "y", "connected", "true"):
        return 1
    f = safe_float(s)
    return 1 if f is not None and f > 0 else 0


def is_blank_row(values: list[Any]) -> bool:
    return all(clean_text(v) is None for v in values)


# ---------------------------------------------------------------------------
# Sheet reading
# ---------------------------------------------------------------------------
def read_sheets(path: str | Path) -> dict[str, list[list[Any]]]:
    """Read every sheet of a workbook (or a CSV) as a list of raw rows.

    Returns
    -------
    Ordered mapping of sheet name -> rows, where each row is a list of cell
    values. CSV files yield a single sheet named after the file stem.

    Raises
    ------
    IngestError for unsupported extensions or files without sheets.
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise IngestError(f"Unsupported file type '{ext}' for {path.name}")

    sheets: dict[str, list[list[Any]]] = {}
    if ext in (".xlsx", ".xlsm"):
        try:
            wb = openpyxl.load_workbook(path, data_only=True, read_only=True)
        except Exception:
            logger.exception("Failed to open workbook: %s", path)
            raise
        try:
            for ws in wb.worksheets:
                sheets[ws.title] = [list(row) for row in ws.iter_rows(values_only=True)]
        finally:
            wb.close()
    elif ext == ".xls":
        try:
            frames = pd.read_excel(path, sheet_name=None, header=None, engine="xlrd")
        except Exception:
            logger.exception("Failed to open workbook: %s", path)
            raise
        for name, frame in frames.items():
            sheets[name] = _frame_rows(frame)
    else:
        try:
            frame = pd.read_csv(path, header=None, dtype=object, keep_default_na=False)
        except Exception:
            logger.exception("Failed to read CSV: %s", path)
            raise
        sheets[path.stem] = _frame_rows(frame)

    if not sheets:
        raise IngestError(f"No sheets found in {path.name}")
    logger.info("Read %d sheet(s) from %s", len(sheets), path)
    return sheets


def _frame_rows(frame: pd.DataFrame) -> list[list[Any]]:
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.values.tolist()
