"""
Column reconciliation: map inconsistent spreadsheet headers onto canonical
field names, locate the header row, and detect the region a sheet belongs to.

Matching is two-pass. Pass 1 is a case-insensitive exact comparison against
every variant of every field; pass 2 looks for a variant occurring in the
header as a whole-word sequence. Both passes walk the registry in dictionary
order, so the first field listed wins a tie.
"""

import logging
import re
from functools import lru_cache
from typing import Any

from ..config import REGION_ALIASES
from .utils import NBSP, read_sheets

logger = logging.getLogger(__name__)

# A containment match preceded by one of these words is not a match:
# "Not Completed Villages" says nothing about completed villages
_NEGATIONS = {"not", "non", "un", "without"}


def normalise_header(text: Any) -> str:
    """Strip, replace non-breaking spaces, collapse whitespace, lowercase."""
    if text is None:
        return ""
    s = str(text).replace(NBSP, " ").strip()
    s = re.sub(r"\s+", " ", s)
    return s.lower()


@lru_cache(maxsize=4096)
def _word_pattern(variant: str) -> re.Pattern:
    return re.compile(r"(?<![a-z0-9])" + re.escape(variant) + r"(?![a-z0-9])")


def match_column(header: Any, registry: dict[str, list[str]]) -> str | None:
    """Return the canonical field for one header, or None when unmatched."""
    h = normalise_header(header)
    if not h:
        return None

    for field, variants in registry.items():
        if h == field:
            return field
        for variant in variants:
            if h == normalise_header(variant):
                return field

    for field, variants in registry.items():
        for variant in variants:
            v = normalise_header(variant)
            if not v:
                continue
            m = _word_pattern(v).search(h)
            if m and not _negated(h, m.start()):
                return field

    return None


def _negated(header: str, start: int) -> bool:
    """True when the word just before position `start` negates what follows."""
    words = re.findall(r"[a-z0-9]+", header[:start])
    return bool(words) and words[-1] in _NEGATIONS


def reconcile_columns(
    headers: list[Any],
    registry: dict[str, list[str]],
) -> dict[int, str]:
    """Map column positions to canonical fields.

    A field is claimed by the first column that matches it; later columns
    matching the same field are dropped, as are unmatched columns.

    Returns
    -------
    Mapping of 0-based column index -> canonical field name.
    """
    mapping: dict[int, str] = {}
    claimed: set[str] = set()
    for idx, header in enumerate(headers):
        if header is None or not normalise_header(header):
            continue
        field = match_column(header, registry)
        if field is None:
            logger.debug("Dropping unmatched column %r", header)
            continue
        if field in claimed:
            logger.debug("Dropping column %r: '%s' already mapped", header, field)
            continue
        mapping[idx] = field
        claimed.add(field)
    return mapping


def find_header_row(
    rows: list[list[Any]],
    registry: dict[str, list[str]],
    max_rows: int = 15,
    min_matches: int = 3,
) -> int | None:
    """Locate the header row among the first `max_rows` rows.

    Returns the 0-based index of the row with the most reconciled cells,
    provided it reaches `min_matches`. Otherwise falls back to the row with
    the most non-empty cells. None for a sheet with no non-empty rows.
    """
    best_idx, best_matches = None, 0
    fallback_idx, fallback_filled = None, 0
    for idx, row in enumerate(rows[:max_rows]):
        matches = len(reconcile_columns(list(row), registry))
        if matches > best_matches:
            best_idx, best_matches = idx, matches
        filled = sum(1 for v in row if v is not None and normalise_header(v))
        if filled > fallback_filled:
            fallback_idx, fallback_filled = idx, filled

    if best_idx is not None and best_matches >= min_matches:
        return best_idx
    if fallback_idx is not None:
        logger.warning(
            "No row reconciled %d+ columns; using densest row %d as header",
            min_matches, fallback_idx,
        )
    return fallback_idx


def is_repeated_header(row: dict[str, Any], header_texts: dict[str, Any]) -> bool:
    """True when a data row repeats the header (any cell equals its header)."""
    for field, value in row.items():
        header = header_texts.get(field)
        if value is not None and header is not None and normalise_header(value) == normalise_header(header):
            return True
    return False


def detect_region(text: Any) -> str | None:
    """Match region aliases on word boundaries; canonical name or None."""
    if text is None:
        return None
    s = str(text).replace(NBSP, " ")
    for alias, region in REGION_ALIASES.items():
        # 'CS' only as an upper-case token; other aliases case-insensitive
        flags = 0 if alias.isupper() else re.IGNORECASE
        if re.search(r"(?<![A-Za-z0-9])" + re.escape(alias) + r"(?![A-Za-z0-9])", s, flags):
            return region
    return None


def extract_records(
    rows: list[list[Any]],
    registry: dict[str, list[str]],
    min_matches: int = 3,
) -> tuple[list[dict[str, Any]], dict[int, str]]:
    """Turn raw sheet rows into dicts keyed by canonical field.

    Blank rows and repeated header rows below the header are skipped.

    Returns
    -------
    (records, mapping) where mapping is the column index -> field map used.
    An empty mapping means no header row was found.
    """
    header_idx = find_header_row(rows, registry, min_matches=min_matches)
    if header_idx is None:
        return [], {}
    headers = list(rows[header_idx])
    mapping = reconcile_columns(headers, registry)
    header_texts = {field: headers[idx] for idx, field in mapping.items()}

    records = []
    for row in rows[header_idx + 1:]:
        rec = {field: (row[idx] if idx < len(row) else None) for idx, field in mapping.items()}
        if all(v is None or not normalise_header(v) for v in rec.values()):
            continue
        if is_repeated_header(rec, header_texts):
            logger.debug("Skipping repeated header row")
            continue
        records.append(rec)
    return records, mapping


def analyze_workbook(path, registry: dict[str, list[str]]) -> list[dict[str, Any]]:
    """Describe how each sheet of a file would be read.

    Returns
    -------
    One dict per sheet: sheet, region, header_row (0-based, or None), rows
    (data rows below the header) and columns (header text -> field).
    """
    report = []
    for sheet_name, rows in read_sheets(path).items():
        header_idx = find_header_row(rows, registry)
        columns: dict[str, str] = {}
        if header_idx is not None:
            headers = list(rows[header_idx])
            for idx, field in reconcile_columns(headers, registry).items():
                columns[str(headers[idx]).strip()] = field
        report.append({
            "sheet": sheet_name,
            "region": detect_region(sheet_name),
            "header_row": header_idx,
            "rows": len(rows) - header_idx - 1 if header_idx is not None else 0,
            "columns": columns,
        })
    return report
