"""
Loader for scheme_status rows embedded in .sql dump files.

Only `INSERT INTO scheme_status (...) VALUES (...), (...);` statements are
read; the rows are parsed, never executed.
"""

import logging
import re
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import SCHEME_COLUMN_VARIANTS
from .columns import match_column
from .scheme_status import normalise_scheme_record, schemes_frame
from .utils import IngestError

logger = logging.getLogger(__name__)

_INSERT_RE = re.compile(
    r"INSERT\s+INTO\s+(?:[\w\"]+\.)?\"?scheme_status\"?\s*\(([^)]*)\)\s*VALUES",
    re.IGNORECASE,
)


def _unquoted(sql_text: str, start: int = 0):
    """Yield (index, char) for every character outside a quoted string."""
    quote = None
    i = start
    while i < len(sql_text):
        ch = sql_text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                # Doubled quote is an escaped quote
                if i + 1 < len(sql_text) and sql_text[i + 1] == quote:
                    i += 2
                    continue
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        else:
            yield i, ch
        i += 1


def statement_end(sql_text: str, start: int) -> int:
    """Index of the first top-level ';' at or after `start` (or the text length)."""
    depth = 0
    for i, ch in _unquoted(sql_text, start):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == ";" and depth <= 0:
            return i
    return len(sql_text)


def split_tuples(values_sql: str) -> list[str]:
    """Split 'VALUES (..), (..)' text into the inside of each tuple.

    Parentheses inside quoted strings are ignored.
    """
    tuples, depth, start = [], 0, None
    for i, ch in _unquoted(values_sql):
        if ch == "(":
            if depth == 0:
                start = i + 1
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and start is not None:
                tuples.append(values_sql[start:i])
                start = None
    return tuples


def split_values(tuple_sql: str) -> list[Any]:
    """Split one tuple body into Python values.

    Quoted strings lose their quotes and escapes, NULL becomes None,
    numerals become int or float, anything else stays text.
    """
    values: list[Any] = []
    buf: list[str] = []
    quote = None
    quoted = False
    i = 0
    while i < len(tuple_sql):
        ch = tuple_sql[i]
        if quote:
            if ch == "\\" and i + 1 < len(tuple_sql):
                buf.append(tuple_sql[i + 1])
                i += 2
                continue
            if ch == quote:
                if i + 1 < len(tuple_sql) and tuple_sql[i + 1] == quote:
                    buf.append(quote)
                    i += 2
                    continue
                quote = None
            else:
                buf.append(ch)
        elif ch in ("'", '"'):
            # Drops the whitespace (or E prefix) before the opening quote
            quote = ch
            quoted = True
            buf = []
        elif ch == ",":
            values.append(_literal("".join(buf), quoted))
            buf, quoted = [], False
        else:
            buf.append(ch)
        i += 1
    values.append(_literal("".join(buf), quoted))
    return values


def _literal(text: str, quoted: bool) -> Any:
    if quoted:
        return text
    s = text.strip()
    if not s or s.upper() == "NULL":
        return None
    if re.fullmatch(r"-?\d+", s):
        return int(s)
    if re.fullmatch(r"-?\d*\.\d+", s):
        return float(s)
    return s


def parse_insert_statements(sql_text: str) -> list[dict[str, Any]]:
    """Rows of every scheme_status INSERT, keyed by the dump's column names."""
    rows = []
    pos = 0
    while True:
        match = _INSERT_RE.search(sql_text, pos)
        if match is None:
            break
        end = statement_end(sql_text, match.end())
        pos = end + 1
        columns = [c.strip().strip('"').strip("`") for c in match.group(1).split(",")]
        for body in split_tuples(sql_text[match.end():end]):
            values = split_values(body)
            if len(values) != len(columns):
                logger.warning(
                    "Skipping tuple with %d values for %d columns", len(values), len(columns)
                )
                continue
            rows.append(dict(zip(columns, values)))
    return rows


def load_sql_dump(path: str | Path) -> tuple[pd.DataFrame, int]:
    """Load scheme rows from a .sql dump.

    Column names are reconciled through the scheme column dictionary, so
    dumps using either snake_case or spreadsheet headers load the same way.

    Returns
    -------
    (canonical scheme DataFrame, number of rows skipped)
    """
    path = Path(path)
    try:
        sql_text = path.read_text(encoding="utf-8", errors="replace")
    except Exception:
        logger.exception("Failed to read SQL dump: %s", path)
        raise

    raw_rows = parse_insert_statements(sql_text)
    if not raw_rows:
        raise IngestError(f"No scheme_status INSERT statements in {path.name}")

    records, skipped = [], 0
    for raw in raw_rows:
        canonical: dict[str, Any] = {}
        for column, value in raw.items():
            field = match_column(column, SCHEME_COLUMN_VARIANTS)
            if field is not None and field not in canonical:
                canonical[field] = value
        rec = normalise_scheme_record(canonical)
        if rec is None:
            skipped += 1
            continue
        records.append(rec)

    if not records:
        raise IngestError(f"No usable scheme rows in {path.name}")

    df = schemes_frame(records)
    logger.info("Loaded %d scheme rows from SQL dump %s", len(df), path)
    return df, skipped
