"""Database connection helpers."""

from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg.rows import dict_row

from ..config import database_url


@contextmanager
def connect(dsn: str | None = None) -> Iterator[psycopg.Connection]:
    """Open an autocommit connection returning dict rows; always closed.

    Writes are grouped with `conn.transaction()`.
    """
    conn = psycopg.connect(
        dsn if dsn is not None else database_url(),
        autocommit=True,
        row_factory=dict_row,
    )
    try:
        yield conn
    finally:
        conn.close()
