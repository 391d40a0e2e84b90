"""PostgreSQL connection and schema helpers."""

from .connection import connect
from .schema import init_schema, seed_regions

__all__ = ["connect", "init_schema", "seed_regions"]
