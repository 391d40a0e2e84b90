"""Data ingestion loaders for JJM scheme, village and ESR extracts."""

from .columns import analyze_workbook, detect_region, match_column, reconcile_columns
from .esr import load_esr_data
from .scheme_status import load_scheme_status
from .sql_dump import load_sql_dump
from .utils import IngestError
from .water_scheme import load_water_scheme_data

__all__ = [
    "IngestError",
    "analyze_workbook",
    "detect_region",
    "match_column",
    "reconcile_columns",
    "load_scheme_status",
    "load_water_scheme_data",
    "load_esr_data",
    "load_sql_dump",
]
