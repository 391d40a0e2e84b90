"""
Import workflows: file -> loader -> storage -> region rollup.

Each import runs in a single transaction. Loader errors surface before the
transaction opens; a failure while writing rolls everything back, including
the region recomputation and the updates log entry.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable

import pandas as pd

from .loaders import (
    IngestError,
    load_esr_data,
    load_scheme_status,
    load_sql_dump,
    load_water_scheme_data,
)
from .storage import PostgresStorage
from .transforms import check_scheme_invariants

logger = logging.getLogger(__name__)

__all__ = [
    "IngestError",
    "ImportResult",
    "import_schemes",
    "import_lpcd",
    "import_esr",
    "import_sql_dump",
    "IMPORTERS",
]


@dataclass(frozen=True)
class ImportResult:
    kind: str
    source: str
    status: str
    inserted: int = 0
    updated: int = 0
    removed: int = 0
    skipped: int = 0
    invariant_violations: int = 0
    regions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _regions_of(df: pd.DataFrame) -> list[str]:
    return sorted({r for r in df["region"].dropna()})


def _write_schemes(storage: PostgresStorage, schemes: pd.DataFrame, skipped: int, kind: str, source: str) -> ImportResult:
    violations = check_scheme_invariants(schemes)
    regions = _regions_of(schemes)
    with storage.conn.transaction():
        inserted, removed = storage.replace_schemes(schemes)
        storage.recompute_region_summaries()
        storage.fill_dashboard_urls(overwrite=False)
        storage.record_update(
            "scheme_import",
            inserted,
            region=regions[0] if len(regions) == 1 else "All Regions",
            affected_ids=sorted({str(s) for s in schemes["scheme_id"]}),
        )
    return ImportResult(
        kind=kind,
        source=source,
        status="imported",
        inserted=inserted,
        removed=removed,
        skipped=skipped,
        invariant_violations=len(violations),
        regions=regions,
    )


def import_schemes(storage: PostgresStorage, path: str | Path) -> ImportResult:
    """Replace scheme rows with those in a scheme status workbook or CSV."""
    schemes, skipped = load_scheme_status(path)
    result = _write_schemes(storage, schemes, skipped, "schemes", str(path))
    logger.info("Scheme import from %s: %s", path, result)
    return result


def import_sql_dump(storage: PostgresStorage, path: str | Path) -> ImportResult:
    """Import scheme rows parsed out of a .sql dump."""
    schemes, skipped = load_sql_dump(path)
    result = _write_schemes(storage, schemes, skipped, "sql", str(path))
    logger.info("SQL dump import from %s: %s", path, result)
    return result


def import_lpcd(storage: PostgresStorage, path: str | Path) -> ImportResult:
    """Upsert village water / LPCD rows."""
    villages, skipped = load_water_scheme_data(path)
    with storage.conn.transaction():
        inserted, updated = storage.upsert_villages(villages)
        storage.fill_dashboard_urls(overwrite=False)
        storage.record_update(
            "lpcd_import",
            inserted + updated,
            region="All Regions",
            affected_ids=sorted({str(s) for s in villages["scheme_id"]}),
        )
    result = ImportResult(
        kind="lpcd",
        source=str(path),
        status="imported",
        inserted=inserted,
        updated=updated,
        skipped=skipped,
        regions=_regions_of(villages),
    )
    logger.info("LPCD import from %s: %s", path, result)
    return result


def import_esr(storage: PostgresStorage, path: str | Path) -> ImportResult:
    """Upsert ESR connectivity rows. Region counters are left untouched."""
    esrs, skipped = load_esr_data(path)
    with storage.conn.transaction():
        inserted, updated = storage.upsert_esrs(esrs)
        storage.fill_dashboard_urls(overwrite=False)
        storage.record_update(
            "esr_import",
            inserted + updated,
            region="All Regions",
            affected_ids=sorted({str(s) for s in esrs["scheme_id"]}),
        )
    result = ImportResult(
        kind="esr",
        source=str(path),
        status="imported",
        inserted=inserted,
        updated=updated,
        skipped=skipped,
        regions=_regions_of(esrs),
    )
    logger.info("ESR import from %s: %s", path, result)
    return result


IMPORTERS: dict[str, Callable[[PostgresStorage, str | Path], ImportResult]] = {
    "schemes": import_schemes,
    "lpcd": import_lpcd,
    "esr": import_esr,
    "sql": import_sql_dump,
}
