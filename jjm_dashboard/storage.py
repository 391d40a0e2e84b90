"""
PostgreSQL storage: every SQL statement the project runs lives here.

PostgresStorage wraps one open psycopg connection (autocommit, dict rows).
Write methods do not open transactions themselves; callers group them in
`with conn.transaction():` so an import and its region recomputation commit
or roll back together.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

import pandas as pd
import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from . import dashboard_urls, kpis
from .config import (
    LPCD_DATE_FIELDS,
    LPCD_FLAG_FIELDS,
    LPCD_VALUE_FIELDS,
    SCHEME_COUNT_FIELDS,
    STATUS_FILTER_ALIASES,
    WATER_DATE_FIELDS,
    WATER_VALUE_FIELDS,
)
from .transforms import REGION_COUNTERS

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 1_000

SCHEME_DB_COLUMNS = [
    "sr_no", "scheme_id", "region", "circle", "division", "sub_division", "block",
    "scheme_name", "agency", *SCHEME_COUNT_FIELDS,
    "scheme_functional_status", "scheme_status", "dashboard_url",
]

VILLAGE_DB_COLUMNS = [
    "region", "circle", "division", "sub_division", "block",
    "scheme_id", "scheme_name", "village_name", "population", "number_of_esr",
    *WATER_VALUE_FIELDS, *LPCD_VALUE_FIELDS,
    *WATER_DATE_FIELDS, *LPCD_DATE_FIELDS,
    *LPCD_FLAG_FIELDS, "dashboard_url",
]
VILLAGE_KEY = ["scheme_id", "village_name"]

ESR_DB_COLUMNS = [
    "region", "circle", "division", "sub_division", "block",
    "scheme_id", "scheme_name", "village_name", "esr_name",
    "chlorine_connected", "pressure_connected", "flow_meter_connected",
    "chlorine_status", "pressure_status", "flow_meter_status", "overall_status",
    "dashboard_url",
]
ESR_KEY = ["scheme_id", "village_name", "esr_name"]


def _plain(row: dict[str, Any]) -> dict[str, Any]:
    """Decimal -> float so rows feed pandas and JSON without surprises."""
    return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in row.items()}


def _records(df: pd.DataFrame, columns: list[str]) -> list[tuple]:
    frame = df.reindex(columns=columns)
    frame = frame.astype(object).where(pd.notna(frame), None)
    return [tuple(row) for row in frame.itertuples(index=False, name=None)]


def _batches(rows: list[tuple], size: int = INSERT_BATCH_SIZE) -> Iterable[list[tuple]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def resolve_status_filter(status: str | None) -> str | None:
    """Map a front-end status label to the stored scheme_status value."""
    if status is None or status.strip().lower() in ("", "all"):
        return None
    return STATUS_FILTER_ALIASES.get(status.strip().lower(), status.strip())


def _region_filter(region: str | None) -> str | None:
    if region is None or region.strip().lower() in ("", "all"):
        return None
    return region.strip()


class PostgresStorage:
    """Queries and writes against the JJM tables."""

    def __init__(self, conn: psycopg.Connection):
        self.conn = conn

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _fetchall(self, query, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        with self.conn.cursor() as cur:
            cur.execute(query, tuple(params))
            return [_plain(r) for r in cur.fetchall()]

    def _fetchone(self, query, params: Iterable[Any] = ()) -> dict[str, Any] | None:
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

    def _upsert(self, table: str, columns: list[str], key: list[str], rows: list[tuple]) -> None:
        updates = [c for c in columns if c not in key]
        query = sql.SQL(
            "INSERT INTO {table} ({cols}) VALUES ({vals}) "
            "ON CONFLICT ({key}) DO UPDATE SET {sets}"
        ).format(
            table=sql.Identifier(table),
            cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            key=sql.SQL(", ").join(map(sql.Identifier, key)),
            sets=sql.SQL(", ").join(
                sql.SQL("{c} = EXCLUDED.{c}").format(c=sql.Identifier(c)) for c in updates
            ),
        )
        with self.conn.cursor() as cur:
            for batch in _batches(rows):
                cur.executemany(query, batch)

    def _existing_keys(self, table: str, key: list[str], scheme_ids: list[str]) -> set[tuple]:
        query = sql.SQL("SELECT {cols} FROM {table} WHERE scheme_id = ANY(%s)").format(
            cols=sql.SQL(", ").join(map(sql.Identifier, key)),
            table=sql.Identifier(table),
        )
        return {tuple(r[c] for c in key) for r in self._fetchall(query, [scheme_ids])}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def replace_schemes(self, schemes_df: pd.DataFrame) -> tuple[int, int]:
        """Delete rows for the batch's scheme IDs, then insert the batch.

        Returns (inserted, removed).
        """
        scheme_ids = sorted({str(s) for s in schemes_df["scheme_id"].dropna()})
        with self.conn.cursor() as cur:
            cur.execute("DELETE FROM scheme_status WHERE scheme_id = ANY(%s)", (scheme_ids,))
            removed = cur.rowcount
            query = sql.SQL("INSERT INTO scheme_status ({cols}) VALUES ({vals})").format(
                cols=sql.SQL(", ").join(map(sql.Identifier, SCHEME_DB_COLUMNS)),
                vals=sql.SQL(", ").join(sql.Placeholder() * len(SCHEME_DB_COLUMNS)),
            )
            rows = _records(schemes_df, SCHEME_DB_COLUMNS)
            for batch in _batches(rows):
                cur.executemany(query, batch)
        logger.info("Replaced scheme rows: %d removed, %d inserted", removed, len(rows))
        return len(rows), removed

    def upsert_villages(self, villages_df: pd.DataFrame) -> tuple[int, int]:
        """Insert or update village rows keyed by (scheme_id, village_name).

        Returns (inserted, updated).
        """
        rows = _records(villages_df, VILLAGE_DB_COLUMNS)
        scheme_ids = sorted({str(s) for s in villages_df["scheme_id"].dropna()})
        existing = self._existing_keys("water_scheme_data", VILLAGE_KEY, scheme_ids)
        key_idx = [VILLAGE_DB_COLUMNS.index(c) for c in VILLAGE_KEY]
        updated = sum(1 for r in rows if tuple(r[i] for i in key_idx) in existing)
        self._upsert("water_scheme_data", VILLAGE_DB_COLUMNS, VILLAGE_KEY, rows)
        logger.info("Upserted village rows: %d inserted, %d updated", len(rows) - updated, updated)
        return len(rows) - updated, updated

    def upsert_esrs(self, esr_df: pd.DataFrame) -> tuple[int, int]:
        """Insert or update ESR rows keyed by (scheme_id, village_name, esr_name).

        Returns (inserted, updated).
        """
        rows = _records(esr_df, ESR_DB_COLUMNS)
        scheme_ids = sorted({str(s) for s in esr_df["scheme_id"].dropna()})
        existing = self._existing_keys("esr_monitoring", ESR_KEY, scheme_ids)
        key_idx = [ESR_DB_COLUMNS.index(c) for c in ESR_KEY]
        updated = sum(1 for r in rows if tuple(r[i] for i in key_idx) in existing)
        self._upsert("esr_monitoring", ESR_DB_COLUMNS, ESR_KEY, rows)
        with self.conn.cursor() as cur:
            cur.execute(
                "UPDATE esr_monitoring SET last_updated = now() WHERE scheme_id = ANY(%s)",
                (scheme_ids,),
            )
        logger.info("Upserted ESR rows: %d inserted, %d updated", len(rows) - updated, updated)
        return len(rows) - updated, updated

    def recompute_region_summaries(self, regions: list[str] | None = None) -> list[dict[str, Any]]:
        """Rebuild region counters from scheme_status.

        Region names found in scheme_status but missing from the region table
        are inserted first. Regions without schemes end up zeroed.
        """
        with self.conn.cursor() as cur:
            if regions is None:
                cur.execute(
                    "SELECT DISTINCT region FROM scheme_status WHERE region IS NOT NULL AND region <> ''"
                )
                regions = [r["region"] for r in cur.fetchall()]
                cur.execute("SELECT region_name FROM region")
                regions = sorted(set(regions) | {r["region_name"] for r in cur.fetchall()})

            for region in regions:
                cur.execute(
                    "INSERT INTO region (region_name) VALUES (%s) ON CONFLICT (region_name) DO NOTHING",
                    (region,),
                )
                cur.execute(
                    """
                    SELECT
                        COUNT(*) AS total_schemes_integrated,
                        COUNT(*) FILTER (WHERE scheme_status = 'Fully-Completed') AS fully_completed_schemes,
                        COALESCE(SUM(total_villages_integrated), 0) AS total_villages_integrated,
                        COALESCE(SUM(fully_completed_villages), 0) AS fully_completed_villages,
                        COALESCE(SUM(total_esr_integrated), 0) AS total_esr_integrated,
                        COALESCE(SUM(no_fully_completed_esr), 0) AS fully_completed_esr,
                        COALESCE(SUM(flow_meters_connected), 0) AS flow_meter_integrated,
                        COALESCE(SUM(residual_chlorine_analyzer_connected), 0) AS rca_integrated,
                        COALESCE(SUM(pressure_transmitter_connected), 0) AS pressure_transmitter_integrated
                    FROM scheme_status
                    WHERE region = %s
                    """,
                    (region,),
                )
                totals = {k: int(v) for k, v in cur.fetchone().items()}
                totals["partial_esr"] = totals["total_esr_integrated"] - totals["fully_completed_esr"]
                cur.execute(
                    sql.SQL("UPDATE region SET {sets} WHERE region_name = %s").format(
                        sets=sql.SQL(", ").join(
                            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in REGION_COUNTERS
                        )
                    ),
                    [totals[c] for c in REGION_COUNTERS] + [region],
                )
                logger.debug("Region %s: %s", region, totals)

        logger.info("Recomputed summaries for %d regions", len(regions))
        return self.list_regions()

    def fill_dashboard_urls(self, overwrite: bool = False) -> dict[str, int]:
        """Generate PI Vision links for rows missing one (or all rows)."""
        missing = "" if overwrite else " WHERE dashboard_url IS NULL OR dashboard_url = ''"
        counts = {"schemes": 0, "villages": 0, "esrs": 0}
        with self.conn.cursor() as cur:
            cur.execute("SELECT ctid::text AS ctid, * FROM scheme_status" + missing)
            for row in cur.fetchall():
                url = dashboard_urls.scheme_dashboard_url(row)
                if url:
                    cur.execute("UPDATE scheme_status SET dashboard_url = %s WHERE ctid = %s::tid", (url, row["ctid"]))
                    counts["schemes"] += 1

            cur.execute("SELECT * FROM water_scheme_data" + missing)
            for row in cur.fetchall():
                url = dashboard_urls.village_dashboard_url(row)
                if url:
                    cur.execute(
                        "UPDATE water_scheme_data SET dashboard_url = %s WHERE scheme_id = %s AND village_name = %s",
                        (url, row["scheme_id"], row["village_name"]),
                    )
                    counts["villages"] += 1

            cur.execute("SELECT * FROM esr_monitoring" + missing)
            for row in cur.fetchall():
                url = dashboard_urls.esr_dashboard_url(row)
                if url:
                    cur.execute("UPDATE esr_monitoring SET dashboard_url = %s WHERE id = %s", (url, row["id"]))
                    counts["esrs"] += 1

        logger.info(
            "Dashboard URLs set: %d schemes, %d villages, %d ESRs",
            counts["schemes"], counts["villages"], counts["esrs"],
        )
        return counts

    def record_update(
        self,
        update_type: str,
        count: int,
        region: str | None = None,
        affected_ids: list[str] | None = None,
    ) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                "INSERT INTO updates (type, count, region, affected_ids) VALUES (%s, %s, %s, %s)",
                (update_type, count, region, affected_ids or []),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_regions(self) -> list[dict[str, Any]]:
        return self._fetchall("SELECT * FROM region ORDER BY region_name")

    def get_region(self, name: str) -> dict[str, Any] | None:
        return self._fetchone("SELECT * FROM region WHERE lower(region_name) = lower(%s)", [name])

    def region_summary(self, region: str | None = None) -> dict[str, int] | None:
        """Counters of one region, or summed over all regions."""
        name = _region_filter(region)
        if name is None:
            return kpis.region_summary_totals(self.list_regions())
        row = self.get_region(name)
        if row is None:
            return None
        return {c: int(row.get(c) or 0) for c in REGION_COUNTERS}

    def list_schemes(
        self,
        region: str | None = None,
        status: str | None = None,
        scheme_id: str | None = None,
    ) -> list[dict[str, Any]]:
        clauses, params = [], []
        if _region_filter(region):
            clauses.append("region = %s")
            params.append(_region_filter(region))
        wanted = resolve_status_filter(status)
        if wanted:
            clauses.append("lower(scheme_status) = lower(%s)")
            params.append(wanted)
        if scheme_id:
            clauses.append("scheme_id = %s")
            params.append(scheme_id)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        return self._fetchall(
            "SELECT * FROM scheme_status" + where + " ORDER BY region, scheme_id", params
        )

    def get_scheme(self, scheme_id: str) -> list[dict[str, Any]]:
        """All rows for a scheme ID (one per block it spans)."""
        return self.list_schemes(scheme_id=scheme_id)

    def list_villages(
        self,
        region: str | None = None,
        min_lpcd: float | None = None,
        max_lpcd: float | None = None,
        zero_supply_for_week: bool = False,
    ) -> list[dict[str, Any]]:
        clauses, params = [], []
        if _region_filter(region):
            clauses.append("region = %s")
            params.append(_region_filter(region))
        if min_lpcd is not None:
            clauses.append("lpcd_value_day1 >= %s")
            params.append(min_lpcd)
        if max_lpcd is not None:
            clauses.append("lpcd_value_day1 <= %s")
            params.append(max_lpcd)
        if zero_supply_for_week:
            clauses.append("consistent_zero_lpcd_for_a_week = 1")
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        return self._fetchall(
            "SELECT * FROM water_scheme_data" + where + " ORDER BY region, scheme_id, village_name", params
        )

    def population_stats(self, region: str | None = None) -> dict[str, Any]:
        villages = pd.DataFrame(self.list_villages(region=region))
        return kpis.population_stats(villages)

    def list_esrs(self, region: str | None = None) -> list[dict[str, Any]]:
        if _region_filter(region):
            return self._fetchall(
                "SELECT * FROM esr_monitoring WHERE region = %s ORDER BY scheme_id, village_name, esr_name",
                [_region_filter(region)],
            )
        return self._fetchall("SELECT * FROM esr_monitoring ORDER BY region, scheme_id, village_name, esr_name")

    def esr_stats(self, region: str | None = None) -> dict[str, int]:
        return kpis.esr_stats(pd.DataFrame(self.list_esrs(region)))

    # ------------------------------------------------------------------
    # App state and the daily update feed
    # ------------------------------------------------------------------
    def get_app_state(self, key: str) -> Any:
        row = self._fetchone("SELECT value FROM app_state WHERE key = %s", [key])
        return row["value"] if row else None

    def set_app_state(self, key: str, value: Any) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO app_state (key, value, updated_at) VALUES (%s, %s, now())
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()
                """,
                (key, Jsonb(value)),
            )

    def get_today_updates(self, today: date | None = None) -> list[dict[str, Any]]:
        """Today's activity feed, newest first.

        The first call of a day stores the current totals; later calls
        prepend one update per counter that grew since the previous call.
        """
        now = datetime.now(timezone.utc)
        today = today or now.date()
        key = f"daily_updates_{today.isoformat()}"

        with self.conn.transaction():
            state = self.get_app_state(key) or {}
            updates = list(state.get("updates") or [])
            prev_totals = state.get("prevTotals")

            current = kpis.current_totals(self.list_regions(), self.list_schemes())
            new_updates = kpis.diff_totals(prev_totals, current, now.isoformat())
            if new_updates:
                logger.info("Adding %d new updates for %s", len(new_updates), today)
            updates = new_updates + updates

            self.set_app_state(key, {
                "updates": updates,
                "prevTotals": current,
                "lastUpdateDay": today.isoformat(),
            })
        return updates
