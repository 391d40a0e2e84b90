"""
Table definitions and region seeding.

DDL is idempotent (CREATE ... IF NOT EXISTS) so init_schema can run on every
start-up.
"""

import logging

import psycopg

from ..config import (
    LPCD_DATE_FIELDS,
    LPCD_VALUE_FIELDS,
    WATER_DATE_FIELDS,
    WATER_VALUE_FIELDS,
)

logger = logging.getLogger(__name__)

_WATER_VALUE_DDL = ",\n    ".join(f"{c} NUMERIC" for c in WATER_VALUE_FIELDS + LPCD_VALUE_FIELDS)
_WATER_DATE_DDL = ",\n    ".join(f"{c} VARCHAR(32)" for c in WATER_DATE_FIELDS + LPCD_DATE_FIELDS)

DDL = [
    """
    CREATE TABLE IF NOT EXISTS region (
        region_id SERIAL PRIMARY KEY,
        region_name TEXT NOT NULL UNIQUE,
        total_esr_integrated INTEGER NOT NULL DEFAULT 0,
        fully_completed_esr INTEGER NOT NULL DEFAULT 0,
        partial_esr INTEGER NOT NULL DEFAULT 0,
        total_villages_integrated INTEGER NOT NULL DEFAULT 0,
        fully_completed_villages INTEGER NOT NULL DEFAULT 0,
        total_schemes_integrated INTEGER NOT NULL DEFAULT 0,
        fully_completed_schemes INTEGER NOT NULL DEFAULT 0,
        flow_meter_integrated INTEGER NOT NULL DEFAULT 0,
        rca_integrated INTEGER NOT NULL DEFAULT 0,
        pressure_transmitter_integrated INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scheme_status (
        sr_no INTEGER,
        scheme_id TEXT NOT NULL,
        region TEXT,
        circle TEXT,
        division TEXT,
        sub_division TEXT,
        block TEXT,
        scheme_name TEXT NOT NULL,
        agency TEXT,
        number_of_village INTEGER DEFAULT 0,
        total_villages_integrated INTEGER DEFAULT 0,
        no_of_functional_village INTEGER DEFAULT 0,
        no_of_partial_village INTEGER DEFAULT 0,
        no_of_non_functional_village INTEGER DEFAULT 0,
        fully_completed_villages INTEGER DEFAULT 0,
        total_number_of_esr INTEGER DEFAULT 0,
        scheme_functional_status TEXT,
        total_esr_integrated INTEGER DEFAULT 0,
        no_fully_completed_esr INTEGER DEFAULT 0,
        balance_to_complete_esr INTEGER DEFAULT 0,
        flow_meters_connected INTEGER DEFAULT 0,
        pressure_transmitter_connected INTEGER DEFAULT 0,
        residual_chlorine_analyzer_connected INTEGER DEFAULT 0,
        scheme_status TEXT,
        dashboard_url TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS scheme_status_scheme_id_idx ON scheme_status (scheme_id)",
    "CREATE INDEX IF NOT EXISTS scheme_status_region_idx ON scheme_status (region)",
    f"""
    CREATE TABLE IF NOT EXISTS water_scheme_data (
        region TEXT,
        circle TEXT,
        division TEXT,
        sub_division TEXT,
        block TEXT,
        scheme_id TEXT NOT NULL,
        scheme_name TEXT,
        village_name TEXT NOT NULL,
        population INTEGER,
        number_of_esr INTEGER,
        {_WATER_VALUE_DDL},
        {_WATER_DATE_DDL},
        consistent_zero_lpcd_for_a_week INTEGER DEFAULT 0,
        below_55_lpcd_count INTEGER DEFAULT 0,
        above_55_lpcd_count INTEGER DEFAULT 0,
        dashboard_url TEXT,
        PRIMARY KEY (scheme_id, village_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS esr_monitoring (
        id SERIAL PRIMARY KEY,
        region TEXT,
        circle TEXT,
        division TEXT,
        sub_division TEXT,
        block TEXT,
        scheme_id TEXT NOT NULL,
        scheme_name TEXT,
        village_name TEXT NOT NULL,
        esr_name TEXT NOT NULL,
        chlorine_connected INTEGER DEFAULT 0,
        pressure_connected INTEGER DEFAULT 0,
        flow_meter_connected INTEGER DEFAULT 0,
        chlorine_status TEXT,
        pressure_status TEXT,
        flow_meter_status TEXT,
        overall_status TEXT,
        dashboard_url TEXT,
        last_updated TIMESTAMPTZ DEFAULT now(),
        UNIQUE (scheme_id, village_name, esr_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS updates (
        id SERIAL PRIMARY KEY,
        date DATE NOT NULL DEFAULT CURRENT_DATE,
        type TEXT NOT NULL,
        count INTEGER NOT NULL DEFAULT 0,
        region TEXT,
        affected_ids TEXT[],
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_state (
        key TEXT PRIMARY KEY,
        value JSONB NOT NULL,
        updated_at TIMESTAMPTZ DEFAULT now()
    )
    """,
]

# Initial region counters, replaced by the first recomputation
DEFAULT_REGIONS = [
    # name, schemes, completed schemes, villages, completed villages,
    # esr, completed esr, partial esr, flow meters, rca, pt
    ("Nagpur", 16, 8, 136, 59, 164, 87, 77, 120, 121, 66),
    ("Amravati", 11, 3, 103, 34, 123, 42, 81, 157, 114, 116),
    ("Chhatrapati Sambhajinagar", 11, 4, 87, 21, 143, 57, 86, 136, 143, 96),
    ("Nashik", 15, 0, 130, 54, 181, 87, 94, 113, 114, 47),
    ("Pune", 13, 0, 95, 0, 119, 0, 119, 160, 126, 74),
    ("Konkan", 4, 0, 47, 8, 51, 14, 37, 11, 10, 3),
]


def init_schema(conn: psycopg.Connection) -> None:
    """Create all tables and indexes that do not exist yet."""
    with conn.transaction():
        with conn.cursor() as cur:
            for statement in DDL:
                cur.execute(statement)
    logger.info("Schema ready (%d statements)", len(DDL))


def seed_regions(conn: psycopg.Connection) -> int:
    """Insert the default regions into an empty region table.

    Returns the number of rows inserted (0 when regions already exist).
    """
    with conn.transaction():
        with conn.cursor() as cur:
            cur.execute("SELECT COUNT(*) AS n FROM region")
            existing = cur.fetchone()["n"]
            if existing:
                logger.info("Region table already has %d regions", existing)
                return 0
            cur.executemany(
                """
                INSERT INTO region (
                    region_name, total_schemes_integrated, fully_completed_schemes,
                    total_villages_integrated, fully_completed_villages,
                    total_esr_integrated, fully_completed_esr, partial_esr,
                    flow_meter_integrated, rca_integrated, pressure_transmitter_integrated
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                DEFAULT_REGIONS,
            )
    logger.info("Seeded %d default regions", len(DEFAULT_REGIONS))
    return len(DEFAULT_REGIONS)
