"""
JJM Maharashtra: command-line entry point for imports and maintenance.

Every command prints one JSON line and exits 0 on success, 1 on failure.

Usage:
    python main.py init-db
    python main.py import-schemes attached_assets/scheme_status.xlsx
    python main.py import-lpcd attached_assets/lpcd.xlsx
    python main.py import-esr attached_assets/esr.xlsx
    python main.py import-sql dump.sql
    python main.py recompute-regions
    python main.py generate-urls [--overwrite]
    python main.py check-integrity
    python main.py analyze attached_assets/scheme_status.xlsx [--kind lpcd]
    python main.py serve [--host 0.0.0.0 --port 5000]
"""

import argparse
import json
import logging
from pathlib import Path

import pandas as pd

from jjm_dashboard.config import (
    API_HOST,
    API_PORT,
    ESR_COLUMN_VARIANTS,
    SCHEME_COLUMN_VARIANTS,
    WATER_COLUMN_VARIANTS,
    database_url,
)
from jjm_dashboard.db import connect, init_schema, seed_regions
from jjm_dashboard.ingest import IMPORTERS, IngestError
from jjm_dashboard.loaders import analyze_workbook
from jjm_dashboard.storage import PostgresStorage
from jjm_dashboard.transforms import check_scheme_invariants

logger = logging.getLogger(__name__)

_IMPORT_COMMANDS = {
    "import-schemes": "schemes",
    "import-lpcd": "lpcd",
    "import-esr": "esr",
    "import-sql": "sql",
}

_REGISTRIES = {
    "schemes": SCHEME_COLUMN_VARIANTS,
    "lpcd": WATER_COLUMN_VARIANTS,
    "esr": ESR_COLUMN_VARIANTS,
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jjm", description="JJM Maharashtra data tools")
    parser.add_argument("--dsn", default=database_url(), help="PostgreSQL DSN (default: DATABASE_URL)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create tables and seed default regions")

    for command, kind in _IMPORT_COMMANDS.items():
        p = subparsers.add_parser(command, help=f"Import a {kind} file")
        p.add_argument("path", type=Path)

    subparsers.add_parser("recompute-regions", help="Rebuild region counters from scheme rows")

    urls = subparsers.add_parser("generate-urls", help="Fill PI Vision dashboard links")
    urls.add_argument("--overwrite", action="store_true", help="Regenerate existing links too")

    subparsers.add_parser("check-integrity", help="Report scheme count invariant violations")

    analyze = subparsers.add_parser("analyze", help="Show header detection for a workbook")
    analyze.add_argument("path", type=Path)
    analyze.add_argument("--kind", choices=sorted(_REGISTRIES), default="schemes")

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=API_HOST)
    serve.add_argument("--port", type=int, default=API_PORT)

    return parser


def _emit(payload: dict) -> None:
    print(json.dumps(payload, default=str))


def main(argv: list[str] | None = None) -> int:
    parser = _parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        if args.command == "analyze":
            report = analyze_workbook(args.path, _REGISTRIES[args.kind])
            _emit({"status": "ok", "sheets": report})
            return 0

        if args.command == "serve":
            import uvicorn

            uvicorn.run("jjm_dashboard.api:app", host=args.host, port=args.port)
            return 0

        with connect(args.dsn) as conn:
            storage = PostgresStorage(conn)

            if args.command == "init-db":
                init_schema(conn)
                seeded = seed_regions(conn)
                _emit({"status": "ok", "regions_seeded": seeded})
                return 0

            if args.command in _IMPORT_COMMANDS:
                result = IMPORTERS[_IMPORT_COMMANDS[args.command]](storage, args.path)
                _emit(result.to_dict())
                return 0

            if args.command == "recompute-regions":
                with conn.transaction():
                    regions = storage.recompute_region_summaries()
                _emit({"status": "ok", "regions": regions})
                return 0

            if args.command == "generate-urls":
                with conn.transaction():
                    counts = storage.fill_dashboard_urls(overwrite=args.overwrite)
                _emit({"status": "ok", **counts})
                return 0

            if args.command == "check-integrity":
                report = check_scheme_invariants(pd.DataFrame(storage.list_schemes()))
                _emit({
                    "status": "ok" if report.empty else "violations",
                    "violations": report.to_dict("records"),
                })
                return 0 if report.empty else 1

    except IngestError as exc:
        logger.error("Import rejected: %s", exc)
        _emit({"status": "error", "error": str(exc)})
        return 1
    except Exception as exc:
        logger.exception("Command '%s' failed", args.command)
        _emit({"status": "error", "error": str(exc)})
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
