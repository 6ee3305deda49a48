from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import Settings, configure_logging
from .errors import LoadError


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {
        "csv_path": getattr(args, "csv", None),
        "database_url": getattr(args, "database_url", None),
        "port": getattr(args, "port", None),
        "host": getattr(args, "host", None),
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=overrides) if overrides else settings


def _run(app, settings: Settings) -> None:
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.graceful_shutdown_seconds,
    )


def cmd_serve(args: argparse.Namespace) -> int:
    from .main import create_server_app

    settings = _settings(args)
    configure_logging(settings.log_level)
    if not Path(settings.csv_path).is_file():
        print(f"Failed to start server: CSV file not found: {settings.csv_path}", file=sys.stderr)
        print("Place your CSV file at data/postcodes.csv or set CSV_PATH", file=sys.stderr)
        return 1

    _run(create_server_app(settings), settings)
    return 0


def cmd_serve_edge(args: argparse.Namespace) -> int:
    from .main import create_edge_app

    settings = _settings(args)
    configure_logging(settings.log_level)
    try:
        app = create_edge_app(settings)
    except LoadError as exc:
        print(f"Failed to start server: {exc}", file=sys.stderr)
        return 1

    _run(app, settings)
    return 0


def cmd_import_sql(args: argparse.Namespace) -> int:
    from .ingest import schema_sql, write_import_sql

    configure_logging(Settings.from_env().log_level)
    try:
        total = write_import_sql(args.csv, args.out, batch_size=args.batch_size)
    except LoadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.schema:
        Path(args.schema).write_text(schema_sql(), encoding="utf-8")
    print(f"Generated {args.out} with {total:,} postcodes")
    return 0


def cmd_ingest(args: argparse.Namespace) -> int:
    from sqlalchemy import create_engine

    from .ingest import ingest_into_database

    settings = _settings(args)
    configure_logging(settings.log_level)
    if not settings.database_url:
        print("Error: set DATABASE_URL or pass --database-url", file=sys.stderr)
        return 1

    try:
        total = ingest_into_database(settings.csv_path, create_engine(settings.database_url), args.batch_size)
    except LoadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Ingested {total:,} postcodes")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="polar4-api", description="Postcode POLAR4 lookup service")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the in-memory server over a CSV file")
    serve.add_argument("--csv", help="postcode CSV (default: $CSV_PATH)")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    edge = sub.add_parser("serve-edge", help="run the database-backed handler")
    edge.add_argument("--database-url", help="SQLAlchemy URL (default: $DATABASE_URL)")
    edge.add_argument("--host")
    edge.add_argument("--port", type=int)
    edge.set_defaults(func=cmd_serve_edge)

    imp = sub.add_parser("import-sql", help="convert a CSV into batched INSERT statements")
    imp.add_argument("csv")
    imp.add_argument("--out", default="import.sql")
    imp.add_argument("--schema", help="also write the table DDL to this file")
    imp.add_argument("--batch-size", type=positive_int, default=500)
    imp.set_defaults(func=cmd_import_sql)

    ingest = sub.add_parser("ingest", help="load a CSV straight into $DATABASE_URL")
    ingest.add_argument("--csv")
    ingest.add_argument("--database-url")
    ingest.add_argument("--batch-size", type=positive_int, default=500)
    ingest.set_defaults(func=cmd_ingest)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
