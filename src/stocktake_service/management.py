"""Utility helpers for administrative tasks."""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from . import ingestion, reconcile
from .config import configure_logging, get_settings
from .database import Base, SessionFactory, engine

logger = logging.getLogger(__name__)


async def init_database(db_engine: AsyncEngine | None = None) -> None:
    """Create database tables for the application."""

    engine_to_use = db_engine or engine
    async with engine_to_use.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Database tables ensured on %s", engine_to_use.url)


def _print_progress(percent: int, done: int, total: int) -> None:
    print(f"\rImporting batch {done}/{total} ({percent}%)", end="", flush=True)


async def import_catalog_file(path: Path) -> ingestion.IngestionReport:
    settings = get_settings()
    await init_database()
    async with SessionFactory() as session:
        report = await ingestion.ingest_catalog_bytes(
            session,
            path.read_bytes(),
            progress=_print_progress,
            batch_size=settings.ingest_batch_size,
            legacy_encoding=settings.legacy_encoding,
        )
    print()
    return report


async def backup_to_file(path: Path) -> int:
    settings = get_settings()
    await init_database()
    async with SessionFactory() as session:
        document = await reconcile.build_backup(
            session,
            version=settings.backup_version,
            default_operators=settings.default_operators,
        )
    path.write_text(reconcile.dump_backup(document), encoding="utf-8")
    return len(document.records)


async def restore_from_file(path: Path) -> None:
    await init_database()
    async with SessionFactory() as session:
        result = await reconcile.restore_backup(session, path.read_bytes())
        await session.commit()
    print(f"Restored users={result.users} records={result.records}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stocktake-admin", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("init-db", help="create the database tables")
    importer = commands.add_parser("import-catalog", help="replace the catalog from a CSV file")
    importer.add_argument("path", type=Path)
    backup = commands.add_parser("backup", help="write a JSON backup of operators and records")
    backup.add_argument("path", type=Path)
    restore = commands.add_parser("restore", help="restore operators and records from a backup")
    restore.add_argument("path", type=Path)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    if args.command == "init-db":
        asyncio.run(init_database())
    elif args.command == "import-catalog":
        report = asyncio.run(import_catalog_file(args.path))
        print(f"Imported {report.processed} rows ({report.skipped} skipped)")
    elif args.command == "backup":
        count = asyncio.run(backup_to_file(args.path))
        print(f"Backed up {count} records to {args.path}")
    elif args.command == "restore":
        asyncio.run(restore_from_file(args.path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
