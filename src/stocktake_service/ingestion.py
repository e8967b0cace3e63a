"""Bulk catalog ingestion from delimited text."""
from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog
from .decoding import decode_bytes
from .errors import CatalogParseError
from .models import SNAPSHOT_FIELDS
from .tokenizer import split_line

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

# Column order of the catalog file: PartID followed by the snapshot fields.
CATALOG_COLUMNS = ("part_id", *SNAPSHOT_FIELDS)
_DESCRIPTION_INDEX = CATALOG_COLUMNS.index("description")

_NEWLINE = re.compile(r"\r\n|\r|\n")

ProgressCallback = Callable[[int, int, int], Union[None, Awaitable[None]]]


@dataclass
class IngestionReport:
    processed: int
    skipped: int
    batches: int


def split_lines(text: str) -> list[str]:
    return _NEWLINE.split(text)


def parse_catalog_line(line: str) -> dict[str, str] | None:
    """Turn one catalog line into item fields, or ``None`` when it has no PartID.

    Fields past the description column are joined back into the description,
    which tolerates unquoted commas in spreadsheet exports.
    """

    cols = split_line(line)
    if not cols or not cols[0]:
        return None
    row = {
        name: cols[index] if index < len(cols) else ""
        for index, name in enumerate(CATALOG_COLUMNS[:_DESCRIPTION_INDEX])
    }
    row["description"] = ",".join(cols[_DESCRIPTION_INDEX:]).strip()
    return row


def parse_catalog_text(text: str) -> tuple[list[dict[str, str]], int]:
    """Parse every data line of a catalog file.

    Returns the valid rows and the number of non-blank lines that were skipped.
    """

    lines = split_lines(text)
    data_lines = [line.strip() for line in lines[1:]]
    data_lines = [line for line in data_lines if line]
    if not data_lines:
        raise CatalogParseError("Catalog file contains no data rows")

    rows: list[dict[str, str]] = []
    skipped = 0
    for line in data_lines:
        row = parse_catalog_line(line)
        if row is None:
            skipped += 1
            logger.debug("Skipping catalog line without PartID: %r", line[:80])
            continue
        rows.append(row)
    return rows, skipped


def chunked(rows: Sequence[dict[str, str]], size: int) -> Iterator[Sequence[dict[str, str]]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


async def _report(progress: ProgressCallback | None, done: int, total: int) -> None:
    if progress is None:
        return
    percent = round(done / total * 100) if total else 100
    try:
        outcome = progress(percent, done, total)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as exc:
        logger.warning("Progress callback failed: %s", exc)


async def ingest_catalog(
    session: AsyncSession,
    text: str,
    progress: ProgressCallback | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> IngestionReport:
    """Replace the whole catalog with the rows of ``text``.

    The old catalog is cleared and the new rows are written batch by batch,
    yielding to the event loop between batches. Everything happens in one
    transaction that is committed at the end, so a failure part way through
    rolls back to the previous catalog.
    """

    rows, skipped = parse_catalog_text(text)
    batches = list(chunked(rows, batch_size))
    logger.info("Importing %d catalog rows in %d batches", len(rows), len(batches))

    processed = 0
    try:
        await catalog.clear_catalog(session)
        for index, batch in enumerate(batches, start=1):
            processed += await catalog.upsert_batch(session, batch)
            logger.debug("Catalog batch %d/%d written", index, len(batches))
            await _report(progress, index, len(batches))
            await asyncio.sleep(0)
        await session.commit()
    except BaseException:
        await session.rollback()
        logger.warning("Catalog import failed; previous catalog kept")
        raise

    if not batches:
        await _report(progress, 0, 0)
    logger.info("Catalog import finished: %d rows, %d skipped", processed, skipped)
    return IngestionReport(processed=processed, skipped=skipped, batches=len(batches))


async def ingest_catalog_bytes(
    session: AsyncSession,
    data: bytes,
    progress: ProgressCallback | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    legacy_encoding: str = "big5",
) -> IngestionReport:
    """Decode an uploaded catalog file and ingest it.

    Decoding happens before the store is touched.
    """

    text = decode_bytes(data, legacy_encoding=legacy_encoding)
    return await ingest_catalog(session, text, progress=progress, batch_size=batch_size)


__all__ = [
    "CATALOG_COLUMNS",
    "DEFAULT_BATCH_SIZE",
    "IngestionReport",
    "parse_catalog_line",
    "parse_catalog_text",
    "split_lines",
    "ingest_catalog",
    "ingest_catalog_bytes",
]
