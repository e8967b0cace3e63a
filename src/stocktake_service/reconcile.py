"""Merging exported record files and whole-state backup/restore."""
from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from dateutil import parser as date_parser
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, operators, records
from .decoding import decode_bytes
from .errors import MergeRowError, RestoreParseError
from .ingestion import split_lines
from .models import InventoryRecord, ScanStatus, to_epoch_ms, utcnow
from .schemas import BackupDocument, RecordDocument, RestorePayload, RestoreResult
from .tokenizer import split_line

logger = logging.getLogger(__name__)

_DATE_HEADERS = {"盤點日期", "inventorydate"}
# Record file columns: date, PartID, VendorSN, Project, Class, Location,
# ScanStatus, InvStatus, Vendor, VendorPN, CustomerPN, Description, User.
_RECORD_COLUMN_COUNT = 13
_DESCRIPTION_INDEX = 11


@dataclass
class MergeReport:
    added: int
    skipped: int


def _is_header(cols: Sequence[str]) -> bool:
    if cols and cols[0].strip().lower() in _DATE_HEADERS:
        return True
    return len(cols) > 1 and cols[1].strip().lower() == "partid"


def parse_record_date(value: str, tz: tzinfo) -> datetime:
    """Best-effort parse of an exported date; naive values are read in ``tz``.

    Unparseable values become the current time.
    """

    if not value:
        return utcnow()
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        return utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def record_from_row(cols: Sequence[str], tz: tzinfo, default_operator: str) -> InventoryRecord:
    """Build an inventory record from one exported row."""

    def col(index: int) -> str:
        return cols[index] if index < len(cols) else ""

    part_id = col(1).strip()
    if not part_id:
        raise MergeRowError("Row has no PartID")
    raw_status = col(6).strip() or ScanStatus.OK.value
    try:
        status = ScanStatus(raw_status)
    except ValueError as exc:
        raise MergeRowError(f"Row {part_id} has no count status ({raw_status})") from exc

    if len(cols) >= _RECORD_COLUMN_COUNT:
        description = ",".join(cols[_DESCRIPTION_INDEX:-1]).strip()
        scanned_by = cols[-1].strip() or default_operator
    else:
        description = col(_DESCRIPTION_INDEX)
        scanned_by = default_operator

    return InventoryRecord(
        inventory_date=parse_record_date(col(0).strip(), tz),
        status=status.value,
        scanned_by=scanned_by,
        part_id=part_id,
        vendor_sn=col(2),
        project=col(3),
        item_class=col(4),
        location=col(5),
        vendor=col(8),
        vendor_pn=col(9),
        customer_pn=col(10),
        description=description,
    )


async def merge_records_text(
    session: AsyncSession,
    text: str,
    *,
    tz: tzinfo = timezone.utc,
    default_operator: str = "Imported",
) -> MergeReport:
    """Append the rows of an exported record file whose PartID is not yet logged."""

    lines = split_lines(text)
    known = await records.scanned_part_ids(session)
    accepted: list[InventoryRecord] = []
    skipped = 0

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            continue
        cols = split_line(line)
        if index == 0 and _is_header(cols):
            continue
        try:
            record = record_from_row(cols, tz, default_operator)
        except MergeRowError as exc:
            logger.debug("Skipping merge row %d: %s", index + 1, exc)
            skipped += 1
            continue
        if record.part_id in known:
            skipped += 1
            continue
        known.add(record.part_id)
        accepted.append(record)

    await records.append_records(session, accepted)
    logger.info("Merged record file: %d added, %d skipped", len(accepted), skipped)
    return MergeReport(added=len(accepted), skipped=skipped)


async def merge_records_csv(
    session: AsyncSession,
    data: bytes,
    *,
    tz: tzinfo = timezone.utc,
    default_operator: str = "Imported",
    legacy_encoding: str = "big5",
) -> MergeReport:
    text = decode_bytes(data, legacy_encoding=legacy_encoding)
    return await merge_records_text(session, text, tz=tz, default_operator=default_operator)


async def build_backup(
    session: AsyncSession, *, version: str, default_operators: Sequence[str] = ()
) -> BackupDocument:
    """Snapshot operators and the record log; the catalog is only counted."""

    logged = await records.list_records(session)
    document = BackupDocument(
        version=version,
        timestamp=to_epoch_ms(utcnow()),
        users=await operators.list_operators(session, default_operators),
        records=[RecordDocument.model_validate(record) for record in logged],
        master_count=await catalog.count_items(session),
    )
    logger.info("Backup created with %d records", len(document.records))
    return document


def dump_backup(document: BackupDocument) -> str:
    return document.model_dump_json(by_alias=True, indent=2)


def parse_restore_payload(payload: bytes | str) -> RestorePayload:
    """Parse and fully validate a backup document without touching any state."""

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RestoreParseError("Backup is not valid JSON") from exc
    if not isinstance(data, dict):
        raise RestoreParseError("Backup must be a JSON object")
    try:
        parsed = RestorePayload.model_validate(data)
    except ValidationError as exc:
        raise RestoreParseError(f"Backup is malformed: {exc.error_count()} invalid fields") from exc

    if parsed.records is not None:
        part_ids = [document.part_id for document in parsed.records]
        if len(set(part_ids)) != len(part_ids):
            raise RestoreParseError("Backup lists the same PartID more than once")
        ids = [document.id for document in parsed.records]
        if len(set(ids)) != len(ids):
            raise RestoreParseError("Backup lists the same record id more than once")
    return parsed


async def restore_backup(session: AsyncSession, payload: bytes | str) -> RestoreResult:
    """Replace operators and/or the record log wholesale from a backup.

    The catalog is never touched. Invalid input raises
    :class:`RestoreParseError` before anything is changed.
    """

    parsed = parse_restore_payload(payload)
    restored: list[InventoryRecord] | None = None
    if parsed.records is not None:
        try:
            restored = [document.to_model() for document in parsed.records]
        except (OverflowError, OSError, ValueError) as exc:
            raise RestoreParseError("Backup contains an invalid InventoryDate") from exc

    result = RestoreResult()
    if parsed.users is not None:
        result.users = len(await operators.replace_operators(session, parsed.users))
    if restored is not None:
        await records.replace_records(session, restored)
        result.records = len(restored)
    logger.info("Restored backup: users=%s records=%s", result.users, result.records)
    return result


__all__ = [
    "MergeReport",
    "parse_record_date",
    "record_from_row",
    "merge_records_text",
    "merge_records_csv",
    "build_backup",
    "dump_backup",
    "parse_restore_payload",
    "restore_backup",
]
