"""Record log: the PartID-unique list of inventory records counted so far."""
from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import date, timezone, tzinfo

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from .models import InventoryRecord, ScanStatus, as_utc


async def get_record(session: AsyncSession, record_id: str) -> InventoryRecord | None:
    return await session.get(InventoryRecord, record_id)


async def require_record(session: AsyncSession, record_id: str) -> InventoryRecord:
    record = await get_record(session, record_id)
    if record is None:
        raise NoResultFound(f"Record {record_id} not found")
    return record


async def get_by_part_id(session: AsyncSession, part_id: str) -> InventoryRecord | None:
    stmt = select(InventoryRecord).where(InventoryRecord.part_id == part_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_records(
    session: AsyncSession,
    *,
    search: str | None = None,
    start: date | None = None,
    end: date | None = None,
    tz: tzinfo | None = None,
) -> list[InventoryRecord]:
    """Return the log most-recent-first, optionally filtered.

    ``search`` is a case-insensitive substring of PartID or Description.
    ``start``/``end`` are inclusive calendar days evaluated in ``tz``.
    """

    stmt = select(InventoryRecord).order_by(InventoryRecord.sequence.desc())
    result = await session.execute(stmt)
    records = list(result.scalars().all())

    if search:
        term = search.lower()
        records = [
            record
            for record in records
            if term in record.part_id.lower() or term in (record.description or "").lower()
        ]
    if start is not None or end is not None:
        filtered = []
        for record in records:
            day = as_utc(record.inventory_date).astimezone(tz or timezone.utc).date()
            if start is not None and day < start:
                continue
            if end is not None and day > end:
                continue
            filtered.append(record)
        records = filtered
    return records


async def count_records(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(InventoryRecord))
    return int(result.scalar_one())


async def scanned_part_ids(session: AsyncSession) -> set[str]:
    result = await session.execute(select(InventoryRecord.part_id))
    return set(result.scalars().all())


async def _sequence_bounds(session: AsyncSession) -> tuple[int, int]:
    stmt = select(func.min(InventoryRecord.sequence), func.max(InventoryRecord.sequence))
    lowest, highest = (await session.execute(stmt)).one()
    return lowest or 0, highest or 0


async def prepend_record(session: AsyncSession, record: InventoryRecord) -> InventoryRecord:
    """Add ``record`` at the head of the log."""

    _, highest = await _sequence_bounds(session)
    record.sequence = highest + 1
    session.add(record)
    await session.flush()
    return record


async def append_records(
    session: AsyncSession, new_records: Sequence[InventoryRecord]
) -> Sequence[InventoryRecord]:
    """Add ``new_records`` at the tail of the log, keeping their order."""

    lowest, _ = await _sequence_bounds(session)
    for offset, record in enumerate(new_records, start=1):
        record.sequence = lowest - offset
        session.add(record)
    await session.flush()
    return new_records


async def set_status(session: AsyncSession, ids: Collection[str], status: ScanStatus) -> int:
    if not ids:
        return 0
    stmt = (
        update(InventoryRecord)
        .where(InventoryRecord.id.in_(list(ids)))
        .values(status=ScanStatus(status).value)
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount or 0


async def delete_records(session: AsyncSession, ids: Collection[str]) -> int:
    if not ids:
        return 0
    result = await session.execute(delete(InventoryRecord).where(InventoryRecord.id.in_(list(ids))))
    await session.flush()
    return result.rowcount or 0


async def clear_records(session: AsyncSession) -> int:
    result = await session.execute(delete(InventoryRecord))
    await session.flush()
    return result.rowcount or 0


async def replace_records(
    session: AsyncSession, new_records: Sequence[InventoryRecord]
) -> Sequence[InventoryRecord]:
    """Swap the whole log for ``new_records``, first element at the head."""

    await clear_records(session)
    total = len(new_records)
    for index, record in enumerate(new_records):
        record.sequence = total - index
        session.add(record)
    await session.flush()
    return new_records


__all__ = [name for name in globals() if not name.startswith("_")]
