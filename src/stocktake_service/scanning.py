"""Turns scanned or typed part identifiers into classified inventory records."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, records
from .models import SNAPSHOT_FIELDS, InventoryRecord, ScanStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of one scan event.

    ``outcome`` is ``Duplicated`` when the PartID was already counted; the
    returned record is then the stored one, unchanged.
    """

    outcome: ScanStatus
    record: InventoryRecord
    created: bool


async def process_scan(
    session: AsyncSession, raw_part_id: str, operator: str
) -> ScanResult | None:
    part_id = (raw_part_id or "").strip()
    if not part_id:
        return None

    existing = await records.get_by_part_id(session, part_id)
    if existing is not None:
        logger.info("Duplicate scan of %s by %s", part_id, operator)
        return ScanResult(outcome=ScanStatus.DUPLICATED, record=existing, created=False)

    item = await catalog.get_item(session, part_id)
    if item is not None:
        status = ScanStatus.OK
        snapshot = item.snapshot()
    else:
        status = ScanStatus.NOT_FOUND
        snapshot = dict.fromkeys(SNAPSHOT_FIELDS, "")

    record = InventoryRecord(
        inventory_date=utcnow(),
        status=status.value,
        scanned_by=operator,
        part_id=part_id,
        **snapshot,
    )
    await records.prepend_record(session, record)
    logger.info("Scanned %s by %s: %s", part_id, operator, status.value)
    return ScanResult(outcome=status, record=record, created=True)


__all__ = ["ScanResult", "process_scan"]
