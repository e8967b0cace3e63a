"""Count progress against the catalog, grouped by customer PartID prefix."""
from __future__ import annotations

from collections import Counter

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, records
from .models import MasterItem, ScanStatus
from .schemas import ProgressGroup, ProgressReport

CUSTOMER_PREFIXES = ("A26", "A31", "C38", "INT")
OTHERS = "OTHERS"
GROUPS = (*CUSTOMER_PREFIXES, OTHERS)

_COUNTED_STATUSES = {ScanStatus.OK.value, ScanStatus.CHECKED.value}


def customer_group(part_id: str) -> str:
    normalized = (part_id or "").strip().upper()
    for prefix in CUSTOMER_PREFIXES:
        if normalized.startswith(prefix):
            return prefix
    return OTHERS


def _group(name: str, target: int, counted: int) -> ProgressGroup:
    percent = round(counted / target * 100) if target > 0 else 0
    return ProgressGroup(group=name, target=target, counted=counted, percent=percent)


async def stock_progress(session: AsyncSession) -> ProgressReport:
    """Catalog size against completed counts (OK or Checked), overall and per group."""

    targets = Counter(customer_group(item.part_id) for item in await catalog.list_items(session))
    counted = Counter(
        customer_group(record.part_id)
        for record in await records.list_records(session)
        if record.status in _COUNTED_STATUSES
    )
    return ProgressReport(
        total=_group("ALL", sum(targets.values()), sum(counted.values())),
        groups=[_group(name, targets[name], counted[name]) for name in GROUPS],
    )


async def unscanned_items(
    session: AsyncSession,
    *,
    group: str | None = None,
    item_class: str | None = None,
    search: str | None = None,
) -> list[MasterItem]:
    """Uncounted catalog items, narrowed by customer group, Class and a substring."""

    scanned = await records.scanned_part_ids(session)
    term = (search or "").lower()

    def accept(item: MasterItem) -> bool:
        if item.part_id in scanned:
            return False
        if group and group != "ALL" and customer_group(item.part_id) != group:
            return False
        if item_class and item_class != "ALL" and item.item_class != item_class:
            return False
        if term and not any(
            term in (value or "").lower()
            for value in (item.part_id, item.description, item.location, item.vendor_pn)
        ):
            return False
        return True

    return await catalog.filter_items(session, accept)


__all__ = ["GROUPS", "customer_group", "stock_progress", "unscanned_items"]
