"""Related-item lookup: catalog entries of the same product family as a record."""
from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, records
from .catalog import NA_SENTINEL
from .models import MasterItem

DescriptionStrategy = Literal["exact", "prefix", "segments"]

PREFIX_LENGTH = 15
SEGMENT_COUNT = 4
MIN_DESCRIPTION_LENGTH = 2


def _normalize(value: str | None) -> str:
    return (value or "").lower().strip()


def _exact(key: str) -> Callable[[str], bool]:
    return lambda description: description == key


def _contains(key: str) -> Callable[[str], bool]:
    return lambda description: key in description


def description_matcher(
    description: str, strategy: DescriptionStrategy = "exact"
) -> Callable[[str], bool] | None:
    """Build the comparison applied to normalized catalog descriptions.

    Returns ``None`` when the description is too short to carry a signal.
    """

    target = _normalize(description)
    if len(target) < MIN_DESCRIPTION_LENGTH:
        return None
    if strategy == "exact":
        return _exact(target)
    if strategy == "prefix":
        return _contains(target[:PREFIX_LENGTH])
    if strategy == "segments":
        key = ",".join(target.split(",")[:SEGMENT_COUNT]).strip()
        return _contains(key) if key else None
    raise ValueError(f"Unknown description match strategy: {strategy}")


async def find_related(
    session: AsyncSession,
    vendor_pn: str | None,
    description: str | None,
    *,
    strategy: DescriptionStrategy = "exact",
    min_vendor_pn_length: int = 3,
) -> Sequence[MasterItem]:
    """Return catalog items related to a record's VendorPN and Description.

    The vendor part number is tried first; the description comparison is a
    fallback used only when that yields nothing.
    """

    if vendor_pn and vendor_pn != NA_SENTINEL and len(vendor_pn) >= min_vendor_pn_length:
        by_vendor_pn = await catalog.find_by_vendor_pn(session, vendor_pn)
        if by_vendor_pn:
            return by_vendor_pn

    if not description or description == NA_SENTINEL:
        return []
    matcher = description_matcher(description, strategy)
    if matcher is None:
        return []
    return await catalog.filter_items(session, lambda item: matcher(_normalize(item.description)))


async def related_for_record(
    session: AsyncSession,
    record_id: str,
    *,
    strategy: DescriptionStrategy = "exact",
    min_vendor_pn_length: int = 3,
) -> list[tuple[MasterItem, bool]]:
    """Related items of a stored record, each paired with whether it was counted."""

    record = await records.require_record(session, record_id)
    related = await find_related(
        session,
        record.vendor_pn,
        record.description,
        strategy=strategy,
        min_vendor_pn_length=min_vendor_pn_length,
    )
    scanned = await records.scanned_part_ids(session)
    return [(item, item.part_id in scanned) for item in related]


__all__ = [
    "DescriptionStrategy",
    "description_matcher",
    "find_related",
    "related_for_record",
]
