"""Catalog store: keyed master items with vendor part number lookups."""
from __future__ import annotations

from collections.abc import Callable, Collection, Mapping, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SNAPSHOT_FIELDS, MasterItem

NA_SENTINEL = "NA"

_TABLE = MasterItem.__table__
_COLUMN_NAMES = {
    attribute: MasterItem.__mapper__.attrs[attribute].columns[0].name
    for attribute in ("part_id", *SNAPSHOT_FIELDS)
}


def _to_row(item: Mapping[str, str | None]) -> dict[str, str]:
    """Map attribute names to column names, filling absent fields with ``""``."""

    return {
        column: (item.get(attribute) or "").strip()
        for attribute, column in _COLUMN_NAMES.items()
    }


def _fresh_select():
    # Batches are written with Core statements, so identity-map copies may be stale.
    return select(MasterItem).execution_options(populate_existing=True)


async def upsert_batch(session: AsyncSession, items: Sequence[Mapping[str, str | None]]) -> int:
    """Insert or wholly replace each item by PartID.

    The batch runs inside a SAVEPOINT: either every row of the batch is
    written or none is.
    """

    rows = [_to_row(item) for item in items]
    rows = [row for row in rows if row["part_id"]]
    if not rows:
        return 0
    stmt = sqlite_insert(_TABLE)
    replaced = {
        column.name: stmt.excluded[column.name]
        for column in _TABLE.columns
        if column.name != "part_id"
    }
    stmt = stmt.on_conflict_do_update(index_elements=[_TABLE.c.part_id], set_=replaced)
    async with session.begin_nested():
        await session.execute(stmt, rows)
    return len(rows)


async def get_item(session: AsyncSession, part_id: str) -> MasterItem | None:
    stmt = _fresh_select().where(MasterItem.part_id == part_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def require_item(session: AsyncSession, part_id: str) -> MasterItem:
    item = await get_item(session, part_id)
    if item is None:
        raise NoResultFound(f"Catalog item {part_id} not found")
    return item


async def find_by_vendor_pn(session: AsyncSession, vendor_pn: str) -> Sequence[MasterItem]:
    """Equality lookup on the vendor part number index."""

    if not vendor_pn or vendor_pn == NA_SENTINEL:
        return []
    stmt = _fresh_select().where(MasterItem.vendor_pn == vendor_pn).order_by(MasterItem.part_id)
    result = await session.execute(stmt)
    return result.scalars().all()


async def filter_items(
    session: AsyncSession,
    predicate: Callable[[MasterItem], bool],
    *,
    limit: int | None = None,
) -> list[MasterItem]:
    """Full scan of the catalog returning the items accepted by ``predicate``.

    Cost grows linearly with catalog size.
    """

    result = await session.execute(_fresh_select().order_by(MasterItem.part_id))
    matches: list[MasterItem] = []
    for item in result.scalars():
        if predicate(item):
            matches.append(item)
            if limit is not None and len(matches) >= limit:
                break
    return matches


async def list_items(session: AsyncSession) -> Sequence[MasterItem]:
    result = await session.execute(_fresh_select().order_by(MasterItem.part_id))
    return result.scalars().all()


async def count_items(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(MasterItem))
    return int(result.scalar_one())


async def clear_catalog(session: AsyncSession) -> int:
    result = await session.execute(delete(MasterItem))
    await session.flush()
    return result.rowcount or 0


async def delete_item(session: AsyncSession, part_id: str) -> None:
    item = await require_item(session, part_id)
    await session.delete(item)
    await session.flush()


async def list_unscanned(session: AsyncSession, scanned: Collection[str]) -> list[MasterItem]:
    """Catalog items whose PartID has no inventory record yet."""

    scanned_set = set(scanned)
    return await filter_items(session, lambda item: item.part_id not in scanned_set)


__all__ = [
    "NA_SENTINEL",
    "upsert_batch",
    "get_item",
    "require_item",
    "find_by_vendor_pn",
    "filter_items",
    "list_items",
    "count_items",
    "clear_catalog",
    "delete_item",
    "list_unscanned",
]
