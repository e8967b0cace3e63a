"""CSV renderings of the record log and the catalog."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone, tzinfo

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, records
from .models import InventoryRecord, MasterItem, as_utc
from .tokenizer import quote_field

BOM = "\ufeff"
RECORD_HEADER = (
    "盤點日期,PartID,Vendor S/N,Project,Class,Location,ScanStatus,InvStatus,"
    "Vendor,Vendor P/N,Customer P/N,Description,User"
)
CATALOG_HEADER = (
    "PartID,Vendor S/N,Project,Class,Location,Vendor,Vendor P/N,Customer P/N,Description"
)

INV_STATUS_NORMAL = "Normal"
INV_STATUS_MISSING = "Missing"
INV_STATUS_NOT_IN_CATALOG = "此物料不在清單中"
NOT_COUNTED = "未盤點"


def format_inventory_date(value: datetime, tz: tzinfo) -> str:
    local = as_utc(value).astimezone(tz)
    return f"{local.year}/{local.month}/{local.day} {local:%H:%M:%S}"


def _row(
    date_text: str,
    source: InventoryRecord | MasterItem,
    scan_status: str,
    inv_status: str,
    scanned_by: str,
) -> str:
    values = [
        quote_field(date_text),
        quote_field(source.part_id),
        quote_field(source.vendor_sn),
        quote_field(source.project),
        quote_field(source.item_class),
        quote_field(source.location),
        quote_field(scan_status),
        quote_field(inv_status),
        quote_field(source.vendor),
        quote_field(source.vendor_pn),
        quote_field(source.customer_pn),
        quote_field(source.description, force=True),
        quote_field(scanned_by),
    ]
    return ",".join(values)


def _document(header: str, rows: Iterable[str]) -> str:
    return BOM + header + "\n" + "".join(row + "\n" for row in rows)


def export_records_csv(logged: Sequence[InventoryRecord], tz: tzinfo = timezone.utc) -> str:
    """The record log in the 13-column record file format."""

    return _document(
        RECORD_HEADER,
        (
            _row(
                format_inventory_date(record.inventory_date, tz),
                record,
                record.status,
                INV_STATUS_NORMAL,
                record.scanned_by,
            )
            for record in logged
        ),
    )


async def export_full_report_csv(session: AsyncSession, tz: tzinfo = timezone.utc) -> str:
    """Every catalog item with its count state, then records missing from the catalog.

    Counted rows use the catalog's current descriptive fields.
    """

    by_part_id = {record.part_id: record for record in await records.list_records(session)}
    rows: list[str] = []
    for item in await catalog.list_items(session):
        record = by_part_id.pop(item.part_id, None)
        if record is not None:
            rows.append(
                _row(
                    format_inventory_date(record.inventory_date, tz),
                    item,
                    record.status,
                    INV_STATUS_NORMAL,
                    record.scanned_by,
                )
            )
        else:
            rows.append(_row("", item, NOT_COUNTED, INV_STATUS_MISSING, "-"))
    for record in by_part_id.values():
        rows.append(
            _row(
                format_inventory_date(record.inventory_date, tz),
                record,
                record.status,
                INV_STATUS_NOT_IN_CATALOG,
                record.scanned_by,
            )
        )
    return _document(RECORD_HEADER, rows)


async def export_unscanned_csv(session: AsyncSession) -> str | None:
    """Catalog items with no record, in the catalog file format.

    Returns ``None`` when every catalog item has been counted.
    """

    unscanned = await catalog.list_unscanned(session, await records.scanned_part_ids(session))
    if not unscanned:
        return None
    rows = (
        ",".join(
            [
                quote_field(item.part_id),
                quote_field(item.vendor_sn),
                quote_field(item.project),
                quote_field(item.item_class),
                quote_field(item.location),
                quote_field(item.vendor),
                quote_field(item.vendor_pn),
                quote_field(item.customer_pn),
                quote_field(item.description, force=True),
            ]
        )
        for item in unscanned
    )
    return _document(CATALOG_HEADER, rows)


__all__ = [
    "RECORD_HEADER",
    "CATALOG_HEADER",
    "format_inventory_date",
    "export_records_csv",
    "export_full_report_csv",
    "export_unscanned_csv",
]
