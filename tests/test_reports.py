from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from stocktake_service import catalog, exports, progress, records
from stocktake_service.models import InventoryRecord, ScanStatus
from stocktake_service.scanning import process_scan
from stocktake_service.tokenizer import split_line


async def _seed(session: AsyncSession) -> None:
    await catalog.upsert_batch(
        session,
        [
            {"part_id": "A26-001", "item_class": "RAW", "location": "L1", "description": "Plate"},
            {"part_id": "A26-002", "item_class": "FG", "description": "Bolt, M3"},
            {"part_id": "a31-100", "item_class": "RAW", "description": "Nut"},
            {"part_id": "INT-7", "item_class": "FG", "vendor_pn": "V-77", "description": "Cap"},
            {"part_id": "ZZ-1", "item_class": "RAW", "description": "Misc"},
        ],
    )
    await session.commit()


def test_customer_group() -> None:
    assert progress.customer_group("A26-001") == "A26"
    assert progress.customer_group(" c38x ") == "C38"
    assert progress.customer_group("INT9") == "INT"
    assert progress.customer_group("B1") == "OTHERS"
    assert progress.customer_group("") == "OTHERS"


async def test_stock_progress(session: AsyncSession) -> None:
    await _seed(session)
    await process_scan(session, "A26-001", "Lynn")
    await process_scan(session, "INT-7", "Lynn")
    await process_scan(session, "A26-999", "Lynn")
    await session.commit()

    report = await progress.stock_progress(session)

    assert (report.total.target, report.total.counted, report.total.percent) == (5, 2, 40)
    groups = {group.group: group for group in report.groups}
    assert list(groups) == ["A26", "A31", "C38", "INT", "OTHERS"]
    assert (groups["A26"].target, groups["A26"].counted, groups["A26"].percent) == (2, 1, 50)
    assert (groups["C38"].target, groups["C38"].percent) == (0, 0)
    assert groups["INT"].percent == 100


async def test_checked_records_count_as_done(session: AsyncSession) -> None:
    await _seed(session)
    result = await process_scan(session, "ZZ-9", "Lynn")
    await records.set_status(session, [result.record.id], ScanStatus.CHECKED)
    await session.commit()

    report = await progress.stock_progress(session)
    groups = {group.group: group for group in report.groups}
    assert groups["OTHERS"].counted == 1


async def test_unscanned_items_filters(session: AsyncSession) -> None:
    await _seed(session)
    await process_scan(session, "A26-001", "Lynn")
    await session.commit()

    def ids(items) -> list[str]:
        return [item.part_id for item in items]

    assert ids(await progress.unscanned_items(session)) == ["A26-002", "INT-7", "ZZ-1", "a31-100"]
    assert ids(await progress.unscanned_items(session, group="A26")) == ["A26-002"]
    assert ids(await progress.unscanned_items(session, item_class="RAW")) == ["ZZ-1", "a31-100"]
    assert ids(await progress.unscanned_items(session, group="ALL", search="v-77")) == ["INT-7"]
    assert ids(await progress.unscanned_items(session, item_class="ALL", search="bolt")) == [
        "A26-002"
    ]


def test_format_inventory_date() -> None:
    value = datetime(2025, 12, 2, 1, 5, 9, tzinfo=timezone.utc)
    assert exports.format_inventory_date(value, timezone.utc) == "2025/12/2 01:05:09"
    assert exports.format_inventory_date(value, ZoneInfo("Asia/Taipei")) == "2025/12/2 09:05:09"
    naive = datetime(2025, 1, 3, 23, 0, 0)
    assert exports.format_inventory_date(naive, timezone.utc) == "2025/1/3 23:00:00"


def test_export_records_csv() -> None:
    record = InventoryRecord(
        part_id="P1",
        inventory_date=datetime(2025, 12, 2, 9, 0, tzinfo=timezone.utc),
        status="OK",
        scanned_by="Lynn",
        vendor_sn="",
        project="",
        item_class="",
        location="A-01",
        vendor="",
        vendor_pn="V1",
        customer_pn="",
        description='Gear, 12" small',
    )
    content = exports.export_records_csv([record])

    assert content.startswith("\ufeff")
    lines = content.lstrip("\ufeff").splitlines()
    assert lines[0] == exports.RECORD_HEADER
    assert lines[1] == '2025/12/2 09:00:00,P1,,,,A-01,OK,Normal,,V1,,"Gear, 12"" small",Lynn'
    assert split_line(lines[1])[11] == 'Gear, 12" small'


async def test_full_report(session: AsyncSession) -> None:
    await _seed(session)
    await process_scan(session, "A26-001", "Lynn")
    await process_scan(session, "X-404", "Devin")
    await session.commit()
    await catalog.upsert_batch(
        session, [{"part_id": "A26-001", "item_class": "RAW", "description": "Plate v2"}]
    )
    await session.commit()

    content = await exports.export_full_report_csv(session)
    rows = [split_line(line) for line in content.lstrip("\ufeff").splitlines()[1:]]
    by_part = {row[1]: row for row in rows}

    assert len(rows) == 6
    assert rows[-1][1] == "X-404"
    assert rows[-1][7] == exports.INV_STATUS_NOT_IN_CATALOG
    assert rows[-1][6] == "Not Found"
    assert by_part["A26-001"][6] == "OK"
    assert by_part["A26-001"][7] == exports.INV_STATUS_NORMAL
    assert by_part["A26-001"][11] == "Plate v2"
    assert by_part["A26-001"][12] == "Lynn"
    assert by_part["A26-002"][0] == ""
    assert by_part["A26-002"][6] == exports.NOT_COUNTED
    assert by_part["A26-002"][7] == exports.INV_STATUS_MISSING
    assert by_part["A26-002"][11] == "Bolt, M3"
    assert by_part["A26-002"][12] == "-"


async def test_unscanned_export(session: AsyncSession) -> None:
    await _seed(session)
    content = await exports.export_unscanned_csv(session)

    lines = content.lstrip("\ufeff").splitlines()
    assert lines[0] == exports.CATALOG_HEADER
    assert len(lines) == 6

    for part_id in ("A26-001", "A26-002", "a31-100", "INT-7", "ZZ-1"):
        await process_scan(session, part_id, "Lynn")
    await session.commit()
    assert await exports.export_unscanned_csv(session) is None
