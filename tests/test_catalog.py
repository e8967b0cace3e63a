from __future__ import annotations

import codecs

import pytest
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake_service import catalog, ingestion
from stocktake_service.errors import CatalogParseError, DecodeError

HEADER = "PartID,Vendor S/N,Project,Class,Location,Vendor,Vendor P/N,Customer P/N,Description"


def _catalog_text(*rows: str) -> str:
    return "\r\n".join([HEADER, *rows]) + "\r\n"


async def test_ingest_then_get_round_trip(session: AsyncSession) -> None:
    report = await ingestion.ingest_catalog(session, _catalog_text("P1,,,,,,,,Widget A"))

    assert report.processed == 1
    item = await catalog.get_item(session, "P1")
    assert item is not None
    assert item.part_id == "P1"
    assert item.description == "Widget A"
    assert item.vendor_sn == ""
    assert item.vendor_pn == ""
    assert item.item_class == ""


async def test_description_rejoins_trailing_fields(session: AsyncSession) -> None:
    await ingestion.ingest_catalog(
        session, _catalog_text("P2,SN9,PRJ,CLS,A-01,ACME,VPN-7,CPN-7,Bolt, M3, steel")
    )

    item = await catalog.require_item(session, "P2")
    assert item.description == "Bolt,M3,steel"
    assert item.location == "A-01"
    assert item.vendor_pn == "VPN-7"
    assert item.customer_pn == "CPN-7"


def test_parse_catalog_text_skips_blank_and_keyless_rows() -> None:
    text = "\n".join([HEADER, "", "P1,,,,,,,,One", ",SN,,,,,,,Orphan", "   ", "P2\rP3,,,,,,,,Three"])
    rows, skipped = ingestion.parse_catalog_text(text)

    assert [row["part_id"] for row in rows] == ["P1", "P2", "P3"]
    assert rows[1]["description"] == ""
    assert skipped == 1


def test_parse_catalog_text_requires_data_rows() -> None:
    with pytest.raises(CatalogParseError):
        ingestion.parse_catalog_text(HEADER + "\n\n")


async def test_reingest_replaces_whole_catalog(session: AsyncSession) -> None:
    await ingestion.ingest_catalog(session, _catalog_text("P1,,,,,,V1,,Old", "P9,,,,,,,,Gone"))
    await ingestion.ingest_catalog(session, _catalog_text("P1,,,,,,,,New"))

    assert await catalog.count_items(session) == 1
    item = await catalog.require_item(session, "P1")
    assert item.description == "New"
    assert item.vendor_pn == ""
    assert await catalog.get_item(session, "P9") is None


async def test_duplicate_part_ids_keep_one_item(session: AsyncSession) -> None:
    report = await ingestion.ingest_catalog(
        session,
        _catalog_text("P1,,,,,,,,First", "P2,,,,,,,,Other", "P1,,,,,,,,Second"),
    )

    assert report.processed == 3
    assert await catalog.count_items(session) == 2
    item = await catalog.require_item(session, "P1")
    assert item.description == "Second"


async def test_progress_reported_per_batch(session: AsyncSession) -> None:
    seen: list[tuple[int, int, int]] = []

    async def on_progress(percent: int, done: int, total: int) -> None:
        seen.append((percent, done, total))

    rows = [f"P{index},,,,,,,,Item {index}" for index in range(5)]
    report = await ingestion.ingest_catalog(
        session, _catalog_text(*rows), progress=on_progress, batch_size=2
    )

    assert report.batches == 3
    assert seen == [(33, 1, 3), (67, 2, 3), (100, 3, 3)]
    assert await catalog.count_items(session) == 5


async def test_failing_progress_callback_does_not_abort(session: AsyncSession) -> None:
    def broken(percent: int, done: int, total: int) -> None:
        raise RuntimeError("display gone")

    report = await ingestion.ingest_catalog(
        session, _catalog_text("P1,,,,,,,,A", "P2,,,,,,,,B"), progress=broken, batch_size=1
    )
    assert report.processed == 2


async def test_failed_import_keeps_previous_catalog(
    session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    await ingestion.ingest_catalog(session, _catalog_text("OLD1,,,,,,,,Kept", "OLD2,,,,,,,,Kept"))

    real_upsert = catalog.upsert_batch
    calls = {"count": 0}

    async def flaky(session_: AsyncSession, items):
        calls["count"] += 1
        if calls["count"] == 2:
            raise RuntimeError("disk full")
        return await real_upsert(session_, items)

    monkeypatch.setattr(catalog, "upsert_batch", flaky)
    rows = [f"NEW{index},,,,,,,,Fresh" for index in range(5)]
    with pytest.raises(RuntimeError):
        await ingestion.ingest_catalog(session, _catalog_text(*rows), batch_size=2)

    assert await catalog.count_items(session) == 2
    assert await catalog.get_item(session, "OLD1") is not None
    assert await catalog.get_item(session, "NEW0") is None


async def test_decode_failure_leaves_store_untouched(session: AsyncSession) -> None:
    await ingestion.ingest_catalog(session, _catalog_text("P1,,,,,,,,Kept"))

    with pytest.raises(DecodeError):
        await ingestion.ingest_catalog_bytes(session, b"\x80\xff\xff\xff")

    assert await catalog.count_items(session) == 1


async def test_ingest_bytes_with_bom(session: AsyncSession) -> None:
    data = codecs.BOM_UTF8 + _catalog_text("P1,,,,,,,,螺絲").encode("utf-8")
    report = await ingestion.ingest_catalog_bytes(session, data)

    assert report.processed == 1
    item = await catalog.require_item(session, "P1")
    assert item.description == "螺絲"


async def test_find_by_vendor_pn_ignores_sentinel(session: AsyncSession) -> None:
    await catalog.upsert_batch(
        session,
        [
            {"part_id": "P1", "vendor_pn": "NA"},
            {"part_id": "P2", "vendor_pn": "NA"},
            {"part_id": "P3", "vendor_pn": "V-1"},
        ],
    )
    await session.commit()

    assert await catalog.find_by_vendor_pn(session, "NA") == []
    assert await catalog.find_by_vendor_pn(session, "") == []
    assert [item.part_id for item in await catalog.find_by_vendor_pn(session, "V-1")] == ["P3"]


async def test_filter_and_clear(session: AsyncSession) -> None:
    await catalog.upsert_batch(
        session,
        [{"part_id": f"P{index}", "description": "even" if index % 2 == 0 else "odd"} for index in range(6)],
    )
    await session.commit()

    evens = await catalog.filter_items(session, lambda item: item.description == "even")
    assert [item.part_id for item in evens] == ["P0", "P2", "P4"]
    limited = await catalog.filter_items(session, lambda item: True, limit=2)
    assert len(limited) == 2

    assert await catalog.clear_catalog(session) == 6
    await session.commit()
    assert await catalog.count_items(session) == 0


async def test_delete_single_item(session: AsyncSession) -> None:
    await catalog.upsert_batch(session, [{"part_id": "P1"}, {"part_id": "P2"}])
    await session.commit()

    await catalog.delete_item(session, "P1")
    await session.commit()

    assert [item.part_id for item in await catalog.list_items(session)] == ["P2"]
    with pytest.raises(NoResultFound):
        await catalog.delete_item(session, "P1")


async def test_list_unscanned(session: AsyncSession) -> None:
    await catalog.upsert_batch(session, [{"part_id": "P1"}, {"part_id": "P2"}, {"part_id": "P3"}])
    await session.commit()

    unscanned = await catalog.list_unscanned(session, {"P2"})
    assert [item.part_id for item in unscanned] == ["P1", "P3"]
