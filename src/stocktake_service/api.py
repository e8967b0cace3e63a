"""FastAPI router configuration."""
from __future__ import annotations

from datetime import date
from typing import Sequence

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from . import (
    catalog,
    exports,
    ingestion,
    matching,
    operators,
    progress,
    reconcile,
    records,
    schemas,
    search,
)
from .config import Settings, get_settings
from .database import get_session
from .models import utcnow
from .scanning import process_scan

router = APIRouter()

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def provide_settings() -> Settings:
    """Dependency returning the active :class:`Settings` instance."""

    return get_settings()


async def _read_upload(request: Request) -> bytes:
    data = await request.body()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")
    return data


def _csv_response(content: str, prefix: str) -> Response:
    filename = f"{prefix}_{utcnow():%Y-%m-%d}.csv"
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health", response_model=schemas.HealthStatus, tags=["system"])
async def health_check(settings: Settings = Depends(provide_settings)) -> schemas.HealthStatus:
    return schemas.HealthStatus(environment=settings.environment)


# catalog ---------------------------------------------------------------


@router.post("/catalog/import", response_model=schemas.IngestionResult, tags=["catalog"])
async def import_catalog(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.IngestionResult:
    data = await _read_upload(request)
    try:
        report = await ingestion.ingest_catalog_bytes(
            session,
            data,
            batch_size=settings.ingest_batch_size,
            legacy_encoding=settings.legacy_encoding,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.IngestionResult(
        processed=report.processed,
        skipped=report.skipped,
        batches=report.batches,
        count=await catalog.count_items(session),
    )


@router.get("/catalog/count", response_model=schemas.CatalogCount, tags=["catalog"])
async def catalog_count(session: AsyncSession = Depends(get_session)) -> schemas.CatalogCount:
    return schemas.CatalogCount(count=await catalog.count_items(session))


@router.get("/catalog/items/{part_id}", response_model=schemas.MasterItemOut, tags=["catalog"])
async def get_catalog_item(
    part_id: str, session: AsyncSession = Depends(get_session)
) -> schemas.MasterItemOut:
    try:
        item = await catalog.require_item(session, part_id)
    except NoResultFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return schemas.MasterItemOut.model_validate(item)


@router.delete(
    "/catalog/items/{part_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["catalog"]
)
async def delete_catalog_item(part_id: str, session: AsyncSession = Depends(get_session)) -> None:
    try:
        await catalog.delete_item(session, part_id)
    except NoResultFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    await session.commit()


@router.delete("/catalog", response_model=schemas.AffectedCount, tags=["catalog"])
async def clear_catalog(session: AsyncSession = Depends(get_session)) -> schemas.AffectedCount:
    affected = await catalog.clear_catalog(session)
    await session.commit()
    return schemas.AffectedCount(affected=affected)


@router.get("/catalog/search", response_model=list[schemas.MasterItemOut], tags=["catalog"])
async def search_catalog(
    q: str = "",
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Sequence[schemas.MasterItemOut]:
    items = await search.autocomplete(
        session,
        q,
        limit=settings.autocomplete_limit,
        min_length=settings.autocomplete_min_length,
    )
    return [schemas.MasterItemOut.model_validate(item) for item in items]


@router.get("/catalog/related", response_model=list[schemas.MasterItemOut], tags=["catalog"])
async def related_catalog_items(
    vendor_pn: str = "",
    description: str = "",
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Sequence[schemas.MasterItemOut]:
    items = await matching.find_related(
        session,
        vendor_pn,
        description,
        strategy=settings.description_match,
        min_vendor_pn_length=settings.related_min_vendor_pn_length,
    )
    return [schemas.MasterItemOut.model_validate(item) for item in items]


@router.get("/catalog/unscanned", response_model=list[schemas.MasterItemOut], tags=["catalog"])
async def unscanned_catalog_items(
    group: str | None = None,
    item_class: str | None = None,
    search_term: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> Sequence[schemas.MasterItemOut]:
    items = await progress.unscanned_items(
        session, group=group, item_class=item_class, search=search_term
    )
    return [schemas.MasterItemOut.model_validate(item) for item in items]


# records ---------------------------------------------------------------


@router.post("/scans", response_model=schemas.ScanResponse, tags=["records"])
async def scan(
    payload: schemas.ScanRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.ScanResponse | Response:
    operator = payload.operator or await operators.get_current_operator(
        session, settings.default_operators
    )
    result = await process_scan(session, payload.part_id, operator or "")
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    await session.commit()
    return schemas.ScanResponse(
        outcome=result.outcome,
        created=result.created,
        record=schemas.RecordDocument.model_validate(result.record),
    )


@router.get("/records", response_model=list[schemas.RecordDocument], tags=["records"])
async def list_records(
    search_term: str | None = None,
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Sequence[schemas.RecordDocument]:
    logged = await records.list_records(
        session, search=search_term, start=start, end=end, tz=settings.tzinfo
    )
    return [schemas.RecordDocument.model_validate(record) for record in logged]


@router.get(
    "/records/{record_id}/related",
    response_model=list[schemas.RelatedItemOut],
    tags=["records"],
)
async def related_for_record(
    record_id: str,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Sequence[schemas.RelatedItemOut]:
    try:
        related = await matching.related_for_record(
            session,
            record_id,
            strategy=settings.description_match,
            min_vendor_pn_length=settings.related_min_vendor_pn_length,
        )
    except NoResultFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [
        schemas.RelatedItemOut.model_validate(item).model_copy(update={"scanned": scanned})
        for item, scanned in related
    ]


@router.post("/records/status", response_model=schemas.AffectedCount, tags=["records"])
async def update_record_status(
    payload: schemas.StatusUpdate, session: AsyncSession = Depends(get_session)
) -> schemas.AffectedCount:
    affected = await records.set_status(session, payload.ids, payload.status)
    await session.commit()
    return schemas.AffectedCount(affected=affected)


@router.post("/records/delete", response_model=schemas.AffectedCount, tags=["records"])
async def delete_records(
    payload: schemas.RecordIds, session: AsyncSession = Depends(get_session)
) -> schemas.AffectedCount:
    affected = await records.delete_records(session, payload.ids)
    await session.commit()
    return schemas.AffectedCount(affected=affected)


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["records"])
async def delete_record(record_id: str, session: AsyncSession = Depends(get_session)) -> None:
    if not await records.delete_records(session, [record_id]):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found"
        )
    await session.commit()


@router.delete("/records", response_model=schemas.AffectedCount, tags=["records"])
async def clear_records(session: AsyncSession = Depends(get_session)) -> schemas.AffectedCount:
    affected = await records.clear_records(session)
    await session.commit()
    return schemas.AffectedCount(affected=affected)


@router.post("/records/merge", response_model=schemas.MergeResult, tags=["records"])
async def merge_records(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.MergeResult:
    data = await _read_upload(request)
    try:
        report = await reconcile.merge_records_csv(
            session,
            data,
            tz=settings.tzinfo,
            default_operator=settings.merge_default_operator,
            legacy_encoding=settings.legacy_encoding,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await session.commit()
    return schemas.MergeResult(added=report.added, skipped=report.skipped)


# exports ---------------------------------------------------------------


@router.get("/exports/records.csv", tags=["exports"])
async def export_records(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Response:
    logged = await records.list_records(session)
    return _csv_response(exports.export_records_csv(logged, settings.tzinfo), "records")


@router.get("/exports/full-report.csv", tags=["exports"])
async def export_full_report(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Response:
    content = await exports.export_full_report_csv(session, settings.tzinfo)
    return _csv_response(content, "full_report")


@router.get("/exports/unscanned.csv", tags=["exports"])
async def export_unscanned(session: AsyncSession = Depends(get_session)) -> Response:
    content = await exports.export_unscanned_csv(session)
    if content is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _csv_response(content, "unscanned")


# state -----------------------------------------------------------------


@router.get("/backup", response_model=schemas.BackupDocument, tags=["state"])
async def backup(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.BackupDocument:
    return await reconcile.build_backup(
        session, version=settings.backup_version, default_operators=settings.default_operators
    )


@router.post("/restore", response_model=schemas.RestoreResult, tags=["state"])
async def restore(
    request: Request, session: AsyncSession = Depends(get_session)
) -> schemas.RestoreResult:
    data = await _read_upload(request)
    try:
        result = await reconcile.restore_backup(session, data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await session.commit()
    return result


@router.get("/progress", response_model=schemas.ProgressReport, tags=["state"])
async def stock_progress(session: AsyncSession = Depends(get_session)) -> schemas.ProgressReport:
    return await progress.stock_progress(session)


# operators and session -------------------------------------------------


@router.get("/operators", response_model=list[str], tags=["operators"])
async def list_operators(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> list[str]:
    return await operators.list_operators(session, settings.default_operators)


@router.post("/operators", response_model=list[str], tags=["operators"])
async def add_operator(
    payload: schemas.OperatorName,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> list[str]:
    names = await operators.add_operator(session, payload.name, settings.default_operators)
    await session.commit()
    return names


@router.delete("/operators/{name}", response_model=list[str], tags=["operators"])
async def remove_operator(
    name: str,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> list[str]:
    names = await operators.remove_operator(session, name, settings.default_operators)
    await session.commit()
    return names


@router.put("/operators/current", response_model=schemas.SessionState, tags=["operators"])
async def select_operator(
    payload: schemas.OperatorName,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.SessionState:
    try:
        await operators.select_operator(session, payload.name, settings.default_operators)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await session.commit()
    return await _session_state(session, settings)


async def _session_state(session: AsyncSession, settings: Settings) -> schemas.SessionState:
    return schemas.SessionState(
        authenticated=await operators.is_authenticated(session),
        current_operator=await operators.get_current_operator(session, settings.default_operators),
        operators=await operators.list_operators(session, settings.default_operators),
    )


@router.get("/session", response_model=schemas.SessionState, tags=["operators"])
async def session_state(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.SessionState:
    return await _session_state(session, settings)


@router.post("/session/unlock", response_model=schemas.SessionState, tags=["operators"])
async def unlock(
    payload: schemas.UnlockRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.SessionState:
    unlocked = await operators.unlock(session, payload.password, settings.access_password)
    await session.commit()
    if not unlocked:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong password")
    return await _session_state(session, settings)


@router.post("/session/lock", response_model=schemas.SessionState, tags=["operators"])
async def lock(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.SessionState:
    await operators.lock(session)
    await session.commit()
    return await _session_state(session, settings)


@router.post("/session/password", status_code=status.HTTP_204_NO_CONTENT, tags=["operators"])
async def change_password(
    payload: schemas.PasswordChange,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> None:
    try:
        await operators.change_password(
            session, payload.old_password, payload.new_password, settings.access_password
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await session.commit()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name)
    app.dependency_overrides[provide_settings] = lambda: settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.access_control_allow_origin.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


__all__ = ["app", "create_app"]
