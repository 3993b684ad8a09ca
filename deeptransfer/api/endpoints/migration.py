from __future__ import annotations

from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from deeptransfer.api.dependencies import get_catalog, get_settings, get_store
from deeptransfer.api.errors import IMPORTED_COUNT_HEADER
from deeptransfer.api.schemas.transfer import (
    ColumnsResponse,
    EntityListResponse,
    ExportRequest,
    ImportResponse,
    PlanResponse,
)
from deeptransfer.core.catalog.models import Catalog
from deeptransfer.core.settings import TransferSettings
from deeptransfer.core.store.base import RecordStore
from deeptransfer.core.store.query import deep_query
from deeptransfer.core.transfer.columns import flat_columns
from deeptransfer.core.transfer.exporter import export
from deeptransfer.core.transfer.importer import import_stream
from deeptransfer.core.transfer.resolver import lookup_entity, resolve

router = APIRouter(prefix="/migration", tags=["migration"])

ENTITY_SET_HEADER = "X-Entity-Set"


async def _body_chunks(request: Request) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            if chunk:
                yield chunk
    except ClientDisconnect as e:
        raise ConnectionAbortedError("client disconnected during upload") from e


def _preferred_locale(accept_language: Optional[str]) -> Optional[str]:
    # First tag of Accept-Language ("de-CH,de;q=0.9" -> "de-CH"); "*" means no preference.
    first = (accept_language or "").split(",", 1)[0].split(";", 1)[0].strip()
    return first if first and first != "*" else None


@router.post("/export")
def export_records(
    payload: ExportRequest,
    max_depth: Optional[int] = Query(None, ge=0),
    accept_language: Optional[str] = Header(None),
    catalog: Catalog = Depends(get_catalog),
    store: RecordStore = Depends(get_store),
    settings: TransferSettings = Depends(get_settings),
):
    stream = export(
        catalog,
        store,
        payload.entity_set,
        payload.selected_keys,
        payload.format,
        max_depth=settings.export_max_depth if max_depth is None else max_depth,
        locale=payload.locale or _preferred_locale(accept_language),
    )
    return StreamingResponse(
        stream.body,
        media_type=stream.media_type,
        headers={"Content-Disposition": f'attachment; filename="{stream.filename}"'},
    )


@router.put("/import", response_model=ImportResponse)
async def import_records(
    request: Request,
    x_entity_set: Optional[str] = Header(None),
    catalog: Catalog = Depends(get_catalog),
    store: RecordStore = Depends(get_store),
):
    entity_set = (x_entity_set or "").strip()
    if not entity_set:
        raise HTTPException(status_code=400, detail=f"{ENTITY_SET_HEADER} header is required")

    result = await import_stream(catalog, store, entity_set, _body_chunks(request))
    body = ImportResponse(entity_set=result.entity, imported=result.imported)
    return JSONResponse(content=body.model_dump(), headers={IMPORTED_COUNT_HEADER: str(result.imported)})


@router.get("/entities", response_model=EntityListResponse)
def list_entities(catalog: Catalog = Depends(get_catalog)):
    return {"entities": catalog.names()}


@router.get("/columns", response_model=ColumnsResponse)
def entity_columns(entity_set: str = Query(...), catalog: Catalog = Depends(get_catalog)):
    entity = lookup_entity(catalog, entity_set)
    return {"entity_set": entity.name, "columns": flat_columns(catalog, entity.name)}


@router.get("/plan", response_model=PlanResponse)
def projection_plan(
    entity_set: str = Query(...),
    max_depth: Optional[int] = Query(None, ge=0),
    catalog: Catalog = Depends(get_catalog),
    settings: TransferSettings = Depends(get_settings),
):
    plan = resolve(catalog, entity_set, settings.export_max_depth if max_depth is None else max_depth)
    out = plan.to_dict()
    out["columns"] = deep_query(plan, ()).to_columns()
    return out
