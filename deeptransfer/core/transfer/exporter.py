"""Deep (JSON) and flat (CSV) export pipelines.

Both entry points validate eagerly and return an ``ExportStream`` whose body is
a lazy async iterator: nothing is read from the store until the caller starts
draining it, and records are produced one at a time.

With a ``locale`` the store reads localized values: fields that the entity's
``texts`` composition carries for that locale replace the base values.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from deeptransfer.core.catalog.models import Catalog
from deeptransfer.core.observability.metrics import record_exported, record_failure
from deeptransfer.core.store.base import RecordStore
from deeptransfer.core.store.query import DeepQuery, FlatQuery, deep_query, flat_query

from .columns import csv_header, csv_line, flat_columns
from .errors import NoKeysProvided, NoScalarColumns, UnsupportedFormat
from .plan import DEFAULT_MAX_DEPTH, ProjectionPlan
from .resolver import lookup_entity, resolve

log = logging.getLogger("transfer.export")

JSON_MEDIA_TYPE = "application/json; charset=utf-8"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

SUPPORTED_FORMATS = ("json", "csv")


@dataclass
class ExportStream:
    entity: str
    format: str
    filename: str
    media_type: str
    body: AsyncIterator[bytes]


def _require_keys(root_keys: Optional[Iterable[Any]]) -> list:
    keys = list(root_keys or [])
    if not keys:
        raise NoKeysProvided()
    return keys


def _encode_record(record: Any) -> bytes:
    return json.dumps(record, ensure_ascii=False, default=str).encode("utf-8")


async def _json_body(
    store: RecordStore,
    query: DeepQuery,
) -> AsyncIterator[bytes]:
    count = 0
    try:
        yield b"["
        async for record in store.select_deep(query):
            if count:
                yield b","
            yield _encode_record(record)
            count += 1
            record_exported("json")
        yield b"]"
    except Exception:
        log.exception("Deep export of %s aborted after %d records", query.entity, count)
        record_failure("ExportAborted")
        raise
    log.info("Exported %d %s records as JSON", count, query.entity)


async def _csv_body(
    store: RecordStore,
    query: FlatQuery,
) -> AsyncIterator[bytes]:
    count = 0
    try:
        yield csv_header(query.columns).encode("utf-8")
        async for row in store.select_flat(query):
            yield csv_line(row.get(c) for c in query.columns).encode("utf-8")
            count += 1
            record_exported("csv")
    except Exception:
        log.exception("CSV export of %s aborted after %d rows", query.entity, count)
        record_failure("ExportAborted")
        raise
    log.info("Exported %d %s rows as CSV", count, query.entity)


def export_deep(
    catalog: Catalog,
    store: RecordStore,
    entity_name: str,
    root_keys: Optional[Iterable[Any]],
    plan: Optional[ProjectionPlan] = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    locale: Optional[str] = None,
) -> ExportStream:
    if plan is None:
        plan = resolve(catalog, entity_name, max_depth)
    keys = _require_keys(root_keys)
    query = deep_query(plan, keys, locale=locale)
    log.debug(
        "Deep export %s columns=%s keys=%d locale=%s", query.entity, query.to_columns(), len(keys), locale
    )
    return ExportStream(
        entity=plan.entity.name,
        format="json",
        filename=f"{entity_name}.json",
        media_type=JSON_MEDIA_TYPE,
        body=_json_body(store, query),
    )


def export_flat(
    catalog: Catalog,
    store: RecordStore,
    entity_name: str,
    root_keys: Optional[Iterable[Any]],
    columns: Optional[Sequence[str]] = None,
    *,
    locale: Optional[str] = None,
) -> ExportStream:
    entity = lookup_entity(catalog, entity_name)
    keys = _require_keys(root_keys)
    cols = list(columns) if columns is not None else flat_columns(catalog, entity.name)
    if not cols:
        raise NoScalarColumns(entity.name)
    query = flat_query(entity.name, entity.key_field, cols, keys, locale=locale)
    return ExportStream(
        entity=entity.name,
        format="csv",
        filename=f"{entity.short_name}.csv",
        media_type=CSV_MEDIA_TYPE,
        body=_csv_body(store, query),
    )


def export(
    catalog: Catalog,
    store: RecordStore,
    entity_name: str,
    root_keys: Optional[Iterable[Any]],
    fmt: str = "json",
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    locale: Optional[str] = None,
) -> ExportStream:
    lookup_entity(catalog, entity_name)
    keys = _require_keys(root_keys)
    f = (fmt or "json").strip().lower()
    if f not in SUPPORTED_FORMATS:
        raise UnsupportedFormat(fmt)
    if f == "csv":
        return export_flat(catalog, store, entity_name, keys, locale=locale)
    return export_deep(catalog, store, entity_name, keys, max_depth=max_depth, locale=locale)
