from __future__ import annotations

import asyncio
import copy
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from deeptransfer.core.catalog.models import Catalog, EntityDescriptor
from deeptransfer.core.transfer.resolver import ResolutionContext, resolve_target

from .base import StoreConflictError, StoreConstraintError
from .query import DeepQuery, FlatQuery

TEXTS_COMPOSITION = "texts"
LOCALE_FIELD = "locale"


class InMemoryRecordStore:
    """Hierarchical in-memory store.

    Root records are kept per entity in insertion order, each as one document
    holding its composed children. Inserts validate against the catalog:
      - the entity and every composition target must exist
      - key fields are present (UUID keys are generated when missing)
      - not-null fields are set
      - keys are unique per table and per child collection

    Reads with a locale replace localized fields with the non-null values of
    the matching ``texts`` row.
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self._tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self._localized: Dict[str, Tuple[str, ...]] = {}

    # ------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------
    def count(self, entity: str) -> int:
        return len(self._tables.get(entity, {}))

    def get(self, entity: str, key: Any) -> Optional[Dict[str, Any]]:
        doc = self._tables.get(entity, {}).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    def rows(self, entity: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._tables.get(entity, {}).values()]

    def clear(self) -> None:
        self._tables.clear()

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------
    async def insert(self, entity: str, record: Dict[str, Any]) -> None:
        descriptor = self.catalog.get(entity)
        if descriptor is None:
            raise StoreConstraintError(f"unknown entity: {entity}")

        doc = self._prepare(descriptor, record, root=descriptor.name)
        key = self._key_of(descriptor, doc)

        table = self._tables.setdefault(descriptor.name, {})
        if key in table:
            raise StoreConflictError(entity=descriptor.name, key=key)
        table[key] = doc

    def _key_of(self, descriptor: EntityDescriptor, doc: Dict[str, Any]) -> Any:
        keys = descriptor.keys or [descriptor.key_field]
        if len(keys) == 1:
            return doc.get(keys[0])
        return tuple(doc.get(k) for k in keys)

    def _prepare(self, descriptor: EntityDescriptor, record: Any, *, root: str) -> Dict[str, Any]:
        if not isinstance(record, dict):
            raise StoreConstraintError(f"{descriptor.name} record must be an object, got {type(record).__name__}")

        out: Dict[str, Any] = {}
        for el in descriptor.elements:
            if el.virtual:
                continue

            if el.is_composition:
                children = record.get(el.name)
                if children is None:
                    out[el.name] = []
                    continue
                if not isinstance(children, list):
                    raise StoreConstraintError(f"{descriptor.name}.{el.name} must be an array")
                hit = resolve_target(
                    self.catalog, el.target or "", ResolutionContext(root=root, owner=descriptor.name)
                )
                if hit is None:
                    raise StoreConstraintError(
                        f"composition target {el.target!r} of {descriptor.name}.{el.name} does not exist"
                    )
                out[el.name] = self._prepare_children(hit.descriptor, children, root=root)
                continue

            value = record.get(el.name)
            if value is None and el.key:
                if el.type != "UUID":
                    raise StoreConstraintError(f"{descriptor.name}.{el.name} is a key and must be set")
                value = str(uuid.uuid4())
            if value is None and el.not_null:
                raise StoreConstraintError(f"{descriptor.name}.{el.name} must not be null")
            out[el.name] = copy.deepcopy(value)

        if descriptor.key_field not in out:
            out[descriptor.key_field] = copy.deepcopy(record.get(descriptor.key_field))
        return out

    def _prepare_children(self, descriptor: EntityDescriptor, children: List[Any], *, root: str) -> List[Dict[str, Any]]:
        seen: Set[Tuple[Any, ...]] = set()
        prepared = []
        for child in children:
            doc = self._prepare(descriptor, child, root=root)
            key = self._key_of(descriptor, doc)
            marker = key if isinstance(key, tuple) else (key,)
            if marker in seen:
                raise StoreConflictError(entity=descriptor.name, key=key)
            seen.add(marker)
            prepared.append(doc)
        return prepared

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    def _localized_fields(self, entity: str) -> Tuple[str, ...]:
        """Fields of ``entity`` that its ``texts`` composition can override per locale."""
        if entity in self._localized:
            return self._localized[entity]

        fields: Tuple[str, ...] = ()
        descriptor = self.catalog.get(entity)
        el = descriptor.element(TEXTS_COMPOSITION) if descriptor is not None else None
        if el is not None and el.is_composition:
            hit = resolve_target(self.catalog, el.target or "", ResolutionContext(root=entity, owner=entity))
            if hit is not None:
                own = set(descriptor.stored_fields())
                texts = hit.descriptor
                fields = tuple(f for f in texts.stored_fields() if f in own and f not in texts.keys)
        self._localized[entity] = fields
        return fields

    def _localize(self, entity: str, doc: Dict[str, Any], out: Dict[str, Any], locale: str) -> None:
        fields = self._localized_fields(entity)
        if not fields:
            return
        row = _text_for(doc.get(TEXTS_COMPOSITION) or [], locale)
        if row is None:
            return
        for f in fields:
            if f in out and row.get(f) is not None:
                out[f] = copy.deepcopy(row[f])

    def _project(self, doc: Dict[str, Any], query: DeepQuery, locale: Optional[str] = None) -> Dict[str, Any]:
        if query.fields is None:
            out = {k: copy.deepcopy(v) for k, v in doc.items() if not isinstance(v, list)}
        else:
            out = {f: copy.deepcopy(doc.get(f)) for f in query.fields}
        if locale:
            self._localize(query.entity, doc, out, locale)
        for name, sub in query.expand:
            out[name] = [self._project(child, sub, locale) for child in doc.get(name) or []]
        return out

    def _matching(self, entity: str, query_where) -> List[Dict[str, Any]]:
        # Snapshot so concurrent inserts do not disturb an iteration in progress.
        docs = list(self._tables.get(entity, {}).values())
        if query_where is None:
            return docs
        return [d for d in docs if query_where.matches(d.get(query_where.field))]

    async def select_deep(self, query: DeepQuery) -> AsyncIterator[Dict[str, Any]]:
        for doc in self._matching(query.entity, query.where):
            yield self._project(doc, query, query.locale)
            await asyncio.sleep(0)

    async def select_flat(self, query: FlatQuery) -> AsyncIterator[Dict[str, Any]]:
        for doc in self._matching(query.entity, query.where):
            row = {c: copy.deepcopy(doc.get(c)) for c in query.columns}
            if query.locale:
                self._localize(query.entity, doc, row, query.locale)
            yield row
            await asyncio.sleep(0)


def _text_for(texts: List[Dict[str, Any]], locale: str) -> Optional[Dict[str, Any]]:
    # Exact locale first, then its language ("de_CH" / "de-CH" -> "de").
    wanted = locale.strip()
    language = wanted.replace("-", "_").split("_", 1)[0]
    for candidate in (wanted, language):
        for row in texts:
            if row.get(LOCALE_FIELD) == candidate:
                return row
    return None
