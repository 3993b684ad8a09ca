"""Streaming import pipeline.

The request body is a JSON array of root records. It is decoded incrementally:
``ArrayFramer`` cuts the text into top-level elements as bytes arrive, each
element is decoded on its own and persisted before the next one is framed. At
most one element (plus one input chunk) is held in memory at any time.

Failure policy: the first malformed element, rejected insert, or closed input
stops the import. The raised error carries the 1-based position of the element
being processed and the number of records persisted before it.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterator, List, Optional

from deeptransfer.core.catalog.models import Catalog
from deeptransfer.core.observability.metrics import record_failure, record_imported
from deeptransfer.core.store.base import RecordStore

from .errors import ImportFailure, InputClosed, MalformedPayload, PersistFailure
from .resolver import lookup_entity

log = logging.getLogger("transfer.import")

_WHITESPACE = " \t\n\r"

# Exceptions a byte source raises when the caller aborts the upload.
INPUT_CLOSED_ERRORS = (ConnectionError, EOFError)


class FramingError(ValueError):
    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(message)


class _State(str, Enum):
    START = "start"
    FIRST = "first"  # after '[' (empty array allowed)
    NEXT = "next"  # after ',' (an element is required)
    ELEMENT = "element"
    AFTER = "after"  # after an element (',' or ']' expected)
    DONE = "done"


class ArrayFramer:
    """Incremental splitter for the top-level elements of a JSON array.

    ``feed`` is a generator: elements are handed out as soon as they are
    complete, so a caller can act on element N before element N+1 is scanned.
    Only the array structure is checked here; element contents are validated
    by ``json.loads``.
    """

    def __init__(self) -> None:
        self._state = _State.START
        self._parts: List[str] = []
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self.position = 0  # ordinal of the element currently framed (1-based)

    @property
    def done(self) -> bool:
        return self._state == _State.DONE

    @property
    def pending_position(self) -> int:
        """Ordinal of the element being read, or of the next one when between elements."""
        return self.position if self._state == _State.ELEMENT else self.position + 1

    def _fail(self, message: str) -> FramingError:
        return FramingError(message, self.pending_position)

    def _emit(self, text: str, start: int, end: int) -> str:
        self._parts.append(text[start:end])
        element = "".join(self._parts)
        self._parts = []
        self._depth = 0
        self._state = _State.AFTER
        return element

    def feed(self, text: str) -> Iterator[str]:
        i, n = 0, len(text)
        while i < n:
            if self._state == _State.ELEMENT:
                end, complete = self._scan(text, i)
                if not complete:
                    self._parts.append(text[i:])
                    return
                yield self._emit(text, i, end)
                i = end
                continue

            ch = text[i]
            if ch in _WHITESPACE:
                i += 1
                continue

            if self._state == _State.START:
                if ch != "[":
                    raise self._fail("payload must be a JSON array")
                self._state = _State.FIRST
            elif self._state in (_State.FIRST, _State.NEXT):
                if ch == "]" and self._state == _State.FIRST:
                    self._state = _State.DONE
                elif ch in ",]":
                    raise self._fail(f"unexpected {ch!r} where an array element was expected")
                else:
                    self.position += 1
                    self._state = _State.ELEMENT
                    continue
            elif self._state == _State.AFTER:
                if ch == ",":
                    self._state = _State.NEXT
                elif ch == "]":
                    self._state = _State.DONE
                else:
                    raise self._fail(f"unexpected {ch!r} after array element")
            else:
                raise self._fail("unexpected data after the end of the array")
            i += 1

    def _scan(self, text: str, i: int):
        """Returns (end, complete): end is the exclusive end of the element when complete."""
        n = len(text)
        while i < n:
            ch = text[i]
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
                    if self._depth == 0:
                        return i + 1, True
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                if self._depth == 0:
                    return i, True
                self._depth -= 1
                if self._depth == 0:
                    return i + 1, True
            elif self._depth == 0 and (ch == "," or ch in _WHITESPACE):
                return i, True
            i += 1
        return n, False

    def close(self) -> None:
        if self._state == _State.DONE:
            return
        if self._state == _State.START:
            raise FramingError("payload is empty", 1)
        raise self._fail("payload ended before the array was closed")


@dataclass
class ImportResult:
    entity: str
    imported: int


def _decode_element(raw: str, position: int, imported: int) -> dict:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedPayload(
            f"Element {position} is not valid JSON: {e.msg}",
            imported=imported,
            position=position,
        ) from e
    if not isinstance(value, dict):
        raise MalformedPayload(
            f"Element {position} must be an object, got {type(value).__name__}",
            imported=imported,
            position=position,
        )
    return value


async def import_records(
    catalog: Catalog,
    store: RecordStore,
    entity_name: str,
    chunks: AsyncIterable[bytes],
) -> AsyncIterator[int]:
    """Persist every element of the streamed array; yields the running count after each insert."""
    entity = lookup_entity(catalog, entity_name)
    framer = ArrayFramer()
    decoder = codecs.getincrementaldecoder("utf-8-sig")()
    imported = 0

    async def persist(raw: str) -> int:
        position = framer.position
        record = _decode_element(raw, position, imported)
        try:
            await store.insert(entity.name, record)
        except Exception as e:
            raise PersistFailure(position=position, imported=imported, cause=e) from e
        record_imported()
        return imported + 1

    def frame(text: str) -> Iterator[str]:
        try:
            yield from framer.feed(text)
        except FramingError as e:
            raise MalformedPayload(str(e), imported=imported, position=e.position) from e

    source = chunks.__aiter__()
    while True:
        try:
            chunk = await source.__anext__()
        except StopAsyncIteration:
            break
        except INPUT_CLOSED_ERRORS as e:
            raise InputClosed(imported=imported, position=framer.pending_position) from e

        try:
            text = decoder.decode(chunk)
        except UnicodeDecodeError as e:
            raise MalformedPayload(
                "Payload is not valid UTF-8", imported=imported, position=max(framer.position, 1)
            ) from e

        for raw in frame(text):
            imported = await persist(raw)
            yield imported

    try:
        tail = decoder.decode(b"", final=True)
    except UnicodeDecodeError as e:
        raise MalformedPayload(
            "Payload is not valid UTF-8", imported=imported, position=max(framer.position, 1)
        ) from e
    for raw in frame(tail):
        imported = await persist(raw)
        yield imported

    try:
        framer.close()
    except FramingError as e:
        raise MalformedPayload(str(e), imported=imported, position=e.position) from e


async def import_stream(
    catalog: Catalog,
    store: RecordStore,
    entity_name: str,
    chunks: AsyncIterable[bytes],
    *,
    on_progress: Optional[Callable[[int], Any]] = None,
) -> ImportResult:
    entity = lookup_entity(catalog, entity_name)
    imported = 0
    try:
        async for imported in import_records(catalog, store, entity.name, chunks):
            if on_progress is not None:
                on_progress(imported)
    except ImportFailure as e:
        log.warning(
            "Import into %s stopped: %s (position=%s imported=%d)",
            entity.name,
            e.message,
            e.position,
            e.imported,
        )
        record_failure(e.kind)
        raise

    log.info("Imported %d records into %s", imported, entity.name)
    return ImportResult(entity=entity.name, imported=imported)
