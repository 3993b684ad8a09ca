import asyncio
import json

import pytest

from deeptransfer.core.observability.metrics import snapshot_named
from deeptransfer.core.store.base import StoreConflictError, StoreConstraintError
from deeptransfer.core.store.memory import InMemoryRecordStore
from deeptransfer.core.transfer.errors import InputClosed, MalformedPayload, PersistFailure, UnknownEntity
from deeptransfer.core.transfer.exporter import export
from deeptransfer.core.transfer.importer import ArrayFramer, FramingError, import_records, import_stream

from helpers import book, chunked, drain, from_chunks, make_catalog, run

BOOKS = "my.bookshop.Books"


def _payload(records) -> bytes:
    return json.dumps(records, ensure_ascii=False).encode("utf-8")


def _import(catalog, store, data: bytes, size: int = 64, **kw):
    return run(import_stream(catalog, store, BOOKS, chunked(data, size), **kw))


def test_imports_every_element(catalog, store):
    data = _payload([book(f"b-{i}", f"Title {i}") for i in range(1, 4)])
    result = _import(catalog, store, data)

    assert result.imported == 3
    assert result.entity == BOOKS
    assert store.count(BOOKS) == 3
    stored = store.get(BOOKS, "b-2")
    assert stored["chapters"][0]["sections"][0]["ID"] == "b-2-c1-s1"
    assert snapshot_named()["imported"] == 3


def test_byte_at_a_time_with_multibyte_text(catalog, store):
    records = [book("b-1", 'Müller says "}] ,{" \\ ok'), book("b-2", "日本語")]
    result = _import(catalog, store, _payload(records), size=1)
    assert result.imported == 2
    assert store.get(BOOKS, "b-1")["title"] == 'Müller says "}] ,{" \\ ok'
    assert store.get(BOOKS, "b-2")["title"] == "日本語"


def test_empty_array_imports_nothing(catalog, store):
    assert _import(catalog, store, b"  [ \n ]  ").imported == 0
    assert store.count(BOOKS) == 0


def test_utf8_bom_is_accepted(catalog, store):
    data = b"\xef\xbb\xbf" + _payload([book("b-1", "Dune")])
    assert _import(catalog, store, data, size=2).imported == 1


def test_malformed_fifth_element_keeps_first_four(catalog, store):
    good = [json.dumps(book(f"b-{i}", f"T{i}")) for i in range(1, 11)]
    good[4] = '{"ID": "b-5", "title": }'
    data = ("[" + ",".join(good) + "]").encode("utf-8")

    with pytest.raises(MalformedPayload) as ei:
        _import(catalog, store, data, size=17)

    assert ei.value.imported == 4
    assert ei.value.position == 5
    assert store.count(BOOKS) == 4
    assert store.get(BOOKS, "b-6") is None
    assert snapshot_named()["failure_MalformedPayload"] == 1


def test_constraint_violation_on_fifth_element(catalog, store):
    records = [book(f"b-{i}", f"T{i}") for i in range(1, 11)]
    records[4]["title"] = None

    with pytest.raises(PersistFailure) as ei:
        _import(catalog, store, _payload(records))

    err = ei.value
    assert err.imported == 4
    assert err.position == 5
    assert isinstance(err.cause, StoreConstraintError)
    assert err.to_dict()["cause"] == "StoreConstraintError"
    assert store.count(BOOKS) == 4


def test_duplicate_key_is_a_persist_failure(catalog, store):
    data = _payload([book("b-1", "A"), book("b-1", "B")])
    with pytest.raises(PersistFailure) as ei:
        _import(catalog, store, data)
    assert isinstance(ei.value.cause, StoreConflictError)
    assert ei.value.imported == 1
    assert store.get(BOOKS, "b-1")["title"] == "A"


@pytest.mark.parametrize(
    "data, imported",
    [
        (b"", 0),
        (b"   ", 0),
        (b'{"ID": "b-1"}', 0),
        (b"[1]", 0),
        (b'["b-1"]', 0),
        (b"[,]", 0),
        (b"[]x", 0),
        (b'[{"ID": "b-1", "title": "A"}', 1),
        (b'[{"ID": "b-1", "title": "A"},]', 1),
        (b'[{"ID": "b-1", "title": "A"} {"ID": "b-2"}]', 1),
        (b"[\xff]", 0),
    ],
)
def test_malformed_payloads(catalog, store, data, imported):
    with pytest.raises(MalformedPayload) as ei:
        _import(catalog, store, data, size=4)
    assert ei.value.imported == imported
    assert ei.value.position is not None
    assert store.count(BOOKS) == imported


def test_empty_payload_reports_first_position(catalog, store):
    with pytest.raises(MalformedPayload) as ei:
        _import(catalog, store, b"")
    assert ei.value.position == 1


def test_closed_input_reports_persisted_count(catalog, store):
    async def source():
        yield b"[" + json.dumps(book("b-1", "A")).encode() + b","
        yield json.dumps(book("b-2", "B")).encode() + b","
        raise ConnectionResetError("peer went away")

    with pytest.raises(InputClosed) as ei:
        run(import_stream(catalog, store, BOOKS, source()))

    assert ei.value.imported == 2
    # both elements and the following comma were read: the third is next
    assert ei.value.position == 3
    assert store.count(BOOKS) == 2
    assert snapshot_named()["failure_InputClosed"] == 1


def test_unknown_entity_is_rejected_before_reading(catalog, store):
    consumed = []

    async def source():
        consumed.append(1)
        yield b"[]"

    with pytest.raises(UnknownEntity):
        run(import_stream(catalog, store, "my.bookshop.Nope", source()))
    assert consumed == []


def test_progress_callback_sees_running_count(catalog, store):
    seen = []
    data = _payload([book(f"b-{i}", "T") for i in range(3)])
    _import(catalog, store, data, on_progress=seen.append)
    assert seen == [1, 2, 3]


def test_import_records_yields_after_each_insert(catalog, store):
    async def go():
        counts = []
        async for n in import_records(catalog, store, BOOKS, from_chunks([_payload([book("b-1", "A"), book("b-2", "B")])])):
            counts.append((n, store.count(BOOKS)))
        return counts

    assert run(go()) == [(1, 1), (2, 2)]


def test_large_payload_is_consumed_incrementally():
    cat = make_catalog({"t.Rows": {"elements": [{"name": "ID", "key": True}, {"name": "name"}]}})
    data = _payload([{"ID": f"r-{i}", "name": f"row {i}"} for i in range(10_000)])
    chunk_size = 256
    total_chunks = -(-len(data) // chunk_size)

    consumed = {"chunks": 0}
    seen_at_insert = []

    async def source():
        for i in range(0, len(data), chunk_size):
            consumed["chunks"] += 1
            yield data[i : i + chunk_size]

    class SlowStore(InMemoryRecordStore):
        async def insert(self, entity, record):
            seen_at_insert.append(consumed["chunks"])
            await asyncio.sleep(0)
            await super().insert(entity, record)

    store = SlowStore(cat)
    result = run(import_stream(cat, store, "t.Rows", source()))

    assert result.imported == 10_000
    assert store.count("t.Rows") == 10_000
    # Reading keeps pace with writing: the first record is stored long before the body ends.
    assert seen_at_insert[0] == 1
    assert seen_at_insert[5_000] < total_chunks
    assert seen_at_insert == sorted(seen_at_insert)


def test_export_then_import_round_trip(catalog, store):
    async def seed():
        for b in (book("b-1", 'Quote "me"'), book("b-2", "Plain", texts=[])):
            await store.insert(BOOKS, b)

    run(seed())
    exported = run(drain(export(catalog, store, BOOKS, ["b-1", "b-2"]).body))

    target = InMemoryRecordStore(catalog)
    result = run(import_stream(catalog, target, BOOKS, chunked(exported, 7)))
    assert result.imported == 2

    again = run(drain(export(catalog, target, BOOKS, ["b-1", "b-2"]).body))
    assert json.loads(again) == json.loads(exported)


def test_framer_yields_elements_as_they_complete():
    framer = ArrayFramer()
    assert list(framer.feed('[{"a": [1, 2]}, "x')) == ['{"a": [1, 2]}']
    assert framer.position == 2
    assert list(framer.feed('", 3 ]')) == ['"x"', "3"]
    assert framer.done
    framer.close()


def test_framer_rejects_missing_element():
    framer = ArrayFramer()
    with pytest.raises(FramingError) as ei:
        list(framer.feed("[1,,2]"))
    assert ei.value.position == 2


def test_closed_input_inside_an_element_reports_that_element(catalog, store):
    async def source():
        yield b"[" + json.dumps(book("b-1", "A")).encode() + b', {"ID": "b-2", "ti'
        raise EOFError()

    with pytest.raises(InputClosed) as ei:
        run(import_stream(catalog, store, BOOKS, source()))
    assert ei.value.imported == 1
    assert ei.value.position == 2


def test_closed_input_before_any_byte(catalog, store):
    async def source():
        raise ConnectionAbortedError()
        yield b""  # pragma: no cover

    with pytest.raises(InputClosed) as ei:
        run(import_stream(catalog, store, BOOKS, source()))
    assert ei.value.imported == 0
    assert ei.value.position == 1
