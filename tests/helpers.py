import asyncio
from typing import AsyncIterator, Iterable, List

from deeptransfer.core.catalog.loader import catalog_from_document


def run(coro):
    return asyncio.run(coro)


async def chunked(data: bytes, size: int = 64) -> AsyncIterator[bytes]:
    for i in range(0, len(data), size):
        yield data[i : i + size]


async def from_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for c in chunks:
        yield c


async def drain(body: AsyncIterator[bytes]) -> bytes:
    out: List[bytes] = []
    async for part in body:
        out.append(part)
    return b"".join(out)


def make_catalog(entities: dict):
    return catalog_from_document({"entities": entities})


def book(book_id: str, title: str, **extra) -> dict:
    rec = {
        "ID": book_id,
        "title": title,
        "descr": extra.pop("descr", None),
        "author_ID": extra.pop("author_ID", "a-1"),
        "stock": extra.pop("stock", 10),
        "texts": extra.pop("texts", [{"locale": "de", "title": f"{title} (de)", "descr": None}]),
        "chapters": extra.pop(
            "chapters",
            [
                {
                    "ID": f"{book_id}-c1",
                    "number": 1,
                    "title": "Opening",
                    "sections": [{"ID": f"{book_id}-c1-s1", "heading": "One", "body": "..."}],
                }
            ],
        ),
    }
    rec.update(extra)
    return rec
