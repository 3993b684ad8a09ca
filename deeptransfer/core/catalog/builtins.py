from __future__ import annotations

from .models import Catalog, ElementDescriptor as E, ElementKind, EntityDescriptor


def _audit() -> tuple:
    return (
        E(name="_createdAt", type="Timestamp", technical=True),
        E(name="_createdBy", type="String", technical=True),
        E(name="_modifiedAt", type="Timestamp", technical=True),
        E(name="_modifiedBy", type="String", technical=True),
    )


def builtin_entities() -> list[EntityDescriptor]:
    # Deterministic demo schema (bookshop). Deployments point TRANSFER_CATALOG_FILE at their own.
    return [
        EntityDescriptor(
            name="my.bookshop.Books",
            elements=(
                E(name="ID", type="UUID", key=True),
                E(name="title", type="String", not_null=True),
                E(name="descr", type="String"),
                E(name="author_ID", kind=ElementKind.ASSOCIATION, type="UUID", target="my.bookshop.Authors"),
                E(name="genre_ID", kind=ElementKind.ASSOCIATION, type="Integer", target="my.bookshop.Genres"),
                E(name="stock", type="Integer"),
                E(name="price", type="Decimal"),
                E(name="currency_code", type="String"),
                E(name="isbn", kind=ElementKind.STRUCTURED, type="my.bookshop.ISBN"),
                E(name="rating", type="Decimal", virtual=True),
                E(name="texts", kind=ElementKind.COMPOSITION, target="Books.texts"),
                E(name="chapters", kind=ElementKind.COMPOSITION, target="Chapters"),
            )
            + _audit(),
        ),
        EntityDescriptor(
            name="my.bookshop.Books.texts",
            elements=(
                E(name="locale", type="String", key=True),
                E(name="title", type="String"),
                E(name="descr", type="String"),
            ),
        ),
        EntityDescriptor(
            name="my.bookshop.Chapters",
            elements=(
                E(name="ID", type="UUID", key=True),
                E(name="number", type="Integer", not_null=True),
                E(name="title", type="String"),
                E(name="sections", kind=ElementKind.COMPOSITION, target="my.bookshop.Sections"),
            ),
        ),
        EntityDescriptor(
            name="my.bookshop.Sections",
            elements=(
                E(name="ID", type="UUID", key=True),
                E(name="heading", type="String"),
                E(name="body", type="LargeString"),
            ),
        ),
        EntityDescriptor(
            name="my.bookshop.Authors",
            elements=(
                E(name="ID", type="UUID", key=True),
                E(name="name", type="String", not_null=True),
                E(name="dateOfBirth", type="Date"),
                E(name="placeOfBirth", type="String"),
                E(name="books", kind=ElementKind.ASSOCIATION, target="my.bookshop.Books"),
            )
            + _audit(),
        ),
        EntityDescriptor(
            name="my.bookshop.Genres",
            elements=(
                E(name="ID", type="Integer", key=True),
                E(name="name", type="String", not_null=True),
                E(name="parent_ID", kind=ElementKind.ASSOCIATION, type="Integer", target="my.bookshop.Genres"),
                # self-composition: sub-genres own their own sub-genres
                E(name="children", kind=ElementKind.COMPOSITION, target="Genres"),
            ),
        ),
    ]


def builtin_catalog() -> Catalog:
    return Catalog(builtin_entities())
