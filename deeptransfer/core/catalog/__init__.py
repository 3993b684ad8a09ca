from .loader import CatalogLoadError, catalog_from_document, load_catalog, load_catalog_file
from .models import (
    Catalog,
    CompositionEdge,
    ElementDescriptor,
    ElementKind,
    EntityDescriptor,
    TECHNICAL_FIELDS,
    namespace_of,
    short_name,
)

__all__ = [
    "Catalog",
    "CatalogLoadError",
    "CompositionEdge",
    "ElementDescriptor",
    "ElementKind",
    "EntityDescriptor",
    "TECHNICAL_FIELDS",
    "catalog_from_document",
    "load_catalog",
    "load_catalog_file",
    "namespace_of",
    "short_name",
]
