"""
Catalog loader.

Reads an entity catalog document (YAML or JSON) and turns it into an immutable
``Catalog``. The document is validated with pydantic before any descriptor is
built, so a broken file fails at start-up rather than mid-request.

Document format:
    entities:
      my.bookshop.Books:
        elements:
          - {name: ID, type: UUID, key: true}
          - {name: texts, kind: composition, target: Books.texts}

Environment variable:
    TRANSFER_CATALOG_FILE: path to the catalog document (optional).
    When unset the built-in bookshop catalog is used.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .builtins import builtin_catalog
from .models import Catalog, ElementDescriptor, ElementKind, EntityDescriptor

_log = logging.getLogger("transfer.catalog")


class CatalogLoadError(RuntimeError):
    pass


class ElementSpec(BaseModel):
    name: str
    kind: ElementKind = ElementKind.SCALAR
    type: str = "String"
    target: Optional[str] = None
    key: bool = False
    virtual: bool = False
    technical: bool = False
    not_null: bool = False

    @model_validator(mode="after")
    def _target_required_for_relations(self) -> "ElementSpec":
        if self.kind == ElementKind.COMPOSITION and not self.target:
            raise ValueError(f"composition '{self.name}' needs a target")
        return self


class EntitySpec(BaseModel):
    elements: List[ElementSpec] = Field(default_factory=list)


class CatalogDocument(BaseModel):
    entities: Dict[str, EntitySpec] = Field(default_factory=dict)


def catalog_from_document(doc: Dict[str, Any]) -> Catalog:
    try:
        parsed = CatalogDocument.model_validate(doc)
    except ValidationError as e:
        raise CatalogLoadError(f"invalid catalog document: {e}") from e

    descriptors = []
    for name, spec in parsed.entities.items():
        elements = tuple(ElementDescriptor(**el.model_dump()) for el in spec.elements)
        descriptors.append(EntityDescriptor(name=name, elements=elements))

    try:
        return Catalog(descriptors)
    except ValueError as e:
        raise CatalogLoadError(str(e)) from e


def load_catalog_file(path: Path) -> Catalog:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogLoadError(f"cannot read catalog file {path}: {e}") from e

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise CatalogLoadError(f"catalog file {path} is not valid JSON: {e}") from e
    else:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as e:
            raise CatalogLoadError(f"catalog file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise CatalogLoadError(f"catalog file {path} must be a mapping, got {type(data).__name__}")

    catalog = catalog_from_document(data)
    _log.info("Loaded %d entities from %s", len(catalog), path)
    return catalog


def load_catalog(path: Optional[Path] = None) -> Catalog:
    if path is None:
        return builtin_catalog()
    return load_catalog_file(path)
