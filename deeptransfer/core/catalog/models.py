from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


NAMESPACE_SEPARATOR = "."

# Audit fields never exported as flat columns
TECHNICAL_FIELDS: Tuple[str, ...] = ("_createdAt", "_createdBy", "_modifiedAt", "_modifiedBy")


class ElementKind(str, Enum):
    SCALAR = "scalar"
    ASSOCIATION = "association"
    COMPOSITION = "composition"
    STRUCTURED = "structured"


def short_name(name: str) -> str:
    return name.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


def namespace_of(name: str) -> str:
    if NAMESPACE_SEPARATOR not in name:
        return ""
    return name.rsplit(NAMESPACE_SEPARATOR, 1)[0]


@dataclass(frozen=True)
class ElementDescriptor:
    name: str
    kind: ElementKind = ElementKind.SCALAR
    type: str = "String"
    target: Optional[str] = None
    key: bool = False
    virtual: bool = False
    technical: bool = False
    not_null: bool = False

    @property
    def is_composition(self) -> bool:
        return self.kind == ElementKind.COMPOSITION

    @property
    def is_association(self) -> bool:
        return self.kind == ElementKind.ASSOCIATION

    @property
    def is_structured(self) -> bool:
        return self.kind == ElementKind.STRUCTURED


@dataclass(frozen=True)
class CompositionEdge:
    name: str
    target: str


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    elements: Tuple[ElementDescriptor, ...] = ()

    @property
    def short_name(self) -> str:
        return short_name(self.name)

    @property
    def namespace(self) -> str:
        return namespace_of(self.name)

    @property
    def keys(self) -> List[str]:
        return [e.name for e in self.elements if e.key]

    @property
    def key_field(self) -> str:
        keys = self.keys
        return keys[0] if keys else "ID"

    @property
    def compositions(self) -> List[CompositionEdge]:
        return [
            CompositionEdge(name=e.name, target=e.target or "")
            for e in self.elements
            if e.is_composition
        ]

    def element(self, name: str) -> Optional[ElementDescriptor]:
        for e in self.elements:
            if e.name == name:
                return e
        return None

    def stored_fields(self) -> List[str]:
        """Names of everything a wildcard read returns (compositions and virtual elements excluded)."""
        return [e.name for e in self.elements if not e.is_composition and not e.virtual]


class Catalog:
    """Immutable registry of entity descriptors.

    Lookups accept fully qualified names and, when exactly one entity carries
    it, a bare short name.
    """

    def __init__(self, descriptors: Iterable[EntityDescriptor]):
        by_name: Dict[str, EntityDescriptor] = {}
        by_short: Dict[str, List[str]] = {}
        for d in descriptors:
            if d.name in by_name:
                raise ValueError(f"duplicate entity: {d.name}")
            by_name[d.name] = d
            by_short.setdefault(short_name(d.name), []).append(d.name)

        self._by_name: Mapping[str, EntityDescriptor] = MappingProxyType(by_name)
        self._by_short: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in by_short.items()}
        )

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.descriptor_for(name) is not None

    def names(self) -> List[str]:
        return sorted(self._by_name.keys())

    def get(self, name: str) -> Optional[EntityDescriptor]:
        """Exact (fully qualified) lookup only."""
        return self._by_name.get(name)

    def descriptor_for(self, name: str) -> Optional[EntityDescriptor]:
        if not name:
            return None
        hit = self._by_name.get(name)
        if hit is not None:
            return hit
        if NAMESPACE_SEPARATOR in name:
            return None
        candidates = self._by_short.get(name, ())
        if len(candidates) == 1:
            return self._by_name[candidates[0]]
        return None

    @staticmethod
    def short_name(name: str) -> str:
        return short_name(name)

    @staticmethod
    def namespace_of(name: str) -> str:
        return namespace_of(name)
