from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from deeptransfer.core.catalog.models import EntityDescriptor


DEFAULT_MAX_DEPTH = 5


class TerminalReason(str, Enum):
    DEPTH_EXCEEDED = "depth_exceeded"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class TerminalEdge:
    """Edge that is read as a one-level wildcard instead of being expanded."""

    name: str
    target: str
    reason: TerminalReason
    entity: Optional[EntityDescriptor] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "terminal": self.reason.value,
            "target": self.target,
            "entity": self.entity.name if self.entity else None,
        }


@dataclass(frozen=True)
class PlanNode:
    entity: EntityDescriptor
    depth: int
    edges: Dict[str, "PlanEdge"] = field(default_factory=dict)
    resolved_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity.name,
            "depth": self.depth,
            "resolved_by": self.resolved_by,
            "children": {name: child.to_dict() for name, child in self.edges.items()},
        }


PlanEdge = Union[PlanNode, TerminalEdge]


@dataclass(frozen=True)
class ResolutionWarning:
    owner: str
    edge: str
    target: str

    @property
    def message(self) -> str:
        return f"composition {self.owner}.{self.edge} -> {self.target} could not be resolved"


@dataclass(frozen=True)
class ProjectionPlan:
    root: PlanNode
    max_depth: int
    warnings: Tuple[ResolutionWarning, ...] = ()

    @property
    def entity(self) -> EntityDescriptor:
        return self.root.entity

    def iter_nodes(self) -> Iterator[PlanNode]:
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(c for c in node.edges.values() if isinstance(c, PlanNode))

    def iter_terminals(self) -> Iterator[TerminalEdge]:
        for node in self.iter_nodes():
            for child in node.edges.values():
                if isinstance(child, TerminalEdge):
                    yield child

    def depth(self) -> int:
        return max(n.depth for n in self.iter_nodes())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity.name,
            "max_depth": self.max_depth,
            "depth": self.depth(),
            "root": self.root.to_dict(),
            "warnings": [w.message for w in self.warnings],
        }
