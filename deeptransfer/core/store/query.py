"""Query construction.

Turns a projection plan (or a flat column list) into plain query objects. The
plan says *what* to read; stores only ever see these queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from deeptransfer.core.transfer.plan import PlanNode, ProjectionPlan, TerminalEdge, TerminalReason


@dataclass(frozen=True)
class KeyFilter:
    field: str
    keys: Tuple[Any, ...]

    def matches(self, value: Any) -> bool:
        # Keys arrive as JSON strings from HTTP callers; stored keys may be numeric.
        return value in self.keys or str(value) in {str(k) for k in self.keys}


@dataclass(frozen=True)
class DeepQuery:
    entity: str
    fields: Optional[Tuple[str, ...]]  # None => opaque wildcard (whatever the store holds, one level)
    expand: Tuple[Tuple[str, "DeepQuery"], ...] = ()
    where: Optional[KeyFilter] = None
    locale: Optional[str] = None  # applies to the whole tree

    def to_columns(self) -> List[Any]:
        """Column-list rendering (``['*', {'texts': ['*']}]``) used for logging and inspection."""
        cols: List[Any] = ["*"]
        for name, sub in self.expand:
            cols.append({name: sub.to_columns()})
        return cols


@dataclass(frozen=True)
class FlatQuery:
    entity: str
    columns: Tuple[str, ...]
    where: Optional[KeyFilter] = None
    locale: Optional[str] = None


def _terminal_query(edge: TerminalEdge) -> DeepQuery:
    if edge.reason == TerminalReason.DEPTH_EXCEEDED and edge.entity is not None:
        return DeepQuery(entity=edge.entity.name, fields=tuple(edge.entity.stored_fields()))
    return DeepQuery(entity=edge.target, fields=None)


def _node_query(node: PlanNode) -> DeepQuery:
    expand = []
    for name, child in node.edges.items():
        if isinstance(child, PlanNode):
            expand.append((name, _node_query(child)))
        else:
            expand.append((name, _terminal_query(child)))
    return DeepQuery(
        entity=node.entity.name,
        fields=tuple(node.entity.stored_fields()),
        expand=tuple(expand),
    )


def deep_query(plan: ProjectionPlan, keys: Iterable[Any], *, locale: Optional[str] = None) -> DeepQuery:
    q = _node_query(plan.root)
    where = KeyFilter(field=plan.entity.key_field, keys=tuple(keys))
    return DeepQuery(entity=q.entity, fields=q.fields, expand=q.expand, where=where, locale=locale or None)


def flat_query(
    entity: str,
    key_field: str,
    columns: Iterable[str],
    keys: Iterable[Any],
    *,
    locale: Optional[str] = None,
) -> FlatQuery:
    return FlatQuery(
        entity=entity,
        columns=tuple(columns),
        where=KeyFilter(field=key_field, keys=tuple(keys)),
        locale=locale or None,
    )
