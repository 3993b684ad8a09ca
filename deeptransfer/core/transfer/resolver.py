"""Composition graph resolver.

Builds a depth-bounded ``ProjectionPlan`` for a root entity. Composition
targets are resolved against the catalog by an ordered chain of strategies;
the first strategy that returns a descriptor wins.

Resolution order:
  1) exact_match            declared target as written
  2) strip_namespace        short name only (must be unambiguous in the catalog)
  3) shared_root_namespace  namespace shared by root and owner + short name
  4) owner_namespace        owner's own namespace + short name

A composition whose target resolves with none of them stays in the plan as an
unresolved terminal and is reported as a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from deeptransfer.core.catalog.models import (
    NAMESPACE_SEPARATOR,
    Catalog,
    EntityDescriptor,
    namespace_of,
    short_name,
)

from .errors import UnknownEntity
from .plan import (
    DEFAULT_MAX_DEPTH,
    PlanEdge,
    PlanNode,
    ProjectionPlan,
    ResolutionWarning,
    TerminalEdge,
    TerminalReason,
)

log = logging.getLogger("transfer.resolver")


@dataclass(frozen=True)
class ResolutionContext:
    root: str
    owner: str


@dataclass(frozen=True)
class TargetResolution:
    descriptor: EntityDescriptor
    strategy: str


Strategy = Callable[[Catalog, str, ResolutionContext], Optional[EntityDescriptor]]


def exact_match(catalog: Catalog, target: str, ctx: ResolutionContext) -> Optional[EntityDescriptor]:
    return catalog.get(target)


def strip_namespace(catalog: Catalog, target: str, ctx: ResolutionContext) -> Optional[EntityDescriptor]:
    return catalog.descriptor_for(short_name(target))


def shared_namespace(a: str, b: str) -> str:
    """Longest common dotted prefix of the namespaces of ``a`` and ``b``."""
    left = [p for p in namespace_of(a).split(NAMESPACE_SEPARATOR) if p]
    right = [p for p in namespace_of(b).split(NAMESPACE_SEPARATOR) if p]
    common: List[str] = []
    for x, y in zip(left, right):
        if x != y:
            break
        common.append(x)
    return NAMESPACE_SEPARATOR.join(common)


def shared_root_namespace(catalog: Catalog, target: str, ctx: ResolutionContext) -> Optional[EntityDescriptor]:
    ns = shared_namespace(ctx.root, ctx.owner)
    if not ns:
        return None
    return catalog.get(f"{ns}{NAMESPACE_SEPARATOR}{short_name(target)}")


def owner_namespace(catalog: Catalog, target: str, ctx: ResolutionContext) -> Optional[EntityDescriptor]:
    ns = namespace_of(ctx.owner)
    if not ns:
        return None
    return catalog.get(f"{ns}{NAMESPACE_SEPARATOR}{short_name(target)}")


DEFAULT_STRATEGIES: Sequence[Strategy] = (
    exact_match,
    strip_namespace,
    shared_root_namespace,
    owner_namespace,
)


def resolve_target(
    catalog: Catalog,
    target: str,
    ctx: ResolutionContext,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> Optional[TargetResolution]:
    if not target:
        return None
    for strategy in strategies:
        hit = strategy(catalog, target, ctx)
        if hit is not None:
            return TargetResolution(descriptor=hit, strategy=getattr(strategy, "__name__", repr(strategy)))
    return None


def lookup_entity(
    catalog: Catalog,
    entity_name: str,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> EntityDescriptor:
    """Root lookup: raises UnknownEntity when no strategy finds the entity."""
    hit = resolve_target(catalog, entity_name, ResolutionContext(root=entity_name, owner=entity_name), strategies)
    if hit is None:
        raise UnknownEntity(entity_name)
    return hit.descriptor


def resolve(
    catalog: Catalog,
    entity_name: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> ProjectionPlan:
    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
        raise ValueError(f"max_depth must be a non-negative integer, got {max_depth!r}")

    root = lookup_entity(catalog, entity_name, strategies)
    warnings: Dict[tuple, ResolutionWarning] = {}

    def build(entity: EntityDescriptor, depth: int, resolved_by: Optional[str]) -> PlanNode:
        ctx = ResolutionContext(root=root.name, owner=entity.name)
        edges: Dict[str, PlanEdge] = {}

        for edge in entity.compositions:
            hit = resolve_target(catalog, edge.target, ctx, strategies)
            if hit is None:
                key = (entity.name, edge.name)
                if key not in warnings:
                    warnings[key] = ResolutionWarning(owner=entity.name, edge=edge.name, target=edge.target)
                    log.warning("Unresolved composition target %r on %s.%s", edge.target, entity.name, edge.name)
                edges[edge.name] = TerminalEdge(name=edge.name, target=edge.target, reason=TerminalReason.UNRESOLVED)
                continue

            if depth + 1 > max_depth:
                edges[edge.name] = TerminalEdge(
                    name=edge.name,
                    target=edge.target,
                    reason=TerminalReason.DEPTH_EXCEEDED,
                    entity=hit.descriptor,
                )
                continue

            edges[edge.name] = build(hit.descriptor, depth + 1, hit.strategy)

        return PlanNode(entity=entity, depth=depth, edges=edges, resolved_by=resolved_by)

    plan_root = build(root, 0, None)
    return ProjectionPlan(root=plan_root, max_depth=max_depth, warnings=tuple(warnings.values()))
