import pytest

from deeptransfer.core.transfer.errors import UnknownEntity
from deeptransfer.core.transfer.plan import PlanNode, TerminalEdge, TerminalReason
from deeptransfer.core.transfer.resolver import (
    DEFAULT_STRATEGIES,
    ResolutionContext,
    exact_match,
    owner_namespace,
    resolve,
    resolve_target,
    shared_namespace,
    shared_root_namespace,
    strip_namespace,
)

from helpers import make_catalog


def _comp(name, target):
    return {"name": name, "kind": "composition", "target": target}


KEY = {"name": "ID", "key": True}


@pytest.fixture()
def layered():
    return make_catalog(
        {
            "corp.sales.Orders": {"elements": [KEY, _comp("shipments", "corp.sales.logistics.Shipments")]},
            "corp.sales.logistics.Shipments": {"elements": [KEY, _comp("lines", "Lines")]},
            "corp.sales.Lines": {"elements": [KEY]},
            "corp.sales.logistics.Lines": {"elements": [KEY]},
            "corp.billing.Lines": {"elements": [KEY]},
        }
    )


def test_strategies_are_tried_in_documented_order():
    assert [s.__name__ for s in DEFAULT_STRATEGIES] == [
        "exact_match",
        "strip_namespace",
        "shared_root_namespace",
        "owner_namespace",
    ]


def test_short_target_resolves_via_strip_namespace_to_same_descriptor():
    cat = make_catalog(
        {
            "a.b.Foo": {"elements": [KEY]},
            "a.b.Bar": {"elements": [KEY, _comp("foos", "Foo")]},
        }
    )
    plan = resolve(cat, "a.b.Bar")
    node = plan.root.edges["foos"]
    assert isinstance(node, PlanNode)
    assert node.resolved_by == "strip_namespace"
    assert node.entity is resolve(cat, "a.b.Foo").entity


def test_namespaced_target_in_other_namespace_falls_back_to_short_name():
    cat = make_catalog({"a.b.Foo": {"elements": [KEY]}})
    ctx = ResolutionContext(root="x.Root", owner="x.Root")
    assert exact_match(cat, "legacy.Foo", ctx) is None
    assert strip_namespace(cat, "legacy.Foo", ctx).name == "a.b.Foo"


def test_shared_namespace():
    assert shared_namespace("corp.sales.Orders", "corp.sales.logistics.Shipments") == "corp.sales"
    assert shared_namespace("a.X", "b.Y") == ""
    assert shared_namespace("X", "a.Y") == ""


def test_shared_root_namespace_wins_over_owner_namespace(layered):
    plan = resolve(layered, "corp.sales.Orders")
    shipments = plan.root.edges["shipments"]
    assert shipments.resolved_by == "exact_match"
    lines = shipments.edges["lines"]
    assert lines.entity.name == "corp.sales.Lines"
    assert lines.resolved_by == "shared_root_namespace"


def test_owner_namespace_used_when_root_shares_nothing():
    cat = make_catalog(
        {
            "other.Orders": {"elements": [KEY, _comp("shipments", "corp.logistics.Shipments")]},
            "corp.logistics.Shipments": {"elements": [KEY, _comp("lines", "Lines")]},
            "corp.logistics.Lines": {"elements": [KEY]},
            "x.Lines": {"elements": [KEY]},
        }
    )
    ctx = ResolutionContext(root="other.Orders", owner="corp.logistics.Shipments")
    assert shared_root_namespace(cat, "Lines", ctx) is None
    assert owner_namespace(cat, "Lines", ctx).name == "corp.logistics.Lines"

    hit = resolve_target(cat, "Lines", ctx)
    assert hit.strategy == "owner_namespace"


def test_unresolved_edge_becomes_terminal_with_warning(caplog):
    cat = make_catalog({"a.Root": {"elements": [KEY, _comp("ghosts", "nowhere.Ghosts"), _comp("me", "Root")]}})
    with caplog.at_level("WARNING", logger="transfer.resolver"):
        plan = resolve(cat, "a.Root", max_depth=2)

    ghosts = plan.root.edges["ghosts"]
    assert isinstance(ghosts, TerminalEdge)
    assert ghosts.reason == TerminalReason.UNRESOLVED
    assert ghosts.entity is None
    # Recorded once even though the edge appears at every level
    assert len(plan.warnings) == 1
    assert "nowhere.Ghosts" in plan.warnings[0].message
    assert any("nowhere.Ghosts" in r.getMessage() for r in caplog.records)


def test_self_composition_terminates_within_depth(catalog):
    plan = resolve(catalog, "my.bookshop.Genres")
    assert plan.depth() == 5
    assert len(list(plan.iter_nodes())) == 6
    terminals = list(plan.iter_terminals())
    assert len(terminals) == 1
    assert terminals[0].reason == TerminalReason.DEPTH_EXCEEDED
    assert terminals[0].entity.name == "my.bookshop.Genres"


@pytest.mark.parametrize("max_depth", [0, 1, 3, 7])
def test_mutual_composition_never_exceeds_max_depth(max_depth):
    cat = make_catalog(
        {
            "n.A": {"elements": [KEY, _comp("bs", "B"), _comp("self", "n.A")]},
            "n.B": {"elements": [KEY, _comp("as_", "A")]},
        }
    )
    plan = resolve(cat, "n.A", max_depth=max_depth)
    assert plan.depth() <= max_depth
    assert all(n.depth <= max_depth for n in plan.iter_nodes())
    assert all(t.reason == TerminalReason.DEPTH_EXCEEDED for t in plan.iter_terminals())


def test_depth_zero_keeps_edges_as_terminals(catalog):
    plan = resolve(catalog, "my.bookshop.Books", max_depth=0)
    assert set(plan.root.edges) == {"texts", "chapters"}
    assert all(isinstance(e, TerminalEdge) for e in plan.root.edges.values())


def test_resolve_is_idempotent(catalog):
    assert resolve(catalog, "my.bookshop.Books") == resolve(catalog, "my.bookshop.Books")


def test_root_accepts_short_name(catalog):
    plan = resolve(catalog, "Books")
    assert plan.entity.name == "my.bookshop.Books"
    chapters = plan.root.edges["chapters"]
    assert chapters.edges["sections"].entity.name == "my.bookshop.Sections"


def test_unknown_root_raises(catalog):
    with pytest.raises(UnknownEntity) as ei:
        resolve(catalog, "my.bookshop.Nope")
    assert ei.value.kind == "UnknownEntity"


@pytest.mark.parametrize("bad", [-1, "3", True, 1.5])
def test_invalid_max_depth(catalog, bad):
    with pytest.raises(ValueError):
        resolve(catalog, "Books", max_depth=bad)


def test_custom_strategy_chain(layered):
    plan = resolve(layered, "corp.sales.Orders", strategies=(exact_match,))
    lines = plan.root.edges["shipments"].edges["lines"]
    assert isinstance(lines, TerminalEdge)
    assert lines.reason == TerminalReason.UNRESOLVED


def test_plan_to_dict(catalog):
    d = resolve(catalog, "Books", max_depth=1).to_dict()
    assert d["entity"] == "my.bookshop.Books"
    assert d["max_depth"] == 1
    chapters = d["root"]["children"]["chapters"]
    assert chapters["depth"] == 1
    assert chapters["children"]["sections"]["terminal"] == "depth_exceeded"
