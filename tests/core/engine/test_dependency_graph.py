# tests/core/engine/test_dependency_graph.py
"""
Testes do construtor do DAG de dependências.

Os testes asseguram que:
- ready sets respeitam dependências e desempatam por (type, name)
- ciclos são reportados com todos os membros, em ordem
- depends_on e hint a recursos não declarados são erros de configuração
- a ordem de destroy é a topológica reversa

Invariantes:
    - A mesma entrada sempre produz os mesmos ready sets
    - Nenhum recurso aparece antes de suas dependências
"""

import pytest

from atlas_infra.core.exceptions import (
    CyclicDependencyError,
    DuplicateIdentityError,
    UnknownDependencyError,
)
from atlas_infra.core.engine.graph import build_graph, find_cycle, reverse_ready_sets
from atlas_infra.core.resources.types import ResourceId

from tests._helpers import ref, res


def rid(text):
    return ResourceId.parse(text)


def test_ready_sets_layer_by_dependencies():
    graph = build_graph(
        [
            res("instance", "i1", subnet_id=ref("subnet.s1.id")),
            res("subnet", "s1", network_id=ref("network.n1.id")),
            res("subnet", "s2", network_id=ref("network.n1.id")),
            res("network", "n1"),
            res("dns", "zone"),
        ]
    )

    assert graph.ready_sets() == [
        [rid("dns.zone"), rid("network.n1")],
        [rid("subnet.s1"), rid("subnet.s2")],
        [rid("instance.i1")],
    ]
    assert graph.dependencies_of(rid("subnet.s1")) == frozenset({rid("network.n1")})
    assert graph.dependents_of(rid("network.n1")) == {rid("subnet.s1"), rid("subnet.s2"), rid("instance.i1")}


def test_ready_sets_are_independent_of_declaration_order():
    records = [res("b", "x"), res("a", "y"), res("a", "x", dep=ref("b.x.id"))]
    first = build_graph(records).ready_sets()
    second = build_graph(list(reversed(records))).ready_sets()
    assert first == second == [[rid("a.y"), rid("b.x")], [rid("a.x")]]


def test_cycle_reports_every_member_in_order():
    """
    Ciclo a → b → c → a via referências: a mensagem deve permitir ao
    operador localizar o ciclo sem reconstruí-lo manualmente.
    """
    records = [
        res("t", "a", x=ref("t.b.id")),
        res("t", "b", x=ref("t.c.id")),
        res("t", "c", x=ref("t.a.id")),
        res("t", "free"),
    ]
    with pytest.raises(CyclicDependencyError) as ei:
        build_graph(records)

    assert ei.value.cycle == ["t.a", "t.b", "t.c"]
    assert "t.a -> t.b -> t.c -> t.a" in ei.value.message


def test_self_reference_is_a_cycle():
    with pytest.raises(CyclicDependencyError) as ei:
        build_graph([res("t", "a", x=ref("t.a.other"))])
    assert ei.value.cycle == ["t.a"]


def test_cycle_through_depends_on():
    with pytest.raises(CyclicDependencyError):
        build_graph([res("t", "a", depends_on=["t.b"]), res("t", "b", x=ref("t.a.id"))])


def test_find_cycle_on_acyclic_graph():
    assert find_cycle({rid("t.a"): {rid("t.b")}, rid("t.b"): set()}) is None


def test_unknown_depends_on():
    with pytest.raises(UnknownDependencyError) as ei:
        build_graph([res("t", "a", depends_on=["t.ghost"])])
    assert ei.value.details == {"consumer": "t.a", "target": "t.ghost", "source": "depends_on"}


def test_duplicate_identity():
    with pytest.raises(DuplicateIdentityError):
        build_graph([res("t", "a"), res("t", "a")])


def test_hint_chains_entries_in_order():
    records = [res("t", "a"), res("t", "b"), res("t", "c")]
    graph = build_graph(records, hint=[rid("t.c"), rid("t.a")])
    assert graph.ready_sets() == [[rid("t.b"), rid("t.c")], [rid("t.a")]]

    with pytest.raises(UnknownDependencyError):
        build_graph(records, hint=[rid("t.zzz")])


def test_hint_contradicting_references_is_a_cycle():
    records = [res("t", "a"), res("t", "b", x=ref("t.a.id"))]
    with pytest.raises(CyclicDependencyError):
        build_graph(records, hint=[rid("t.b"), rid("t.a")])


def test_reverse_ready_sets_put_dependents_first():
    deps = {
        rid("network.n1"): set(),
        rid("subnet.s1"): {rid("network.n1")},
        rid("instance.i1"): {rid("subnet.s1"), rid("network.kept")},
    }
    assert reverse_ready_sets(deps) == [[rid("instance.i1")], [rid("subnet.s1")], [rid("network.n1")]]
