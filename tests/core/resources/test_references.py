# tests/core/resources/test_references.py
"""
Testes da descoberta de arestas e da substituição de referências.

Os testes asseguram que:
- referências aninhadas (listas, mapas) geram arestas consumidor → produtor
- referências a recursos não declarados são erro de configuração com
  consumidor, caminho do atributo e alvo
- a substituição usa apenas valores realizados e falha localmente quando
  o atributo não existe
"""

import pytest

from atlas_infra.core.exceptions import MissingAttributeError, UnresolvedReferenceError
from atlas_infra.core.resources.references import (
    contains_reference,
    discover_edges,
    iter_references,
    resolve_reference,
    substitute,
)
from atlas_infra.core.resources.types import DependencyEdge, ResourceId, StateRecord

from tests._helpers import ref, res


N1 = ResourceId("network", "n1")
S1 = ResourceId("subnet", "s1")


def _realized(rid, attrs, pid="pid-1"):
    return StateRecord(id=rid, realized_attributes=attrs, provider_id=pid, applied_hash="h")


def test_iter_references_walks_nested_values():
    value = {"rules": [{"source": ref("network.n1.cidr")}, "static"], "peer": ref("subnet.s1.id")}
    found = list(iter_references(value))
    assert found == [
        (("peer",), ref("subnet.s1.id")),
        (("rules", 0, "source"), ref("network.n1.cidr")),
    ]


def test_discover_edges_deduplicates_per_pair():
    records = [
        res("network", "n1", cidr="10.0.0.0/16"),
        res("subnet", "s1", network_id=ref("network.n1.id"), cidr=ref("network.n1.cidr")),
    ]
    assert discover_edges(records) == [DependencyEdge(consumer=S1, producer=N1, source="reference")]


def test_unresolved_reference_names_consumer_path_and_target():
    records = [res("subnet", "s1", nested={"ids": [ref("network.missing.id")]})]
    with pytest.raises(UnresolvedReferenceError) as ei:
        discover_edges(records)

    err = ei.value
    assert err.consumer == "subnet.s1"
    assert err.attribute_path == "nested.ids.0"
    assert err.target == "network.missing"


def test_substitute_replaces_with_realized_values():
    realized = {N1: _realized(N1, {"cidr": "10.0.0.0/16", "zones": ["a", "b"]}, pid="network-1")}
    value = {"network_id": ref("network.n1.id"), "zone": ref("network.n1.zones.1"), "fixed": (1, 2)}

    out = substitute(value, realized, consumer=S1)
    assert out == {"network_id": "network-1", "zone": "b", "fixed": [1, 2]}
    assert not contains_reference(out)


def test_realized_id_attribute_wins_over_provider_id():
    realized = {N1: _realized(N1, {"id": "explicit"}, pid="network-1")}
    assert resolve_reference(ref("network.n1.id"), realized) == "explicit"


def test_missing_attribute_is_local_error():
    realized = {N1: _realized(N1, {"cidr": "10.0.0.0/16"})}
    with pytest.raises(MissingAttributeError) as ei:
        resolve_reference(ref("network.n1.gateway"), realized, consumer=S1)
    assert ei.value.details["consumer"] == "subnet.s1"
    assert ei.value.details["reference"] == "network.n1.gateway"


def test_unrealized_producer_raises_missing_attribute():
    with pytest.raises(MissingAttributeError):
        resolve_reference(ref("network.n1.cidr"), {})
