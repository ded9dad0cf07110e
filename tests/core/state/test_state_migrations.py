# tests/core/state/test_state_migrations.py
"""
Testes de migração de schema dos registros de estado.

Invariante central: o identificador atribuído pelo provider nunca se perde
na migração.
"""

import pytest

from atlas_infra.core.engine.diff import plan_changes
from atlas_infra.core.engine.graph import build_graph
from atlas_infra.core.exceptions import StateCorruptionError
from atlas_infra.core.resources.types import PlanAction, ResourceId
from atlas_infra.core.state import CURRENT_SCHEMA_VERSION, migrate
from atlas_infra.core.state.store import InMemoryStateStore

from tests._helpers import res


N1 = ResourceId("network", "n1")

V1_DOC = {
    "type": "network",
    "name": "n1",
    "id": "vpc-0abc",
    "hash": "legacy-hash",
    "attributes": {"label": "network.n1", "cidr": "10.0.0.0/16", "arn": "arn:vpc-0abc"},
}


def test_v1_document_is_migrated_preserving_provider_id():
    doc = migrate(dict(V1_DOC))
    assert doc["schema_version"] == CURRENT_SCHEMA_VERSION
    assert doc["provider_id"] == "vpc-0abc"
    assert doc["realized_attributes"]["cidr"] == "10.0.0.0/16"
    assert doc["applied_attributes"] is None
    assert doc["dependencies"] == []


def test_current_document_is_untouched():
    doc = {"schema_version": CURRENT_SCHEMA_VERSION, "type": "network"}
    assert migrate(doc) == doc


@pytest.mark.parametrize("version", [0, "2", True, CURRENT_SCHEMA_VERSION + 1])
def test_invalid_or_future_versions_are_rejected(version):
    with pytest.raises(StateCorruptionError):
        migrate({"schema_version": version})


def test_migrated_record_plans_against_declared_keys(registry):
    """
    Sem atributos aplicados (v1), o diff compara as chaves declaradas com os
    atributos realizados: atributos iguais não geram replace.
    """
    store = InMemoryStateStore()
    store.put_document(N1, dict(V1_DOC))

    tags_only = plan_changes(
        build_graph([res("network", "n1", cidr="10.0.0.0/16", tags={"env": "prod"})]),
        store,
        registry,
    )
    item = tags_only.items[N1]
    assert item.action is PlanAction.UPDATE
    assert item.changed == ("tags",)
    assert item.prior.provider_id == "vpc-0abc"
