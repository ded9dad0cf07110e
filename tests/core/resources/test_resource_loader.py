# tests/core/resources/test_resource_loader.py
"""
Testes do loader de documentos de recursos e do hint de ordem de apply,
e da validação estrutural do ResourceRegistry.
"""

from pathlib import Path

import pytest
import yaml

from atlas_infra.core.exceptions import DuplicateIdentityError, InvalidResourceError
from atlas_infra.core.resources.loader import (
    apply_order_from_document,
    load_apply_order_hint,
    load_resources,
    records_from_document,
)
from atlas_infra.core.resources.registry import ResourceRegistry
from atlas_infra.core.resources.types import Reference, ResourceId, ResourceRecord


RESOURCES_YAML = """\
resources:
  - type: network
    name: n1
    attributes:
      cidr: 10.0.0.0/16
  - type: subnet
    name: s1
    depends_on: [network.n1]
    attributes:
      network_id: {$ref: network.n1.id}
      routes:
        - {$ref: network.n1.cidr}
"""


def test_load_resources_decodes_references(tmp_path: Path):
    path = tmp_path / "resources.yaml"
    path.write_text(RESOURCES_YAML, encoding="utf-8")

    records = load_resources(path)

    assert [r.id for r in records] == [ResourceId("network", "n1"), ResourceId("subnet", "s1")]
    s1 = records[1]
    assert s1.attributes["network_id"] == Reference.parse("network.n1.id")
    assert s1.attributes["routes"] == [Reference.parse("network.n1.cidr")]
    assert s1.depends_on == frozenset({ResourceId("network", "n1")})


def test_ref_must_be_the_only_key():
    doc = {"resources": [{"type": "subnet", "name": "s1", "attributes": {"x": {"$ref": "network.n1.id", "y": 1}}}]}
    with pytest.raises(InvalidResourceError):
        records_from_document(doc)


@pytest.mark.parametrize(
    "entry",
    [
        "not-a-mapping",
        {"type": "network"},
        {"type": "network", "name": "n1", "attributes": ["cidr"]},
        {"type": "network", "name": "n1", "depends_on": "network.n0"},
        {"type": "network", "name": "n1", "depends_on": ["bad"]},
    ],
)
def test_invalid_entries_raise(entry):
    with pytest.raises(InvalidResourceError):
        records_from_document({"resources": [entry]})


def test_apply_order_hint(tmp_path: Path):
    path = tmp_path / "order.json"
    path.write_text('{"order": ["network.n1", "subnet.s1"]}', encoding="utf-8")
    assert load_apply_order_hint(path) == [ResourceId("network", "n1"), ResourceId("subnet", "s1")]

    with pytest.raises(InvalidResourceError):
        apply_order_from_document({"order": "network.n1"})


def test_registry_rejects_duplicates_and_bad_names():
    registry = ResourceRegistry()
    registry.add(ResourceRecord(type="network", name="n1"))
    with pytest.raises(DuplicateIdentityError):
        registry.add(ResourceRecord(type="network", name="n1", attributes={"other": True}))
    with pytest.raises(InvalidResourceError):
        registry.add(ResourceRecord(type="network", name="has space"))

    assert registry.ids() == [ResourceId("network", "n1")]


def test_yaml_date_attribute_is_rejected_by_registry():
    """PyYAML decodifica datas sem aspas como `date`; o registro recusa o valor."""
    document = yaml.safe_load(
        "resources:\n"
        "  - type: network\n"
        "    name: n1\n"
        "    attributes: {created: 2024-01-01}\n"
    )
    records = records_from_document(document)

    with pytest.raises(InvalidResourceError) as exc_info:
        ResourceRegistry().add(records[0])

    assert exc_info.value.details == {"resource": "network.n1", "attribute": "created"}


def test_registry_rejects_non_text_attribute_keys():
    registry = ResourceRegistry()
    with pytest.raises(InvalidResourceError):
        registry.add(ResourceRecord(type="network", name="n1", attributes={1: "x"}))
    assert registry.ids() == []


def test_registry_accepts_quoted_dates_and_references():
    registry = ResourceRegistry()
    registry.add(ResourceRecord(
        type="subnet",
        name="s1",
        attributes={"created": "2024-01-01", "network_id": Reference.parse("network.n1.id")},
    ))
    assert registry.ids() == [ResourceId("subnet", "s1")]
