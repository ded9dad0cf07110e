# tests/core/test_provider_registry.py
"""
Testes da tabela de providers por tipo de recurso.
"""

import pytest

from atlas_infra.core.exceptions import UnknownResourceTypeError
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.resources.types import Mutability

from tests._helpers import NETWORK_CAPS, FakeProvider, ReadableProvider


def test_register_rejects_objects_without_contract():
    with pytest.raises(TypeError):
        ProviderRegistry({"network": object()})


def test_unknown_type_raises_configuration_error():
    registry = ProviderRegistry({"network": FakeProvider(NETWORK_CAPS)})
    with pytest.raises(UnknownResourceTypeError) as ei:
        registry.ensure_types(["network", "bucket"])
    assert ei.value.details == {"resource_type": "bucket"}


def test_mutability_defaults_to_immutable():
    registry = ProviderRegistry({"instance": FakeProvider(NETWORK_CAPS)})
    assert registry.mutability("instance", "size") is Mutability.UPDATABLE
    assert registry.mutability("instance", "image") is Mutability.IMMUTABLE
    assert registry.mutability("instance", "undeclared") is Mutability.IMMUTABLE


def test_optional_capabilities_are_detected():
    plain = FakeProvider(create_before_destroy_types=("lb",))
    registry = ProviderRegistry({"lb": plain, "disk": plain, "dns": ReadableProvider()})

    assert registry.supports_create_before_destroy("lb") is True
    assert registry.supports_create_before_destroy("disk") is False
    assert registry.can_read("dns") is True
    assert registry.can_read("lb") is False
