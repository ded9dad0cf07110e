"""
Contrato de provider e tabela de capacidades por tipo de recurso.

Um provider é o colaborador externo que realiza chamadas reais de API
(create/update/destroy) para um ou mais tipos de recurso. O engine nunca
ramifica por tipo: o despacho é uma busca na `ProviderRegistry`, indexada
pelo tipo do recurso.

Contrato mínimo (`Provider`):
    - capabilities(type) → {atributo: Mutability}
    - create(type, attributes) → (atributos realizados, provider_id)
    - update(type, provider_id, attributes) → atributos realizados
    - destroy(type, provider_id) → None

Capacidades opcionais, detectadas por duck typing:
    - read(type, provider_id) → atributos realizados, ou None se o recurso
      não existe mais (usado pelo refresh)
    - supports_create_before_destroy(type) → bool

Falhas devem ser sinalizadas com `ProviderError`; qualquer outra exceção é
encapsulada como ENGINE_EXECUTION_ERROR pelo Failure Coordinator.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple, runtime_checkable

from atlas_infra.core.exceptions import UnknownResourceTypeError
from atlas_infra.core.resources.types import Mutability


@runtime_checkable
class Provider(Protocol):
    """Contrato canônico de um provider (duck typing, sem herança obrigatória)."""

    def capabilities(self, resource_type: str) -> Mapping[str, Mutability]:
        ...

    def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        ...

    def update(self, resource_type: str, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def destroy(self, resource_type: str, provider_id: str) -> None:
        ...


class ProviderRegistry:
    """Tabela tipo de recurso → provider."""

    def __init__(self, providers: Optional[Mapping[str, Provider]] = None):
        self._providers: Dict[str, Provider] = {}
        for resource_type, provider in (providers or {}).items():
            self.register(resource_type, provider)

    def register(self, resource_type: str, provider: Provider) -> None:
        if not isinstance(provider, Provider):
            raise TypeError(
                f"Provider para '{resource_type}' não satisfaz o contrato "
                "(capabilities/create/update/destroy)"
            )
        self._providers[resource_type] = provider

    def for_type(self, resource_type: str) -> Provider:
        try:
            return self._providers[resource_type]
        except KeyError:
            raise UnknownResourceTypeError(
                message=f"No provider registered for resource type '{resource_type}'",
                details={"resource_type": resource_type},
                hint="Registre um provider para o tipo antes do run.",
            ) from None

    def ensure_types(self, resource_types: Iterable[str]) -> None:
        """Valida, antes de qualquer chamada, que todo tipo possui provider."""
        for resource_type in sorted(set(resource_types)):
            self.for_type(resource_type)

    def mutability(self, resource_type: str, attribute: str) -> Mutability:
        """Atributos não listados pelo provider são tratados como imutáveis."""
        caps = self.for_type(resource_type).capabilities(resource_type) or {}
        return Mutability(caps.get(attribute, Mutability.IMMUTABLE))

    def supports_create_before_destroy(self, resource_type: str) -> bool:
        provider = self.for_type(resource_type)
        supports = getattr(provider, "supports_create_before_destroy", None)
        return bool(supports(resource_type)) if callable(supports) else False

    def can_read(self, resource_type: str) -> bool:
        return callable(getattr(self.for_type(resource_type), "read", None))
