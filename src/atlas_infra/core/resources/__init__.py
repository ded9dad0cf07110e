"""
# Resources Core — Atlas Infra

Este pacote define os **tipos canônicos** de recursos e as operações
estruturais que acontecem antes de qualquer planejamento:

- **types**: `ResourceId`, `Reference`, `ResourceRecord`, `StateRecord`,
  `PlanItem`, `ApplyResult` e enums de ação/resultado/mutabilidade
- **registry**: `ResourceRegistry`, unicidade de identidade (type, name)
- **references**: descoberta de arestas e substituição de valores realizados
- **hashing**: hash de conteúdo com etiqueta de tipo
- **loader**: documentos YAML/JSON de recursos e hint de ordem de apply

Um recurso é um registro opaco tipado: o engine não conhece semântica de
provider, apenas atributos nomeados, alguns dos quais referenciam outros.
"""

from .types import (
    ApplyOutcome,
    ApplyResult,
    DependencyEdge,
    Mutability,
    PlanAction,
    PlanItem,
    Reference,
    ResourceId,
    ResourceRecord,
    StateRecord,
)

__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "DependencyEdge",
    "Mutability",
    "PlanAction",
    "PlanItem",
    "Reference",
    "ResourceId",
    "ResourceRecord",
    "StateRecord",
]
