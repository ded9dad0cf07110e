"""
Atlas Infra — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros reportados pelo Atlas Infra.
Erros são artefatos do relatório de run e fazem parte do contrato operacional
do sistema, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Nenhuma decisão implícita é permitida: todo recurso que não chegou ao estado
declarado aparece no relatório com seu payload de erro.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InfraErrorPayload:
    """
    Payload canônico de erro do Atlas Infra.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Configuração
CONFIG_CYCLIC_DEPENDENCY = "CONFIG_CYCLIC_DEPENDENCY"
CONFIG_UNRESOLVED_REFERENCE = "CONFIG_UNRESOLVED_REFERENCE"
CONFIG_UNKNOWN_DEPENDENCY = "CONFIG_UNKNOWN_DEPENDENCY"
CONFIG_DUPLICATE_IDENTITY = "CONFIG_DUPLICATE_IDENTITY"
CONFIG_INVALID_RESOURCE = "CONFIG_INVALID_RESOURCE"
CONFIG_UNKNOWN_RESOURCE_TYPE = "CONFIG_UNKNOWN_RESOURCE_TYPE"
CONFIG_ERROR = "CONFIG_ERROR"

# Apply
PROVIDER_ERROR = "PROVIDER_ERROR"
REFERENCE_MISSING_ATTRIBUTE = "REFERENCE_MISSING_ATTRIBUTE"

# Estado
STATE_CORRUPTION = "STATE_CORRUPTION"

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def engine_execution_error(
    *,
    resource: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique o log do run e o provider do recurso. Nenhum fallback é aplicado automaticamente.",
) -> InfraErrorPayload:
    return InfraErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante o apply do recurso",
        details={
            "resource": resource,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )

