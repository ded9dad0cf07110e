"""
Failure Coordinator: consolidação dos resultados de apply.

Responsabilidades:
    - Converter exceções em InfraErrorPayload (serializável, sem stack trace)
    - Agregar ApplyResults em um RunReport: contagens por outcome, falhas
      com ação tentada e detalhe do erro, skips listados explicitamente
    - Determinar o status do run:
        0 → todos os recursos com sucesso
        1 → falha parcial (ao menos um `failed`, ou run cancelado)
        2 → erro de configuração detectado antes de qualquer chamada a provider

O relatório sempre lista o outcome de todos os recursos, inclusive no-ops e
skips, para que o operador reconcilie a infraestrutura real com o relatório.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional

from atlas_infra.core.errors import (
    CONFIG_CYCLIC_DEPENDENCY,
    CONFIG_DUPLICATE_IDENTITY,
    CONFIG_ERROR,
    CONFIG_INVALID_RESOURCE,
    CONFIG_UNKNOWN_DEPENDENCY,
    CONFIG_UNKNOWN_RESOURCE_TYPE,
    CONFIG_UNRESOLVED_REFERENCE,
    PROVIDER_ERROR,
    REFERENCE_MISSING_ATTRIBUTE,
    STATE_CORRUPTION,
    InfraErrorPayload,
    engine_execution_error,
)
from atlas_infra.core.exceptions import (
    AtlasException,
    CyclicDependencyError,
    DuplicateIdentityError,
    InvalidResourceError,
    MissingAttributeError,
    ProviderError,
    StateCorruptionError,
    UnknownDependencyError,
    UnknownResourceTypeError,
    UnresolvedReferenceError,
)
from atlas_infra.core.resources.types import ApplyOutcome, ApplyResult, PlanAction, ResourceId


_ERROR_CODES = (
    (CyclicDependencyError, CONFIG_CYCLIC_DEPENDENCY),
    (UnresolvedReferenceError, CONFIG_UNRESOLVED_REFERENCE),
    (UnknownDependencyError, CONFIG_UNKNOWN_DEPENDENCY),
    (DuplicateIdentityError, CONFIG_DUPLICATE_IDENTITY),
    (InvalidResourceError, CONFIG_INVALID_RESOURCE),
    (UnknownResourceTypeError, CONFIG_UNKNOWN_RESOURCE_TYPE),
    (ProviderError, PROVIDER_ERROR),
    (MissingAttributeError, REFERENCE_MISSING_ATTRIBUTE),
    (StateCorruptionError, STATE_CORRUPTION),
)


def exception_to_error(exc: BaseException, *, resource: Optional[ResourceId] = None) -> InfraErrorPayload:
    """
    Converte exceções em InfraErrorPayload.

    Regras:
    - AtlasException: já vem com message/details/hint; o código vem da classe.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, AtlasException):
        code = next((c for cls, c in _ERROR_CODES if isinstance(exc, cls)), CONFIG_ERROR)
        details = dict(exc.details or {})
        if resource is not None:
            details.setdefault("resource", str(resource))
        return InfraErrorPayload(
            type=code,
            message=exc.message or "Erro durante o apply",
            details=details,
            hint=exc.hint,
        )

    return engine_execution_error(
        resource=str(resource) if resource is not None else None,
        exc_type=exc.__class__.__name__,
        exc_message=str(exc) or None,
    )


class RunStatus(IntEnum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    CONFIGURATION_ERROR = 2


@dataclass(frozen=True)
class FailureEntry:
    id: ResourceId
    action: PlanAction
    error: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"resource": str(self.id), "action": self.action.value, "error": dict(self.error)}


@dataclass(frozen=True)
class RunReport:
    """Resultado agregado de um run de apply."""

    status: RunStatus
    results: Dict[ResourceId, ApplyResult] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    failures: List[FailureEntry] = field(default_factory=list)
    skipped: List[ResourceId] = field(default_factory=list)
    cancelled: bool = False
    configuration_error: Optional[Dict[str, Any]] = None

    @property
    def exit_code(self) -> int:
        return int(self.status)

    def outcome_of(self, rid: ResourceId) -> ApplyOutcome:
        return self.results[rid].outcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": int(self.status),
            "cancelled": self.cancelled,
            "counts": dict(self.counts),
            "results": {str(rid): r.to_dict() for rid, r in sorted(self.results.items())},
            "failures": [f.to_dict() for f in self.failures],
            "skipped": [str(rid) for rid in self.skipped],
            "configuration_error": self.configuration_error,
        }


def summarize(results: Mapping[ResourceId, ApplyResult], *, cancelled: bool = False) -> RunReport:
    """Agrega os ApplyResults de um run em um RunReport determinístico."""
    ordered = dict(sorted(results.items()))

    counts = {outcome.value: 0 for outcome in ApplyOutcome}
    failures: List[FailureEntry] = []
    skipped: List[ResourceId] = []
    for rid, result in ordered.items():
        counts[result.outcome.value] += 1
        if result.outcome is ApplyOutcome.FAILED:
            failures.append(FailureEntry(id=rid, action=result.action, error=dict(result.error or {})))
        elif result.outcome is ApplyOutcome.SKIPPED:
            skipped.append(rid)

    if failures or cancelled:
        status = RunStatus.PARTIAL_FAILURE
    else:
        status = RunStatus.SUCCESS

    return RunReport(
        status=status,
        results=ordered,
        counts=counts,
        failures=failures,
        skipped=skipped,
        cancelled=cancelled,
    )


def configuration_failure(exc: BaseException) -> RunReport:
    """RunReport de um run abortado por erro de configuração (nenhuma chamada a provider)."""
    return RunReport(
        status=RunStatus.CONFIGURATION_ERROR,
        counts={outcome.value: 0 for outcome in ApplyOutcome},
        configuration_error=exception_to_error(exc).to_dict(),
    )
