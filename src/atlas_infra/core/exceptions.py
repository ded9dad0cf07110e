"""
Atlas Infra — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas Infra.

Objetivo:
- Permitir que resolver, planner, diff e scheduler levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para InfraErrorPayload
- Separar erros de configuração (fatais, antes de qualquer chamada ao provider)
  de erros de apply (locais a um recurso)

Taxonomia:
- ConfigurationError → ciclo, referência não resolvida, identidade duplicada,
  dependência desconhecida, tipo de recurso sem provider
- ProviderError → falha de create/update/destroy/read em um recurso
- StateCorruptionError → StateRecord inválido no load (estado desconhecido)
- MissingAttributeError → atributo referenciado ausente no produtor realizado

Regras:
- Exceções devem carregar apenas dados estruturados (serializáveis) em `details`.
- Identidades de recurso aparecem em `details` no formato textual `type.name`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas Infra.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Configuração (fatal, antes de qualquer chamada ao provider)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConfigurationError(AtlasException):
    """Configuração declarada é inválida; o run é abortado antes do apply."""


@dataclass(frozen=True)
class CyclicDependencyError(ConfigurationError):
    """O grafo de dependências contém um ciclo."""

    @classmethod
    def from_cycle(cls, cycle: Sequence[Any]) -> "CyclicDependencyError":
        members = [str(c) for c in cycle]
        rendered = " -> ".join(members + members[:1])
        return cls(
            message=f"Cyclic dependency detected: {rendered}",
            details={"cycle": members},
            hint="Remova uma das referências ou entradas de depends_on que fecham o ciclo.",
        )

    @property
    def cycle(self) -> List[str]:
        return list(self.details.get("cycle", []))


@dataclass(frozen=True)
class UnresolvedReferenceError(ConfigurationError):
    """Referência aponta para um recurso ausente do conjunto declarado."""

    @classmethod
    def build(cls, *, consumer: Any, attribute_path: Iterable[Any], target: Any) -> "UnresolvedReferenceError":
        path = ".".join(str(p) for p in attribute_path)
        return cls(
            message=f"Resource '{consumer}' references unknown resource '{target}' at '{path}'",
            details={
                "consumer": str(consumer),
                "attribute_path": path,
                "target": str(target),
            },
            hint="Declare o recurso referenciado ou corrija a referência.",
        )

    @property
    def consumer(self) -> str:
        return self.details.get("consumer", "")

    @property
    def target(self) -> str:
        return self.details.get("target", "")

    @property
    def attribute_path(self) -> str:
        return self.details.get("attribute_path", "")


@dataclass(frozen=True)
class UnknownDependencyError(ConfigurationError):
    """depends_on (ou hint de ordem) referencia uma identidade não declarada."""

    @classmethod
    def build(cls, *, consumer: Any, target: Any, source: str = "depends_on") -> "UnknownDependencyError":
        return cls(
            message=f"Resource '{consumer}' depends on unknown resource '{target}' ({source})",
            details={"consumer": str(consumer), "target": str(target), "source": source},
            hint="Declare o recurso ausente ou remova a dependência explícita.",
        )


@dataclass(frozen=True)
class DuplicateIdentityError(ConfigurationError):
    """Duas declarações compartilham a mesma identidade (type, name)."""


@dataclass(frozen=True)
class InvalidResourceError(ConfigurationError):
    """Declaração de recurso estruturalmente inválida."""


@dataclass(frozen=True)
class UnknownResourceTypeError(ConfigurationError):
    """Nenhum provider registrado para o tipo de recurso."""


# ---------------------------------------------------------------------------
# Apply (local ao recurso)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderError(AtlasException):
    """Chamada ao provider (create/update/destroy/read) falhou."""


@dataclass(frozen=True)
class MissingAttributeError(AtlasException):
    """O produtor foi realizado, mas não expõe o atributo referenciado."""

    @classmethod
    def build(cls, *, consumer: Any, reference: Any) -> "MissingAttributeError":
        return cls(
            message=f"Resource '{consumer}' references missing attribute '{reference}'",
            details={"consumer": str(consumer), "reference": str(reference)},
            hint="Verifique se o provider do recurso produtor expõe este atributo.",
        )


# ---------------------------------------------------------------------------
# Estado
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StateCorruptionError(AtlasException):
    """StateRecord falhou na validação ao ser carregado (estado desconhecido)."""
