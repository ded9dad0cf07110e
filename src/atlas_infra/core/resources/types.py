"""
Tipos canônicos de recursos do Atlas Infra.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre resolver, planner, diff, scheduler e state store.

Os tipos aqui definidos representam:
    - identidade estável de um recurso (type, name)
    - referência simbólica a um atributo de outro recurso
    - declaração de recurso (ResourceRecord)
    - aresta de dependência (consumidor → produtor)
    - estado realizado persistido (StateRecord)
    - item de plano e resultado de apply

Princípios fundamentais:
    - Tipos são estáveis e serializáveis
    - Identidade é uma chave de arena (`ResourceId`), nunca um ponteiro entre objetos
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - Enums possuem valores textuais canônicos
    - Estruturas são imutáveis (frozen)
    - `ResourceId` ordena por (type, name), base do desempate determinístico

Limites explícitos:
    - Não executa chamadas a providers
    - Não planeja nem ordena recursos
    - Não contém semântica específica de provider
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union


PathSegment = Union[str, int]


@dataclass(frozen=True, order=True)
class ResourceId:
    """
    Identidade estável de um recurso: (type, name).

    A ordenação natural por (type, name) é usada como critério de desempate
    em toda ordenação do engine, garantindo ordem de apply determinística.
    """

    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type}.{self.name}"

    @classmethod
    def parse(cls, text: str) -> "ResourceId":
        parts = str(text).split(".")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(f"Resource identity must be 'type.name', got: {text!r}")
        return cls(type=parts[0], name=parts[1])

    @classmethod
    def coerce(cls, value: Union["ResourceId", str, Tuple[str, str]]) -> "ResourceId":
        if isinstance(value, ResourceId):
            return value
        if isinstance(value, tuple) and len(value) == 2:
            return cls(type=value[0], name=value[1])
        return cls.parse(value)


@dataclass(frozen=True)
class Reference:
    """
    Referência simbólica a um atributo de outro recurso.

    `path` navega os atributos realizados do alvo: strings indexam mapas,
    inteiros indexam listas. A referência permanece não resolvida até que
    o recurso alvo seja realizado pelo provider.
    """

    target: ResourceId
    path: Tuple[PathSegment, ...] = ()

    def __str__(self) -> str:
        return ".".join([str(self.target)] + [str(p) for p in self.path])

    @classmethod
    def parse(cls, text: str) -> "Reference":
        """Interpreta `type.name.attr[.sub...]`; segmentos numéricos viram índices."""
        parts = str(text).split(".")
        if len(parts) < 3 or not all(p.strip() for p in parts):
            raise ValueError(f"Reference must be 'type.name.attribute[...]', got: {text!r}")
        path = tuple(int(p) if p.isdigit() else p for p in parts[2:])
        return cls(target=ResourceId(parts[0], parts[1]), path=path)


def _coerce_ids(values: Optional[Iterable[Any]]) -> FrozenSet[ResourceId]:
    return frozenset(ResourceId.coerce(v) for v in (values or ()))


@dataclass(frozen=True)
class ResourceRecord:
    """
    Declaração de um recurso, já interpretada pelo front-end de configuração.

    Campos:
        - type: tipo opaco do recurso (chave da tabela de providers)
        - name: nome único dentro do tipo
        - attributes: atributos declarados; valores podem conter `Reference`
          em qualquer profundidade (listas, mapas)
        - depends_on: dependências explícitas (identidades)
    """

    type: str
    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    depends_on: FrozenSet[ResourceId] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", dict(self.attributes or {}))
        object.__setattr__(self, "depends_on", _coerce_ids(self.depends_on))

    @property
    def id(self) -> ResourceId:
        return ResourceId(self.type, self.name)


@dataclass(frozen=True)
class DependencyEdge:
    """Aresta consumidor → produtor. `source`: reference, depends_on ou hint."""

    consumer: ResourceId
    producer: ResourceId
    source: str = "reference"


@dataclass(frozen=True)
class StateRecord:
    """
    Estado realizado de um recurso, persistido entre runs.

    Campos:
        - id: identidade do recurso
        - realized_attributes: valores concretos retornados pelo provider
        - provider_id: identificador atribuído pelo provider
        - applied_hash: hash dos atributos declarados no último apply
        - applied_attributes: atributos declarados (concretos) no último apply;
          `None` quando desconhecidos (registros migrados de schema v1)
        - dependencies: produtores do recurso no último apply, usados para
          ordenar destroy de recursos que deixaram de ser declarados

    Invariantes:
        - Nenhum valor é uma `Reference` (validado pelo State Store)
        - Mutado apenas após sucesso de uma ação no provider
    """

    id: ResourceId
    realized_attributes: Dict[str, Any]
    provider_id: str
    applied_hash: str
    applied_attributes: Optional[Dict[str, Any]] = None
    dependencies: FrozenSet[ResourceId] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", _coerce_ids(self.dependencies))


class Mutability(str, Enum):
    """Mutabilidade de um atributo segundo o descritor de capacidades do provider."""

    IMMUTABLE = "immutable"
    UPDATABLE = "updatable"


class PlanAction(str, Enum):
    """
    Ação planejada para um recurso.

    `BLOCKED` marca recursos cujo estado não pôde ser carregado
    (StateCorruptionError): estado desconhecido, nunca despachados.
    """

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    REPLACE = "replace"
    NOOP = "no-op"
    BLOCKED = "blocked"


class ApplyOutcome(str, Enum):
    """Estados finais do apply de um recurso."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PlanItem:
    """
    Item de plano produzido pelo Diff Engine a cada run (nunca persistido).

    Campos:
        - id / action / dependencies: contrato mínimo do item
        - record: declaração atual (None para destroy)
        - prior: StateRecord carregado (None para create)
        - changed: atributos que diferem do último apply
        - deferred: ação final depende de valores de produtores ainda não
          realizados neste run; decidida em `finalize` antes do dispatch
        - error: payload de erro quando `action == BLOCKED`
    """

    id: ResourceId
    action: PlanAction
    dependencies: FrozenSet[ResourceId] = frozenset()
    record: Optional[ResourceRecord] = None
    prior: Optional[StateRecord] = None
    changed: Tuple[str, ...] = ()
    deferred: bool = False
    error: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ApplyResult:
    """
    Resultado do apply de um recurso.

    `reason` explica skips: dependency_failed, dependent_failed, cancelled.
    """

    id: ResourceId
    action: PlanAction
    outcome: ApplyOutcome
    error: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    provider_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": str(self.id),
            "action": self.action.value,
            "outcome": self.outcome.value,
            "error": dict(self.error) if self.error else None,
            "reason": self.reason,
            "provider_id": self.provider_id,
        }
