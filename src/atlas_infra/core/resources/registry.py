"""
Registro estrutural de recursos declarados.

Este módulo define o `ResourceRegistry`, responsável por registrar recursos
e validar a integridade estrutural da configuração antes de qualquer
planejamento ou chamada a providers.

O registry atua como uma camada de proteção antecipada, garantindo que:
    - cada recurso possua type e name válidos
    - não existam identidades (type, name) duplicadas
    - atributos contenham apenas valores com hash canônico (null, bool,
      int, float, str, listas, mapas com chaves str e referências)
    - a ordem de declaração seja preservada explicitamente

Decisões arquiteturais:
    - A validação ocorre antes do resolver e do planner
    - Erros estruturais são ConfigurationError (fatais, status 2)
    - type e name usam apenas [A-Za-z0-9_-], pois compõem referências
      `type.name.attr` e caminhos do state store

Limites explícitos:
    - Não resolve referências
    - Não planeja execução
    - Não interage com providers ou State Store
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from atlas_infra.core.exceptions import DuplicateIdentityError, InvalidResourceError

from .hashing import canonicalize
from .types import ResourceId, ResourceRecord


_IDENTIFIER = re.compile(r"^[A-Za-z0-9_\-]+$")


@dataclass
class ResourceRegistry:
    """
    Registro canônico de recursos para validação estrutural pré-plano.

    Invariantes:
        - Cada identidade é única no registry
        - A lista de recursos reflete exatamente a ordem de registro
        - Apenas recursos válidos são armazenados
    """

    _records: Dict[ResourceId, ResourceRecord] = field(default_factory=dict, init=False, repr=False)
    _order: List[ResourceId] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def from_records(cls, records: Iterable[ResourceRecord]) -> "ResourceRegistry":
        registry = cls()
        for record in records:
            registry.add(record)
        return registry

    def add(self, record: ResourceRecord) -> None:
        for label, value in (("type", record.type), ("name", record.name)):
            if not isinstance(value, str) or not _IDENTIFIER.match(value):
                raise InvalidResourceError(
                    message=f"Resource {label} must match [A-Za-z0-9_-]+, got: {value!r}",
                    details={"field": label, "value": str(value)},
                )

        rid = record.id
        if rid in self._records:
            raise DuplicateIdentityError(
                message=f"Duplicate resource identity: {rid}",
                details={"resource": str(rid)},
                hint="Cada par (type, name) deve ser declarado uma única vez.",
            )

        self._check_attribute_values(record)

        self._records[rid] = record
        self._order.append(rid)

    @staticmethod
    def _check_attribute_values(record: ResourceRecord) -> None:
        for key in sorted(record.attributes, key=str):
            try:
                if not isinstance(key, str):
                    raise TypeError(f"chave não textual: {key!r}")
                canonicalize(record.attributes[key], allow_references=True)
            except TypeError as exc:
                raise InvalidResourceError(
                    message=f"Unsupported value in attribute '{key}' of {record.id}: {exc}",
                    details={"resource": str(record.id), "attribute": str(key)},
                    hint="Use apenas null, bool, números, texto, listas e mapas; datas devem ser declaradas como texto.",
                ) from exc

    def get(self, rid: ResourceId) -> ResourceRecord:
        return self._records[rid]

    def __contains__(self, rid: object) -> bool:
        return rid in self._records

    def ids(self) -> List[ResourceId]:
        return list(self._order)

    def list(self) -> List[ResourceRecord]:
        return [self._records[rid] for rid in self._order]
