"""
Leitura de documentos de recursos e do hint de ordem de apply.

O front-end da linguagem de configuração está fora do escopo do engine;
este módulo aceita a forma já interpretada (YAML/JSON) desses documentos:

    resources:
      - type: compute_network
        name: n1
        attributes: {auto_create_subnetworks: false}
      - type: compute_subnetwork
        name: s1
        attributes:
          network: {"$ref": "compute_network.n1.self_link"}
        depends_on: ["compute_network.n1"]

Referências são mapas com a chave única `$ref`; segmentos numéricos do
caminho indexam listas.

O hint de ordem de apply é um documento `{order: ["type.name", ...]}` em que
cada entrada passa a depender da anterior.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from atlas_infra.core.config.loader import read_document
from atlas_infra.core.exceptions import InvalidResourceError

from .types import Reference, ResourceId, ResourceRecord


REF_KEY = "$ref"


def _decode_value(value: Any, *, where: str) -> Any:
    if isinstance(value, Mapping):
        if REF_KEY in value:
            if len(value) != 1 or not isinstance(value[REF_KEY], str):
                raise InvalidResourceError(
                    message=f"Invalid reference at {where}: '$ref' must be the only key and a string",
                    details={"location": where},
                )
            try:
                return Reference.parse(value[REF_KEY])
            except ValueError as exc:
                raise InvalidResourceError(message=str(exc), details={"location": where}) from exc
        return {k: _decode_value(v, where=f"{where}.{k}") for k, v in value.items()}
    if isinstance(value, list):
        return [_decode_value(v, where=f"{where}.{i}") for i, v in enumerate(value)]
    return value


def _decode_record(entry: Any, index: int) -> ResourceRecord:
    where = f"resources[{index}]"
    if not isinstance(entry, Mapping):
        raise InvalidResourceError(
            message=f"{where} must be a mapping",
            details={"location": where},
        )

    missing = [k for k in ("type", "name") if not entry.get(k)]
    if missing:
        raise InvalidResourceError(
            message=f"{where} is missing required fields: {', '.join(missing)}",
            details={"location": where, "missing": missing},
        )

    attributes = entry.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise InvalidResourceError(
            message=f"{where}.attributes must be a mapping",
            details={"location": where},
        )

    depends_on = entry.get("depends_on") or []
    if not isinstance(depends_on, list):
        raise InvalidResourceError(
            message=f"{where}.depends_on must be a list",
            details={"location": where},
        )

    try:
        deps = [ResourceId.parse(d) for d in depends_on]
    except ValueError as exc:
        raise InvalidResourceError(message=str(exc), details={"location": f"{where}.depends_on"}) from exc

    return ResourceRecord(
        type=str(entry["type"]),
        name=str(entry["name"]),
        attributes=_decode_value(dict(attributes), where=f"{where}.attributes"),
        depends_on=deps,
    )


def records_from_document(document: Dict[str, Any]) -> List[ResourceRecord]:
    """Converte um documento `{resources: [...]}` em ResourceRecords, na ordem declarada."""
    entries = document.get("resources", [])
    if not isinstance(entries, list):
        raise InvalidResourceError(
            message="'resources' must be a list",
            details={"location": "resources"},
        )
    return [_decode_record(entry, i) for i, entry in enumerate(entries)]


def load_resources(path: Union[str, Path]) -> List[ResourceRecord]:
    return records_from_document(read_document(path))


def apply_order_from_document(document: Dict[str, Any]) -> List[ResourceId]:
    order = document.get("order", [])
    if not isinstance(order, list):
        raise InvalidResourceError(
            message="'order' must be a list of 'type.name' identities",
            details={"location": "order"},
        )
    try:
        return [ResourceId.parse(entry) for entry in order]
    except ValueError as exc:
        raise InvalidResourceError(message=str(exc), details={"location": "order"}) from exc


def load_apply_order_hint(path: Union[str, Path]) -> List[ResourceId]:
    return apply_order_from_document(read_document(path))
