"""
Resolver de referências entre atributos de recursos.

Este módulo descobre referências simbólicas (`Reference`) em qualquer
profundidade dos atributos declarados, converte-as em arestas de
dependência e, depois que os produtores são realizados, substitui as
referências pelos valores reais.

Duas fases, deliberadamente separadas:
    - descoberta (build-time): `discover_edges` valida que todo alvo existe
      e emite arestas consumidor → produtor, sem mutar atributos
    - substituição (apply-time): `substitute` devolve uma cópia concreta dos
      atributos a partir dos StateRecords realizados

Invariantes:
    - Referências pendentes são erro de configuração (UnresolvedReferenceError)
    - Atributos declarados nunca são mutados
    - O resultado de `substitute` não contém nenhuma `Reference`

Limites explícitos:
    - Não ordena recursos
    - Não chama providers
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from atlas_infra.core.exceptions import MissingAttributeError, UnresolvedReferenceError

from .types import DependencyEdge, PathSegment, Reference, ResourceId, ResourceRecord, StateRecord


def iter_references(value: Any, path: Tuple[PathSegment, ...] = ()) -> Iterator[Tuple[Tuple[PathSegment, ...], Reference]]:
    """Percorre recursivamente um valor, gerando (caminho do atributo, referência)."""
    if isinstance(value, Reference):
        yield path, value
    elif isinstance(value, Mapping):
        for key in sorted(value, key=str):
            yield from iter_references(value[key], path + (key,))
    elif isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            yield from iter_references(item, path + (idx,))


def referenced_targets(record: ResourceRecord) -> Set[ResourceId]:
    return {ref.target for _, ref in iter_references(record.attributes)}


def discover_edges(records: Iterable[ResourceRecord]) -> List[DependencyEdge]:
    """
    Emite as arestas implícitas derivadas das referências de atributos.

    Args:
        records: Conjunto completo de recursos declarados.

    Returns:
        List[DependencyEdge]: Arestas (consumidor → produtor), uma por par,
        em ordem determinística.

    Raises:
        UnresolvedReferenceError: Se alguma referência apontar para recurso
            ausente do conjunto declarado.
    """
    record_list = list(records)
    declared = {r.id for r in record_list}

    edges: List[DependencyEdge] = []
    seen: Set[Tuple[ResourceId, ResourceId]] = set()
    for record in sorted(record_list, key=lambda r: r.id):
        for attr_path, ref in iter_references(record.attributes):
            if ref.target not in declared:
                raise UnresolvedReferenceError.build(
                    consumer=record.id,
                    attribute_path=attr_path,
                    target=ref.target,
                )
            key = (record.id, ref.target)
            if key not in seen:
                seen.add(key)
                edges.append(DependencyEdge(consumer=record.id, producer=ref.target, source="reference"))
    return edges


def resolve_reference(
    ref: Reference,
    realized: Mapping[ResourceId, StateRecord],
    *,
    consumer: Optional[ResourceId] = None,
) -> Any:
    """Navega os atributos realizados do alvo; `id` cai no provider_id quando ausente."""
    state = realized.get(ref.target)
    if state is None:
        raise MissingAttributeError.build(consumer=consumer, reference=ref)

    current: Any = state.realized_attributes
    for depth, segment in enumerate(ref.path):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif isinstance(current, (list, tuple)) and isinstance(segment, int) and 0 <= segment < len(current):
            current = current[segment]
        elif depth == 0 and segment == "id":
            current = state.provider_id
        else:
            raise MissingAttributeError.build(consumer=consumer, reference=ref)
    return current


def substitute(
    value: Any,
    realized: Mapping[ResourceId, StateRecord],
    *,
    consumer: Optional[ResourceId] = None,
) -> Any:
    """Retorna uma cópia de `value` com toda `Reference` trocada pelo valor realizado."""
    if isinstance(value, Reference):
        return resolve_reference(value, realized, consumer=consumer)
    if isinstance(value, Mapping):
        return {k: substitute(v, realized, consumer=consumer) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute(v, realized, consumer=consumer) for v in value]
    if isinstance(value, tuple):
        return [substitute(v, realized, consumer=consumer) for v in value]
    return value


def contains_reference(value: Any) -> bool:
    return next(iter_references(value), None) is not None
