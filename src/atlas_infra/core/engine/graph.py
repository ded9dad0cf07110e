"""
Construtor do grafo de dependências entre recursos (DAG).

Este módulo valida a estrutura da configuração declarada e produz a ordem
de apply em "ready sets": camadas de recursos cujas dependências já foram
todas satisfeitas pelas camadas anteriores, e que portanto podem ser
aplicados em paralelo.

Fontes de arestas (consumidor → produtor):
    - referências de atributos (atlas_infra.core.resources.references)
    - depends_on explícito
    - hint de ordem de apply (cada entrada depende da anterior)

Decisões arquiteturais:
    - Recursos são indexados por `ResourceId` (arena); arestas são pares de
      identidades, nunca ponteiros entre objetos
    - Detecção de ciclo por DFS com marcador de pilha de recursão; a aresta
      de retorno reconstrói o ciclo completo, em ordem
    - Ordenação por Kahn em camadas; dentro de cada camada, ordem (type, name)

Invariantes:
    - Nenhum recurso aparece antes de suas dependências
    - Todo recurso aparece exatamente uma vez
    - A mesma entrada sempre produz os mesmos ready sets

Limites explícitos:
    - Não chama providers
    - Não consulta o State Store
    - Não decide ações (create/update/...)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set

from atlas_infra.core.exceptions import CyclicDependencyError, UnknownDependencyError
from atlas_infra.core.resources.references import discover_edges
from atlas_infra.core.resources.registry import ResourceRegistry
from atlas_infra.core.resources.types import DependencyEdge, ResourceId, ResourceRecord


def find_cycle(producers: Mapping[ResourceId, Iterable[ResourceId]]) -> Optional[List[ResourceId]]:
    """
    Procura um ciclo por DFS iterativa com marcador de pilha de recursão.

    Returns:
        Optional[List[ResourceId]]: Membros do primeiro ciclo encontrado, na
        ordem consumidor → produtor, ou None se o grafo é acíclico.
    """
    done: Set[ResourceId] = set()

    for root in sorted(producers):
        if root in done:
            continue

        path: List[ResourceId] = [root]
        on_path: Set[ResourceId] = {root}
        iterators = [iter(sorted(producers.get(root, ())))]

        while iterators:
            nxt = next(iterators[-1], None)
            if nxt is None:
                iterators.pop()
                node = path.pop()
                on_path.discard(node)
                done.add(node)
                continue
            if nxt in on_path:
                return path[path.index(nxt):]
            if nxt in done:
                continue
            path.append(nxt)
            on_path.add(nxt)
            iterators.append(iter(sorted(producers.get(nxt, ()))))

    return None


def layer_ready_sets(producers: Mapping[ResourceId, Iterable[ResourceId]]) -> List[List[ResourceId]]:
    """
    Kahn em camadas: cada camada contém os nós sem predecessores pendentes.

    `producers[n]` são os nós que precisam terminar antes de `n`. Nós citados
    apenas como produtor são ignorados (fora do conjunto ordenado).
    """
    nodes = set(producers)
    pending: Dict[ResourceId, int] = {}
    consumers: Dict[ResourceId, Set[ResourceId]] = {n: set() for n in nodes}
    for node in nodes:
        deps = {p for p in producers[node] if p in nodes}
        pending[node] = len(deps)
        for dep in deps:
            consumers[dep].add(node)

    layers: List[List[ResourceId]] = []
    ready = sorted(n for n, count in pending.items() if count == 0)
    while ready:
        layers.append(ready)
        nxt: List[ResourceId] = []
        for node in ready:
            for child in consumers[node]:
                pending[child] -= 1
                if pending[child] == 0:
                    nxt.append(child)
        ready = sorted(nxt)

    if sum(len(layer) for layer in layers) != len(nodes):
        cycle = find_cycle({n: [p for p in producers[n] if p in nodes] for n in nodes})
        raise CyclicDependencyError.from_cycle(cycle or sorted(n for n, c in pending.items() if c > 0))

    return layers


@dataclass
class DependencyGraph:
    """
    Grafo dirigido sobre recursos declarados.

    `producers[x]`: recursos dos quais `x` depende.
    `consumers[x]`: recursos que dependem de `x`.
    """

    records: Dict[ResourceId, ResourceRecord]
    edges: List[DependencyEdge] = field(default_factory=list)
    producers: Dict[ResourceId, Set[ResourceId]] = field(default_factory=dict)
    consumers: Dict[ResourceId, Set[ResourceId]] = field(default_factory=dict)

    def dependencies_of(self, rid: ResourceId) -> FrozenSet[ResourceId]:
        return frozenset(self.producers.get(rid, ()))

    def dependents_of(self, rid: ResourceId) -> Set[ResourceId]:
        """Dependentes transitivos de `rid`."""
        seen: Set[ResourceId] = set()
        stack = list(self.consumers.get(rid, ()))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.consumers.get(node, ()))
        return seen

    def ready_sets(self) -> List[List[ResourceId]]:
        return layer_ready_sets(self.producers)

    def topological_order(self) -> List[ResourceId]:
        return [rid for layer in self.ready_sets() for rid in layer]


def reverse_ready_sets(dependencies: Mapping[ResourceId, Iterable[ResourceId]]) -> List[List[ResourceId]]:
    """
    Ordem de destroy: dependentes antes de suas dependências.

    `dependencies[x]` são os produtores de `x`; arestas para fora do conjunto
    são ignoradas.
    """
    nodes = set(dependencies)
    reversed_edges: Dict[ResourceId, Set[ResourceId]] = {n: set() for n in nodes}
    for consumer, deps in dependencies.items():
        for producer in deps:
            if producer in nodes:
                reversed_edges[producer].add(consumer)
    return layer_ready_sets(reversed_edges)


def build_graph(
    records: Iterable[ResourceRecord],
    *,
    hint: Optional[Sequence[ResourceId]] = None,
) -> DependencyGraph:
    """
    Valida a configuração declarada e constrói o DAG de dependências.

    Args:
        records: Recursos declarados.
        hint: Ordem de apply opcional; cada entrada passa a depender da anterior.

    Returns:
        DependencyGraph: Grafo acíclico pronto para o Diff Engine e o scheduler.

    Raises:
        DuplicateIdentityError: Identidade (type, name) duplicada.
        InvalidResourceError: type/name inválidos.
        UnresolvedReferenceError: Referência a recurso não declarado.
        UnknownDependencyError: depends_on ou hint a recurso não declarado.
        CyclicDependencyError: Ciclo no grafo (com o ciclo completo).
    """
    registry = ResourceRegistry.from_records(records)
    record_list = registry.list()

    edges: List[DependencyEdge] = discover_edges(record_list)

    for record in record_list:
        for target in sorted(record.depends_on):
            if target not in registry:
                raise UnknownDependencyError.build(consumer=record.id, target=target)
            edges.append(DependencyEdge(consumer=record.id, producer=target, source="depends_on"))

    hint_ids = list(hint or [])
    for target in hint_ids:
        if target not in registry:
            raise UnknownDependencyError.build(consumer="<apply-order-hint>", target=target, source="hint")
    for earlier, later in zip(hint_ids, hint_ids[1:]):
        edges.append(DependencyEdge(consumer=later, producer=earlier, source="hint"))

    producers: Dict[ResourceId, Set[ResourceId]] = {rid: set() for rid in registry.ids()}
    consumers: Dict[ResourceId, Set[ResourceId]] = {rid: set() for rid in registry.ids()}
    for edge in edges:
        producers[edge.consumer].add(edge.producer)
        consumers[edge.producer].add(edge.consumer)

    cycle = find_cycle(producers)
    if cycle is not None:
        raise CyclicDependencyError.from_cycle(cycle)

    return DependencyGraph(
        records={rid: registry.get(rid) for rid in registry.ids()},
        edges=edges,
        producers=producers,
        consumers=consumers,
    )
