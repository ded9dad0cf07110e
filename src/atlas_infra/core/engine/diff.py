"""
Diff Engine: configuração declarada × estado armazenado.

Classificação por recurso:
    - sem StateRecord                                  → create
    - hash declarado == applied_hash                   → no-op
    - hash difere, todos os atributos alterados são
      "updatable" no descritor de capacidades          → update
    - hash difere, algum atributo alterado é imutável  → replace
    - StateRecord presente, recurso não declarado      → destroy
    - StateRecord inválido (StateCorruptionError)      → blocked

Com refresh ligado, um atributo declarado cujo valor real (lido do
provider) diverge do declarado conta como alterado: o drift vira update ou
replace mesmo com o hash igual ao do último apply.

O hash só pode ser calculado sobre valores concretos. Quando um recurso
referencia produtores que serão criados/alterados neste run, seus valores
reais ainda não existem: o item é marcado `deferred` e a ação definitiva é
decidida por `finalize`, chamado pelo scheduler imediatamente antes do
dispatch, quando os produtores já foram realizados.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from atlas_infra.core.exceptions import MissingAttributeError, StateCorruptionError
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.resources.hashing import compute_attributes_hash, values_equal
from atlas_infra.core.resources.references import referenced_targets, substitute
from atlas_infra.core.resources.types import (
    Mutability,
    PlanAction,
    PlanItem,
    ResourceId,
    ResourceRecord,
    StateRecord,
)
from atlas_infra.core.state.store import StateStore

from .failures import exception_to_error
from .graph import DependencyGraph


@dataclass
class Plan:
    """
    Plano de um run: um PlanItem por recurso declarado ou com estado.

    `known_realized` contém o estado dos recursos que não mudam neste run
    (no-op), fonte das substituições de referência já no momento do plano.
    """

    items: Dict[ResourceId, PlanItem] = field(default_factory=dict)
    known_realized: Dict[ResourceId, StateRecord] = field(default_factory=dict)

    def actions(self) -> Dict[str, str]:
        return {str(rid): item.action.value for rid, item in sorted(self.items.items())}

    def has_changes(self) -> bool:
        return any(item.action is not PlanAction.NOOP for item in self.items.values())

    def destroy_dependencies(self) -> Dict[ResourceId, Set[ResourceId]]:
        return {
            rid: set(item.dependencies)
            for rid, item in self.items.items()
            if item.action is PlanAction.DESTROY
        }

    def state_consumers(self, rid: ResourceId) -> List[ResourceId]:
        """Recursos que, no último apply, dependiam de `rid`."""
        return sorted(
            other
            for other, item in self.items.items()
            if item.prior is not None and rid in item.prior.dependencies
        )


def changed_attributes(prior: StateRecord, attributes: Mapping[str, Any]) -> Tuple[str, ...]:
    """
    Nomes dos atributos que diferem do último apply.

    Sem `applied_attributes` (estado migrado de v1), compara-se apenas as
    chaves declaradas com os atributos realizados.
    """
    if prior.applied_attributes is not None:
        baseline = prior.applied_attributes
        keys = set(attributes) | set(baseline)
    else:
        baseline = prior.realized_attributes
        keys = set(attributes)

    changed = []
    for key in sorted(keys):
        if key not in attributes or key not in baseline:
            changed.append(key)
        elif not values_equal(attributes[key], baseline[key]):
            changed.append(key)
    return tuple(changed)


def drifted_attributes(prior: StateRecord, attributes: Mapping[str, Any]) -> Tuple[str, ...]:
    """
    Atributos declarados cujo valor real (após refresh) difere do declarado.

    Só entram chaves que o provider reporta em `realized_attributes`;
    atributos não reportados não são considerados drift.
    """
    realized = prior.realized_attributes
    return tuple(
        key
        for key in sorted(attributes)
        if key in realized and not values_equal(attributes[key], realized[key])
    )


def classify(
    rid: ResourceId,
    prior: Optional[StateRecord],
    attributes: Mapping[str, Any],
    providers: ProviderRegistry,
    *,
    detect_drift: bool = False,
) -> Tuple[PlanAction, Tuple[str, ...]]:
    """
    Decide a ação de um recurso declarado com atributos concretos.

    Com `detect_drift`, atributos reais divergentes do declarado também
    contam como alterados, mesmo com o hash igual ao do último apply.
    """
    if prior is None:
        return PlanAction.CREATE, tuple(sorted(attributes))

    drifted = drifted_attributes(prior, attributes) if detect_drift else ()
    if compute_attributes_hash(attributes) == prior.applied_hash and not drifted:
        return PlanAction.NOOP, ()

    changed = tuple(sorted(set(changed_attributes(prior, attributes)) | set(drifted)))
    if all(providers.mutability(rid.type, name) is Mutability.UPDATABLE for name in changed):
        return PlanAction.UPDATE, changed
    return PlanAction.REPLACE, changed


def finalize(
    item: PlanItem,
    realized: Mapping[ResourceId, StateRecord],
    providers: ProviderRegistry,
    *,
    detect_drift: bool = False,
) -> Tuple[PlanItem, Dict[str, Any], str]:
    """
    Substitui referências com valores realizados e fixa a ação definitiva.

    Returns:
        (item final, atributos concretos, hash dos atributos concretos)

    Raises:
        MissingAttributeError: Produtor realizado não expõe o atributo referenciado.
    """
    if item.record is None:
        raise ValueError(f"finalize requer recurso declarado: {item.id}")
    attributes = substitute(item.record.attributes, realized, consumer=item.id)
    digest = compute_attributes_hash(attributes)
    action, changed = classify(item.id, item.prior, attributes, providers, detect_drift=detect_drift)
    return replace(item, action=action, changed=changed, deferred=False), attributes, digest


def plan_changes(
    graph: DependencyGraph,
    store: StateStore,
    providers: ProviderRegistry,
    *,
    detect_drift: bool = False,
) -> Plan:
    """
    Produz o plano do run comparando declarações com o State Store.

    Produtores são classificados antes de seus consumidores (ordem
    topológica), de modo que cada consumidor saiba se seus produtores terão
    valores novos neste run. `detect_drift` (refresh ligado) compara também
    o declarado com os atributos reais armazenados.
    """
    plan = Plan()

    for rid in graph.topological_order():
        record: ResourceRecord = graph.records[rid]
        deps = graph.dependencies_of(rid)

        try:
            prior = store.get(rid)
        except StateCorruptionError as exc:
            plan.items[rid] = PlanItem(
                id=rid,
                action=PlanAction.BLOCKED,
                dependencies=deps,
                record=record,
                error=exception_to_error(exc).to_dict(),
            )
            continue

        if prior is None:
            plan.items[rid] = PlanItem(id=rid, action=PlanAction.CREATE, dependencies=deps, record=record)
            continue

        pending = [
            target
            for target in referenced_targets(record)
            if target not in plan.known_realized
        ]
        if pending:
            # Valores dos produtores só existirão após o apply deles.
            plan.items[rid] = PlanItem(
                id=rid,
                action=PlanAction.UPDATE,
                dependencies=deps,
                record=record,
                prior=prior,
                deferred=True,
            )
            continue

        try:
            attributes = substitute(record.attributes, plan.known_realized, consumer=rid)
        except MissingAttributeError:
            # o erro é reportado no dispatch, local ao consumidor
            plan.items[rid] = PlanItem(
                id=rid,
                action=PlanAction.UPDATE,
                dependencies=deps,
                record=record,
                prior=prior,
                deferred=True,
            )
            continue

        action, changed = classify(rid, prior, attributes, providers, detect_drift=detect_drift)
        plan.items[rid] = PlanItem(
            id=rid,
            action=action,
            dependencies=deps,
            record=record,
            prior=prior,
            changed=changed,
        )
        if action is PlanAction.NOOP:
            plan.known_realized[rid] = prior

    declared = set(graph.records)
    for rid in store.identities():
        if rid in declared:
            continue
        try:
            prior = store.get(rid)
        except StateCorruptionError as exc:
            plan.items[rid] = PlanItem(
                id=rid,
                action=PlanAction.BLOCKED,
                error=exception_to_error(exc).to_dict(),
            )
            continue
        if prior is None:
            continue
        plan.items[rid] = PlanItem(
            id=rid,
            action=PlanAction.DESTROY,
            dependencies=prior.dependencies,
            prior=prior,
        )

    return plan

