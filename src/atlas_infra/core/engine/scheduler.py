"""
Scheduler de apply: despacho concorrente por ready sets.

Fluxo de um run:
    1. Fase forward (create/update/replace/no-op), camada a camada na ordem
       topológica. Itens de uma mesma camada são despachados em paralelo,
       limitados por `engine.parallelism`.
    2. Fase de destroy, em ordem topológica reversa (dependentes antes de
       suas dependências), sobre os recursos que deixaram de ser declarados.

Replace com destroy antes do create:
    - Antes de destruir a instância anterior, o scheduler destrói (em ordem
      reversa) os recursos que não sobrevivem à troca: consumidores que
      referenciam o recurso substituído em atributos imutáveis e recursos
      não declarados cujo estado dependia dele
    - Consumidores destruídos nessa cascata são recriados quando chegam à
      sua camada (ação reportada: replace)

Regras de despacho:
    - Um item só é despachado quando todas as suas dependências terminaram
      com `success`; caso contrário é `skipped` (dependency_failed)
    - Itens `blocked` (estado corrompido) nunca são despachados e terminam
      `failed`, propagando skip aos dependentes
    - Com o run cancelado, nenhum item novo é despachado (skipped/cancelled);
      chamadas já em andamento terminam e têm o resultado registrado
    - Falhas são locais ao recurso: ramos independentes do grafo continuam

O estado de cada recurso é gravado no State Store assim que a ação no
provider termina com sucesso, nunca em lote no fim do run.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from atlas_infra.core.config.settings import EngineSettings, ReplaceStrategy
from atlas_infra.core.exceptions import ProviderError
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.resources.references import iter_references
from atlas_infra.core.resources.types import (
    ApplyOutcome,
    ApplyResult,
    Mutability,
    PlanAction,
    PlanItem,
    ResourceId,
    StateRecord,
)
from atlas_infra.core.run_context import RunContext
from atlas_infra.core.state.store import StateStore
from atlas_infra.core.traceability import (
    resource_failed,
    resource_finished,
    resource_skipped,
    resource_started,
)

from .diff import Plan, finalize
from .failures import exception_to_error
from .graph import layer_ready_sets, reverse_ready_sets


SKIP_DEPENDENCY_FAILED = "dependency_failed"
SKIP_DEPENDENT_FAILED = "dependent_failed"
SKIP_CANCELLED = "cancelled"

_Outcome = Tuple[ApplyResult, Optional[StateRecord]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_prior(item: PlanItem) -> StateRecord:
    if item.prior is None:
        raise ValueError(f"Ação '{item.action.value}' requer estado anterior: {item.id}")
    return item.prior


class ApplyScheduler:
    """Executa um `Plan` contra os providers, gravando estado por recurso."""

    def __init__(
        self,
        *,
        providers: ProviderRegistry,
        store: StateStore,
        settings: EngineSettings,
        ctx: RunContext,
    ):
        self.providers = providers
        self.store = store
        self.settings = settings
        self.ctx = ctx

        self._plan = Plan()
        self._lock = threading.Lock()
        # destroys antecipados por replace (cascata), um Future por recurso
        self._retired: Dict[ResourceId, Future] = {}

    # ------------------------------------------------------------------
    # Entrada pública
    # ------------------------------------------------------------------
    def apply(self, plan: Plan) -> Dict[ResourceId, ApplyResult]:
        results: Dict[ResourceId, ApplyResult] = {}
        realized: Dict[ResourceId, StateRecord] = dict(plan.known_realized)
        self._plan = plan
        self._retired = {}

        with ThreadPoolExecutor(
            max_workers=self.settings.parallelism,
            thread_name_prefix="atlas-apply",
        ) as pool:
            self._forward_phase(plan, pool, results, realized)
            self._destroy_phase(plan, pool, results)

        return results

    # ------------------------------------------------------------------
    # Fase forward
    # ------------------------------------------------------------------
    def _forward_phase(
        self,
        plan: Plan,
        pool: ThreadPoolExecutor,
        results: Dict[ResourceId, ApplyResult],
        realized: Dict[ResourceId, StateRecord],
    ) -> None:
        forward = {
            rid: set(item.dependencies)
            for rid, item in plan.items.items()
            if item.action is not PlanAction.DESTROY
        }

        for layer in layer_ready_sets(forward):
            snapshot = dict(realized)
            futures: List[Tuple[ResourceId, Future]] = []

            for rid in layer:
                item = plan.items[rid]
                if self.ctx.cancelled:
                    self._skip(results, item, SKIP_CANCELLED)
                    continue
                if item.action is PlanAction.BLOCKED:
                    self._fail(results, item.id, item.action, item.error or {})
                    continue
                if not self._all_succeeded(results, item.dependencies):
                    self._skip(results, item, SKIP_DEPENDENCY_FAILED)
                    continue
                futures.append((rid, pool.submit(self._apply_item, item, snapshot)))

            for rid, future in futures:
                result, state = future.result()
                results[rid] = result
                if result.outcome is ApplyOutcome.SUCCESS and state is not None:
                    realized[rid] = state

    def _apply_item(self, item: PlanItem, realized: Mapping[ResourceId, StateRecord]) -> _Outcome:
        rid = item.id
        if self.ctx.cancelled:
            return self._skipped_result(item, SKIP_CANCELLED), None

        # a instância anterior já foi destruída pela cascata de um replace
        rebuilt = self._was_retired(rid)
        if rebuilt:
            item = replace(item, prior=None)

        action = item.action
        try:
            item, attributes, digest = finalize(item, realized, self.providers,
                                                detect_drift=self.settings.refresh)
            action = PlanAction.REPLACE if rebuilt else item.action

            if action is PlanAction.NOOP:
                state = self._refresh_dependencies(item)
                self._record_success(item.id, action, state.provider_id, started=None)
                return ApplyResult(id=rid, action=action, outcome=ApplyOutcome.SUCCESS,
                                   provider_id=state.provider_id), state

            started = self._record_start(rid, action)
            if action is PlanAction.CREATE or rebuilt:
                state = self._create(item, attributes, digest)
            elif action is PlanAction.UPDATE:
                state = self._update(item, attributes, digest)
            else:
                state = self._replace(item, attributes, digest)

        except Exception as exc:
            error = exception_to_error(exc, resource=rid).to_dict()
            self._fail(None, rid, action, error)
            return ApplyResult(id=rid, action=action, outcome=ApplyOutcome.FAILED, error=error), None

        self._record_success(rid, action, state.provider_id, started=started)
        return ApplyResult(id=rid, action=action, outcome=ApplyOutcome.SUCCESS,
                           provider_id=state.provider_id), state

    def _new_state(
        self,
        item: PlanItem,
        realized_attributes: Optional[Dict[str, Any]],
        provider_id: str,
        attributes: Dict[str, Any],
        digest: str,
    ) -> StateRecord:
        return StateRecord(
            id=item.id,
            realized_attributes=dict(realized_attributes or {}),
            provider_id=str(provider_id),
            applied_hash=digest,
            applied_attributes=attributes,
            dependencies=item.dependencies,
        )

    def _create(self, item: PlanItem, attributes: Dict[str, Any], digest: str) -> StateRecord:
        provider = self.providers.for_type(item.id.type)
        realized_attributes, provider_id = provider.create(item.id.type, attributes)
        state = self._new_state(item, realized_attributes, provider_id, attributes, digest)
        self.store.put(state)
        return state

    def _update(self, item: PlanItem, attributes: Dict[str, Any], digest: str) -> StateRecord:
        prior = _require_prior(item)
        provider = self.providers.for_type(item.id.type)
        realized_attributes = provider.update(item.id.type, prior.provider_id, attributes)
        state = self._new_state(item, realized_attributes, prior.provider_id, attributes, digest)
        self.store.put(state)
        return state

    def _replace(self, item: PlanItem, attributes: Dict[str, Any], digest: str) -> StateRecord:
        """
        Replace = destroy + create da mesma identidade.

        `create_before_destroy` só é usado quando configurado e suportado pelo
        provider para o tipo; caso contrário, destroy antes do create, com a
        cascata de dependentes destruída primeiro. Na ordem padrão, se o
        create falhar o recurso fica ausente e sem estado.
        """
        rid = item.id
        provider = self.providers.for_type(rid.type)
        old_id = _require_prior(item).provider_id

        create_first = (
            self.settings.replace_strategy is ReplaceStrategy.CREATE_BEFORE_DESTROY
            and self.providers.supports_create_before_destroy(rid.type)
        )

        if create_first:
            realized_attributes, provider_id = provider.create(rid.type, attributes)
            state = self._new_state(item, realized_attributes, provider_id, attributes, digest)
            self.store.put(state)
            self.ctx.log(resource=str(rid), level="info", message="replacement created",
                         provider_id=state.provider_id, previous_provider_id=old_id)
            try:
                provider.destroy(rid.type, old_id)
            except Exception as exc:
                raise ProviderError(
                    message=f"Replacement of '{rid}' created, but the previous instance could not be destroyed",
                    details={"resource": str(rid), "orphaned_provider_id": old_id, "reason": str(exc)},
                    hint="Remova a instância anterior manualmente; o estado já aponta para a nova.",
                ) from exc
            return state

        for dependent in self._replacement_cascade(rid):
            self._retire_for(dependent, rid)

        provider.destroy(rid.type, old_id)
        self.store.delete(rid)
        self.ctx.log(resource=str(rid), level="info", message="previous instance destroyed",
                     provider_id=old_id)
        return self._create(item, attributes, digest)

    def _refresh_dependencies(self, item: PlanItem) -> StateRecord:
        """No-op: nenhuma chamada a provider; só regrava dependências alteradas."""
        prior = _require_prior(item)
        if prior.dependencies == item.dependencies:
            return prior
        state = replace(prior, dependencies=item.dependencies)
        self.store.put(state)
        return state

    # ------------------------------------------------------------------
    # Cascata de replace (destroy antes do create)
    # ------------------------------------------------------------------
    def _goes_with(self, item: PlanItem, doomed: Set[ResourceId]) -> bool:
        """`item` não sobrevive à destruição dos recursos em `doomed`?"""
        if item.prior is None:
            return False
        if item.action is PlanAction.DESTROY:
            return bool(item.prior.dependencies & doomed)
        if item.record is None:
            return False
        for key, value in item.record.attributes.items():
            if self.providers.mutability(item.id.type, key) is Mutability.UPDATABLE:
                continue
            if any(reference.target in doomed for _, reference in iter_references(value)):
                return True
        return False

    def _replacement_cascade(self, rid: ResourceId) -> List[PlanItem]:
        """
        Recursos a destruir antes da instância anterior de `rid`, já em ordem
        de destroy (dependentes primeiro). Fecho transitivo sobre `_goes_with`.
        """
        items = self._plan.items
        doomed: Set[ResourceId] = {rid}
        grew = True
        while grew:
            grew = False
            for other in sorted(items):
                if other not in doomed and self._goes_with(items[other], doomed):
                    doomed.add(other)
                    grew = True
        doomed.discard(rid)

        dependencies = {
            other: set(items[other].dependencies) | set(_require_prior(items[other]).dependencies)
            for other in doomed
        }
        return [items[other] for layer in reverse_ready_sets(dependencies) for other in layer]

    def _retire_for(self, item: PlanItem, producer: ResourceId) -> None:
        """
        Destrói `item` uma única vez por run; threads concorrentes que precisem
        do mesmo destroy aguardam o resultado do primeiro.
        """
        with self._lock:
            future = self._retired.get(item.id)
            owner = future is None
            if owner:
                future = Future()
                self._retired[item.id] = future

        if owner:
            try:
                self._retire(item, producer)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(None)

        try:
            future.result()
        except Exception as exc:
            raise ProviderError(
                message=f"Could not destroy '{item.id}' before replacing '{producer}'",
                details={"resource": str(producer), "dependent": str(item.id), "reason": str(exc)},
                hint="A instância anterior foi mantida; corrija o dependente e rode novamente.",
            ) from exc

    def _retire(self, item: PlanItem, producer: ResourceId) -> None:
        rid = item.id
        prior = _require_prior(item)

        if item.action is PlanAction.DESTROY:
            # recurso não declarado: este é o seu destroy definitivo
            started = self._record_start(rid, PlanAction.DESTROY)
            try:
                self.providers.for_type(rid.type).destroy(rid.type, prior.provider_id)
                self.store.delete(rid)
            except Exception as exc:
                self._fail(None, rid, PlanAction.DESTROY, exception_to_error(exc, resource=rid).to_dict())
                raise
            self._record_success(rid, PlanAction.DESTROY, prior.provider_id, started=started)
            return

        self.providers.for_type(rid.type).destroy(rid.type, prior.provider_id)
        self.store.delete(rid)
        self.ctx.log(resource=str(rid), level="info", message="destroyed for replacement",
                     provider_id=prior.provider_id, replaced=str(producer))

    def _was_retired(self, rid: ResourceId) -> bool:
        with self._lock:
            future = self._retired.get(rid)
        return future is not None and future.done() and future.exception() is None

    # ------------------------------------------------------------------
    # Fase de destroy
    # ------------------------------------------------------------------
    def _destroy_phase(
        self,
        plan: Plan,
        pool: ThreadPoolExecutor,
        results: Dict[ResourceId, ApplyResult],
    ) -> None:
        for layer in reverse_ready_sets(plan.destroy_dependencies()):
            futures: List[Tuple[ResourceId, Future]] = []

            for rid in layer:
                item = plan.items[rid]
                retired = self._retired.get(rid)
                if retired is not None:
                    # já destruído pela cascata de um replace na fase forward
                    results[rid] = self._retired_result(item, retired)
                    continue
                if self.ctx.cancelled:
                    self._skip(results, item, SKIP_CANCELLED)
                    continue
                # recursos que dependiam deste precisam ter terminado com sucesso
                if not self._all_succeeded(results, plan.state_consumers(rid)):
                    self._skip(results, item, SKIP_DEPENDENT_FAILED)
                    continue
                futures.append((rid, pool.submit(self._destroy_item, item)))

            for rid, future in futures:
                results[rid] = future.result()

    def _destroy_item(self, item: PlanItem) -> ApplyResult:
        rid = item.id
        if self.ctx.cancelled:
            return self._skipped_result(item, SKIP_CANCELLED)

        started = self._record_start(rid, PlanAction.DESTROY)
        try:
            prior = _require_prior(item)
            self.providers.for_type(rid.type).destroy(rid.type, prior.provider_id)
            self.store.delete(rid)
        except Exception as exc:
            error = exception_to_error(exc, resource=rid).to_dict()
            self._fail(None, rid, PlanAction.DESTROY, error)
            return ApplyResult(id=rid, action=PlanAction.DESTROY, outcome=ApplyOutcome.FAILED, error=error)

        self._record_success(rid, PlanAction.DESTROY, prior.provider_id, started=started)
        return ApplyResult(id=rid, action=PlanAction.DESTROY, outcome=ApplyOutcome.SUCCESS,
                           provider_id=prior.provider_id)

    @staticmethod
    def _retired_result(item: PlanItem, retired: Future) -> ApplyResult:
        exc = retired.exception()
        if exc is not None:
            error = exception_to_error(exc, resource=item.id).to_dict()
            return ApplyResult(id=item.id, action=PlanAction.DESTROY, outcome=ApplyOutcome.FAILED, error=error)
        return ApplyResult(id=item.id, action=PlanAction.DESTROY, outcome=ApplyOutcome.SUCCESS,
                           provider_id=_require_prior(item).provider_id)

    # ------------------------------------------------------------------
    # Helpers de resultado, log e manifest
    # ------------------------------------------------------------------
    @staticmethod
    def _all_succeeded(results: Mapping[ResourceId, ApplyResult], rids: Iterable[ResourceId]) -> bool:
        for rid in rids:
            result = results.get(rid)
            if result is None or result.outcome is not ApplyOutcome.SUCCESS:
                return False
        return True

    def _skipped_result(self, item: PlanItem, reason: str) -> ApplyResult:
        self.ctx.log(resource=str(item.id), level="warning", message="skipped",
                     action=item.action.value, reason=reason)
        with self.ctx.locked():
            if self.ctx.manifest is not None:
                resource_skipped(self.ctx.manifest, resource=str(item.id), ts=_now(),
                                 action=item.action.value, reason=reason)
        return ApplyResult(id=item.id, action=item.action, outcome=ApplyOutcome.SKIPPED, reason=reason)

    def _skip(self, results: Dict[ResourceId, ApplyResult], item: PlanItem, reason: str) -> None:
        results[item.id] = self._skipped_result(item, reason)

    def _fail(
        self,
        results: Optional[Dict[ResourceId, ApplyResult]],
        rid: ResourceId,
        action: PlanAction,
        error: Dict[str, Any],
    ) -> None:
        self.ctx.log(resource=str(rid), level="error", message="failed",
                     action=action.value, error_type=error.get("type"))
        with self.ctx.locked():
            if self.ctx.manifest is not None:
                resource_failed(self.ctx.manifest, resource=str(rid), ts=_now(),
                                action=action.value, error=error)
        if results is not None:
            results[rid] = ApplyResult(id=rid, action=action, outcome=ApplyOutcome.FAILED, error=error)

    def _record_start(self, rid: ResourceId, action: PlanAction) -> datetime:
        ts = _now()
        self.ctx.log(resource=str(rid), level="info", message="started", action=action.value)
        with self.ctx.locked():
            if self.ctx.manifest is not None:
                resource_started(self.ctx.manifest, resource=str(rid), action=action.value, ts=ts)
        return ts

    def _record_success(
        self,
        rid: ResourceId,
        action: PlanAction,
        provider_id: Optional[str],
        *,
        started: Optional[datetime],
    ) -> None:
        self.ctx.log(resource=str(rid), level="info", message="finished",
                     action=action.value, provider_id=provider_id)
        with self.ctx.locked():
            if self.ctx.manifest is not None:
                if started is None:
                    resource_started(self.ctx.manifest, resource=str(rid), action=action.value, ts=_now())
                resource_finished(self.ctx.manifest, resource=str(rid), ts=_now(),
                                  action=action.value, provider_id=provider_id)
