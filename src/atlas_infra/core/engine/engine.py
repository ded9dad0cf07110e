"""
Engine de provisionamento do Atlas Infra.

Orquestra um run completo:
    1. Validação estrutural (identidades, referências, depends_on, hint,
       ciclos) e verificação de providers para todos os tipos envolvidos
    2. Refresh opcional do estado a partir dos providers (`engine.refresh`)
    3. Diff contra o State Store → Plan
    4. Apply concorrente por ready sets (ApplyScheduler)
    5. Consolidação em RunReport (status 0/1/2)

Erros de configuração são detectados nos passos 1 e abortam o run antes de
qualquer chamada a provider (status 2). Falhas de provider são locais ao
recurso e resultam em status 1.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence

from atlas_infra import __version__
from atlas_infra.core.config.hashing import compute_config_hash
from atlas_infra.core.config.settings import EngineSettings
from atlas_infra.core.exceptions import ConfigurationError, StateCorruptionError
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.resources.hashing import compute_attributes_hash
from atlas_infra.core.resources.types import ResourceId, ResourceRecord
from atlas_infra.core.run_context import RunContext
from atlas_infra.core.state.store import StateStore
from atlas_infra.core.traceability import add_event, create_manifest

from .diff import Plan, plan_changes
from .failures import RunReport, configuration_failure, exception_to_error, summarize
from .graph import DependencyGraph, build_graph
from .scheduler import ApplyScheduler


def configuration_hash(records: Iterable[ResourceRecord]) -> str:
    """Hash das declarações do run (referências entram como texto simbólico)."""
    doc = {
        str(record.id): {
            "attributes": record.attributes,
            "depends_on": sorted(str(d) for d in record.depends_on),
        }
        for record in records
    }
    return compute_attributes_hash(doc, allow_references=True)


class Engine:
    """Engine canônico do Atlas Infra (grafo + diff + scheduler)."""

    def __init__(
        self,
        *,
        resources: Sequence[ResourceRecord],
        providers: ProviderRegistry,
        store: StateStore,
        ctx: RunContext,
        settings: Optional[EngineSettings] = None,
        hint: Optional[Sequence[ResourceId]] = None,
    ):
        self.resources: List[ResourceRecord] = list(resources)
        self.providers = providers
        self.store = store
        self.ctx = ctx
        self.settings = settings or EngineSettings.from_config(ctx.config)
        self.hint = list(hint) if hint is not None else None

    # ------------------------------------------------------------------
    # Validação
    # ------------------------------------------------------------------
    def validate(self) -> DependencyGraph:
        """
        Valida a configuração e retorna o DAG.

        Raises:
            ConfigurationError: Qualquer erro estrutural ou tipo sem provider.
        """
        graph = build_graph(self.resources, hint=self.hint)
        declared_types = {rid.type for rid in graph.records}
        stored_types = {rid.type for rid in self.store.identities()}
        self.providers.ensure_types(declared_types | stored_types)
        return graph

    def plan(self) -> Plan:
        """Plano do run sem chamadas a provider (nem refresh)."""
        return plan_changes(self.validate(), self.store, self.providers, detect_drift=self.settings.refresh)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def refresh(self) -> None:
        """
        Atualiza `realized_attributes` a partir de `provider.read`.

        - Tipos sem `read` são ignorados
        - `read` retornando None: o recurso não existe mais; o estado é
          removido e o recurso será recriado pelo diff
        - Registros corrompidos ficam para o diff (blocked)
        - Qualquer falha do `read` (ProviderError, timeout, erro inesperado do
          provider) vira warning do recurso; o estado anterior é mantido
        """
        for rid in self.store.identities():
            if not self.providers.can_read(rid.type):
                continue
            try:
                prior = self.store.get(rid)
            except StateCorruptionError:
                continue
            if prior is None:
                continue

            provider = self.providers.for_type(rid.type)
            try:
                current = provider.read(rid.type, prior.provider_id)  # type: ignore[attr-defined]
            except Exception as exc:
                error = exception_to_error(exc, resource=rid)
                self.ctx.add_warning(resource=str(rid), message=f"refresh falhou: {error.message}")
                self.ctx.log(resource=str(rid), level="warning", message="refresh failed", error_type=error.type)
                continue

            if current is None:
                self.store.delete(rid)
                self.ctx.add_warning(resource=str(rid), message="recurso removido fora do Atlas; será recriado")
                self.ctx.log(resource=str(rid), level="warning", message="resource vanished",
                             provider_id=prior.provider_id)
                continue

            if dict(current) != prior.realized_attributes:
                self.store.put(replace(prior, realized_attributes=dict(current)))
                self.ctx.log(resource=str(rid), level="info", message="state refreshed",
                             provider_id=prior.provider_id)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def _ensure_manifest(self, *, validated: bool) -> None:
        """
        Cria o manifest do run quando o contexto ainda não possui um.

        O hash das declarações só é calculado sobre uma configuração validada;
        num run abortado por erro de configuração ele fica ausente (None).
        """
        if self.ctx.manifest is not None:
            return
        self.ctx.manifest = create_manifest(
            run_id=self.ctx.run_id,
            started_at=self.ctx.created_at,
            atlas_version=__version__,
            settings_hash=compute_config_hash(self.settings),
            configuration_hash=configuration_hash(self.resources) if validated else None,
        )

    def _event(self, event_type: str, **payload: Any) -> None:
        with self.ctx.locked():
            add_event(self.ctx.manifest, event_type=event_type, ts=datetime.now(timezone.utc), payload=payload)

    def run(self) -> RunReport:
        try:
            self.validate()
        except ConfigurationError as exc:
            self._ensure_manifest(validated=False)
            report = configuration_failure(exc)
            self.ctx.log(resource=None, level="error", message="configuration error",
                         error_type=(report.configuration_error or {}).get("type"))
            self._event("run_aborted", status=report.exit_code, error=report.configuration_error)
            return report

        self._ensure_manifest(validated=True)

        if self.settings.refresh:
            self.refresh()

        plan = self.plan()
        self.ctx.log(resource=None, level="info", message="plan ready", actions=plan.actions())
        self._event("plan_ready", actions=plan.actions())

        scheduler = ApplyScheduler(
            providers=self.providers,
            store=self.store,
            settings=self.settings,
            ctx=self.ctx,
        )
        results = scheduler.apply(plan)

        report = summarize(results, cancelled=self.ctx.cancelled)
        self.ctx.log(resource=None, level="info", message="run finished",
                     status=report.exit_code, counts=report.counts)
        self._event("run_finished", status=report.exit_code, counts=dict(report.counts),
                    cancelled=report.cancelled)
        return report
