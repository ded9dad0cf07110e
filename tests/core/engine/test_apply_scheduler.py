# tests/core/engine/test_apply_scheduler.py
"""
Testes do scheduler de apply (despacho concorrente por ready sets).

Os testes asseguram que:
- falhas são locais: dependentes transitivos viram `skipped`, ramos
  independentes continuam
- o paralelismo respeita o limite configurado
- o cancelamento impede novos despachos sem perder resultados em andamento
- o estado é gravado por recurso, apenas após sucesso
"""

from atlas_infra.core.config.settings import EngineSettings
from atlas_infra.core.engine.diff import Plan, plan_changes
from atlas_infra.core.engine.graph import build_graph
from atlas_infra.core.engine.scheduler import (
    SKIP_CANCELLED,
    SKIP_DEPENDENCY_FAILED,
    ApplyScheduler,
)
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.resources.types import ApplyOutcome, PlanAction, PlanItem, ResourceId
from atlas_infra.core.run_context import RunContext
from atlas_infra.core.state.store import InMemoryStateStore

from tests._helpers import FakeProvider, ref, res


def rid(text):
    return ResourceId.parse(text)


def apply(records, registry, store, *, settings=None, ctx=None):
    plan = plan_changes(build_graph(records), store, registry)
    scheduler = ApplyScheduler(
        providers=registry,
        store=store,
        settings=settings or EngineSettings(),
        ctx=ctx or RunContext.new(),
    )
    return scheduler.apply(plan)


def test_failure_skips_only_transitive_dependents(provider, registry, memory_store):
    provider.fail_create = lambda t, attrs: t == "subnet"
    records = [
        res("network", "n1"),
        res("subnet", "s1", network_id=ref("network.n1.id")),
        res("instance", "i1", subnet_id=ref("subnet.s1.id")),
        res("network", "n2"),
    ]

    results = apply(records, registry, memory_store)

    assert results[rid("network.n1")].outcome is ApplyOutcome.SUCCESS
    assert results[rid("network.n2")].outcome is ApplyOutcome.SUCCESS
    assert results[rid("subnet.s1")].outcome is ApplyOutcome.FAILED
    assert results[rid("subnet.s1")].error["type"] == "PROVIDER_ERROR"
    skipped = results[rid("instance.i1")]
    assert skipped.outcome is ApplyOutcome.SKIPPED
    assert skipped.reason == SKIP_DEPENDENCY_FAILED

    assert memory_store.identities() == [rid("network.n1"), rid("network.n2")]
    assert ("create", "instance.i1") not in provider.ops()


def test_realized_values_flow_to_consumers(provider, registry, memory_store):
    records = [
        res("network", "n1", cidr="10.0.0.0/16"),
        res("subnet", "s1", network_id=ref("network.n1.id"), cidr=ref("network.n1.cidr")),
    ]
    apply(records, registry, memory_store)

    n1 = memory_store.get(rid("network.n1"))
    s1 = memory_store.get(rid("subnet.s1"))
    assert s1.applied_attributes["network_id"] == n1.provider_id
    assert s1.applied_attributes["cidr"] == "10.0.0.0/16"
    assert s1.dependencies == frozenset({rid("network.n1")})


def test_unexpected_exception_is_engine_execution_error(provider, registry, memory_store):
    def boom(t, attrs):
        raise RuntimeError("socket closed")

    provider.on_create = boom
    results = apply([res("network", "n1")], registry, memory_store)

    error = results[rid("network.n1")].error
    assert error["type"] == "ENGINE_EXECUTION_ERROR"
    assert error["details"]["exc_type"] == "RuntimeError"


def test_parallelism_is_bounded(memory_store):
    provider = FakeProvider(delay=0.05)
    registry = ProviderRegistry({"bucket": provider})
    records = [res("bucket", f"b{i}") for i in range(6)]

    apply(records, registry, memory_store, settings=EngineSettings(parallelism=2))

    assert provider.max_active <= 2
    assert len(memory_store.identities()) == 6


def test_independent_resources_run_concurrently():
    provider = FakeProvider(delay=0.05)
    registry = ProviderRegistry({"bucket": provider})
    records = [res("bucket", f"b{i}") for i in range(6)]

    apply(records, registry, InMemoryStateStore(), settings=EngineSettings(parallelism=10))

    assert provider.max_active >= 2


def test_cancel_stops_new_dispatch(memory_store):
    """
    Com parallelism=1 o primeiro create cancela o run: a chamada em
    andamento termina e é registrada; o restante não é despachado.
    """
    provider = FakeProvider()
    registry = ProviderRegistry({"bucket": provider, "policy": provider})
    ctx = RunContext.new()
    provider.on_create = lambda t, attrs: ctx.cancel()

    records = [
        res("bucket", "a"),
        res("bucket", "b"),
        res("policy", "p", bucket=ref("bucket.a.id")),
    ]
    results = apply(records, registry, memory_store, settings=EngineSettings(parallelism=1), ctx=ctx)

    assert results[rid("bucket.a")].outcome is ApplyOutcome.SUCCESS
    assert results[rid("bucket.b")].reason == SKIP_CANCELLED
    assert results[rid("policy.p")].reason == SKIP_CANCELLED
    assert memory_store.identities() == [rid("bucket.a")]
    assert provider.ops() == [("create", "bucket.a")]


def test_blocked_item_fails_and_skips_dependents(registry, memory_store):
    memory_store.put_document(rid("network.n1"), {"schema_version": 99})
    records = [res("network", "n1"), res("subnet", "s1", network_id=ref("network.n1.id"))]

    results = apply(records, registry, memory_store)

    assert results[rid("network.n1")].action is PlanAction.BLOCKED
    assert results[rid("network.n1")].outcome is ApplyOutcome.FAILED
    assert results[rid("network.n1")].error["type"] == "STATE_CORRUPTION"
    assert results[rid("subnet.s1")].reason == SKIP_DEPENDENCY_FAILED


def test_events_are_logged_per_resource(registry, memory_store):
    ctx = RunContext.new()
    apply([res("network", "n1")], registry, memory_store, ctx=ctx)

    messages = [(e["resource"], e["message"]) for e in ctx.events]
    assert messages == [("network.n1", "started"), ("network.n1", "finished")]
    assert all(e["run_id"] == ctx.run_id for e in ctx.events)


def test_destroy_without_prior_state_is_reported_as_failure(provider, registry, memory_store):
    """Item de destroy sem estado anterior falha de forma explícita, sem derrubar o run."""
    n1 = rid("network.n1")
    plan = Plan(items={n1: PlanItem(id=n1, action=PlanAction.DESTROY)})
    scheduler = ApplyScheduler(providers=registry, store=memory_store, settings=EngineSettings(), ctx=RunContext.new())

    results = scheduler.apply(plan)

    assert results[n1].outcome is ApplyOutcome.FAILED
    assert results[n1].error["type"] == "ENGINE_EXECUTION_ERROR"
    assert results[n1].error["details"]["exc_type"] == "ValueError"
    assert provider.calls == []


def test_shared_consumer_is_destroyed_once_for_concurrent_replaces(provider, registry, memory_store):
    """
    s1 referencia n1 e n2 por atributos imutáveis; os dois produtores são
    substituídos na mesma camada e s1 é destruído uma única vez.
    """
    def records(suffix):
        return [
            res("network", "n1", cidr=f"10.1.0.0/{suffix}"),
            res("network", "n2", cidr=f"10.2.0.0/{suffix}"),
            res("subnet", "s1", network_id=ref("network.n1.id"), cidr=ref("network.n2.cidr")),
        ]

    apply(records(16), registry, memory_store)
    s1_pid = memory_store.get(rid("subnet.s1")).provider_id
    provider.reset_calls()

    results = apply(records(20), registry, memory_store)

    assert provider.ops().count(("destroy", s1_pid)) == 1
    assert provider.ops().count(("create", "subnet.s1")) == 1
    assert provider.ops()[-1] == ("create", "subnet.s1")
    assert {r.outcome for r in results.values()} == {ApplyOutcome.SUCCESS}
    assert results[rid("subnet.s1")].action is PlanAction.REPLACE

    s1 = memory_store.get(rid("subnet.s1"))
    assert s1.applied_attributes["network_id"] == memory_store.get(rid("network.n1")).provider_id
    assert s1.applied_attributes["cidr"] == "10.2.0.0/20"
