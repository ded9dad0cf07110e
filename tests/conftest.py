# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Infra.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (YAML como string)
- um provider falso registrado para os tipos network/subnet/instance
- State Store em memória e contexto de execução controlado (RunContext)
- uma fábrica de runs do Engine para cenários completos de apply

Invariantes:
    - Nenhuma fixture acessa rede ou providers reais
    - Dados retornados são determinísticos e isolados por teste

Limites explícitos:
    - Não substituir testes de integração com providers reais
    - Não conter lógica condicional complexa
"""

from typing import Optional

import pytest

from atlas_infra.core.config.settings import EngineSettings
from atlas_infra.core.engine import Engine
from atlas_infra.core.provider import ProviderRegistry
from atlas_infra.core.run_context import RunContext
from atlas_infra.core.state.store import InMemoryStateStore

from tests._helpers import NETWORK_CAPS, FakeProvider


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(NETWORK_CAPS)


@pytest.fixture
def registry(provider) -> ProviderRegistry:
    return ProviderRegistry({t: provider for t in NETWORK_CAPS})


@pytest.fixture
def memory_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def ctx() -> RunContext:
    return RunContext.new(config={})


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def run_engine(registry, memory_store):
    """
    Fábrica de runs do Engine.

    Cada chamada usa um RunContext novo sobre o mesmo provider e o mesmo
    State Store, simulando runs sucessivos do operador.
    """

    def _run(resources, *, settings: Optional[EngineSettings] = None, hint=None, ctx: Optional[RunContext] = None):
        run_ctx = ctx or RunContext.new(config={})
        engine = Engine(
            resources=resources,
            providers=registry,
            store=memory_store,
            ctx=run_ctx,
            settings=settings or EngineSettings(),
            hint=hint,
        )
        return engine.run()

    return _run


@pytest.fixture
def engine_defaults_yaml() -> str:
    """
    Conteúdo típico de `config.defaults.yaml` do engine.

    Fornecido como string para evitar I/O na fixture; os testes gravam o
    arquivo em `tmp_path` quando precisam exercitar o loader.
    """
    return """\
engine:
  parallelism: 10
  replace_strategy: destroy_before_create
  refresh: false
  state_dir: null
"""


@pytest.fixture
def engine_local_yaml() -> str:
    """Overrides locais (config.local.yaml)."""
    return """\
engine:
  parallelism: 4
  refresh: true
"""
