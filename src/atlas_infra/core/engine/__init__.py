"""
Engine do Atlas Infra.

Componentes:
    - graph     → DAG de dependências, detecção de ciclos e ready sets
    - diff      → classificação create/update/replace/no-op/destroy
    - scheduler → despacho concorrente por ready set, limitado por parallelism
    - failures  → conversão de erros e consolidação em RunReport
    - engine    → orquestração do run completo

Invariantes:
    - Recursos só são aplicados após suas dependências terminarem com sucesso
    - Cada recurso tem exatamente um outcome por run
    - Erros de configuração abortam o run antes de qualquer chamada a provider
"""

from .diff import Plan, classify, finalize, plan_changes
from .engine import Engine, configuration_hash
from .failures import (
    FailureEntry,
    RunReport,
    RunStatus,
    configuration_failure,
    exception_to_error,
    summarize,
)
from .graph import DependencyGraph, build_graph, find_cycle, layer_ready_sets, reverse_ready_sets
from .scheduler import ApplyScheduler

__all__ = [
    "ApplyScheduler",
    "DependencyGraph",
    "Engine",
    "FailureEntry",
    "Plan",
    "RunReport",
    "RunStatus",
    "build_graph",
    "classify",
    "configuration_failure",
    "configuration_hash",
    "exception_to_error",
    "finalize",
    "find_cycle",
    "layer_ready_sets",
    "plan_changes",
    "reverse_ready_sets",
    "summarize",
]
