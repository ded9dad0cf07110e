# src/atlas_infra/core/config/__init__.py

"""
Camada de configuração do Atlas Infra.

Este pacote carrega, mescla, valida e identifica a configuração operacional
do engine (paralelismo, estratégia de replace, refresh, diretório de estado).

Responsabilidades do pacote:
    - Leitura de documentos YAML/JSON (defaults + overrides locais)
    - Resolução via deep-merge determinístico
    - Interpretação tipada da seção `engine` (EngineSettings)
    - Hash canônico para o manifest de apply

Limites explícitos:
    - Não interpreta recursos declarados
    - Não interage com providers ou State Store
"""

from .errors import ConfigError, InvalidSettingError
from .hashing import compute_config_hash
from .loader import load_config, read_document
from .merge import deep_merge
from .settings import DEFAULT_ENGINE_CONFIG, EngineSettings, ReplaceStrategy

__all__ = [
    "ConfigError",
    "InvalidSettingError",
    "compute_config_hash",
    "load_config",
    "read_document",
    "deep_merge",
    "DEFAULT_ENGINE_CONFIG",
    "EngineSettings",
    "ReplaceStrategy",
]
