# src/atlas_infra/core/config/errors.py
"""
Exceções canônicas da camada de configuração do engine.

As exceções aqui definidas representam falhas ao carregar, mesclar ou
interpretar a configuração operacional do engine (paralelismo, estratégia
de replace, refresh, diretório de estado) e os documentos lidos do disco.

Elas não se confundem com `ConfigurationError` (atlas_infra.core.exceptions),
que descreve erros no grafo de recursos declarado.

Invariantes:
    - Todas as exceções deste módulo herdam de `ConfigError`
    - Nenhuma exceção representa falha de provider ou de estado
"""


class ConfigError(Exception):
    """Exceção base para erros de configuração do engine."""


class ConfigFileNotFoundError(ConfigError):
    """Arquivo de configuração ou documento solicitado não existe."""


class DefaultsNotFoundError(ConfigFileNotFoundError):
    """
    O arquivo de defaults é obrigatório; sua ausência invalida o run.

    Limites explícitos:
        - Não tenta inferir ou criar defaults automaticamente
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo não suportado.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do documento não é um mapa (`dict`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"parallelism": 10}}
        - override: {"engine": "fast"}
    """


class InvalidSettingError(ConfigError):
    """Valor inválido na seção `engine` da configuração."""


class MalformedDocumentError(ConfigError):
    """O documento existe mas não é YAML/JSON sintaticamente válido."""
