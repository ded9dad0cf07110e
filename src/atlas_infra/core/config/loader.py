"""
Loader canônico de configuração do Atlas Infra.

Este módulo é responsável por ler documentos YAML/JSON do disco e resolver
a configuração efetiva do engine a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional)

O mesmo leitor (`read_document`) é usado pelos loaders de documentos de
recursos e do hint de ordem de apply.

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Erros estruturais são tratados como falhas fatais
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não interpreta a seção `engine` (ver settings.py)
    - Não interage com Engine, providers ou State Store
"""

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import json

import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    ConfigFileNotFoundError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    MalformedDocumentError,
    UnsupportedConfigFormatError,
)


PathLike = Union[str, Path]

_PARSERS: Dict[str, Callable[[Any], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def read_document(path: PathLike) -> Dict[str, Any]:
    """
    Carrega um documento YAML ou JSON cujo conteúdo raiz é um mapa.

    Arquivos vazios são interpretados como dicionários vazios.

    Raises:
        ConfigFileNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se a extensão não for suportada.
        MalformedDocumentError: Se o conteúdo não puder ser interpretado.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigFileNotFoundError(f"Arquivo não encontrado: {path}")

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")

    with path.open("r", encoding="utf-8") as f:
        try:
            data = parser(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise MalformedDocumentError(f"Documento inválido em {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Raiz do documento {path.name} deve ser dict, recebido: {type(data).__name__}"
        )
    return data


def load_config(
    *,
    defaults_path: PathLike,
    local_path: Optional[PathLike] = None,
) -> Dict[str, Any]:
    """
    Resolve a configuração efetiva do engine: defaults (obrigatório) com
    overrides locais (opcional, ignorado quando o arquivo não existe)
    aplicados por deep-merge.

    Raises:
        DefaultsNotFoundError: Se o arquivo de defaults não existir.
        ConfigError: Demais falhas de leitura ou de merge.
    """
    defaults_file = Path(defaults_path)
    if not defaults_file.exists():
        raise DefaultsNotFoundError(f"Arquivo de defaults não encontrado: {defaults_file}")

    effective = read_document(defaults_file)

    if local_path is None or not Path(local_path).exists():
        return effective
    return deep_merge(effective, read_document(local_path))
