"""
Deep-merge de configuração do engine.

Política de merge (v1):
    - dict → merge recursivo por chave
    - list → sobrescrita total
    - escalar → sobrescrita direta
    - conflito de tipos → ConfigTypeConflictError

O merge é puramente funcional: nenhum input é mutado.
"""

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Combina defaults com overrides locais, sem mutar nenhum dos dois.

    `int` e `float` não são considerados conflito entre si, já que YAML
    distingue `10` de `10.0` e ambos são aceitáveis para campos numéricos.

    Raises:
        ConfigTypeConflictError: Se a mesma chave tiver tipos incompatíveis.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )

    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        if key not in result or result[key] is None or override_value is None:
            result[key] = deepcopy(override_value)
            continue

        base_value = result[key]

        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
            continue

        if isinstance(override_value, list) and isinstance(base_value, list):
            result[key] = deepcopy(override_value)
            continue

        numeric = (int, float)
        both_numeric = (
            isinstance(base_value, numeric)
            and isinstance(override_value, numeric)
            and not isinstance(base_value, bool)
            and not isinstance(override_value, bool)
        )
        if type(base_value) is not type(override_value) and not both_numeric:
            raise ConfigTypeConflictError(
                f"Conflito de tipo na chave '{key}': "
                f"{type(base_value).__name__} vs {type(override_value).__name__}"
            )

        result[key] = deepcopy(override_value)

    return result
