"""
Hashing canônico de atributos declarados.

Este módulo calcula o hash de conteúdo usado pelo Diff Engine para decidir
se um recurso mudou desde o último apply.

Política de hashing (v1):
    - Valores são canonicalizados com etiqueta de tipo ("int", "str", ...),
      de modo que `1`, `1.0`, `True` e `"1"` produzam hashes distintos
    - Mapas são serializados com chaves ordenadas
    - Serialização JSON compacta, UTF-8
    - Algoritmo SHA-256

Invariantes:
    - Atributos estruturalmente equivalentes produzem o mesmo hash,
      independentemente da ordem de inserção das chaves
    - O valor retornado é sempre uma string hexadecimal de 64 caracteres
    - Referências só são aceitas quando explicitamente permitidas
      (hash de configuração declarada); o hash de diff exige valores concretos
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping

from .types import Reference


def canonicalize(value: Any, *, allow_references: bool = False) -> Any:
    """Converte um valor em estrutura JSON com etiqueta de tipo e chaves ordenadas."""
    if value is None:
        return ["null", None]
    # bool antes de int: bool é subclasse de int
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, int):
        return ["int", value]
    if isinstance(value, float):
        return ["float", repr(value)]
    if isinstance(value, str):
        return ["str", value]
    if isinstance(value, Reference):
        if not allow_references:
            raise TypeError(f"Valor não concreto não pode ser hasheado: {value}")
        return ["ref", str(value)]
    if isinstance(value, Mapping):
        items = []
        for key in sorted(value, key=str):
            if not isinstance(key, str):
                raise TypeError(f"Chaves de atributo devem ser str, recebido: {type(key).__name__}")
            items.append([key, canonicalize(value[key], allow_references=allow_references)])
        return ["map", items]
    if isinstance(value, (list, tuple)):
        return ["list", [canonicalize(v, allow_references=allow_references) for v in value]]
    raise TypeError(f"Tipo de atributo não suportado: {type(value).__name__}")


def compute_attributes_hash(attributes: Mapping[str, Any], *, allow_references: bool = False) -> str:
    """
    Gera o hash SHA-256 determinístico de um mapa de atributos.

    Args:
        attributes: Atributos do recurso (concretos, salvo `allow_references`).
        allow_references: Aceita `Reference` codificada como texto.

    Returns:
        str: Hash SHA-256 hexadecimal.

    Raises:
        TypeError: Se houver valor não suportado ou referência não permitida.
    """
    canonical_json = json.dumps(
        canonicalize(dict(attributes), allow_references=allow_references),
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def values_equal(left: Any, right: Any) -> bool:
    """Compara dois valores concretos pela forma canônica (tipo + conteúdo)."""
    return canonicalize(left, allow_references=True) == canonicalize(right, allow_references=True)
