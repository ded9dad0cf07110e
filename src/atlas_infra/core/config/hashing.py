# src/atlas_infra/core/config/hashing.py
"""
Hash da configuração efetiva do engine, registrado em `inputs.settings_hash`
do manifest de apply.

Aceita o dicionário de configuração ou um objeto com `to_dict()`
(ex.: `EngineSettings`). O hash é SHA-256 sobre JSON com chaves ordenadas
e separadores compactos; valores não serializáveis (ex.: `Path`) entram
como texto.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict


def _as_config_dict(config: Any) -> Dict[str, Any]:
    to_dict = getattr(config, "to_dict", None)
    if callable(to_dict):
        config = to_dict()
    if not isinstance(config, dict):
        raise TypeError(f"Config para hashing deve ser dict, recebido: {type(config).__name__}")
    return config


def compute_config_hash(config: Any) -> str:
    """Hash SHA-256 hexadecimal (64 caracteres) da configuração efetiva."""
    payload = json.dumps(
        _as_config_dict(config),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
