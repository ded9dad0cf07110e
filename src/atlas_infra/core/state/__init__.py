"""
Persistência de estado do Atlas Infra.

O State Store é um handle explícito passado ao engine (nunca um singleton
de processo), o que permite testar o engine isoladamente contra um store
em memória.
"""

from typing import Optional

from atlas_infra.core.config.settings import EngineSettings

from .migrations import CURRENT_SCHEMA_VERSION, migrate
from .store import (
    FileStateStore,
    InMemoryStateStore,
    StateStore,
    decode_record,
    encode_record,
)


def open_state_store(settings: Optional[EngineSettings] = None) -> StateStore:
    """FileStateStore em `engine.state_dir` quando configurado; senão, em memória."""
    if settings is not None and settings.state_dir:
        return FileStateStore(settings.state_dir)
    return InMemoryStateStore()


__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "FileStateStore",
    "InMemoryStateStore",
    "StateStore",
    "decode_record",
    "encode_record",
    "migrate",
    "open_state_store",
]
