"""
Migração de schema dos registros de estado persistidos.

Cada documento de estado carrega `schema_version`. No load, migrações são
aplicadas em sequência até `CURRENT_SCHEMA_VERSION`, preservando sempre o
identificador atribuído pelo provider.

Histórico:
    - v1: {type, name, id, hash, attributes}
    - v2: {type, name, provider_id, applied_hash, realized_attributes,
           applied_attributes, dependencies}

Documentos sem `schema_version` são tratados como v1. Versões futuras
(maiores que a atual) são rejeitadas: não há como interpretá-las com segurança.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from atlas_infra.core.exceptions import StateCorruptionError


CURRENT_SCHEMA_VERSION = 2


def _v1_to_v2(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "schema_version": 2,
        "type": doc.get("type"),
        "name": doc.get("name"),
        "provider_id": doc.get("id"),
        "applied_hash": doc.get("hash"),
        "realized_attributes": doc.get("attributes"),
        # v1 não registrava os atributos declarados nem as dependências
        "applied_attributes": None,
        "dependencies": [],
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _v1_to_v2,
}


def migrate(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Leva um documento de estado até a versão atual do schema."""
    version = doc.get("schema_version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise StateCorruptionError(
            message=f"Invalid state schema_version: {version!r}",
            details={"schema_version": repr(version)},
        )
    if version > CURRENT_SCHEMA_VERSION:
        raise StateCorruptionError(
            message=f"State schema_version {version} is newer than supported ({CURRENT_SCHEMA_VERSION})",
            details={"schema_version": version, "supported": CURRENT_SCHEMA_VERSION},
            hint="Atualize o Atlas Infra antes de operar sobre este estado.",
        )

    while version < CURRENT_SCHEMA_VERSION:
        doc = MIGRATIONS[version](doc)
        version = doc["schema_version"]
    return doc
