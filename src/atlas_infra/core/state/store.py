"""
State Store canônico do Atlas Infra.

O State Store persiste o último estado realizado conhecido de cada recurso
(StateRecord) entre runs. É o único recurso mutável compartilhado entre os
workers do apply.

Contrato:
    - get(id) → StateRecord | None
    - put(record) → persiste um registro; atômico por registro
    - delete(id) → remove o registro (idempotente)
    - identities() → identidades com estado persistido

Implementações:
    - InMemoryStateStore: isolada por run, usada em testes
    - FileStateStore: um documento JSON por recurso,
      `<root>/resources/<type>/<name>.json`, gravado em arquivo temporário
      no mesmo diretório e promovido com `os.replace`

Invariantes:
    - `put` e `delete` são serializados por lock; nenhum lock é mantido
      durante chamadas a provider (o chamador grava após a chamada)
    - Um registro nunca é persistido parcialmente; uma queda no meio da
      gravação preserva a versão anterior daquele registro
    - Registros com `Reference` são rejeitados (estado deve ser concreto)
    - Registros inválidos no load levantam StateCorruptionError (estado
      desconhecido), nunca são tratados como ausentes
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from atlas_infra.core.exceptions import StateCorruptionError
from atlas_infra.core.resources.references import contains_reference
from atlas_infra.core.resources.types import ResourceId, StateRecord

from .migrations import CURRENT_SCHEMA_VERSION, migrate


@runtime_checkable
class StateStore(Protocol):
    def get(self, rid: ResourceId) -> Optional[StateRecord]:
        ...

    def put(self, record: StateRecord) -> None:
        ...

    def delete(self, rid: ResourceId) -> None:
        ...

    def identities(self) -> List[ResourceId]:
        ...


# ----------------------------------------------------------------------
# Codec
# ----------------------------------------------------------------------

_REQUIRED_FIELDS = ("type", "name", "provider_id", "applied_hash", "realized_attributes")


def encode_record(record: StateRecord) -> Dict[str, Any]:
    """Serializa um StateRecord no layout atual, validando que é concreto."""
    for label, value in (
        ("realized_attributes", record.realized_attributes),
        ("applied_attributes", record.applied_attributes),
    ):
        if contains_reference(value):
            raise ValueError(f"StateRecord '{record.id}' contém referência não resolvida em {label}")

    return {
        "schema_version": CURRENT_SCHEMA_VERSION,
        "type": record.id.type,
        "name": record.id.name,
        "provider_id": record.provider_id,
        "applied_hash": record.applied_hash,
        "realized_attributes": copy.deepcopy(record.realized_attributes),
        "applied_attributes": copy.deepcopy(record.applied_attributes),
        "dependencies": sorted(str(d) for d in record.dependencies),
    }


def decode_record(doc: Any, *, expected: Optional[ResourceId] = None) -> StateRecord:
    """Valida e migra um documento de estado, devolvendo o StateRecord."""
    where = str(expected) if expected is not None else "<unknown>"
    if not isinstance(doc, dict):
        raise StateCorruptionError(
            message=f"State record for '{where}' is not a mapping",
            details={"resource": where},
        )

    doc = migrate(doc)

    missing = [k for k in _REQUIRED_FIELDS if doc.get(k) is None]
    if missing:
        raise StateCorruptionError(
            message=f"State record for '{where}' is missing required fields: {', '.join(missing)}",
            details={"resource": where, "missing": missing},
        )

    if not isinstance(doc["realized_attributes"], dict):
        raise StateCorruptionError(
            message=f"State record for '{where}' has non-mapping realized_attributes",
            details={"resource": where},
        )
    applied = doc.get("applied_attributes")
    if applied is not None and not isinstance(applied, dict):
        raise StateCorruptionError(
            message=f"State record for '{where}' has non-mapping applied_attributes",
            details={"resource": where},
        )

    rid = ResourceId(str(doc["type"]), str(doc["name"]))
    if expected is not None and rid != expected:
        raise StateCorruptionError(
            message=f"State record stored under '{expected}' describes '{rid}'",
            details={"resource": where, "found": str(rid)},
        )

    try:
        dependencies = [ResourceId.parse(d) for d in doc.get("dependencies") or []]
    except (TypeError, ValueError) as exc:
        raise StateCorruptionError(
            message=f"State record for '{where}' has invalid dependencies",
            details={"resource": where, "reason": str(exc)},
        ) from exc

    return StateRecord(
        id=rid,
        realized_attributes=doc["realized_attributes"],
        provider_id=str(doc["provider_id"]),
        applied_hash=str(doc["applied_hash"]),
        applied_attributes=applied,
        dependencies=dependencies,
    )


# ----------------------------------------------------------------------
# Implementações
# ----------------------------------------------------------------------

class InMemoryStateStore:
    """Store em memória; guarda documentos serializados para isolar cópias."""

    def __init__(self) -> None:
        self._docs: Dict[ResourceId, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, rid: ResourceId) -> Optional[StateRecord]:
        with self._lock:
            doc = self._docs.get(rid)
        if doc is None:
            return None
        return decode_record(copy.deepcopy(doc), expected=rid)

    def put(self, record: StateRecord) -> None:
        doc = encode_record(record)
        with self._lock:
            self._docs[record.id] = doc

    def put_document(self, rid: ResourceId, doc: Any) -> None:
        """Grava um documento bruto (migração/importação de estado legado)."""
        with self._lock:
            self._docs[rid] = copy.deepcopy(doc)

    def delete(self, rid: ResourceId) -> None:
        with self._lock:
            self._docs.pop(rid, None)

    def identities(self) -> List[ResourceId]:
        with self._lock:
            return sorted(self._docs)


class FileStateStore:
    """Store em disco: um documento JSON por recurso, escrita atômica por registro."""

    META_FILE = "state_meta.json"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._lock = threading.Lock()
        self.root.mkdir(parents=True, exist_ok=True)
        meta = self.root / self.META_FILE
        if not meta.exists():
            self._write_atomic(
                meta,
                {"schema_version": CURRENT_SCHEMA_VERSION, "layout": "record-per-file"},
            )

    def record_path(self, rid: ResourceId) -> Path:
        return self.root / "resources" / rid.type / f"{rid.name}.json"

    def get(self, rid: ResourceId) -> Optional[StateRecord]:
        path = self.record_path(rid)
        if not path.exists():
            return None
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StateCorruptionError(
                message=f"State record for '{rid}' could not be read",
                details={"resource": str(rid), "path": str(path), "reason": str(exc)},
            ) from exc
        return decode_record(doc, expected=rid)

    def put(self, record: StateRecord) -> None:
        doc = encode_record(record)
        with self._lock:
            self._write_atomic(self.record_path(record.id), doc)

    def delete(self, rid: ResourceId) -> None:
        with self._lock:
            self.record_path(rid).unlink(missing_ok=True)

    def identities(self) -> List[ResourceId]:
        base = self.root / "resources"
        if not base.exists():
            return []
        found = [
            ResourceId(type_dir.name, path.stem)
            for type_dir in base.iterdir()
            if type_dir.is_dir()
            for path in type_dir.glob("*.json")
        ]
        return sorted(found)

    def _write_atomic(self, path: Path, doc: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(doc, ensure_ascii=False, indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
