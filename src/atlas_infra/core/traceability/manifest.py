"""
Manifest de apply (v1) — registro forense de um run do Atlas Infra.

O manifest consolida:
    - run: metadados da execução (run_id, started_at, atlas_version)
    - inputs: hashes da configuração do engine e dos recursos declarados
    - resources: estado incremental de cada recurso no run
    - events: Event Log ordenado (resource_started, resource_finished,
      resource_failed, resource_skipped, e eventos livres via add_event)

Decisões arquiteturais:
    - Nenhum evento é emitido implicitamente; a ordem do Event Log é a ordem
      de chamada
    - Timestamps são normalizados para UTC timezone-aware
    - A estrutura é serializável em JSON e reconstruível via round-trip

Limites explícitos:
    - Não executa apply
    - Não é thread-safe por si só: o scheduler serializa as chamadas com o
      lock do RunContext
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps timezone-naive são assumidos como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class ApplyManifest:
    """
    Manifest v1 de um run de apply.

    Invariantes:
        - `resources` é sempre um dicionário indexado por `type.name`
        - `events` é sempre uma lista ordenada
        - A estrutura completa é serializável
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável; alterações no retorno não afetam o manifest."""
        return json.loads(json.dumps({
            "run": self.run,
            "inputs": self.inputs,
            "resources": self.resources,
            "events": self.events,
        }))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplyManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            resources={k: dict(v) for k, v in (data.get("resources", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    atlas_version: str,
    settings_hash: str,
    configuration_hash: Optional[str],
) -> ApplyManifest:
    """
    Cria o manifest inicial de um run.

    ⚠️ Importante: esta função **não emite eventos implicitamente**.
    """
    return ApplyManifest(
        run={
            "run_id": run_id,
            "started_at": _iso(started_at),
            "atlas_version": atlas_version,
        },
        inputs={
            "settings_hash": settings_hash,
            "configuration_hash": configuration_hash,
        },
    )


def add_event(
    manifest: ApplyManifest,
    *,
    event_type: str,
    ts: datetime,
    resource: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if resource is not None:
        ev["resource"] = resource
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def resource_started(manifest: ApplyManifest, *, resource: str, action: str, ts: datetime) -> None:
    """Marca o recurso como `running` e registra `resource_started`."""
    entry = manifest.resources.setdefault(resource, {"resource": resource})
    entry.update({"action": action, "status": "running", "started_at": _iso(ts)})
    add_event(manifest, event_type="resource_started", ts=ts, resource=resource, payload={"action": action})


def resource_finished(
    manifest: ApplyManifest,
    *,
    resource: str,
    ts: datetime,
    action: str,
    provider_id: Optional[str] = None,
) -> None:
    entry = manifest.resources.setdefault(resource, {"resource": resource})
    started_iso = entry.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    entry.update(
        {
            "action": action,
            "status": "success",
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "provider_id": provider_id,
        }
    )
    add_event(
        manifest,
        event_type="resource_finished",
        ts=ts,
        resource=resource,
        payload={"action": action, "duration_ms": entry["duration_ms"]},
    )


def resource_failed(
    manifest: ApplyManifest,
    *,
    resource: str,
    ts: datetime,
    action: str,
    error: Dict[str, Any],
) -> None:
    entry = manifest.resources.setdefault(resource, {"resource": resource})
    entry.update({"action": action, "status": "failed", "finished_at": _iso(ts), "error": dict(error)})
    add_event(
        manifest,
        event_type="resource_failed",
        ts=ts,
        resource=resource,
        payload={"action": action, "error_type": error.get("type")},
    )


def resource_skipped(manifest: ApplyManifest, *, resource: str, ts: datetime, action: str, reason: str) -> None:
    entry = manifest.resources.setdefault(resource, {"resource": resource})
    entry.update({"action": action, "status": "skipped", "reason": reason})
    add_event(
        manifest,
        event_type="resource_skipped",
        ts=ts,
        resource=resource,
        payload={"action": action, "reason": reason},
    )


def save_manifest(manifest: ApplyManifest, path: Path) -> None:
    """Persiste o manifest em JSON determinístico (chaves ordenadas)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> ApplyManifest:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return ApplyManifest.from_dict(data)
