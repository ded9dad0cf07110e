"""
src/atlas_infra/report/report_md.py

Gerador canônico de `report.md` (v1) de um run de apply.

Regras:
- O report.md é derivado EXCLUSIVAMENTE do Manifest final (dict).
- Não infere, não recalcula, não consulta providers nem State Store.
- Mesmo Manifest => mesmo report.md (determinismo por ordenação estável).

Estrutura mínima obrigatória:
# Apply Report

## Executive Summary
## Resource Outcomes
## Failures
## Skipped Resources
## Traceability
## Execution Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple


REQUIRED_SECTIONS: List[str] = [
    "# Apply Report",
    "## Executive Summary",
    "## Resource Outcomes",
    "## Failures",
    "## Skipped Resources",
    "## Traceability",
    "## Execution Metadata",
]


def _sorted_items(d: Any) -> List[Tuple[str, Any]]:
    if not isinstance(d, dict):
        return []
    return sorted(d.items(), key=lambda kv: kv[0])


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)


def _require_manifest(manifest: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(manifest, dict) or not manifest:
        raise ValueError("Manifest is required to generate report.md")
    return manifest


def _last_event(events: List[Any], event_type: str) -> Dict[str, Any] | None:
    for ev in reversed(events):
        if isinstance(ev, dict) and ev.get("event_type") == event_type:
            return ev
    return None


def generate_report_md(manifest: Dict[str, Any]) -> str:
    """Gera o conteúdo completo do report.md a partir do Manifest final."""
    manifest = _require_manifest(manifest)

    run = manifest.get("run") if isinstance(manifest.get("run"), dict) else {}
    inputs = manifest.get("inputs") if isinstance(manifest.get("inputs"), dict) else {}
    resources = manifest.get("resources") if isinstance(manifest.get("resources"), dict) else {}
    events = manifest.get("events") if isinstance(manifest.get("events"), list) else []

    lines: List[str] = []
    lines.append("# Apply Report\n")

    # Executive Summary
    lines.append("## Executive Summary")
    lines.append(f"- **Run ID**: `{run.get('run_id', '<unknown>')}`")
    lines.append(f"- **Started At (UTC)**: `{run.get('started_at', '<unknown>')}`")
    lines.append(f"- **Atlas Version**: `{run.get('atlas_version', '<unknown>')}`")

    finished = _last_event(events, "run_finished")
    aborted = _last_event(events, "run_aborted")
    if finished is not None:
        payload = finished.get("payload") or {}
        lines.append(f"- **Exit Status**: `{payload.get('status', '<unknown>')}`")
        if payload.get("cancelled"):
            lines.append("- **Cancelled**: `true`")
        for outcome, count in _sorted_items(payload.get("counts")):
            lines.append(f"- **{outcome}**: `{count}`")
    elif aborted is not None:
        payload = aborted.get("payload") or {}
        error = payload.get("error") or {}
        lines.append(f"- **Exit Status**: `{payload.get('status', '<unknown>')}`")
        lines.append(f"- **Configuration Error**: `{error.get('type', '<unknown>')}` — {error.get('message', '')}")
    else:
        lines.append("- **Exit Status**: `<not recorded>`")
    lines.append("")

    # Resource Outcomes
    lines.append("## Resource Outcomes")
    if resources:
        for rid, entry in _sorted_items(resources):
            if not isinstance(entry, dict):
                continue
            action = entry.get("action", "unknown")
            status = entry.get("status", "unknown")
            pid = entry.get("provider_id")
            suffix = f" — provider_id: `{pid}`" if pid else ""
            lines.append(f"- **{rid}** (`{action}`) — status: `{status}`{suffix}")
    else:
        lines.append("No resources recorded in the Manifest.")
    lines.append("")

    # Failures
    lines.append("## Failures")
    failed = [(rid, e) for rid, e in _sorted_items(resources) if isinstance(e, dict) and e.get("status") == "failed"]
    if failed:
        for rid, entry in failed:
            lines.append(f"### {rid} (`{entry.get('action', 'unknown')}`)")
            lines.append("```json")
            lines.append(_as_pretty_json(entry.get("error") or {}))
            lines.append("```")
    else:
        lines.append("No failures recorded.")
    lines.append("")

    # Skipped
    lines.append("## Skipped Resources")
    skipped = [(rid, e) for rid, e in _sorted_items(resources) if isinstance(e, dict) and e.get("status") == "skipped"]
    if skipped:
        for rid, entry in skipped:
            lines.append(f"- **{rid}** (`{entry.get('action', 'unknown')}`) — reason: `{entry.get('reason', 'unknown')}`")
    else:
        lines.append("No skipped resources.")
    lines.append("")

    # Traceability
    lines.append("## Traceability")
    if inputs:
        for k, v in _sorted_items(inputs):
            lines.append(f"- **{k}**: `{v}`")
    else:
        lines.append("No input hashes recorded in the Manifest.")
    lines.append("")

    # Execution Metadata
    lines.append("## Execution Metadata")
    counts: Dict[str, int] = {}
    for ev in events:
        if isinstance(ev, dict):
            et = str(ev.get("event_type", "unknown"))
            counts[et] = counts.get(et, 0) + 1
    lines.append(f"- **Events recorded**: `{len(events)}`")
    for et, n in _sorted_items(counts):
        lines.append(f"  - `{et}`: `{n}`")
    lines.append("")

    return "\n".join(lines)
