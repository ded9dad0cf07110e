"""
Pacote de rastreabilidade do Atlas Infra — Manifest de apply v1.

API pública exposta:
    - ApplyManifest     → estrutura canônica do manifest
    - create_manifest   → criação explícita do manifest
    - add_event         → registro explícito de eventos no Event Log
    - resource_started / resource_finished / resource_failed / resource_skipped
    - save_manifest / load_manifest → persistência JSON com round-trip
"""

from .manifest import (
    ApplyManifest,
    add_event,
    create_manifest,
    load_manifest,
    resource_failed,
    resource_finished,
    resource_skipped,
    resource_started,
    save_manifest,
)

__all__ = [
    "ApplyManifest",
    "add_event",
    "create_manifest",
    "load_manifest",
    "resource_failed",
    "resource_finished",
    "resource_skipped",
    "resource_started",
    "save_manifest",
]
