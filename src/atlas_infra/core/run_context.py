"""
RunContext — Contexto canônico de execução do Atlas Infra.

Este módulo define o **RunContext**, a estrutura compartilhada por engine,
scheduler e workers durante um run de apply.

O RunContext é o meio explícito de:
- registro de logs estruturados de execução (por recurso)
- coleta de warnings não fatais associados a recursos
- sinalização de cancelamento do run (abort do operador)
- acesso ao manifest de apply do run

Princípios fundamentais:
- Isolamento por execução (cada run possui seu próprio contexto)
- Nenhum estado global: o State Store e os providers são passados
  explicitamente ao engine, não vivem aqui
- Seguro entre threads: workers registram eventos concorrentemente
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de um run.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - meta: metadados de execução (ex.: caminhos, info do operador)
    - warnings: warnings por recurso (`type.name`)
    - events: log estruturado de eventos
    - manifest: manifest de apply do run (criado pelo Engine quando ausente)
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    warnings: Dict[str, List[str]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    manifest: Any = None

    _cancel_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _lock: Any = field(default_factory=threading.RLock, init=False, repr=False)

    @classmethod
    def new(cls, *, config: Optional[Dict[str, Any]] = None, run_id: Optional[str] = None) -> "RunContext":
        return cls(
            run_id=run_id or uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            config=dict(config or {}),
        )

    # -----------------------------
    # Cancelamento
    # -----------------------------
    def cancel(self) -> None:
        """Interrompe o dispatch de novos itens; chamadas em andamento terminam."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, resource: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "resource": resource,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, resource: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(resource, []).append(message)

    def locked(self) -> Any:
        """Lock do contexto, para atualizações compostas (ex.: manifest)."""
        return self._lock
