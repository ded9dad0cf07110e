"""
Configurações operacionais do engine (seção `engine` da configuração).

Campos (v1):
    - parallelism: limite de workers concorrentes por ready set (default 10,
      pequeno para respeitar rate limits de APIs de provider)
    - replace_strategy: `destroy_before_create` (default) ou
      `create_before_destroy` (só aplicado quando o provider declara suporte
      a troca sem downtime para o tipo)
    - refresh: atualiza o estado a partir do provider antes do diff
    - state_dir: diretório do FileStateStore, quando usado

Valores ausentes assumem o default; valores inválidos levantam
InvalidSettingError antes de qualquer chamada a provider.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidSettingError


class ReplaceStrategy(str, Enum):
    DESTROY_BEFORE_CREATE = "destroy_before_create"
    CREATE_BEFORE_DESTROY = "create_before_destroy"


DEFAULT_ENGINE_CONFIG: Dict[str, Any] = {
    "engine": {
        "parallelism": 10,
        "replace_strategy": ReplaceStrategy.DESTROY_BEFORE_CREATE.value,
        "refresh": False,
        "state_dir": None,
    }
}


@dataclass(frozen=True)
class EngineSettings:
    parallelism: int = 10
    replace_strategy: ReplaceStrategy = ReplaceStrategy.DESTROY_BEFORE_CREATE
    refresh: bool = False
    state_dir: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "EngineSettings":
        """Interpreta `config["engine"]`, validando cada campo presente."""
        engine_cfg = (config or {}).get("engine", {}) or {}
        if not isinstance(engine_cfg, dict):
            raise InvalidSettingError(
                f"Seção 'engine' deve ser dict, recebido: {type(engine_cfg).__name__}"
            )

        parallelism = engine_cfg.get("parallelism", cls.parallelism)
        if isinstance(parallelism, bool) or not isinstance(parallelism, int) or parallelism < 1:
            raise InvalidSettingError(f"engine.parallelism deve ser inteiro >= 1, recebido: {parallelism!r}")

        raw_strategy = engine_cfg.get("replace_strategy", cls.replace_strategy.value)
        try:
            strategy = ReplaceStrategy(raw_strategy)
        except ValueError:
            allowed = ", ".join(s.value for s in ReplaceStrategy)
            raise InvalidSettingError(
                f"engine.replace_strategy inválido: {raw_strategy!r} (permitidos: {allowed})"
            ) from None

        refresh = engine_cfg.get("refresh", cls.refresh)
        if not isinstance(refresh, bool):
            raise InvalidSettingError(f"engine.refresh deve ser bool, recebido: {refresh!r}")

        state_dir = engine_cfg.get("state_dir", cls.state_dir)
        if state_dir is not None and not isinstance(state_dir, str):
            raise InvalidSettingError(f"engine.state_dir deve ser str, recebido: {state_dir!r}")

        return cls(
            parallelism=parallelism,
            replace_strategy=strategy,
            refresh=refresh,
            state_dir=state_dir,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["replace_strategy"] = self.replace_strategy.value
        return {"engine": data}
