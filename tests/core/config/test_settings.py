# tests/core/config/test_settings.py
"""
Testes da interpretação tipada da seção `engine` (EngineSettings).

Valores ausentes assumem o default; valores inválidos são rejeitados com
InvalidSettingError antes de qualquer run.
"""

import pytest

from atlas_infra.core.config.errors import InvalidSettingError
from atlas_infra.core.config.settings import DEFAULT_ENGINE_CONFIG, EngineSettings, ReplaceStrategy


def test_defaults():
    settings = EngineSettings.from_config({})
    assert settings == EngineSettings()
    assert settings.parallelism == 10
    assert settings.replace_strategy is ReplaceStrategy.DESTROY_BEFORE_CREATE
    assert settings.refresh is False
    assert settings.state_dir is None


def test_default_config_round_trips():
    settings = EngineSettings.from_config(DEFAULT_ENGINE_CONFIG)
    assert settings.to_dict() == DEFAULT_ENGINE_CONFIG


def test_explicit_values():
    settings = EngineSettings.from_config(
        {
            "engine": {
                "parallelism": 2,
                "replace_strategy": "create_before_destroy",
                "refresh": True,
                "state_dir": ".atlas/state",
            }
        }
    )
    assert settings.parallelism == 2
    assert settings.replace_strategy is ReplaceStrategy.CREATE_BEFORE_DESTROY
    assert settings.refresh is True
    assert settings.state_dir == ".atlas/state"


@pytest.mark.parametrize(
    "engine",
    [
        "not-a-dict",
        {"parallelism": 0},
        {"parallelism": True},
        {"parallelism": "10"},
        {"replace_strategy": "blue_green"},
        {"refresh": "yes"},
        {"state_dir": 42},
    ],
)
def test_invalid_values_raise(engine):
    with pytest.raises(InvalidSettingError):
        EngineSettings.from_config({"engine": engine})
