# tests/core/config/test_loader.py
"""
Testes do carregador de configuração do engine (load_config).

Os testes asseguram que:
- o arquivo defaults é obrigatório e o local é opcional
- overrides locais têm prioridade via deep-merge
- formatos e raízes inválidos são rejeitados antes de qualquer run

Invariantes:
    - A configuração final é sempre um dicionário
    - Nenhuma configuração parcial é retornada em caso de erro
"""

import pytest
from pathlib import Path

try:
    from atlas_infra.core.config.loader import load_config, read_document
    from atlas_infra.core.config.errors import (
        ConfigFileNotFoundError,
        DefaultsNotFoundError,
        InvalidConfigRootTypeError,
        MalformedDocumentError,
        UnsupportedConfigFormatError,
    )
except Exception as e:  # noqa: BLE001
    load_config = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """Falha cedo, com mensagem explícita, se o loader não puder ser importado."""
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing loader/errors modules:\n"
            "- src/atlas_infra/core/config/loader.py (load_config)\n"
            "- src/atlas_infra/core/config/errors.py (typed exceptions)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_missing_defaults_raises(tmp_path: Path):
    """
    A ausência do defaults é fatal e usa a exceção específica
    `DefaultsNotFoundError`, subclasse de `ConfigFileNotFoundError`.
    """
    _require_imports()
    missing = tmp_path / "defaults.yaml"
    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)
    with pytest.raises(ConfigFileNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)


def test_missing_local_is_ok(tmp_path: Path, engine_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(engine_defaults_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "local.yaml"))

    assert out["engine"]["parallelism"] == 10
    assert out["engine"]["state_dir"] is None


def test_load_defaults_and_local(tmp_path: Path, engine_defaults_yaml, engine_local_yaml):
    """
    O local sobrescreve apenas as chaves que declara; o restante do
    defaults é preservado.
    """
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(engine_defaults_yaml, encoding="utf-8")
    local.write_text(engine_local_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(local))

    assert out["engine"]["parallelism"] == 4
    assert out["engine"]["refresh"] is True
    assert out["engine"]["replace_strategy"] == "destroy_before_create"


def test_json_documents_are_supported(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.json"
    defaults.write_text('{"engine": {"parallelism": 3}}', encoding="utf-8")
    assert load_config(defaults_path=str(defaults))["engine"]["parallelism"] == 3


def test_empty_document_is_empty_dict(tmp_path: Path):
    _require_imports()
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert read_document(empty) == {}


def test_invalid_root_type_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.toml"
    defaults.write_text("[engine]\n", encoding="utf-8")
    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(defaults), local_path=None)


@pytest.mark.parametrize(
    "name, text",
    [("defaults.yaml", "engine: [unclosed\n"), ("defaults.json", '{"engine": ')],
)
def test_malformed_document_raises(tmp_path: Path, name, text):
    _require_imports()
    defaults = tmp_path / name
    defaults.write_text(text, encoding="utf-8")
    with pytest.raises(MalformedDocumentError):
        load_config(defaults_path=defaults)
