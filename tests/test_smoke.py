# tests/test_smoke.py
"""
Testes de sanidade estrutural (smoke tests) do Atlas Infra.

Garantem apenas que o pacote importa e que o pytest descobre os testes.
Não validam comportamento de domínio.
"""

import atlas_infra


def test_smoke():
    """O pacote raiz importa sem efeitos colaterais e expõe a versão."""
    assert isinstance(atlas_infra.__version__, str)
    assert atlas_infra.__version__
