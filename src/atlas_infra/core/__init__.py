"""
Core do Atlas Infra.

Reúne as responsabilidades essenciais de um run de provisionamento:
validação da configuração declarada, planejamento contra o estado
armazenado, apply concorrente e rastreabilidade.

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo outcome de recurso aparece no relatório
    - A mesma entrada produz a mesma ordem de apply
    - O estado é gravado por recurso, imediatamente após cada sucesso
    - State Store e providers são handles explícitos, nunca globais
"""
