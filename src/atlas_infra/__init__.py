"""
Atlas Infra — engine de provisionamento declarativo de infraestrutura.

Recursos são declarados com atributos que podem referenciar atributos de
outros recursos. O engine resolve essas referências em um DAG, compara a
configuração com o estado armazenado e aplica as mudanças necessárias,
em paralelo quando o grafo permite.

Arquitetura em alto nível:
    - core.resources    → tipos, referências, hashing e leitura de declarações
    - core.engine       → grafo, diff, scheduler e consolidação de falhas
    - core.state        → State Store (memória ou disco) e migração de schema
    - core.config       → carregamento, merge e validação de configuração
    - core.traceability → Manifest de apply e Event Log
    - report            → report.md derivado do Manifest

Limites explícitos:
    - Não implementa providers reais de nuvem
    - Não oferece lock distribuído de estado (um único escritor por run)
"""

__version__ = "0.1.0"
