"""
Repository Pattern - Storage abstraction layer

Repositories hide PostgreSQL from the engine. Consumers work with domain
models, not asyncpg records. Each repository structurally satisfies the
matching protocol in `credence.ports`.

Storage Split:
- UserRepository: users + coefficient_history
- ContentRepository: contents
- InvestmentRepository: investments + dividends (ledger writes touch users
  and contents inside the same transaction)

All three route their queries through `session.connection`, so calls made
inside InvestmentRepository.content_lock share the lock's connection.
"""
from .user_repository import UserRepository
from .content_repository import ContentRepository
from .investment_repository import InvestmentRepository

__all__ = [
    'UserRepository',
    'ContentRepository',
    'InvestmentRepository',
]
