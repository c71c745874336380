"""
Connection binding for locked sections

A task holding a content lock already owns one pool connection (the one
carrying the advisory lock). Repository calls made by that task inside the
section must reuse it; acquiring a second connection per call lets N lock
holders exhaust a pool of size N and stall.

    async with bind_connection(pool) as conn:   # section owner
        ...
        async with connection(pool) as conn:    # any repository call
            ...                                 # same conn as above
"""
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional, Tuple

import asyncpg


# (pool, connection) bound by the innermost bind_connection of this task
_bound: ContextVar[Optional[Tuple[asyncpg.Pool, asyncpg.Connection]]] = ContextVar(
    "credence_bound_connection", default=None
)


@asynccontextmanager
async def connection(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Yield the task's bound connection for `pool`, or a fresh one from it."""
    bound = _bound.get()
    if bound is not None and bound[0] is pool:
        yield bound[1]
        return
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def bind_connection(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Acquire one connection and route this task's repository calls through it."""
    async with pool.acquire() as conn:
        token = _bound.set((pool, conn))
        try:
            yield conn
        finally:
            _bound.reset(token)
