"""Unit-of-work over all repositories.

Services receive a Store and wrap every multi-write operation in
``async with store.transaction():``.  A failure anywhere inside the block
undoes every write made in it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from completion_service.repos.assignment_repo import (
    AssignmentRepo,
    InMemoryAssignmentRepo,
)
from completion_service.repos.audit_repo import AuditRepo, InMemoryAuditRepo
from completion_service.repos.completion_repo import (
    CompletionRepo,
    InMemoryCompletionRepo,
)
from completion_service.repos.content_repo import ContentRepo, InMemoryContentRepo
from completion_service.repos.pg_audit_repo import PgAuditRepo
from completion_service.repos.pg_completion_repo import (
    PgCompletionRepo,
    PgProgressRepo,
)
from completion_service.repos.pg_content_repo import PgContentRepo
from completion_service.repos.pg_user_repo import PgAssignmentRepo, PgUserRepo
from completion_service.repos.progress_repo import (
    InMemoryProgressRepo,
    ProgressRepo,
)
from completion_service.repos.user_repo import InMemoryUserRepo, UserRepo
from completion_service.services.errors import PersistenceError

logger = logging.getLogger(__name__)


class Store(Protocol):
    content: ContentRepo
    users: UserRepo
    assignments: AssignmentRepo
    completions: CompletionRepo
    progress: ProgressRepo
    audit: AuditRepo

    def transaction(self) -> Any: ...

    async def lock_pair(self, user_id: UUID, course_id: UUID) -> None: ...


class InMemoryStore:
    """All repositories in process memory.

    transaction() snapshots every writable repo on entry to the outermost
    block and restores the snapshots if the block raises.  Nested blocks in
    the same task join the outer one.  Outermost blocks from different
    tasks run one at a time, so a rollback never discards another task's
    writes.
    """

    def __init__(self) -> None:
        self.content = InMemoryContentRepo()
        self.users = InMemoryUserRepo()
        self.assignments = InMemoryAssignmentRepo()
        self.completions = InMemoryCompletionRepo()
        self.progress = InMemoryProgressRepo()
        self.audit = InMemoryAuditRepo()
        self._tx_lock = asyncio.Lock()
        self._active: ContextVar[bool] = ContextVar(
            f"in_memory_tx_{id(self)}", default=False
        )

    def _writable(self) -> tuple[Any, ...]:
        return (
            self.users,
            self.assignments,
            self.completions,
            self.progress,
            self.audit,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._active.get():
            yield
            return

        async with self._tx_lock:
            saved = [repo.snapshot() for repo in self._writable()]
            token = self._active.set(True)
            try:
                yield
            except BaseException:
                for repo, state in zip(self._writable(), saved):
                    repo.restore(state)
                logger.warning("In-memory transaction rolled back")
                raise
            finally:
                self._active.reset(token)

    async def lock_pair(self, user_id: UUID, course_id: UUID) -> None:
        # Outer blocks already run one at a time.
        return None

    def clear(self) -> None:
        self.content.clear()
        for repo in self._writable():
            repo.clear()
        self._tx_lock = asyncio.Lock()


class PgStore:
    """Repositories bound to one request's AsyncSession.

    The outermost transaction() block is a real database transaction that
    commits when the block exits, so the caller's per-pair lock is still
    held at commit time and readers never see a half-applied override.
    Nested blocks join it.  A read-only transaction autobegun by earlier
    reads in the request is committed first.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._depth = 0
        self.content = PgContentRepo(session)
        self.users = PgUserRepo(session)
        self.assignments = PgAssignmentRepo(session)
        self.completions = PgCompletionRepo(session)
        self.progress = PgProgressRepo(session)
        self.audit = PgAuditRepo(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            if self._session.in_transaction():
                await self._session.commit()
            async with self._session.begin():
                yield
        except SQLAlchemyError as exc:
            logger.exception("Database transaction rolled back")
            raise PersistenceError(f"database error: {exc.__class__.__name__}") from exc
        finally:
            self._depth = 0

    async def lock_pair(self, user_id: UUID, course_id: UUID) -> None:
        """Transaction-scoped advisory lock on (user, course).

        Serializes writers across processes even when the lock manager is
        the in-process one.  Released by PostgreSQL at commit or rollback.
        """
        key = f"progress:{user_id}:{course_id}"
        await self._session.execute(
            select(func.pg_advisory_xact_lock(func.hashtextextended(key, 0)))
        )
