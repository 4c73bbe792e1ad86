"""Request-scoped dependencies: caller identity, store and engine.

Routes declare what they need through the Annotated aliases at the bottom
(``Caller``, ``Admin``, ``Engine``) so the auth rules read at a glance in
each signature.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from completion_service.db.engine import async_session_factory, session_scope
from completion_service.models.principal import Principal
from completion_service.repos.store import InMemoryStore, PgStore, Store
from completion_service.services.engine import CompletionEngine
from completion_service.services.token_service import verify_access_token

logger = logging.getLogger(__name__)

bearer = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Backs every request when DATABASE_URL is unset.
memory_store = InMemoryStore()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def current_principal(token: Annotated[str, Depends(bearer)]) -> Principal:
    try:
        return verify_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid token rejected: %s", exc)
        raise _unauthorized("Invalid token") from None


def require_admin(
    principal: Annotated[Principal, Depends(current_principal)],
) -> Principal:
    if not principal.is_admin:
        logger.warning("Admin route refused for subject=%s", principal.subject)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


async def get_store() -> AsyncGenerator[Store, None]:
    """PostgreSQL-backed store for one request, or the shared in-memory one."""
    if async_session_factory is None:
        yield memory_store
        return
    async with session_scope() as session:
        yield PgStore(session)


def get_engine(store: Annotated[Store, Depends(get_store)]) -> CompletionEngine:
    return CompletionEngine(store)


Caller = Annotated[Principal, Depends(current_principal)]
Admin = Annotated[Principal, Depends(require_admin)]
Engine = Annotated[CompletionEngine, Depends(get_engine)]
