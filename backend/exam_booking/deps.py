import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import get_sessionmaker
from .infrastructure.repositories import SqlAlchemyUserRepository
from .utils.auth import TokenError, decode_requester_id

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_BEARER_CHALLENGE)


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    if authorization is None:
        raise _unauthorized("bearer token required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("bearer token required")

    settings = get_settings()
    try:
        user_id = decode_requester_id(token.strip(), secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except TokenError as exc:
        raise _unauthorized("invalid token") from exc

    try:
        exists = await SqlAlchemyUserRepository(session).exists(user_id)
    except ProgrammingError as exc:
        await session.rollback()
        logger.exception("user lookup failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user store unavailable") from exc
    # End the implicit read transaction so handlers can open their own with session.begin().
    await session.rollback()
    if not exists:
        raise _unauthorized("unknown user")
    return user_id
