"""
Database decorators for rollback on error.

Work on plain functions taking a session and on service methods whose
instance holds ``self.session``.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


def _find_session(args: tuple, kwargs: dict) -> AsyncSession | None:
    session = kwargs.get("session")
    if session is not None:
        return session
    if args:
        first = args[0]
        if isinstance(first, AsyncSession):
            return first
        candidate = getattr(first, "session", None)
        if candidate is not None:
            return candidate
    return None


async def _safe_rollback(session: AsyncSession, func_name: str, error: Exception) -> None:
    try:
        await session.rollback()
        logger.info(f"Rollback performed in {func_name} due to error: {type(error).__name__}")
    except Exception as rollback_error:
        logger.error(f"Failed to rollback in {func_name}: {rollback_error}", exc_info=True)


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Roll back the session if the wrapped coroutine raises, then re-raise.

    Example:
        @with_rollback_on_error
        async def set_status(self, referral_id: int, status: str):
            ...
            await self.session.commit()
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)
        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                "but no session found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            await _safe_rollback(session, func.__name__, e)
            raise

    return wrapper

