"""Database engine and session factory for background tasks."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config.settings import settings


def create_task_engine() -> AsyncEngine:
    """NullPool engine: connections never outlive the task's event loop."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )


def create_task_session_maker(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Session factory for tasks."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


task_engine = create_task_engine()
task_session_maker = create_task_session_maker(task_engine)
