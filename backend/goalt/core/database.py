"""
Async SQLAlchemy engine and session factory shared by every repository.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from goalt.core.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None


def configure_database(url: str | None = None) -> async_sessionmaker:
    """
    Build the engine and session factory. In-memory SQLite shares one connection
    across sessions so tests see a single database.
    """
    global _engine, _session_factory
    url = url or get_settings().database_url
    kwargs: dict = {}
    if url.startswith("sqlite") and ":memory:" in url:
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    _engine = create_async_engine(url, **kwargs)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    logger.info("database configured url=%s", url.split("@")[-1])
    return _session_factory


def get_engine() -> AsyncEngine:
    if _engine is None:
        configure_database()
    return _engine


def get_session_factory() -> async_sessionmaker:
    if _session_factory is None:
        configure_database()
    return _session_factory


async def init_models() -> None:
    # model modules register their tables on Base.metadata at import
    from goalt.domains.goal import models as _goal_models  # noqa: F401
    from goalt.domains.user import models as _user_models  # noqa: F401
    from goalt.infrastructure.messenger import models as _messenger_models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
