from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import event
from contextlib import asynccontextmanager
from core.config import settings
from core.exceptions import AlreadyExistsError, StorageError
import logging
from typing import AsyncIterator, Optional

Base = declarative_base()
logger = logging.getLogger("travel_identity")

def _to_async_database_url(url: str) -> str:
    if not url:
        return url
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("mysql+pymysql://"):
        return url.replace("mysql+pymysql://", "mysql+aiomysql://", 1)
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    return url

def build_engine(url: str) -> AsyncEngine:
    async_url = _to_async_database_url(url)
    kwargs = {"future": True, "echo": settings.DB_ECHO}
    # SQLite pools do not accept sizing arguments
    if not async_url.startswith("sqlite"):
        kwargs.update(
            pool_pre_ping=settings.DB_PRE_PING,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
    new_engine = create_async_engine(async_url, **kwargs)
    _attach_pool_logging(new_engine)
    return new_engine

def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )

def _attach_pool_logging(target: AsyncEngine) -> None:
    @event.listens_for(target.sync_engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy):
        logger.debug("DB checkout: id=%s", id(connection_record))

    @event.listens_for(target.sync_engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record):
        logger.debug("DB checkin: id=%s", id(connection_record))

engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)

@asynccontextmanager
async def unit_of_work(session_factory: Optional[async_sessionmaker] = None) -> AsyncIterator[AsyncSession]:
    """Open a session inside one transaction.

    Commits when the block exits cleanly and rolls back on any exception.
    Unique-constraint violations surface as AlreadyExistsError, any other
    database failure as StorageError; domain errors pass through untouched.
    """
    factory = session_factory or SessionLocal
    async with factory() as db:
        try:
            async with db.begin():
                yield db
        except IntegrityError as e:
            logger.warning(f"Unit of work rolled back on constraint violation: {e.orig}")
            raise AlreadyExistsError() from e
        except SQLAlchemyError as e:
            logger.error(f"Unit of work rolled back on database error: {e}")
            raise StorageError() from e
