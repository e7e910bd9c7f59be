"""
Engine, session factory and the transaction contract used by the booking workflow.

The session is created per request by `get_db` and passed explicitly into
every service function. Services that mutate inventory wrap their work in
`transaction(db)`, which commits on success and rolls back on any failure,
translating driver errors into the domain taxonomy:

  - lock wait timeout / statement cancel / SQLite "database is locked"
      -> LockTimeoutError (retryable)
  - deadlock / serialization failure / unique violation
      -> ConflictError (retryable)
  - anything else from the driver
      -> InternalError (details logged, never returned)

SQLite has no row locks; engines for it begin every transaction with
BEGIN IMMEDIATE so that writers are serialized at the database level.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from booking_api.core.config import get_settings
from booking_api.core.exceptions import ConflictError, InternalError, LockTimeoutError
from booking_api.core.logging import get_logger
from booking_api.core.metrics import record_lock_conflict

logger = get_logger(__name__)

LOCK_TIMEOUT_SQLSTATES = {"55P03", "57014"}  # lock_not_available, query_canceled
CONFLICT_SQLSTATES = {"40001", "40P01", "23505"}  # serialization, deadlock, unique


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine with the locking behaviour the workflow relies on."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
        engine = create_async_engine(url, **kwargs)
        _use_immediate_transactions(engine)
        return engine

    settings = get_settings()
    kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
    kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
    kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT)
    kwargs.setdefault("pool_recycle", settings.DB_POOL_RECYCLE)
    kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Stop the driver from emitting its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


settings = get_settings()
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, always closed."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    await engine.dispose()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run the enclosed block as one atomic unit.

    Commits when the block exits normally. Any exception, including a failed
    commit, rolls back every write made in the block.
    """
    try:
        yield db
        await db.commit()
    except DBAPIError as exc:
        await db.rollback()
        raise translate_db_error(exc) from exc
    except Exception:
        await db.rollback()
        raise


def translate_db_error(exc: DBAPIError) -> Exception:
    sqlstate = _sqlstate(exc)
    message = str(exc.orig) if exc.orig is not None else str(exc)

    if sqlstate in LOCK_TIMEOUT_SQLSTATES or "database is locked" in message:
        record_lock_conflict("lock_timeout")
        logger.warning("transaction_lock_timeout", sqlstate=sqlstate)
        return LockTimeoutError("The event is busy, please retry the request")

    if sqlstate in CONFLICT_SQLSTATES or isinstance(exc, IntegrityError):
        record_lock_conflict("conflict")
        logger.warning("transaction_conflict", sqlstate=sqlstate, error=message)
        return ConflictError("The request conflicted with a concurrent change, please retry")

    logger.error("transaction_failed", sqlstate=sqlstate, error=message, exc_info=exc)
    return InternalError()


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return value
    return None
