from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from room_inventory.config import Settings

# Declarative base shared by every ORM model
Base = declarative_base()


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    # pysqlite/aiosqlite start transactions lazily and only before DML.
    # Take the write lock up front so check-then-increment cannot interleave.
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=settings.db_echo,
            connect_args={"timeout": max(settings.lock_timeout_ms / 1000, 1)},
        )
        _install_sqlite_hooks(engine)
        return engine

    return create_async_engine(
        url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    # Models must be imported so their tables are registered on Base.metadata
    from room_inventory.bookings import models as booking_models  # noqa: F401
    from room_inventory.inventory import models as inventory_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
