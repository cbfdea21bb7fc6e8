"""Database connection and session management for the Stripe Plus gateway."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Table, create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from stripe_plus_gateway.config import settings

# Base class for all ORM models
Base = declarative_base()


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own transaction boundaries so SAVEPOINT works on pysqlite."""

    @event.listens_for(engine, "connect")
    def disable_driver_transactions(dbapi_conn, connection_record):  # type: ignore
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def emit_begin(conn):  # type: ignore
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Create a SQLAlchemy engine.

    Server databases get a connection pool; SQLite gets a static pool when
    in-memory so every session sees the same database.

    Args:
        database_url: SQLAlchemy URL. If None, uses settings.database_url

    Returns:
        Configured SQLAlchemy engine
    """
    url = make_url(database_url or settings.database_url)

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            engine = create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.debug,
            )
        else:
            engine = create_engine(url, echo=settings.debug)
        _enable_sqlite_savepoints(engine)
        return engine

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,
        echo=settings.debug,
    )

    if url.get_backend_name() == "postgresql":

        @event.listens_for(engine, "connect")
        def set_postgresql_session(dbapi_conn, connection_record):  # type: ignore
            cursor = dbapi_conn.cursor()
            cursor.execute("SET timezone='UTC'")
            cursor.execute("SET statement_timeout='30000'")  # 30 second timeout
            cursor.close()

    return engine


# Global engine and session factory (replaced by the host or tests as needed)
engine = create_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(
    session_factory: sessionmaker | None = None,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            CustomerMappingRepository(session).get_by_contact(42)

    Automatically commits on success, rolls back on exception.
    """
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None, tables: list[Table] | None = None) -> None:
    """
    Create the gateway tables if they don't exist.

    Args:
        engine: Optional engine to use. If None, uses global engine.
        tables: Optional subset of tables. If None, creates all.
    """
    target_engine = engine or globals()["engine"]
    Base.metadata.create_all(bind=target_engine, tables=tables)


def drop_tables(engine: Engine | None = None, tables: list[Table] | None = None) -> None:
    """
    Drop gateway tables.

    WARNING: Dropping the mapping table loses every contact to customer link.

    Args:
        engine: Optional engine to use. If None, uses global engine.
        tables: Optional subset of tables. If None, drops all.
    """
    target_engine = engine or globals()["engine"]
    Base.metadata.drop_all(bind=target_engine, tables=tables)
