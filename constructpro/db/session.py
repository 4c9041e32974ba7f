from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from constructpro.core.config import settings


def enable_sqlite_savepoints(target: Engine) -> Engine:
    """Let pysqlite honour SAVEPOINT inside the session transaction.

    The driver defers BEGIN until the first DML statement, so a savepoint
    opened before any write would otherwise commit on release.
    """

    @event.listens_for(target, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return target


engine_kwargs: dict[str, object] = {
    # Detect and recover from stale pooled connections.
    "pool_pre_ping": True,
}

is_sqlite = settings.database_url.lower().startswith("sqlite")
if not is_sqlite:
    # Tune SQLAlchemy pool for networked databases (e.g., Postgres).
    engine_kwargs.update(
        {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout_seconds,
            "pool_recycle": settings.db_pool_recycle_seconds,
        }
    )
else:
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.database_url, **engine_kwargs)
if is_sqlite:
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
