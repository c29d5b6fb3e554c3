import pathlib

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings


def _ensure_sqlite_dir(url: sa.engine.URL):
    if url.database and url.database != ":memory:":
        pathlib.Path(url.database).parent.mkdir(parents=True, exist_ok=True)


DEFERRED_BEGIN = "deferred_begin"


def _install_sqlite_begin_immediate(engine: Engine):
    # pysqlite defers BEGIN until the first write and does not support SAVEPOINT
    # in its default mode. Take the write lock up front so concurrent settlements
    # queue on busy_timeout instead of failing on lock upgrade. Read-only
    # sessions opt out with the ``deferred_begin`` execution option.
    @sa.event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.execute("PRAGMA journal_mode=WAL")
        cur.close()

    @sa.event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(DEFERRED_BEGIN):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(cfg: Settings) -> Engine:
    url = sa.engine.make_url(cfg.DATABASE_URL)

    if url.get_backend_name() == "sqlite":
        _ensure_sqlite_dir(url)
        engine = sa.create_engine(
            url,
            connect_args={"timeout": cfg.SQLITE_BUSY_TIMEOUT_SECONDS, "check_same_thread": False},
        )
        _install_sqlite_begin_immediate(engine)
        return engine

    return sa.create_engine(
        url,
        pool_pre_ping=True,
        pool_size=cfg.DB_POOL_SIZE,
        max_overflow=cfg.DB_MAX_OVERFLOW,
        pool_timeout=cfg.DB_POOL_TIMEOUT_SECONDS,
        pool_recycle=cfg.DB_POOL_RECYCLE_SECONDS,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
