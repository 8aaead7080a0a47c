# corgi_buddy/db/engine.py
from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def configure_sqlite(engine: Engine) -> None:
    """
    pysqlite defaults break SAVEPOINT handling and leave foreign keys off.
    Take over transaction control so `Session.begin_nested()` works.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            future=True,
        )
        configure_sqlite(engine)
        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        future=True,
    )
