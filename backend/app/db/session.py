from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from backend.app.core.config import DATABASE_URL, SQL_ECHO, SQLITE_BUSY_TIMEOUT


def _configure_sqlite(engine: Engine) -> None:
    """
    SQLite (dev / tests) :
    - foreign keys actives
    - chaque transaction démarre en BEGIN IMMEDIATE -> verrou d'écriture
      posé dès le début, donc check + deduct sérialisés comme un FOR UPDATE
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # le driver ne gère plus BEGIN lui-même, on le fait dans "begin"
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
        )
        _configure_sqlite(engine)
        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


engine = build_engine(DATABASE_URL, echo=SQL_ECHO)
SessionLocal = build_sessionmaker(engine)
