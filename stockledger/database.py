import logging
import sqlite3

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from stockledger.config import settings

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _is_sqlite_memory(url: str) -> bool:
    db_url = make_url(url)
    return db_url.database in (None, "", ":memory:") or db_url.query.get("mode") == "memory"


def configure_sqlite(engine: Engine, timeout_seconds: float) -> None:
    """Enable foreign keys, a bounded busy wait and WAL journaling on every connection."""
    busy_ms = int(timeout_seconds * 1000)
    memory = _is_sqlite_memory(str(engine.url))

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={busy_ms}")
            if not memory:
                try:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=NORMAL")
                except sqlite3.DatabaseError as exc:
                    logger.warning("Could not enable WAL journaling: %s", exc)
        finally:
            cursor.close()


def make_engine(url: str, timeout_seconds: float) -> Engine:
    connect_args = {}
    if _is_sqlite(url):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    if _is_sqlite(url):
        configure_sqlite(engine, timeout_seconds)
    return engine


engine = make_engine(settings.DATABASE_URL, settings.DB_TIMEOUT_SECONDS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None):
    # Import all models so Base.metadata knows about them
    import stockledger.models.ledger_entry  # noqa: F401
    import stockledger.models.order  # noqa: F401
    import stockledger.models.product  # noqa: F401
    import stockledger.models.user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
