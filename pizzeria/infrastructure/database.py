import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from pizzeria.core.config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        # SQLite ignores ON DELETE CASCADE unless asked.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_database(bind=None, retries: int = settings.DB_CONNECT_RETRIES, wait_seconds: int = settings.DB_CONNECT_WAIT_SECONDS) -> None:
    """Create tables, retrying while the database container is still starting."""
    # Tables must be registered on Base before create_all.
    from pizzeria.infrastructure import tables  # noqa: F401

    bind = bind or engine
    for attempt in range(retries):
        try:
            logger.info("🔄 Attempting DB connection (%d/%d)...", attempt + 1, retries)
            Base.metadata.create_all(bind=bind)
            logger.info("✅ DB Connected and Tables Created.")
            return
        except OperationalError:
            logger.warning("⚠️ DB not ready yet. Waiting %ss...", wait_seconds)
            time.sleep(wait_seconds)
    raise RuntimeError(f"❌ Could not connect to DB after {retries} retries")
