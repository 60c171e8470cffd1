import logging
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from calmflow.core.config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str | None = None) -> Engine:
    """
    Build the engine for the on-device snapshot database.
    SQLite connections are shared with the ticker task, so the same-thread check is off.
    """
    db_url = url or settings.DATABASE_URL
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    logger.info("Snapshot database: %s", db_url.split("@")[-1][:50])
    return create_engine(db_url, pool_pre_ping=True, echo=False, connect_args=connect_args)


engine = make_engine()

SessionLocal = sessionmaker(engine, expire_on_commit=False, class_=Session)


def check_db_connection(factory: sessionmaker = SessionLocal) -> bool:
    """
    Simple database connection test that returns True/False without raising exceptions.
    Useful for health checks where you want to test connectivity without failing the endpoint.
    """
    try:
        with factory() as session:
            session.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error("Database connection test failed: %s", e)
        return False
