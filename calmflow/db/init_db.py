import logging
from sqlalchemy.engine import Engine
from calmflow.db.session import engine as default_engine
from calmflow.db.models import Base

logger = logging.getLogger(__name__)

def init_db(engine: Engine | None = None):
    """Initialize database tables"""
    target = engine or default_engine
    try:
        Base.metadata.create_all(target)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        raise

if __name__ == "__main__":
    init_db()
