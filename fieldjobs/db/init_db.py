import logging

from fieldjobs.db.session import engine
from fieldjobs.db.base import Base
import fieldjobs.db.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_db():
    """Create missing tables directly from the models (local development)."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")


if __name__ == "__main__":
    init_db()
