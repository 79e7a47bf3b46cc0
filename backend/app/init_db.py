"""Create all tables for local development (production schemas are managed out of band)."""

import logging

from app.database import Base, engine
import app.models  # noqa: F401  registers every model on Base.metadata

logger = logging.getLogger(__name__)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_tables()
