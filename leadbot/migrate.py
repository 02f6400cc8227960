from sqlalchemy.engine import Engine

from leadbot.database import Base, get_engine
from leadbot.logging_config import get_logger

import leadbot.models  # noqa: F401  registers tables on Base.metadata

logger = get_logger("migrate")


def run_migrations(engine: Engine | None = None) -> None:
    """Create the sessions and leads tables if they do not exist yet."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Schema applied", extra={"context": {"tables": sorted(Base.metadata.tables)}})


if __name__ == "__main__":
    run_migrations()
