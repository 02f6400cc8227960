from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from leadbot.config import settings

Base = declarative_base()


def _connect_args(database_url: str) -> dict:
    # Railway-hosted Postgres only accepts TLS connections.
    if "railway" in database_url:
        return {"sslmode": "require"}
    return {}


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine(
        settings.database_url,
        connect_args=_connect_args(settings.database_url),
        pool_pre_ping=True,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)


def SessionLocal():
    return get_session_factory()()
