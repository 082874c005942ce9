# pathway/db.py
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from pathway.config import get_settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """
    Extra create_engine() arguments for the configured backend.

    SQLite connections are shared with the outbound dispatcher thread and
    FastAPI's threadpool, so the same-thread check is switched off.
    """
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


settings = get_settings()

engine = create_engine(
    settings.database_url,
    future=True,
    **engine_options(settings.database_url),
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass
