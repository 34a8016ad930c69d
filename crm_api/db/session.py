"""Database engine, session factory and the per-request session dependency."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session

from crm_api.core.config import settings


def engine_options(url: str) -> dict:
    """Engine keyword arguments for ``url``. SQLite gets no pool sizing."""
    options = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if make_url(url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800,
    )
    return options


engine = create_engine(settings.MYSQL_URL, **engine_options(settings.MYSQL_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """One session per request, rolled back if the request raises mid-transaction."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
