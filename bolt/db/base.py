from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from bolt.config import settings


def _engine_kwargs() -> dict:
    url = str(settings.DATABASE_URL)
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
    }


engine = create_engine(
    str(settings.DATABASE_URL),
    future=True,
    pool_pre_ping=True,
    **_engine_kwargs(),
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope():
    """Provide a transactional scope for DB work and always close the session."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
