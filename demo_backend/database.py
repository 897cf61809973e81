"""
SQLite engine and sessions for the demo backend.
"""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from demo_backend.config import DATABASE_URL
from demo_backend.models import Base


def engine_for(url: str) -> Engine:
    """Engine for url. In-memory SQLite shares one connection (StaticPool) across threads."""
    if not url.startswith("sqlite"):
        return create_engine(url)
    # Route handlers run in the threadpool
    connect_args = {"check_same_thread": False}
    if url.startswith("sqlite:///:memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


engine = engine_for(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db():
    """Dependency: yield a DB session."""
    with session_scope() as db:
        yield db
