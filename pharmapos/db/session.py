# pharmapos/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pharmapos.core.config import settings


def make_engine(db_uri: str) -> Engine:
    """
    Build an engine for the given URI.
    SQLite gets a busy timeout and cross-thread connections; server databases
    get the pooled defaults.
    """
    if db_uri.startswith("sqlite"):
        return create_engine(
            db_uri,
            echo=settings.DB_ECHO,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.DB_LOCK_TIMEOUT_SECONDS,
            },
            future=True,
        )
    return create_engine(
        db_uri,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
    )


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=eng,
        future=True,
    )


engine: Engine = make_engine(settings.DATABASE_URL)

SessionLocal = make_session_factory(engine)
