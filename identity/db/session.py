# identity/db/session.py
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from identity.config import DATABASE_URL
from identity.utils.logging_config import log_context

# Import the common db logger
from . import logger

_default_factory: Optional[sessionmaker] = None


def create_session_factory(database_url: str = DATABASE_URL, **engine_kwargs) -> sessionmaker:
    """Build an engine and a session factory bound to it"""
    if database_url.startswith("postgresql"):
        engine_kwargs.setdefault("pool_pre_ping", True)
        engine_kwargs.setdefault("pool_size", 5)
        engine_kwargs.setdefault("max_overflow", 10)
    engine: Engine = create_engine(database_url, echo=False, **engine_kwargs)
    logger.info("Created database engine", extra={'dialect': engine.dialect.name})
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory() -> sessionmaker:
    """Session factory for DATABASE_URL, created on first use"""
    global _default_factory
    if _default_factory is None:
        _default_factory = create_session_factory()
    return _default_factory


def create_tables(session_factory: Optional[sessionmaker] = None) -> None:
    from identity.db.models import Base
    factory = session_factory or get_session_factory()
    Base.metadata.create_all(bind=factory.kw["bind"])


@contextmanager
def db_session(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """Session context manager: commit on success, roll back on error, always close"""
    db = (session_factory or get_session_factory())()
    try:
        with log_context(logger, session_id=id(db)):
            yield db
            db.commit()
            logger.debug("Database session committed")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database error - rolling back", exc_info=True, extra={
            'error_type': type(e).__name__,
            'session_id': id(db)
        })
        raise
    except Exception as e:
        db.rollback()
        logger.debug("Rolled back after non-database error", extra={
            'error_type': type(e).__name__,
            'session_id': id(db)
        })
        raise
    finally:
        db.close()
