# app/database.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings
from app.errors import StorageFailure
from app.models import Base

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            future=True,
        )
        _use_immediate_transactions(engine)
        return engine
    return create_engine(url, pool_pre_ping=True, future=True)


def _use_immediate_transactions(engine: Engine) -> None:
    """Make SQLite take the write lock at BEGIN.

    With pysqlite's deferred BEGIN two sessions can both hold a read lock and
    then fail to upgrade; BEGIN IMMEDIATE makes concurrent writers queue on the
    busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        if not settings.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set")
        _engine = make_engine(settings.database_url)
        _SessionLocal = make_sessionmaker(_engine)
    return _engine


def get_sessionmaker() -> sessionmaker:
    if _SessionLocal is None:
        get_engine()
    return _SessionLocal


@contextmanager
def db_session(factory: Callable[[], Session] | None = None) -> Generator[Session, None, None]:
    """Unit of work: commit on success, roll back on any error.

    Driver and ORM failures surface as StorageFailure; domain errors pass
    through untouched.
    """
    SessionLocal = factory or get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("DB operation failed, rolled back: %s", e)
        raise StorageFailure(str(e)) from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    with db_session() as db:
        yield db


def init_db(engine: Engine | None = None) -> None:
    engine = engine or get_engine()
    # checkfirst keeps this idempotent on an existing schema
    Base.metadata.create_all(bind=engine, checkfirst=True)


def ping(engine: Engine | None = None) -> None:
    engine = engine or get_engine()
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
