"""
Engine and session plumbing.

Request handlers share one session per request via ``db_session()``; scripts
and tests open their own with ``session_scope(app)``. Sessions never expire
rows on commit, so serializers can read them after ``s.commit()``.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

POSTGRES_POOL = {"pool_recycle": 1800, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30}


def engine_options(db_url: str) -> dict[str, object]:
    opts: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(POSTGRES_POOL)
    return opts


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


def _sqlite_foreign_keys(engine: Engine) -> None:
    # sqlite only enforces FK constraints when asked on each connection
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _dispose_after_fork(engine: Engine) -> None:
    # gunicorn --preload forks workers after the app (and its pool) exists
    if not hasattr(os, "register_at_fork"):
        return

    def _child():
        engine.dispose(close=False)
        logger.info("DB: disposed inherited connection pool (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_child)


def init_db(app: Flask) -> Engine:
    db_url = app.config["DATABASE_URL"]
    engine = create_engine(db_url, **engine_options(db_url))
    if engine.dialect.name == "sqlite":
        _sqlite_foreign_keys(engine)
    _dispose_after_fork(engine)
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)
    return engine


def db_session() -> Session:
    """Session bound to the current request, opened on first use."""
    s = g.get("db_session")
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
