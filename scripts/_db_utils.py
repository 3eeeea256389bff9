from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

# models import pulls in every module's tables
import app.onekappa.models  # noqa: F401
from app.onekappa.db import engine_options, make_sessionmaker


def create_script_engine(db_url: str) -> Engine:
    return create_engine(db_url, **engine_options(db_url))


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """Standalone session for release/seed scripts; the engine is disposed on exit."""
    engine = create_script_engine(db_url)
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
