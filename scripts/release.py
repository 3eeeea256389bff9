"""
Release phase: migrate, then seed.

Runs before web workers start (see start.py) or as a one-off job:

    python scripts/release.py

Seeding covers roles, the bootstrap admin, platform settings, event types and
industries. Every step is idempotent and never overwrites existing values.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is not set; refusing to fall back to a local sqlite file.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL points at sqlite while ENV=production.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def seed(db_url: str) -> None:
    from scripts import init_db, seed_chapters

    init_db.seed_only(database_url=db_url)
    seed_chapters.seed_reference_data(database_url=db_url)


def run_release() -> None:
    db_url = _database_url()
    steps = (("migrate", migrate), ("seed", seed))
    for name, step in steps:
        print(f"[release] {name}...", flush=True)
        step(db_url)
        print(f"[release] {name} ok", flush=True)


if __name__ == "__main__":
    run_release()
