#!/usr/bin/env python3
"""
Container entry point: release phase, then gunicorn.

    python scripts/start.py

Env: PORT (default 8080), WEB_CONCURRENCY (default 2), GUNICORN_TIMEOUT (default 60),
plus everything release.py needs.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _port() -> int:
    raw = (os.environ.get("PORT") or "8080").strip()
    if not raw.isdigit() or not 1 <= int(raw) <= 65535:
        raise SystemExit(f"Invalid PORT {raw!r}; expected an integer 1-65535.")
    return int(raw)


def gunicorn_argv(port: int) -> list[str]:
    workers = (os.environ.get("WEB_CONCURRENCY") or "2").strip()
    timeout = (os.environ.get("GUNICORN_TIMEOUT") or "60").strip()
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", workers,
        "--timeout", timeout,
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _port()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed, not starting web workers: {e}", flush=True)
        sys.exit(1)

    argv = gunicorn_argv(port)
    print("Starting: " + " ".join(argv), flush=True)
    # exec so gunicorn is PID 1 and gets SIGTERM from the platform
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
