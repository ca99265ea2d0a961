#!/usr/bin/env python3
"""
Container entrypoint: release phase, then exec gunicorn on app.wsgi:app.

Environment: PORT (default 5000), WEB_CONCURRENCY (workers, default 2),
GUNICORN_TIMEOUT (seconds, default 60). Gunicorn replaces this process so it
receives SIGTERM from the platform directly.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _env_int(name: str, default: int, *, lo: int = 1, hi: int = 65535) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = lo - 1
    if not lo <= value <= hi:
        print(f"ERROR: {name}={raw!r} must be an integer between {lo} and {hi}.", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv() -> list[str]:
    port = _env_int("PORT", 5000)
    workers = _env_int("WEB_CONCURRENCY", 2, hi=64)
    timeout = _env_int("GUNICORN_TIMEOUT", 60, hi=3600)
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== exec {' '.join(argv[:4])} ===", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
