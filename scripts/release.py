"""
Release phase: migrate the schema, then run the idempotent seed.

    python scripts/release.py [--skip-seed]

Production must point DATABASE_URL at Postgres; an unset URL or a SQLite URL
with ENV=production aborts before anything touches a database.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def checked_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against SQLite in production; set DATABASE_URL to Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release(*, seed: bool = True) -> None:
    db_url = checked_database_url()
    print(f"=== ChangeBag release (ENV={os.environ.get('ENV') or 'unset'}) ===", flush=True)

    print("alembic upgrade head ...", flush=True)
    migrate(db_url)

    if seed:
        from scripts import init_db

        print("Seeding roles, admin and settings ...", flush=True)
        init_db.seed_only(database_url=db_url)
    print("=== release done ===", flush=True)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--skip-seed", action="store_true", help="only run migrations")
    args = parser.parse_args()
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
