from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator
from typing import TypeVar

from flask import Flask, abort, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

T = TypeVar("T")

# Managed Postgres (DigitalOcean) drops idle connections after ~30 minutes.
POSTGRES_POOL = {"pool_recycle": 1800, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30}


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Cascades on causes -> sponsorships/claims/waitlist rely on this.
    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def build_engine(db_url: str) -> Engine:
    opts: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(POSTGRES_POOL)
    engine = create_engine(db_url, **opts)
    if db_url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)
    return engine


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    # autoflush is off: services flush explicitly before running aggregates.
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )


def db_session(app: Flask | None = None) -> Session:
    """
    Session bound to the current request; created on first use and closed
    by teardown_db_session.
    """
    s = getattr(g, "db_session", None)
    if s is None:
        factory = (app or current_app).extensions["sqlalchemy_sessionmaker"]
        s = g.db_session = factory()
    return s


def get_or_404(s: Session, model: type[T], ident: int) -> T:
    obj = s.get(model, ident)
    if obj is None:
        abort(404, description=f"{model.__name__} not found")
    return obj


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """Commit-on-success session for scripts and tests (no request needed)."""
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
