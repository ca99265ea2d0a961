from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app.changebag import create_app
from app.changebag.auth import _login_attempts
from app.changebag.db import session_scope
from app.changebag.models import Base, Permission, Role, User
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.rbac import PERMISSIONS, ROLE_PERMISSIONS

USERS = {
    "admin": "admin@example.com",
    "sponsor": "sponsor@example.com",
    "claimer": "claimer@example.com",
}


def _seed_roles(s) -> dict[str, Role]:
    perms = {key: Permission(key=key, name=name) for key, name in PERMISSIONS.items()}
    s.add_all(perms.values())
    roles = {}
    for key, (name, perm_keys) in ROLE_PERMISSIONS.items():
        role = Role(key=key, name=name)
        for pk in perm_keys:
            role.permissions.append(perms[pk])
        s.add(role)
        roles[key] = role
    return roles


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_LOCAL_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("MAIL_BACKEND", "console")
    monkeypatch.setenv("MAIL_DUPLICATE_WINDOW_SECONDS", "0")
    monkeypatch.setenv("FRONTEND_URL", "http://spa.test")
    monkeypatch.setenv("RAZORPAY_KEY_ID", "rzp_test_key123456")
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", "rzp-test-secret")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "CORS_ORIGINS"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    _login_attempts.clear()

    with session_scope(app) as s:
        roles = _seed_roles(s)
        for role_key, email in USERS.items():
            u = User(
                email=email,
                name=role_key.title(),
                password_hash=generate_password_hash("pw"),
                is_active=True,
            )
            u.roles.append(roles[role_key])
            s.add(u)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def outbox(app):
    return app.extensions.setdefault("mail_outbox", [])


@pytest.fixture()
def auth(app):
    """auth("admin") -> Authorization headers for the seeded user with that role."""
    cache: dict[str, dict] = {}
    # Log in on a separate client so the session cookie does not leak into `client`.
    login_client = app.test_client()

    def _headers(role: str) -> dict:
        if role not in cache:
            r = login_client.post("/api/auth/login", json={"email": USERS[role], "password": "pw"})
            assert r.status_code == 200, r.json
            cache[role] = {"Authorization": f"Bearer {r.json['token']}"}
        return cache[role]

    return _headers


@pytest.fixture()
def user_id(app):
    def _lookup(role: str) -> int:
        with session_scope(app) as s:
            return s.query(User).filter(User.email == USERS[role]).one().id

    return _lookup


@pytest.fixture()
def make_cause(app):
    def _make(**overrides) -> int:
        fields = {
            "title": "Clean Rivers",
            "description": "Reusable totes for river clean-up volunteers",
            "category": "environment",
            "target_amount": 10000.0,
            "status": "approved",
            "is_online": True,
        }
        fields.update(overrides)
        with session_scope(app) as s:
            cause = Cause(**fields)
            s.add(cause)
            s.flush()
            return cause.id

    return _make


@pytest.fixture()
def make_sponsorship(app):
    def _make(cause_id: int, **overrides) -> int:
        fields = {
            "organization_name": "Acme Foods",
            "contact_name": "Priya",
            "email": "ops@acme.test",
            "phone": "9999999999",
            "tote_quantity": 3,
            "unit_price": 100.0,
            "total_amount": 300.0,
            "logo_url": "https://cdn.test/acme.png",
            "distribution_type": "physical",
            "selected_cities": ["Pune"],
            "distribution_locations": [{"name": "Pune Central", "totes": 3}],
            "distribution_start_date": date(2026, 1, 1),
            "distribution_end_date": date(2026, 2, 1),
            "status": "approved",
        }
        fields.update(overrides)
        with session_scope(app) as s:
            sp = Sponsorship(cause_id=cause_id, **fields)
            s.add(sp)
            s.flush()
            return sp.id

    return _make
