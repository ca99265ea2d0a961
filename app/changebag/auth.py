from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.changebag.audit import record_event
from app.changebag.db import db_session
from app.changebag.models import Role, User
from app.changebag.rbac import require_login
from app.changebag.security import bearer_token, issue_auth_token, verify_auth_token
from app.changebag.utils import utcnow

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds

SELF_SERVICE_ROLES = ("sponsor", "claimer")


def _check_rate_limit(ip: str) -> bool:
    now = utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def _resolve_user_id() -> int | None:
    token = bearer_token(request.headers.get("Authorization"))
    if token:
        return verify_auth_token(token)
    raw = session.get("user_id")
    try:
        return int(raw) if raw else None
    except (TypeError, ValueError):
        return None


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token or the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/static/", "/uploads/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = _resolve_user_id()
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, user_id)
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


def _auth_payload(user: User) -> dict:
    return {"user": user.to_dict(), "token": issue_auth_token(user.id)}


@bp.post("/register")
def register():
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    role_key = (payload.get("role") or "sponsor").strip().lower()

    errors: list[str] = []
    if not name:
        errors.append("Name is required.")
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if len(password) < 6:
        errors.append("Password must be at least 6 characters.")
    if role_key not in SELF_SERVICE_ROLES:
        errors.append(f"Role must be one of: {', '.join(SELF_SERVICE_ROLES)}.")
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        return jsonify({"message": "User already exists"}), 409

    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        current_app.logger.error("Role %s missing; run scripts/init_db.py", role_key)
        return jsonify({"message": "Registration is not available right now"}), 500

    user = User(
        email=email,
        name=name,
        phone=(payload.get("phone") or "").strip() or None,
        password_hash=generate_password_hash(password),
        is_active=True,
    )
    user.roles.append(role)
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=user.id, metadata={"role": role_key})
    s.commit()
    session["user_id"] = user.id
    return jsonify(_auth_payload(user)), 201


@bp.post("/login")
def login():
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return jsonify({"message": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            return jsonify({"message": "Invalid credentials"}), 401

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
        s.commit()
        return jsonify(_auth_payload(user))
    except Exception:
        current_app.logger.exception("Login crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/me")
@require_login
def me():
    return jsonify({"user": g.current_user.to_dict()})


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=user.id)
        s.commit()
    session.pop("user_id", None)
    return jsonify({"message": "Logged out"})
