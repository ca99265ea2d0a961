from __future__ import annotations

import hashlib
import secrets

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

_TOKEN_SALT = "changebag.auth"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_auth_token(user_id: int) -> str:
    return _serializer().dumps({"uid": int(user_id)})


def verify_auth_token(token: str) -> int | None:
    """Return the user id for a valid, unexpired token (None otherwise)."""
    max_age = int(current_app.config.get("AUTH_TOKEN_MAX_AGE") or 0) or None
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Auth token expired")
        return None
    except BadSignature:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return int(data.get("uid"))
    except (TypeError, ValueError):
        return None


def bearer_token(auth_header: str | None) -> str | None:
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def generate_api_key() -> str:
    return "cb_" + secrets.token_hex(16)


def generate_magic_token() -> str:
    return secrets.token_hex(32)


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode("utf-8")).hexdigest()
