from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import g, jsonify, request

from app.changebag.audit import record_event
from app.changebag.db import db_session
from app.changebag.modules.partners.models import ApiPartner
from app.changebag.security import generate_api_key
from app.changebag.utils import clean_str, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User


def api_key_from_request() -> str | None:
    return (
        clean_str(request.headers.get("X-API-Key"))
        or clean_str(request.headers.get("api-key"))
        or clean_str(request.args.get("apiKey"))
    )


def require_api_key(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the calling partner into g.api_partner or answer 401."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        key = api_key_from_request()
        if not key:
            return (
                jsonify(
                    {
                        "error": "API key required",
                        "message": "Please provide an API key in the X-API-Key header or apiKey query parameter",
                    }
                ),
                401,
            )
        s = db_session()
        partner = s.query(ApiPartner).filter(ApiPartner.api_key == key, ApiPartner.is_active.is_(True)).one_or_none()
        if partner is None:
            return jsonify({"error": "Invalid API key", "message": "The provided API key is invalid or inactive"}), 401
        partner.last_used_at = utcnow()
        s.commit()
        g.api_partner = partner
        return fn(*args, **kwargs)

    return wrapped


def validate_partner_payload(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("businessName")):
        errors.append("businessName is required.")
    email = clean_str(payload.get("businessEmail")) or ""
    if "@" not in email:
        errors.append("A valid businessEmail is required.")
    return errors


def create_partner(s: "Session", payload: dict, user: "User | None") -> ApiPartner:
    name = clean_str(payload.get("businessName")) or ""
    if s.query(ApiPartner).filter(ApiPartner.business_name == name).one_or_none() is not None:
        raise ValueError(f"Partner '{name}' already exists")
    partner = ApiPartner(
        business_name=name,
        business_email=(clean_str(payload.get("businessEmail")) or "").lower(),
        contact_name=clean_str(payload.get("contactName")) or "",
        api_key=generate_api_key(),
        is_active=True,
    )
    s.add(partner)
    s.flush()
    record_event(s, actor=user, action="partner.create", entity_type="ApiPartner", entity_id=partner.id, metadata={"businessName": name})
    return partner


def set_partner_active(s: "Session", partner: ApiPartner, active: bool, user: "User") -> ApiPartner:
    partner.is_active = active
    record_event(s, actor=user, action="partner.status", entity_type="ApiPartner", entity_id=partner.id, metadata={"isActive": active})
    return partner


def rotate_api_key(s: "Session", partner: ApiPartner, user: "User") -> ApiPartner:
    partner.api_key = generate_api_key()
    record_event(s, actor=user, action="partner.rotate_key", entity_type="ApiPartner", entity_id=partner.id)
    return partner
