from __future__ import annotations

import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.changebag.models import AuditEvent, User


def _request_context() -> tuple[str | None, str | None]:
    """(request_id, client ip) of the current request, if any."""
    if not has_request_context():
        return None, None
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return getattr(g, "request_id", None), forwarded or request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | int | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append one audit row to `s` (the caller commits). `action` is dotted,
    e.g. "sponsorship.approve"; `metadata` is stored as sorted JSON.
    Scripts call this outside a request and get no request id or ip.
    """
    rid, ip = _request_context()
    ev = AuditEvent(
        request_id=request_id or rid,
        client_ip=ip,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=None if entity_id is None else str(entity_id),
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
