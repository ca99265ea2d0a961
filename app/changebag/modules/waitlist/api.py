from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from app.changebag.db import db_session, get_or_404
from app.changebag.mailer import MailError
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.waitlist import service as waitlist_svc
from app.changebag.modules.waitlist.models import WaitlistEntry
from app.changebag.rbac import require_permission
from app.changebag.utils import clean_str, error, request_payload, to_int

bp = Blueprint("waitlist", __name__)


@bp.post("/join")
def join():
    payload = request_payload()
    errors = waitlist_svc.validate_join_payload(payload)
    if errors:
        return error("Missing required fields", 400, errors=errors)
    s = db_session()
    cause = s.get(Cause, to_int(payload.get("causeId"), 0))
    if cause is None:
        return error("Cause not found", 404)
    try:
        entry = waitlist_svc.join_waitlist(s, cause, payload, getattr(g, "current_user", None))
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify({"message": "Successfully joined waitlist", "waitlistEntry": entry.to_dict(), "position": entry.position}), 201


@bp.get("/validate/<token>")
def validate(token: str):
    s = db_session()
    entry = waitlist_svc.find_by_token(s, token)
    s.commit()
    if entry is None:
        return error("Invalid or expired magic link", 400)
    return jsonify(
        {
            "valid": True,
            "waitlistEntry": {
                "fullName": entry.full_name,
                "email": entry.email,
                "phone": entry.phone,
                "message": entry.message,
                "causeId": entry.cause_id,
            },
        }
    )


@bp.get("/user/<email>")
def entries_for_email(email: str):
    s = db_session()
    entries = (
        s.query(WaitlistEntry)
        .filter(WaitlistEntry.email == email.strip().lower())
        .order_by(WaitlistEntry.created_at.desc())
        .all()
    )
    out = []
    for entry in entries:
        item = entry.to_dict()
        c = entry.cause
        item["cause"] = {
            "id": c.id,
            "title": c.title,
            "description": c.description,
            "imageUrl": c.image_url,
            "targetAmount": c.target_amount,
            "currentAmount": c.current_amount,
            "status": c.status,
            "isOnline": c.is_online,
        }
        out.append(item)
    return jsonify(out)


@bp.delete("/<int:entry_id>")
def leave(entry_id: int):
    email = (clean_str(request_payload().get("email")) or "").lower()
    if not email:
        return error("Email is required", 400)
    s = db_session()
    entry = s.get(WaitlistEntry, entry_id)
    if entry is None or entry.email != email:
        return error("Waitlist entry not found", 404)
    waitlist_svc.leave_waitlist(s, entry)
    s.commit()
    return jsonify({"message": "Successfully left waitlist"})


@bp.get("/cause/<int:cause_id>")
@require_permission("waitlist.manage")
def for_cause(cause_id: int):
    s = db_session()
    get_or_404(s, Cause, cause_id)
    entries = s.query(WaitlistEntry).filter(WaitlistEntry.cause_id == cause_id).order_by(WaitlistEntry.position).all()
    return jsonify([e.to_dict() for e in entries])


@bp.get("/all")
@require_permission("waitlist.manage")
def all_entries():
    s = db_session()
    entries = s.query(WaitlistEntry).order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc()).all()
    return jsonify([e.to_dict() for e in entries])


@bp.put("/<int:entry_id>/claim")
@require_permission("waitlist.manage")
def mark_claimed(entry_id: int):
    s = db_session()
    entry = get_or_404(s, WaitlistEntry, entry_id)
    waitlist_svc.mark_claimed(s, entry, g.current_user)
    s.commit()
    return jsonify({"message": "Waitlist entry marked as claimed", "waitlistEntry": entry.to_dict()})


@bp.post("/<int:entry_id>/resend")
@require_permission("waitlist.manage")
def resend(entry_id: int):
    s = db_session()
    entry = get_or_404(s, WaitlistEntry, entry_id)
    try:
        waitlist_svc.resend_notification(s, entry, g.current_user)
    except ValueError as e:
        return error(str(e), 400)
    except MailError as e:
        s.rollback()
        current_app.logger.error("Waitlist resend failed for entry %s: %s", entry_id, e)
        return error("Failed to send notification email", 502)
    s.commit()
    return jsonify({"message": "Notification resent successfully", "waitlistEntry": entry.to_dict()})
