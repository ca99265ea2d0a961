from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from flask import current_app
from sqlalchemy import func

from app.changebag.audit import record_event
from app.changebag.constants import MAGIC_LINK_HOURS
from app.changebag.mailer import MailError, send_waitlist_available_email, send_waitlist_reminder_email
from app.changebag.modules.waitlist.models import WaitlistEntry
from app.changebag.security import generate_magic_token
from app.changebag.utils import clean_str, to_bool, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User
    from app.changebag.modules.causes.models import Cause

logger = logging.getLogger(__name__)


def magic_link_url(token: str, cause_id: int) -> str:
    base = (current_app.config.get("FRONTEND_URL") or "").rstrip("/")
    return f"{base}/claim/magic-link?{urlencode({'token': token, 'causeId': cause_id})}"


def validate_join_payload(payload: dict) -> list[str]:
    errors = []
    for key in ("causeId", "fullName", "email", "phone"):
        if not clean_str(payload.get(key)):
            errors.append(f"{key} is required.")
    return errors


def next_position(s: "Session", cause_id: int) -> int:
    last = s.query(func.max(WaitlistEntry.position)).filter(WaitlistEntry.cause_id == cause_id).scalar()
    return int(last or 0) + 1


def join_waitlist(s: "Session", cause: "Cause", payload: dict, user: "User | None") -> WaitlistEntry:
    email = clean_str(payload.get("email")).lower()  # type: ignore[union-attr]
    exists = s.query(WaitlistEntry).filter(WaitlistEntry.cause_id == cause.id, WaitlistEntry.email == email).one_or_none()
    if exists is not None:
        raise ValueError("You are already on the waitlist for this cause")
    entry = WaitlistEntry(
        cause_id=cause.id,
        user_id=user.id if user else None,
        full_name=clean_str(payload.get("fullName")) or "",
        email=email,
        phone=clean_str(payload.get("phone")) or "",
        message=clean_str(payload.get("message")),
        notify_email=to_bool(payload.get("notifyEmail"), default=True),
        notify_sms=to_bool(payload.get("notifySms"), default=False),
        position=next_position(s, cause.id),
        status="waiting",
    )
    s.add(entry)
    s.flush()
    record_event(s, actor=user, action="waitlist.join", entity_type="WaitlistEntry", entity_id=entry.id, metadata={"causeId": cause.id, "position": entry.position})
    return entry


def renumber(s: "Session", cause_id: int) -> None:
    s.flush()
    entries = s.query(WaitlistEntry).filter(WaitlistEntry.cause_id == cause_id).order_by(WaitlistEntry.position, WaitlistEntry.id).all()
    for i, entry in enumerate(entries, start=1):
        if entry.position != i:
            entry.position = i


def leave_waitlist(s: "Session", entry: WaitlistEntry) -> None:
    cause_id = entry.cause_id
    record_event(s, actor=None, action="waitlist.leave", entity_type="WaitlistEntry", entity_id=entry.id, metadata={"causeId": cause_id})
    s.delete(entry)
    renumber(s, cause_id)


def _issue_link(entry: WaitlistEntry) -> str:
    now = utcnow()
    entry.magic_link_token = generate_magic_token()
    entry.magic_link_sent_at = now
    entry.magic_link_expires = now + timedelta(hours=MAGIC_LINK_HOURS)
    return magic_link_url(entry.magic_link_token, entry.cause_id)


def notify_waitlist_members(s: "Session", cause: "Cause") -> int:
    """
    Give every waiting entry of `cause` a 48h magic link and email it.
    Returns the number of entries notified. One failing email does not stop the rest.
    """
    entries = (
        s.query(WaitlistEntry)
        .filter(WaitlistEntry.cause_id == cause.id, WaitlistEntry.status == "waiting")
        .order_by(WaitlistEntry.position)
        .all()
    )
    notified = 0
    for entry in entries:
        link = _issue_link(entry)
        entry.status = "notified"
        notified += 1
        if not entry.notify_email:
            continue
        try:
            send_waitlist_available_email(entry, cause, link)
        except MailError:
            logger.exception("Waitlist email failed (entry=%s cause=%s)", entry.id, cause.id)
    if notified:
        record_event(s, actor=None, action="waitlist.notify", entity_type="Cause", entity_id=cause.id, metadata={"notified": notified})
        logger.info("Notified %s waitlist entries for cause %s", notified, cause.id)
    return notified


def mark_claimed(s: "Session", entry: WaitlistEntry, user: "User") -> WaitlistEntry:
    entry.status = "claimed"
    record_event(s, actor=user, action="waitlist.claimed", entity_type="WaitlistEntry", entity_id=entry.id)
    return entry


def resend_notification(s: "Session", entry: WaitlistEntry, user: "User") -> WaitlistEntry:
    """
    New magic link plus reminder email; raises ValueError unless the entry is
    notified. The previous link stays valid when the reminder is not sent.
    """
    if entry.status != "notified":
        raise ValueError("Can only resend notifications for entries in notified status")
    previous = (entry.magic_link_token, entry.magic_link_sent_at, entry.magic_link_expires)
    link = _issue_link(entry)
    if entry.notify_email and not send_waitlist_reminder_email(entry, entry.cause, link):
        entry.magic_link_token, entry.magic_link_sent_at, entry.magic_link_expires = previous
        raise ValueError("A reminder was sent to this entry moments ago")
    record_event(s, actor=user, action="waitlist.resend", entity_type="WaitlistEntry", entity_id=entry.id)
    return entry


def find_by_token(s: "Session", token: str) -> WaitlistEntry | None:
    """
    Entry whose magic link is `token` and still usable. A notified entry whose
    link lapsed is flipped to expired on the way.
    """
    entry = s.query(WaitlistEntry).filter(WaitlistEntry.magic_link_token == token).one_or_none()
    if entry is None or entry.status != "notified":
        return None
    if entry.magic_link_expires is None or entry.magic_link_expires <= utcnow():
        entry.status = "expired"
        return None
    return entry
