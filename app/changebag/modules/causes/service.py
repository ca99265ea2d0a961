from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.changebag.audit import record_event
from app.changebag.constants import (
    CAUSE_STATUSES,
    COUNTED_CLAIM_STATUSES,
    FUNDED_SPONSORSHIP_STATUSES,
    SHIPPED_CLAIM_STATUSES,
)
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.claims.models import Claim
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.utils import clean_str, iso, parse_date, pick, to_bool, to_float

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User


# Sections of the editable cause landing page.
CONTENT_KEYS = (
    "story",
    "detailedDescription",
    "whyItMatters",
    "heroTitle",
    "heroSubtitle",
    "heroImageUrl",
    "heroBackgroundColor",
    "impactTitle",
    "impactSubtitle",
    "impactStats",
    "progressTitle",
    "progressSubtitle",
    "progressBackgroundImageUrl",
    "progressCards",
    "faqs",
    "ctaTitle",
    "ctaSubtitle",
    "ctaPrimaryButtonText",
    "ctaSecondaryButtonText",
    "primaryColor",
    "secondaryColor",
    "accentColor",
    "customCSS",
    "metaTitle",
    "metaDescription",
    "metaKeywords",
    "ogImageUrl",
    "testimonials",
    "gallery",
    "partners",
)
_LIST_CONTENT_KEYS = frozenset({"impactStats", "progressCards", "faqs", "metaKeywords", "testimonials", "gallery", "partners"})


# --- tote accounting -------------------------------------------------------


def total_totes(s: "Session", cause_id: int) -> int:
    q = s.query(func.coalesce(func.sum(Sponsorship.tote_quantity), 0)).filter(
        Sponsorship.cause_id == cause_id,
        Sponsorship.status.in_(FUNDED_SPONSORSHIP_STATUSES),
    )
    return int(q.scalar() or 0)


def count_claims(s: "Session", cause_id: int, statuses: tuple[str, ...] | None = None) -> int:
    q = s.query(func.count(Claim.id)).filter(Claim.cause_id == cause_id)
    if statuses is not None:
        q = q.filter(Claim.status.in_(statuses))
    return int(q.scalar() or 0)


def tote_availability(s: "Session", cause_id: int) -> dict[str, int]:
    total = total_totes(s, cause_id)
    claimed = count_claims(s, cause_id, COUNTED_CLAIM_STATUSES)
    return {"totalTotes": total, "claimedTotes": claimed, "availableTotes": max(0, total - claimed)}


def remaining_for_new_claims(s: "Session", cause_id: int) -> int:
    """Totes not yet reserved by any live (non-cancelled) claim."""
    reserved = s.query(func.count(Claim.id)).filter(Claim.cause_id == cause_id, Claim.status != "cancelled").scalar() or 0
    return max(0, total_totes(s, cause_id) - int(reserved))


def recompute_cause_amount(s: "Session", cause: Cause) -> float:
    s.flush()  # sessions do not autoflush
    amount = (
        s.query(func.coalesce(func.sum(Sponsorship.total_amount), 0.0))
        .filter(Sponsorship.cause_id == cause.id, Sponsorship.status.in_(FUNDED_SPONSORSHIP_STATUSES))
        .scalar()
    )
    cause.current_amount = float(amount or 0.0)
    return cause.current_amount


# --- serialization ---------------------------------------------------------


def _creator_summary(cause: Cause) -> dict | None:
    if cause.creator is None:
        return None
    return {"id": cause.creator.id, "name": cause.creator.name, "email": cause.creator.email}


def _sponsorship_summary(sp: Sponsorship) -> dict:
    return {
        "id": sp.id,
        "status": sp.status,
        "organizationName": sp.organization_name,
        "toteQuantity": sp.tote_quantity,
        "totalAmount": sp.total_amount,
        "logoUrl": sp.logo_url,
        "createdAt": iso(sp.created_at),
        "updatedAt": iso(sp.updated_at),
    }


def cause_to_dict(cause: Cause) -> dict:
    return {
        "id": cause.id,
        "title": cause.title,
        "description": cause.description,
        "category": cause.category,
        "location": cause.location,
        "targetAmount": cause.target_amount,
        "currentAmount": cause.current_amount,
        "status": cause.status,
        "isOnline": cause.is_online,
        "imageUrl": cause.image_url,
        "adminImageUrl": cause.admin_image_url,
        "totePreviewImageUrl": cause.tote_preview_image_url,
        "images": list(cause.images or []),
        "startDate": iso(cause.start_date),
        "distributionStartDate": iso(cause.distribution_start_date),
        "distributionEndDate": iso(cause.distribution_end_date),
        "content": dict(cause.content or {}),
        "creator": _creator_summary(cause),
        "createdAt": iso(cause.created_at),
        "updatedAt": iso(cause.updated_at),
    }


def cause_list_item(cause: Cause) -> dict:
    out = cause_to_dict(cause)
    out.pop("content", None)
    out["sponsorships"] = [_sponsorship_summary(sp) for sp in cause.sponsorships]
    out["hasApprovedSponsorship"] = any(sp.status == "approved" for sp in cause.sponsorships)
    return out


def cause_detail(s: "Session", cause: Cause) -> dict:
    out = cause_to_dict(cause)
    out.update(tote_availability(s, cause.id))
    out["sponsorships"] = [_sponsorship_summary(sp) for sp in cause.sponsorships]
    out["hasApprovedSponsorship"] = any(sp.status == "approved" for sp in cause.sponsorships)
    return out


# --- queries ---------------------------------------------------------------


def list_causes(s: "Session", args) -> list[Cause]:
    q = s.query(Cause)
    status = clean_str(args.get("status"))
    if status:
        q = q.filter(Cause.status == status)
    if args.get("isOnline") is not None:
        q = q.filter(Cause.is_online.is_(to_bool(args.get("isOnline"))))
    category = clean_str(args.get("category"))
    if category:
        q = q.filter(Cause.category == category)
    search = clean_str(args.get("search"))
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(func.lower(Cause.title).like(like), func.lower(Cause.description).like(like)))
    return q.order_by(Cause.created_at.desc(), Cause.id.desc()).all()


def causes_by_creator(s: "Session", user_id: int) -> list[Cause]:
    return s.query(Cause).filter(Cause.creator_id == user_id).order_by(Cause.created_at.desc(), Cause.id.desc()).all()


def sponsor_causes_with_claims(s: "Session", user: "User") -> list[dict]:
    out = []
    for cause in causes_by_creator(s, user.id):
        shipped = [c for c in cause.claims if c.status in SHIPPED_CLAIM_STATUSES]
        item = cause_to_dict(cause)
        item.pop("content", None)
        item.update(
            {
                "totalTotes": total_totes(s, cause.id),
                "claimedTotes": len(cause.claims),
                "shippedClaims": len(shipped),
                "claimDetails": [
                    {
                        "id": c.id,
                        "status": c.status,
                        "fullName": c.full_name,
                        "city": c.city,
                        "state": c.state,
                        "createdAt": iso(c.created_at),
                        "shippingDate": iso(c.shipping_date),
                        "deliveryDate": iso(c.delivery_date),
                    }
                    for c in shipped
                ],
            }
        )
        out.append(item)
    return out


# --- mutations -------------------------------------------------------------


def validate_cause_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate cause create/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial:
        for key, label in (("title", "Title"), ("description", "Description"), ("category", "Category")):
            if not clean_str(payload.get(key)):
                errors.append(f"{label} is required.")
        if pick(payload, "targetAmount", "target_amount") in (None, ""):
            errors.append("Target amount is required.")
    raw_target = pick(payload, "targetAmount", "target_amount")
    if raw_target not in (None, ""):
        target = to_float(raw_target)
        if target is None or target < 0:
            errors.append("Target amount must be a non-negative number.")
    status = clean_str(payload.get("status"))
    if status and status not in CAUSE_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(CAUSE_STATUSES)}")
    for key in ("distributionStartDate", "distributionEndDate"):
        try:
            parse_date(payload.get(key))
        except ValueError:
            errors.append(f"{key} must be a date (YYYY-MM-DD).")
    return errors


def create_cause(s: "Session", payload: dict, user: "User", *, auto_approve: bool = False) -> Cause:
    cause = Cause(
        title=clean_str(payload.get("title")) or "",
        description=(payload.get("description") or "").strip(),
        category=clean_str(payload.get("category")) or "",
        location=clean_str(payload.get("location")),
        target_amount=to_float(pick(payload, "targetAmount", "target_amount"), 0.0) or 0.0,
        current_amount=0.0,
        status="approved" if auto_approve else "pending",
        is_online=to_bool(payload.get("isOnline"), default=True),
        image_url=clean_str(payload.get("imageUrl")) or "",
        images=list(payload.get("images") or []),
        distribution_start_date=parse_date(payload.get("distributionStartDate")),
        distribution_end_date=parse_date(payload.get("distributionEndDate")),
        content={},
        creator_id=user.id,
    )
    s.add(cause)
    s.flush()
    record_event(
        s,
        actor=user,
        action="cause.create",
        entity_type="Cause",
        entity_id=cause.id,
        metadata={"title": cause.title, "status": cause.status},
    )
    return cause


def update_cause(s: "Session", cause: Cause, payload: dict, user: "User", *, can_moderate: bool) -> Cause:
    changes: dict[str, dict] = {}

    def _set(attr: str, new) -> None:
        old = getattr(cause, attr)
        if new != old:
            changes[attr] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(cause, attr, new)

    for key, attr in (("title", "title"), ("category", "category")):
        if key in payload and clean_str(payload.get(key)):
            _set(attr, clean_str(payload.get(key)))
    if "description" in payload and (payload.get("description") or "").strip():
        _set("description", payload["description"].strip())
    if "location" in payload:
        _set("location", clean_str(payload.get("location")))
    if pick(payload, "targetAmount", "target_amount") not in (None, ""):
        _set("target_amount", to_float(pick(payload, "targetAmount", "target_amount"), cause.target_amount))
    if "imageUrl" in payload:
        _set("image_url", clean_str(payload.get("imageUrl")) or "")
    if "isOnline" in payload:
        _set("is_online", to_bool(payload.get("isOnline"), cause.is_online))
    if "distributionStartDate" in payload:
        _set("distribution_start_date", parse_date(payload.get("distributionStartDate")))
    if "distributionEndDate" in payload:
        _set("distribution_end_date", parse_date(payload.get("distributionEndDate")))
    if "images" in payload and isinstance(payload.get("images"), list):
        _set("images", list(payload["images"]))
    status = clean_str(payload.get("status"))
    if status and status != cause.status:
        if not can_moderate:
            raise PermissionError("Only moderators can change a cause's status.")
        _set("status", status)

    record_event(
        s,
        actor=user,
        action="cause.edit",
        entity_type="Cause",
        entity_id=cause.id,
        metadata={"title": cause.title, "changes": changes},
    )
    return cause


def delete_cause(s: "Session", cause: Cause, user: "User") -> None:
    record_event(s, actor=user, action="cause.delete", entity_type="Cause", entity_id=cause.id, metadata={"title": cause.title})
    s.delete(cause)


def set_cause_status(s: "Session", cause: Cause, status: str, user: "User") -> Cause:
    if status not in CAUSE_STATUSES:
        raise ValueError("Invalid status")
    old = cause.status
    cause.status = status
    record_event(
        s,
        actor=user,
        action="cause.status",
        entity_type="Cause",
        entity_id=cause.id,
        metadata={"old": old, "new": status},
    )
    return cause


def toggle_cause_online(s: "Session", cause: Cause, user: "User") -> Cause:
    cause.is_online = not cause.is_online
    record_event(s, actor=user, action="cause.toggle_online", entity_type="Cause", entity_id=cause.id, metadata={"isOnline": cause.is_online})
    return cause


def update_cause_content(s: "Session", cause: Cause, payload: dict, user: "User") -> Cause:
    """Merge known landing-page sections into cause.content; unknown keys raise ValueError."""
    unknown = sorted(k for k in payload if k not in CONTENT_KEYS)
    if unknown:
        raise ValueError(f"Unknown content fields: {', '.join(unknown)}")
    content = dict(cause.content or {})
    for key, value in payload.items():
        if key in _LIST_CONTENT_KEYS and value is not None and not isinstance(value, list):
            raise ValueError(f"{key} must be a list.")
        if value is None:
            content.pop(key, None)
        else:
            content[key] = value
    cause.content = content
    record_event(s, actor=user, action="cause.content", entity_type="Cause", entity_id=cause.id, metadata={"fields": sorted(payload)})
    return cause


def set_cause_image(s: "Session", cause: Cause, url: str, user: "User", *, field: str) -> Cause:
    """field: "admin_image_url" (admin upload) or "tote_preview_image_url"."""
    setattr(cause, field, url)
    if field == "admin_image_url":
        cause.images = [*(cause.images or []), url]
    record_event(s, actor=user, action=f"cause.{field}", entity_type="Cause", entity_id=cause.id, metadata={"url": url})
    return cause
