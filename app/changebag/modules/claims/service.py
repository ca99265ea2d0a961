from __future__ import annotations

from datetime import datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.changebag.audit import record_event
from app.changebag.constants import CLAIM_SOURCES, CLAIM_STATUSES
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.causes.service import remaining_for_new_claims
from app.changebag.modules.claims.models import Claim
from app.changebag.utils import clean_str, iso, parse_datetime, pick, to_bool, to_int, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User
    from app.changebag.modules.partners.models import ApiPartner


DUPLICATE_CLAIM_MESSAGE = "You have already claimed a tote for this cause. Each user can claim only one tote per cause."
REQUIRED_FIELDS = ("causeId", "fullName", "email", "phone", "address", "city", "state", "zipCode")


class ClaimError(ValueError):
    """Domain rule violation; `status` is the HTTP status the API should use."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def validate_claim_payload(payload: dict) -> list[str]:
    errors = []
    for key in REQUIRED_FIELDS:
        value = pick(payload, "causeId", "cause") if key == "causeId" else payload.get(key)
        if not clean_str(value):
            errors.append(f"{key} is required.")
    source = clean_str(payload.get("source"))
    if source and source not in CLAIM_SOURCES:
        errors.append(f"Invalid source. Must be one of: {', '.join(CLAIM_SOURCES)}")
    return errors


def existing_claim(s: "Session", cause_id: int, email: str) -> Claim | None:
    return s.query(Claim).filter(Claim.cause_id == cause_id, Claim.email == email.strip().lower()).one_or_none()


def create_claim(
    s: "Session",
    payload: dict,
    *,
    actor: "User | None" = None,
    partner: "ApiPartner | None" = None,
) -> Claim:
    """
    File a tote claim. Raises ClaimError (400 duplicate / no totes, 404 unknown cause).
    """
    cause_id = to_int(pick(payload, "causeId", "cause"))
    if cause_id is None:
        raise ClaimError("Cause not found", 404)
    email = (clean_str(payload.get("email")) or "").lower()

    if existing_claim(s, cause_id, email) is not None:
        raise ClaimError(DUPLICATE_CLAIM_MESSAGE)

    cause = s.get(Cause, cause_id)
    if cause is None:
        raise ClaimError("Cause not found", 404)
    if remaining_for_new_claims(s, cause.id) <= 0:
        raise ClaimError("No totes available for this cause")

    claim = Claim(
        cause_id=cause.id,
        cause_title=cause.title,
        full_name=clean_str(payload.get("fullName")) or "",
        email=email,
        phone=clean_str(payload.get("phone")) or "",
        purpose=(payload.get("purpose") or "").strip(),
        address=clean_str(payload.get("address")) or "",
        city=clean_str(payload.get("city")) or "",
        state=clean_str(payload.get("state")) or "",
        zip_code=clean_str(payload.get("zipCode")) or "",
        status="pending",
        email_verified=to_bool(payload.get("emailVerified")),
        source="PARTNER_API" if partner else (clean_str(payload.get("source")) or "direct"),
        referrer_url=clean_str(payload.get("referrerUrl")),
        qr_code_scanned=to_bool(payload.get("qrCodeScanned")),
        partner_id=partner.id if partner else None,
        partner_business_name=partner.business_name if partner else None,
    )
    s.add(claim)
    try:
        s.flush()
    except IntegrityError:
        # lost the race against a concurrent claim for the same (cause, email)
        s.rollback()
        raise ClaimError(DUPLICATE_CLAIM_MESSAGE)
    record_event(
        s,
        actor=actor,
        action="claim.create",
        entity_type="Claim",
        entity_id=claim.id,
        metadata={"causeId": cause.id, "source": claim.source, "partnerId": claim.partner_id},
    )
    return claim


def update_claim_status(s: "Session", claim: Claim, payload: dict, user: "User") -> Claim:
    status = clean_str(payload.get("status"))
    if status not in CLAIM_STATUSES:
        raise ClaimError("Invalid status")
    old = claim.status
    claim.status = status
    now = utcnow()
    if status == "shipped" and claim.shipping_date is None:
        claim.shipping_date = now
    if status == "delivered":
        claim.delivery_date = now
        if claim.shipping_date is None:
            claim.shipping_date = now
    if clean_str(payload.get("trackingNumber")):
        claim.tracking_number = clean_str(payload.get("trackingNumber"))
    if clean_str(payload.get("carrier")):
        claim.carrier = clean_str(payload.get("carrier"))
    if payload.get("estimatedDelivery"):
        try:
            claim.estimated_delivery = parse_datetime(payload.get("estimatedDelivery"))
        except ValueError:
            raise ClaimError("estimatedDelivery must be an ISO date")
    record_event(
        s,
        actor=user,
        action="claim.status",
        entity_type="Claim",
        entity_id=claim.id,
        metadata={"old": old, "new": status, "trackingNumber": claim.tracking_number},
    )
    return claim


def claim_stats(s: "Session") -> dict:
    by_status = s.query(Claim.status, func.count(Claim.id)).group_by(Claim.status).all()
    midnight = datetime.combine(utcnow().date(), time.min)
    return {
        "byStatus": [{"status": st, "count": int(n)} for st, n in by_status],
        "total": int(s.query(func.count(Claim.id)).scalar() or 0),
        "today": int(s.query(func.count(Claim.id)).filter(Claim.created_at >= midnight).scalar() or 0),
    }


def claim_summary(claim: Claim) -> dict:
    return {
        "id": claim.id,
        "causeTitle": claim.cause_title,
        "fullName": claim.full_name,
        "email": claim.email,
        "status": claim.status,
        "createdAt": iso(claim.created_at),
    }


def claim_to_dict(claim: Claim) -> dict:
    return {
        "id": claim.id,
        "causeId": claim.cause_id,
        "causeTitle": claim.cause_title,
        "fullName": claim.full_name,
        "email": claim.email,
        "phone": claim.phone,
        "purpose": claim.purpose,
        "address": claim.address,
        "city": claim.city,
        "state": claim.state,
        "zipCode": claim.zip_code,
        "status": claim.status,
        "emailVerified": claim.email_verified,
        "source": claim.source,
        "referrerUrl": claim.referrer_url,
        "qrCodeScanned": claim.qr_code_scanned,
        "shippingDate": iso(claim.shipping_date),
        "deliveryDate": iso(claim.delivery_date),
        "trackingNumber": claim.tracking_number,
        "carrier": claim.carrier,
        "estimatedDelivery": iso(claim.estimated_delivery),
        "partnerId": claim.partner_id,
        "partnerBusinessName": claim.partner_business_name,
        "createdAt": iso(claim.created_at),
        "updatedAt": iso(claim.updated_at),
    }


def claimer_dashboard(s: "Session", user: "User") -> dict:
    claims = s.query(Claim).filter(Claim.email == user.email.lower()).order_by(Claim.created_at.desc(), Claim.id.desc()).all()
    counts = {st: 0 for st in CLAIM_STATUSES}
    items = []
    for c in claims:
        counts[c.status] = counts.get(c.status, 0) + 1
        item = claim_to_dict(c)
        cause = c.cause
        item["cause"] = {
            "id": cause.id,
            "title": cause.title,
            "imageUrl": cause.image_url,
            "category": cause.category,
            "status": cause.status,
        } if cause else None
        items.append(item)
    return {"claims": items, "stats": {"total": len(claims), **counts}}
