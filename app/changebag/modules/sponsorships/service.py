from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.changebag.audit import record_event
from app.changebag.constants import DISTRIBUTION_TYPES, PLACEHOLDER_LOGOS
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.causes.service import recompute_cause_amount
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.utils import clean_str, iso, parse_date, pick, to_float, to_int, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User


REQUIRED_FIELDS = (
    "cause",
    "organizationName",
    "contactName",
    "email",
    "phone",
    "toteQuantity",
    "unitPrice",
    "distributionType",
    "selectedCities",
    "distributionStartDate",
    "distributionEndDate",
)

DEFAULT_DEMOGRAPHICS = {"ageGroups": [], "income": "", "education": "", "other": ""}


def normalize_payload(payload: dict) -> dict:
    """Fold the SPA's alternate field names into the canonical ones."""
    data = dict(payload)
    if not data.get("cause") and data.get("selectedCause"):
        data["cause"] = data["selectedCause"]
    if isinstance(data.get("cause"), dict):
        data["cause"] = data["cause"].get("id") or data["cause"].get("_id")
    if not data.get("toteQuantity") and data.get("numberOfTotes"):
        data["toteQuantity"] = data["numberOfTotes"]
    details = data.get("physicalDistributionDetails")
    if not data.get("distributionLocations") and isinstance(details, dict) and details.get("distributionLocations"):
        data["distributionLocations"] = details["distributionLocations"]
    return data


def missing_fields(data: dict) -> list[str]:
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "", [])]
    if not data.get("distributionLocations"):
        missing.append("distributionLocations")
    return missing


def validate_sponsorship_payload(data: dict) -> list[str]:
    errors: list[str] = []
    qty = to_int(data.get("toteQuantity"))
    if qty is None or qty < 1:
        errors.append("toteQuantity must be at least 1.")
    price = to_float(data.get("unitPrice"))
    if price is None or price < 0:
        errors.append("unitPrice must be a non-negative number.")
    total = data.get("totalAmount")
    if total not in (None, "") and (to_float(total) is None or to_float(total) < 0):
        errors.append("totalAmount must be a non-negative number.")
    if (data.get("distributionType") or "") not in DISTRIBUTION_TYPES:
        errors.append(f"distributionType must be one of: {', '.join(DISTRIBUTION_TYPES)}")
    if not isinstance(data.get("selectedCities"), list):
        errors.append("selectedCities must be a list.")
    if not isinstance(data.get("distributionLocations"), list):
        errors.append("distributionLocations must be a list.")
    try:
        start = parse_date(data.get("distributionStartDate"))
        end = parse_date(data.get("distributionEndDate"))
        if start and end and end < start:
            errors.append("distributionEndDate must be on or after distributionStartDate.")
    except ValueError:
        errors.append("Distribution dates must be ISO dates.")
    return errors


def resolve_logo(raw, default_logo_url: str) -> str:
    logo = clean_str(raw)
    if logo is None or logo in PLACEHOLDER_LOGOS:
        return default_logo_url
    return logo


def create_sponsorship(s: "Session", data: dict, cause: Cause, *, sponsor: "User | None", default_logo_url: str) -> Sponsorship:
    qty = to_int(data.get("toteQuantity"), 0) or 0
    unit_price = to_float(data.get("unitPrice"), 0.0) or 0.0
    total = to_float(data.get("totalAmount"))
    sp = Sponsorship(
        cause_id=cause.id,
        sponsor_id=sponsor.id if sponsor else None,
        organization_name=clean_str(data.get("organizationName")) or "",
        contact_name=clean_str(data.get("contactName")) or "",
        email=(clean_str(data.get("email")) or "").lower(),
        phone=clean_str(data.get("phone")) or "",
        tote_quantity=qty,
        unit_price=unit_price,
        total_amount=total if total else qty * unit_price,
        logo_url=resolve_logo(data.get("logoUrl"), default_logo_url),
        mockup_url=clean_str(data.get("mockupUrl")),
        logo_position=data.get("logoPosition") if isinstance(data.get("logoPosition"), dict) else {},
        message=(data.get("message") or "").strip(),
        distribution_type=data["distributionType"],
        selected_cities=list(data.get("selectedCities") or []),
        distribution_start_date=parse_date(data.get("distributionStartDate")),
        distribution_end_date=parse_date(data.get("distributionEndDate")),
        distribution_locations=list(data.get("distributionLocations") or []),
        demographics=data.get("demographics") if isinstance(data.get("demographics"), dict) else dict(DEFAULT_DEMOGRAPHICS),
        status="pending",
        is_online=True,
        payment_status="pending",
    )
    s.add(sp)
    s.flush()
    recompute_cause_amount(s, cause)
    record_event(
        s,
        actor=sponsor,
        action="sponsorship.create",
        entity_type="Sponsorship",
        entity_id=sp.id,
        metadata={"causeId": cause.id, "organization": sp.organization_name, "toteQuantity": qty},
    )
    return sp


def sponsorships_for_user(s: "Session", user: "User") -> list[Sponsorship]:
    return (
        s.query(Sponsorship)
        .filter(or_(Sponsorship.sponsor_id == user.id, func.lower(Sponsorship.email) == user.email.lower()))
        .order_by(Sponsorship.created_at.desc(), Sponsorship.id.desc())
        .all()
    )


def approve_sponsorship(s: "Session", sp: Sponsorship, user: "User") -> Sponsorship:
    old = sp.status
    sp.status = "approved"
    sp.approved_by_id = user.id
    sp.approved_at = utcnow()
    sp.rejection_reason = None
    recompute_cause_amount(s, sp.cause)
    record_event(
        s,
        actor=user,
        action="sponsorship.approve",
        entity_type="Sponsorship",
        entity_id=sp.id,
        metadata={"old": old, "causeId": sp.cause_id},
    )
    return sp


def reject_sponsorship(s: "Session", sp: Sponsorship, user: "User", reason: str) -> Sponsorship:
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("Rejection reason is required")
    old = sp.status
    sp.status = "rejected"
    sp.rejection_reason = reason
    recompute_cause_amount(s, sp.cause)
    record_event(
        s,
        actor=user,
        action="sponsorship.reject",
        entity_type="Sponsorship",
        entity_id=sp.id,
        reason=reason,
        metadata={"old": old, "causeId": sp.cause_id},
    )
    return sp


def reupload_logo(s: "Session", sp: Sponsorship, logo_url: str) -> Sponsorship:
    if sp.status not in ("rejected", "pending"):
        raise ValueError(f"Logo cannot be changed while the sponsorship is {sp.status}")
    old_logo = sp.logo_url
    sp.logo_url = logo_url
    sp.status = "pending"
    sp.rejection_reason = None
    record_event(
        s,
        actor=None,
        action="sponsorship.reupload_logo",
        entity_type="Sponsorship",
        entity_id=sp.id,
        metadata={"old": old_logo, "new": logo_url},
    )
    return sp


def end_campaign(s: "Session", sp: Sponsorship, user: "User") -> Sponsorship:
    if sp.status not in ("approved", "completed"):
        raise ValueError("Only approved campaigns can be ended")
    sp.is_online = False
    sp.ended_at = utcnow()
    sp.ended_by_id = user.id
    sp.status = "completed"
    recompute_cause_amount(s, sp.cause)
    record_event(s, actor=user, action="sponsorship.end_campaign", entity_type="Sponsorship", entity_id=sp.id)
    return sp


def mark_paid(s: "Session", sp: Sponsorship, *, payment_id: str, order_id: str, amount: float, currency: str) -> Sponsorship:
    sp.payment_id = payment_id
    sp.payment_order_id = order_id
    sp.payment_status = "completed"
    sp.payment_amount = amount
    sp.payment_currency = currency
    sp.payment_date = utcnow()
    record_event(
        s,
        actor=None,
        action="sponsorship.payment",
        entity_type="Sponsorship",
        entity_id=sp.id,
        metadata={"paymentId": payment_id, "orderId": order_id, "amount": amount, "currency": currency},
    )
    return sp


def sponsorship_to_dict(sp: Sponsorship) -> dict:
    cause = sp.cause
    return {
        "id": sp.id,
        "cause": {"id": cause.id, "title": cause.title, "category": cause.category} if cause else None,
        "sponsorId": sp.sponsor_id,
        "organizationName": sp.organization_name,
        "contactName": sp.contact_name,
        "email": sp.email,
        "phone": sp.phone,
        "toteQuantity": sp.tote_quantity,
        "unitPrice": sp.unit_price,
        "totalAmount": sp.total_amount,
        "logoUrl": sp.logo_url,
        "mockupUrl": sp.mockup_url,
        "logoPosition": dict(sp.logo_position or {}),
        "message": sp.message,
        "distributionType": sp.distribution_type,
        "selectedCities": list(sp.selected_cities or []),
        "distributionStartDate": iso(sp.distribution_start_date),
        "distributionEndDate": iso(sp.distribution_end_date),
        "distributionLocations": list(sp.distribution_locations or []),
        "demographics": dict(sp.demographics or {}),
        "status": sp.status,
        "approvedBy": sp.approved_by_id,
        "approvedAt": iso(sp.approved_at),
        "rejectionReason": sp.rejection_reason,
        "isOnline": sp.is_online,
        "endedAt": iso(sp.ended_at),
        "endedBy": sp.ended_by_id,
        "paymentId": sp.payment_id,
        "paymentOrderId": sp.payment_order_id,
        "paymentStatus": sp.payment_status,
        "paymentAmount": sp.payment_amount,
        "paymentCurrency": sp.payment_currency,
        "paymentDate": iso(sp.payment_date),
        "createdAt": iso(sp.created_at),
        "updatedAt": iso(sp.updated_at),
    }
