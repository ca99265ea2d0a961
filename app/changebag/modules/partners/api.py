from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.changebag.db import db_session, get_or_404
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.causes.service import tote_availability
from app.changebag.modules.claims import service as claims_svc
from app.changebag.modules.partners import service as partners_svc
from app.changebag.modules.partners.models import ApiPartner
from app.changebag.rbac import require_permission
from app.changebag.utils import error, request_payload, to_bool

bp = Blueprint("partners", __name__)
admin_bp = Blueprint("partners_admin", __name__)


@bp.post("/claim")
@partners_svc.require_api_key
def partner_claim():
    payload = request_payload()
    errors = claims_svc.validate_claim_payload(payload)
    if errors:
        return error("Missing required fields", 400, errors=errors)
    s = db_session()
    try:
        claim = claims_svc.create_claim(s, payload, partner=g.api_partner)
    except claims_svc.ClaimError as e:
        return error(str(e), e.status)
    s.commit()
    return jsonify(claims_svc.claim_to_dict(claim)), 201


@bp.get("/causes")
@partners_svc.require_api_key
def partner_causes():
    s = db_session()
    causes = (
        s.query(Cause)
        .filter(Cause.status == "approved", Cause.is_online.is_(True))
        .order_by(Cause.created_at.desc(), Cause.id.desc())
        .all()
    )
    out = []
    for c in causes:
        item = {
            "id": c.id,
            "title": c.title,
            "description": c.description,
            "category": c.category,
            "location": c.location,
            "imageUrl": c.image_url,
        }
        item.update(tote_availability(s, c.id))
        out.append(item)
    return jsonify({"causes": out, "partner": g.api_partner.business_name})


# --- admin management ---------------------------------------------------------


@admin_bp.get("/partners")
@require_permission("partners.manage")
def list_partners():
    s = db_session()
    rows = s.query(ApiPartner).order_by(ApiPartner.business_name).all()
    return jsonify([p.to_dict() for p in rows])


@admin_bp.post("/partners")
@require_permission("partners.manage")
def create_partner():
    payload = request_payload()
    errors = partners_svc.validate_partner_payload(payload)
    if errors:
        return error(errors[0], 400, errors=errors)
    s = db_session()
    try:
        partner = partners_svc.create_partner(s, payload, g.current_user)
    except ValueError as e:
        return error(str(e), 409)
    s.commit()
    return jsonify(partner.to_dict(include_key=True)), 201


@admin_bp.patch("/partners/<int:partner_id>/status")
@require_permission("partners.manage")
def update_partner_status(partner_id: int):
    s = db_session()
    partner = get_or_404(s, ApiPartner, partner_id)
    payload = request_payload()
    if "isActive" not in payload:
        return error("isActive is required", 400)
    partners_svc.set_partner_active(s, partner, to_bool(payload.get("isActive")), g.current_user)
    s.commit()
    return jsonify(partner.to_dict())


@admin_bp.post("/partners/<int:partner_id>/rotate-key")
@require_permission("partners.manage")
def rotate_key(partner_id: int):
    s = db_session()
    partner = get_or_404(s, ApiPartner, partner_id)
    partners_svc.rotate_api_key(s, partner, g.current_user)
    s.commit()
    return jsonify(partner.to_dict(include_key=True))
