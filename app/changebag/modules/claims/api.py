from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.changebag.db import db_session, get_or_404
from app.changebag.modules.claims import service as claims_svc
from app.changebag.modules.claims.models import Claim
from app.changebag.rbac import require_login, require_permission, user_has_permission
from app.changebag.utils import error, request_payload, to_int

bp = Blueprint("claims", __name__)


@bp.post("")
@bp.post("/")
def create_claim():
    payload = request_payload()
    errors = claims_svc.validate_claim_payload(payload)
    if errors:
        return error("Missing required fields", 400, errors=errors)
    s = db_session()
    try:
        claim = claims_svc.create_claim(s, payload, actor=getattr(g, "current_user", None))
    except claims_svc.ClaimError as e:
        return error(str(e), e.status)
    s.commit()
    return jsonify(claims_svc.claim_to_dict(claim)), 201


@bp.get("/check")
def check_claim():
    email = (request.args.get("email") or "").strip()
    cause_id = to_int(request.args.get("causeId"))
    if not email or cause_id is None:
        return error("Email and causeId are required", 400)
    s = db_session()
    exists = claims_svc.existing_claim(s, cause_id, email) is not None
    return jsonify(
        {
            "exists": exists,
            "message": "User has already claimed a tote for this cause" if exists else "No existing claim found",
        }
    )


@bp.get("/recent")
@require_permission("claims.manage")
def recent_claims():
    page = max(1, to_int(request.args.get("page"), 1) or 1)
    limit = min(100, max(1, to_int(request.args.get("limit"), 10) or 10))
    s = db_session()
    total = s.query(Claim).count()
    rows = (
        s.query(Claim)
        .order_by(Claim.created_at.desc(), Claim.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return jsonify(
        {
            "claims": [claims_svc.claim_summary(c) for c in rows],
            "pagination": {"total": total, "page": page, "limit": limit, "pages": (total + limit - 1) // limit},
        }
    )


@bp.get("/stats")
@require_permission("claims.manage")
def stats():
    return jsonify(claims_svc.claim_stats(db_session()))


@bp.get("/dashboard/claimer")
@require_login
def claimer_dashboard():
    return jsonify(claims_svc.claimer_dashboard(db_session(), g.current_user))


@bp.get("/<int:claim_id>")
@require_login
def get_claim(claim_id: int):
    s = db_session()
    claim = get_or_404(s, Claim, claim_id)
    user = g.current_user
    if claim.email != user.email.lower() and not user_has_permission(user, "claims.manage"):
        return error("Not authorized to view this claim", 403)
    return jsonify(claims_svc.claim_to_dict(claim))


@bp.patch("/<int:claim_id>/status")
@require_permission("claims.manage")
def update_status(claim_id: int):
    s = db_session()
    claim = get_or_404(s, Claim, claim_id)
    try:
        claims_svc.update_claim_status(s, claim, request_payload(), g.current_user)
    except claims_svc.ClaimError as e:
        return error(str(e), e.status)
    s.commit()
    return jsonify(claims_svc.claim_to_dict(claim))
