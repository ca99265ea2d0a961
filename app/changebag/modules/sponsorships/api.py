from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.changebag.db import db_session, get_or_404
from app.changebag.mailer import MailError, send_approval_email, send_rejection_email
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.sponsorships import service as sp_svc
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.modules.waitlist.service import notify_waitlist_members
from app.changebag.rbac import require_login, require_permission, user_has_permission
from app.changebag.storage import save_image, upload_url
from app.changebag.utils import error, request_payload, to_int

bp = Blueprint("sponsorships", __name__)


@bp.post("")
@bp.post("/")
def create_sponsorship():
    data = sp_svc.normalize_payload(request_payload())
    missing = sp_svc.missing_fields(data)
    if missing:
        current_app.logger.info("Sponsorship rejected; missing fields: %s", ", ".join(missing))
        return error("Missing required fields", 400, missingFields=missing)
    errors = sp_svc.validate_sponsorship_payload(data)
    if errors:
        return error("Validation error", 400, errors=errors)

    s = db_session()
    cause = s.get(Cause, to_int(data.get("cause"), 0))
    if cause is None:
        return error("Cause not found", 404)
    sp = sp_svc.create_sponsorship(
        s,
        data,
        cause,
        sponsor=getattr(g, "current_user", None),
        default_logo_url=current_app.config["DEFAULT_LOGO_URL"],
    )
    s.commit()
    current_app.logger.info("Sponsorship %s created for cause %s", sp.id, cause.id)
    return jsonify(sp_svc.sponsorship_to_dict(sp)), 201


@bp.get("/user")
@require_login
def my_sponsorships():
    s = db_session()
    return jsonify([sp_svc.sponsorship_to_dict(sp) for sp in sp_svc.sponsorships_for_user(s, g.current_user)])


@bp.get("/pending")
@require_permission("sponsorships.review")
def pending():
    s = db_session()
    rows = s.query(Sponsorship).filter(Sponsorship.status == "pending").order_by(Sponsorship.created_at.desc()).all()
    return jsonify([sp_svc.sponsorship_to_dict(sp) for sp in rows])


@bp.get("")
@bp.get("/")
@require_permission("sponsorships.review")
def list_sponsorships():
    s = db_session()
    q = s.query(Sponsorship)
    status = (request.args.get("status") or "").strip()
    if status:
        q = q.filter(Sponsorship.status == status)
    rows = q.order_by(Sponsorship.created_at.desc(), Sponsorship.id.desc()).all()
    return jsonify([sp_svc.sponsorship_to_dict(sp) for sp in rows])


@bp.get("/<int:sponsorship_id>")
@require_login
def get_sponsorship(sponsorship_id: int):
    s = db_session()
    sp = get_or_404(s, Sponsorship, sponsorship_id)
    user = g.current_user
    is_owner = sp.sponsor_id == user.id or sp.email.lower() == user.email.lower()
    if not is_owner and not user_has_permission(user, "sponsorships.review"):
        return error("Not authorized to view this sponsorship", 403)
    return jsonify(sp_svc.sponsorship_to_dict(sp))


@bp.patch("/<int:sponsorship_id>/approve")
@require_permission("sponsorships.review")
def approve(sponsorship_id: int):
    s = db_session()
    sp = get_or_404(s, Sponsorship, sponsorship_id)
    sp_svc.approve_sponsorship(s, sp, g.current_user)
    s.commit()

    try:
        send_approval_email(sp)
    except MailError:
        current_app.logger.exception("Approval email failed for sponsorship %s", sp.id)

    notify_waitlist_members(s, sp.cause)
    s.commit()
    return jsonify(sp_svc.sponsorship_to_dict(sp))


@bp.patch("/<int:sponsorship_id>/reject")
@require_permission("sponsorships.review")
def reject(sponsorship_id: int):
    s = db_session()
    sp = get_or_404(s, Sponsorship, sponsorship_id)
    reason = request_payload().get("reason") or ""
    try:
        sp_svc.reject_sponsorship(s, sp, g.current_user, reason)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()

    try:
        send_rejection_email(sp, sp.rejection_reason or "")
    except MailError:
        current_app.logger.exception("Rejection email failed for sponsorship %s", sp.id)
    return jsonify(sp_svc.sponsorship_to_dict(sp))


@bp.patch("/<int:sponsorship_id>/reupload")
def reupload(sponsorship_id: int):
    s = db_session()
    sp = get_or_404(s, Sponsorship, sponsorship_id)
    upload = request.files.get("logo")
    try:
        if upload is not None and upload.filename:
            logo_url = upload_url(save_image(current_app.config, upload, prefix=f"sponsorships/{sp.id}"))
        else:
            logo_url = (request_payload().get("logoUrl") or "").strip()
        if not logo_url:
            return error("A new logo is required", 400)
        sp_svc.reupload_logo(s, sp, logo_url)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify({"message": "Logo uploaded successfully. It will be reviewed again.", "sponsorship": sp_svc.sponsorship_to_dict(sp)})


@bp.patch("/<int:sponsorship_id>/end-campaign")
@require_permission("sponsorships.review")
def end_campaign(sponsorship_id: int):
    s = db_session()
    sp = get_or_404(s, Sponsorship, sponsorship_id)
    try:
        sp_svc.end_campaign(s, sp, g.current_user)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify({"message": "Campaign ended successfully", "sponsorship": sp_svc.sponsorship_to_dict(sp)})
