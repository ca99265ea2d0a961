from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.changebag.db import db_session, get_or_404
from app.changebag.modules.causes import service as causes_svc
from app.changebag.modules.causes.models import Cause
from app.changebag.rbac import require_login, require_permission, user_has_permission
from app.changebag.storage import save_image, upload_url
from app.changebag.utils import error, request_payload

bp = Blueprint("causes", __name__)


def _can_edit(cause: Cause) -> bool:
    user = g.current_user
    return cause.creator_id == user.id or user_has_permission(user, "causes.moderate")


def _store_upload(field: str, prefix: str) -> str | None:
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        return None
    return upload_url(save_image(current_app.config, upload, prefix=prefix))


@bp.get("")
@bp.get("/")
def list_causes():
    s = db_session()
    causes = causes_svc.list_causes(s, request.args)
    return jsonify([causes_svc.cause_list_item(c) for c in causes])


@bp.get("/user")
@require_login
def my_causes():
    s = db_session()
    return jsonify([causes_svc.cause_to_dict(c) for c in causes_svc.causes_by_creator(s, g.current_user.id)])


@bp.get("/user/<int:user_id>")
@require_login
def causes_for_user(user_id: int):
    if user_id != g.current_user.id and not user_has_permission(g.current_user, "causes.moderate"):
        return error("Not authorized to view these causes", 403)
    s = db_session()
    return jsonify([causes_svc.cause_to_dict(c) for c in causes_svc.causes_by_creator(s, user_id)])


@bp.get("/sponsor-causes-with-claims")
@require_login
def sponsor_causes_with_claims():
    s = db_session()
    return jsonify(causes_svc.sponsor_causes_with_claims(s, g.current_user))


@bp.get("/pending")
@require_permission("causes.moderate")
def pending_causes():
    s = db_session()
    causes = s.query(Cause).filter(Cause.status == "pending").order_by(Cause.created_at.desc()).all()
    return jsonify([causes_svc.cause_list_item(c) for c in causes])


@bp.get("/<int:cause_id>")
def get_cause(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    return jsonify(causes_svc.cause_detail(s, cause))


@bp.post("")
@bp.post("/")
@require_permission("causes.create")
def create_cause():
    payload = request_payload()
    errors = causes_svc.validate_cause_payload(payload)
    if errors:
        return error("Please provide title, description, target amount, and category", 400, errors=errors)

    s = db_session()
    user = g.current_user
    try:
        image = _store_upload("image", "causes/new")
    except ValueError as e:
        return error(str(e), 400)
    if image:
        payload["imageUrl"] = image
    cause = causes_svc.create_cause(s, payload, user, auto_approve=user.role == "admin")
    s.commit()
    current_app.logger.info("Cause %s created by user %s (status=%s)", cause.id, user.id, cause.status)
    return jsonify({"message": "Cause created successfully", "cause": causes_svc.cause_to_dict(cause)}), 201


@bp.put("/<int:cause_id>")
@bp.patch("/<int:cause_id>")
@require_login
def update_cause(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    if not _can_edit(cause):
        return error("Not authorized to update this cause", 403)
    payload = request_payload()
    errors = causes_svc.validate_cause_payload(payload, partial=True)
    if errors:
        return error(errors[0], 400, errors=errors)
    try:
        image = _store_upload("image", f"causes/{cause.id}")
        if image:
            payload["imageUrl"] = image
        causes_svc.update_cause(
            s,
            cause,
            payload,
            g.current_user,
            can_moderate=user_has_permission(g.current_user, "causes.moderate"),
        )
    except PermissionError as e:
        return error(str(e), 403)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify(causes_svc.cause_to_dict(cause))


@bp.delete("/<int:cause_id>")
@require_login
def delete_cause(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    if not _can_edit(cause):
        return error("Not authorized to delete this cause", 403)
    causes_svc.delete_cause(s, cause, g.current_user)
    s.commit()
    return jsonify({"message": "Cause removed"})


@bp.patch("/<int:cause_id>/status")
@require_permission("causes.moderate")
def update_cause_status(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    status = (request_payload().get("status") or "").strip()
    try:
        causes_svc.set_cause_status(s, cause, status, g.current_user)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify(causes_svc.cause_to_dict(cause))


@bp.patch("/<int:cause_id>/toggle-online")
@require_permission("causes.moderate")
def toggle_online(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    causes_svc.toggle_cause_online(s, cause, g.current_user)
    s.commit()
    return jsonify({"message": f"Cause is now {'online' if cause.is_online else 'offline'}", "cause": causes_svc.cause_to_dict(cause)})


@bp.post("/<int:cause_id>/upload-image")
@require_permission("causes.moderate")
def upload_image(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    try:
        url = _store_upload("image", f"causes/{cause.id}")
    except ValueError as e:
        return error(str(e), 400)
    if not url:
        return error("No image file provided", 400)
    causes_svc.set_cause_image(s, cause, url, g.current_user, field="admin_image_url")
    s.commit()
    return jsonify(
        {
            "success": True,
            "message": "Image uploaded successfully",
            "cause": {"id": cause.id, "title": cause.title, "images": list(cause.images or []), "adminImageUrl": cause.admin_image_url},
        }
    )


@bp.post("/<int:cause_id>/tote-preview")
@require_permission("causes.moderate")
def upload_tote_preview(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    try:
        url = _store_upload("totePreviewImage", f"causes/{cause.id}/tote-preview") or _store_upload("image", f"causes/{cause.id}/tote-preview")
    except ValueError as e:
        return error(str(e), 400)
    if not url:
        return error("No image file provided", 400)
    causes_svc.set_cause_image(s, cause, url, g.current_user, field="tote_preview_image_url")
    s.commit()
    return jsonify(
        {
            "message": "Tote preview image updated successfully",
            "cause": {"id": cause.id, "title": cause.title, "totePreviewImageUrl": cause.tote_preview_image_url},
        }
    )


@bp.put("/<int:cause_id>/content")
@require_permission("causes.moderate")
def update_content(cause_id: int):
    s = db_session()
    cause = get_or_404(s, Cause, cause_id)
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return error("Content must be a JSON object", 400)
    try:
        causes_svc.update_cause_content(s, cause, payload, g.current_user)
    except ValueError as e:
        return error(str(e), 400)
    s.commit()
    return jsonify(causes_svc.cause_to_dict(cause))
