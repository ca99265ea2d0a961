from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.changebag.db import db_session
from app.changebag.modules.settings import service as settings_svc
from app.changebag.rbac import require_permission
from app.changebag.utils import error

bp = Blueprint("settings", __name__)


@bp.get("")
@bp.get("/")
@require_permission("settings.manage")
def get_settings():
    s = db_session()
    row = settings_svc.get_settings(s)
    s.commit()
    return jsonify({"settings": settings_svc.settings_to_dict(row)})


@bp.put("")
@bp.put("/")
@require_permission("settings.manage")
def update_settings():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return error("Settings data is required", 400)
    # Accept both {"settings": {...}} and a flat object.
    payload = body.get("settings") if isinstance(body.get("settings"), dict) else body
    if not payload:
        return error("Settings data is required", 400)
    errors = settings_svc.validate_settings_payload(payload)
    if errors:
        return error("Invalid settings", 400, errors=errors)
    s = db_session()
    row = settings_svc.update_settings(s, payload, g.current_user)
    s.commit()
    return jsonify({"message": "Settings updated successfully", "settings": settings_svc.settings_to_dict(row)})
