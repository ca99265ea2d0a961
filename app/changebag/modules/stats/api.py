from __future__ import annotations

from flask import Blueprint, jsonify

from app.changebag.db import db_session
from app.changebag.modules.stats import service as stats_svc
from app.changebag.rbac import require_permission

bp = Blueprint("stats", __name__)


@bp.get("/api/stats")
def public_stats():
    return jsonify(stats_svc.public_stats(db_session()))


@bp.get("/api/admin/dashboard/metrics")
@require_permission("dashboard.view")
def dashboard_metrics():
    return jsonify(stats_svc.dashboard_metrics(db_session()))
