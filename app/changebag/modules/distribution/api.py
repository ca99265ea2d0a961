from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify
from sqlalchemy.exc import IntegrityError

from app.changebag.db import db_session, get_or_404
from app.changebag.modules.distribution import service as dist_svc
from app.changebag.modules.distribution.models import City, Country, DistributionCategory, DistributionPoint
from app.changebag.rbac import require_permission
from app.changebag.utils import error, request_payload, to_bool

bp = Blueprint("distribution", __name__)


def _conflict(s, e: IntegrityError, what: str):
    s.rollback()
    current_app.logger.info("Distribution %s conflict: %s", what, e.orig)
    return error(f"A {what} with that name or code already exists", 409)


@bp.get("/settings")
def get_settings():
    return jsonify(dist_svc.get_settings(db_session()))


@bp.get("/points/<int:city_id>/<int:category_id>")
def points_for(city_id: int, category_id: int):
    s = db_session()
    return jsonify([p.to_dict() for p in dist_svc.active_points(s, city_id, category_id)])


# --- countries ------------------------------------------------------------------


@bp.post("/countries")
@require_permission("distribution.manage")
def create_country():
    s = db_session()
    payload = request_payload()
    errors = dist_svc.validate_country_payload(payload)
    if errors:
        return error(errors[0], 400, errors=errors)
    try:
        country = dist_svc.save_country(s, payload, g.current_user)
        s.commit()
    except IntegrityError as e:
        return _conflict(s, e, "country")
    return jsonify(country.to_dict()), 201


@bp.put("/countries/<int:country_id>")
@require_permission("distribution.manage")
def update_country(country_id: int):
    s = db_session()
    country = get_or_404(s, Country, country_id)
    payload = request_payload()
    errors = dist_svc.validate_country_payload(payload, partial=True)
    if errors:
        return error(errors[0], 400, errors=errors)
    try:
        dist_svc.save_country(s, payload, g.current_user, country)
        s.commit()
    except IntegrityError as e:
        return _conflict(s, e, "country")
    return jsonify(country.to_dict())


# --- cities ---------------------------------------------------------------------


@bp.post("/cities")
@require_permission("distribution.manage")
def create_city():
    s = db_session()
    payload = request_payload()
    errors = dist_svc.validate_city_payload(s, payload)
    if errors:
        return error(errors[0], 400, errors=errors)
    city = dist_svc.save_city(s, payload, g.current_user)
    s.commit()
    return jsonify(city.to_dict()), 201


@bp.put("/cities/<int:city_id>")
@require_permission("distribution.manage")
def update_city(city_id: int):
    s = db_session()
    city = get_or_404(s, City, city_id)
    payload = request_payload()
    errors = dist_svc.validate_city_payload(s, payload, partial=True)
    if errors:
        return error(errors[0], 400, errors=errors)
    dist_svc.save_city(s, payload, g.current_user, city)
    s.commit()
    return jsonify(city.to_dict())


# --- categories -----------------------------------------------------------------


@bp.post("/categories")
@require_permission("distribution.manage")
def create_category():
    s = db_session()
    payload = request_payload()
    errors = dist_svc.validate_category_payload(payload)
    if errors:
        return error(errors[0], 400, errors=errors)
    try:
        category = dist_svc.save_category(s, payload, g.current_user)
        s.commit()
    except IntegrityError as e:
        return _conflict(s, e, "category")
    return jsonify(category.to_dict()), 201


@bp.put("/categories/<int:category_id>")
@require_permission("distribution.manage")
def update_category(category_id: int):
    s = db_session()
    category = get_or_404(s, DistributionCategory, category_id)
    payload = request_payload()
    errors = dist_svc.validate_category_payload(payload, partial=True)
    if errors:
        return error(errors[0], 400, errors=errors)
    try:
        dist_svc.save_category(s, payload, g.current_user, category)
        s.commit()
    except IntegrityError as e:
        return _conflict(s, e, "category")
    return jsonify(category.to_dict())


# --- points ---------------------------------------------------------------------


@bp.post("/points")
@require_permission("distribution.manage")
def create_point():
    s = db_session()
    payload = request_payload()
    errors = dist_svc.validate_point_payload(s, payload)
    if errors:
        return error(errors[0], 400, errors=errors)
    point = dist_svc.save_point(s, payload, g.current_user)
    s.commit()
    return jsonify(point.to_dict()), 201


@bp.put("/points/<int:point_id>")
@require_permission("distribution.manage")
def update_point(point_id: int):
    s = db_session()
    point = get_or_404(s, DistributionPoint, point_id)
    payload = request_payload()
    errors = dist_svc.validate_point_payload(s, payload, partial=True)
    if errors:
        return error(errors[0], 400, errors=errors)
    dist_svc.save_point(s, payload, g.current_user, point)
    s.commit()
    return jsonify(point.to_dict())


@bp.patch("/points/<int:point_id>/status")
@require_permission("distribution.manage")
def update_point_status(point_id: int):
    s = db_session()
    point = get_or_404(s, DistributionPoint, point_id)
    payload = request_payload()
    if "isActive" not in payload:
        return error("isActive is required", 400)
    dist_svc.set_point_status(s, point, to_bool(payload.get("isActive")), g.current_user)
    s.commit()
    return jsonify(point.to_dict())


@bp.delete("/points/<int:point_id>")
@require_permission("distribution.manage")
def delete_point(point_id: int):
    s = db_session()
    point = get_or_404(s, DistributionPoint, point_id)
    dist_svc.delete_point(s, point, g.current_user)
    s.commit()
    return jsonify({"message": "Distribution point deleted"})
