from __future__ import annotations

from typing import TYPE_CHECKING

from app.changebag.audit import record_event
from app.changebag.modules.distribution.models import City, Country, DistributionCategory, DistributionPoint
from app.changebag.utils import clean_str, to_bool, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User


def get_settings(s: "Session") -> dict:
    return {
        "countries": [c.to_dict() for c in s.query(Country).order_by(Country.name).all()],
        "cities": [c.to_dict() for c in s.query(City).order_by(City.name).all()],
        "categories": [c.to_dict() for c in s.query(DistributionCategory).order_by(DistributionCategory.name).all()],
        "points": [p.to_dict() for p in s.query(DistributionPoint).order_by(DistributionPoint.name).all()],
    }


def active_points(s: "Session", city_id: int, category_id: int) -> list[DistributionPoint]:
    return (
        s.query(DistributionPoint)
        .filter(
            DistributionPoint.city_id == city_id,
            DistributionPoint.category_id == category_id,
            DistributionPoint.is_active.is_(True),
        )
        .order_by(DistributionPoint.name)
        .all()
    )


def _tote_count(raw, *, required: bool, errors: list[str]) -> int | None:
    if raw in (None, ""):
        if required:
            errors.append("defaultToteCount is required.")
        return None
    value = to_int(raw)
    if value is None or value < 0:
        errors.append("defaultToteCount must be a non-negative integer.")
        return None
    return value


# --- countries ------------------------------------------------------------------


def validate_country_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("name is required.")
    if not partial or "code" in payload:
        if not clean_str(payload.get("code")):
            errors.append("code is required.")
    return errors


def save_country(s: "Session", payload: dict, user: "User", country: Country | None = None) -> Country:
    creating = country is None
    if country is None:
        country = Country(name="", code="")
        s.add(country)
    if "name" in payload:
        country.name = clean_str(payload.get("name")) or country.name
    if "code" in payload:
        country.code = (clean_str(payload.get("code")) or country.code).upper()
    if "isActive" in payload:
        country.is_active = to_bool(payload.get("isActive"), country.is_active)
    s.flush()
    record_event(
        s,
        actor=user,
        action="country.create" if creating else "country.edit",
        entity_type="Country",
        entity_id=country.id,
        metadata={"name": country.name, "code": country.code},
    )
    return country


# --- cities ---------------------------------------------------------------------


def validate_city_payload(s: "Session", payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("name is required.")
    if not partial or "countryId" in payload:
        country_id = to_int(payload.get("countryId"))
        if country_id is None or s.get(Country, country_id) is None:
            errors.append("countryId must reference an existing country.")
    return errors


def save_city(s: "Session", payload: dict, user: "User", city: City | None = None) -> City:
    creating = city is None
    if city is None:
        city = City(name="", state="", country_id=to_int(payload.get("countryId")))
        s.add(city)
    if "name" in payload:
        city.name = clean_str(payload.get("name")) or city.name
    if "state" in payload:
        city.state = clean_str(payload.get("state")) or ""
    if "countryId" in payload:
        city.country_id = to_int(payload.get("countryId"), city.country_id)
    if "isActive" in payload:
        city.is_active = to_bool(payload.get("isActive"), city.is_active)
    s.flush()
    s.expire(city, ["country"])
    record_event(
        s,
        actor=user,
        action="city.create" if creating else "city.edit",
        entity_type="City",
        entity_id=city.id,
        metadata={"name": city.name, "countryId": city.country_id},
    )
    return city


# --- categories -----------------------------------------------------------------


def validate_category_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("name is required.")
    if not partial or "defaultToteCount" in payload:
        _tote_count(payload.get("defaultToteCount"), required=not partial, errors=errors)
    return errors


def save_category(s: "Session", payload: dict, user: "User", category: DistributionCategory | None = None) -> DistributionCategory:
    creating = category is None
    if category is None:
        category = DistributionCategory(name="")
        s.add(category)
    if "name" in payload:
        category.name = clean_str(payload.get("name")) or category.name
    if "icon" in payload:
        category.icon = clean_str(payload.get("icon")) or ""
    if "color" in payload:
        category.color = clean_str(payload.get("color")) or ""
    if "defaultToteCount" in payload:
        category.default_tote_count = to_int(payload.get("defaultToteCount"), category.default_tote_count or 0)
    if "isActive" in payload:
        category.is_active = to_bool(payload.get("isActive"), category.is_active)
    s.flush()
    record_event(
        s,
        actor=user,
        action="distribution_category.create" if creating else "distribution_category.edit",
        entity_type="DistributionCategory",
        entity_id=category.id,
        metadata={"name": category.name, "defaultToteCount": category.default_tote_count},
    )
    return category


# --- points ---------------------------------------------------------------------


def validate_point_payload(s: "Session", payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("name is required.")
    if not partial or "cityId" in payload:
        city_id = to_int(payload.get("cityId"))
        if city_id is None or s.get(City, city_id) is None:
            errors.append("cityId must reference an existing city.")
    if not partial or "categoryId" in payload:
        category_id = to_int(payload.get("categoryId"))
        if category_id is None or s.get(DistributionCategory, category_id) is None:
            errors.append("categoryId must reference an existing category.")
    if "defaultToteCount" in payload:
        _tote_count(payload.get("defaultToteCount"), required=False, errors=errors)
    return errors


def save_point(s: "Session", payload: dict, user: "User", point: DistributionPoint | None = None) -> DistributionPoint:
    creating = point is None
    if point is None:
        point = DistributionPoint(
            name="",
            city_id=to_int(payload.get("cityId")),
            category_id=to_int(payload.get("categoryId")),
        )
        s.add(point)
    if "name" in payload:
        point.name = clean_str(payload.get("name")) or point.name
    if "address" in payload:
        point.address = clean_str(payload.get("address")) or ""
    if "cityId" in payload:
        point.city_id = to_int(payload.get("cityId"), point.city_id)
    if "categoryId" in payload:
        point.category_id = to_int(payload.get("categoryId"), point.category_id)
    if payload.get("defaultToteCount") not in (None, ""):
        point.default_tote_count = to_int(payload.get("defaultToteCount"), 0)
    elif creating:
        # Inherit the category default when none is given.
        category = s.get(DistributionCategory, point.category_id)
        point.default_tote_count = category.default_tote_count if category else 0
    if "isActive" in payload:
        point.is_active = to_bool(payload.get("isActive"), point.is_active)
    s.flush()
    s.expire(point, ["city", "category"])
    record_event(
        s,
        actor=user,
        action="distribution_point.create" if creating else "distribution_point.edit",
        entity_type="DistributionPoint",
        entity_id=point.id,
        metadata={"name": point.name, "cityId": point.city_id, "categoryId": point.category_id},
    )
    return point


def set_point_status(s: "Session", point: DistributionPoint, active: bool, user: "User") -> DistributionPoint:
    point.is_active = active
    record_event(s, actor=user, action="distribution_point.status", entity_type="DistributionPoint", entity_id=point.id, metadata={"isActive": active})
    return point


def delete_point(s: "Session", point: DistributionPoint, user: "User") -> None:
    record_event(s, actor=user, action="distribution_point.delete", entity_type="DistributionPoint", entity_id=point.id, metadata={"name": point.name})
    s.delete(point)
