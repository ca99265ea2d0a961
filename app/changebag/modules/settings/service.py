from __future__ import annotations

import math
from typing import TYPE_CHECKING

from app.changebag.audit import record_event
from app.changebag.modules.settings.models import SystemSettings
from app.changebag.utils import iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.models import User


SETTINGS_ID = 1

# camelCase key -> (column, type)
FIELDS: dict[str, tuple[str, type]] = {
    "siteName": ("site_name", str),
    "siteDescription": ("site_description", str),
    "supportEmail": ("support_email", str),
    "maxCampaignsPerUser": ("max_campaigns_per_user", int),
    "autoApprovalEnabled": ("auto_approval_enabled", bool),
    "emailNotificationsEnabled": ("email_notifications_enabled", bool),
    "maintenanceMode": ("maintenance_mode", bool),
    "requireApprovalForClaims": ("require_approval_for_claims", bool),
    "maxClaimsPerCampaign": ("max_claims_per_campaign", int),
    "shippingFee": ("shipping_fee", float),
    "privacyPolicyUrl": ("privacy_policy_url", str),
    "termsOfServiceUrl": ("terms_of_service_url", str),
}

# Keys the SPA echoes back from a previous GET; accepted and ignored.
READ_ONLY_KEYS = frozenset({"id", "updatedAt", "updatedByUserId"})


def get_settings(s: "Session") -> SystemSettings:
    row = s.get(SystemSettings, SETTINGS_ID)
    if row is None:
        row = SystemSettings(id=SETTINGS_ID)
        s.add(row)
        s.flush()
    return row


def settings_to_dict(row: SystemSettings) -> dict:
    out = {"id": row.id}
    for key, (attr, _typ) in FIELDS.items():
        out[key] = getattr(row, attr)
    out["updatedAt"] = iso(row.updated_at)
    out["updatedByUserId"] = row.updated_by_user_id
    return out


def _finite(raw) -> bool:
    try:
        return math.isfinite(raw)
    except OverflowError:
        return False


def _coerce(key: str, raw, typ: type):
    if typ is bool:
        if isinstance(raw, bool):
            return raw
        raise ValueError(f"{key} must be true or false.")
    if typ is int:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not _finite(raw) or int(raw) != raw or raw < 0:
            raise ValueError(f"{key} must be a non-negative whole number.")
        return int(raw)
    if typ is float:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not _finite(raw) or raw < 0:
            raise ValueError(f"{key} must be a non-negative number.")
        return float(raw)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"{key} must be a non-empty string.")
    return raw.strip()


def validate_settings_payload(payload: dict) -> list[str]:
    errors = []
    for key, raw in payload.items():
        if key in READ_ONLY_KEYS:
            continue
        if key not in FIELDS:
            errors.append(f"Unknown setting: {key}")
            continue
        try:
            _coerce(key, raw, FIELDS[key][1])
        except ValueError as e:
            errors.append(str(e))
    return errors


def update_settings(s: "Session", payload: dict, user: "User") -> SystemSettings:
    row = get_settings(s)
    changes: dict[str, dict] = {}
    for key, raw in payload.items():
        if key in READ_ONLY_KEYS:
            continue
        attr, typ = FIELDS[key]
        value = _coerce(key, raw, typ)
        old = getattr(row, attr)
        if old != value:
            setattr(row, attr, value)
            changes[key] = {"old": old, "new": value}
    row.updated_by_user_id = user.id
    if changes:
        record_event(s, actor=user, action="settings.update", entity_type="SystemSettings", entity_id=row.id, metadata=changes)
    return row
