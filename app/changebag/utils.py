from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_date(raw: Any) -> date | None:
    """Accept YYYY-MM-DD or a full ISO timestamp (what the SPA date pickers send)."""
    if raw is None or isinstance(raw, date) and not isinstance(raw, datetime):
        return raw
    if isinstance(raw, datetime):
        return raw.date()
    s = str(raw).strip()
    if not s:
        return None
    if len(s) > 10:
        return parse_datetime(s).date()  # type: ignore[union-attr]
    return date.fromisoformat(s)


def parse_datetime(raw: Any) -> datetime | None:
    if raw is None or isinstance(raw, datetime):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def clean_str(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def to_int(raw: Any, default: int | None = None) -> int | None:
    value = to_float(raw)
    if value is None:
        return default
    return int(value)


def to_float(raw: Any, default: float | None = None) -> float | None:
    """float(raw), or `default` for blanks, junk, NaN and +/-Infinity."""
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return default
    return value if math.isfinite(value) else default


def to_bool(raw: Any, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def pick(payload: dict, *keys: str) -> Any:
    """First non-None value among camelCase/snake_case aliases."""
    for k in keys:
        if payload.get(k) is not None:
            return payload[k]
    return None


def request_payload() -> dict:
    """JSON body, or form fields for multipart uploads."""
    from flask import request

    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def error(message: str, status: int = 400, **extra):
    from flask import jsonify

    body = {"message": message}
    body.update(extra)
    return jsonify(body), status
