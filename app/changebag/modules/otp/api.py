from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.changebag.constants import OTP_METHODS
from app.changebag.db import db_session
from app.changebag.mailer import MailError
from app.changebag.modules.otp import service as otp_svc
from app.changebag.sms import SmsError, standardize_phone
from app.changebag.utils import clean_str, error, request_payload

bp = Blueprint("otp", __name__)


def _method_and_address(payload: dict) -> tuple[str | None, str | None]:
    """(method, address); method defaults to sms when only a phone is given."""
    email = (clean_str(payload.get("email")) or "").lower()
    phone = clean_str(payload.get("phone"))
    method = (clean_str(payload.get("method")) or ("sms" if phone and not email else "email")).lower()
    if method not in OTP_METHODS:
        return None, None
    if method == "sms":
        return method, standardize_phone(phone) if phone else None
    return method, email if "@" in email else None


def _target(method: str, address: str) -> dict:
    return {"phone" if method == "sms" else "email": address, "method": method}


@bp.post("/send")
def send_otp():
    method, address = _method_and_address(request_payload())
    if method is None:
        return error('Invalid verification method. Use "email" or "sms"', 400)
    if not address:
        if method == "sms":
            return error("Phone number is required for SMS verification", 400)
        return error("Email is required for email verification", 400)
    s = db_session()
    try:
        sent = otp_svc.send_code(s, method, address)
    except (MailError, SmsError) as e:
        s.rollback()
        current_app.logger.error("OTP %s to %s failed: %s", method, address, e)
        return error("Failed to send OTP", 500)
    s.commit()
    channel = "phone" if method == "sms" else "email"
    if not sent:
        return jsonify(
            {
                "message": f"OTP already sent. Please check your {channel} or wait before requesting a new code.",
                **_target(method, address),
            }
        )
    return jsonify({"message": f"OTP sent successfully to {channel}", **_target(method, address)})


@bp.post("/verify")
def verify_otp():
    payload = request_payload()
    method, address = _method_and_address(payload)
    otp = clean_str(payload.get("otp"))
    if method is None:
        return error('Invalid verification method. Use "email" or "sms"', 400)
    if not address or not otp:
        if method == "sms":
            return error("Phone number and OTP are required", 400)
        return error("Email and OTP are required", 400)
    s = db_session()
    if not otp_svc.verify_code(s, method, address, otp):
        return error("Invalid or expired OTP", 400)
    s.commit()
    return jsonify({"message": "OTP verified successfully", "verified": True, **_target(method, address)})
