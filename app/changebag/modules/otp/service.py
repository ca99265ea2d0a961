from __future__ import annotations

import hmac
from datetime import timedelta
from typing import TYPE_CHECKING

from app.changebag.constants import OTP_EXPIRY_MINUTES, OTP_METHODS, OTP_RESEND_WINDOW_MINUTES
from app.changebag.mailer import send_otp_email
from app.changebag.modules.otp.models import OtpVerification
from app.changebag.security import generate_otp, hash_otp
from app.changebag.sms import send_otp_sms
from app.changebag.utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _for_address(q, method: str, address: str):
    column = OtpVerification.phone if method == "sms" else OtpVerification.email
    return q.filter(OtpVerification.method == method, column == address)


def recent_code(s: "Session", method: str, address: str) -> OtpVerification | None:
    now = utcnow()
    return (
        _for_address(s.query(OtpVerification), method, address)
        .filter(
            OtpVerification.verified.is_(False),
            OtpVerification.expires_at > now,
            OtpVerification.created_at > now - timedelta(minutes=OTP_RESEND_WINDOW_MINUTES),
        )
        .order_by(OtpVerification.created_at.desc())
        .first()
    )


def send_code(s: "Session", method: str, address: str) -> bool:
    """
    Issue a new 6-digit code and deliver it by email or SMS. `address` is the
    lowercased email or the standardized phone number. Returns False when a
    fresh code was already sent within the resend window (nothing is sent then).
    """
    if method not in OTP_METHODS:
        raise ValueError(f"Invalid verification method: {method}")
    if recent_code(s, method, address) is not None:
        return False
    otp = generate_otp()
    now = utcnow()
    s.add(
        OtpVerification(
            method=method,
            email=address if method == "email" else None,
            phone=address if method == "sms" else None,
            otp_hash=hash_otp(otp),
            created_at=now,
            expires_at=now + timedelta(minutes=OTP_EXPIRY_MINUTES),
            verified=False,
        )
    )
    s.flush()
    if method == "sms":
        send_otp_sms(address, otp)
    else:
        send_otp_email(address, otp)
    return True


def verify_code(s: "Session", method: str, address: str, otp: str) -> bool:
    record = (
        _for_address(s.query(OtpVerification), method, address)
        .filter(
            OtpVerification.verified.is_(False),
            OtpVerification.expires_at > utcnow(),
        )
        .order_by(OtpVerification.created_at.desc(), OtpVerification.id.desc())
        .first()
    )
    if record is None or not hmac.compare_digest(record.otp_hash, hash_otp(otp.strip())):
        return False
    record.verified = True
    return True
