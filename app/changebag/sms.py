"""
SMS delivery for OTP codes.

Two backends, chosen by SMS_BACKEND:
  - "msg91": MSG91 flow API, then the legacy sendotp endpoint when the flow
    call is refused
  - "console": log the code and keep it in app.extensions["sms_outbox"]
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import requests
from flask import Flask, current_app

logger = logging.getLogger(__name__)

FLOW_URL = "https://control.msg91.com/api/v5/flow/"
LEGACY_URL = "https://control.msg91.com/api/sendotp.php"


class SmsError(RuntimeError):
    pass


def standardize_phone(raw: str) -> str:
    """Indian mobile numbers in +91XXXXXXXXXX form, whatever the user typed."""
    digits = re.sub(r"[^\d]", "", raw or "")
    if digits.startswith("0"):
        digits = digits[1:]
    if digits.startswith("91") and len(digits) > 10:
        digits = digits[2:]
    return f"+91{digits}"


@dataclass
class Msg91Client:
    auth_key: str
    sender_id: str
    template_id: str
    timeout_seconds: int = 15
    http: Any = field(default_factory=requests.Session)

    def _post(self, url: str, **kwargs) -> dict[str, Any]:
        try:
            resp = self.http.post(url, timeout=self.timeout_seconds, **kwargs)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise SmsError(f"MSG91 request to {url} failed: {e}") from e
        if not isinstance(body, dict) or body.get("type") != "success":
            raise SmsError(f"MSG91 refused the message: {body}")
        return body

    def send_otp(self, phone: str, otp: str) -> str:
        """Returns the MSG91 request id."""
        try:
            body = self._post(
                FLOW_URL,
                json={"flow_id": self.template_id, "sender": self.sender_id, "mobiles": phone, "var1": otp},
                headers={"Authkey": self.auth_key, "Content-Type": "application/json"},
            )
        except SmsError as e:
            logger.warning("MSG91 flow API failed, trying legacy API: %s", e)
            body = self._post(
                LEGACY_URL,
                data={
                    "authkey": self.auth_key,
                    "mobile": phone.lstrip("+"),
                    "message": f"Your verification code is {otp}. Valid for 10 minutes.",
                    "sender": self.sender_id,
                    "otp": otp,
                },
            )
        return str(body.get("request_id") or "")


def get_sms_client(app: Flask | None = None) -> Msg91Client:
    app = app or current_app._get_current_object()  # type: ignore[attr-defined]
    client = app.extensions.get("sms_client")
    if client is None:
        cfg = app.config
        if not cfg.get("MSG91_AUTH_KEY"):
            raise SmsError("MSG91_AUTH_KEY is not configured")
        client = Msg91Client(cfg["MSG91_AUTH_KEY"], cfg.get("MSG91_SENDER_ID") or "", cfg.get("MSG91_OTP_TEMPLATE_ID") or "")
        app.extensions["sms_client"] = client
    return client


def send_otp_sms(phone: str, otp: str) -> None:
    """Raises SmsError when the message could not be handed to MSG91."""
    backend = (current_app.config.get("SMS_BACKEND") or "console").strip().lower()
    if backend == "msg91":
        request_id = get_sms_client().send_otp(phone, otp)
        logger.info("OTP SMS sent via msg91 to %s (request=%s)", phone, request_id)
        return
    current_app.extensions.setdefault("sms_outbox", []).append({"to": phone, "otp": otp})
    logger.info("OTP SMS (console) to %s", phone)
