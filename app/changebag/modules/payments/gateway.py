"""
Razorpay gateway wrapper.

One PaymentService per app, created lazily from RAZORPAY_KEY_ID /
RAZORPAY_KEY_SECRET and cached in app.extensions["payment_service"].
SDK and transport failures surface as PaymentGatewayError carrying the
gateway's description and code.
"""
from __future__ import annotations

import logging
from typing import Any

import razorpay
import requests
from flask import Flask, current_app
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

logger = logging.getLogger(__name__)

_SDK_ERRORS = (BadRequestError, GatewayError, ServerError, requests.RequestException)


class PaymentConfigError(RuntimeError):
    pass


class PaymentGatewayError(RuntimeError):
    def __init__(self, description: str, code: str = "UNKNOWN"):
        super().__init__(description)
        self.description = description
        self.code = code


def _gateway_error(op: str, e: Exception) -> PaymentGatewayError:
    code = getattr(e, "code", None) or getattr(e, "status_code", None) or type(e).__name__
    logger.error("Razorpay %s failed: %s (code=%s)", op, e, code)
    return PaymentGatewayError(str(e) or "Unknown error occurred", str(code))


class PaymentService:
    def __init__(self, key_id: str, key_secret: str, client: Any | None = None):
        if not key_id or not key_secret:
            raise PaymentConfigError(
                "Razorpay credentials not configured. Please check RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET environment variables."
            )
        self.key_id = key_id
        self._key_secret = key_secret
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, *, amount: int, currency: str, receipt: str, notes: dict[str, str]) -> dict:
        try:
            return self.client.order.create(
                data={
                    "amount": amount,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                    "partial_payment": False,
                }
            )
        except _SDK_ERRORS as e:
            raise _gateway_error("order.create", e) from e

    def fetch_order(self, order_id: str) -> dict:
        try:
            return self.client.order.fetch(order_id)
        except _SDK_ERRORS as e:
            raise _gateway_error("order.fetch", e) from e

    def order_payments(self, order_id: str) -> list[dict]:
        try:
            return list((self.client.order.payments(order_id) or {}).get("items") or [])
        except _SDK_ERRORS as e:
            raise _gateway_error("order.payments", e) from e

    def fetch_payment(self, payment_id: str) -> dict:
        try:
            return self.client.payment.fetch(payment_id)
        except _SDK_ERRORS as e:
            raise _gateway_error("payment.fetch", e) from e

    def verify_signature(self, *, order_id: str, payment_id: str, signature: str) -> bool:
        """HMAC-SHA256 of "order_id|payment_id" keyed by the secret."""
        try:
            result = self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except SignatureVerificationError:
            return False
        return result is not False


def is_configured(app: Flask | None = None) -> bool:
    cfg = (app or current_app).config
    return bool(cfg.get("RAZORPAY_KEY_ID") and cfg.get("RAZORPAY_KEY_SECRET"))


def get_payment_service(app: Flask | None = None) -> PaymentService:
    app = app or current_app._get_current_object()  # type: ignore[attr-defined]
    svc = app.extensions.get("payment_service")
    if svc is None:
        svc = PaymentService(app.config.get("RAZORPAY_KEY_ID", ""), app.config.get("RAZORPAY_KEY_SECRET", ""))
        app.extensions["payment_service"] = svc
        app.logger.info("Razorpay client initialized (key=%s...)", svc.key_id[:10])
    return svc
