from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from app.changebag.db import db_session
from app.changebag.modules.payments import service as payments_svc
from app.changebag.modules.payments.gateway import (
    PaymentConfigError,
    PaymentGatewayError,
    get_payment_service,
    is_configured,
)
from app.changebag.rbac import require_permission
from app.changebag.utils import error, request_payload

bp = Blueprint("payments", __name__)


def _is_production() -> bool:
    return (current_app.config.get("ENV") or "").strip().lower() in ("prod", "production")


@bp.get("/test")
def test_payment_service():
    cfg = current_app.config
    if not is_configured():
        return error(
            "Razorpay credentials not configured",
            500,
            hasKeyId=bool(cfg.get("RAZORPAY_KEY_ID")),
            hasKeySecret=bool(cfg.get("RAZORPAY_KEY_SECRET")),
        )
    try:
        svc = get_payment_service()
    except PaymentConfigError as e:
        return error("Razorpay initialization failed", 500, error=str(e))
    return jsonify(
        {
            "message": "Payment service is working",
            "razorpayConfigured": True,
            "keyId": svc.key_id[:10] + "...",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@bp.post("/create-order")
@require_permission("payments.use")
def create_order():
    payload = request_payload()
    missing, amount_error = payments_svc.validate_order_payload(payload, production=_is_production())
    if missing:
        return error("Missing required fields", 400, required=list(payments_svc.ORDER_REQUIRED_FIELDS), missingFields=missing)
    if amount_error:
        return error(amount_error, 400, amount=payload.get("amount"))
    try:
        order = payments_svc.create_order(get_payment_service(), payload)
    except PaymentConfigError as e:
        return error("Failed to create payment order", 500, error=str(e), code="CONFIG")
    except PaymentGatewayError as e:
        return error("Failed to create payment order", 500, error=e.description, code=e.code)
    return jsonify({"success": True, "order": order})


@bp.post("/confirm-payment")
def confirm_payment():
    payload = request_payload()
    order_id = (payload.get("razorpay_order_id") or "").strip()
    payment_id = (payload.get("razorpay_payment_id") or "").strip()
    signature = (payload.get("razorpay_signature") or "").strip()
    if not order_id or not payment_id or not signature:
        return error(
            "Missing required payment verification fields",
            400,
            required=["razorpay_order_id", "razorpay_payment_id", "razorpay_signature"],
        )
    try:
        gateway = get_payment_service()
        if not gateway.verify_signature(order_id=order_id, payment_id=payment_id, signature=signature):
            current_app.logger.warning("Payment signature verification failed (order=%s)", order_id)
            return error("Payment verification failed", 400, error="Invalid payment signature")
        result = payments_svc.confirm_payment(
            db_session(),
            gateway,
            order_id=order_id,
            payment_id=payment_id,
        )
    except (PaymentConfigError, PaymentGatewayError) as e:
        return error("Failed to confirm payment", 500, error=str(e))
    return jsonify({"success": True, "message": "Payment confirmed successfully", "payment": result})


@bp.get("/status/<order_id>")
def payment_status(order_id: str):
    try:
        result = payments_svc.payment_status(get_payment_service(), order_id)
    except (PaymentConfigError, PaymentGatewayError) as e:
        return error("Failed to get payment status", 500, error=str(e))
    return jsonify({"success": True, **result})
