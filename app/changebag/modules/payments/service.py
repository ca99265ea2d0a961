from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from app.changebag.mailer import MailError, send_invoice_email
from app.changebag.modules.payments.gateway import PaymentGatewayError
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.modules.sponsorships.service import mark_paid
from app.changebag.utils import clean_str, to_float, to_int, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.changebag.modules.payments.gateway import PaymentService

logger = logging.getLogger(__name__)

ORDER_REQUIRED_FIELDS = ("amount", "currency", "email", "organizationName", "contactName", "phone", "causeTitle")
MIN_INR_PAISE = 100
# Razorpay test mode refuses large orders (~INR 50,000).
TEST_MODE_MAX_INR_PAISE = 5_000_000

_NOTE_FIELDS = (
    "email",
    "organizationName",
    "contactName",
    "phone",
    "causeTitle",
    "causeId",
    "sponsorshipId",
    "toteQuantity",
    "unitPrice",
    "shippingCost",
    "shippingCostPerTote",
    "qrCodeUrl",
)


def validate_order_payload(payload: dict, *, production: bool) -> tuple[list[str], str | None]:
    """Returns (missing fields, amount error message)."""
    missing = [k for k in ORDER_REQUIRED_FIELDS if payload.get(k) in (None, "", 0)]
    if missing:
        return missing, None
    amount = to_int(payload.get("amount"))
    currency = str(payload.get("currency")).upper()
    if amount is None or amount <= 0:
        return [], "Amount must be a positive integer (smallest currency unit)"
    if currency == "INR" and amount < MIN_INR_PAISE:
        return [], "Minimum amount for INR is 100 paise (₹1)"
    if not production and currency == "INR" and amount > TEST_MODE_MAX_INR_PAISE:
        return [], "Amount exceeds test-mode limit (~₹50,000). Reduce quantity or split into smaller payments."
    return [], None


def order_notes(payload: dict) -> dict[str, str]:
    notes = {}
    for key in _NOTE_FIELDS:
        value = payload.get(key)
        if key == "sponsorshipId":
            notes[key] = str(value or "N/A")
        elif key in ("toteQuantity", "unitPrice", "shippingCost", "shippingCostPerTote"):
            notes[key] = str(value or 0)
        else:
            notes[key] = str(value or "")
    return notes


def create_order(gateway: "PaymentService", payload: dict) -> dict:
    amount = int(to_int(payload.get("amount")) or 0)
    currency = str(payload.get("currency")).upper()
    order = gateway.create_order(
        amount=amount,
        currency=currency,
        receipt=f"receipt_{int(time.time() * 1000)}",
        notes=order_notes(payload),
    )
    logger.info("Razorpay order %s created (%s %s)", order.get("id"), amount, currency)
    return {
        "id": order.get("id"),
        "amount": order.get("amount"),
        "currency": order.get("currency"),
        "status": order.get("status"),
        "receipt": order.get("receipt"),
        "key": gateway.key_id,
        "email": payload.get("email"),
        "organizationName": payload.get("organizationName"),
        "contactName": payload.get("contactName"),
        "phone": payload.get("phone"),
        "causeTitle": payload.get("causeTitle"),
        "causeId": payload.get("causeId"),
        "sponsorshipId": payload.get("sponsorshipId"),
        "shippingCost": payload.get("shippingCost") or 0,
        "shippingCostPerTote": payload.get("shippingCostPerTote") or 0,
        "qrCodeUrl": payload.get("qrCodeUrl") or "",
    }


def _linked_sponsorship(s: "Session", notes: dict) -> Sponsorship | None:
    """Only the order notes written at create-order time can link a sponsorship."""
    sid = to_int(clean_str(notes.get("sponsorshipId")))
    return s.get(Sponsorship, sid) if sid else None


def settlement_problem(sp: Sponsorship, payment: dict, order: dict, order_id: str) -> str | None:
    """Why `payment` cannot settle `sp`, or None when it can."""
    paid = to_int(payment.get("amount"), 0) or 0
    if not order or payment.get("order_id") != order_id or order.get("id") != order_id:
        return "payment does not belong to the signed order"
    if paid != to_int(order.get("amount"), 0):
        return "payment amount differs from the order amount"
    if paid < round((sp.total_amount or 0) * 100):
        return "payment does not cover the sponsorship total"
    if sp.payment_status == "completed" and sp.payment_id != payment.get("id"):
        return "sponsorship is already paid by another payment"
    return None


def invoice_data(payment: dict, notes: dict, *, order_id: str, sponsorship: Sponsorship | None) -> dict:
    payment_id = payment.get("id") or ""
    if sponsorship is not None:
        number = f"INV-{sponsorship.id:06d}"
    else:
        number = f"INV-{payment_id.removeprefix('pay_').upper()}"
    return {
        "invoice_number": number,
        "payment_id": payment_id,
        "order_id": payment.get("order_id") or order_id,
        "amount": (to_float(payment.get("amount"), 0.0) or 0.0) / 100,
        "currency": payment.get("currency") or "INR",
        "organization_name": notes.get("organizationName") or "",
        "contact_name": notes.get("contactName") or "",
        "email": notes.get("email") or payment.get("email") or "",
        "phone": notes.get("phone") or "",
        "cause_title": notes.get("causeTitle") or "",
        "tote_quantity": to_int(notes.get("toteQuantity"), 0),
        "unit_price": to_float(notes.get("unitPrice"), 0.0),
        "shipping_cost": to_float(notes.get("shippingCost"), 0.0),
        "paid_at": sponsorship.payment_date if sponsorship is not None else utcnow(),
    }


def confirm_payment(s: "Session", gateway: "PaymentService", *, order_id: str, payment_id: str) -> dict:
    """
    Fetch the payment and its order after the signature check. A captured
    payment always gets an invoice email, addressed from the order notes; it
    also marks the sponsorship named in those notes paid when the amounts
    settle it. A failed invoice email is logged only.
    """
    payment = gateway.fetch_payment(payment_id)
    try:
        order = gateway.fetch_order(payment.get("order_id") or order_id)
    except PaymentGatewayError:
        logger.warning("Could not fetch order %s for payment %s", order_id, payment_id)
        order = {}
    notes = order.get("notes") or {}

    sponsorship = None
    if payment.get("status") == "captured":
        candidate = _linked_sponsorship(s, notes)
        if candidate is not None:
            problem = settlement_problem(candidate, payment, order, order_id)
            if problem:
                logger.warning("Payment %s not applied to sponsorship %s: %s", payment_id, candidate.id, problem)
            else:
                sponsorship = candidate
                if sponsorship.payment_id != payment_id:
                    mark_paid(
                        s,
                        sponsorship,
                        payment_id=payment_id,
                        order_id=order_id,
                        amount=(to_float(payment.get("amount"), 0.0) or 0.0) / 100,
                        currency=payment.get("currency") or "INR",
                    )
                    s.commit()

        invoice = invoice_data(payment, notes, order_id=order_id, sponsorship=sponsorship)
        if not invoice["email"]:
            logger.warning("Captured payment %s has no email to invoice", payment_id)
        else:
            try:
                send_invoice_email(invoice["email"], invoice)
            except MailError:
                logger.exception("Failed to send invoice for payment %s", payment_id)

    return {
        "id": payment.get("id"),
        "order_id": payment.get("order_id"),
        "status": payment.get("status"),
        "amount": payment.get("amount"),
        "currency": payment.get("currency"),
        "method": payment.get("method"),
        "sponsorshipId": sponsorship.id if sponsorship else None,
    }


def payment_status(gateway: "PaymentService", order_id: str) -> dict:
    order = gateway.fetch_order(order_id)
    payments = gateway.order_payments(order_id)
    captured = next((p for p in payments if p.get("status") == "captured"), None)
    return {
        "order": {
            "id": order.get("id"),
            "amount": order.get("amount"),
            "currency": order.get("currency"),
            "status": order.get("status"),
            "receipt": order.get("receipt"),
        },
        "payment": (
            {
                "id": captured.get("id"),
                "status": captured.get("status"),
                "amount": captured.get("amount"),
                "method": captured.get("method"),
                "created_at": captured.get("created_at"),
            }
            if captured
            else None
        ),
        "totalPayments": len(payments),
    }
