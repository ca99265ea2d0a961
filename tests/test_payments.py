import hashlib
import hmac

import pytest
import razorpay
from razorpay.errors import BadRequestError

from app.changebag.db import session_scope
from app.changebag.modules.payments.gateway import PaymentService
from app.changebag.modules.sponsorships.models import Sponsorship

KEY_ID = "rzp_test_key123456"
KEY_SECRET = "rzp-test-secret"


class FakeOrders:
    def __init__(self):
        self.created: list[dict] = []
        self.orders: dict[str, dict] = {}
        self.payments_by_order: dict[str, list[dict]] = {}

    def create(self, data):
        order_id = f"order_{len(self.created) + 1}"
        self.created.append(data)
        order = {"id": order_id, "status": "created", **data}
        self.orders[order_id] = order
        return order

    def fetch(self, order_id):
        if order_id not in self.orders:
            raise BadRequestError("The id provided does not exist")
        return self.orders[order_id]

    def payments(self, order_id):
        return {"items": self.payments_by_order.get(order_id, [])}


class FakePayments:
    def __init__(self):
        self.payments: dict[str, dict] = {}

    def fetch(self, payment_id):
        return self.payments[payment_id]


class FakeRazorpay:
    def __init__(self):
        self.order = FakeOrders()
        self.payment = FakePayments()
        self.utility = razorpay.Client(auth=(KEY_ID, KEY_SECRET)).utility


@pytest.fixture()
def gateway(app):
    fake = FakeRazorpay()
    app.extensions["payment_service"] = PaymentService(KEY_ID, KEY_SECRET, client=fake)
    return fake


def _sign(order_id, payment_id):
    return hmac.new(KEY_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _order(**extra):
    data = {
        "amount": 50000,
        "currency": "INR",
        "email": "ops@acme.test",
        "organizationName": "Acme Foods",
        "contactName": "Priya",
        "phone": "9999999999",
        "causeTitle": "Clean Rivers",
    }
    data.update(extra)
    return data


def test_payment_service_health(client):
    r = client.get("/api/payments/test")
    assert r.status_code == 200
    assert r.json["razorpayConfigured"] is True
    assert r.json["keyId"] == "rzp_test_k..."


def test_payment_service_health_without_credentials(client, app):
    app.config["RAZORPAY_KEY_SECRET"] = ""
    r = client.get("/api/payments/test")
    assert r.status_code == 500
    assert r.json["hasKeyId"] is True
    assert r.json["hasKeySecret"] is False


def test_create_order_validation(client, auth, gateway):
    h = auth("sponsor")
    r = client.post("/api/payments/create-order", json={"amount": 50000}, headers=h)
    assert r.status_code == 400
    assert "email" in r.json["missingFields"]

    r = client.post("/api/payments/create-order", json=_order(amount=50), headers=h)
    assert r.status_code == 400
    assert r.json["message"] == "Minimum amount for INR is 100 paise (₹1)"

    r = client.post("/api/payments/create-order", json=_order(amount=6_000_000), headers=h)
    assert r.status_code == 400
    assert r.json["message"].startswith("Amount exceeds test-mode limit")

    assert gateway.order.created == []


def test_create_order_requires_payments_permission(client, auth, gateway):
    assert client.post("/api/payments/create-order", json=_order()).status_code == 401
    assert client.post("/api/payments/create-order", json=_order(), headers=auth("claimer")).status_code == 403


def test_create_order(client, auth, gateway):
    r = client.post("/api/payments/create-order", json=_order(sponsorshipId=7, toteQuantity=5), headers=auth("sponsor"))
    assert r.status_code == 200, r.json
    order = r.json["order"]
    assert order["id"] == "order_1"
    assert order["key"] == KEY_ID
    assert order["amount"] == 50000

    sent = gateway.order.created[0]
    assert sent["currency"] == "INR"
    assert sent["partial_payment"] is False
    assert sent["receipt"].startswith("receipt_")
    assert sent["notes"]["sponsorshipId"] == "7"
    assert sent["notes"]["toteQuantity"] == "5"
    assert sent["notes"]["unitPrice"] == "0"


def test_confirm_payment_rejects_bad_signature(client, gateway):
    r = client.post(
        "/api/payments/confirm-payment",
        json={"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "deadbeef"},
    )
    assert r.status_code == 400
    assert r.json["error"] == "Invalid payment signature"

    r = client.post("/api/payments/confirm-payment", json={"razorpay_order_id": "order_1"})
    assert r.status_code == 400


def test_confirm_captured_payment_marks_sponsorship_paid(client, app, auth, outbox, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause())
    client.post("/api/payments/create-order", json=_order(sponsorshipId=sp_id), headers=auth("sponsor"))
    gateway.payment.payments["pay_1"] = {
        "id": "pay_1",
        "order_id": "order_1",
        "status": "captured",
        "amount": 50000,
        "currency": "INR",
        "method": "upi",
    }

    r = client.post(
        "/api/payments/confirm-payment",
        json={"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": _sign("order_1", "pay_1")},
    )
    assert r.status_code == 200, r.json
    assert r.json["payment"]["status"] == "captured"
    assert r.json["payment"]["sponsorshipId"] == sp_id

    with session_scope(app) as s:
        sp = s.get(Sponsorship, sp_id)
        assert sp.payment_status == "completed"
        assert sp.payment_id == "pay_1"
        assert sp.payment_order_id == "order_1"
        assert sp.payment_amount == 500.0
        assert sp.payment_date is not None

    invoice = outbox[-1]
    assert invoice["to"] == "ops@acme.test"
    assert f"INV-{sp_id:06d}" in invoice["html"]


def test_confirm_authorized_payment_leaves_sponsorship_unpaid(client, app, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause())
    gateway.payment.payments["pay_2"] = {"id": "pay_2", "order_id": "order_9", "status": "authorized", "amount": 100, "currency": "INR"}

    r = client.post(
        "/api/payments/confirm-payment",
        json={
            "razorpay_order_id": "order_9",
            "razorpay_payment_id": "pay_2",
            "razorpay_signature": _sign("order_9", "pay_2"),
            "sponsorshipId": sp_id,
        },
    )
    assert r.status_code == 200
    assert r.json["payment"]["sponsorshipId"] is None
    with session_scope(app) as s:
        assert s.get(Sponsorship, sp_id).payment_status == "pending"


def test_payment_status(client, auth, gateway):
    client.post("/api/payments/create-order", json=_order(), headers=auth("sponsor"))
    gateway.order.payments_by_order["order_1"] = [
        {"id": "pay_a", "status": "failed", "amount": 50000},
        {"id": "pay_b", "status": "captured", "amount": 50000, "method": "card", "created_at": 1760000000},
    ]

    r = client.get("/api/payments/status/order_1")
    assert r.status_code == 200
    assert r.json["order"]["id"] == "order_1"
    assert r.json["payment"]["id"] == "pay_b"
    assert r.json["totalPayments"] == 2

    r = client.get("/api/payments/status/order_missing")
    assert r.status_code == 500
    assert r.json["message"] == "Failed to get payment status"


def _capture(gateway, payment_id, order_id, amount, status="captured"):
    gateway.payment.payments[payment_id] = {
        "id": payment_id,
        "order_id": order_id,
        "status": status,
        "amount": amount,
        "currency": "INR",
        "method": "upi",
        "email": "payer@bank.test",
    }


def _confirm(client, order_id, payment_id, **extra):
    body = {"razorpay_order_id": order_id, "razorpay_payment_id": payment_id, "razorpay_signature": _sign(order_id, payment_id)}
    body.update(extra)
    return client.post("/api/payments/confirm-payment", json=body)


def test_captured_payment_without_sponsorship_still_sends_invoice(client, auth, outbox, gateway):
    client.post("/api/payments/create-order", json=_order(toteQuantity=5, unitPrice=100), headers=auth("sponsor"))
    _capture(gateway, "pay_abc12", "order_1", 50000)

    r = _confirm(client, "order_1", "pay_abc12")
    assert r.status_code == 200
    assert r.json["payment"]["sponsorshipId"] is None

    [invoice] = outbox
    assert invoice["to"] == "ops@acme.test"
    assert invoice["subject"] == "Your ChangeBag invoice for Clean Rivers"
    assert "INV-ABC12" in invoice["html"]
    assert "Acme Foods" in invoice["html"]
    assert "INR 500.00" in invoice["html"]


def test_invoice_falls_back_to_payment_email(client, outbox, gateway):
    gateway.order.orders["order_x"] = {"id": "order_x", "amount": 100, "notes": {}}
    _capture(gateway, "pay_x", "order_x", 100)

    assert _confirm(client, "order_x", "pay_x").status_code == 200
    assert [m["to"] for m in outbox] == ["payer@bank.test"]


def test_sponsorship_id_in_request_body_is_ignored(client, app, auth, gateway, make_cause, make_sponsorship):
    cause_id = make_cause()
    own = make_sponsorship(cause_id)
    other = make_sponsorship(cause_id, organization_name="Other Org", tote_quantity=9000, total_amount=900000.0)
    client.post("/api/payments/create-order", json=_order(sponsorshipId=own), headers=auth("sponsor"))
    _capture(gateway, "pay_1", "order_1", 50000)

    r = _confirm(client, "order_1", "pay_1", sponsorshipId=other)
    assert r.status_code == 200
    assert r.json["payment"]["sponsorshipId"] == own

    with session_scope(app) as s:
        assert s.get(Sponsorship, own).payment_status == "completed"
        untouched = s.get(Sponsorship, other)
        assert untouched.payment_status == "pending"
        assert untouched.payment_id is None


def test_payment_below_sponsorship_total_does_not_mark_paid(client, app, auth, outbox, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause(), tote_quantity=9000, total_amount=900000.0)
    client.post("/api/payments/create-order", json=_order(amount=100, sponsorshipId=sp_id), headers=auth("sponsor"))
    _capture(gateway, "pay_1", "order_1", 100)

    r = _confirm(client, "order_1", "pay_1")
    assert r.status_code == 200
    assert r.json["payment"]["sponsorshipId"] is None
    with session_scope(app) as s:
        assert s.get(Sponsorship, sp_id).payment_status == "pending"
    # the money did arrive, so the payer still gets a receipt
    assert len(outbox) == 1


def test_payment_must_equal_order_amount(client, app, auth, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause())
    client.post("/api/payments/create-order", json=_order(sponsorshipId=sp_id), headers=auth("sponsor"))
    _capture(gateway, "pay_1", "order_1", 40000)

    assert _confirm(client, "order_1", "pay_1").json["payment"]["sponsorshipId"] is None
    with session_scope(app) as s:
        assert s.get(Sponsorship, sp_id).payment_status == "pending"


def test_paid_sponsorship_is_not_reassigned_to_another_payment(client, app, auth, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause())
    client.post("/api/payments/create-order", json=_order(sponsorshipId=sp_id), headers=auth("sponsor"))
    client.post("/api/payments/create-order", json=_order(sponsorshipId=sp_id), headers=auth("sponsor"))
    _capture(gateway, "pay_1", "order_1", 50000)
    _capture(gateway, "pay_2", "order_2", 50000)

    assert _confirm(client, "order_1", "pay_1").json["payment"]["sponsorshipId"] == sp_id
    # replaying the same confirmation is harmless
    assert _confirm(client, "order_1", "pay_1").json["payment"]["sponsorshipId"] == sp_id
    assert _confirm(client, "order_2", "pay_2").json["payment"]["sponsorshipId"] is None

    with session_scope(app) as s:
        sp = s.get(Sponsorship, sp_id)
        assert sp.payment_id == "pay_1"
        assert sp.payment_order_id == "order_1"


def test_payment_for_a_different_order_is_not_applied(client, app, auth, gateway, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause())
    client.post("/api/payments/create-order", json=_order(sponsorshipId=sp_id), headers=auth("sponsor"))
    _capture(gateway, "pay_1", "order_other", 50000)

    assert _confirm(client, "order_1", "pay_1").json["payment"]["sponsorshipId"] is None
    with session_scope(app) as s:
        assert s.get(Sponsorship, sp_id).payment_status == "pending"
