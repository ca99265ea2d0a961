import re
from datetime import timedelta

import pytest
import requests

from app.changebag.db import session_scope
from app.changebag.mailer import MailError
from app.changebag.modules.otp.models import OtpVerification
from app.changebag.sms import FLOW_URL, LEGACY_URL, Msg91Client, SmsError, standardize_phone


def _code_from(mail) -> str:
    return re.search(r"<strong>(\d{6})</strong>", mail["html"]).group(1)


def test_send_and_verify(client, outbox):
    r = client.post("/api/otp/send", json={"email": "Claimer@Example.com"})
    assert r.status_code == 200
    assert r.json == {"message": "OTP sent successfully to email", "email": "claimer@example.com", "method": "email"}
    mail = outbox[-1]
    assert mail["subject"] == "Verify Your Tote Claim"
    code = _code_from(mail)

    r = client.post("/api/otp/verify", json={"email": "claimer@example.com", "otp": "000000" if code != "000000" else "111111"})
    assert r.status_code == 400
    assert r.json["message"] == "Invalid or expired OTP"

    r = client.post("/api/otp/verify", json={"email": "claimer@example.com", "otp": code})
    assert r.status_code == 200
    assert r.json["verified"] is True

    # a code verifies only once
    assert client.post("/api/otp/verify", json={"email": "claimer@example.com", "otp": code}).status_code == 400


def test_resend_window(client, app, outbox):
    client.post("/api/otp/send", json={"email": "a@example.com"})
    r = client.post("/api/otp/send", json={"email": "a@example.com"})
    assert r.status_code == 200
    assert r.json["message"].startswith("OTP already sent")
    assert len(outbox) == 1

    with session_scope(app) as s:
        row = s.query(OtpVerification).one()
        row.created_at -= timedelta(minutes=3)

    client.post("/api/otp/send", json={"email": "a@example.com"})
    assert len(outbox) == 2


def test_expired_code_is_rejected(client, app, outbox):
    client.post("/api/otp/send", json={"email": "a@example.com"})
    code = _code_from(outbox[-1])
    with session_scope(app) as s:
        row = s.query(OtpVerification).one()
        row.expires_at -= timedelta(minutes=11)

    assert client.post("/api/otp/verify", json={"email": "a@example.com", "otp": code}).status_code == 400


def test_otp_validation(client):
    r = client.post("/api/otp/send", json={"method": "email", "phone": "9999999999"})
    assert r.status_code == 400
    assert r.json["message"] == "Email is required for email verification"

    r = client.post("/api/otp/send", json={"method": "sms", "email": "a@example.com"})
    assert r.status_code == 400
    assert r.json["message"] == "Phone number is required for SMS verification"

    r = client.post("/api/otp/send", json={"method": "pigeon", "email": "a@example.com"})
    assert r.status_code == 400

    r = client.post("/api/otp/verify", json={"email": "a@example.com"})
    assert r.status_code == 400
    assert r.json["message"] == "Email and OTP are required"


def test_send_failure_stores_nothing(client, app, monkeypatch):
    def boom(email, otp):
        raise MailError("smtp down")

    monkeypatch.setattr("app.changebag.modules.otp.service.send_otp_email", boom)
    r = client.post("/api/otp/send", json={"email": "a@example.com"})
    assert r.status_code == 500
    assert r.json["message"] == "Failed to send OTP"
    with session_scope(app) as s:
        assert s.query(OtpVerification).count() == 0


def test_sms_send_and_verify(client, app):
    sms = app.extensions.setdefault("sms_outbox", [])
    r = client.post("/api/otp/send", json={"phone": "098765 43210"})
    assert r.status_code == 200
    assert r.json == {"message": "OTP sent successfully to phone", "phone": "+919876543210", "method": "sms"}
    [msg] = sms
    assert msg["to"] == "+919876543210"

    r = client.post("/api/otp/send", json={"phone": "+91 98765 43210", "method": "sms"})
    assert r.json["message"].startswith("OTP already sent. Please check your phone")
    assert len(sms) == 1

    # an SMS code does not verify an email address
    assert client.post("/api/otp/verify", json={"email": "a@example.com", "otp": msg["otp"]}).status_code == 400

    r = client.post("/api/otp/verify", json={"phone": "919876543210", "otp": msg["otp"]})
    assert r.status_code == 200
    assert r.json["phone"] == "+919876543210"
    with session_scope(app) as s:
        row = s.query(OtpVerification).one()
        assert (row.method, row.phone, row.email, row.verified) == ("sms", "+919876543210", None, True)


def test_sms_failure_stores_nothing(client, app):
    app.config.update(SMS_BACKEND="msg91", MSG91_AUTH_KEY="")
    r = client.post("/api/otp/send", json={"phone": "9876543210"})
    assert r.status_code == 500
    assert r.json["message"] == "Failed to send OTP"
    with session_scope(app) as s:
        assert s.query(OtpVerification).count() == 0


def test_standardize_phone():
    assert standardize_phone("9876543210") == "+919876543210"
    assert standardize_phone("+91-98765-43210") == "+919876543210"
    assert standardize_phone("09876543210") == "+919876543210"
    assert standardize_phone("919876543210") == "+919876543210"


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")

    def json(self):
        return self.body


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.responses.pop(0)


def test_msg91_flow_api():
    http = FakeHttp(FakeResponse({"type": "success", "request_id": "req-1"}))
    client = Msg91Client("auth-key", "SHELF", "tmpl-1", http=http)

    assert client.send_otp("+919876543210", "123456") == "req-1"
    [(url, kwargs)] = http.calls
    assert url == FLOW_URL
    assert kwargs["headers"]["Authkey"] == "auth-key"
    assert kwargs["json"] == {"flow_id": "tmpl-1", "sender": "SHELF", "mobiles": "+919876543210", "var1": "123456"}


def test_msg91_falls_back_to_legacy_api():
    http = FakeHttp(
        FakeResponse({"type": "error", "message": "Invalid flow"}),
        FakeResponse({"type": "success", "request_id": "req-2"}),
    )
    client = Msg91Client("auth-key", "SHELF", "tmpl-1", http=http)

    assert client.send_otp("+919876543210", "123456") == "req-2"
    url, kwargs = http.calls[1]
    assert url == LEGACY_URL
    assert kwargs["data"]["mobile"] == "919876543210"
    assert kwargs["data"]["otp"] == "123456"


def test_msg91_raises_when_both_apis_fail():
    http = FakeHttp(FakeResponse({}, status=500), FakeResponse({"type": "error", "message": "bad key"}))
    client = Msg91Client("auth-key", "SHELF", "tmpl-1", http=http)
    with pytest.raises(SmsError):
        client.send_otp("+919876543210", "123456")
