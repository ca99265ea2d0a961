import json

from app.changebag.db import session_scope
from app.changebag.models import AuditEvent
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.waitlist.models import WaitlistEntry


def _payload(cause_id, **extra):
    data = {
        "cause": cause_id,
        "organizationName": "Acme Foods",
        "contactName": "Priya",
        "email": "Ops@Acme.test",
        "phone": "9999999999",
        "toteQuantity": 4,
        "unitPrice": 50,
        "distributionType": "physical",
        "selectedCities": ["Pune"],
        "distributionLocations": [{"name": "Pune Central", "totes": 4}],
        "distributionStartDate": "2026-01-01",
        "distributionEndDate": "2026-02-01T00:00:00.000Z",
        "logoUrl": "logo_uploaded_client_side",
    }
    data.update(extra)
    return data


def test_create_sponsorship_is_pending_and_uses_default_logo(client, app, make_cause):
    cause_id = make_cause()
    r = client.post("/api/sponsorships", json=_payload(cause_id))
    assert r.status_code == 201, r.json
    body = r.json
    assert body["status"] == "pending"
    assert body["paymentStatus"] == "pending"
    assert body["email"] == "ops@acme.test"
    assert body["totalAmount"] == 200.0
    assert body["logoUrl"] == app.config["DEFAULT_LOGO_URL"]
    assert body["distributionEndDate"] == "2026-02-01"
    assert body["cause"]["id"] == cause_id

    # pending money is not counted toward the cause
    assert client.get(f"/api/causes/{cause_id}").json["currentAmount"] == 0.0


def test_create_sponsorship_accepts_alternate_field_names(client, make_cause):
    cause_id = make_cause()
    data = _payload(None, selectedCause={"id": cause_id}, numberOfTotes=2, totalAmount=150)
    data.pop("cause")
    data.pop("toteQuantity")
    data["physicalDistributionDetails"] = {"distributionLocations": data.pop("distributionLocations")}
    r = client.post("/api/sponsorships", json=data)
    assert r.status_code == 201, r.json
    assert r.json["toteQuantity"] == 2
    assert r.json["totalAmount"] == 150.0


def test_create_sponsorship_validation(client, make_cause):
    cause_id = make_cause()

    r = client.post("/api/sponsorships", json={"cause": cause_id, "organizationName": "Acme"})
    assert r.status_code == 400
    assert r.json["message"] == "Missing required fields"
    assert "email" in r.json["missingFields"]
    assert "distributionLocations" in r.json["missingFields"]

    r = client.post("/api/sponsorships", json=_payload(cause_id, distributionType="carrier-pigeon"))
    assert r.status_code == 400
    assert r.json["message"] == "Validation error"

    r = client.post("/api/sponsorships", json=_payload(cause_id, distributionEndDate="2025-12-01"))
    assert r.status_code == 400

    r = client.post("/api/sponsorships", json=_payload(99999))
    assert r.status_code == 404


def test_create_sponsorship_rejects_non_finite_numbers(client, app, make_cause):
    cause_id = make_cause()
    # json.dumps writes bare NaN / Infinity literals, which the JSON parser accepts
    for extra in ({"unitPrice": float("nan")}, {"unitPrice": float("inf")}, {"totalAmount": float("nan")}, {"toteQuantity": 1e400}):
        r = client.post("/api/sponsorships", data=json.dumps(_payload(cause_id, **extra)), content_type="application/json")
        assert r.status_code == 400, extra
        assert r.json["message"] == "Validation error"

    with session_scope(app) as s:
        assert s.get(Cause, cause_id).current_amount == 0.0


def test_signed_in_sponsor_sees_own_sponsorships(client, auth, make_cause, make_sponsorship):
    cause_id = make_cause()
    make_sponsorship(cause_id, email="sponsor@example.com")
    make_sponsorship(cause_id, email="someone@else.test")

    r = client.get("/api/sponsorships/user", headers=auth("sponsor"))
    assert r.status_code == 200
    assert [sp["email"] for sp in r.json] == ["sponsor@example.com"]

    r = client.get("/api/sponsorships", headers=auth("sponsor"))
    assert r.status_code == 403


def test_view_sponsorship_requires_owner_or_reviewer(client, auth, make_cause, make_sponsorship):
    cause_id = make_cause()
    sp_id = make_sponsorship(cause_id)
    assert client.get(f"/api/sponsorships/{sp_id}", headers=auth("sponsor")).status_code == 403
    assert client.get(f"/api/sponsorships/{sp_id}", headers=auth("admin")).status_code == 200
    assert client.get(f"/api/sponsorships/{sp_id}").status_code == 401


def test_approve_updates_cause_and_notifies_waitlist(client, app, auth, outbox, make_cause, make_sponsorship):
    cause_id = make_cause()
    sp_id = make_sponsorship(cause_id, status="pending", total_amount=450.0)
    with session_scope(app) as s:
        s.add(WaitlistEntry(cause_id=cause_id, full_name="Wait", email="wait@example.com", phone="1", position=1))

    r = client.get("/api/sponsorships/pending", headers=auth("admin"))
    assert [sp["id"] for sp in r.json] == [sp_id]

    r = client.patch(f"/api/sponsorships/{sp_id}/approve", headers=auth("admin"))
    assert r.status_code == 200, r.json
    assert r.json["status"] == "approved"
    assert r.json["approvedBy"] is not None
    assert r.json["approvedAt"]

    with session_scope(app) as s:
        assert s.get(Cause, cause_id).current_amount == 450.0
        entry = s.query(WaitlistEntry).one()
        assert entry.status == "notified"
        assert entry.magic_link_token
        assert s.query(AuditEvent).filter(AuditEvent.action == "sponsorship.approve").count() == 1

    subjects = {m["to"]: m["subject"] for m in outbox}
    assert subjects["ops@acme.test"] == "Congratulations! Your Logo Has Been Approved"
    assert subjects["wait@example.com"] == "Totes are available for Clean Rivers!"
    waitlist_mail = next(m for m in outbox if m["to"] == "wait@example.com")
    assert "http://spa.test/claim/magic-link?token=" in waitlist_mail["html"]


def test_approve_requires_review_permission(client, auth, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause(), status="pending")
    assert client.patch(f"/api/sponsorships/{sp_id}/approve", headers=auth("sponsor")).status_code == 403


def test_reject_requires_reason_and_emails_sponsor(client, auth, outbox, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause(), status="pending")

    r = client.patch(f"/api/sponsorships/{sp_id}/reject", json={"reason": "  "}, headers=auth("admin"))
    assert r.status_code == 400
    assert r.json["message"] == "Rejection reason is required"

    r = client.patch(f"/api/sponsorships/{sp_id}/reject", json={"reason": "Logo is blurry"}, headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["status"] == "rejected"
    assert r.json["rejectionReason"] == "Logo is blurry"

    mail = outbox[-1]
    assert mail["subject"] == "Action Required: Your Logo Needs Revision"
    assert "Logo is blurry" in mail["html"]
    assert f"/sponsor/logo-reupload/{sp_id}" in mail["html"]


def test_reupload_logo_resets_to_pending(client, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause(), status="rejected", rejection_reason="bad")

    r = client.patch(f"/api/sponsorships/{sp_id}/reupload", json={})
    assert r.status_code == 400

    r = client.patch(f"/api/sponsorships/{sp_id}/reupload", json={"logoUrl": "https://cdn.test/new.png"})
    assert r.status_code == 200
    sp = r.json["sponsorship"]
    assert sp["status"] == "pending"
    assert sp["logoUrl"] == "https://cdn.test/new.png"
    assert sp["rejectionReason"] is None


def test_reupload_not_allowed_once_approved(client, make_cause, make_sponsorship):
    sp_id = make_sponsorship(make_cause(), status="approved")
    r = client.patch(f"/api/sponsorships/{sp_id}/reupload", json={"logoUrl": "https://cdn.test/new.png"})
    assert r.status_code == 400


def test_end_campaign(client, app, auth, make_cause, make_sponsorship):
    cause_id = make_cause()
    pending_id = make_sponsorship(cause_id, status="pending")
    approved_id = make_sponsorship(cause_id, status="approved", total_amount=300.0)

    r = client.patch(f"/api/sponsorships/{pending_id}/end-campaign", headers=auth("admin"))
    assert r.status_code == 400

    r = client.patch(f"/api/sponsorships/{approved_id}/end-campaign", headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["message"] == "Campaign ended successfully"
    sp = r.json["sponsorship"]
    assert sp["status"] == "completed"
    assert sp["isOnline"] is False
    assert sp["endedAt"]

    # completed campaigns still count toward the cause
    with session_scope(app) as s:
        assert s.get(Cause, cause_id).current_amount == 300.0
