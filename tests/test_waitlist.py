from datetime import timedelta

from app.changebag.db import session_scope
from app.changebag.modules.waitlist.models import WaitlistEntry
from app.changebag.utils import utcnow


def _join(client, cause_id, email, **extra):
    data = {"causeId": cause_id, "fullName": "Wait Er", "email": email, "phone": "9000000000"}
    data.update(extra)
    return client.post("/api/waitlist/join", json=data)


def _notified(app, cause_id, *, token="tok-123", expires_in=timedelta(hours=48)):
    with session_scope(app) as s:
        e = WaitlistEntry(
            cause_id=cause_id,
            full_name="Wait Er",
            email="wait@example.com",
            phone="1",
            position=1,
            status="notified",
            magic_link_token=token,
            magic_link_sent_at=utcnow(),
            magic_link_expires=utcnow() + expires_in,
        )
        s.add(e)
        s.flush()
        return e.id


def test_join_assigns_positions(client, make_cause):
    cause_id = make_cause()
    r = _join(client, cause_id, "One@Example.com", message="please")
    assert r.status_code == 201
    assert r.json["position"] == 1
    assert r.json["waitlistEntry"]["email"] == "one@example.com"
    assert r.json["waitlistEntry"]["status"] == "waiting"

    assert _join(client, cause_id, "two@example.com").json["position"] == 2

    r = _join(client, cause_id, "one@example.com")
    assert r.status_code == 400
    assert r.json["message"] == "You are already on the waitlist for this cause"


def test_join_validation(client, make_cause):
    assert client.post("/api/waitlist/join", json={"causeId": make_cause()}).status_code == 400
    assert _join(client, 4242, "x@example.com").status_code == 404


def test_leave_renumbers_queue(client, app, auth, make_cause):
    cause_id = make_cause()
    first = _join(client, cause_id, "a@example.com").json["waitlistEntry"]["id"]
    _join(client, cause_id, "b@example.com")
    _join(client, cause_id, "c@example.com")

    r = client.delete(f"/api/waitlist/{first}", json={"email": "wrong@example.com"})
    assert r.status_code == 404

    r = client.delete(f"/api/waitlist/{first}", json={"email": "A@example.com"})
    assert r.status_code == 200

    r = client.get(f"/api/waitlist/cause/{cause_id}", headers=auth("admin"))
    assert [(e["email"], e["position"]) for e in r.json] == [("b@example.com", 1), ("c@example.com", 2)]


def test_validate_magic_link(client, app, make_cause):
    cause_id = make_cause()
    _notified(app, cause_id)

    r = client.get("/api/waitlist/validate/tok-123")
    assert r.status_code == 200
    assert r.json["valid"] is True
    assert r.json["waitlistEntry"]["causeId"] == cause_id

    r = client.get("/api/waitlist/validate/nope")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid or expired magic link"


def test_expired_magic_link_is_flipped(client, app, make_cause):
    entry_id = _notified(app, make_cause(), expires_in=timedelta(minutes=-1))

    assert client.get("/api/waitlist/validate/tok-123").status_code == 400
    with session_scope(app) as s:
        assert s.get(WaitlistEntry, entry_id).status == "expired"


def test_resend_only_for_notified(client, app, auth, outbox, make_cause):
    cause_id = make_cause()
    waiting = _join(client, cause_id, "a@example.com").json["waitlistEntry"]["id"]
    r = client.post(f"/api/waitlist/{waiting}/resend", headers=auth("admin"))
    assert r.status_code == 400

    with session_scope(app) as s:
        s.get(WaitlistEntry, waiting).status = "notified"

    r = client.post(f"/api/waitlist/{waiting}/resend", headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["waitlistEntry"]["magicLinkExpires"]
    assert outbox[-1]["subject"] == "Reminder: claim your tote for Clean Rivers"


def test_mark_claimed_and_admin_lists(client, auth, make_cause):
    cause_id = make_cause()
    entry_id = _join(client, cause_id, "a@example.com").json["waitlistEntry"]["id"]

    r = client.put(f"/api/waitlist/{entry_id}/claim", headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["waitlistEntry"]["status"] == "claimed"

    assert len(client.get("/api/waitlist/all", headers=auth("admin")).json) == 1
    assert client.get("/api/waitlist/all", headers=auth("claimer")).status_code == 403


def test_entries_for_email(client, make_cause):
    cause_id = make_cause()
    _join(client, cause_id, "a@example.com")
    _join(client, make_cause(title="Other"), "b@example.com")

    r = client.get("/api/waitlist/user/A@example.com")
    assert r.status_code == 200
    [entry] = r.json
    assert entry["cause"]["id"] == cause_id
    assert entry["cause"]["title"] == "Clean Rivers"


def test_resend_right_after_approval_delivers_new_link(client, app, auth, outbox, make_cause, make_sponsorship):
    app.config["MAIL_DUPLICATE_WINDOW_SECONDS"] = 5
    cause_id = make_cause()
    sp_id = make_sponsorship(cause_id, status="pending")
    entry_id = _join(client, cause_id, "wait@example.com").json["waitlistEntry"]["id"]

    assert client.patch(f"/api/sponsorships/{sp_id}/approve", headers=auth("admin")).status_code == 200
    with session_scope(app) as s:
        first_token = s.get(WaitlistEntry, entry_id).magic_link_token

    r = client.post(f"/api/waitlist/{entry_id}/resend", headers=auth("admin"))
    assert r.status_code == 200
    with session_scope(app) as s:
        new_token = s.get(WaitlistEntry, entry_id).magic_link_token

    to_entry = [m for m in outbox if m["to"] == "wait@example.com"]
    assert [m["subject"] for m in to_entry] == [
        "Totes are available for Clean Rivers!",
        "Reminder: claim your tote for Clean Rivers",
    ]
    assert new_token != first_token
    assert new_token in to_entry[-1]["html"]
    assert client.get(f"/api/waitlist/validate/{new_token}").status_code == 200
    assert client.get(f"/api/waitlist/validate/{first_token}").status_code == 400


def test_skipped_reminder_keeps_current_link(client, app, auth, make_cause, monkeypatch):
    cause_id = make_cause()
    entry_id = _notified(app, cause_id)
    monkeypatch.setattr(
        "app.changebag.modules.waitlist.service.send_waitlist_reminder_email",
        lambda entry, cause, link: False,
    )

    r = client.post(f"/api/waitlist/{entry_id}/resend", headers=auth("admin"))
    assert r.status_code == 400
    with session_scope(app) as s:
        assert s.get(WaitlistEntry, entry_id).magic_link_token == "tok-123"
    assert client.get("/api/waitlist/validate/tok-123").status_code == 200
