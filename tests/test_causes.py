from io import BytesIO

from app.changebag.db import session_scope
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.claims.models import Claim


def _cause_payload(**extra):
    body = {
        "title": "School Kits",
        "description": "Totes carrying school supplies",
        "category": "education",
        "targetAmount": 5000,
    }
    body.update(extra)
    return body


def test_sponsor_creates_pending_cause(client, auth):
    r = client.post("/api/causes", json=_cause_payload(), headers=auth("sponsor"))
    assert r.status_code == 201
    cause = r.json["cause"]
    assert cause["status"] == "pending"
    assert cause["currentAmount"] == 0
    assert cause["creator"]["email"] == "sponsor@example.com"

    mine = client.get("/api/causes/user", headers=auth("sponsor"))
    assert [c["id"] for c in mine.json] == [cause["id"]]


def test_admin_created_cause_is_auto_approved(client, auth):
    r = client.post("/api/causes", json=_cause_payload(), headers=auth("admin"))
    assert r.status_code == 201
    assert r.json["cause"]["status"] == "approved"


def test_create_cause_requires_fields_and_permission(client, auth):
    r = client.post("/api/causes", json={"title": "Only title"}, headers=auth("sponsor"))
    assert r.status_code == 400
    assert r.json["errors"]

    r = client.post("/api/causes", json=_cause_payload(), headers=auth("claimer"))
    assert r.status_code == 403


def test_list_filters_and_detail_availability(client, make_cause, make_sponsorship):
    approved = make_cause(title="River Totes")
    make_cause(title="Hidden", status="pending")
    make_sponsorship(approved, tote_quantity=4)
    make_sponsorship(approved, tote_quantity=10, status="pending")

    r = client.get("/api/causes?status=approved")
    assert [c["title"] for c in r.json] == ["River Totes"]
    assert r.json[0]["hasApprovedSponsorship"] is True

    r = client.get("/api/causes?search=river")
    assert len(r.json) == 1

    detail = client.get(f"/api/causes/{approved}").json
    assert detail["totalTotes"] == 4
    assert detail["claimedTotes"] == 0
    assert detail["availableTotes"] == 4

    assert client.get("/api/causes/9999").status_code == 404


def test_only_owner_or_moderator_can_edit(client, auth):
    cid = client.post("/api/causes", json=_cause_payload(), headers=auth("sponsor")).json["cause"]["id"]

    r = client.put(f"/api/causes/{cid}", json={"title": "Renamed"}, headers=auth("claimer"))
    assert r.status_code == 403

    r = client.put(f"/api/causes/{cid}", json={"title": "Renamed"}, headers=auth("sponsor"))
    assert r.status_code == 200
    assert r.json["title"] == "Renamed"

    # creators cannot moderate their own cause
    r = client.put(f"/api/causes/{cid}", json={"status": "approved"}, headers=auth("sponsor"))
    assert r.status_code == 403

    r = client.patch(f"/api/causes/{cid}/status", json={"status": "approved"}, headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["status"] == "approved"

    r = client.patch(f"/api/causes/{cid}/status", json={"status": "bogus"}, headers=auth("admin"))
    assert r.status_code == 400


def test_toggle_online_and_delete(client, auth, make_cause):
    cid = make_cause()
    r = client.patch(f"/api/causes/{cid}/toggle-online", headers=auth("admin"))
    assert r.status_code == 200
    assert r.json["cause"]["isOnline"] is False

    r = client.delete(f"/api/causes/{cid}", headers=auth("admin"))
    assert r.status_code == 200
    assert client.get(f"/api/causes/{cid}").status_code == 404


def test_content_update_rejects_unknown_keys(client, auth, make_cause):
    cid = make_cause()
    r = client.put(
        f"/api/causes/{cid}/content",
        json={"heroTitle": "Carry change", "faqs": [{"q": "Free?", "a": "Yes"}]},
        headers=auth("admin"),
    )
    assert r.status_code == 200
    assert r.json["content"]["heroTitle"] == "Carry change"

    r = client.put(f"/api/causes/{cid}/content", json={"notAField": 1}, headers=auth("admin"))
    assert r.status_code == 400


def test_image_upload_is_served(client, auth, make_cause):
    cid = make_cause()
    r = client.post(
        f"/api/causes/{cid}/upload-image",
        data={"image": (BytesIO(b"\x89PNG fake"), "tote.png", "image/png")},
        content_type="multipart/form-data",
        headers=auth("admin"),
    )
    assert r.status_code == 200
    url = r.json["cause"]["adminImageUrl"]
    assert url.startswith(f"/uploads/causes/{cid}/")
    assert url in r.json["cause"]["images"]

    served = client.get(url)
    assert served.status_code == 200
    assert served.data == b"\x89PNG fake"


def test_image_upload_rejects_non_images(client, auth, make_cause):
    cid = make_cause()
    r = client.post(
        f"/api/causes/{cid}/tote-preview",
        data={"totePreviewImage": (BytesIO(b"%PDF"), "doc.pdf", "application/pdf")},
        content_type="multipart/form-data",
        headers=auth("admin"),
    )
    assert r.status_code == 400


def test_sponsor_causes_with_claims(client, auth, app, make_sponsorship, user_id):

    with session_scope(app) as s:
        cause = Cause(title="Mine", description="d", category="health", target_amount=100, status="approved", creator_id=user_id("sponsor"))
        s.add(cause)
        s.flush()
        cid = cause.id
        for i, status in enumerate(("pending", "shipped", "delivered")):
            s.add(
                Claim(
                    cause_id=cid,
                    cause_title="Mine",
                    full_name=f"C{i}",
                    email=f"c{i}@example.com",
                    phone="1",
                    address="a",
                    city="Pune",
                    state="MH",
                    zip_code="411001",
                    status=status,
                )
            )
    make_sponsorship(cid, tote_quantity=5)

    r = client.get("/api/causes/sponsor-causes-with-claims", headers=auth("sponsor"))
    assert r.status_code == 200
    (item,) = r.json
    assert item["totalTotes"] == 5
    assert item["claimedTotes"] == 3
    assert item["shippedClaims"] == 2
    assert {d["status"] for d in item["claimDetails"]} == {"shipped", "delivered"}
