from app.changebag.db import session_scope
from app.changebag.models import AuditEvent


def test_get_creates_defaults(client, auth):
    r = client.get("/api/admin/settings", headers=auth("admin"))
    assert r.status_code == 200
    settings = r.json["settings"]
    assert settings["id"] == 1
    assert settings["siteName"] == "Tote Bag Platform"
    assert settings["maxClaimsPerCampaign"] == 1000
    assert settings["updatedByUserId"] is None


def test_update_nested_and_flat(client, app, auth, user_id):
    h = auth("admin")
    current = client.get("/api/admin/settings", headers=h).json["settings"]
    current["siteName"] = "ChangeBag"
    current["shippingFee"] = 49.5

    r = client.put("/api/admin/settings", json={"settings": current}, headers=h)
    assert r.status_code == 200
    assert r.json["message"] == "Settings updated successfully"
    assert r.json["settings"]["siteName"] == "ChangeBag"
    assert r.json["settings"]["shippingFee"] == 49.5
    assert r.json["settings"]["updatedByUserId"] == user_id("admin")

    r = client.put("/api/admin/settings", json={"maintenanceMode": True}, headers=h)
    assert r.json["settings"]["maintenanceMode"] is True
    assert r.json["settings"]["siteName"] == "ChangeBag"

    with session_scope(app) as s:
        events = s.query(AuditEvent).filter(AuditEvent.action == "settings.update").count()
    assert events == 2


def test_update_rejects_bad_input(client, auth):
    h = auth("admin")
    r = client.put("/api/admin/settings", json={"colour": "red", "maxCampaignsPerUser": -1}, headers=h)
    assert r.status_code == 400
    assert r.json["message"] == "Invalid settings"
    assert "Unknown setting: colour" in r.json["errors"]
    assert "maxCampaignsPerUser must be a non-negative whole number." in r.json["errors"]

    assert client.put("/api/admin/settings", json={}, headers=h).status_code == 400
    assert client.put("/api/admin/settings", json={"autoApprovalEnabled": "yes"}, headers=h).status_code == 400


def test_settings_are_admin_only(client, auth):
    assert client.get("/api/admin/settings", headers=auth("sponsor")).status_code == 403
    assert client.get("/api/admin/settings").status_code == 401


def test_update_rejects_non_finite_numbers(client, auth):
    h = auth("admin")
    for body in ('{"shippingFee": NaN}', '{"shippingFee": Infinity}', '{"maxCampaignsPerUser": 1e400}'):
        r = client.put("/api/admin/settings", data=body, content_type="application/json", headers=h)
        assert r.status_code == 400, body
        assert r.json["message"] == "Invalid settings"
