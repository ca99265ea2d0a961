import pytest


@pytest.fixture()
def geo(client, auth):
    """India / Pune / Grocery Stores, created through the admin API."""
    h = auth("admin")
    country = client.post("/api/distribution/countries", json={"name": "India", "code": "in"}, headers=h).json
    city = client.post(
        "/api/distribution/cities", json={"name": "Pune", "state": "MH", "countryId": country["id"]}, headers=h
    ).json
    category = client.post(
        "/api/distribution/categories",
        json={"name": "Grocery Stores", "icon": "cart", "color": "#0a0", "defaultToteCount": 25},
        headers=h,
    ).json
    return {"country": country, "city": city, "category": category}


def test_create_reference_data(geo):
    assert geo["country"]["code"] == "IN"
    assert geo["city"]["country"] == "India"
    assert geo["category"]["defaultToteCount"] == 25


def test_duplicate_country_and_category_conflict(client, auth, geo):
    h = auth("admin")
    r = client.post("/api/distribution/countries", json={"name": "India", "code": "XX"}, headers=h)
    assert r.status_code == 409

    r = client.post("/api/distribution/categories", json={"name": "Grocery Stores", "defaultToteCount": 1}, headers=h)
    assert r.status_code == 409

    # the session is still usable after the conflict
    r = client.post("/api/distribution/countries", json={"name": "Nepal", "code": "np"}, headers=h)
    assert r.status_code == 201


def test_validation_errors(client, auth, geo):
    h = auth("admin")
    assert client.post("/api/distribution/countries", json={"name": "X"}, headers=h).status_code == 400
    assert client.post("/api/distribution/cities", json={"name": "Nowhere", "countryId": 999}, headers=h).status_code == 400

    r = client.post("/api/distribution/categories", json={"name": "Cafes", "defaultToteCount": -1}, headers=h)
    assert r.status_code == 400
    assert r.json["message"] == "defaultToteCount must be a non-negative integer."

    r = client.post("/api/distribution/points", json={"name": "P", "cityId": geo["city"]["id"]}, headers=h)
    assert r.status_code == 400


def test_point_inherits_category_tote_count(client, auth, geo):
    h = auth("admin")
    r = client.post(
        "/api/distribution/points",
        json={"name": "FreshMart", "address": "FC Road", "cityId": geo["city"]["id"], "categoryId": geo["category"]["id"]},
        headers=h,
    )
    assert r.status_code == 201
    assert r.json["defaultToteCount"] == 25
    assert r.json["city"] == "Pune"
    assert r.json["category"] == "Grocery Stores"

    r = client.post(
        "/api/distribution/points",
        json={"name": "Big Bazaar", "cityId": geo["city"]["id"], "categoryId": geo["category"]["id"], "defaultToteCount": 5},
        headers=h,
    )
    assert r.json["defaultToteCount"] == 5


def test_public_points_only_lists_active(client, auth, geo):
    h = auth("admin")
    ids = {}
    for name in ("Alpha Mart", "Beta Mart"):
        r = client.post(
            "/api/distribution/points",
            json={"name": name, "cityId": geo["city"]["id"], "categoryId": geo["category"]["id"]},
            headers=h,
        )
        ids[name] = r.json["id"]

    r = client.patch(f"/api/distribution/points/{ids['Beta Mart']}/status", json={"isActive": False}, headers=h)
    assert r.status_code == 200
    assert r.json["isActive"] is False

    url = f"/api/distribution/points/{geo['city']['id']}/{geo['category']['id']}"
    assert [p["name"] for p in client.get(url).json] == ["Alpha Mart"]

    settings = client.get("/api/distribution/settings").json
    assert [c["name"] for c in settings["countries"]] == ["India"]
    assert {p["name"] for p in settings["points"]} == {"Alpha Mart", "Beta Mart"}


def test_update_and_delete_point(client, auth, geo):
    h = auth("admin")
    point = client.post(
        "/api/distribution/points",
        json={"name": "FreshMart", "cityId": geo["city"]["id"], "categoryId": geo["category"]["id"]},
        headers=h,
    ).json

    r = client.put(f"/api/distribution/points/{point['id']}", json={"name": "FreshMart Baner", "defaultToteCount": 40}, headers=h)
    assert r.status_code == 200
    assert r.json["name"] == "FreshMart Baner"
    assert r.json["defaultToteCount"] == 40

    r = client.put(f"/api/distribution/categories/{geo['category']['id']}", json={"defaultToteCount": 30}, headers=h)
    assert r.json["defaultToteCount"] == 30

    assert client.delete(f"/api/distribution/points/{point['id']}", headers=h).status_code == 200
    assert client.delete(f"/api/distribution/points/{point['id']}", headers=h).status_code == 404


def test_distribution_writes_need_permission(client, auth):
    assert client.post("/api/distribution/countries", json={"name": "India", "code": "IN"}, headers=auth("sponsor")).status_code == 403
    assert client.get("/api/distribution/settings").status_code == 200
