SETTINGS = {
    "whatsapp_number": "+919876543210",
    "shop_address": "Plot 7, Furniture Market, Jaipur",
    "shop_email": "Hello@Example.com",
    "social_media": {"instagram": "@woodhouse"},
    "business_hours": {"monday": "10:00-20:00", "sunday": "Closed"},
}


def test_public_settings_empty_before_setup(client):
    res = client.get("/api/settings/public")
    assert res.status_code == 200
    assert res.json() == {}


def test_settings_update_requires_admin(client):
    assert client.put("/api/settings", json=SETTINGS).status_code == 401
    assert client.get("/api/settings").status_code == 401


def test_settings_is_a_singleton(client, auth_headers, mongo):
    res = client.put("/api/settings", headers=auth_headers, json=SETTINGS)
    assert res.status_code == 200
    assert res.json()["id"] == "site"
    assert res.json()["shop_email"] == "hello@example.com"

    res = client.put("/api/settings", headers=auth_headers, json={"shop_phone": "0141-222333"})
    body = res.json()
    assert body["shop_phone"] == "0141-222333"
    assert body["whatsapp_number"] == SETTINGS["whatsapp_number"]
    assert mongo["settings"].count_documents({}) == 1


def test_public_settings_hide_metadata(client, auth_headers):
    client.put("/api/settings", headers=auth_headers, json=SETTINGS)

    public = client.get("/api/settings/public").json()
    assert public["shop_address"] == SETTINGS["shop_address"]
    assert public["business_hours"]["sunday"] == "Closed"
    assert "updated_at" not in public
    assert "id" not in public

    full = client.get("/api/settings", headers=auth_headers).json()
    assert "updated_at" in full and "created_at" in full


def test_settings_email_is_validated(client, auth_headers, mongo):
    res = client.put("/api/settings", headers=auth_headers, json={"shop_email": "nope"})
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "shop_email"
    assert mongo["settings"].count_documents({}) == 0
