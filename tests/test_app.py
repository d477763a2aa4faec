import asyncio
import time
from datetime import datetime

import httpx

import main


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "OK"
    datetime.fromisoformat(body["timestamp"])


def test_unknown_route(client):
    res = client.get("/api/wishlist")
    assert res.status_code == 404
    assert res.json() == {"message": "Route not found"}


def test_query_validation_is_a_400(client):
    res = client.get("/api/products", params={"page": 0, "limit": 1000})
    assert res.status_code == 400
    assert {e["field"] for e in res.json()["errors"]} == {"page", "limit"}


def test_non_object_json_body(client, auth_headers):
    res = client.post("/api/banners", headers=auth_headers, json=["title"])
    assert res.status_code == 400


def test_slow_upload_does_not_block_other_requests(mongo, storage, auth_headers, monkeypatch):
    def slow_upload(file, folder):
        time.sleep(1.0)
        return storage.upload(file, folder)

    monkeypatch.setattr(main.media, "upload_image", slow_upload)

    async def upload_and_ping():
        transport = httpx.ASGITransport(app=main.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            upload = asyncio.create_task(ac.post(
                "/api/banners", headers=auth_headers, data={"title": "Monsoon Sale"},
                files={"image": ("b.jpg", b"b", "image/jpeg")},
            ))
            await asyncio.sleep(0.2)
            started = time.perf_counter()
            health = await ac.get("/api/health")
            elapsed = time.perf_counter() - started
            return await upload, health, elapsed

    created, health, elapsed = asyncio.run(upload_and_ping())
    assert health.status_code == 200
    assert elapsed < 0.5
    assert created.status_code == 201
    assert created.json()["image"]["public_id"] == "banners/img1"
