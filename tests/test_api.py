import pytest
from fastapi.testclient import TestClient

from api.main import app, get_backend
from media.urls import FALLBACK_IMAGES

@pytest.fixture
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    yield TestClient(app)
    app.dependency_overrides.clear()

def test_ping(client):
    r = client.get("/ping")
    assert r.status_code == 200 and r.json()["ok"] is True

def test_media_resolve(client):
    r = client.get("/media/resolve", params={"url": "https://drive.google.com/file/d/ABC123/view?usp=sharing"})
    assert r.json()["url"] == "https://drive.google.com/uc?export=download&id=ABC123"
    r = client.get("/media/resolve", params={"url": "", "kind": "video"})
    assert r.json()["url"] == FALLBACK_IMAGES["video"]
    assert client.get("/media/resolve", params={"kind": "banner"}).status_code == 400

def test_media_thumbnail(client):
    url = "https://res.cloudinary.com/demo/video/upload/v1/reels/a.mp4"
    r = client.get("/media/thumbnail", params={"url": url, "time": 1})
    assert r.json()["url"].endswith("/w_400,h_600,c_fill,g_auto,q_auto:good,f_auto,so_1/reels/a.jpg")
    assert client.get("/media/thumbnail", params={"url": "https://cdn.example.com/a.mp4"}).status_code == 400

def test_product_media(client, backend):
    backend.products["p1"] = {"product_id": "p1", "name": "Kurta", "image_urls": ["https://cdn.example.com/p.jpg"]}
    backend.variants.append({"variant_id": "v1", "product_id": "p1", "size": "M",
                             "video_urls": ["https://cdn.example.com/v.mp4"]})
    body = client.get("/products/p1/media").json()
    assert body["feed"]["type"] == "video"
    assert body["feed"]["thumbnail"] == "https://cdn.example.com/p.jpg"
    assert [m["url"] for m in body["media"]] == ["https://cdn.example.com/v.mp4", "https://cdn.example.com/p.jpg"]
    assert client.get("/products/missing/media").status_code == 404

def test_collection_routes(client, backend):
    r = client.post("/collections", json={"user_id": "u1", "name": "Party"})
    assert r.status_code == 201
    col_id = r.json()["id"]

    r = client.post(f"/collections/{col_id}/products", json={"user_id": "u1", "product_id": "p1"})
    assert r.status_code == 201 and len(r.json()["collections"]) == 2

    listed = client.get("/collections/user/u1").json()
    assert listed["items"][0]["name"] == "All"
    assert {c["name"]: c["product_count"] for c in listed["items"]} == {"All": 1, "Party": 1}

    assert client.get(f"/collections/{col_id}/products", params={"user_id": "u1"}).json()["product_ids"] == ["p1"]
    assert client.get(f"/collections/{col_id}/products", params={"user_id": "u2"}).status_code == 404

    assert client.delete(f"/collections/{col_id}/products/p1", params={"user_id": "u1"}).status_code == 200
    assert (col_id, "p1") not in backend.collection_products

    all_id = listed["items"][0]["id"]
    assert client.delete(f"/collections/{all_id}/user/u1").status_code == 400
    assert client.delete(f"/collections/{col_id}/user/u2").status_code == 404
    assert client.delete(f"/collections/{col_id}/user/u1").status_code == 200
    assert col_id not in backend.collections

def test_create_collection_needs_name(client):
    assert client.post("/collections", json={"user_id": "u1", "name": "  "}).status_code == 400

def test_tryon_status(client, backend):
    backend.tasks["try_1"] = {"task_id": "try_1", "status": "completed", "result_images": ["https://x/a.png"]}
    body = client.get("/tryon/try_1").json()
    assert body["status"] == "completed" and body["result_images"] == ["https://x/a.png"]
    assert client.get("/tryon/nope").status_code == 404
