import pytest

from conftest import auth_headers


@pytest.fixture
def deleted_objects(monkeypatch):
    removed = []
    monkeypatch.setattr("routers.gallery._delete_s3_object", removed.append)
    return removed


def _create(client, admin, **overrides):
    payload = {
        "title": "Opening ceremony",
        "type": "image",
        "image_url": "https://cdn.example.com/gallery/opening.jpg",
        "category": "Ceremony",
    }
    payload.update(overrides)
    return client.post("/api/gallery", json=payload, headers=auth_headers(admin))


def test_video_items_need_a_video_url(client, affairs_admin):
    response = _create(client, affairs_admin, type="video")
    assert response.status_code == 422

    created = _create(client, affairs_admin, type="video", video_url="https://youtu.be/abc")
    assert created.status_code == 201
    assert created.json()["video_url"] == "https://youtu.be/abc"


def test_listing_filters_by_category_and_type(client, affairs_admin):
    _create(client, affairs_admin)
    _create(client, affairs_admin, title="Day 1", category="Committees")
    _create(client, affairs_admin, title="Aftermovie", type="video", video_url="https://youtu.be/x", category="Committees")

    assert len(client.get("/api/gallery", params={"category": "all"}).json()) == 3
    committees = client.get("/api/gallery", params={"category": "Committees", "type": "image"}).json()
    assert [item["title"] for item in committees] == ["Day 1"]
    assert client.get("/api/gallery/categories").json() == ["Ceremony", "Committees"]


def test_update_switching_to_image_clears_video(client, affairs_admin, deleted_objects):
    item = _create(client, affairs_admin, type="video", video_url="https://youtu.be/abc").json()
    headers = auth_headers(affairs_admin)

    updated = client.put(
        f"/api/gallery/{item['id']}",
        json={"type": "image", "image_url": "https://cdn.example.com/gallery/new.jpg"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["video_url"] is None
    assert deleted_objects == ["https://cdn.example.com/gallery/opening.jpg"]


def test_update_to_video_without_url_is_rejected(client, affairs_admin, deleted_objects):
    item = _create(client, affairs_admin).json()
    response = client.put(f"/api/gallery/{item['id']}", json={"type": "video"}, headers=auth_headers(affairs_admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Video URL is required for video type"


def test_delete_removes_stored_image(client, affairs_admin, delegate, deleted_objects):
    item = _create(client, affairs_admin).json()
    assert client.delete(f"/api/gallery/{item['id']}", headers=auth_headers(delegate)).status_code == 403

    response = client.delete(f"/api/gallery/{item['id']}", headers=auth_headers(affairs_admin))
    assert response.json() == {"message": "Gallery item deleted successfully"}
    assert deleted_objects == [item["image_url"]]
    assert client.get("/api/gallery").json() == []


def test_image_upload_returns_url(client, affairs_admin, monkeypatch):
    monkeypatch.setattr(
        "routers.gallery._upload_to_s3",
        lambda file, prefix, allowed_types=None: f"https://bucket.example.com/{prefix}/{file.filename}",
    )
    response = client.post(
        "/api/gallery/upload",
        files={"file": ("day1.jpg", b"jpeg-bytes", "image/jpeg")},
        headers=auth_headers(affairs_admin),
    )
    assert response.json() == {"url": "https://bucket.example.com/gallery/day1.jpg"}
