"""Route-level integration tests."""

from __future__ import annotations

import io

from remembrance.extensions import db
from remembrance.models import Memorial, MemorialRequest
from remembrance.services import notifications, storage


def _request_payload(**overrides):
    payload = {
        "requester_name": "Jane Doe",
        "requester_email": "jane@example.com",
        "loved_one_name": "John Doe",
        "birth_date": "1945-03-02",
        "story_notes": "He loved the sea.",
        "tier_selected": "tier_2_remembered",
        "preservation_addon": True,
        "preservation_billing_cycle": "yearly",
        "discount_requested": True,
        "discount_type": "military",
        "latitude": 40.7128,
        "longitude": -74.006,
        "location_info": "Green Hill Cemetery, Plot 7",
    }
    payload.update(overrides)
    return payload


def _silence_notifications(monkeypatch) -> list:
    calls: list = []
    monkeypatch.setattr(
        notifications, "notify_request_created", lambda req, **_: calls.append(req.id)
    )
    return calls


def test_create_request_returns_price(client, app, monkeypatch) -> None:
    calls = _silence_notifications(monkeypatch)

    response = client.post("/api/memorial-requests", json=_request_payload())

    assert response.status_code == 201
    body = response.get_json()
    assert body["payment_amount"] == 11645
    assert body["request_status"] == "submitted"
    assert calls == [body["id"]]

    with app.app_context():
        stored = db.session.get(MemorialRequest, body["id"])
        assert stored is not None
        assert stored.discount_type == "military"


def test_create_request_ignores_client_price(client, monkeypatch) -> None:
    _silence_notifications(monkeypatch)

    response = client.post(
        "/api/memorial-requests",
        json=_request_payload(payment_amount=1, discount_requested=False),
    )

    assert response.status_code == 201
    assert response.get_json()["payment_amount"] == 13700


def test_create_request_validation_error(client, app, monkeypatch) -> None:
    calls = _silence_notifications(monkeypatch)

    response = client.post(
        "/api/memorial-requests",
        json=_request_payload(tier_selected="gold", requester_name=""),
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "validation_error"
    assert {"tier_selected", "requester_name"} <= set(body["fields"])
    assert calls == []
    with app.app_context():
        assert MemorialRequest.query.count() == 0


def test_create_request_rejects_non_string_text(client, app, monkeypatch) -> None:
    calls = _silence_notifications(monkeypatch)

    response = client.post(
        "/api/memorial-requests",
        json=_request_payload(requester_name=5, story_notes=7),
    )

    assert response.status_code == 400
    assert {"requester_name", "story_notes"} <= set(response.get_json()["fields"])
    assert calls == []
    with app.app_context():
        assert MemorialRequest.query.count() == 0


def test_create_request_rejects_non_object_body(client) -> None:
    response = client.post("/api/memorial-requests", json=["not", "an", "object"])
    assert response.status_code == 400


def test_create_request_survives_notification_failure(client, app, monkeypatch) -> None:
    def _fail(*args):
        raise RuntimeError("mail server down")

    monkeypatch.setattr(notifications, "send_email", _fail)
    app.config["NOTIFICATION_RECIPIENT"] = "ops@example.com"

    response = client.post("/api/memorial-requests", json=_request_payload())

    assert response.status_code == 201


def test_admin_routes_require_credentials(client) -> None:
    response = client.get("/api/admin/memorial-requests")

    assert response.status_code == 401
    assert response.get_json()["code"] == "unauthorized"
    assert response.headers["WWW-Authenticate"].lower().startswith("basic")

    bad = client.get(
        "/api/admin/memorial-requests",
        headers={"Authorization": "Basic YWRtaW46d3Jvbmc="},  # admin:wrong
    )
    assert bad.status_code == 401


def test_admin_bearer_token(client, app, make_request) -> None:
    app.config["ADMIN_API_TOKEN"] = "s3cret-token"
    with app.app_context():
        make_request()

    response = client.get(
        "/api/admin/memorial-requests",
        headers={"Authorization": "Bearer s3cret-token"},
    )

    assert response.status_code == 200
    assert len(response.get_json()) == 1


def test_admin_list_and_stats(client, app, make_request, admin_headers) -> None:
    with app.app_context():
        make_request()
        make_request(discount_requested=True)
        make_request(status="approved")

    listing = client.get(
        "/api/admin/memorial-requests?status=submitted", headers=admin_headers
    )
    assert listing.status_code == 200
    assert len(listing.get_json()) == 2

    discounted = client.get(
        "/api/admin/memorial-requests?discount_requested=true", headers=admin_headers
    )
    assert [item["discount_requested"] for item in discounted.get_json()] == [True]

    bad_filter = client.get(
        "/api/admin/memorial-requests?discount_requested=maybe", headers=admin_headers
    )
    assert bad_filter.status_code == 400

    stats = client.get("/api/admin/memorial-requests/stats", headers=admin_headers)
    assert stats.get_json()["total"] == 3
    assert stats.get_json()["approved"] == 1


def test_admin_status_update_rules(client, app, make_request, admin_headers) -> None:
    with app.app_context():
        request_id = make_request().id

    illegal = client.put(
        f"/api/admin/memorial-requests/{request_id}",
        json={"request_status": "approved"},
        headers=admin_headers,
    )
    assert illegal.status_code == 409
    assert illegal.get_json()["code"] == "invalid_transition"
    assert illegal.get_json()["from_status"] == "submitted"

    moved = client.put(
        f"/api/admin/memorial-requests/{request_id}",
        json={"request_status": "under_review", "admin_notes": "Looks good", "version": 1},
        headers=admin_headers,
    )
    assert moved.status_code == 200
    assert moved.get_json()["request_status"] == "under_review"
    assert moved.get_json()["version"] == 2

    stale = client.put(
        f"/api/admin/memorial-requests/{request_id}",
        json={"request_status": "approved", "version": 1},
        headers=admin_headers,
    )
    assert stale.status_code == 409
    assert stale.get_json()["code"] == "conflict"

    missing = client.get("/api/admin/memorial-requests/nope", headers=admin_headers)
    assert missing.status_code == 404


def test_status_update_cannot_publish(client, app, make_request, admin_headers) -> None:
    with app.app_context():
        request_id = make_request(status="approved").id

    response = client.put(
        f"/api/admin/memorial-requests/{request_id}",
        json={"request_status": "published"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    with app.app_context():
        assert db.session.get(MemorialRequest, request_id).request_status == "approved"


def test_payment_callback_moves_request(client, app, make_request) -> None:
    with app.app_context():
        request_id = make_request().id

    response = client.post(
        f"/api/memorial-requests/{request_id}/payment",
        json={"payment_status": "completed", "payment_reference": "pi_42"},
    )

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "request_status": "under_review"}

    invalid = client.post(
        f"/api/memorial-requests/{request_id}/payment",
        json={"payment_status": "refunded"},
    )
    assert invalid.status_code == 400


def test_end_to_end_publication(client, app, monkeypatch, admin_headers) -> None:
    _silence_notifications(monkeypatch)

    created = client.post("/api/memorial-requests", json=_request_payload())
    request_id = created.get_json()["id"]

    client.post(
        f"/api/memorial-requests/{request_id}/payment",
        json={"payment_status": "completed"},
    )
    approved = client.put(
        f"/api/admin/memorial-requests/{request_id}",
        json={"request_status": "approved"},
        headers=admin_headers,
    )
    assert approved.status_code == 200

    published = client.post(
        "/api/admin/memorials",
        json={
            "request_id": request_id,
            "full_name": "John Doe",
            "birth_date": "1945-03-02",
            "story_text": "He loved the sea.",
            "latitude": 40.7128,
            "longitude": -74.006,
            "photos": ["https://cdn.example/a.jpg"],
        },
        headers=admin_headers,
    )
    assert published.status_code == 201
    memorial = published.get_json()
    assert memorial["public_url"] == "john-doe-1945"
    assert memorial["photos"] == ["https://cdn.example/a.jpg"]
    assert memorial["qr_code_url"].endswith(
        "data=https%3A%2F%2Fmemorials.test%2Fgo%3Fm%3Djohn-doe-1945"
    )

    detail = client.get(f"/api/admin/memorial-requests/{request_id}", headers=admin_headers)
    assert detail.get_json()["request_status"] == "published"

    again = client.post(
        "/api/admin/memorials",
        json={"request_id": request_id, "full_name": "John Doe", "story_text": "Again"},
        headers=admin_headers,
    )
    assert again.status_code == 409

    by_slug = client.get("/api/memorials/resolve/john-doe-1945")
    assert by_slug.status_code == 200
    assert by_slug.get_json()["id"] == memorial["id"]
    assert client.get("/api/memorials/by-url/john-doe-1945").status_code == 200
    assert client.get(f"/api/memorials/{memorial['id']}").status_code == 200

    map_items = client.get("/api/memorials/map").get_json()
    assert [item["public_url"] for item in map_items] == ["john-doe-1945"]
    assert "story_text" not in map_items[0]

    redirect = client.get("/go?m=john-doe-1945")
    assert redirect.status_code == 302
    assert redirect.headers["Location"] == "https://memorials.test/memorial/john-doe-1945"


def test_memorial_update_and_soft_delete(client, app, make_request, admin_headers) -> None:
    with app.app_context():
        request_id = make_request(status="approved").id

    created = client.post(
        "/api/admin/memorials",
        json={
            "request_id": request_id,
            "full_name": "John Doe",
            "story_text": "Story",
            "location_visibility": "hidden",
        },
        headers=admin_headers,
    ).get_json()

    assert client.get("/api/memorials/map").get_json() == []

    updated = client.put(
        f"/api/admin/memorials/{created['id']}",
        json={"location_visibility": "approximate", "video_link": "https://v.example/1"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.get_json()["video_link"] == "https://v.example/1"
    assert updated.get_json()["story_text"] == "Story"
    assert len(client.get("/api/memorials/map").get_json()) == 1

    deleted = client.delete(f"/api/admin/memorials/{created['id']}", headers=admin_headers)
    assert deleted.get_json() == {"success": True}

    assert client.get(f"/api/memorials/{created['id']}").status_code == 404
    assert client.get(f"/api/memorials/resolve/{created['public_url']}").status_code == 404
    assert client.get(f"/go?m={created['public_url']}").status_code == 404
    with app.app_context():
        assert Memorial.query.count() == 1


def test_update_memorial_rejects_null_visibility_and_status(
    client, app, make_request, admin_headers
) -> None:
    with app.app_context():
        request_id = make_request(status="approved").id

    created = client.post(
        "/api/admin/memorials",
        json={"request_id": request_id, "full_name": "John Doe", "story_text": "Story"},
        headers=admin_headers,
    ).get_json()
    url = f"/api/admin/memorials/{created['id']}"

    response = client.put(url, json={"location_visibility": None}, headers=admin_headers)
    assert response.status_code == 400
    assert "location_visibility" in response.get_json()["fields"]

    response = client.put(url, json={"published_status": None}, headers=admin_headers)
    assert response.status_code == 400
    assert "published_status" in response.get_json()["fields"]

    response = client.put(url, json={"published_status": "no"}, headers=admin_headers)
    assert response.status_code == 400

    with app.app_context():
        stored = db.session.get(Memorial, created["id"])
        assert stored.published_status is True
        assert stored.location_visibility == "exact"

    response = client.put(url, json={"published_status": False}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()["published_status"] is False


def test_universal_link_without_slug_goes_home(client) -> None:
    response = client.get("/go")
    assert response.status_code == 302
    assert response.headers["Location"] == "https://memorials.test/"


def test_upload_media_stores_file(client, monkeypatch) -> None:
    captured: dict[str, object] = {}

    def _fake_store(file_storage, **_):
        captured["filename"] = file_storage.filename
        return storage.MediaUpload(
            key="uploads/memorials/abc.mp3",
            url="https://signed.example.com/uploads/memorials/abc.mp3",
            filename="narration.mp3",
            content_type="audio/mpeg",
            size=4,
        )

    monkeypatch.setattr(storage, "store_media_upload", _fake_store)

    response = client.post(
        "/api/upload/media",
        data={"file": (io.BytesIO(b"ID3x"), "narration.mp3")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "url": "https://signed.example.com/uploads/memorials/abc.mp3",
        "key": "uploads/memorials/abc.mp3",
        "filename": "narration.mp3",
    }
    assert captured["filename"] == "narration.mp3"


def test_upload_media_requires_file(client) -> None:
    response = client.post(
        "/api/upload/media", data={}, content_type="multipart/form-data"
    )
    assert response.status_code == 400
    assert "file" in response.get_json()["fields"]


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": "ok"}
