from conftest import auth_headers


def _submit(client, **overrides):
    payload = {
        "name": "Meera",
        "email": "Meera@Example.com",
        "phone": " 9000011111 ",
        "subject": "Accommodation",
        "message": "Is hostel accommodation available?",
    }
    payload.update(overrides)
    return client.post("/api/contact", json=payload)


def test_public_submission_is_pending(client):
    response = _submit(client)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["email"] == "meera@example.com"
    assert body["phone"] == "9000011111"
    assert body["resolved_at"] is None


def test_submission_requires_valid_email(client):
    assert _submit(client, email="not-an-email").status_code == 422


def test_listing_is_admin_only_and_filterable(client, delegate, affairs_admin):
    _submit(client)
    _submit(client, name="Arjun", email="arjun@example.com", subject="Sponsorship")
    assert client.get("/api/contact", headers=auth_headers(delegate)).status_code == 403

    headers = auth_headers(affairs_admin)
    rows = client.get("/api/contact", params={"search": "sponsor"}, headers=headers).json()
    assert [row["name"] for row in rows] == ["Arjun"]
    assert client.get("/api/contact", params={"status": "resolved"}, headers=headers).json() == []


def test_resolving_sets_and_reopening_clears_resolved_at(client, affairs_admin):
    contact_id = _submit(client).json()["id"]
    headers = auth_headers(affairs_admin)

    resolved = client.put(f"/api/contact/{contact_id}", json={"status": "resolved", "notes": "Replied"}, headers=headers)
    assert resolved.status_code == 200
    assert resolved.json()["resolved_at"] is not None
    assert resolved.json()["notes"] == "Replied"

    reopened = client.put(f"/api/contact/{contact_id}", json={"status": "archived"}, headers=headers)
    assert reopened.json()["resolved_at"] is None


def test_delete_and_missing_contact(client, affairs_admin):
    contact_id = _submit(client).json()["id"]
    headers = auth_headers(affairs_admin)
    assert client.delete(f"/api/contact/{contact_id}", headers=headers).json() == {
        "message": "Contact form deleted successfully"
    }
    missing = client.get(f"/api/contact/{contact_id}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Contact form not found"
