from conftest import auth_headers


def _signup(client, email="delegate@example.com", password="secret123"):
    return client.post("/api/auth/register", json={
        "email": email,
        "password": password,
        "first_name": "Asha",
        "last_name": "Raman",
        "institution": "PSG College",
    })


def test_register_assigns_delegate_code_and_tokens(client):
    response = _signup(client)
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["user"]["role"] == "DELEGATE"
    assert body["user"]["user_code"] == f"KMUN25-{body['user']['id']:04d}"


def test_register_rejects_duplicate_email_case_insensitively(client):
    assert _signup(client).status_code == 201
    response = _signup(client, email="Delegate@Example.com")
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


def test_login_updates_last_login(client):
    _signup(client)
    response = client.post("/api/auth/login", json={"email": "delegate@example.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["user"]["last_login"] is not None


def test_login_with_wrong_password(client):
    _signup(client)
    response = client.post("/api/auth/login", json={"email": "delegate@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_refresh_requires_refresh_token(client):
    tokens = _signup(client).json()
    ok = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert ok.status_code == 200
    bad = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert bad.status_code == 401


def test_profile_roundtrip(client, delegate):
    headers = auth_headers(delegate)
    response = client.put("/api/auth/profile", json={"phone": " 9876543210 ", "grade": "III Year"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["phone"] == "9876543210"
    profile = client.get("/api/auth/profile", headers=headers).json()
    assert profile["grade"] == "III Year"
    assert profile["email"] == delegate.email


def test_profile_requires_token(client):
    assert client.get("/api/auth/profile").status_code in (401, 403)


def test_change_password(client, delegate):
    headers = auth_headers(delegate)
    wrong = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "newsecret1"},
        headers=headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Current password is incorrect"

    ok = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret123", "new_password": "newsecret1"},
        headers=headers,
    )
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"email": delegate.email, "password": "newsecret1"})
    assert login.status_code == 200
