BASE = "/api/v2/auth"


def test_login_creates_then_refreshes_user_document(client, store):
    response = client.post(f"{BASE}/login", json={"idToken": "user-token"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login exitoso"
    assert body["data"]["token"] == "user-token"
    user = body["data"]["user"]
    assert user["firebaseUid"] == "user-1"
    assert user["role"] == "user"
    assert user["customClaims"] == {}

    client.post(f"{BASE}/login", json={"idToken": "user-token"})
    assert len(store.collections["users"]) == 1


def test_login_requires_id_token(client):
    response = client.post(f"{BASE}/login", json={})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "El campo idToken es requerido"


def test_login_with_expired_token(client):
    response = client.post(f"{BASE}/login", json={"idToken": "expired-token"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "TOKEN_EXPIRED"


def test_login_is_limited_to_five_per_minute(client):
    for _ in range(5):
        assert client.post(f"{BASE}/login", json={"idToken": "forged"}).status_code == 401

    response = client.post(f"{BASE}/login", json={"idToken": "user-token"})
    assert response.status_code == 429
    assert "Retry-After" in response.headers


def test_register_with_email_and_password(client, identity):
    response = client.post(
        f"{BASE}/register",
        json={"email": "nuevo@example.com", "password": "secreto123", "name": "Nuevo"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Usuario registrado exitosamente"
    assert body["data"]["user"]["email"] == "nuevo@example.com"
    assert body["data"]["user"]["name"] == "Nuevo"
    assert body["data"]["user"]["role"] == "user"
    assert len(identity.created) == 1


def test_register_with_token_twice_updates(client):
    first = client.post(f"{BASE}/register", json={"idToken": "user-token"})
    second = client.post(f"{BASE}/register", json={"idToken": "user-token", "name": "Ana M."})

    assert first.json()["message"] == "Usuario registrado exitosamente"
    assert second.json()["message"] == "Usuario actualizado exitosamente"
    assert second.json()["data"]["user"]["name"] == "Ana M."


def test_register_requires_password_without_token(client):
    response = client.post(f"{BASE}/register", json={"email": "nuevo@example.com"})
    assert response.status_code == 400


def test_register_rejects_bad_email(client):
    response = client.post(f"{BASE}/register", json={"email": "nuevo", "password": "x" * 8})
    assert response.status_code == 400

    response = client.post(
        f"{BASE}/register", json={"email": "nuevo@example.com\n", "password": "x" * 8}
    )
    assert response.status_code == 400


def test_verify_and_refresh(client):
    verified = client.post(f"{BASE}/verify", json={"idToken": "admin-token"})
    assert verified.json()["message"] == "Token válido"
    assert verified.json()["data"]["user"]["customClaims"] == {"role": "admin"}

    refreshed = client.post(f"{BASE}/refresh", json={"idToken": "admin-token"})
    assert refreshed.json()["data"]["token"] == "admin-token"
    assert refreshed.json()["data"]["user"]["uid"] == "admin-1"


def test_me_returns_profile(client):
    response = client.get(f"{BASE}/me", headers={"Authorization": "Bearer admin-token"})

    assert response.status_code == 200
    profile = response.json()["data"]["user"]
    assert profile["uid"] == "admin-1"
    assert profile["role"] == "admin"


def test_me_without_token(client):
    response = client.get(f"{BASE}/me")
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Token de autenticación requerido"
