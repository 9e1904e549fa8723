from conftest import API, bearer

USERS = f"{API}/users"


def test_get_own_profile(client, register_user):
    body = register_user()

    response = client.get(f"{USERS}/{body['id']}", headers=bearer(body["access_token"]))

    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"id", "name", "email", "role", "created_at"}
    assert data["email"] == "user@example.com"
    assert data["role"] == "user"


def test_get_profile_with_fields(client, register_user):
    body = register_user()

    response = client.get(
        f"{USERS}/{body['id']}?fields=name,email,hashed_password",
        headers=bearer(body["access_token"]),
    )

    assert response.json() == {"name": "Test User", "email": "user@example.com"}


def test_other_profile_forbidden(client, register_user):
    other = register_user(name="Other", email="other@example.com")
    headers = bearer(register_user()["access_token"])

    response = client.get(f"{USERS}/{other['id']}", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Insufficient permissions"


def test_manager_reads_any_profile(client, register_user, manager_headers):
    other = register_user(name="Other", email="other@example.com")

    response = client.get(f"{USERS}/{other['id']}", headers=manager_headers)

    assert response.status_code == 200
    assert response.json()["name"] == "Other"


def test_unknown_profile(client, manager_headers):
    response = client.get(f"{USERS}/999", headers=manager_headers)

    assert response.status_code == 404
