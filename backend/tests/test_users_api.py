from datetime import timedelta

from jose import jwt

from conftest import auth_headers
from users_service.core.security import create_access_token
from users_service.models.user import Role, User


def test_public_endpoints_need_no_token(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"status": "healthy"}


def test_preflight_bypasses_auth(client):
    response = client.options(
        "/api/users",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_missing_token_is_401(client):
    response = client.get("/api/users")

    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_CREDENTIALS"
    assert response.headers["www-authenticate"] == "Bearer"


def test_expired_token_is_401(client, admin):
    token = create_access_token(admin.username, "Admin", expires_delta=timedelta(seconds=-1))

    response = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_invalid_token_does_not_echo_token(client):
    response = client.get("/api/users", headers={"Authorization": "Bearer abc.def.ghi"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
    assert "abc.def.ghi" not in response.text


def test_unknown_subject_is_401(client, db):
    response = client.get("/api/users", headers=auth_headers("ghost", "Admin"))

    assert response.status_code == 401
    assert response.json()["code"] == "UNKNOWN_SUBJECT"


def test_create_user_as_admin(client, admin_headers):
    response = client.post(
        "/api/users",
        json={"username": "alice", "password": "secret1", "role": "ADHERANT", "email": "a@x.com"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["id"]
    assert body["username"] == "alice"
    assert body["role"] == "Adherant"
    assert body["lastLogin"]
    assert "password" not in body


def test_create_user_forbidden_for_adherant(client, make_user):
    make_user("alice")

    response = client.post(
        "/api/users",
        json={"username": "bob", "password": "secret1"},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_create_duplicate_email_is_409(client, admin_headers, make_user):
    make_user("alice", email="a@x.com")

    response = client.post(
        "/api/users",
        json={"username": "bob", "password": "secret1", "email": "a@x.com"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_EMAIL"


def test_create_duplicate_username_is_409(client, admin_headers, make_user):
    make_user("alice")

    response = client.post(
        "/api/users",
        json={"username": "alice", "password": "secret1"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_USERNAME"


def test_create_validation_errors_are_400(client, admin_headers):
    response = client.post(
        "/api/users",
        json={"username": "al", "password": "123", "email": "nope", "phoneNumber": "abc", "role": "Boss"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_FAILED"
    fields = {error["field"] for error in body["errors"]}
    assert {"username", "password", "email", "phoneNumber", "role"} <= fields


def test_list_users(client, admin, make_user):
    make_user("alice")

    response = client.get("/api/users", headers=auth_headers("alice"))

    assert response.status_code == 200
    assert [u["username"] for u in response.json()] == ["admin", "alice"]
    assert all("password" not in u for u in response.json())


def test_me(client, make_user):
    alice = make_user("alice", bio="hi")

    response = client.get("/api/users/me", headers=auth_headers("alice"))

    assert response.status_code == 200
    assert response.json()["id"] == alice.id
    assert response.json()["bio"] == "hi"


def test_get_user_self_and_admin(client, admin_headers, make_user):
    alice = make_user("alice")

    assert client.get(f"/api/users/{alice.id}", headers=auth_headers("alice")).status_code == 200
    assert client.get(f"/api/users/{alice.id}", headers=admin_headers).status_code == 200


def test_get_other_user_forbidden_for_adherant(client, make_user):
    alice = make_user("alice")
    make_user("bob")

    response = client.get(f"/api/users/{alice.id}", headers=auth_headers("bob"))

    assert response.status_code == 403


def test_get_missing_user_is_404(client, admin_headers):
    response = client.get("/api/users/9999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_search(client, make_user):
    make_user("alice", name="Alice Martin")
    make_user("boss", name="Martha", role=Role.ADMIN)
    make_user("bob", name="Bob")
    headers = auth_headers("alice")

    def usernames(params):
        response = client.get("/api/users/search", params=params, headers=headers)
        assert response.status_code == 200
        return [u["username"] for u in response.json()]

    assert usernames({}) == ["alice", "boss", "bob"]
    assert usernames({"name": "mart"}) == ["alice", "boss"]
    assert usernames({"name": "mart", "role": "Admin"}) == ["boss"]
    assert usernames({"status": "Inactive"}) == []


def test_self_update_strips_role_but_applies_other_fields(client, db, make_user):
    alice = make_user("alice", bio="old")

    response = client.put(
        f"/api/users/{alice.id}",
        json={"role": "Admin", "bio": "  new bio  ", "phoneNumber": "+33612345678"},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "Adherant"
    assert body["bio"] == "new bio"
    assert body["phoneNumber"] == "+33612345678"
    assert db.get(User, alice.id).role == "Adherant"


def test_admin_can_change_role(client, admin_headers, make_user):
    alice = make_user("alice")

    response = client.put(f"/api/users/{alice.id}", json={"role": "Admin"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["role"] == "Admin"


def test_role_change_takes_effect_without_new_token(client, admin_headers, make_user):
    alice = make_user("alice")
    alice_headers = auth_headers("alice")
    assert client.get("/api/users/stats", headers=alice_headers).status_code == 403

    client.put(f"/api/users/{alice.id}", json={"role": "Admin"}, headers=admin_headers)

    assert client.get("/api/users/stats", headers=alice_headers).status_code == 200


def test_update_other_user_forbidden_for_adherant(client, make_user):
    alice = make_user("alice")
    make_user("bob")

    response = client.put(f"/api/users/{alice.id}", json={"bio": "hacked"}, headers=auth_headers("bob"))

    assert response.status_code == 403


def test_update_with_existing_email_is_409(client, make_user):
    make_user("alice", email="a@x.com")
    bob = make_user("bob", email="b@x.com")

    response = client.put(f"/api/users/{bob.id}", json={"email": "a@x.com"}, headers=auth_headers("bob"))

    assert response.status_code == 409


def test_update_missing_user_is_404(client, admin_headers):
    response = client.put("/api/users/9999", json={"bio": "x"}, headers=admin_headers)

    assert response.status_code == 404


def test_delete_user(client, admin_headers, make_user):
    alice = make_user("alice")

    response = client.delete(f"/api/users/{alice.id}", headers=admin_headers)

    assert response.status_code == 204
    assert client.delete(f"/api/users/{alice.id}", headers=admin_headers).status_code == 404


def test_delete_forbidden_for_adherant(client, make_user):
    alice = make_user("alice")

    response = client.delete(f"/api/users/{alice.id}", headers=auth_headers("alice"))

    assert response.status_code == 403


def test_last_login_self_and_others(client, admin_headers, make_user):
    alice = make_user("alice")
    bob = make_user("bob")

    assert client.put(f"/api/users/{alice.id}/last-login", headers=auth_headers("alice")).status_code == 200
    assert client.put(f"/api/users/{alice.id}/last-login", headers=auth_headers("bob")).status_code == 403
    assert client.put(f"/api/users/{bob.id}/last-login", headers=admin_headers).status_code == 200


def test_stats_admin_only(client, admin_headers, make_user):
    make_user("alice")

    response = client.get("/api/users/stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"totalUsers": 2, "activeUsers": 2, "adherantUsers": 1, "adminUsers": 1}
    assert client.get("/api/users/stats", headers=auth_headers("alice")).status_code == 403


def test_out_of_range_expiry_is_401(client, admin):
    token = jwt.encode({"sub": admin.username, "role": "Admin", "exp": 10**20}, "forged", algorithm="HS256")

    response = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_out_of_range_user_id_is_400(client, admin_headers):
    for path in ("/api/users/99999999999999999999", "/api/users/0"):
        response = client.get(path, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    response = client.put("/api/users/99999999999999999999/last-login", headers=admin_headers)
    assert response.status_code == 400


def test_update_name_empty_clears_and_short_is_rejected(client, make_user):
    alice = make_user("alice", name="Alice")
    headers = auth_headers("alice")

    response = client.put(f"/api/users/{alice.id}", json={"name": ""}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == ""

    response = client.put(f"/api/users/{alice.id}", json={"name": " a "}, headers=headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "name"


def test_update_malformed_phone_is_400(client, db, make_user):
    alice = make_user("alice", phone_number="+33612345678")

    response = client.put(f"/api/users/{alice.id}", json={"phoneNumber": "abc"}, headers=auth_headers("alice"))

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "phoneNumber"
    assert db.get(User, alice.id).phone_number == "+33612345678"
