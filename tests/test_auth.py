def _register(client, *, email: str, full_name: str = "Site User"):
    return client.post(
        "/auth/register",
        json={
            "email": email,
            "full_name": full_name,
            "password": "password123",
        },
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_first_user_is_admin_and_later_users_are_employees(test_context):
    client, _ = test_context

    admin_res = _register(client, email="Admin@Example.com", full_name="Ada Admin")
    assert admin_res.status_code == 200, admin_res.text
    worker_res = _register(client, email="worker@example.com")
    assert worker_res.status_code == 200, worker_res.text

    admin_me = client.get("/auth/me", headers=_auth_headers(admin_res.json()["access_token"]))
    worker_me = client.get("/auth/me", headers=_auth_headers(worker_res.json()["access_token"]))

    assert admin_me.json()["email"] == "admin@example.com"
    assert admin_me.json()["role"] == "admin"
    assert worker_me.json()["role"] == "employee"


def test_duplicate_email_is_rejected(test_context):
    client, _ = test_context
    _register(client, email="dup@example.com")

    res = _register(client, email="DUP@example.com")

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "bad_request"


def test_login_with_email_or_username(test_context):
    client, _ = test_context
    client.post(
        "/auth/register",
        json={
            "email": "store@example.com",
            "full_name": "Store Keeper",
            "password": "password123",
            "username": "store_keeper",
        },
    )

    by_email = client.post("/auth/login", json={"identifier": "store@example.com", "password": "password123"})
    by_username = client.post("/auth/token", data={"username": "store_keeper", "password": "password123"})
    wrong = client.post("/auth/login", json={"identifier": "store_keeper", "password": "nope-nope"})

    assert by_email.status_code == 200
    assert by_email.json()["token_type"] == "bearer"
    assert by_username.status_code == 200
    assert wrong.status_code == 401
    assert wrong.json()["error"]["code"] == "unauthorized"


def test_protected_routes_require_a_valid_token(test_context):
    client, _ = test_context

    missing = client.get("/materials")
    garbage = client.get("/materials", headers=_auth_headers("not-a-token"))

    assert missing.status_code == 401
    assert garbage.status_code == 401
    assert garbage.json()["error"]["message"] == "Invalid token"
    assert garbage.headers["X-Request-ID"]


def test_only_admin_changes_roles(test_context):
    client, _ = test_context
    admin_token = _register(client, email="admin@example.com").json()["access_token"]
    worker_token = _register(client, email="worker@example.com").json()["access_token"]
    worker_id = client.get("/auth/me", headers=_auth_headers(worker_token)).json()["id"]

    denied = client.patch(
        f"/auth/users/{worker_id}/role",
        json={"role": "admin"},
        headers=_auth_headers(worker_token),
    )
    promoted = client.patch(
        f"/auth/users/{worker_id}/role",
        json={"role": "store_manager"},
        headers=_auth_headers(admin_token),
    )
    invalid = client.patch(
        f"/auth/users/{worker_id}/role",
        json={"role": "overlord"},
        headers=_auth_headers(admin_token),
    )

    assert denied.status_code == 403
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "store_manager"
    assert invalid.status_code == 422
    me = client.get("/auth/me", headers=_auth_headers(worker_token))
    assert me.json()["role"] == "store_manager"


def test_health_endpoints(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["docs"] == "/docs"
