import pytest
from sqlalchemy import select

from constructpro.models.material_transaction import MaterialTransaction


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client, email: str) -> str:
    res = client.post(
        "/auth/register",
        json={"email": email, "full_name": email.split("@")[0].title(), "password": "password123"},
    )
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _user_id(client, token: str) -> str:
    return client.get("/auth/me", headers=_auth_headers(token)).json()["id"]


@pytest.fixture()
def team(test_context):
    client, session_local = test_context
    tokens = {"admin": _register(client, "admin@example.com")}
    for role in ("project_manager", "store_manager", "employee"):
        tokens[role] = _register(client, f"{role}@example.com")
        if role != "employee":
            res = client.patch(
                f"/auth/users/{_user_id(client, tokens[role])}/role",
                json={"role": role},
                headers=_auth_headers(tokens["admin"]),
            )
            assert res.status_code == 200, res.text
    return client, session_local, {role: _auth_headers(token) for role, token in tokens.items()}


def _create_material(client, headers, code="CEM-425", unit_cost=10.0) -> str:
    res = client.post(
        "/materials",
        json={"material_code": code, "name": "Portland Cement", "category": "Cement", "unit": "bag", "unit_cost": unit_cost},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _stock_store(client, headers, material_id: str, quantity: float):
    res = client.post(
        "/material-inventory/adjust",
        json={
            "material_id": material_id,
            "location": {"type": "STORE", "reference": "Main Store"},
            "adjustment_type": "INCREASE",
            "quantity": quantity,
            "reason": "Opening balance",
        },
        headers=headers,
    )
    assert res.status_code == 200, res.text


def _raise_request(client, headers, material_id: str, quantity: float = 5) -> dict:
    res = client.post(
        "/material-requests",
        json={
            "material_id": material_id,
            "project_id": 12,
            "requested_quantity": quantity,
            "justification": "Ground floor slab",
            "urgency": "HIGH",
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def test_request_flow_end_to_end(team):
    client, session_local, headers = team
    material_id = _create_material(client, headers["store_manager"])
    _stock_store(client, headers["store_manager"], material_id, 10)

    created = _raise_request(client, headers["employee"], material_id)
    assert created["status"] == "PENDING"
    assert created["request_number"] == "MR-0001"
    assert created["total_cost"] == 50.0
    assert created["material"]["material_code"] == "CEM-425"

    approved = client.post(
        f"/material-requests/{created['id']}/approve",
        json={"approved": True, "approved_quantity": 3, "approval_comments": "Phase one only"},
        headers=headers["project_manager"],
    )
    assert approved.status_code == 200, approved.text
    assert approved.json()["total_cost"] == 30.0

    issued = client.post(
        f"/material-requests/{created['id']}/issue",
        json={"issued_quantity": 3},
        headers=headers["store_manager"],
    )
    assert issued.status_code == 200, issued.text
    assert issued.json()["status"] == "ISSUED"

    acknowledged = client.post(
        f"/material-requests/{created['id']}/acknowledge",
        json={"acknowledged_quantity": 3},
        headers=headers["employee"],
    )
    assert acknowledged.status_code == 200, acknowledged.text

    completed = client.post(
        f"/material-requests/{created['id']}/complete",
        json={},
        headers=headers["project_manager"],
    )
    assert completed.status_code == 200, completed.text
    assert completed.json()["status"] == "COMPLETED"

    inventory = client.get(
        "/material-inventory",
        params={"material_id": material_id},
        headers=headers["store_manager"],
    ).json()
    balances = {(row["location_type"], row["project_id"]): row["current_stock"] for row in inventory["items"]}
    assert balances == {("STORE", 0): 7.0, ("SITE", 12): 3.0}

    with session_local() as db:
        issues = db.execute(
            select(MaterialTransaction).where(MaterialTransaction.transaction_type == "ISSUE")
        ).scalars().all()
    assert len(issues) == 1
    assert issues[0].reference_id == created["id"]


def test_insufficient_stock_maps_to_conflict(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])
    _stock_store(client, headers["store_manager"], material_id, 2)
    created = _raise_request(client, headers["employee"], material_id)
    client.post(
        f"/material-requests/{created['id']}/approve",
        json={"approved": True, "approved_quantity": 3},
        headers=headers["project_manager"],
    )

    res = client.post(
        f"/material-requests/{created['id']}/issue",
        json={"issued_quantity": 3},
        headers=headers["store_manager"],
    )

    assert res.status_code == 409
    body = res.json()["error"]
    assert body["code"] == "insufficient_stock"
    assert body["path"] == f"/material-requests/{created['id']}/issue"
    still_approved = client.get(f"/material-requests/{created['id']}", headers=headers["employee"])
    assert still_approved.json()["status"] == "APPROVED"


def test_role_and_state_errors(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])
    created = _raise_request(client, headers["employee"], material_id)

    forbidden = client.post(
        f"/material-requests/{created['id']}/approve",
        json={"approved": True},
        headers=headers["employee"],
    )
    wrong_state = client.post(
        f"/material-requests/{created['id']}/complete",
        json={},
        headers=headers["project_manager"],
    )
    missing = client.get("/material-requests/does-not-exist", headers=headers["employee"])

    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "unauthorized"
    assert wrong_state.status_code == 409
    assert wrong_state.json()["error"]["code"] == "invalid_state"
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "request_not_found"


def test_request_payload_validation(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])

    too_much = client.post(
        "/material-requests",
        json={"material_id": material_id, "project_id": 12, "requested_quantity": 10001, "justification": "x"},
        headers=headers["employee"],
    )
    no_reason = client.post(
        f"/material-requests/{_raise_request(client, headers['employee'], material_id)['id']}/approve",
        json={"approved": False},
        headers=headers["project_manager"],
    )

    assert too_much.status_code == 422
    assert too_much.json()["error"]["details"][0]["field"] == "requested_quantity"
    assert no_reason.status_code == 422


def test_list_filters(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])
    mine = _raise_request(client, headers["employee"], material_id, quantity=1)
    _raise_request(client, headers["project_manager"], material_id, quantity=2)
    client.post(
        f"/material-requests/{mine['id']}/cancel",
        json={"reason": "Ordered twice"},
        headers=headers["employee"],
    )

    everything = client.get("/material-requests", headers=headers["employee"]).json()
    own = client.get("/material-requests", params={"mine": True}, headers=headers["employee"]).json()
    cancelled = client.get("/material-requests", params={"status": "cancelled"}, headers=headers["employee"]).json()

    assert everything["pagination"]["total"] == 2
    assert [item["id"] for item in own["items"]] == [mine["id"]]
    assert [item["status"] for item in cancelled["items"]] == ["CANCELLED"]


def test_list_filters_by_urgency_and_search(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])
    slab = _raise_request(client, headers["employee"], material_id, quantity=1)
    res = client.post(
        "/material-requests",
        json={
            "material_id": material_id,
            "project_id": 12,
            "requested_quantity": 2,
            "justification": "Perimeter fence footings",
            "urgency": "LOW",
        },
        headers=headers["employee"],
    )
    assert res.status_code == 201, res.text
    fence = res.json()

    low = client.get("/material-requests", params={"urgency": "low"}, headers=headers["employee"]).json()
    by_text = client.get("/material-requests", params={"search": "FENCE"}, headers=headers["employee"]).json()
    by_number = client.get(
        "/material-requests", params={"search": slab["request_number"]}, headers=headers["employee"]
    ).json()
    combined = client.get(
        "/material-requests", params={"urgency": "HIGH", "search": "fence"}, headers=headers["employee"]
    ).json()

    assert [item["id"] for item in low["items"]] == [fence["id"]]
    assert [item["id"] for item in by_text["items"]] == [fence["id"]]
    assert [item["id"] for item in by_number["items"]] == [slab["id"]]
    assert combined["pagination"]["total"] == 0


def test_out_of_range_issue_quantity_is_a_validation_error(team):
    client, _, headers = team
    material_id = _create_material(client, headers["store_manager"])
    _stock_store(client, headers["store_manager"], material_id, 10)
    created = _raise_request(client, headers["employee"], material_id, quantity=5)
    approved = client.post(
        f"/material-requests/{created['id']}/approve",
        json={"approved": True},
        headers=headers["project_manager"],
    )
    assert approved.status_code == 200, approved.text

    res = client.post(
        f"/material-requests/{created['id']}/issue",
        json={"issued_quantity": "1e30"},
        headers=headers["store_manager"],
    )

    assert res.status_code == 422
    assert res.json()["error"]["code"] == "validation_error"
    assert res.json()["error"]["details"][0]["field"] == "issued_quantity"
    after = client.get(f"/material-requests/{created['id']}", headers=headers["store_manager"]).json()
    assert after["status"] == "APPROVED"
