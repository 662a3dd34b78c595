import pytest

from conftest import register
from splitbill.routers import expenses as expenses_router


@pytest.fixture
def group_id(client, auth_headers):
    res = client.post("/api/groups", json={"name": "Test Group", "member_ids": []}, headers=auth_headers)
    return res.json()["id"]


@pytest.fixture
def payer_id(me):
    return me["id"]


def add(client, headers, group_id, payer_id, amount, participants, **extra):
    return client.post("/api/expenses", json={
        "group_id": group_id, "payer_id": payer_id, "amount": amount,
        "participant_ids": participants, **extra
    }, headers=headers)


def test_create_expense(client, auth_headers, group_id, payer_id):
    res = add(client, auth_headers, group_id, payer_id, 50.0, [payer_id], description="Lunch", category="food")
    assert res.status_code == 200
    data = res.json()
    assert data["amount"] == 50.0
    assert data["share"] == 50.0
    assert data["category"] == "food"
    assert data["participant_ids"] == [payer_id]


def test_create_expense_empty_split(client, auth_headers, group_id, payer_id):
    res = add(client, auth_headers, group_id, payer_id, 50.0, [])
    assert res.status_code == 400
    assert "participant" in res.json()["detail"]


def test_create_expense_non_member_participant(client, auth_headers, group_id, payer_id, second_user):
    res = add(client, auth_headers, group_id, payer_id, 50.0, [payer_id, second_user["id"]])
    assert res.status_code == 400
    assert "group members" in res.json()["detail"]


def test_create_expense_non_member_payer(client, auth_headers, group_id, payer_id, second_user):
    res = add(client, auth_headers, group_id, second_user["id"], 50.0, [payer_id])
    assert res.status_code == 400


def test_create_expense_bad_amount(client, auth_headers, group_id, payer_id):
    assert add(client, auth_headers, group_id, payer_id, 0, [payer_id]).status_code == 422
    assert add(client, auth_headers, group_id, payer_id, -5, [payer_id]).status_code == 422
    assert add(client, auth_headers, group_id, payer_id, 1.005, [payer_id]).status_code == 422


def test_create_expense_unknown_category(client, auth_headers, group_id, payer_id):
    res = add(client, auth_headers, group_id, payer_id, 10.0, [payer_id], category="spaceships")
    assert res.status_code == 400


def test_create_expense_outside_group(client, auth_headers, group_id, payer_id):
    _, other_headers = register(client, "other@example.com")
    res = add(client, other_headers, group_id, payer_id, 10.0, [payer_id])
    assert res.status_code == 403


def test_list_expenses(client, auth_headers, group_id, payer_id):
    for i in range(3):
        add(client, auth_headers, group_id, payer_id, 10.0 * (i + 1), [payer_id], description=f"Expense {i}")
    res = client.get(f"/api/expenses?group_id={group_id}", headers=auth_headers)
    assert res.status_code == 200
    assert len(res.json()) == 3


def test_search_expenses(client, auth_headers, group_id, payer_id):
    add(client, auth_headers, group_id, payer_id, 20.0, [payer_id], description="Coffee")
    add(client, auth_headers, group_id, payer_id, 30.0, [payer_id], description="Pizza")
    res = client.get(f"/api/expenses?group_id={group_id}&search=coffee", headers=auth_headers)
    assert len(res.json()) == 1
    assert res.json()[0]["description"] == "Coffee"


def test_filter_by_category(client, auth_headers, group_id, payer_id):
    add(client, auth_headers, group_id, payer_id, 20.0, [payer_id], description="Bus", category="transport")
    add(client, auth_headers, group_id, payer_id, 30.0, [payer_id], description="Dinner", category="food")
    res = client.get(f"/api/expenses?group_id={group_id}&category=food", headers=auth_headers)
    assert [e["description"] for e in res.json()] == ["Dinner"]


def test_filter_by_payer(client, auth_headers, group_id, payer_id, second_user):
    client.post(f"/api/groups/{group_id}/members", json={"email": "user2@example.com"}, headers=auth_headers)
    add(client, auth_headers, group_id, payer_id, 20.0, [payer_id])
    add(client, auth_headers, group_id, second_user["id"], 30.0, [payer_id])
    res = client.get(f"/api/expenses?group_id={group_id}&paid_by={second_user['id']}", headers=auth_headers)
    assert [e["amount"] for e in res.json()] == [30.0]


def test_get_expense(client, auth_headers, group_id, payer_id):
    eid = add(client, auth_headers, group_id, payer_id, 12.5, [payer_id]).json()["id"]
    res = client.get(f"/api/expenses/{eid}", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["amount"] == 12.5
    assert client.get("/api/expenses/9999", headers=auth_headers).status_code == 404


def test_update_expense(client, auth_headers, group_id, payer_id):
    res = add(client, auth_headers, group_id, payer_id, 25.0, [payer_id], description="Old")
    eid = res.json()["id"]
    res = client.patch(f"/api/expenses/{eid}", json={
        "amount": 30.0, "description": "Updated", "category": "food"
    }, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["amount"] == 30.0
    assert res.json()["description"] == "Updated"
    assert res.json()["category"] == "food"


def test_update_expense_clears_category(client, auth_headers, group_id, payer_id):
    eid = add(client, auth_headers, group_id, payer_id, 25.0, [payer_id], category="food").json()["id"]
    res = client.patch(f"/api/expenses/{eid}", json={"category": ""}, headers=auth_headers)
    assert res.json()["category"] is None


def test_update_expense_only_payer_or_admin(client, auth_headers, group_id, payer_id):
    other, other_headers = register(client, "other@example.com")
    client.post(f"/api/groups/{group_id}/members", json={"email": "other@example.com"}, headers=auth_headers)
    eid = add(client, auth_headers, group_id, payer_id, 25.0, [payer_id, other["id"]]).json()["id"]
    res = client.patch(f"/api/expenses/{eid}", json={"amount": 1.0}, headers=other_headers)
    assert res.status_code == 403
    res = client.delete(f"/api/expenses/{eid}", headers=other_headers)
    assert res.status_code == 403


def test_delete_expense(client, auth_headers, group_id, payer_id):
    res = add(client, auth_headers, group_id, payer_id, 10.0, [payer_id], description="Del")
    eid = res.json()["id"]
    res = client.delete(f"/api/expenses/{eid}", headers=auth_headers)
    assert res.status_code == 204
    assert client.get(f"/api/expenses/{eid}", headers=auth_headers).status_code == 404
    assert client.get(f"/api/expenses?group_id={group_id}", headers=auth_headers).json() == []
    assert client.delete(f"/api/expenses/{eid}", headers=auth_headers).status_code == 404


def test_export_csv(client, auth_headers, group_id, payer_id):
    add(client, auth_headers, group_id, payer_id, 50.0, [payer_id], description="Dinner", category="food")
    res = client.get(f"/api/expenses/export?group_id={group_id}", headers=auth_headers)
    assert res.status_code == 200
    assert "text/csv" in res.headers["content-type"]
    assert "Dinner" in res.text
    assert "50.00" in res.text


def test_my_paid_and_owed(client, auth_headers, group_id, payer_id, second_user):
    client.post(f"/api/groups/{group_id}/members", json={"email": "user2@example.com"}, headers=auth_headers)
    add(client, auth_headers, group_id, payer_id, 30.0, [payer_id, second_user["id"]], description="Mine")
    add(client, auth_headers, group_id, second_user["id"], 90.0, [payer_id, second_user["id"]], description="Theirs")

    paid = client.get("/api/expenses/mine/paid", headers=auth_headers).json()
    assert [e["description"] for e in paid] == ["Mine"]
    assert paid[0]["group_name"] == "Test Group"

    owed = client.get(f"/api/expenses/mine/owed?group_id={group_id}", headers=auth_headers).json()
    assert {e["description"]: e["your_share"] for e in owed} == {"Mine": 15.0, "Theirs": 45.0}


@pytest.fixture
def lock_calls(monkeypatch):
    calls = []
    real_lock = expenses_router.get_active_group
    real_load = expenses_router._get_active_expense

    def lock(db, group_id, for_update=False):
        calls.append(("group", for_update))
        return real_lock(db, group_id, for_update=for_update)

    def load(db, expense_id):
        calls.append(("expense", expense_id))
        return real_load(db, expense_id)

    monkeypatch.setattr(expenses_router, "get_active_group", lock)
    monkeypatch.setattr(expenses_router, "_get_active_expense", load)
    return calls


def test_delete_locks_group_before_loading_expense(client, auth_headers, group_id, payer_id, lock_calls):
    eid = add(client, auth_headers, group_id, payer_id, 10.0, [payer_id]).json()["id"]
    lock_calls.clear()
    assert client.delete(f"/api/expenses/{eid}", headers=auth_headers).status_code == 204
    assert lock_calls == [("group", True), ("expense", eid)]


def test_update_locks_group_before_loading_expense(client, auth_headers, group_id, payer_id, lock_calls):
    eid = add(client, auth_headers, group_id, payer_id, 10.0, [payer_id]).json()["id"]
    lock_calls.clear()
    res = client.patch(f"/api/expenses/{eid}", json={"description": "Renamed"}, headers=auth_headers)
    assert res.status_code == 200
    assert lock_calls == [("group", True), ("expense", eid)]
