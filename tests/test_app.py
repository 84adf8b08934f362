from datetime import date, timedelta

import pytest

from debt_calc_web.app import create_app

LOAN = {
    "name": "Private Student Loan",
    "principal": 1000,
    "interest_rate": 12,
    "interest_period": "monthly",
    "start_date": "2024-01-01",
}


@pytest.fixture
def app(tmp_path):
    return create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'debts.sqlite3'}",
        }
    )


@pytest.fixture
def client(app):
    return app.test_client()


def create_loan(client, **overrides):
    response = client.post("/api/debts", json=dict(LOAN, **overrides))
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_create_and_list_debts(client):
    debt = create_loan(client)
    assert debt["name"] == "Private Student Loan"
    assert debt["interest_start_date"] == "2024-01-01"
    assert debt["payments"] == []

    listed = client.get("/api/debts").get_json()
    assert [d["id"] for d in listed] == [debt["id"]]
    assert listed[0]["current_balance"] >= 1000.0


def test_interest_period_defaults_to_monthly(client):
    body = dict(LOAN)
    del body["interest_period"]
    debt = client.post("/api/debts", json=body).get_json()
    assert debt["interest_period"] == "monthly"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"name": "  "}, "Debt name is required"),
        ({"principal": -5}, "Principal amount must be greater than 0"),
        ({"interest_rate": -1}, "Interest rate must be greater than or equal to 0"),
        ({"interest_period": "weekly"}, "Interest period must be one of: daily, monthly, annually"),
        ({"start_date": ""}, "Start date is required"),
        ({"interest_start_date": "2023-12-01"}, "Interest start date cannot be before the start date"),
    ],
)
def test_create_debt_validation(client, overrides, message):
    response = client.post("/api/debts", json=dict(LOAN, **overrides))
    assert response.status_code == 400
    assert response.get_json() == {"error": message}


def test_payment_and_history(client):
    debt = create_loan(client)
    response = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": 100})
    assert response.status_code == 201

    data = client.get(f"/api/debts/{debt['id']}/history?today=2024-02-01").get_json()
    assert data["history"] == [
        {"date": "2024-01-01", "balance": 1000.0},
        {"date": "2024-02-01", "balance": 910.19},
    ]
    assert data["chart"]["labels"] == ["Jan 24", "Today"]
    assert data["chart"]["balances"] == [1000.0, 910.19]
    assert data["summary"]["current_balance"] == 910.19
    assert data["summary"]["payments_made"] == 1


def test_payment_cannot_exceed_balance(client):
    debt = create_loan(client, interest_rate=0)
    response = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": 1000.01})
    assert response.status_code == 400
    assert "exceeds the remaining balance" in response.get_json()["error"]


def test_payment_before_start_is_rejected(client):
    debt = create_loan(client)
    response = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2023-12-31", "amount": 10})
    assert response.status_code == 400


def test_delete_payment(client):
    debt = create_loan(client)
    payment = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": 100}).get_json()
    response = client.delete(f"/api/debts/{debt['id']}/payments/{payment['id']}")
    assert response.get_json() == {"success": True}
    data = client.get(f"/api/debts/{debt['id']}/history?today=2024-01-01").get_json()
    assert data["summary"]["payments_made"] == 0


def test_update_debt_fields(client):
    debt = create_loan(client)
    response = client.put("/api/debts", json={"id": debt["id"], "interest_rate": 6, "name": "Refinanced"})
    assert response.status_code == 200
    updated = response.get_json()
    assert updated["name"] == "Refinanced"
    assert float(updated["interest_rate"]) == 6.0
    assert float(updated["principal"]) == 1000.0


def test_update_rejects_start_after_first_payment(client):
    debt = create_loan(client)
    client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": 100})
    response = client.put("/api/debts", json={"id": debt["id"], "start_date": "2024-03-01"})
    assert response.status_code == 400


def test_update_requires_id(client):
    response = client.put("/api/debts", json={"name": "x"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Debt ID is required"}


def test_delete_debt(client):
    debt = create_loan(client)
    assert client.delete(f"/api/debts?id={debt['id']}").get_json() == {"success": True}
    assert client.delete(f"/api/debts?id={debt['id']}").status_code == 404
    assert client.get("/api/debts").get_json() == []


def test_debts_are_private_to_their_session(app, client):
    debt = create_loan(client)
    other = app.test_client()
    assert other.get("/api/debts").get_json() == []
    assert other.get(f"/api/debts/{debt['id']}/history").status_code == 404


def test_categories_lookup_or_insert(client):
    first = client.post("/api/categories", json={"name": "Groceries"})
    assert first.status_code == 201
    again = client.post("/api/categories", json={"name": "  groceries "})
    assert again.status_code == 200
    assert again.get_json()["id"] == first.get_json()["id"]
    assert again.get_json()["name"] == "Groceries"

    client.post("/api/categories", json={"name": "Coffee"})
    names = [c["name"] for c in client.get("/api/categories").get_json()]
    assert names == ["Coffee", "Groceries"]


def test_category_requires_name(client):
    response = client.post("/api/categories", json={"name": ""})
    assert response.status_code == 400


def test_principal_below_one_cent_is_rejected(client):
    response = client.post("/api/debts", json=dict(LOAN, principal="0.001"))
    assert response.status_code == 400
    assert response.get_json() == {"error": "Principal amount must be greater than 0"}
    assert client.get("/api/debts").get_json() == []


def test_payment_below_one_cent_is_rejected(client):
    debt = create_loan(client)
    response = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": "0.004"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Payment amount must be greater than 0"}
    data = client.get(f"/api/debts/{debt['id']}/history?today=2024-02-01").get_json()
    assert data["summary"]["payments_made"] == 0


def test_amounts_are_rounded_to_cents(client):
    debt = create_loan(client, principal="999.996")
    assert float(debt["principal"]) == 1000.0
    payment = client.post(f"/api/debts/{debt['id']}/payments", json={"date": "2024-02-01", "amount": "100.004"})
    assert float(payment.get_json()["amount"]) == 100.0


def test_update_rejects_null_interest_period(client):
    debt = create_loan(client, interest_period="daily")
    response = client.put("/api/debts", json={"id": debt["id"], "interest_period": None})
    assert response.status_code == 400
    listed = client.get("/api/debts").get_json()
    assert listed[0]["interest_period"] == "daily"


def test_future_payment_is_rejected(client):
    debt = create_loan(client)
    future = (date.today() + timedelta(days=1)).isoformat()
    response = client.post(f"/api/debts/{debt['id']}/payments", json={"date": future, "amount": 10})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Payment date cannot be in the future"}
