"""
分类账 API 测试
直接入账、账目列表、经理冲账
"""
from decimal import Decimal

from folio.models.ontology import Transaction


class TestTransactions:

    def test_post_charge_and_payment(self, client, accounts_auth_headers, sample_guest):
        response = client.post("/transactions", headers=accounts_auth_headers, json={
            "guest_id": sample_guest.id, "description": "Minibar", "amount": "2500"
        })
        assert response.status_code == 200
        charge = response.json()
        assert charge["entry_type"] == "charge"
        assert charge["invoice_number"] == f"INV-{charge['id']:06d}"

        response = client.post("/transactions", headers=accounts_auth_headers, json={
            "guest_id": sample_guest.id, "description": "Refund", "amount": "-500"
        })
        payment = response.json()
        assert payment["entry_type"] == "payment"
        assert Decimal(payment["amount"]) == Decimal("-500")

    def test_unknown_guest(self, client, accounts_auth_headers):
        response = client.post("/transactions", headers=accounts_auth_headers, json={
            "guest_id": 99999, "description": "Minibar", "amount": "1"
        })
        assert response.status_code == 404

    def test_non_finite_amount(self, client, accounts_auth_headers, sample_guest):
        response = client.post("/transactions", headers=accounts_auth_headers, json={
            "guest_id": sample_guest.id, "description": "Bad", "amount": "NaN"
        })
        assert response.status_code == 422

    def test_list_by_guest(self, client, receptionist_auth_headers, checked_in, sample_guest):
        response = client.get(
            "/transactions", headers=receptionist_auth_headers,
            params={"guest_id": checked_in["guest"]["id"]}
        )
        assert response.status_code == 200
        assert len(response.json()) == 2

        response = client.get(
            "/transactions", headers=receptionist_auth_headers,
            params={"guest_id": sample_guest.id}
        )
        assert response.json() == []


class TestReverse:

    def test_requires_confirm(self, client, manager_auth_headers, checked_in, db_session):
        txn_id = checked_in["transactions"][0]["id"]
        response = client.delete(f"/transactions/{txn_id}", headers=manager_auth_headers)

        assert response.status_code == 400
        assert "confirm=true" in response.json()["detail"]
        assert db_session.query(Transaction).count() == 2

    def test_manager_reverses(self, client, manager_auth_headers, checked_in, db_session):
        txn_id = checked_in["transactions"][1]["id"]
        response = client.delete(
            f"/transactions/{txn_id}", headers=manager_auth_headers, params={"confirm": "true"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["transaction"]["id"] == txn_id
        assert data["state_version"] == checked_in["state_version"] + 1
        assert db_session.query(Transaction).count() == 1

    def test_receptionist_forbidden(self, client, receptionist_auth_headers, checked_in, db_session):
        txn_id = checked_in["transactions"][0]["id"]
        response = client.delete(
            f"/transactions/{txn_id}", headers=receptionist_auth_headers,
            params={"confirm": "true"}
        )
        assert response.status_code == 403
        assert db_session.query(Transaction).count() == 2

    def test_not_found(self, client, admin_auth_headers):
        response = client.delete(
            "/transactions/99999", headers=admin_auth_headers, params={"confirm": "true"}
        )
        assert response.status_code == 404
