"""
账务编排 API 测试
覆盖 /folio 端点：入住、退房、入账、付款、换房、客人账单
"""
from decimal import Decimal
from fastapi.testclient import TestClient

from folio.models.ontology import Room, RoomStatus, Transaction


def _check_in(client, headers, room_id, name="Ada Obi", **extra):
    payload = {
        "guest": {"name": name, "phone": "+2348000000001"},
        "room_id": room_id,
        "charge": {"description": "Room charge", "amount": "20000"},
    }
    payload.update(extra)
    return client.post("/folio/check-in", headers=headers, json=payload)


class TestCheckIn:

    def test_check_in_success(self, client: TestClient, receptionist_auth_headers, room_101):
        response = _check_in(client, receptionist_auth_headers, room_101.id)

        assert response.status_code == 200
        data = response.json()
        assert data["guest"]["name"] == "Ada Obi"
        assert data["room"]["status"] == "occupied"
        assert Decimal(data["balance"]) == Decimal("21500")
        assert data["payment_status"] == "owing"
        assert [t["invoice_number"] is not None for t in data["transactions"]] == [True, True]

    def test_room_occupied(self, client, receptionist_auth_headers, room_101, db_session):
        _check_in(client, receptionist_auth_headers, room_101.id)
        response = _check_in(client, receptionist_auth_headers, room_101.id, name="Other")

        assert response.status_code == 400
        assert db_session.query(Transaction).count() == 2

    def test_room_not_found(self, client, receptionist_auth_headers):
        response = _check_in(client, receptionist_auth_headers, 99999)
        assert response.status_code == 404

    def test_new_guest_requires_name(self, client, receptionist_auth_headers, room_101):
        response = client.post("/folio/check-in", headers=receptionist_auth_headers, json={
            "guest": {"phone": "+2348000000001"},
            "room_id": room_101.id,
            "charge": {"description": "Room charge", "amount": "20000"},
        })
        assert response.status_code == 422

    def test_stale_version(self, client, receptionist_auth_headers, room_101):
        response = _check_in(client, receptionist_auth_headers, room_101.id, expected_version=42)
        assert response.status_code == 409

    def test_housekeeping_forbidden(self, client, housekeeping_auth_headers, room_101):
        response = _check_in(client, housekeeping_auth_headers, room_101.id)
        assert response.status_code == 403

    def test_requires_auth(self, client, room_101):
        response = _check_in(client, {}, room_101.id)
        assert response.status_code in (401, 403)


class TestCheckOut:

    def test_check_out_with_payment(self, client, receptionist_auth_headers, room_101, db_session):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]

        response = client.post("/folio/check-out", headers=receptionist_auth_headers, json={
            "room_id": room_101.id,
            "guest_id": guest_id,
            "payment": {"amount": "21500", "method": "card"},
        })

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["payment_status"] == "paid"
        room = db_session.query(Room).filter(Room.id == room_101.id).one()
        db_session.refresh(room)
        assert room.status == RoomStatus.DIRTY

    def test_non_positive_payment_rejected(self, client, receptionist_auth_headers, room_101):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]
        response = client.post("/folio/check-out", headers=receptionist_auth_headers, json={
            "room_id": room_101.id,
            "guest_id": guest_id,
            "payment": {"amount": "-5"},
        })
        assert response.status_code == 422

    def test_accounts_can_check_out(self, client, receptionist_auth_headers,
                                    accounts_auth_headers, room_101):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]
        response = client.post("/folio/check-out", headers=accounts_auth_headers, json={
            "room_id": room_101.id, "guest_id": guest_id
        })
        assert response.status_code == 200

    def test_wrong_guest(self, client, receptionist_auth_headers, room_101, sample_guest):
        _check_in(client, receptionist_auth_headers, room_101.id)
        response = client.post("/folio/check-out", headers=receptionist_auth_headers, json={
            "room_id": room_101.id, "guest_id": sample_guest.id
        })
        assert response.status_code == 400


class TestPosting:

    def test_charge_and_payment(self, client, receptionist_auth_headers, room_101):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]

        response = client.post("/folio/charges", headers=receptionist_auth_headers, json={
            "guest_id": guest_id, "description": "Restaurant", "amount": "100"
        })
        assert response.status_code == 200
        assert Decimal(response.json()["balance"]) == Decimal("21607.50")

        response = client.post("/folio/payments", headers=receptionist_auth_headers, json={
            "guest_id": guest_id, "amount": "21607.50", "method": "cash"
        })
        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["transactions"][-1]["receipt_number"].startswith("REC-")

    def test_charge_unknown_guest(self, client, receptionist_auth_headers):
        response = client.post("/folio/charges", headers=receptionist_auth_headers, json={
            "guest_id": 99999, "description": "Restaurant", "amount": "100"
        })
        assert response.status_code == 404

    def test_housekeeping_cannot_post(self, client, housekeeping_auth_headers, sample_guest):
        response = client.post("/folio/charges", headers=housekeeping_auth_headers, json={
            "guest_id": sample_guest.id, "description": "Restaurant", "amount": "100"
        })
        assert response.status_code == 403


class TestMoveAndFolio:

    def test_move(self, client, receptionist_auth_headers, room_101, room_102):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]

        response = client.post("/folio/move", headers=receptionist_auth_headers, json={
            "guest_id": guest_id, "old_room_id": room_101.id, "new_room_id": room_102.id
        })

        assert response.status_code == 200
        assert response.json()["room"]["room_number"] == "102"

    def test_guest_folio(self, client, receptionist_auth_headers, housekeeping_auth_headers,
                         room_101):
        guest_id = _check_in(client, receptionist_auth_headers, room_101.id).json()["guest"]["id"]

        response = client.get(f"/folio/guests/{guest_id}", headers=housekeeping_auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total_charges"]) == Decimal("21500")
        assert data["room"]["room_number"] == "101"

    def test_guest_folio_not_found(self, client, receptionist_auth_headers):
        response = client.get("/folio/guests/99999", headers=receptionist_auth_headers)
        assert response.status_code == 404
