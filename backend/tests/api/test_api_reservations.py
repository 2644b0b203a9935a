"""
预订管理 API 测试
"""
from datetime import date, timedelta


def _create(client, headers, room_type_id, **extra):
    payload = {
        "guest_name": "Bola Ade",
        "guest_phone": "+2348030000000",
        "check_in_date": date.today().isoformat(),
        "check_out_date": (date.today() + timedelta(days=2)).isoformat(),
        "room_type_id": room_type_id,
    }
    payload.update(extra)
    return client.post("/reservations", headers=headers, json=payload)


class TestReservations:

    def test_create_and_get(self, client, receptionist_auth_headers, standard_type):
        response = _create(client, receptionist_auth_headers, standard_type.id)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["room_type_name"] == "Standard"

        response = client.get(f"/reservations/{data['id']}", headers=receptionist_auth_headers)
        assert response.json()["reservation_no"] == data["reservation_no"]

    def test_invalid_dates(self, client, receptionist_auth_headers, standard_type):
        response = _create(
            client, receptionist_auth_headers, standard_type.id,
            check_out_date=date.today().isoformat()
        )
        assert response.status_code == 400

    def test_get_not_found(self, client, receptionist_auth_headers):
        response = client.get("/reservations/99999", headers=receptionist_auth_headers)
        assert response.status_code == 404

    def test_confirm_assign_cancel(self, client, receptionist_auth_headers, standard_type, room_101):
        reservation_id = _create(client, receptionist_auth_headers, standard_type.id).json()["id"]

        response = client.post(f"/reservations/{reservation_id}/confirm",
                               headers=receptionist_auth_headers)
        assert response.json()["status"] == "confirmed"

        response = client.post(f"/reservations/{reservation_id}/assign",
                               headers=receptionist_auth_headers, json={"room_id": room_101.id})
        assert response.json()["room_assigned"] == "101"

        response = client.post(f"/reservations/{reservation_id}/cancel",
                               headers=receptionist_auth_headers,
                               json={"cancel_reason": "flight cancelled"})
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["room_assigned"] is None

        response = client.post(f"/reservations/{reservation_id}/confirm",
                               headers=receptionist_auth_headers)
        assert response.status_code == 400

    def test_confirm_with_wrong_room_type(self, client, receptionist_auth_headers,
                                          standard_type, room_201):
        reservation_id = _create(client, receptionist_auth_headers, standard_type.id).json()["id"]
        response = client.post(f"/reservations/{reservation_id}/confirm",
                               headers=receptionist_auth_headers, json={"room_id": room_201.id})
        assert response.status_code == 400

    def test_no_show(self, client, receptionist_auth_headers, standard_type):
        reservation_id = _create(client, receptionist_auth_headers, standard_type.id).json()["id"]
        response = client.post(f"/reservations/{reservation_id}/no-show",
                               headers=receptionist_auth_headers)
        assert response.json()["status"] == "no_show"

    def test_update(self, client, receptionist_auth_headers, standard_type):
        reservation_id = _create(client, receptionist_auth_headers, standard_type.id).json()["id"]
        response = client.put(f"/reservations/{reservation_id}", headers=receptionist_auth_headers,
                              json={"adult_count": 2, "status": "confirmed"})
        assert response.status_code == 200
        data = response.json()
        assert data["adult_count"] == 2
        assert data["status"] == "confirmed"

    def test_update_to_checked_in_rejected(self, client, receptionist_auth_headers, standard_type):
        reservation_id = _create(client, receptionist_auth_headers, standard_type.id).json()["id"]
        response = client.put(f"/reservations/{reservation_id}", headers=receptionist_auth_headers,
                              json={"status": "checked_in"})
        assert response.status_code == 400

    def test_list_filter(self, client, receptionist_auth_headers, standard_type):
        _create(client, receptionist_auth_headers, standard_type.id)
        _create(client, receptionist_auth_headers, standard_type.id, guest_name="Kemi Lawal")

        response = client.get("/reservations", headers=receptionist_auth_headers,
                              params={"keyword": "Kemi"})
        assert len(response.json()) == 1

    def test_housekeeping_cannot_create(self, client, housekeeping_auth_headers, standard_type):
        response = _create(client, housekeeping_auth_headers, standard_type.id)
        assert response.status_code == 403
