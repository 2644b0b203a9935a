"""
客人管理 API 测试
"""
from decimal import Decimal


class TestGuests:

    def test_list_with_balance(self, client, receptionist_auth_headers, checked_in, sample_guest):
        response = client.get("/guests", headers=receptionist_auth_headers)
        assert response.status_code == 200
        balances = {g["name"]: Decimal(g["balance"]) for g in response.json()}
        assert balances == {"Ada Obi": Decimal("21500"), "Chinedu Okafor": Decimal("0")}

    def test_search(self, client, receptionist_auth_headers, checked_in, sample_guest):
        response = client.get("/guests", headers=receptionist_auth_headers,
                              params={"search": "Okafor"})
        assert [g["id"] for g in response.json()] == [sample_guest.id]

    def test_get(self, client, housekeeping_auth_headers, sample_guest):
        response = client.get(f"/guests/{sample_guest.id}", headers=housekeeping_auth_headers)
        assert response.status_code == 200
        assert response.json()["loyalty_tier"] == "bronze"

    def test_get_not_found(self, client, receptionist_auth_headers):
        response = client.get("/guests/99999", headers=receptionist_auth_headers)
        assert response.status_code == 404

    def test_update(self, client, receptionist_auth_headers, sample_guest):
        response = client.put(f"/guests/{sample_guest.id}", headers=receptionist_auth_headers,
                              json={"email": "chinedu@example.com", "is_vip": True})
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "chinedu@example.com"
        assert data["is_vip"] is True

    def test_update_cannot_touch_points(self, client, receptionist_auth_headers, sample_guest):
        response = client.put(f"/guests/{sample_guest.id}", headers=receptionist_auth_headers,
                              json={"loyalty_points": 9999})
        assert response.status_code == 200
        assert response.json()["loyalty_points"] == 0

    def test_update_not_found(self, client, receptionist_auth_headers):
        response = client.put("/guests/99999", headers=receptionist_auth_headers,
                              json={"email": "x@example.com"})
        assert response.status_code == 404
