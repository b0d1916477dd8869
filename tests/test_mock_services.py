"""Tests for the local stand-ins of the partner API and the Shopify Admin API."""

from fastapi.testclient import TestClient

from mock_services import mock_partner_service, mock_shopify_admin
from redemption_service.clients import ORDER_UPDATE_MUTATION, PARTNER_SAVE_PATH, order_gid

TOKEN = {"X-Shopify-Access-Token": mock_shopify_admin.ACCESS_TOKEN}


def order_update(order_id, note="Verification Code: A12345678"):
    return {"query": ORDER_UPDATE_MUTATION, "variables": {"input": {"id": order_gid(order_id), "note": note}}}


class TestMockPartnerService:

    client = TestClient(mock_partner_service.app)

    def test_accepts_code(self):
        response = self.client.post(PARTNER_SAVE_PATH, json={"membership_code": "A12345678"})
        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert "A12345678" in self.client.get("/codes").json()["codes"]

    def test_rejects_z_codes(self):
        response = self.client.post(PARTNER_SAVE_PATH, json={"membership_code": "Z12345678"})
        assert response.status_code == 422

    def test_simulated_outage(self):
        response = self.client.post(PARTNER_SAVE_PATH, json={"membership_code": "A12340000"})
        assert response.status_code == 503


class TestMockShopifyAdmin:

    client = TestClient(mock_shopify_admin.app)

    def test_order_update_echoes_note(self):
        response = self.client.post("/admin/api/2024-01/graphql.json", json=order_update("1001"), headers=TOKEN)
        order = response.json()["data"]["orderUpdate"]["order"]
        assert order == {"id": "gid://shopify/Order/1001", "note": "Verification Code: A12345678"}

    def test_user_errors_scenario(self):
        response = self.client.post("/admin/api/2024-01/graphql.json", json=order_update("4041"), headers=TOKEN)
        assert response.json()["data"]["orderUpdate"]["userErrors"]

    def test_missing_note_scenario(self):
        response = self.client.post("/admin/api/2024-01/graphql.json", json=order_update("2041"), headers=TOKEN)
        assert response.json()["data"]["orderUpdate"]["order"]["note"] is None

    def test_requires_access_token(self):
        response = self.client.post("/admin/api/2024-01/graphql.json", json=order_update("1001"))
        assert response.status_code == 401

    def test_orders_lookup_by_name(self):
        self.client.post("/admin/api/2024-01/graphql.json", json=order_update("1002", "Verification Code: B1"),
                         headers=TOKEN)
        response = self.client.get("/admin/api/2024-01/orders.json", params={"status": "any", "name": "#1002"},
                                   headers=TOKEN)
        assert response.json()["orders"] == [{"id": 1002, "name": "#1002", "note": "Verification Code: B1"}]
