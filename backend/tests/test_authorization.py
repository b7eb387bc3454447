"""
Authorization tests.

Verifies:
- Protected endpoints return 401 without a session
- Cashier role is denied back-office operations (403)
- Manager role can perform them
- Suspended staff lose access immediately
"""

import pytest

from counterpos.services import staff_service

from conftest import auth_headers, login


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/staff"),
            ("POST", "/api/staff"),
            ("GET", "/api/staff/1"),
            ("PUT", "/api/staff/1"),
            ("DELETE", "/api/staff/1"),
            ("GET", "/api/staff/session/current"),
            ("POST", "/api/tax-rates"),
            ("PUT", "/api/tax-rates/1"),
            ("DELETE", "/api/tax-rates/1"),
            ("POST", "/api/tax-rates/1/default"),
            ("POST", "/api/orders"),
            ("POST", "/api/orders/quote"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("GET", "/api/orders/status/pending"),
            ("PUT", "/api/orders/1/status"),
            ("DELETE", "/api/orders/1"),
            ("POST", "/api/products"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("POST", "/api/customers"),
            ("PUT", "/api/customers/1"),
            ("DELETE", "/api/customers/1"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    @pytest.mark.parametrize("path", ["/health", "/api/ping", "/api/tax-rates", "/api/products", "/api/customers"])
    def test_public_endpoints(self, client, db_session, path):
        assert client.get(path).status_code == 200


# =============================================================================
# CASHIER DENIED BACK-OFFICE OPERATIONS (403)
# =============================================================================


class TestCashierDenied:
    """Cashier role cannot manage staff, tax rates or delete orders."""

    def test_cannot_list_staff(self, client, cashier_headers):
        resp = client.get("/api/staff", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_roles"] == ["Manager", "Admin"]

    def test_cannot_create_staff(self, client, cashier_headers):
        resp = client.post("/api/staff", headers=cashier_headers, json={"name": "X", "role": "Admin", "pin": "1234"})
        assert resp.status_code == 403

    def test_cannot_set_default_tax_rate(self, client, cashier_headers, gst):
        resp = client.post(f"/api/tax-rates/{gst.id}/default", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_delete_order(self, client, cashier_headers):
        assert client.delete("/api/orders/1", headers=cashier_headers).status_code == 403


class TestManagerAllowed:

    def test_can_list_staff(self, client, manager_headers, cashier):
        resp = client.get("/api/staff", headers=manager_headers)
        assert resp.status_code == 200
        assert {s["email"] for s in resp.get_json()} == {"manager@shop.test", "cashier@shop.test"}

    def test_supervisor_manages_tax_rates(self, client, make_staff):
        make_staff("Supervisor", email="super@shop.test")
        headers = auth_headers(login(client, "super@shop.test"))
        resp = client.post("/api/tax-rates", headers=headers, json={"name": "GST", "rate": 17})
        assert resp.status_code == 201

    def test_supervisor_cannot_manage_staff(self, client, make_staff):
        make_staff("Supervisor", email="super@shop.test")
        headers = auth_headers(login(client, "super@shop.test"))
        assert client.get("/api/staff", headers=headers).status_code == 403


class TestSessionRevocation:

    def test_suspended_staff_loses_access(self, client, cashier, cashier_headers):
        assert client.get("/api/orders", headers=cashier_headers).status_code == 200

        staff_service.update_staff(cashier.id, {"status": "suspended"})

        assert client.get("/api/orders", headers=cashier_headers).status_code == 401

    def test_logged_out_token_rejected(self, client, cashier, cashier_headers):
        client.post("/api/staff/logout", json={"staffId": cashier.id})
        assert client.get("/api/orders", headers=cashier_headers).status_code == 401
