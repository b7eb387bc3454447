"""
Checkout and order lifecycle tests.

Verifies:
- Server-side pricing from catalog prices and the default tax rate
- Client totals are checked, never trusted
- Stock deduction, order numbering and aggregates
- Status machine, including restock on cancel
"""

import pytest

from counterpos.models import Customer, Order, Product, Staff
from counterpos.services import order_service
from counterpos.services.order_service import ALLOWED_TRANSITIONS, can_transition


def checkout(client, headers, **payload):
    return client.post("/api/orders", headers=headers, json=payload)


class TestStatusMachine:

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            ("pending", "processing", True),
            ("pending", "completed", True),
            ("pending", "cancelled", True),
            ("processing", "completed", True),
            ("processing", "cancelled", False),
            ("processing", "pending", False),
            ("completed", "cancelled", False),
            ("completed", "pending", False),
            ("cancelled", "pending", False),
            ("cancelled", "completed", False),
            ("pending", "pending", True),
            ("pending", "shipped", False),
        ],
    )
    def test_transitions(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_terminal_states(self):
        assert ALLOWED_TRANSITIONS["completed"] == frozenset()
        assert ALLOWED_TRANSITIONS["cancelled"] == frozenset()


class TestQuote:

    def test_quote_uses_catalog_and_default_tax(self, client, cashier_headers, product, gst):
        resp = client.post("/api/orders/quote", headers=cashier_headers, json={
            "items": [{"productId": product.id, "quantity": 3, "price": 1}],
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["subtotal"] == 30.0
        assert body["taxAmount"] == 3.0
        assert body["total"] == 33.0
        assert body["items"][0]["name"] == "Green Tea"

    def test_quote_does_not_touch_stock(self, client, cashier_headers, product, db_session):
        client.post("/api/orders/quote", headers=cashier_headers, json={
            "items": [{"productId": product.id, "quantity": 3}],
        })
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 20
        assert db_session.query(Order).count() == 0

    def test_quote_empty_cart(self, client, cashier_headers):
        resp = client.post("/api/orders/quote", headers=cashier_headers, json={"items": []})
        assert resp.status_code == 200
        assert resp.get_json()["total"] == 0.0

    def test_quote_huge_quantity_is_400(self, client, cashier_headers, product):
        resp = client.post("/api/orders/quote", headers=cashier_headers, json={
            "items": [{"productId": product.id, "quantity": 10**25}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "line 1: quantity cannot exceed 100,000"

    def test_quote_requires_session(self, client, db_session):
        assert client.post("/api/orders/quote", json={"items": []}).status_code == 401


class TestCheckout:

    def test_checkout_prices_and_persists(self, client, cashier, cashier_headers, product, gst, db_session):
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 3}],
                        subtotal=30, tax=3, total=33)
        assert resp.status_code == 201
        order = resp.get_json()

        assert order["orderNumber"] == "ORD-000001"
        assert order["status"] == "completed"
        assert order["completedAt"] is not None
        assert order["total"] == 33.0
        assert order["taxRate"] == 0.1
        assert order["taxRateId"] == gst.id
        assert order["staffId"] == cashier.id
        assert order["customer"] == "Walk-in"
        assert order["paymentMethod"] == "cash"
        assert order["items"][0]["price"] == 10.0

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 17
        staff = db_session.get(Staff, cashier.id)
        assert staff.total_sales == 33.0
        assert staff.total_transactions == 1

    def test_order_numbers_increase(self, client, cashier_headers, product):
        first = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        second = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        assert first.get_json()["orderNumber"] == "ORD-000001"
        assert second.get_json()["orderNumber"] == "ORD-000002"

    def test_client_order_number(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, orderNumber="ORD-000001",
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.get_json()["orderNumber"] == "ORD-000001"

        # Sequence skips numbers already taken
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        assert resp.get_json()["orderNumber"] == "ORD-000002"

        resp = checkout(client, cashier_headers, orderNumber="ORD-000001",
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Order number already exists"

    def test_client_price_is_ignored(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 2, "price": 0.01}])
        assert resp.get_json()["subtotal"] == 20.0

    def test_totals_mismatch_rejected(self, client, cashier_headers, product, gst, db_session):
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 3}],
                        subtotal=30, tax=0, total=30)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Order totals do not match server pricing"
        assert body["details"]["mismatched"] == ["tax", "total"]
        assert body["details"]["server"] == {"subtotal": 30.0, "tax": 3.0, "total": 33.0}

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 20
        assert db_session.query(Order).count() == 0

    def test_discounts(self, client, cashier_headers, second_product):
        resp = checkout(client, cashier_headers, items=[{
            "productId": second_product.id, "quantity": 1,
            "discount": {"type": "percentage", "value": 20, "reason": "loyalty"},
        }])
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["itemDiscountTotal"] == 10.0
        assert body["subtotalAfterDiscount"] == 40.0
        assert body["total"] == 40.0
        assert body["items"][0]["discount"] == {"type": "percentage", "value": 20.0, "reason": "loyalty"}

    def test_checkout_discount_too_large(self, client, cashier_headers, second_product):
        resp = checkout(client, cashier_headers,
                        items=[{"productId": second_product.id, "quantity": 1,
                                "discount": {"type": "percentage", "value": 20}}],
                        checkoutDiscount={"type": "fixed", "value": 100})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "checkout: Fixed discount cannot exceed subtotal"
        assert body["details"] == {"target": "checkout"}

    def test_empty_order(self, client, cashier_headers):
        resp = checkout(client, cashier_headers, items=[])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Order must contain at least one item"

    def test_unknown_product(self, client, cashier_headers, db_session):
        resp = checkout(client, cashier_headers, items=[{"productId": 999, "quantity": 1}])
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Product 999 not found"

    def test_inactive_product(self, client, cashier_headers, product, db_session):
        product.is_active = False
        db_session.commit()
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 404

    def test_insufficient_stock(self, client, cashier_headers, second_product, db_session):
        resp = checkout(client, cashier_headers, items=[
            {"productId": second_product.id, "quantity": 4},
            {"productId": second_product.id, "quantity": 2},
        ])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Insufficient stock for Mug. Available: 5, Requested: 6"
        db_session.expire_all()
        assert db_session.get(Product, second_product.id).stock == 5

    def test_explicit_tax_rate(self, client, cashier_headers, product, gst, db_session):
        from counterpos.models import TaxRate
        zero = TaxRate(name="Exempt", rate=0)
        db_session.add(zero)
        db_session.commit()

        resp = checkout(client, cashier_headers, taxRateId=zero.id,
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.get_json()["total"] == 10.0

        resp = checkout(client, cashier_headers, taxRateId=999,
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 404

    def test_no_tax_rates_means_zero_tax(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        body = resp.get_json()
        assert body["taxRate"] == 0.0
        assert body["taxRateId"] is None

    def test_customer_aggregates(self, client, cashier_headers, product, customer, db_session):
        resp = checkout(client, cashier_headers, customerId=customer.id, paymentMethod="card",
                        items=[{"productId": product.id, "quantity": 2}])
        assert resp.status_code == 201
        assert resp.get_json()["customer"] == "Sara Khan"

        db_session.expire_all()
        saved = db_session.get(Customer, customer.id)
        assert saved.total_orders == 1
        assert saved.total_spent == 20.0

    def test_unknown_customer(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, customerId=999,
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 404

    def test_malformed_customer_name(self, client, cashier_headers, product, db_session):
        resp = checkout(client, cashier_headers, customerName={"x": 1},
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "customerName must be a string"

    def test_walk_in_name_is_kept(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, customerName="  Bilal  ",
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.get_json()["customer"] == "Bilal"

    @pytest.mark.parametrize("product_id", [{"a": 1}, [1], "abc", True])
    def test_malformed_product_id(self, client, cashier_headers, product_id):
        resp = checkout(client, cashier_headers, items=[{"productId": product_id, "quantity": 1}])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "productId must be an integer"

    def test_failure_after_stock_deduction_rolls_back(self, client, cashier_headers, product, db_session):
        first = checkout(client, cashier_headers, orderNumber="R-1",
                         items=[{"productId": product.id, "quantity": 2}])
        assert first.status_code == 201

        # Stock is deducted before the order number is claimed
        second = checkout(client, cashier_headers, orderNumber="R-1",
                          items=[{"productId": product.id, "quantity": 5}])
        assert second.status_code == 400

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 18
        assert db_session.query(Order).count() == 1

    def test_bad_payment_method(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, paymentMethod="barter",
                        items=[{"productId": product.id, "quantity": 1}])
        assert resp.status_code == 400


class TestOrderLifecycle:

    def _pending(self, client, headers, product, customer=None, quantity=2):
        payload = {"status": "pending", "items": [{"productId": product.id, "quantity": quantity}]}
        if customer is not None:
            payload["customerId"] = customer.id
        resp = checkout(client, headers, **payload)
        assert resp.status_code == 201
        return resp.get_json()

    def test_pending_order_defers_aggregates(self, client, cashier, cashier_headers, product, customer, db_session):
        order = self._pending(client, cashier_headers, product, customer)
        assert order["status"] == "pending"
        assert order["completedAt"] is None

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 18
        assert db_session.get(Customer, customer.id).total_orders == 0
        assert db_session.get(Staff, cashier.id).total_transactions == 0

    def test_pending_to_processing_to_completed(self, client, cashier, cashier_headers, product, customer, db_session):
        order = self._pending(client, cashier_headers, product, customer)

        resp = client.put(f"/api/orders/{order['id']}/status", headers=cashier_headers, json={"status": "processing"})
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "processing"

        resp = client.put(f"/api/orders/{order['id']}/status", headers=cashier_headers, json={"status": "completed"})
        assert resp.status_code == 200
        assert resp.get_json()["completedAt"] is not None

        db_session.expire_all()
        assert db_session.get(Customer, customer.id).total_orders == 1
        assert db_session.get(Staff, cashier.id).total_sales == 20.0

    def test_cancel_restocks(self, client, cashier_headers, product, db_session):
        order = self._pending(client, cashier_headers, product, quantity=5)

        resp = client.put(f"/api/orders/{order['id']}/status", headers=cashier_headers, json={"status": "cancelled"})
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 20

    def test_terminal_status_is_final(self, client, cashier_headers, product):
        resp = checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])
        order_id = resp.get_json()["id"]

        resp = client.put(f"/api/orders/{order_id}/status", headers=cashier_headers, json={"status": "cancelled"})
        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"from": "completed", "to": "cancelled"}

        # Re-asserting the current status is a no-op
        resp = client.put(f"/api/orders/{order_id}/status", headers=cashier_headers, json={"status": "completed"})
        assert resp.status_code == 200

    def test_unknown_status(self, client, cashier_headers, product):
        order = self._pending(client, cashier_headers, product)
        resp = client.put(f"/api/orders/{order['id']}/status", headers=cashier_headers, json={"status": "shipped"})
        assert resp.status_code == 400

    def test_list_and_filter(self, client, cashier_headers, product):
        self._pending(client, cashier_headers, product, quantity=1)
        checkout(client, cashier_headers, items=[{"productId": product.id, "quantity": 1}])

        resp = client.get("/api/orders", headers=cashier_headers)
        assert [o["orderNumber"] for o in resp.get_json()] == ["ORD-000002", "ORD-000001"]

        pending = client.get("/api/orders/status/pending", headers=cashier_headers).get_json()
        assert [o["status"] for o in pending] == ["pending"]

        completed = client.get("/api/orders?status=completed", headers=cashier_headers).get_json()
        assert len(completed) == 1

        assert client.get("/api/orders/status/bogus", headers=cashier_headers).status_code == 400

    def test_get_order(self, client, cashier_headers, product):
        order = self._pending(client, cashier_headers, product)
        resp = client.get(f"/api/orders/{order['id']}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["orderNumber"] == order["orderNumber"]
        assert client.get("/api/orders/999", headers=cashier_headers).status_code == 404

    def test_delete_requires_manager(self, client, cashier_headers, manager_headers, product, db_session):
        order = self._pending(client, cashier_headers, product)

        assert client.delete(f"/api/orders/{order['id']}", headers=cashier_headers).status_code == 403
        assert client.delete(f"/api/orders/{order['id']}", headers=manager_headers).status_code == 200
        assert db_session.query(Order).count() == 0


class TestOrderService:

    def test_create_order_without_staff(self, product):
        order = order_service.create_order({"items": [{"productId": product.id, "quantity": 1}]})
        assert order.staff_id is None
        assert order.status == "completed"

    def test_completion_credits_acting_staff_when_unassigned(self, product, cashier, db_session):
        order = order_service.create_order({"status": "pending", "items": [{"productId": product.id, "quantity": 1}]})
        order_service.update_status(order.id, "completed", staff=cashier)

        db_session.expire_all()
        saved = db_session.get(Order, order.id)
        assert saved.staff_id == cashier.id
        assert db_session.get(Staff, cashier.id).total_transactions == 1
