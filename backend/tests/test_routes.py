"""
HTTP layer tests.

Verifies:
- Unauthenticated requests return 401
- Role checks return 403 with "Permission denied"
- Service errors map to 400 / 403 / 404 / 409 JSON bodies
- A table order can be taken, discounted, paid and reported end to end
"""

import pytest


def _create_order(client, headers, seed, **extra):
    body = {"outlet_id": seed.outlet.id}
    body.update(extra)
    return client.post("/api/orders", json=body, headers=headers)


def _add_item(client, headers, order_id, menu_item_id, quantity=1):
    return client.post(
        f"/api/orders/{order_id}/items",
        json={"menu_item_id": menu_item_id, "quantity": quantity},
        headers=headers,
    )


def _scenario_order(client, headers, seed):
    order_id = _create_order(client, headers, seed, table_id=seed.t1.id).json["order"]["id"]
    _add_item(client, headers, order_id, seed.sandwich.id, 2)
    _add_item(client, headers, order_id, seed.iced_tea.id, 1)
    return order_id


# =============================================================================
# AUTHENTICATION - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("POST", "/api/orders/1/items"),
            ("POST", "/api/orders/1/void"),
            ("POST", "/api/orders/1/payments"),
            ("GET", "/api/kitchen/1/orders"),
            ("POST", "/api/shifts"),
            ("GET", "/api/shifts/current"),
            ("GET", "/api/tables/1"),
            ("POST", "/api/auth/verify-pin"),
        ],
    )
    def test_requires_auth(self, client, seed, method, path):
        response = client.open(path, method=method, json={})
        assert response.status_code == 401
        assert response.json["error"] == "Authentication required"

    def test_bad_token(self, client, seed):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.json["error"] == "Invalid or expired token"


class TestLogin:
    def test_login(self, client, seed):
        response = client.post("/api/auth/login", json={"username": "server", "password": "Password123!"})
        assert response.status_code == 200
        assert response.json["user"]["username"] == "server"
        assert response.json["token"]
        assert response.json["expires_at"].endswith("Z")

    def test_wrong_password(self, client, seed):
        response = client.post("/api/auth/login", json={"username": "server", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json["error"] == "Invalid credentials"

    def test_missing_fields(self, client, seed):
        response = client.post("/api/auth/login", json={"username": "server"})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, server_headers):
        assert client.post("/api/auth/logout", headers=server_headers).status_code == 200
        assert client.get("/api/orders", headers=server_headers).status_code == 401


# =============================================================================
# ROLES - 403
# =============================================================================


class TestRoleChecks:
    def test_kitchen_cannot_take_orders(self, client, cook_headers, seed):
        response = _create_order(client, cook_headers, seed)
        assert response.status_code == 403
        assert response.json["error"] == "Permission denied"

    def test_server_cannot_open_shift(self, client, server_headers, seed):
        response = client.post(
            "/api/shifts", json={"outlet_id": seed.outlet.id, "starting_cash": "100.00"}, headers=server_headers,
        )
        assert response.status_code == 403

    def test_cashier_cannot_work_the_kitchen(self, client, cashier_headers, server_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        response = client.post(f"/api/kitchen/orders/{order_id}/ready", headers=cashier_headers)
        assert response.status_code == 403

    def test_server_cannot_read_shift_reports(self, client, server_headers, cashier_headers, seed):
        shift_id = client.post(
            "/api/shifts", json={"outlet_id": seed.outlet.id, "starting_cash": "100.00"}, headers=cashier_headers,
        ).json["shift"]["id"]
        assert client.get(f"/api/shifts/{shift_id}/report", headers=server_headers).status_code == 403


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:
    def test_not_found(self, client, server_headers):
        response = client.get("/api/orders/99999", headers=server_headers)
        assert response.status_code == 404
        assert response.json == {"error": "Order not found"}

    def test_unavailable_item_is_a_conflict(self, client, server_headers, seed):
        order_id = _create_order(client, server_headers, seed).json["order"]["id"]
        response = _add_item(client, server_headers, order_id, seed.sold_out.id)
        assert response.status_code == 409
        assert response.json["error"] == 'Menu item "Lobster Thermidor" is unavailable: Out of stock'

    def test_fractional_quantity_rejected(self, client, server_headers, seed):
        order_id = _create_order(client, server_headers, seed).json["order"]["id"]
        response = client.post(
            f"/api/orders/{order_id}/items",
            json={"menu_item_id": seed.sandwich.id, "quantity": 1.5},
            headers=server_headers,
        )
        assert response.status_code == 400

    def test_missing_outlet(self, client, server_headers):
        response = client.post("/api/orders", json={}, headers=server_headers)
        assert response.status_code == 400

    def test_busy_table(self, client, server_headers, seed):
        _create_order(client, server_headers, seed, table_id=seed.t1.id)
        response = _create_order(client, server_headers, seed, table_id=seed.t1.id)
        assert response.status_code == 409
        assert response.json["error"] == "Table already has an active order"

    def test_out_of_range_amounts_are_bad_requests(self, client, server_headers, cashier_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)

        tip = client.post(f"/api/orders/{order_id}/tip", json={"amount": 1e30}, headers=server_headers)
        assert tip.status_code == 400
        assert tip.json["error"] == "Tip amount must be a number"

        paid = client.post(
            f"/api/orders/{order_id}/payments",
            json={"method": "CASH", "amount": 1e30},
            headers=cashier_headers,
        )
        assert paid.status_code == 400
        assert paid.json["error"] == "Payment amount must be a number"

        order = client.get(f"/api/orders/{order_id}", headers=server_headers).json["order"]
        assert order["status"] == "OPEN"
        assert order["tip_amount"] == "0.00"

    def test_partial_flag_must_be_boolean(self, client, server_headers, cashier_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        response = client.post(
            f"/api/orders/{order_id}/payments",
            json={"method": "CASH", "amount": "100.00", "partial": "false"},
            headers=cashier_headers,
        )
        assert response.status_code == 400
        assert response.json["error"] == "partial must be true or false"

    def test_illegal_status_change(self, client, server_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        response = client.post(f"/api/orders/{order_id}/status", json={"status": "SERVED"}, headers=server_headers)
        assert response.status_code == 409
        assert response.json["details"] == {"current_status": "OPEN", "requested_status": "SERVED"}


# =============================================================================
# APPROVALS
# =============================================================================


class TestApprovals:
    def test_verify_pin(self, client, cashier_headers):
        ok = client.post("/api/auth/verify-pin", json={"pin": "1234"}, headers=cashier_headers)
        assert ok.status_code == 200
        assert ok.json["approver_name"] == "Maria Manager"

        bad = client.post("/api/auth/verify-pin", json={"pin": "0000"}, headers=cashier_headers)
        assert bad.status_code == 403
        assert bad.json == {"success": False, "error": "Invalid manager PIN"}

    def test_void_needs_manager_pin(self, client, server_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)

        no_pin = client.post(f"/api/orders/{order_id}/void", json={"reason": "Wrong table"}, headers=server_headers)
        assert no_pin.status_code == 403

        wrong = client.post(
            f"/api/orders/{order_id}/void",
            json={"reason": "Wrong table", "manager_pin": "0000"},
            headers=server_headers,
        )
        assert wrong.status_code == 403

        ok = client.post(
            f"/api/orders/{order_id}/void",
            json={"reason": "Wrong table", "manager_pin": "1234"},
            headers=server_headers,
        )
        assert ok.status_code == 200
        assert ok.json["order"]["status"] == "VOID"

    def test_preset_discount_with_pin(self, client, server_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        response = client.post(
            f"/api/orders/{order_id}/discount",
            json={"discount_type_id": seed.manager_special.id, "manager_pin": "1234"},
            headers=server_headers,
        )
        assert response.status_code == 200
        assert response.json["order"]["discount_amount"] == "200.00"


# =============================================================================
# END TO END
# =============================================================================


class TestEndToEnd:
    def test_order_to_payment(self, client, server_headers, cashier_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)

        order = client.get(f"/api/orders/{order_id}", headers=server_headers).json["order"]
        assert order["subtotal"] == "600.00"
        assert order["total"] == "732.00"
        assert len(order["items"]) == 2

        discounted = client.post(
            f"/api/orders/{order_id}/discount",
            json={"type": "FIXED_AMOUNT", "value": "50.00", "reason": "Late food"},
            headers=server_headers,
        )
        assert discounted.json["order"]["total"] == "682.00"

        paid = client.post(
            f"/api/orders/{order_id}/payments",
            json={"method": "CASH", "amount": "700.00"},
            headers=cashier_headers,
        )
        assert paid.status_code == 201
        assert paid.json["change_due"] == "18.00"
        assert paid.json["order"]["status"] == "PAID"

        table = client.get(f"/api/tables/{seed.t1.id}", headers=server_headers).json
        assert table["table"]["status"] == "DIRTY"
        assert table["active_order"] is None

        bussed = client.post(f"/api/tables/{seed.t1.id}/status", json={"status": "AVAILABLE"}, headers=server_headers)
        assert bussed.json["table"]["status"] == "AVAILABLE"

        payments = client.get(f"/api/orders/{order_id}/payments", headers=server_headers).json
        assert payments["total_paid"] == "682.00"
        assert payments["remaining_balance"] == "0.00"

    def test_split_payment(self, client, server_headers, cashier_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        response = client.post(
            f"/api/orders/{order_id}/payments",
            json={"payments": [
                {"method": "CREDIT_CARD", "amount": "432.00", "reference": "AUTH-1"},
                {"method": "CASH", "amount": "300.00"},
            ]},
            headers=cashier_headers,
        )
        assert response.status_code == 201
        assert response.json["fully_paid"] is True
        assert [p["method"] for p in response.json["payments"]] == ["CREDIT_CARD", "CASH"]

    def test_kitchen_flow(self, client, server_headers, cook_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        client.post(f"/api/orders/{order_id}/send-to-kitchen", headers=server_headers)

        queue = client.get(f"/api/kitchen/{seed.outlet.id}/orders", headers=cook_headers).json
        assert queue["count"] == 1
        item_id = queue["orders"][0]["items"][0]["id"]

        started = client.post(f"/api/kitchen/items/{item_id}/status", json={"status": "PREPARING"}, headers=cook_headers)
        assert started.json["order_status"] == "IN_PROGRESS"

        ready = client.post(f"/api/kitchen/orders/{order_id}/ready", headers=cook_headers)
        assert ready.json["order"]["status"] == "READY"

        served = client.post(f"/api/orders/{order_id}/status", json={"status": "SERVED"}, headers=server_headers)
        assert served.json["order"]["status"] == "SERVED"

    def test_kitchen_stations_and_stats(self, client, server_headers, cook_headers, seed):
        order_id = _scenario_order(client, server_headers, seed)
        client.post(f"/api/orders/{order_id}/send-to-kitchen", headers=server_headers)

        stations = client.get(f"/api/kitchen/{seed.outlet.id}/stations", headers=cook_headers).json["stations"]
        assert sorted(stations) == ["Drinks", "Mains"]

        stats = client.get(f"/api/kitchen/{seed.outlet.id}/stats", headers=cook_headers).json
        assert stats["total_orders"] == 1
        assert stats["sent_items"] == 2


class TestShiftRoutes:
    def test_shift_cycle(self, client, cashier_headers, seed):
        opened = client.post(
            "/api/shifts", json={"outlet_id": seed.outlet.id, "starting_cash": "1000.00"}, headers=cashier_headers,
        )
        assert opened.status_code == 201
        shift_id = opened.json["shift"]["id"]

        again = client.post(
            "/api/shifts", json={"outlet_id": seed.outlet.id, "starting_cash": "1000.00"}, headers=cashier_headers,
        )
        assert again.status_code == 409

        current = client.get("/api/shifts/current", headers=cashier_headers).json
        assert current["shift"]["id"] == shift_id

        reading = client.get(f"/api/shifts/{shift_id}/x-reading", headers=cashier_headers).json
        assert reading["reading_type"] == "X"

        recorded = client.post(f"/api/shifts/{shift_id}/readings", headers=cashier_headers)
        assert recorded.status_code == 201
        assert recorded.json["reading"]["reading_number"] == 1

        closed = client.post(f"/api/shifts/{shift_id}/close", json={"ending_cash": "1010.00"}, headers=cashier_headers)
        assert closed.status_code == 200
        assert closed.json["shift"]["variance"] == "10.00"

        assert client.get("/api/shifts/current", headers=cashier_headers).json["shift"] is None

        history = client.get(f"/api/shifts/{shift_id}/readings", headers=cashier_headers).json
        assert [r["reading_type"] for r in history["readings"]] == ["Z", "X"]

    def test_health(self, client, seed):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["details"]["active_outlets"] == 2
