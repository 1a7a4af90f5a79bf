"""
HTTP surface tests for seller, buyer and admin routes.

Verifies:
- Unauthenticated requests return 401, wrong role returns 403
- Typed service errors map to their status codes
- End-to-end order flow through the API
"""

import pytest

from marketplace.models import Role
from marketplace.services import inventory_service

from conftest import login_headers


LISTING_BODY = {
    "name": "Trolley 70",
    "description": "Large check-in",
    "material": "leather",
    "color": "tan",
    "height_cm": 70,
    "width_cm": 48,
    "depth_cm": 28,
    "rate": "100.00",
    "stock": 3,
}


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/v1/seller/listings"),
            ("POST", "/api/v1/seller/listings"),
            ("PATCH", "/api/v1/seller/rates"),
            ("GET", "/api/v1/products"),
            ("GET", "/api/v1/orders"),
            ("POST", "/api/v1/orders"),
            ("DELETE", "/api/v1/admin/accounts/1"),
            ("GET", "/api/v1/admin/operator-events"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


class TestRoleEnforcement:

    def test_buyer_cannot_create_listing(self, client, buyer):
        resp = client.post("/api/v1/seller/listings", json=LISTING_BODY, headers=login_headers(buyer))
        assert resp.status_code == 403

    def test_seller_cannot_place_order(self, client, seller):
        resp = client.post("/api/v1/orders", json={"listing_id": 1}, headers=login_headers(seller))
        assert resp.status_code == 403

    def test_seller_cannot_delete_accounts(self, client, seller, buyer):
        resp = client.delete(f"/api/v1/admin/accounts/{buyer.id}", headers=login_headers(seller))
        assert resp.status_code == 403


class TestSellerRoutes:

    def test_create_and_edit_listing(self, client, seller):
        headers = login_headers(seller)
        resp = client.post("/api/v1/seller/listings", json=LISTING_BODY, headers=headers)
        assert resp.status_code == 201
        listing = resp.json["listing"]
        assert listing["rate_cents"] == 10000
        assert listing["stock"] == 3

        resp = client.patch(
            f"/api/v1/seller/listings/{listing['id']}", json={"rate": "120.50"}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json["listing"]["rate_cents"] == 12050

        resp = client.patch(
            f"/api/v1/seller/listings/{listing['id']}", json={"stock": 99}, headers=headers
        )
        assert resp.status_code == 400

    def test_other_sellers_listing_is_forbidden(self, client, seller, make_account, make_listing):
        other = make_account(Role.SELLER)
        listing = make_listing(other)
        headers = login_headers(seller)

        assert client.get(f"/api/v1/seller/listings/{listing.id}", headers=headers).status_code == 403
        assert client.delete(f"/api/v1/seller/listings/{listing.id}", headers=headers).status_code == 403

    def test_mark_sold_and_restock(self, client, seller, make_listing):
        listing = make_listing(seller, stock=2)
        headers = login_headers(seller)

        resp = client.patch(f"/api/v1/seller/listings/{listing.id}/sold", headers=headers)
        assert resp.status_code == 200
        assert resp.json["listing"]["is_sold"] is True

        resp = client.post(
            f"/api/v1/seller/listings/{listing.id}/restock", json={"quantity": 5}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json["listing"]["stock"] == 5
        assert resp.json["listing"]["is_sold"] is False

    def test_rate_adjustment(self, client, seller, make_listing):
        make_listing(seller, material="leather", rate_cents=10000)
        make_listing(seller, material="leather", rate_cents=5000)
        headers = login_headers(seller)

        resp = client.patch(
            "/api/v1/seller/rates", json={"material": "leather", "percentage": 10}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json["matched_count"] == 2
        assert resp.json["modified_count"] == 2

        resp = client.patch(
            "/api/v1/seller/rates", json={"material": "fabric", "increase_amount": "5.00"}, headers=headers
        )
        assert resp.status_code == 404
        assert resp.json["details"]["matched_count"] == 0


class TestBuyerRoutes:

    def test_order_flow(self, client, buyer, seller, make_listing):
        listing = make_listing(seller, stock=3, rate_cents=15000)
        headers = login_headers(buyer)

        resp = client.get("/api/v1/products", headers=headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["products"]] == [listing.id]

        resp = client.post("/api/v1/orders", json={
            "listing_id": listing.id,
            "quantity": 2,
            "payment_method": "cod",
            "shipping_address": "7 Canal Street",
        }, headers=headers)
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["total_amount_cents"] == 30000

        resp = client.post("/api/v1/orders", json={
            "listing_id": listing.id,
            "quantity": 2,
            "payment_method": "cod",
            "shipping_address": "7 Canal Street",
        }, headers=headers)
        assert resp.status_code == 400
        assert resp.json["details"]["available"] == 1

        resp = client.patch(f"/api/v1/orders/{order['id']}/cancel", headers=headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "cancelled"
        assert inventory_service.get_listing(listing.id).stock == 3

        resp = client.patch(f"/api/v1/orders/{order['id']}/cancel", headers=headers)
        assert resp.status_code == 400

        resp = client.get("/api/v1/orders/stats", headers=headers)
        assert resp.json["stats"]["cancelled_orders"] == 1

    def test_other_buyers_order_is_not_found(self, client, buyer, make_account, seller, make_listing):
        listing = make_listing(seller, stock=2)
        resp = client.post("/api/v1/orders", json={
            "listing_id": listing.id, "payment_method": "online", "shipping_address": "A",
        }, headers=login_headers(buyer))
        order_id = resp.json["order"]["id"]

        intruder = make_account(Role.BUYER)
        resp = client.get(f"/api/v1/orders/{order_id}", headers=login_headers(intruder))
        assert resp.status_code == 404


class TestAdminRoutes:

    def test_delete_seller(self, client, admin, seller, make_listing):
        make_listing(seller)
        resp = client.delete(f"/api/v1/admin/accounts/{seller.id}", headers=login_headers(admin))
        assert resp.status_code == 200
        assert resp.json["deleted"]["listings_deleted"] == 1

    def test_self_deletion(self, client, admin):
        resp = client.delete(f"/api/v1/admin/accounts/{admin.id}", headers=login_headers(admin))
        assert resp.status_code == 400

    def test_advance_and_cancel_order(self, client, admin, buyer, seller, make_listing):
        listing = make_listing(seller, stock=2)
        resp = client.post("/api/v1/orders", json={
            "listing_id": listing.id, "payment_method": "cod", "shipping_address": "B",
        }, headers=login_headers(buyer))
        order_id = resp.json["order"]["id"]
        headers = login_headers(admin)

        resp = client.patch(f"/api/v1/admin/orders/{order_id}/status", json={"status": "shipped"}, headers=headers)
        assert resp.status_code == 400

        resp = client.patch(f"/api/v1/admin/orders/{order_id}/status", json={"status": "confirmed"}, headers=headers)
        assert resp.status_code == 200

        resp = client.patch(f"/api/v1/admin/orders/{order_id}/cancel", headers=headers)
        assert resp.status_code == 400

    def test_unverify_account(self, client, admin, buyer):
        buyer_headers = login_headers(buyer)
        resp = client.patch(
            f"/api/v1/admin/accounts/{buyer.id}/status", json={"is_verified": False},
            headers=login_headers(admin),
        )
        assert resp.status_code == 200
        assert client.get("/api/v1/orders", headers=buyer_headers).status_code == 401

    def test_operator_events_listed(self, client, admin):
        from marketplace.services import operator_service

        operator_service.report_inconsistency(
            event_type=operator_service.STOCK_RELEASE_FAILED,
            entity_type="order",
            entity_id=1,
            reason="test",
        )
        resp = client.get("/api/v1/admin/operator-events", headers=login_headers(admin))
        assert resp.status_code == 200
        assert resp.json["count"] == 1
