import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.core.timeutils import utcnow
from storefront.main import create_app
from storefront.models.cart import Cart

API = "/api/v1"

ADDRESS = {
    "first_name": "Grace",
    "last_name": "Hopper",
    "address_line1": "1 Compiler Way",
    "city": "Arlington",
    "state": "Virginia",
    "postal_code": "22201",
    "country": "US",
}


@pytest.fixture()
def customer(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin")


class TestEnvelope:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "storefront-api"}

    def test_success_envelope(self, client, guest_headers):
        body = client.get(f"{API}/cart", headers=guest_headers).json()
        assert body["success"] is True
        assert body["message"] == "Cart retrieved"
        assert body["data"]["is_empty"] is True

    def test_request_validation_is_400_with_field_details(self, client, guest_headers):
        response = client.post(
            f"{API}/cart/items",
            json={"product_id": "not-a-uuid", "quantity": 0},
            headers=guest_headers,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        fields = {d["field"] for d in body["details"]}
        assert {"product_id", "quantity"} <= fields

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nope")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_unhandled_error_is_generic_500(self, settings, db):
        app = create_app(settings, db)

        @app.get("/boom")
        def boom():
            raise RuntimeError("secret internals")

        with TestClient(app, raise_server_exceptions=False) as c:
            response = c.get("/boom")
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "code": "SERVER_ERROR",
            "message": "Internal server error",
        }


class TestGuestCart:
    def test_requires_identity(self, client):
        response = client.get(f"{API}/cart")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_rejects_short_session_id(self, client):
        response = client.get(f"{API}/cart", headers={"X-Session-Id": "short"})
        assert response.status_code == 400

    def test_cart_flow(self, client, guest_headers, make_product, make_coupon):
        make_coupon(code="SAVE10")
        a = make_product(price=Decimal("10.00"))
        b = make_product(price=Decimal("5.00"))

        added = client.post(
            f"{API}/cart/items",
            json={"product_id": str(a.id), "quantity": 2},
            headers=guest_headers,
        )
        assert added.status_code == 201
        client.post(
            f"{API}/cart/items", json={"product_id": str(b.id)}, headers=guest_headers
        )

        cart = client.post(
            f"{API}/cart/coupon", json={"code": "save10"}, headers=guest_headers
        ).json()["data"]
        assert Decimal(cart["subtotal"]) == Decimal("25.00")
        assert Decimal(cart["discount"]) == Decimal("2.50")
        assert Decimal(cart["tax"]) == Decimal("2.00")
        assert Decimal(cart["total"]) == Decimal("34.50")

        summary = client.get(f"{API}/cart/summary", headers=guest_headers).json()["data"]
        assert summary["item_count"] == 3

        line = cart["items"][0]
        updated = client.put(
            f"{API}/cart/items/{line['id']}", json={"quantity": 0}, headers=guest_headers
        ).json()["data"]
        assert [i["product_id"] for i in updated["items"]] == [str(b.id)]

        cleared = client.delete(f"{API}/cart/clear", headers=guest_headers).json()["data"]
        assert cleared["is_empty"]
        assert cleared["coupon"] is None

    def test_unavailable_product_is_404(self, client, guest_headers, make_product):
        draft = make_product(status="draft")
        response = client.post(
            f"{API}/cart/items", json={"product_id": str(draft.id)}, headers=guest_headers
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_out_of_stock_is_400(self, client, guest_headers, make_product):
        product = make_product(stock_quantity=1)
        response = client.post(
            f"{API}/cart/items",
            json={"product_id": str(product.id), "quantity": 2},
            headers=guest_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INSUFFICIENT_STOCK"

    def test_validate_reports_and_fixes(
        self, client, guest_headers, make_product, session
    ):
        product = make_product(price=Decimal("10.00"))
        client.post(
            f"{API}/cart/items", json={"product_id": str(product.id)}, headers=guest_headers
        )
        product.price = Decimal("9.00")
        session.add(product)
        session.commit()

        report = client.post(f"{API}/cart/validate", headers=guest_headers).json()
        assert report["message"] == "Cart has issues"
        assert report["data"]["is_valid"] is False

        fixed = client.post(f"{API}/cart/validate?fix=true", headers=guest_headers).json()
        assert fixed["data"]["fixed"] is True
        assert Decimal(fixed["data"]["cart"]["items"][0]["unit_price"]) == Decimal("9.00")


class TestUserCart:
    def test_token_wins_over_session_header(
        self, client, customer, auth_headers, guest_headers, make_product
    ):
        product = make_product()
        headers = {**auth_headers(customer), **guest_headers}
        cart = client.post(
            f"{API}/cart/items", json={"product_id": str(product.id)}, headers=headers
        ).json()["data"]
        assert cart["user_id"] == str(customer.id)
        assert cart["session_id"] is None

    def test_explicit_merge(
        self, client, customer, auth_headers, guest_headers, make_product
    ):
        product = make_product()
        client.post(
            f"{API}/cart/items",
            json={"product_id": str(product.id), "quantity": 3},
            headers=guest_headers,
        )
        response = client.post(
            f"{API}/cart/merge",
            json={"session_id": guest_headers["X-Session-Id"], "policy": "replace"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["replaced"] == 1
        assert data["cart"]["item_count"] == 3

    def test_merge_requires_auth(self, client, guest_headers):
        response = client.post(
            f"{API}/cart/merge", json={"session_id": guest_headers["X-Session-Id"]}
        )
        assert response.status_code == 401


class TestAdminEndpoints:
    def test_sweep_is_admin_only(self, client, customer, admin, auth_headers):
        assert client.post(f"{API}/cart/sweep", headers=auth_headers(customer)).status_code == 403
        response = client.post(f"{API}/cart/sweep", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["data"] == {"abandoned": 0, "deleted": 0}

    def test_sweep_deletes_expired_guest_cart(
        self, client, admin, auth_headers, guest_headers, make_product, session
    ):
        product = make_product()
        cart_id = client.post(
            f"{API}/cart/items", json={"product_id": str(product.id)}, headers=guest_headers
        ).json()["data"]["id"]
        cart = session.get(Cart, uuid.UUID(cart_id))
        cart.expires_at = utcnow() - timedelta(hours=1)
        session.add(cart)
        session.commit()

        result = client.post(f"{API}/cart/sweep", headers=auth_headers(admin)).json()["data"]
        assert result["deleted"] == 1

    def test_coupons(self, client, customer, admin, auth_headers):
        payload = {"code": "welcome5", "type": "fixed", "value": "5.00"}
        assert client.post(
            f"{API}/coupons", json=payload, headers=auth_headers(customer)
        ).status_code == 403

        created = client.post(f"{API}/coupons", json=payload, headers=auth_headers(admin))
        assert created.status_code == 201
        assert created.json()["data"]["code"] == "WELCOME5"

        duplicate = client.post(f"{API}/coupons", json=payload, headers=auth_headers(admin))
        assert duplicate.status_code == 409

        listed = client.get(f"{API}/coupons", headers=auth_headers(admin)).json()["data"]
        assert [c["code"] for c in listed] == ["WELCOME5"]

    def test_coupon_rejects_oversized_percentage(self, client, admin, auth_headers):
        response = client.post(
            f"{API}/coupons",
            json={"code": "HUGE", "type": "percentage", "value": "150"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400


class TestProducts:
    def test_public_listing_hides_unpurchasable(self, client, make_product, admin, auth_headers):
        visible = make_product()
        make_product(status="draft")
        make_product(visibility="private")

        public = client.get(f"{API}/products").json()["data"]
        assert [p["id"] for p in public["items"]] == [str(visible.id)]
        assert public["total"] == 1

        everything = client.get(f"{API}/products", headers=auth_headers(admin)).json()["data"]
        assert everything["total"] == 3

    def test_get_by_slug(self, client, make_product):
        product = make_product(slug="blue-mug")
        data = client.get(f"{API}/products/blue-mug").json()["data"]
        assert data["id"] == str(product.id)
        assert data["in_stock"] is True

    def test_admin_crud(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        created = client.post(
            f"{API}/products",
            json={
                "name": "Enamel Mug",
                "sku": "MUG-001",
                "price": "12.00",
                "stock_quantity": 5,
                "status": "active",
                "images": [{"url": "http://img/a.png"}, {"url": "http://img/b.png", "is_main": True}],
            },
            headers=headers,
        )
        assert created.status_code == 201
        product = created.json()["data"]
        assert product["slug"] == "enamel-mug"
        assert [i["is_main"] for i in product["images"]] == [False, True]

        conflict = client.post(
            f"{API}/products",
            json={"name": "Other Mug", "sku": "MUG-001", "price": "3.00"},
            headers=headers,
        )
        assert conflict.status_code == 409

        patched = client.patch(
            f"{API}/products/{product['id']}", json={"price": "14.00"}, headers=headers
        ).json()["data"]
        assert Decimal(patched["price"]) == Decimal("14.00")

        assert client.delete(f"{API}/products/{product['id']}", headers=headers).status_code == 200
        assert client.get(f"{API}/products/{product['id']}").status_code == 404


class TestOrdersApi:
    def test_checkout_and_lifecycle(
        self, client, customer, admin, auth_headers, make_product
    ):
        product = make_product(price=Decimal("100.00"), stock_quantity=10)
        headers = auth_headers(customer)
        client.post(f"{API}/cart/items", json={"product_id": str(product.id)}, headers=headers)

        placed = client.post(
            f"{API}/orders",
            json={"shipping_address": ADDRESS, "payment_method": "paypal"},
            headers=headers,
        )
        assert placed.status_code == 201
        order = placed.json()["data"]
        assert Decimal(order["total"]) == Decimal("108.00")

        listed = client.get(f"{API}/orders", headers=headers).json()["data"]
        assert [o["order_number"] for o in listed["items"]] == [order["order_number"]]
        assert client.get(f"{API}/orders/{order['order_number']}", headers=headers).status_code == 200

        forbidden = client.patch(
            f"{API}/orders/{order['id']}/status", json={"status": "shipped"}, headers=headers
        )
        assert forbidden.status_code == 403

        payment = client.patch(
            f"{API}/orders/{order['id']}/payment",
            json={"payment_status": "paid"},
            headers=headers,
        )
        assert payment.status_code == 403

        paid = client.patch(
            f"{API}/orders/{order['id']}/payment",
            json={"payment_status": "paid"},
            headers=auth_headers(admin),
        ).json()["data"]
        assert paid["status"] == "confirmed"

        skipped = client.patch(
            f"{API}/orders/{order['id']}/status",
            json={"status": "delivered"},
            headers=auth_headers(admin),
        )
        assert skipped.status_code == 409
        assert skipped.json()["code"] == "INVALID_TRANSITION"

    def test_checkout_with_empty_cart(self, client, customer, auth_headers):
        response = client.post(
            f"{API}/orders",
            json={"shipping_address": ADDRESS, "payment_method": "paypal"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cart is empty"

    def test_guests_cannot_check_out(self, client, guest_headers):
        response = client.post(
            f"{API}/orders",
            json={"shipping_address": ADDRESS, "payment_method": "paypal"},
            headers=guest_headers,
        )
        assert response.status_code == 401

    def test_invalid_address(self, client, customer, auth_headers):
        response = client.post(
            f"{API}/orders",
            json={
                "shipping_address": dict(ADDRESS, address_line1="x"),
                "payment_method": "paypal",
            },
            headers=auth_headers(customer),
        )
        assert response.status_code == 400
        fields = [d["field"] for d in response.json()["details"]]
        assert "shipping_address.address_line1" in fields


class TestWishlistsApi:
    def test_share_and_view_publicly(self, client, customer, auth_headers, make_product):
        headers = auth_headers(customer)
        product = make_product()
        added = client.post(
            f"{API}/wishlists/default/products/{product.id}", headers=headers
        )
        assert added.status_code == 200
        assert added.json()["data"]["added"] is True

        shared = client.post(f"{API}/wishlists/default/share", headers=headers).json()["data"]
        public = client.get(f"{API}/wishlists/shared/{shared['share_token']}")
        assert public.status_code == 200
        assert public.json()["data"]["item_count"] == 1

    def test_requires_auth(self, client):
        assert client.get(f"{API}/wishlists").status_code == 401

    def test_delete_default_conflicts(self, client, customer, auth_headers):
        headers = auth_headers(customer)
        default = client.get(f"{API}/wishlists/default", headers=headers).json()["data"]
        response = client.delete(f"{API}/wishlists/{default['id']}", headers=headers)
        assert response.status_code == 409
