import pytest

from storefront.core.auth import ACCESS, REFRESH, decode_token

API = "/api/v1"
PASSWORD = "Secret123!"


def register(client, email="new.customer@example.com", password="Str0ng!pass"):
    return client.post(
        f"{API}/auth/register",
        json={
            "email": email,
            "password": password,
            "confirm_password": password,
            "first_name": "New",
            "last_name": "Customer",
        },
    )


def login(client, email, password=PASSWORD, headers=None):
    return client.post(
        f"{API}/auth/login", json={"email": email, "password": password}, headers=headers
    )


class TestRegister:
    def test_register_returns_user_and_tokens(self, client, settings):
        response = register(client)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["user"]["email"] == "new.customer@example.com"
        assert data["user"]["role"] == "customer"
        assert "password_hash" not in data["user"]

        claims = decode_token(data["tokens"]["access_token"], ACCESS, settings)
        assert claims["sub"] == data["user"]["id"]
        assert claims["role"] == "customer"
        assert claims["iss"] == settings.JWT_ISSUER

    def test_duplicate_email_conflicts(self, client):
        register(client)
        response = register(client, email="New.Customer@example.com")
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "NoDigits!!", "NoSpecial11"])
    def test_weak_password_rejected(self, client, password):
        response = register(client, password=password)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_password_mismatch(self, client):
        response = client.post(
            f"{API}/auth/register",
            json={
                "email": "mismatch@example.com",
                "password": "Str0ng!pass",
                "confirm_password": "Str0ng!pasS",
                "first_name": "Mis",
                "last_name": "Match",
            },
        )
        assert response.status_code == 400


class TestLogin:
    def test_login_and_me(self, client, make_user):
        user = make_user(email="ada@example.com")
        response = login(client, "ADA@example.com")
        assert response.status_code == 200
        token = response.json()["data"]["tokens"]["access_token"]

        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["id"] == str(user.id)
        assert me.json()["data"]["last_login_at"] is not None

    def test_wrong_password(self, client, make_user):
        user = make_user()
        response = login(client, user.email, "Wrong123!")
        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_unknown_email_looks_the_same(self, client, make_user):
        user = make_user()
        wrong_password = login(client, user.email, "Wrong123!").json()["message"]
        unknown = login(client, "nobody@example.com", "Wrong123!").json()["message"]
        assert wrong_password == unknown

    def test_lockout_after_five_failures(self, client, make_user, settings):
        user = make_user()
        for _ in range(settings.MAX_LOGIN_ATTEMPTS):
            assert login(client, user.email, "Wrong123!").status_code == 401

        locked = login(client, user.email)
        assert locked.status_code == 401
        assert "locked" in locked.json()["message"]
        assert "lock_until" in locked.json()["details"]

    def test_success_resets_failure_count(self, client, make_user, settings):
        user = make_user()
        for _ in range(settings.MAX_LOGIN_ATTEMPTS - 1):
            login(client, user.email, "Wrong123!")
        assert login(client, user.email).status_code == 200
        for _ in range(settings.MAX_LOGIN_ATTEMPTS - 1):
            login(client, user.email, "Wrong123!")
        assert login(client, user.email).status_code == 200

    def test_inactive_account(self, client, make_user):
        user = make_user(is_active=False)
        assert login(client, user.email).status_code == 401

    def test_login_merges_guest_cart(self, client, make_user, make_product, guest_headers):
        user = make_user()
        product = make_product()
        client.post(
            f"{API}/cart/items",
            json={"product_id": str(product.id), "quantity": 2},
            headers=guest_headers,
        )

        response = login(client, user.email, headers=guest_headers)
        merge = response.json()["data"]["cart_merge"]
        assert merge["policy"] == "merge"
        assert merge["merged"] == 1

        token = response.json()["data"]["tokens"]["access_token"]
        cart = client.get(f"{API}/cart", headers={"Authorization": f"Bearer {token}"})
        items = cart.json()["data"]["items"]
        assert [(i["product_id"], i["quantity"]) for i in items] == [(str(product.id), 2)]

        guest_cart = client.get(f"{API}/cart", headers=guest_headers).json()["data"]
        assert guest_cart["is_empty"]


class TestTokens:
    def test_refresh_issues_new_pair(self, client, make_user, settings):
        user = make_user()
        tokens = login(client, user.email).json()["data"]["tokens"]
        response = client.post(
            f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 200
        new_refresh = response.json()["data"]["refresh_token"]
        assert decode_token(new_refresh, REFRESH, settings)["sub"] == str(user.id)

    def test_access_token_is_not_a_refresh_token(self, client, make_user):
        user = make_user()
        tokens = login(client, user.email).json()["data"]["tokens"]
        response = client.post(
            f"{API}/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )
        assert response.status_code == 401

    def test_logout_revokes_outstanding_tokens(self, client, make_user):
        user = make_user()
        tokens = login(client, user.email).json()["data"]["tokens"]
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        assert client.post(f"{API}/auth/logout", headers=headers).status_code == 200
        assert client.get(f"{API}/auth/me", headers=headers).status_code == 401
        refreshed = client.post(
            f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refreshed.status_code == 401

    def test_garbage_token(self, client):
        response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_me_requires_auth(self, client):
        assert client.get(f"{API}/auth/me").status_code == 401


class TestPasswordReset:
    def test_reset_flow(self, client, make_user):
        user = make_user()
        old_tokens = login(client, user.email).json()["data"]["tokens"]

        forgot = client.post(f"{API}/auth/forgot-password", json={"email": user.email})
        assert forgot.status_code == 200
        token = forgot.json()["data"]["reset_token"]
        assert token

        reset = client.post(
            f"{API}/auth/reset-password",
            json={"token": token, "password": "N3w!secret", "confirm_password": "N3w!secret"},
        )
        assert reset.status_code == 200

        assert login(client, user.email).status_code == 401
        assert login(client, user.email, "N3w!secret").status_code == 200
        stale = client.get(
            f"{API}/auth/me", headers={"Authorization": f"Bearer {old_tokens['access_token']}"}
        )
        assert stale.status_code == 401

        reused = client.post(
            f"{API}/auth/reset-password",
            json={"token": token, "password": "An0ther!pw", "confirm_password": "An0ther!pw"},
        )
        assert reused.status_code == 400

    def test_unknown_email_gets_same_answer(self, client):
        response = client.post(
            f"{API}/auth/forgot-password", json={"email": "ghost@example.com"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["reset_token"] is None
