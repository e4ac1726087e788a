from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient

from storefront.core.auth import create_access_token, hash_password
from storefront.core.config import Settings
from storefront.database import Database
from storefront.main import create_app
from storefront.models.coupon import Coupon
from storefront.models.product import Product, ProductImage
from storefront.models.user import User
from storefront.routers.deps import (
    address_service,
    build_cart_service,
    cart_repo,
    category_service,
    coupon_service,
    order_repo,
    product_repo,
    product_service,
    review_service,
    user_repo,
    wishlist_repo,
)
from storefront.services.auth_service import AuthService
from storefront.services.order_service import OrderService
from storefront.services.wishlist_service import WishlistService

PASSWORD = "Secret123!"

_seq = count(1)


@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        BCRYPT_ROUNDS=4,
        TAX_RATE=Decimal("0.08"),
        FREE_SHIPPING_THRESHOLD=Decimal("100"),
        SHIPPING_FLAT_RATE=Decimal("10"),
        EXPOSE_RESET_TOKEN=True,
        FRONTEND_URL="http://shop.test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
def db(settings):
    database = Database.from_settings(settings)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture()
def session(db):
    with db.session() as s:
        yield s


@pytest.fixture()
def cart_service(settings):
    return build_cart_service(settings)


@pytest.fixture()
def order_service(cart_service):
    return OrderService(
        order_repo, cart_repo, product_repo, cart_service, address_service
    )


@pytest.fixture()
def wishlist_service(settings, cart_service):
    return WishlistService(wishlist_repo, product_repo, user_repo, cart_service, settings)


@pytest.fixture()
def auth_service(settings, cart_service):
    return AuthService(user_repo, cart_service, settings)


@pytest.fixture()
def coupons():
    return coupon_service


@pytest.fixture()
def addresses():
    return address_service


@pytest.fixture()
def categories():
    return category_service


@pytest.fixture()
def products():
    return product_service


@pytest.fixture()
def reviews():
    return review_service


# ----- Factories -----


@pytest.fixture()
def make_product(session):
    def _make(**overrides):
        n = next(_seq)
        image = overrides.pop("image", None)
        data = {
            "name": f"Product {n}",
            "slug": f"product-{n}",
            "sku": f"SKU-{n:04d}",
            "price": Decimal("10.00"),
            "stock_quantity": 50,
            "status": "active",
            "visibility": "public",
        }
        data.update(overrides)
        product = Product(**data)
        session.add(product)
        session.commit()
        if image:
            session.add(ProductImage(product_id=product.id, url=image, is_main=True))
            session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture()
def make_user(session, settings):
    def _make(role="customer", email=None, password=PASSWORD, **overrides):
        n = next(_seq)
        user = User(
            email=email or f"user{n}@example.com",
            password_hash=hash_password(password, settings.BCRYPT_ROUNDS),
            first_name="Test",
            last_name=f"User{n}",
            role=role,
            **overrides,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_coupon(session):
    def _make(code="SAVE10", type="percentage", value=Decimal("10"), **overrides):
        coupon = Coupon(code=code, type=type, value=value, **overrides)
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon

    return _make


# ----- HTTP -----


@pytest.fixture()
def client(settings, db):
    app = create_app(settings, db)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def auth_headers(settings):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user, settings)}"}

    return _headers


@pytest.fixture()
def guest_headers():
    return {"X-Session-Id": "guest-session-0001"}
