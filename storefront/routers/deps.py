# storefront/routers/deps.py
"""
Service wiring shared by the routers.

Repositories are stateless and shared; services that depend on Settings are
built per request from the Settings of the running app.
"""
from fastapi import Depends

from storefront.core.config import Settings, get_app_settings
from storefront.repositories.address_repo import AddressRepository
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.category_repo import CategoryRepository
from storefront.repositories.coupon_repo import CouponRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.repositories.user_repo import UserRepository
from storefront.repositories.wishlist_repo import WishlistRepository
from storefront.services.address_service import AddressService
from storefront.services.auth_service import AuthService
from storefront.services.cart_service import CartService
from storefront.services.category_service import CategoryService
from storefront.services.coupon_service import CouponService
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService
from storefront.services.review_service import ReviewService
from storefront.services.wishlist_service import WishlistService

address_repo = AddressRepository()
cart_repo = CartRepository()
category_repo = CategoryRepository()
coupon_repo = CouponRepository()
order_repo = OrderRepository()
product_repo = ProductRepository()
review_repo = ReviewRepository()
user_repo = UserRepository()
wishlist_repo = WishlistRepository()

coupon_service = CouponService(coupon_repo, order_repo)
address_service = AddressService(address_repo)
category_service = CategoryService(category_repo)
product_service = ProductService(product_repo, category_service)
review_service = ReviewService(review_repo, product_repo, order_repo)


def build_cart_service(settings: Settings) -> CartService:
    return CartService(cart_repo, product_repo, coupon_service, settings)


def get_cart_service(settings: Settings = Depends(get_app_settings)) -> CartService:
    return build_cart_service(settings)


def get_order_service(
    cart_service: CartService = Depends(get_cart_service),
) -> OrderService:
    return OrderService(
        order_repo, cart_repo, product_repo, cart_service, address_service
    )


def get_wishlist_service(
    settings: Settings = Depends(get_app_settings),
    cart_service: CartService = Depends(get_cart_service),
) -> WishlistService:
    return WishlistService(wishlist_repo, product_repo, user_repo, cart_service, settings)


def get_auth_service(
    settings: Settings = Depends(get_app_settings),
    cart_service: CartService = Depends(get_cart_service),
) -> AuthService:
    return AuthService(user_repo, cart_service, settings)
