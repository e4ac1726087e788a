import uuid

import pytest

from storefront.core.errors import ConflictError, NotFoundError
from storefront.models.cart import UserOwner
from storefront.schemas.wishlist import (
    MoveToCartRequest,
    WishlistCreate,
    WishlistItemAdd,
    WishlistShareRequest,
    WishlistUpdate,
)


@pytest.fixture()
def user(make_user):
    return make_user()


def defaults(service, session, user):
    return [w for w in service.list_wishlists(session, user) if w.is_default]


class TestDefaultWishlist:
    def test_created_lazily_through_alias(self, session, wishlist_service, user):
        assert wishlist_service.list_wishlists(session, user) == []
        wishlist = wishlist_service.get_wishlist(session, user, "default")
        assert wishlist.is_default
        assert wishlist.name == "My Wishlist"
        assert len(defaults(wishlist_service, session, user)) == 1

    def test_first_created_wishlist_becomes_default(self, session, wishlist_service, user):
        created = wishlist_service.create_wishlist(
            session, user, WishlistCreate(name="Birthday")
        )
        assert created.is_default

    def test_requesting_default_moves_the_flag(self, session, wishlist_service, user):
        first = wishlist_service.create_wishlist(session, user, WishlistCreate(name="One"))
        second = wishlist_service.create_wishlist(
            session, user, WishlistCreate(name="Two", is_default=True)
        )
        assert second.is_default
        flagged = defaults(wishlist_service, session, user)
        assert [w.id for w in flagged] == [second.id]

        wishlist_service.update_wishlist(
            session, user, str(first.id), WishlistUpdate(is_default=True)
        )
        assert [w.id for w in defaults(wishlist_service, session, user)] == [first.id]

    def test_default_cannot_be_deleted(self, session, wishlist_service, user):
        default = wishlist_service.get_wishlist(session, user, "default")
        with pytest.raises(ConflictError):
            wishlist_service.delete_wishlist(session, user, str(default.id))

    def test_delete_other_wishlist(self, session, wishlist_service, user, make_product):
        wishlist_service.get_wishlist(session, user, "default")
        extra = wishlist_service.create_wishlist(session, user, WishlistCreate(name="Extra"))
        wishlist_service.add_product(session, user, str(extra.id), make_product().id)
        wishlist_service.delete_wishlist(session, user, str(extra.id))
        assert [w.is_default for w in wishlist_service.list_wishlists(session, user)] == [True]

    def test_other_users_wishlist_is_not_found(
        self, session, wishlist_service, user, make_user
    ):
        mine = wishlist_service.get_wishlist(session, user, "default")
        with pytest.raises(NotFoundError):
            wishlist_service.get_wishlist(session, make_user(), str(mine.id))

    def test_tags_are_cleaned(self, session, wishlist_service, user):
        created = wishlist_service.create_wishlist(
            session, user, WishlistCreate(name="Gifts", tags=["xmas", " xmas ", "mum"])
        )
        assert created.tags == ["xmas", "mum"]


class TestItems:
    def test_add_is_idempotent(self, session, wishlist_service, user, make_product):
        product = make_product()
        first = wishlist_service.add_product(session, user, "default", product.id)
        assert first.added
        assert first.notice is None

        again = wishlist_service.add_product(
            session, user, "default", product.id, WishlistItemAdd(priority="high")
        )
        assert not again.added
        assert again.notice
        assert again.wishlist.item_count == 1
        assert again.wishlist.items[0].priority == "high"

    def test_add_unknown_product(self, session, wishlist_service, user):
        with pytest.raises(NotFoundError):
            wishlist_service.add_product(session, user, "default", uuid.uuid4())

    def test_items_show_live_product_state(
        self, session, wishlist_service, user, make_product
    ):
        product = make_product(image="http://img/p.png")
        wishlist_service.add_product(session, user, "default", product.id)
        product.status = "inactive"
        session.add(product)
        session.commit()

        item = wishlist_service.get_wishlist(session, user, "default").items[0]
        assert item.product_name == product.name
        assert item.product_image == "http://img/p.png"
        assert item.is_available is False

    def test_remove_absent_product(self, session, wishlist_service, user, make_product):
        wishlist_service.get_wishlist(session, user, "default")
        with pytest.raises(NotFoundError):
            wishlist_service.remove_product(session, user, "default", make_product().id)

    def test_remove_and_clear(self, session, wishlist_service, user, make_product):
        a, b, c = make_product(), make_product(), make_product()
        for p in (a, b, c):
            wishlist_service.add_product(session, user, "default", p.id)
        after_remove = wishlist_service.remove_product(session, user, "default", a.id)
        assert after_remove.item_count == 2
        assert wishlist_service.clear(session, user, "default").item_count == 0


class TestSharing:
    def test_token_is_reused_unless_regenerated(self, session, wishlist_service, user):
        first = wishlist_service.share(session, user, "default", WishlistShareRequest())
        assert len(first.share_token) == 64
        assert first.share_url == f"http://shop.test/wishlists/shared/{first.share_token}"

        again = wishlist_service.share(session, user, "default", WishlistShareRequest())
        assert again.share_token == first.share_token

        fresh = wishlist_service.share(
            session, user, "default", WishlistShareRequest(regenerate=True)
        )
        assert fresh.share_token != first.share_token

    def test_email_grants_are_deduplicated(self, session, wishlist_service, user):
        wishlist_service.share(
            session,
            user,
            "default",
            WishlistShareRequest(emails=["friend@example.com", "Friend@Example.com"]),
        )
        result = wishlist_service.share(
            session,
            user,
            "default",
            WishlistShareRequest(emails=["friend@example.com"], permission="edit"),
        )
        assert [(s.email, s.permission) for s in result.shared_with] == [
            ("friend@example.com", "edit")
        ]

    def test_shared_view(self, session, wishlist_service, user, make_product):
        wishlist_service.add_product(session, user, "default", make_product().id)
        token = wishlist_service.share(
            session, user, "default", WishlistShareRequest()
        ).share_token

        shared = wishlist_service.get_shared(session, token)
        assert shared.item_count == 1
        assert shared.owner_name == user.full_name

    def test_private_wishlist_is_hidden_even_with_token(
        self, session, wishlist_service, user
    ):
        token = wishlist_service.share(
            session, user, "default", WishlistShareRequest()
        ).share_token
        wishlist_service.update_wishlist(
            session, user, "default", WishlistUpdate(privacy="private")
        )
        with pytest.raises(NotFoundError):
            wishlist_service.get_shared(session, token)

    def test_unknown_token(self, session, wishlist_service):
        with pytest.raises(NotFoundError):
            wishlist_service.get_shared(session, "0" * 64)


class TestMoveToCart:
    def test_partial_success(
        self, session, wishlist_service, cart_service, user, make_product
    ):
        ok_product = make_product()
        sold_out = make_product(stock_quantity=0)
        for p in (ok_product, sold_out):
            wishlist_service.add_product(session, user, "default", p.id)
        stranger = uuid.uuid4()

        result = wishlist_service.move_to_cart(
            session,
            user,
            "default",
            MoveToCartRequest(
                product_ids=[ok_product.id, sold_out.id, stranger],
                remove_after_move=True,
            ),
        )

        assert result.moved == [ok_product.id]
        failures = {f.product_id: f.code for f in result.failed}
        assert failures == {sold_out.id: "INSUFFICIENT_STOCK", stranger: "NOT_IN_WISHLIST"}
        assert [it.product_id for it in result.wishlist.items] == [sold_out.id]

        cart = cart_service.get_cart(session, UserOwner(user.id))
        assert [(it.product_id, it.quantity) for it in cart.items] == [(ok_product.id, 1)]

    def test_moves_everything_by_default(
        self, session, wishlist_service, cart_service, user, make_product
    ):
        products = [make_product(), make_product()]
        for p in products:
            wishlist_service.add_product(session, user, "default", p.id)

        result = wishlist_service.move_to_cart(
            session, user, "default", MoveToCartRequest(quantity=2)
        )
        assert sorted(result.moved) == sorted(p.id for p in products)
        assert result.failed == []
        assert result.wishlist.item_count == 2
        cart = cart_service.get_cart(session, UserOwner(user.id))
        assert cart.item_count == 4
