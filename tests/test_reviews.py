import uuid

import pytest

from storefront.core.errors import AuthorizationError, ConflictError, NotFoundError
from storefront.models.cart import UserOwner
from storefront.models.product import Product
from storefront.schemas.cart import CartItemCreate
from storefront.schemas.order import OrderCreate, OrderStatusUpdate
from storefront.schemas.review import ReviewCreate, ReviewStatusUpdate, ReviewUpdate

API = "/api/v1"

SHIP_TO = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address_line1": "12 Analytical Row",
    "city": "London",
    "state": "Greater London",
    "postal_code": "NW1 6XE",
    "country": "UK",
}


def review(rating=5, title="Lovely mug", comment="Keeps the tea hot for ages."):
    return ReviewCreate(rating=rating, title=title, comment=comment)


def rating_of(session, product):
    session.expire_all()
    row = session.get(Product, product.id)
    return row.rating_average, row.rating_count


@pytest.fixture()
def customer(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture()
def product(make_product):
    return make_product()


class TestRatingAggregate:
    def test_follows_create_update_delete(
        self, session, reviews, customer, make_user, product
    ):
        first = reviews.create_review(session, customer, product.id, review(rating=5))
        assert rating_of(session, product) == (5.0, 1)

        other = make_user()
        reviews.create_review(session, other, product.id, review(rating=4))
        assert rating_of(session, product) == (4.5, 2)

        third = make_user()
        reviews.create_review(session, third, product.id, review(rating=4))
        assert rating_of(session, product) == (4.3, 3)

        reviews.update_review(session, customer, first.id, ReviewUpdate(rating=1))
        assert rating_of(session, product) == (3.0, 3)

        reviews.delete_review(session, customer, first.id)
        assert rating_of(session, product) == (4.0, 2)

    def test_only_approved_reviews_count(self, session, reviews, customer, product):
        mine = reviews.create_review(session, customer, product.id, review(rating=2))
        hidden = reviews.moderate_review(
            session, mine.id, ReviewStatusUpdate(status="flagged", moderation_reason="spam")
        )
        assert hidden.status == "flagged"
        assert rating_of(session, product) == (0.0, 0)
        assert reviews.list_reviews(session, product.id).total == 0


class TestReviewRules:
    def test_one_review_per_product(self, session, reviews, customer, product):
        reviews.create_review(session, customer, product.id, review())
        with pytest.raises(ConflictError):
            reviews.create_review(session, customer, product.id, review(rating=1))
        assert rating_of(session, product) == (5.0, 1)

    def test_unknown_or_hidden_product(self, session, reviews, customer, make_product):
        with pytest.raises(NotFoundError):
            reviews.create_review(session, customer, uuid.uuid4(), review())
        draft = make_product(status="draft")
        with pytest.raises(NotFoundError):
            reviews.create_review(session, customer, draft.id, review())

    def test_only_author_updates(self, session, reviews, customer, admin, product):
        mine = reviews.create_review(session, customer, product.id, review())
        with pytest.raises(AuthorizationError):
            reviews.update_review(session, admin, mine.id, ReviewUpdate(title="Edited"))

    def test_admin_may_delete(self, session, reviews, customer, admin, make_user, product):
        mine = reviews.create_review(session, customer, product.id, review())
        with pytest.raises(AuthorizationError):
            reviews.delete_review(session, make_user(), mine.id)

        reviews.delete_review(session, admin, mine.id)
        with pytest.raises(NotFoundError):
            reviews.get_review(session, mine.id)
        assert rating_of(session, product) == (0.0, 0)

    def test_text_is_trimmed_before_length_checks(self):
        with pytest.raises(ValueError):
            ReviewCreate(rating=3, title="  ok  ", comment="long enough comment")
        payload = ReviewCreate(rating=3, title="  Fine mug ", comment=" Does the job well. ")
        assert payload.title == "Fine mug"

    def test_update_needs_a_field(self):
        with pytest.raises(ValueError):
            ReviewUpdate()

    def test_verified_after_delivery(
        self, session, reviews, cart_service, order_service, customer, admin,
        make_user, product
    ):
        cart_service.add_item(
            session, UserOwner(customer.id), CartItemCreate(product_id=product.id, quantity=1)
        )
        order = order_service.checkout(
            session,
            customer,
            OrderCreate(shipping_address=SHIP_TO, payment_method="paypal"),
        )
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order_service.update_status(
                session, admin, str(order.id), OrderStatusUpdate(status=status)
            )

        assert reviews.create_review(session, customer, product.id, review()).verified
        assert not reviews.create_review(session, make_user(), product.id, review()).verified


class TestListing:
    def test_filters_and_sorting(self, session, reviews, make_user, product):
        for rating in (3, 5, 1):
            reviews.create_review(session, make_user(), product.id, review(rating=rating))

        page = reviews.list_reviews(session, product.id, sort="highest-rating")
        assert [r.rating for r in page.items] == [5, 3, 1]
        assert page.rating_average == 3.0
        assert page.rating_count == 3
        assert page.items[0].author_name.startswith("Test User")

        assert [r.rating for r in reviews.list_reviews(
            session, product.id, sort="lowest-rating"
        ).items] == [1, 3, 5]
        assert reviews.list_reviews(session, product.id, rating=5).total == 1
        assert reviews.list_reviews(session, product.id, verified_only=True).total == 0

        second = reviews.list_reviews(session, product.id, skip=2, limit=2, sort="oldest")
        assert [r.rating for r in second.items] == [1]
        assert second.total == 3


class TestReviewsApi:
    def test_review_flow(self, client, customer, make_user, auth_headers, product):
        url = f"{API}/products/{product.id}/reviews"
        body = {"rating": 4, "title": "Solid", "comment": "Sturdy and well glazed."}

        created = client.post(url, json=body, headers=auth_headers(customer))
        assert created.status_code == 201
        review_id = created.json()["data"]["id"]

        again = client.post(url, json=body, headers=auth_headers(customer))
        assert again.status_code == 409

        page = client.get(url).json()["data"]
        assert page["total"] == 1
        assert page["rating_average"] == 4.0

        forbidden = client.put(
            f"{API}/reviews/{review_id}", json={"rating": 1}, headers=auth_headers(make_user())
        )
        assert forbidden.status_code == 403

        updated = client.put(
            f"{API}/reviews/{review_id}", json={"rating": 2}, headers=auth_headers(customer)
        )
        assert updated.json()["data"]["rating"] == 2
        assert client.get(f"{API}/products/{product.id}").json()["data"]["rating_average"] == 2.0

        deleted = client.delete(f"{API}/reviews/{review_id}", headers=auth_headers(customer))
        assert deleted.status_code == 200
        assert client.get(f"{API}/reviews/{review_id}").status_code == 404

    def test_writing_requires_auth(self, client, product):
        response = client.post(
            f"{API}/products/{product.id}/reviews",
            json={"rating": 4, "title": "Solid", "comment": "Sturdy and well glazed."},
        )
        assert response.status_code == 401

    def test_invalid_rating(self, client, customer, auth_headers, product):
        response = client.post(
            f"{API}/products/{product.id}/reviews",
            json={"rating": 6, "title": "Solid", "comment": "Sturdy and well glazed."},
            headers=auth_headers(customer),
        )
        assert response.status_code == 400

    def test_moderation_is_admin_only(self, client, customer, admin, auth_headers, product):
        created = client.post(
            f"{API}/products/{product.id}/reviews",
            json={"rating": 4, "title": "Solid", "comment": "Sturdy and well glazed."},
            headers=auth_headers(customer),
        ).json()["data"]
        url = f"{API}/reviews/{created['id']}/status"

        assert client.patch(
            url, json={"status": "rejected"}, headers=auth_headers(customer)
        ).status_code == 403
        response = client.patch(url, json={"status": "rejected"}, headers=auth_headers(admin))
        assert response.json()["data"]["status"] == "rejected"
