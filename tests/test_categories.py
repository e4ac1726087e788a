import uuid

import pytest

from storefront.core.errors import ConflictError, NotFoundError, ValidationError
from storefront.schemas.category import CategoryCreate, CategoryUpdate
from storefront.schemas.product import ProductCreate, ProductUpdate

API = "/api/v1"


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture()
def tree(session, categories):
    """home > kitchen > mugs"""
    home = categories.create_category(session, CategoryCreate(name="Home"))
    kitchen = categories.create_category(
        session, CategoryCreate(name="Kitchen", parent_id=home.id)
    )
    mugs = categories.create_category(
        session, CategoryCreate(name="Mugs & Cups", parent_id=kitchen.id)
    )
    return home, kitchen, mugs


class TestCategoryTree:
    def test_levels_and_slugs(self, tree):
        home, kitchen, mugs = tree
        assert [c.level for c in tree] == [0, 1, 2]
        assert mugs.slug == "mugs-cups"
        assert mugs.parent_id == kitchen.id

    def test_duplicate_slug_gets_suffix(self, session, categories, tree):
        again = categories.create_category(session, CategoryCreate(name="Home"))
        assert again.slug == "home-2"

    def test_nesting_is_limited(self, session, categories, tree):
        deepest = categories.create_category(
            session, CategoryCreate(name="Espresso", parent_id=tree[2].id)
        )
        assert deepest.level == 3
        with pytest.raises(ValidationError):
            categories.create_category(
                session, CategoryCreate(name="Tiny", parent_id=deepest.id)
            )

    def test_unknown_parent(self, session, categories):
        with pytest.raises(NotFoundError):
            categories.create_category(
                session, CategoryCreate(name="Orphan", parent_id=uuid.uuid4())
            )

    def test_move_relevels_subtree(self, session, categories, tree):
        home, kitchen, mugs = tree
        categories.update_category(session, kitchen.id, CategoryUpdate(move_to_root=True))

        assert categories.get_category(session, str(kitchen.id)).level == 0
        assert categories.get_category(session, str(mugs.id)).level == 1

    def test_cannot_move_under_own_descendant(self, session, categories, tree):
        home, _, mugs = tree
        with pytest.raises(ValidationError):
            categories.update_category(session, home.id, CategoryUpdate(parent_id=mugs.id))
        with pytest.raises(ValidationError):
            categories.update_category(session, home.id, CategoryUpdate(parent_id=home.id))

    def test_move_that_would_exceed_depth(self, session, categories, tree):
        home, _, mugs = tree
        garden = categories.create_category(session, CategoryCreate(name="Garden"))
        shed = categories.create_category(
            session, CategoryCreate(name="Shed", parent_id=garden.id)
        )
        # home's subtree is three levels deep; under shed it would reach level 4
        with pytest.raises(ValidationError):
            categories.update_category(session, home.id, CategoryUpdate(parent_id=shed.id))

    def test_hierarchy_hides_inactive_branches(self, session, categories, tree):
        home, kitchen, _ = tree
        categories.update_category(session, kitchen.id, CategoryUpdate(is_active=False))

        public = categories.hierarchy(session)
        assert [n.name for n in public] == ["Home"]
        assert public[0].children == []

        full = categories.hierarchy(session, include_inactive=True)
        assert full[0].children[0].children[0].name == "Mugs & Cups"

    def test_inactive_category_is_hidden_from_public(self, session, categories, tree):
        categories.update_category(session, tree[0].id, CategoryUpdate(is_active=False))
        with pytest.raises(NotFoundError):
            categories.get_category(session, "home")
        assert categories.get_category(session, "home", include_inactive=True).id == tree[0].id


class TestCategoryDelete:
    def test_with_children_conflicts(self, session, categories, tree):
        with pytest.raises(ConflictError):
            categories.delete_category(session, tree[0].id)

    def test_with_products_conflicts(self, session, categories, tree, make_product):
        make_product(category_id=tree[2].id)
        with pytest.raises(ConflictError) as exc:
            categories.delete_category(session, tree[2].id)
        assert exc.value.details == {"product_count": 1}

    def test_empty_leaf(self, session, categories, tree):
        categories.delete_category(session, tree[2].id)
        with pytest.raises(NotFoundError):
            categories.get_category(session, str(tree[2].id), include_inactive=True)


class TestProductsByCategory:
    def test_filter_includes_subcategories(self, session, products, tree, make_product):
        home, kitchen, mugs = tree
        mug = make_product(category_id=mugs.id)
        pan = make_product(category_id=kitchen.id)
        make_product()

        listed = products.list_products(session, category="kitchen")
        assert {p.id for p in listed.items} == {mug.id, pan.id}
        assert listed.total == 2

        only_mugs = products.list_products(session, category=str(mugs.id))
        assert [p.id for p in only_mugs.items] == [mug.id]
        assert only_mugs.items[0].category_id == mugs.id

    def test_unknown_category(self, session, products):
        with pytest.raises(NotFoundError):
            products.list_products(session, category="nowhere")

    def test_product_writes_check_category(self, session, products, tree):
        with pytest.raises(ValidationError):
            products.create_product(
                session,
                ProductCreate(name="Lost Mug", sku="LOST-1", price="5.00",
                              category_id=uuid.uuid4()),
            )

        created = products.create_product(
            session,
            ProductCreate(name="Found Mug", sku="FOUND-1", price="5.00",
                          category_id=tree[2].id),
        )
        moved = products.update_product(
            session, created.id, ProductUpdate(category_id=tree[1].id)
        )
        assert moved.category_id == tree[1].id


class TestCategoriesApi:
    def test_admin_crud_and_public_reads(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        root = client.post(f"{API}/categories", json={"name": "Outdoor"}, headers=headers)
        assert root.status_code == 201
        root_id = root.json()["data"]["id"]

        child = client.post(
            f"{API}/categories",
            json={"name": "Tents", "parent_id": root_id},
            headers=headers,
        ).json()["data"]
        assert child["level"] == 1

        tree = client.get(f"{API}/categories/hierarchy").json()["data"]
        assert [c["name"] for c in tree[0]["children"]] == ["Tents"]
        assert client.get(f"{API}/categories/tents").json()["data"]["id"] == child["id"]

        assert client.delete(f"{API}/categories/{root_id}", headers=headers).status_code == 409

        renamed = client.put(
            f"{API}/categories/{child['id']}", json={"name": "Shelters"}, headers=headers
        )
        assert renamed.json()["data"]["name"] == "Shelters"
        assert client.delete(f"{API}/categories/{child['id']}", headers=headers).status_code == 200

    def test_writes_are_admin_only(self, client, make_user, auth_headers):
        response = client.post(
            f"{API}/categories", json={"name": "Sneaky"}, headers=auth_headers(make_user())
        )
        assert response.status_code == 403

    def test_products_filter_by_category(self, client, session, categories, make_product):
        shoes = categories.create_category(session, CategoryCreate(name="Shoes"))
        boot = make_product(category_id=shoes.id)
        make_product()

        data = client.get(f"{API}/products", params={"category": "shoes"}).json()["data"]
        assert [p["id"] for p in data["items"]] == [str(boot.id)]
