import uuid

import pytest

from storefront.core.errors import NotFoundError
from storefront.schemas.address import AddressCreate, AddressUpdate

API = "/api/v1"

HOME = {
    "label": "Home",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address_line1": "12 Analytical Row",
    "city": "London",
    "state": "Greater London",
    "postal_code": "NW1 6XE",
    "country": "UK",
}


def address(**overrides):
    return AddressCreate(**dict(HOME, **overrides))


@pytest.fixture()
def customer(make_user):
    return make_user()


def defaults(rows):
    return [a.label for a in rows if a.is_default]


class TestAddressBook:
    def test_first_address_becomes_default(self, session, addresses, customer):
        home = addresses.create_address(session, customer, address())
        assert home.is_default

        work = addresses.create_address(session, customer, address(label="Work"))
        assert not work.is_default
        assert defaults(addresses.list_addresses(session, customer)) == ["Home"]

    def test_new_default_moves_the_flag(self, session, addresses, customer):
        addresses.create_address(session, customer, address())
        addresses.create_address(session, customer, address(label="Work", is_default=True))

        rows = addresses.list_addresses(session, customer)
        assert [a.label for a in rows] == ["Work", "Home"]
        assert defaults(rows) == ["Work"]

    def test_set_default(self, session, addresses, customer):
        addresses.create_address(session, customer, address())
        work = addresses.create_address(session, customer, address(label="Work"))

        rows = addresses.set_default(session, customer, work.id)
        assert defaults(rows) == ["Work"]

    def test_update_keeps_required_fields(self, session, addresses, customer):
        home = addresses.create_address(session, customer, address(company="Engines Ltd"))
        updated = addresses.update_address(
            session,
            customer,
            home.id,
            AddressUpdate(city="Bath", company=None, first_name=None),
        )
        assert updated.city == "Bath"
        assert updated.company is None
        assert updated.first_name == "Ada"
        assert updated.is_default

    def test_deleting_default_promotes_oldest(self, session, addresses, customer):
        home = addresses.create_address(session, customer, address())
        addresses.create_address(session, customer, address(label="Work"))
        addresses.create_address(session, customer, address(label="Cabin"))

        addresses.delete_address(session, customer, home.id)
        rows = addresses.list_addresses(session, customer)
        assert defaults(rows) == ["Work"]
        assert len(rows) == 2

    def test_other_users_addresses_are_hidden(
        self, session, addresses, customer, make_user
    ):
        home = addresses.create_address(session, customer, address())
        stranger = make_user()

        assert addresses.list_addresses(session, stranger) == []
        with pytest.raises(NotFoundError):
            addresses.get_address(session, stranger, home.id)
        with pytest.raises(NotFoundError):
            addresses.delete_address(session, stranger, home.id)

    def test_postal_snapshot_has_order_fields_only(self, session, addresses, customer):
        home = addresses.create_address(session, customer, address())
        snapshot = addresses.postal_snapshot(session, customer, home.id)
        assert snapshot["city"] == "London"
        assert "label" not in snapshot
        assert "is_default" not in snapshot


class TestAddressApi:
    def test_address_book_flow(self, client, customer, auth_headers):
        headers = auth_headers(customer)
        created = client.post(f"{API}/users/addresses", json=HOME, headers=headers)
        assert created.status_code == 201
        home_id = created.json()["data"]["id"]

        work = client.post(
            f"{API}/users/addresses", json=dict(HOME, label="Work"), headers=headers
        ).json()["data"]
        response = client.put(
            f"{API}/users/addresses/{work['id']}/default", headers=headers
        )
        assert [a["label"] for a in response.json()["data"]] == ["Work", "Home"]

        response = client.put(
            f"{API}/users/addresses/{home_id}", json={"city": "Bath"}, headers=headers
        )
        assert response.json()["data"]["city"] == "Bath"

        response = client.delete(f"{API}/users/addresses/{work['id']}", headers=headers)
        assert response.status_code == 200
        listed = client.get(f"{API}/users/addresses", headers=headers).json()["data"]
        assert [(a["label"], a["is_default"]) for a in listed] == [("Home", True)]

    def test_requires_auth(self, client):
        assert client.get(f"{API}/users/addresses").status_code == 401

    def test_unknown_address(self, client, customer, auth_headers):
        response = client.get(
            f"{API}/users/addresses/{uuid.uuid4()}", headers=auth_headers(customer)
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Address not found"

    def test_rejects_unknown_fields(self, client, customer, auth_headers):
        headers = auth_headers(customer)
        home = client.post(f"{API}/users/addresses", json=HOME, headers=headers)
        response = client.put(
            f"{API}/users/addresses/{home.json()['data']['id']}",
            json={"user_id": str(uuid.uuid4())},
            headers=headers,
        )
        assert response.status_code == 400
