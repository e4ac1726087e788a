# storefront/services/address_service.py
import logging
import uuid

from sqlmodel import Session

from storefront.core.errors import NotFoundError
from storefront.core.timeutils import utcnow
from storefront.models.address import Address
from storefront.models.user import User
from storefront.repositories.address_repo import AddressRepository
from storefront.schemas.address import AddressCreate, AddressRead, AddressUpdate
from storefront.schemas.order import AddressIn

logger = logging.getLogger(__name__)

# Address fields copied onto an order
_POSTAL_FIELDS = tuple(AddressIn.model_fields)
_REQUIRED_FIELDS = frozenset(
    name for name, field in AddressIn.model_fields.items() if field.is_required()
)


class AddressService:
    """
    Business logic for the user address book.

    Responsibilities:
      - one default address per user; the first address is the default
      - deleting the default promotes the oldest remaining address
      - postal snapshot of a saved address for checkout
    """

    def __init__(self, repo: AddressRepository):
        self.repo = repo

    # ---- internal helpers ----

    def _get_owned(self, session: Session, user: User, address_id: uuid.UUID) -> Address:
        """Another user's address is reported as not found."""
        address = self.repo.get_for_user(session, user.id, address_id)
        if address is None:
            raise NotFoundError("Address not found", details={"address_id": str(address_id)})
        return address

    def _make_default(self, session: Session, address: Address) -> None:
        if address.is_default:
            return
        self.repo.clear_default(session, address.user_id)
        address.is_default = True
        self.repo.save(session, address)

    def _list(self, session: Session, user: User) -> list[AddressRead]:
        return [
            AddressRead.model_validate(a, from_attributes=True)
            for a in self.repo.list_for_user(session, user.id)
        ]

    # ---- public operations ----

    def list_addresses(self, session: Session, user: User) -> list[AddressRead]:
        """Default first, then oldest."""
        return self._list(session, user)

    def get_address(
        self, session: Session, user: User, address_id: uuid.UUID
    ) -> AddressRead:
        return AddressRead.model_validate(
            self._get_owned(session, user, address_id), from_attributes=True
        )

    def create_address(
        self, session: Session, user: User, payload: AddressCreate
    ) -> AddressRead:
        first = self.repo.get_default(session, user.id) is None
        now = utcnow()
        address = self.repo.save(
            session,
            Address(
                user_id=user.id,
                **payload.model_dump(exclude={"is_default"}),
                is_default=False,
                created_at=now,
                updated_at=now,
            ),
        )
        if first or payload.is_default:
            self._make_default(session, address)
        session.commit()
        session.refresh(address)
        return AddressRead.model_validate(address, from_attributes=True)

    def update_address(
        self,
        session: Session,
        user: User,
        address_id: uuid.UUID,
        payload: AddressUpdate,
    ) -> AddressRead:
        address = self._get_owned(session, user, address_id)
        changes = payload.model_dump(exclude_unset=True, exclude={"is_default"})
        for field, value in changes.items():
            if value is None and field in _REQUIRED_FIELDS:
                continue
            setattr(address, field, value)
        address.updated_at = utcnow()
        self.repo.save(session, address)
        if payload.is_default:
            self._make_default(session, address)
        session.commit()
        session.refresh(address)
        return AddressRead.model_validate(address, from_attributes=True)

    def set_default(
        self, session: Session, user: User, address_id: uuid.UUID
    ) -> list[AddressRead]:
        self._make_default(session, self._get_owned(session, user, address_id))
        session.commit()
        return self._list(session, user)

    def delete_address(self, session: Session, user: User, address_id: uuid.UUID) -> None:
        address = self._get_owned(session, user, address_id)
        was_default = address.is_default
        self.repo.delete(session, address)
        if was_default:
            remaining = self.repo.list_for_user(session, user.id)
            if remaining:
                self._make_default(session, remaining[0])
        session.commit()
        logger.info("Address %s deleted for user %s", address_id, user.id)

    def postal_snapshot(
        self, session: Session, user: User, address_id: uuid.UUID
    ) -> dict:
        """The saved address as the dict stored on an order."""
        address = self._get_owned(session, user, address_id)
        return {field: getattr(address, field) for field in _POSTAL_FIELDS}
