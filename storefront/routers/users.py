# storefront/routers/users.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.auth import require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import address_service as service
from storefront.schemas.address import AddressCreate, AddressRead, AddressUpdate
from storefront.schemas.common import ApiResponse, ok

router = APIRouter(prefix="/users", tags=["Users"])


# -------- Address book (current user) --------


@router.get("/addresses", response_model=ApiResponse[list[AddressRead]])
def list_addresses(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return ok(service.list_addresses(session, current_user), "Addresses retrieved")


@router.post("/addresses", response_model=ApiResponse[AddressRead], status_code=201)
def add_address(
    payload: AddressCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Save an address. The first one (or one sent with is_default) becomes
    the default used by the storefront at checkout.
    """
    return ok(service.create_address(session, current_user, payload), "Address added")


@router.get("/addresses/{address_id}", response_model=ApiResponse[AddressRead])
def get_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return ok(service.get_address(session, current_user, address_id), "Address retrieved")


@router.put("/addresses/{address_id}", response_model=ApiResponse[AddressRead])
def update_address(
    address_id: uuid.UUID,
    payload: AddressUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    address = service.update_address(session, current_user, address_id, payload)
    return ok(address, "Address updated")


@router.put(
    "/addresses/{address_id}/default",
    response_model=ApiResponse[list[AddressRead]],
)
def set_default_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    addresses = service.set_default(session, current_user, address_id)
    return ok(addresses, "Default address set")


@router.delete("/addresses/{address_id}", response_model=ApiResponse[None])
def delete_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Delete an address. If it was the default, the oldest remaining address
    takes over.
    """
    service.delete_address(session, current_user, address_id)
    return ok(None, "Address deleted")
