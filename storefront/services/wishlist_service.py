# storefront/services/wishlist_service.py
import logging
import secrets
import uuid

from sqlmodel import Session

from storefront.core.config import Settings
from storefront.core.errors import AppError, ConflictError, NotFoundError
from storefront.core.timeutils import utcnow
from storefront.models.cart import UserOwner
from storefront.models.user import User
from storefront.models.wishlist import (
    DEFAULT_WISHLIST_NAME,
    Wishlist,
    WishlistItem,
    WishlistShare,
)
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.user_repo import UserRepository
from storefront.repositories.wishlist_repo import WishlistRepository
from storefront.schemas.cart import CartItemCreate
from storefront.schemas.wishlist import (
    MoveFailure,
    MoveToCartRequest,
    MoveToCartResult,
    SharedWishlistRead,
    WishlistAddResult,
    WishlistCreate,
    WishlistItemAdd,
    WishlistItemRead,
    WishlistRead,
    WishlistShareRead,
    WishlistShareRequest,
    WishlistShareResult,
    WishlistUpdate,
)
from storefront.services.cart_service import CartService

logger = logging.getLogger(__name__)

# Path segment accepted in place of a wishlist id
DEFAULT_ALIAS = "default"


class WishlistService:
    """
    Business logic for wishlists.

    Responsibilities:
      - exactly one default wishlist per user (created lazily)
      - idempotent product adds (notice instead of error)
      - token sharing + email grants, public shared view
      - move-to-cart through CartService.add_item, item by item
    """

    def __init__(
        self,
        wishlist_repo: WishlistRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        cart_service: CartService,
        settings: Settings,
    ):
        self.wishlist_repo = wishlist_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.cart_service = cart_service
        self.settings = settings

    # ---- internal helpers ----

    def _ensure_default(self, session: Session, user: User) -> Wishlist:
        wishlist = self.wishlist_repo.get_default(session, user.id)
        if wishlist is None:
            wishlist = self.wishlist_repo.save(
                session,
                Wishlist(user_id=user.id, name=DEFAULT_WISHLIST_NAME, is_default=True),
            )
            logger.info("Created default wishlist for user %s", user.id)
        return wishlist

    def _get_owned(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        create_default: bool = False,
    ) -> Wishlist:
        """
        Resolve a wishlist id (or the alias "default") owned by the user.

        Someone else's wishlist is reported as not found.
        """
        if wishlist_ref == DEFAULT_ALIAS:
            if create_default:
                return self._ensure_default(session, user)
            wishlist = self.wishlist_repo.get_default(session, user.id)
        else:
            try:
                wishlist_id = uuid.UUID(wishlist_ref)
            except ValueError:
                raise NotFoundError("Wishlist not found")
            wishlist = self.wishlist_repo.get_by_id(session, wishlist_id)

        if wishlist is None or wishlist.user_id != user.id:
            raise NotFoundError("Wishlist not found")
        return wishlist

    def _make_default(self, session: Session, wishlist: Wishlist) -> None:
        if wishlist.is_default:
            return
        self.wishlist_repo.clear_default(session, wishlist.user_id)
        wishlist.is_default = True
        self.wishlist_repo.save(session, wishlist)

    def _item_reads(self, session: Session, wishlist: Wishlist) -> list[WishlistItemRead]:
        items = self.wishlist_repo.list_items(session, wishlist.id)
        products = self.product_repo.get_many(session, (it.product_id for it in items))
        images = self.product_repo.main_images(session, products.keys())
        reads = []
        for it in items:
            product = products.get(it.product_id)
            reads.append(
                WishlistItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    note=it.note,
                    priority=it.priority,
                    added_at=it.added_at,
                    product_name=product.name if product else None,
                    product_slug=product.slug if product else None,
                    product_price=product.price if product else None,
                    product_image=images.get(it.product_id),
                    is_available=bool(product and product.is_purchasable),
                )
            )
        return reads

    def _to_read(self, session: Session, wishlist: Wishlist) -> WishlistRead:
        items = self._item_reads(session, wishlist)
        shares = self.wishlist_repo.list_shares(session, wishlist.id)
        return WishlistRead(
            id=wishlist.id,
            user_id=wishlist.user_id,
            name=wishlist.name,
            description=wishlist.description,
            privacy=wishlist.privacy,
            is_default=wishlist.is_default,
            tags=list(wishlist.tags or []),
            items=items,
            item_count=len(items),
            shared_with=[
                WishlistShareRead(
                    email=s.email, permission=s.permission, shared_at=s.shared_at
                )
                for s in shares
            ],
            is_shared=wishlist.share_token is not None,
            created_at=wishlist.created_at,
            updated_at=wishlist.updated_at,
        )

    def _save(self, session: Session, wishlist: Wishlist) -> WishlistRead:
        wishlist.updated_at = utcnow()
        self.wishlist_repo.save(session, wishlist)
        session.commit()
        session.refresh(wishlist)
        return self._to_read(session, wishlist)

    # ---- public operations ----

    def list_wishlists(self, session: Session, user: User) -> list[WishlistRead]:
        """Caller's wishlists, default first, then newest."""
        return [
            self._to_read(session, w)
            for w in self.wishlist_repo.list_for_user(session, user.id)
        ]

    def get_wishlist(self, session: Session, user: User, wishlist_ref: str) -> WishlistRead:
        wishlist = self._get_owned(session, user, wishlist_ref, create_default=True)
        session.commit()
        return self._to_read(session, wishlist)

    def create_wishlist(
        self, session: Session, user: User, payload: WishlistCreate
    ) -> WishlistRead:
        """
        Create a wishlist.

        It becomes the default when the user has none yet or when
        is_default is requested; the previous default is unflagged first.
        """
        wishlist = Wishlist(
            user_id=user.id,
            name=payload.name,
            description=payload.description,
            privacy=payload.privacy,
            tags=payload.tags,
            is_default=False,
        )
        make_default = (
            payload.is_default or self.wishlist_repo.get_default(session, user.id) is None
        )
        if make_default:
            self.wishlist_repo.clear_default(session, user.id)
            wishlist.is_default = True
        return self._save(session, wishlist)

    def update_wishlist(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        payload: WishlistUpdate,
    ) -> WishlistRead:
        wishlist = self._get_owned(session, user, wishlist_ref)

        if payload.name is not None:
            wishlist.name = payload.name
        if payload.description is not None:
            wishlist.description = payload.description
        if payload.privacy is not None:
            wishlist.privacy = payload.privacy
        if payload.tags is not None:
            wishlist.tags = payload.tags
        if payload.is_default:
            self._make_default(session, wishlist)

        return self._save(session, wishlist)

    def delete_wishlist(self, session: Session, user: User, wishlist_ref: str) -> None:
        wishlist = self._get_owned(session, user, wishlist_ref)
        if wishlist.is_default:
            raise ConflictError("The default wishlist cannot be deleted")
        self.wishlist_repo.delete(session, wishlist)
        session.commit()

    def add_product(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        product_id: uuid.UUID,
        payload: WishlistItemAdd | None = None,
    ) -> WishlistAddResult:
        """
        Add a product. Adding one that is already there is not an error:
        the note / priority are updated if given and a notice is returned.
        """
        payload = payload or WishlistItemAdd()
        wishlist = self._get_owned(session, user, wishlist_ref, create_default=True)
        if self.product_repo.get_by_id(session, product_id) is None:
            raise NotFoundError("Product not found", details={"product_id": str(product_id)})

        item = self.wishlist_repo.get_item(session, wishlist.id, product_id)
        if item is not None:
            if payload.note is not None:
                item.note = payload.note
            if payload.priority is not None:
                item.priority = payload.priority
            self.wishlist_repo.save_item(session, item)
            return WishlistAddResult(
                added=False,
                notice="Product is already in this wishlist",
                wishlist=self._save(session, wishlist),
            )

        self.wishlist_repo.save_item(
            session,
            WishlistItem(
                wishlist_id=wishlist.id,
                product_id=product_id,
                note=payload.note,
                priority=payload.priority or "medium",
            ),
        )
        return WishlistAddResult(added=True, wishlist=self._save(session, wishlist))

    def remove_product(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        product_id: uuid.UUID,
    ) -> WishlistRead:
        wishlist = self._get_owned(session, user, wishlist_ref)
        item = self.wishlist_repo.get_item(session, wishlist.id, product_id)
        if item is None:
            raise NotFoundError(
                "Product not found in wishlist", details={"product_id": str(product_id)}
            )
        self.wishlist_repo.delete_item(session, item)
        return self._save(session, wishlist)

    def clear(self, session: Session, user: User, wishlist_ref: str) -> WishlistRead:
        wishlist = self._get_owned(session, user, wishlist_ref)
        self.wishlist_repo.clear_items(session, wishlist.id)
        return self._save(session, wishlist)

    # ---- sharing ----

    def share(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        payload: WishlistShareRequest,
    ) -> WishlistShareResult:
        """
        Share by token (and optional email grants).

        The token is generated on first share and reused afterwards unless
        regenerate=True. Email grants are de-duplicated; re-sharing with an
        existing email updates its permission.
        """
        wishlist = self._get_owned(session, user, wishlist_ref, create_default=True)

        if wishlist.share_token is None or payload.regenerate:
            wishlist.share_token = secrets.token_hex(32)

        for email in dict.fromkeys(e.strip().lower() for e in payload.emails):
            grant = self.wishlist_repo.get_share(session, wishlist.id, email)
            if grant is None:
                grant = WishlistShare(
                    wishlist_id=wishlist.id, email=email, permission=payload.permission
                )
            else:
                grant.permission = payload.permission
            self.wishlist_repo.save_share(session, grant)

        wishlist.privacy = "shared"
        read = self._save(session, wishlist)
        logger.info("Wishlist %s shared (%d grant(s))", wishlist.id, len(read.shared_with))

        base = self.settings.FRONTEND_URL.rstrip("/")
        return WishlistShareResult(
            share_token=wishlist.share_token,
            share_url=f"{base}/wishlists/shared/{wishlist.share_token}",
            shared_with=read.shared_with,
        )

    def get_shared(self, session: Session, token: str) -> SharedWishlistRead:
        """Public view by share token; private wishlists are never visible."""
        wishlist = self.wishlist_repo.get_by_share_token(session, token)
        if wishlist is None or wishlist.privacy not in ("public", "shared"):
            raise NotFoundError("Shared wishlist not found")

        owner = self.user_repo.get_by_id(session, wishlist.user_id)
        items = self._item_reads(session, wishlist)
        return SharedWishlistRead(
            id=wishlist.id,
            name=wishlist.name,
            description=wishlist.description,
            tags=list(wishlist.tags or []),
            items=items,
            item_count=len(items),
            owner_name=owner.full_name if owner else "",
            updated_at=wishlist.updated_at,
        )

    # ---- move to cart ----

    def move_to_cart(
        self,
        session: Session,
        user: User,
        wishlist_ref: str,
        payload: MoveToCartRequest,
    ) -> MoveToCartResult:
        """
        Add the selected (or all) wishlist items to the user's cart one by one.

        A failing item (not found, out of stock, ...) is recorded and the rest
        continue. Moved items are removed from the wishlist when
        remove_after_move is set.
        """
        wishlist = self._get_owned(session, user, wishlist_ref)
        wishlist_id = wishlist.id
        items = self.wishlist_repo.list_items(session, wishlist_id)

        if payload.product_ids is not None:
            wanted = list(dict.fromkeys(payload.product_ids))
            present = {it.product_id for it in items}
            selected = [pid for pid in wanted if pid in present]
            failed = [
                MoveFailure(
                    product_id=pid,
                    code="NOT_IN_WISHLIST",
                    message="Product is not in this wishlist",
                )
                for pid in wanted
                if pid not in present
            ]
        else:
            selected = [it.product_id for it in reversed(items)]
            failed = []

        owner = UserOwner(user.id)
        moved: list[uuid.UUID] = []
        for product_id in selected:
            try:
                self.cart_service.add_item(
                    session,
                    owner,
                    CartItemCreate(product_id=product_id, quantity=payload.quantity),
                )
            except AppError as exc:
                session.rollback()
                failed.append(
                    MoveFailure(product_id=product_id, code=exc.code, message=exc.message)
                )
                continue
            moved.append(product_id)

        if payload.remove_after_move and moved:
            for product_id in moved:
                item = self.wishlist_repo.get_item(session, wishlist_id, product_id)
                if item is not None:
                    self.wishlist_repo.delete_item(session, item)

        wishlist = self.wishlist_repo.get_by_id(session, wishlist_id)
        if moved:
            logger.info("Moved %d wishlist item(s) to cart for user %s", len(moved), user.id)
        return MoveToCartResult(
            moved=moved, failed=failed, wishlist=self._save(session, wishlist)
        )
