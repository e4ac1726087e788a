# storefront/services/product_service.py
import logging
import uuid

from sqlmodel import Session

from storefront.core.errors import ConflictError, NotFoundError
from storefront.core.slugs import slugify
from storefront.core.timeutils import utcnow
from storefront.models.product import Product, ProductImage
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.product import (
    ProductCreate,
    ProductImageIn,
    ProductImageRead,
    ProductPage,
    ProductRead,
    ProductUpdate,
)
from storefront.services.category_service import CategoryService

logger = logging.getLogger(__name__)


class ProductService:
    """
    Business logic for Product & ProductImage.

    Responsibilities:
      - slug generation & uniqueness, SKU uniqueness
      - exactly one main image whenever a product has images
      - public reads only see purchasable products
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(self, repo: ProductRepository, category_service: CategoryService):
        self.repo = repo
        self.category_service = category_service

    # ----- Helpers -----

    def _ensure_unique_slug(self, session: Session, base_slug: str) -> str:
        """
        Ensure slug is unique by appending -2, -3, ... if needed.
        """
        slug = base_slug
        i = 2
        while self.repo.get_by_slug(session, slug) is not None:
            slug = f"{base_slug}-{i}"
            i += 1
        return slug

    @staticmethod
    def _build_images(product_id: uuid.UUID, images: list[ProductImageIn]) -> list[ProductImage]:
        """First image flagged main keeps the flag; none flagged => the first one."""
        main_index = next((i for i, img in enumerate(images) if img.is_main), 0)
        return [
            ProductImage(
                product_id=product_id,
                url=img.url,
                alt=img.alt,
                is_main=(i == main_index),
                sort_order=i,
            )
            for i, img in enumerate(images)
        ]

    def _to_read(self, session: Session, product: Product) -> ProductRead:
        images = self.repo.list_images_for_product(session, product.id)
        return ProductRead(
            **product.model_dump(),
            in_stock=product.available_for(1),
            is_low_stock=product.is_low_stock,
            images=[
                ProductImageRead.model_validate(img, from_attributes=True) for img in images
            ],
        )

    # ----- Reads -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        include_unlisted: bool = False,
        status: str | None = None,
        category: str | None = None,
    ) -> ProductPage:
        """
        `category` (id or slug) narrows the list to that category and every
        category nested below it.
        """
        category_ids = None
        if category is not None:
            found = self.category_service.resolve(
                session, category, include_inactive=include_unlisted
            )
            category_ids = self.category_service.subtree_ids(session, found)

        products, total = self.repo.list_products(
            session,
            skip=skip,
            limit=limit,
            only_purchasable=not include_unlisted,
            status=status if include_unlisted else None,
            category_ids=category_ids,
        )
        return ProductPage(
            items=[self._to_read(session, p) for p in products],
            total=total,
            skip=skip,
            limit=limit,
        )

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def get_public(
        self, session: Session, ref: str, include_unlisted: bool = False
    ) -> ProductRead:
        """Lookup by id or slug. Non-purchasable products are hidden from the public."""
        try:
            product = self.repo.get_by_id(session, uuid.UUID(ref))
        except ValueError:
            product = self.repo.get_by_slug(session, ref)
        if product is None or (not include_unlisted and not product.is_purchasable):
            raise NotFoundError("Product not found")
        return self._to_read(session, product)

    # ----- Admin writes -----

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
    ) -> ProductRead:
        """
        Create a new product with a unique slug.

        - If slug is provided => slugify & ensure unique.
        - Else => slugify from name & ensure unique.
        """
        if self.repo.get_by_sku(session, payload.sku) is not None:
            raise ConflictError("SKU already exists", details={"sku": payload.sku})
        if payload.category_id is not None:
            self.category_service.ensure_exists(session, payload.category_id)

        raw_slug = payload.slug or payload.name
        slug = self._ensure_unique_slug(session, slugify(raw_slug, "product"))

        data = payload.model_dump(exclude={"slug", "images"})
        product = self.repo.save(session, Product(**data, slug=slug))
        if payload.images:
            self.repo.replace_images(
                session, product.id, self._build_images(product.id, payload.images)
            )
        session.commit()
        session.refresh(product)
        logger.info("Product created: %s (%s)", product.slug, product.id)
        return self._to_read(session, product)

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> ProductRead:
        """
        Partial update of a product.

        - If slug is changed, enforce uniqueness.
        - images, when given, replace the whole gallery.
        """
        product = self.get_product(session, product_id)
        changes = payload.model_dump(exclude_unset=True, exclude={"slug", "images"})
        if payload.category_id is not None:
            self.category_service.ensure_exists(session, payload.category_id)

        if payload.slug is not None:
            new_base_slug = slugify(payload.slug, "product")
            if new_base_slug != product.slug:
                product.slug = self._ensure_unique_slug(session, new_base_slug)

        for field, value in changes.items():
            if value is not None:
                setattr(product, field, value)
        product.updated_at = utcnow()
        self.repo.save(session, product)

        if payload.images is not None:
            self.repo.replace_images(
                session, product.id, self._build_images(product.id, payload.images)
            )

        session.commit()
        session.refresh(product)
        return self._to_read(session, product)

    def delete_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product and its images.

        Cart lines and orders keep their snapshot; carts report the line as
        product_missing on the next validation.
        """
        product = self.get_product(session, product_id)
        self.repo.replace_images(session, product.id, [])
        self.repo.delete(session, product)
        session.commit()
        logger.info("Product deleted: %s", product_id)
