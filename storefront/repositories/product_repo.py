# storefront/repositories/product_repo.py
import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import case, func, or_, update
from sqlmodel import Session, col, select

from storefront.models.product import Product, ProductImage


class ProductRepository:
    """
    Data access layer for Product & ProductImage.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Writes flush; ProductService / OrderService own the commit.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_slug(self, session: Session, slug: str) -> Product | None:
        stmt = select(Product).where(Product.slug == slug)
        return session.exec(stmt).first()

    def get_by_sku(self, session: Session, sku: str) -> Product | None:
        stmt = select(Product).where(Product.sku == sku)
        return session.exec(stmt).first()

    def get_many(
        self, session: Session, product_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        stmt = select(Product).where(col(Product.id).in_(ids))
        return {p.id: p for p in session.exec(stmt).all()}

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_purchasable: bool = True,
        status: str | None = None,
        category_ids: list[uuid.UUID] | None = None,
    ) -> tuple[list[Product], int]:
        stmt = select(Product)
        count_stmt = select(func.count()).select_from(Product)
        filters = []
        if only_purchasable:
            filters += [Product.status == "active", Product.visibility == "public"]
        if status is not None:
            filters.append(Product.status == status)
        if category_ids is not None:
            filters.append(col(Product.category_id).in_(category_ids))
        for f in filters:
            stmt = stmt.where(f)
            count_stmt = count_stmt.where(f)
        stmt = stmt.order_by(col(Product.created_at).desc()).offset(skip).limit(limit)
        return session.exec(stmt).all(), session.exec(count_stmt).one()

    def save(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.flush()
        return product

    def delete(self, session: Session, product: Product) -> None:
        session.delete(product)
        session.flush()

    # ----- Stock -----

    def decrement_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
        now: datetime,
    ) -> int:
        """
        Take `quantity` units in one conditional UPDATE.

        Matches only when the units are there, or the product is untracked or
        backorderable, so two checkouts cannot both sell the last units.
        Untracked stock is left as is; backorders floor at 0.
        Returns affected row count: 0 means the stock was not there.
        """
        stock = col(Product.stock_quantity)
        result = session.exec(
            update(Product)
            .where(
                Product.id == product_id,
                or_(
                    Product.track_quantity == False,  # noqa: E712
                    Product.allow_backorder == True,  # noqa: E712
                    stock >= quantity,
                ),
            )
            .values(
                stock_quantity=case(
                    (Product.track_quantity == False, stock),  # noqa: E712
                    (stock >= quantity, stock - quantity),
                    else_=0,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
        now: datetime,
    ) -> int:
        """Give `quantity` units back to a tracked product."""
        result = session.exec(
            update(Product)
            .where(
                Product.id == product_id,
                Product.track_quantity == True,  # noqa: E712
            )
            .values(
                stock_quantity=col(Product.stock_quantity) + quantity,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ----- Product images -----

    def list_images_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(col(ProductImage.sort_order), col(ProductImage.id))
        )
        return session.exec(stmt).all()

    def main_images(
        self, session: Session, product_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, str]:
        """product_id -> URL of its main image, for products that have one."""
        ids = list(set(product_ids))
        if not ids:
            return {}
        stmt = select(ProductImage).where(
            col(ProductImage.product_id).in_(ids),
            ProductImage.is_main == True,  # noqa: E712
        )
        return {img.product_id: img.url for img in session.exec(stmt).all()}

    def replace_images(
        self,
        session: Session,
        product_id: uuid.UUID,
        images: list[ProductImage],
    ) -> list[ProductImage]:
        for old in self.list_images_for_product(session, product_id):
            session.delete(old)
        session.flush()
        session.add_all(images)
        session.flush()
        return images
