# storefront/repositories/category_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.models.category import Category
from storefront.models.product import Product


class CategoryRepository:
    """
    Data access layer for categories.

    Writes flush; CategoryService commits.
    """

    def get_by_id(self, session: Session, category_id: uuid.UUID) -> Category | None:
        return session.get(Category, category_id)

    def get_by_slug(self, session: Session, slug: str) -> Category | None:
        stmt = select(Category).where(Category.slug == slug)
        return session.exec(stmt).first()

    def list_categories(
        self,
        session: Session,
        only_active: bool = True,
        parent_id: uuid.UUID | None = None,
        level: int | None = None,
    ) -> list[Category]:
        stmt = select(Category)
        if only_active:
            stmt = stmt.where(Category.is_active == True)  # noqa: E712
        if parent_id is not None:
            stmt = stmt.where(Category.parent_id == parent_id)
        if level is not None:
            stmt = stmt.where(Category.level == level)
        stmt = stmt.order_by(
            col(Category.level), col(Category.sort_order), col(Category.name)
        )
        return session.exec(stmt).all()

    def child_ids(self, session: Session, parent_ids: list[uuid.UUID]) -> list[uuid.UUID]:
        if not parent_ids:
            return []
        stmt = select(Category.id).where(col(Category.parent_id).in_(parent_ids))
        return list(session.exec(stmt).all())

    def count_products(self, session: Session, category_ids: list[uuid.UUID]) -> int:
        if not category_ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(Product)
            .where(col(Product.category_id).in_(category_ids))
        )
        return session.exec(stmt).one()

    def save(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.flush()
        return category

    def delete(self, session: Session, category: Category) -> None:
        session.delete(category)
        session.flush()
