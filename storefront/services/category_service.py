# storefront/services/category_service.py
import logging
import uuid

from sqlmodel import Session

from storefront.core.errors import ConflictError, NotFoundError, ValidationError
from storefront.core.slugs import slugify
from storefront.core.timeutils import utcnow
from storefront.models.category import MAX_CATEGORY_LEVEL, Category
from storefront.repositories.category_repo import CategoryRepository
from storefront.schemas.category import (
    CategoryCreate,
    CategoryNode,
    CategoryRead,
    CategoryUpdate,
)

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Business logic for product categories.

    Responsibilities:
      - slug generation & uniqueness
      - nesting: level = parent.level + 1, at most MAX_CATEGORY_LEVEL, no cycles
      - public reads only see active categories
      - a category with sub-categories or products cannot be deleted
    """

    def __init__(self, repo: CategoryRepository):
        self.repo = repo

    # ----- Helpers -----

    def _ensure_unique_slug(
        self,
        session: Session,
        base_slug: str,
        exclude_id: uuid.UUID | None = None,
    ) -> str:
        slug = base_slug
        i = 2
        while True:
            existing = self.repo.get_by_slug(session, slug)
            if existing is None or existing.id == exclude_id:
                return slug
            slug = f"{base_slug}-{i}"
            i += 1

    def _lookup(self, session: Session, ref: str) -> Category | None:
        try:
            return self.repo.get_by_id(session, uuid.UUID(ref))
        except ValueError:
            return self.repo.get_by_slug(session, ref)

    def _get(self, session: Session, category_id: uuid.UUID) -> Category:
        category = self.repo.get_by_id(session, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _get_parent(self, session: Session, parent_id: uuid.UUID) -> Category:
        parent = self.repo.get_by_id(session, parent_id)
        if parent is None:
            raise NotFoundError(
                "Parent category not found", details={"parent_id": str(parent_id)}
            )
        return parent

    def _subtree(self, session: Session, category: Category) -> list[tuple[Category, int]]:
        """(category, depth below `category`) for the category and all descendants."""
        found = [(category, 0)]
        i = 0
        while i < len(found):
            node, depth = found[i]
            for child in self.repo.list_categories(
                session, only_active=False, parent_id=node.id
            ):
                found.append((child, depth + 1))
            i += 1
        return found

    def subtree_ids(self, session: Session, category: Category) -> list[uuid.UUID]:
        """Ids of the category and every category nested below it."""
        ids = [category.id]
        frontier = [category.id]
        while frontier:
            frontier = self.repo.child_ids(session, frontier)
            ids.extend(frontier)
        return ids

    @staticmethod
    def _to_read(category: Category) -> CategoryRead:
        return CategoryRead.model_validate(category, from_attributes=True)

    # ----- Reads -----

    def list_categories(
        self,
        session: Session,
        include_inactive: bool = False,
        level: int | None = None,
    ) -> list[CategoryRead]:
        categories = self.repo.list_categories(
            session, only_active=not include_inactive, level=level
        )
        return [self._to_read(c) for c in categories]

    def hierarchy(self, session: Session, include_inactive: bool = False) -> list[CategoryNode]:
        """
        Categories as a forest of root nodes.

        A child of a hidden (inactive) category is hidden with it.
        """
        categories = self.repo.list_categories(session, only_active=not include_inactive)
        nodes = {
            c.id: CategoryNode(**self._to_read(c).model_dump()) for c in categories
        }
        roots: list[CategoryNode] = []
        for c in categories:
            if c.parent_id is None:
                roots.append(nodes[c.id])
            elif c.parent_id in nodes:
                nodes[c.parent_id].children.append(nodes[c.id])
        return roots

    def resolve(
        self, session: Session, ref: str, include_inactive: bool = False
    ) -> Category:
        """Lookup by id or slug; inactive categories are hidden from the public."""
        category = self._lookup(session, ref)
        if category is None or (not include_inactive and not category.is_active):
            raise NotFoundError("Category not found")
        return category

    def get_category(
        self, session: Session, ref: str, include_inactive: bool = False
    ) -> CategoryRead:
        return self._to_read(self.resolve(session, ref, include_inactive))

    def ensure_exists(self, session: Session, category_id: uuid.UUID) -> Category:
        """Used by product writes: the referenced category must exist."""
        category = self.repo.get_by_id(session, category_id)
        if category is None:
            raise ValidationError(
                "Category does not exist", details={"category_id": str(category_id)}
            )
        return category

    # ----- Admin writes -----

    def create_category(self, session: Session, payload: CategoryCreate) -> CategoryRead:
        level = 0
        if payload.parent_id is not None:
            level = self._get_parent(session, payload.parent_id).level + 1
        if level > MAX_CATEGORY_LEVEL:
            raise ValidationError(
                f"Categories can be nested at most {MAX_CATEGORY_LEVEL} levels deep"
            )

        slug = self._ensure_unique_slug(
            session, slugify(payload.slug or payload.name, "category")
        )
        now = utcnow()
        category = self.repo.save(
            session,
            Category(
                **payload.model_dump(exclude={"slug"}),
                slug=slug,
                level=level,
                created_at=now,
                updated_at=now,
            ),
        )
        session.commit()
        session.refresh(category)
        logger.info("Category created: %s (%s)", category.slug, category.id)
        return self._to_read(category)

    def update_category(
        self,
        session: Session,
        category_id: uuid.UUID,
        payload: CategoryUpdate,
    ) -> CategoryRead:
        """
        Partial update.

        Moving a category re-levels its whole subtree; moving it under itself
        or one of its descendants, or deeper than the level limit, is rejected.
        """
        category = self._get(session, category_id)
        now = utcnow()

        if payload.move_to_root or payload.parent_id is not None:
            subtree = self._subtree(session, category)
            new_level = 0
            new_parent_id = None
            if not payload.move_to_root:
                parent = self._get_parent(session, payload.parent_id)
                if parent.id in {c.id for c, _ in subtree}:
                    raise ValidationError(
                        "A category cannot be moved under itself or its descendants"
                    )
                new_level = parent.level + 1
                new_parent_id = parent.id
            if new_level + max(depth for _, depth in subtree) > MAX_CATEGORY_LEVEL:
                raise ValidationError(
                    f"Categories can be nested at most {MAX_CATEGORY_LEVEL} levels deep"
                )
            category.parent_id = new_parent_id
            for node, depth in subtree:
                node.level = new_level + depth
                node.updated_at = now
                self.repo.save(session, node)

        if payload.slug is not None:
            category.slug = self._ensure_unique_slug(
                session, slugify(payload.slug, "category"), exclude_id=category.id
            )

        changes = payload.model_dump(
            exclude_unset=True, exclude={"slug", "parent_id", "move_to_root"}
        )
        for field, value in changes.items():
            if value is not None:
                setattr(category, field, value)
        category.updated_at = now
        self.repo.save(session, category)

        session.commit()
        session.refresh(category)
        return self._to_read(category)

    def delete_category(self, session: Session, category_id: uuid.UUID) -> None:
        category = self._get(session, category_id)
        if self.repo.child_ids(session, [category.id]):
            raise ConflictError("Category has sub-categories")
        products = self.repo.count_products(session, [category.id])
        if products:
            raise ConflictError(
                "Category still has products", details={"product_count": products}
            )
        self.repo.delete(session, category)
        session.commit()
        logger.info("Category deleted: %s", category_id)
