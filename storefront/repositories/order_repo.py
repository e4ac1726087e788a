# storefront/repositories/order_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.models.order import Order, OrderItem, OrderStatusHistory


class OrderRepository:
    """
    Data access layer for orders, order_items and order_status_history.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        user_id: uuid.UUID | None = None,
        status: str | None = None,
        order_number: str | None = None,
    ) -> tuple[list[Order], int]:
        filters = []
        if user_id is not None:
            filters.append(Order.user_id == user_id)
        if status is not None:
            filters.append(Order.status == status)
        if order_number is not None:
            filters.append(col(Order.order_number).contains(order_number))

        stmt = select(Order)
        count_stmt = select(func.count()).select_from(Order)
        for f in filters:
            stmt = stmt.where(f)
            count_stmt = count_stmt.where(f)

        stmt = (
            stmt.order_by(col(Order.created_at).desc(), col(Order.order_number).desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all(), session.exec(count_stmt).one()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_number(self, session: Session, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return session.exec(stmt).first()

    def number_exists(self, session: Session, order_number: str) -> bool:
        return self.get_by_number(session, order_number) is not None

    def count_with_prefix(self, session: Session, prefix: str) -> int:
        """Orders whose number starts with `prefix` (used for the daily sequence)."""
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(col(Order.order_number).startswith(prefix))
        )
        return session.exec(stmt).one()

    def count_coupon_uses(
        self,
        session: Session,
        code: str,
        user_id: uuid.UUID | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.coupon_code == code, Order.status != "cancelled")
        )
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        return session.exec(stmt).one()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def has_delivered_item(
        self, session: Session, user_id: uuid.UUID, product_id: uuid.UUID
    ) -> bool:
        """True when the user has a delivered order containing the product."""
        stmt = (
            select(OrderItem.id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                Order.user_id == user_id,
                Order.status == "delivered",
                OrderItem.product_id == product_id,
            )
            .limit(1)
        )
        return session.exec(stmt).first() is not None

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        return items

    # ---- Status history ----

    def add_history(self, session: Session, entry: OrderStatusHistory) -> None:
        session.add(entry)
        session.flush()

    def list_history(
        self, session: Session, order_id: uuid.UUID
    ) -> list[OrderStatusHistory]:
        stmt = (
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(col(OrderStatusHistory.created_at), col(OrderStatusHistory.id))
        )
        return session.exec(stmt).all()
