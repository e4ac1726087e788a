# storefront/repositories/coupon_repo.py
from sqlmodel import Session, col, select

from storefront.models.coupon import Coupon


class CouponRepository:
    """Data access layer for coupons."""

    def get_by_code(self, session: Session, code: str) -> Coupon | None:
        stmt = select(Coupon).where(Coupon.code == code.strip().upper())
        return session.exec(stmt).first()

    def list_coupons(
        self, session: Session, skip: int = 0, limit: int = 50
    ) -> list[Coupon]:
        stmt = (
            select(Coupon)
            .order_by(col(Coupon.created_at).desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create(self, session: Session, coupon: Coupon) -> Coupon:
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon
