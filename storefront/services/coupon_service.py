# storefront/services/coupon_service.py
"""
Coupon lookup and eligibility.

Eligibility is a pluggable list of rules. Each rule inspects a
CouponContext and returns a failure message, or None when it passes.
The first failing rule wins and its name is reported to the client in
the error details.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlmodel import Session

from storefront.core.errors import ConflictError, NotFoundError, ValidationError
from storefront.core.timeutils import as_utc, utcnow
from storefront.models.coupon import Coupon
from storefront.repositories.coupon_repo import CouponRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.coupon import CouponCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponContext:
    session: Session
    coupon: Coupon
    subtotal: Decimal
    user_id: uuid.UUID | None
    now: datetime


class CouponRule(Protocol):
    name: str

    def check(self, ctx: CouponContext) -> str | None: ...


class ActiveRule:
    name = "active"

    def check(self, ctx: CouponContext) -> str | None:
        if not ctx.coupon.is_active:
            return "Coupon is not active"
        return None


class ActiveWindowRule:
    name = "active_window"

    def check(self, ctx: CouponContext) -> str | None:
        starts_at = as_utc(ctx.coupon.starts_at)
        expires_at = as_utc(ctx.coupon.expires_at)
        if starts_at is not None and ctx.now < starts_at:
            return "Coupon is not valid yet"
        if expires_at is not None and ctx.now >= expires_at:
            return "Coupon has expired"
        return None


class MinimumSubtotalRule:
    name = "min_subtotal"

    def check(self, ctx: CouponContext) -> str | None:
        minimum = ctx.coupon.min_subtotal
        if minimum is not None and ctx.subtotal < minimum:
            return f"Cart subtotal must be at least {minimum} to use this coupon"
        return None


class UsageLimitRule:
    name = "usage_limit"

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo

    def check(self, ctx: CouponContext) -> str | None:
        limit = ctx.coupon.usage_limit
        if limit is None:
            return None
        if self.order_repo.count_coupon_uses(ctx.session, ctx.coupon.code) >= limit:
            return "Coupon usage limit has been reached"
        return None


class PerUserLimitRule:
    name = "per_user_limit"

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo

    def check(self, ctx: CouponContext) -> str | None:
        limit = ctx.coupon.per_user_limit
        # Guests are checked again at checkout, where a user is always known
        if limit is None or ctx.user_id is None:
            return None
        used = self.order_repo.count_coupon_uses(
            ctx.session, ctx.coupon.code, user_id=ctx.user_id
        )
        if used >= limit:
            return "You have already used this coupon the maximum number of times"
        return None


def default_rules(order_repo: OrderRepository) -> list[CouponRule]:
    return [
        ActiveRule(),
        ActiveWindowRule(),
        MinimumSubtotalRule(),
        UsageLimitRule(order_repo),
        PerUserLimitRule(order_repo),
    ]


class CouponService:
    def __init__(
        self,
        coupon_repo: CouponRepository,
        order_repo: OrderRepository,
        rules: list[CouponRule] | None = None,
    ):
        self.coupon_repo = coupon_repo
        self.rules = rules if rules is not None else default_rules(order_repo)

    def get_by_code(self, session: Session, code: str) -> Coupon:
        coupon = self.coupon_repo.get_by_code(session, code)
        if coupon is None:
            raise NotFoundError("Coupon not found", details={"code": code.strip().upper()})
        return coupon

    def first_failure(
        self,
        session: Session,
        coupon: Coupon,
        subtotal: Decimal,
        user_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> tuple[str, str] | None:
        """(rule name, message) of the first failing rule, or None if eligible."""
        ctx = CouponContext(
            session=session,
            coupon=coupon,
            subtotal=subtotal,
            user_id=user_id,
            now=now or utcnow(),
        )
        for rule in self.rules:
            message = rule.check(ctx)
            if message is not None:
                return rule.name, message
        return None

    def ensure_eligible(
        self,
        session: Session,
        coupon: Coupon,
        subtotal: Decimal,
        user_id: uuid.UUID | None = None,
    ) -> None:
        failure = self.first_failure(session, coupon, subtotal, user_id)
        if failure is not None:
            rule, message = failure
            raise ValidationError(message, details={"code": coupon.code, "rule": rule})

    # ----- Admin -----

    def create_coupon(self, session: Session, payload: CouponCreate) -> Coupon:
        if self.coupon_repo.get_by_code(session, payload.code) is not None:
            raise ConflictError("Coupon code already exists", details={"code": payload.code})
        coupon = self.coupon_repo.create(session, Coupon(**payload.model_dump()))
        logger.info("Coupon %s created (%s %s)", coupon.code, coupon.type, coupon.value)
        return coupon

    def list_coupons(self, session: Session, skip: int = 0, limit: int = 50) -> list[Coupon]:
        return self.coupon_repo.list_coupons(session, skip=skip, limit=limit)
