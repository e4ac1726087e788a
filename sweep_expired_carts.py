# sweep_expired_carts.py
import logging

from storefront.core.config import get_settings
from storefront.database import Database
from storefront.routers.deps import build_cart_service


def main():
    """
    Mark idle carts abandoned and delete expired ones.

    Meant for cron; the same operation is exposed as POST /api/v1/cart/sweep.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    db = Database.from_settings(settings)
    try:
        db.create_all()
        with db.session() as session:
            result = build_cart_service(settings).sweep(session)
    finally:
        db.dispose()

    print(f"Abandoned: {result.abandoned}, deleted: {result.deleted}")


if __name__ == "__main__":
    main()
