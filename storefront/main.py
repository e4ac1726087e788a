# storefront/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.core.config import Settings, get_settings
from storefront.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_error_handler,
)
from storefront.database import Database

# Import models so SQLModel metadata is populated before create_all()
from storefront.models import user as _user_models  # noqa: F401
from storefront.models import product as _product_models  # noqa: F401
from storefront.models import cart as _cart_models  # noqa: F401
from storefront.models import coupon as _coupon_models  # noqa: F401
from storefront.models import order as _order_models  # noqa: F401
from storefront.models import wishlist as _wishlist_models  # noqa: F401
from storefront.models import address as _address_models  # noqa: F401
from storefront.models import category as _category_models  # noqa: F401
from storefront.models import review as _review_models  # noqa: F401

# Routers
from storefront.routers.auth import router as auth_router
from storefront.routers.products import router as products_router
from storefront.routers.coupons import router as coupons_router
from storefront.routers.cart import router as cart_router
from storefront.routers.wishlists import router as wishlists_router
from storefront.routers.orders import router as orders_router
from storefront.routers.users import router as users_router
from storefront.routers.categories import router as categories_router
from storefront.routers.reviews import router as reviews_router

logger = logging.getLogger("uvicorn")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Application factory.

    `settings` defaults to the environment (.env); `database` defaults to one
    built from those settings. Tests pass both explicitly.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Startup:
          - Build the engine, verify DB connectivity and create tables.

        Shutdown:
          - Dispose the engine's connection pool.
        """
        db = database or Database.from_settings(settings)
        logger.info("Startup: connecting to database...")
        try:
            db.create_all()
            logger.info("Startup: DB connection OK, tables verified.")
        except Exception as e:
            logger.error(f"Startup: DB connection FAILED: {e}")
            raise
        app.state.db = db
        try:
            yield
        finally:
            db.dispose()
            logger.info("Shutdown: database connections closed.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- CORS configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error envelope ---
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Versioned API prefix, e.g. /api/v1
    app.include_router(auth_router, prefix=settings.API_V1_STR)
    app.include_router(products_router, prefix=settings.API_V1_STR)
    app.include_router(coupons_router, prefix=settings.API_V1_STR)
    app.include_router(cart_router, prefix=settings.API_V1_STR)
    app.include_router(wishlists_router, prefix=settings.API_V1_STR)
    app.include_router(orders_router, prefix=settings.API_V1_STR)
    app.include_router(users_router, prefix=settings.API_V1_STR)
    app.include_router(categories_router, prefix=settings.API_V1_STR)
    app.include_router(reviews_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "storefront-api"}

    return app
