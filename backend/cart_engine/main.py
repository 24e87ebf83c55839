import asyncio
from typing import Optional

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
import logging

from cart_engine.core.config import settings
from cart_engine.core.database import connect_to_mongo, close_mongo_connection, get_database
from cart_engine.core.storage import InMemoryKeyValueStore, KeyValueStore, MongoKeyValueStore
from cart_engine.services.cart_service import CartService
from cart_engine.services.coupon_catalog import CouponCatalog
from cart_engine.services.presenter_service import CartPresenter
from cart_engine.services.sync_service import SyncService
from cart_engine.api.routes import cart

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_store() -> KeyValueStore:
    """Create the durable store selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "mongo":
        connect_to_mongo()
        return MongoKeyValueStore(get_database()[settings.MONGODB_COLLECTION])
    return InMemoryKeyValueStore()


def create_app(
    store: Optional[KeyValueStore] = None,
    catalog: Optional[CouponCatalog] = None
) -> FastAPI:
    """
    Create the application. Its cart instance is built on startup.

    Args:
        store: Durable store for the cart; defaults to the configured backend
        catalog: Coupon catalog; defaults to the configured coupons
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Shopping cart and pricing API for the storefront",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Startup and shutdown events
    @app.on_event("startup")
    async def startup_event():
        """Open the durable store, build the cart and start cross-instance sync."""
        logger.info("Starting up cart service...")
        cart_store = store if store is not None else await run_in_threadpool(create_store)
        cart_service = await run_in_threadpool(CartService, cart_store, catalog, settings)
        app.state.cart = cart_service
        app.state.sync = SyncService(cart_service)
        app.state.presenter = CartPresenter(cart_service)

        cart_store.bus.attach_loop(asyncio.get_running_loop())
        app.state.sync.start()
        logger.info(f"Cart service started with {cart_service.total_item_count()} items in cart")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop sync and release the storage backend."""
        logger.info("Shutting down cart service...")
        app.state.sync.stop()
        app.state.presenter.close()
        app.state.cart.store.bus.attach_loop(None)
        close_mongo_connection()
        logger.info("Cart service shut down successfully")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "cart-engine",
            "version": "1.0.0"
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.PROJECT_NAME,
            "version": "1.0.0",
            "description": "Storefront Cart API",
            "docs": "/docs",
            "health": "/health"
        }

    # Include routers
    app.include_router(cart.router, prefix=f"{settings.API_V1_PREFIX}/cart", tags=["Cart"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
