# storefront/api/__init__.py
from fastapi import FastAPI
from storefront.api.routers import admin, carts, health, orders


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront",
        version="1.0.0",
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    return app
