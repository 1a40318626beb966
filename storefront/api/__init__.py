# storefront/api/__init__.py
from storefront.api.routers import carts, favorites, health, orders, sessions, users

ROUTERS = (
    health.router,
    sessions.router,
    carts.router,
    favorites.router,
    users.router,
    orders.router,
)
