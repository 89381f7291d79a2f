"""FastAPI routers for the party API."""

from .customers import router as customers_router
from .parties import router as parties_router
from .users import router as users_router

__all__ = [
    "customers_router",
    "parties_router",
    "users_router",
]
