"""Sales domain API package."""

from sales.api.errors import register_error_handlers
from sales.api.routes import order_router

__all__ = ["order_router", "register_error_handlers"]
