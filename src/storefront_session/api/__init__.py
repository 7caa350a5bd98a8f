"""FastAPI routes for Storefront Session."""

from storefront_session.api.deps import Credentials, Runtime, Store
from storefront_session.api.routes import router, session_error_handler

__all__ = ["Credentials", "Runtime", "Store", "router", "session_error_handler"]
