"""Storefront Session - identity and session reconciliation for the storefront UI."""

__version__ = "0.1.0"

from storefront_session.exceptions import SessionError

__all__ = ["__version__", "SessionError"]
