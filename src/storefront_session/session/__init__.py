"""Session layer: reconciliation, event sequencing and credential operations."""

from storefront_session.session.admin import AdminAuthorizationGate
from storefront_session.session.credentials import CredentialOperations
from storefront_session.session.listener import SessionEventListener
from storefront_session.session.reconciler import ProfileReconciler
from storefront_session.session.runtime import SessionRuntime
from storefront_session.session.store import SessionStore

__all__ = [
    "AdminAuthorizationGate",
    "CredentialOperations",
    "ProfileReconciler",
    "SessionEventListener",
    "SessionRuntime",
    "SessionStore",
]
