"""Session runtime - wires the session components and owns their lifecycle."""

import logging

from storefront_session.config import Settings
from storefront_session.models.identity import SessionSnapshot
from storefront_session.session.admin import AdminAuthorizationGate
from storefront_session.session.credentials import CredentialOperations
from storefront_session.session.listener import SessionEventListener
from storefront_session.session.protocols import (
    AdminGrantStore,
    IdentityProvider,
    ProfileStore,
)
from storefront_session.session.reconciler import ProfileReconciler
from storefront_session.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionRuntime:
    """One per application.

    ``start()`` subscribes to the identity provider, ``stop()``
    unsubscribes. Consumers get the store, the credential operations and
    the admin gate injected from here rather than through module globals.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        profiles: ProfileStore,
        grants: AdminGrantStore,
        settings: Settings,
    ) -> None:
        self.store = SessionStore(queue_size=settings.subscriber_queue_size)
        self.reconciler = ProfileReconciler(
            profiles,
            wait_seconds=settings.profile_wait_seconds,
            wait_attempts=settings.profile_wait_attempts,
            backoff=settings.profile_wait_backoff,
        )
        self.listener = SessionEventListener(provider, self.reconciler, self.store)
        self.gate = AdminAuthorizationGate(grants)
        self.credentials = CredentialOperations(
            provider,
            profiles,
            self.listener,
            self.store,
            self.gate,
            min_password_length=settings.min_password_length,
            email_redirect_to=settings.email_redirect_to,
            password_reset_redirect_to=settings.password_reset_redirect_to,
        )

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.store.snapshot

    async def start(self) -> None:
        await self.listener.start()

    async def stop(self) -> None:
        await self.listener.stop()

    async def is_admin(self) -> bool:
        """Live admin check for whoever is signed in right now."""
        profile = self.store.profile
        if profile is None:
            return False
        return await self.gate.check(profile.id)
