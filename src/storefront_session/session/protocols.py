"""Protocols for the external collaborators the session layer depends on.

Implementations translate their own failures into the exceptions in
``storefront_session.exceptions``.
"""

from typing import Any, Callable, Protocol

from storefront_session.models.identity import AdminGrant, AuthEvent, Principal, Profile

AuthEventHandler = Callable[[AuthEvent], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    """Remote authentication service."""

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        redirect_to: str | None = None,
    ) -> Principal | None:
        """Create a principal. Returns None if the provider confirmed nothing."""
        ...

    async def sign_in_with_password(self, email: str, password: str) -> Principal:
        """Authenticate. Raises InvalidCredentials on rejection."""
        ...

    async def sign_out(self) -> None:
        ...

    async def get_session(self) -> Principal | None:
        """Principal of the current session, or None."""
        ...

    async def get_user(self) -> Principal | None:
        ...

    async def update_user(self, fields: dict[str, Any]) -> Principal:
        ...

    async def reset_password_for_email(
        self,
        email: str,
        redirect_to: str | None = None,
    ) -> None:
        ...

    def on_auth_state_change(self, handler: AuthEventHandler) -> Unsubscribe:
        """Register a handler for lifecycle events, returns the unsubscribe."""
        ...


class ProfileStore(Protocol):
    """Keyed profile records with a uniqueness constraint on id."""

    async def select_by_id(self, profile_id: str) -> Profile | None:
        ...

    async def insert(self, record: Profile) -> Profile:
        """Insert a record. Raises ProfileConflict if the id already exists."""
        ...

    async def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        ...


class AdminGrantStore(Protocol):
    """Keyed privileged-role records."""

    async def select_by_id(self, grant_id: str) -> AdminGrant | None:
        ...

    async def update(self, grant_id: str, fields: dict[str, Any]) -> None:
        ...
