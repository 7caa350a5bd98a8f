"""Supabase adapters for the identity provider, profile store and admin grants."""

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client
from supabase_auth.errors import AuthApiError, AuthError, AuthRetryableError

from storefront_session.config import Settings
from storefront_session.exceptions import (
    AdminGrantLookupFailed,
    InvalidCredentials,
    NetworkUnavailable,
    ProfileConflict,
    ProfileCreateFailed,
    ProfileFetchFailed,
    ProfileUpdateFailed,
    SessionUnavailable,
)
from storefront_session.models.identity import (
    AdminGrant,
    AuthEvent,
    AuthEventType,
    Principal,
    Profile,
)
from storefront_session.session.protocols import AuthEventHandler, Unsubscribe

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


def _principal(user: Any) -> Principal:
    """Convert a supabase_auth ``User`` into a Principal."""
    return Principal(
        id=user.id,
        email=user.email or "",
        metadata=dict(user.user_metadata or {}),
    )


class SupabaseIdentityProvider:
    """Identity provider backed by Supabase Auth."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        redirect_to: str | None = None,
    ) -> Principal | None:
        options: dict[str, Any] = {"data": metadata}
        if redirect_to:
            options["email_redirect_to"] = redirect_to

        try:
            response = await self.client.auth.sign_up(
                {"email": email, "password": password, "options": options}
            )
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"Sign-up failed: {e}") from e
        except AuthError as e:
            raise InvalidCredentials(str(e)) from e

        if response.user is None:
            return None
        return _principal(response.user)

    async def sign_in_with_password(self, email: str, password: str) -> Principal:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"Sign-in failed: {e}") from e
        except AuthError as e:
            raise InvalidCredentials(str(e)) from e

        if response.user is None:
            raise InvalidCredentials("Sign-in returned no user")
        return _principal(response.user)

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"Sign-out failed: {e}") from e
        except AuthError as e:
            raise SessionUnavailable(str(e)) from e

    async def get_session(self) -> Principal | None:
        try:
            session = await self.client.auth.get_session()
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"Session lookup failed: {e}") from e
        except AuthError as e:
            logger.debug(f"No usable session: {e}")
            return None

        if session is None or session.user is None:
            return None
        return _principal(session.user)

    async def get_user(self) -> Principal | None:
        try:
            response = await self.client.auth.get_user()
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"User lookup failed: {e}") from e
        except AuthError as e:
            logger.debug(f"No current user: {e}")
            return None

        if response is None or response.user is None:
            return None
        return _principal(response.user)

    async def update_user(self, fields: dict[str, Any]) -> Principal:
        try:
            response = await self.client.auth.update_user(fields)
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"User update failed: {e}") from e
        except AuthError as e:
            raise SessionUnavailable(str(e)) from e
        return _principal(response.user)

    async def reset_password_for_email(
        self,
        email: str,
        redirect_to: str | None = None,
    ) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        try:
            await self.client.auth.reset_password_for_email(email, options)
        except (AuthRetryableError, httpx.TransportError) as e:
            raise NetworkUnavailable(f"Password reset request failed: {e}") from e
        except AuthApiError as e:
            raise InvalidCredentials(str(e)) from e

    def on_auth_state_change(self, handler: AuthEventHandler) -> Unsubscribe:
        def _callback(event: str, session: Any) -> None:
            try:
                event_type = AuthEventType(event)
            except ValueError:
                logger.debug(f"Ignoring auth event {event}")
                return
            user = getattr(session, "user", None) if session is not None else None
            principal = _principal(user) if user is not None else None
            handler(AuthEvent(type=event_type, principal=principal))

        subscription = self.client.auth.on_auth_state_change(_callback)
        return subscription.unsubscribe


class SupabaseProfileStore:
    """Profile records in a PostgREST table with a unique ``id``."""

    def __init__(self, client: AsyncClient, table: str = "profiles") -> None:
        self.client = client
        self.table = table

    async def select_by_id(self, profile_id: str) -> Profile | None:
        try:
            result = await (
                self.client.table(self.table)
                .select("*")
                .eq("id", profile_id)
                .limit(1)
                .execute()
            )
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"Profile read failed: {e}") from e
        except APIError as e:
            raise ProfileFetchFailed(f"Profile read failed: {e.message}") from e

        if result.data and len(result.data) > 0:
            return Profile(**result.data[0])
        return None

    async def insert(self, record: Profile) -> Profile:
        try:
            result = await (
                self.client.table(self.table)
                .insert(record.model_dump(mode="json"))
                .execute()
            )
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"Profile insert failed: {e}") from e
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ProfileConflict(record.id) from e
            raise ProfileCreateFailed(f"Profile insert failed: {e.message}") from e

        logger.debug(f"Created profile {record.id}")
        if result.data:
            return Profile(**result.data[0])
        return record

    async def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        try:
            result = await (
                self.client.table(self.table)
                .update(fields)
                .eq("id", profile_id)
                .execute()
            )
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"Profile update failed: {e}") from e
        except APIError as e:
            raise ProfileUpdateFailed(f"Profile update failed: {e.message}") from e

        if not result.data:
            raise ProfileUpdateFailed(f"Profile {profile_id} not found")
        return Profile(**result.data[0])


class SupabaseAdminGrantStore:
    """Admin grant records, read and ``last_login`` updates only."""

    def __init__(self, client: AsyncClient, table: str = "admin_auth") -> None:
        self.client = client
        self.table = table

    async def select_by_id(self, grant_id: str) -> AdminGrant | None:
        try:
            result = await (
                self.client.table(self.table)
                .select("*")
                .eq("id", grant_id)
                .limit(1)
                .execute()
            )
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"Admin grant read failed: {e}") from e
        except APIError as e:
            raise AdminGrantLookupFailed(f"Admin grant read failed: {e.message}") from e

        if result.data and len(result.data) > 0:
            return AdminGrant(**result.data[0])
        return None

    async def update(self, grant_id: str, fields: dict[str, Any]) -> None:
        try:
            await self.client.table(self.table).update(fields).eq("id", grant_id).execute()
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"Admin grant update failed: {e}") from e
        except APIError as e:
            raise AdminGrantLookupFailed(f"Admin grant update failed: {e.message}") from e


async def connect(
    settings: Settings,
) -> tuple[SupabaseIdentityProvider, SupabaseProfileStore, SupabaseAdminGrantStore]:
    """Create one async Supabase client and the three adapters sharing it."""
    client = await acreate_client(settings.supabase_url, settings.supabase_key)
    logger.info(f"Connected to Supabase at {settings.supabase_url}")
    return (
        SupabaseIdentityProvider(client),
        SupabaseProfileStore(client, settings.profiles_table),
        SupabaseAdminGrantStore(client, settings.admin_table),
    )
