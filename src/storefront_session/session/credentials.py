"""Credential operations - the user-initiated half of the session layer."""

import logging
from datetime import datetime, UTC
from typing import Any

from storefront_session.exceptions import (
    PasswordPolicyViolation,
    ProfilePolicyViolation,
    SessionError,
    SessionUnavailable,
    UnauthorizedAdminAccess,
)
from storefront_session.models.identity import (
    LEGACY_NAME_KEY,
    PRIMARY_NAME_KEY,
    Principal,
    Profile,
    ProfileUpdate,
)
from storefront_session.session.admin import AdminAuthorizationGate
from storefront_session.session.listener import SessionEventListener
from storefront_session.session.protocols import IdentityProvider, ProfileStore
from storefront_session.session.store import SessionStore

logger = logging.getLogger(__name__)

# Profile fields a generic edit may change
EDITABLE_PROFILE_FIELDS = frozenset({"name"})


class CredentialOperations:
    """Sign-in, sign-up, sign-out and account edits.

    Every error is surfaced to the caller, except a failing remote sign-out:
    local state is authoritative for UI gating, so the session is cleared
    regardless.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        profiles: ProfileStore,
        listener: SessionEventListener,
        store: SessionStore,
        gate: AdminAuthorizationGate,
        min_password_length: int = 8,
        email_redirect_to: str | None = None,
        password_reset_redirect_to: str | None = None,
    ) -> None:
        self.provider = provider
        self.profiles = profiles
        self.listener = listener
        self.store = store
        self.gate = gate
        self.min_password_length = min_password_length
        self.email_redirect_to = email_redirect_to
        self.password_reset_redirect_to = password_reset_redirect_to

    async def sign_in(self, email: str, password: str) -> Profile:
        """Authenticate and return a ready profile.

        Args:
            email: Account email
            password: Account password

        Returns:
            The reconciled profile, already applied to the session store

        Raises:
            InvalidCredentials: If the provider rejects the credentials
            ProfileFetchFailed: If the profile cannot be read
            ProfileCreateFailed: If the fallback profile cannot be created
            NetworkUnavailable: On transport faults
        """
        principal = await self.provider.sign_in_with_password(email, password)
        logger.info(f"Signed in {principal.id}")
        return await self.listener.reconcile_now(principal)

    async def sign_up(self, email: str, password: str, name: str) -> Principal:
        """Create a principal. Does not wait for its profile.

        The profile is reconciled lazily from the SIGNED_IN / INITIAL_SESSION
        event that follows.
        """
        self._check_password(password)
        metadata = {PRIMARY_NAME_KEY: name, LEGACY_NAME_KEY: name}

        principal = await self.provider.sign_up(
            email,
            password,
            metadata,
            redirect_to=self.email_redirect_to,
        )
        if principal is None:
            raise SessionUnavailable("Sign-up did not return a principal")

        logger.info(f"Signed up {principal.id}")
        return principal

    async def sign_out(self) -> None:
        """Sign out remotely and always clear the local session."""
        try:
            await self.provider.sign_out()
        except SessionError as e:
            logger.warning(f"Remote sign-out failed, clearing local session anyway: {e}")
        finally:
            self.listener.clear()

    async def update_password(self, new_password: str) -> None:
        """Rotate the signed-in principal's password.

        Raises:
            SessionUnavailable: If there is no active session
            PasswordPolicyViolation: If the password is too short
        """
        principal = await self.provider.get_session()
        if principal is None:
            raise SessionUnavailable("An active session is required to change the password")

        self._check_password(new_password)
        await self.provider.update_user({"password": new_password})
        logger.info(f"Password updated for {principal.id}")

    async def update_profile(self, update: ProfileUpdate | dict[str, Any]) -> Profile:
        """Edit the signed-in profile.

        Only the name is editable. It is trimmed before storing and then
        mirrored into the principal metadata. Sending the current
        email unchanged is tolerated; any other email is a policy violation.

        Raises:
            SessionUnavailable: If nobody is signed in
            ProfilePolicyViolation: If a non-editable field is changed or the
                name is blank
        """
        if isinstance(update, dict):
            update = ProfileUpdate(**update)
        current = self.store.profile
        if current is None:
            raise SessionUnavailable("Sign in to update your profile")

        changes = update.changes()
        email = changes.pop("email", None)
        if email is not None and email != current.email:
            raise ProfilePolicyViolation(
                "email", "email can only be changed through credential rotation"
            )
        for field in changes:
            if field not in EDITABLE_PROFILE_FIELDS:
                raise ProfilePolicyViolation(field, "field is not editable")
        name = changes.pop("name", None)
        if name is None:
            return current
        name = name.strip()
        if not name:
            raise ProfilePolicyViolation("name", "name cannot be empty")

        sequence = self.store.next_sequence()
        changes = {"name": name, "updated_at": datetime.now(UTC).isoformat()}
        profile = await self.profiles.update(current.id, changes)
        self.listener.apply(sequence, profile)
        logger.info(f"Updated profile {profile.id}")

        try:
            await self.provider.update_user(
                {"data": {PRIMARY_NAME_KEY: name, LEGACY_NAME_KEY: name}}
            )
        except SessionError as e:
            logger.warning(f"Profile {profile.id} renamed but auth metadata not synced: {e}")
        return profile

    async def request_password_reset(self, email: str) -> None:
        """Ask the provider to email password reset instructions."""
        await self.provider.reset_password_for_email(
            email,
            redirect_to=self.password_reset_redirect_to,
        )
        logger.info("Password reset requested")

    async def sign_in_admin(self, email: str, password: str) -> Profile:
        """Sign in and require an admin grant.

        A principal without a grant is signed straight back out.

        Raises:
            UnauthorizedAdminAccess: If the grant check is negative
        """
        profile = await self.sign_in(email, password)

        if not await self.gate.check(profile.id):
            logger.warning(f"Admin sign-in refused for {profile.id}")
            await self.sign_out()
            raise UnauthorizedAdminAccess("Unauthorized access")

        await self.gate.record_login(profile.id)
        return profile

    def _check_password(self, password: str) -> None:
        if len(password) < self.min_password_length:
            raise PasswordPolicyViolation(self.min_password_length)
