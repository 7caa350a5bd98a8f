"""Profile reconciliation - make sure a principal has exactly one profile."""

import asyncio
import logging
from datetime import datetime, UTC
from typing import Awaitable, Callable

from storefront_session.exceptions import ProfileConflict, ProfileFetchFailed
from storefront_session.models.identity import Principal, Profile
from storefront_session.session.protocols import ProfileStore

logger = logging.getLogger(__name__)


class ProfileReconciler:
    """Returns the canonical profile for an authenticated principal.

    Profiles are normally created by a backend trigger when the principal is
    created, but that happens asynchronously. The reconciler reads, waits a
    bounded amount of time for the trigger, and only then inserts a fallback
    row itself. Concurrent inserts are stopped by the store's unique id
    constraint; the loser of that race just re-reads.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        wait_seconds: float = 2.0,
        wait_attempts: int = 1,
        backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if wait_attempts < 0:
            raise ValueError("wait_attempts must be >= 0")
        self.profiles = profiles
        self.wait_seconds = wait_seconds
        self.wait_attempts = wait_attempts
        self.backoff = backoff
        self._sleep = sleep

    async def reconcile(self, principal: Principal) -> Profile:
        """Get the principal's profile, creating it if the trigger never did.

        Args:
            principal: The authenticated principal

        Returns:
            The persisted profile

        Raises:
            ProfileFetchFailed: If a read fails or the row vanishes after a conflict
            ProfileCreateFailed: If the fallback insert fails for another reason
            NetworkUnavailable: On transport faults
        """
        profile = await self.profiles.select_by_id(principal.id)
        if profile is not None:
            return profile

        profile = await self._wait_for_trigger(principal.id)
        if profile is not None:
            return profile

        logger.info(f"No profile for {principal.id} after waiting, creating fallback")
        now = datetime.now(UTC)
        record = Profile(
            id=principal.id,
            name=principal.display_name,
            email=principal.email,
            created_at=now,
            updated_at=now,
        )

        try:
            return await self.profiles.insert(record)
        except ProfileConflict:
            logger.info(f"Profile {principal.id} created concurrently, re-reading")

        profile = await self.profiles.select_by_id(principal.id)
        if profile is None:
            raise ProfileFetchFailed(
                f"Profile {principal.id} conflicted on insert but could not be read"
            )
        return profile

    async def _wait_for_trigger(self, profile_id: str) -> Profile | None:
        delay = self.wait_seconds
        for attempt in range(1, self.wait_attempts + 1):
            await self._sleep(delay)
            profile = await self.profiles.select_by_id(profile_id)
            if profile is not None:
                logger.debug(f"Profile {profile_id} appeared on attempt {attempt}")
                return profile
            delay *= self.backoff
        return None
