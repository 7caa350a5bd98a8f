"""Admin authorization gate - live, fail-closed privilege checks."""

import logging
from datetime import datetime, UTC

from storefront_session.session.protocols import AdminGrantStore

logger = logging.getLogger(__name__)


class AdminAuthorizationGate:
    """Checks privileged status against the admin grant store.

    Grants are looked up on every call and never cached in the session
    snapshot. Any failure to read a grant means "not an admin".
    """

    def __init__(self, grants: AdminGrantStore) -> None:
        self.grants = grants

    async def check(self, principal_id: str) -> bool:
        """Whether the principal holds an admin grant.

        Args:
            principal_id: The principal to check

        Returns:
            True only if a grant row was read successfully
        """
        try:
            grant = await self.grants.select_by_id(principal_id)
        except Exception as e:
            logger.warning(f"Admin grant lookup failed for {principal_id}, denying: {e}")
            return False

        if grant is None:
            logger.debug(f"No admin grant for {principal_id}")
            return False
        return True

    async def record_login(self, principal_id: str) -> bool:
        """Stamp ``last_login`` on the grant. Best-effort, never raises."""
        try:
            await self.grants.update(
                principal_id,
                {"last_login": datetime.now(UTC).isoformat()},
            )
        except Exception as e:
            logger.warning(f"Failed to record admin login for {principal_id}: {e}")
            return False
        return True
