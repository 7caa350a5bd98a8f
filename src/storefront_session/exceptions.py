"""Custom exceptions for Storefront Session."""


class SessionError(Exception):
    """Base class for every recoverable session/identity failure."""


class InvalidCredentials(SessionError):
    """Raised when the identity provider rejects an email/password pair."""


class SessionUnavailable(SessionError):
    """Raised when an operation needs an active session and there is none."""


class ProfileFetchFailed(SessionError):
    """Raised on a transient read error against the profile store."""


class ProfileCreateFailed(SessionError):
    """Raised when a fallback profile insert fails for a non-conflict reason."""


class ProfileUpdateFailed(SessionError):
    """Raised when the profile store rejects a name change."""


class ProfileConflict(SessionError):
    """Raised by a profile store when an insert hits the unique id constraint.

    The reconciler treats this as "someone else created the row first"; it
    never reaches callers.
    """

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"Profile {profile_id} already exists")


class AdminGrantLookupFailed(SessionError):
    """Raised when the admin grant store cannot be read or updated."""


class UnauthorizedAdminAccess(SessionError):
    """Raised when a principal without an admin grant tries the admin surface."""


class NetworkUnavailable(SessionError):
    """Raised on a transport-level fault talking to any backing service."""


class PolicyViolation(SessionError):
    """Base class for client-enforced policy rejections."""


class ProfilePolicyViolation(PolicyViolation):
    """Raised when a profile edit touches a field that is not editable."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Cannot update profile field '{field}': {reason}")


class PasswordPolicyViolation(PolicyViolation):
    """Raised when a new password does not meet the minimum requirements."""

    def __init__(self, min_length: int) -> None:
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters long")
