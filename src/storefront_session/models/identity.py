"""Identity and session models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Metadata keys carrying the display name, in lookup order
PRIMARY_NAME_KEY = "name"
LEGACY_NAME_KEY = "full_name"


class Principal(BaseModel):
    """Authenticated identity issued by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Best-effort display name, never raises.

        Falls back from the primary metadata key to the legacy one, then to
        the local part of the email, then to the whole email.
        """
        for key in (PRIMARY_NAME_KEY, LEGACY_NAME_KEY):
            value = self.metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value
        local_part, _, _ = self.email.partition("@")
        return local_part or self.email


class Profile(BaseModel):
    """Durable application-level record describing a principal."""

    id: str
    name: str
    email: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileUpdate(BaseModel):
    """Partial profile edit.

    Unknown fields are kept so the policy check can reject them by name
    instead of silently dropping them.
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    email: str | None = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, extras included."""
        return {**self.model_dump(exclude_unset=True), **(self.model_extra or {})}


class SessionSnapshot(BaseModel):
    """UI-facing view of sign-in state."""

    model_config = ConfigDict(frozen=True)

    profile: Profile | None = None
    loading: bool = True

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None


class AdminGrant(BaseModel):
    """Privileged authorization record."""

    id: str
    role: str = "admin"
    last_login: datetime | None = None


class AuthEventType(str, Enum):
    """Session lifecycle events this subsystem reacts to."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    SIGNED_OUT = "SIGNED_OUT"
    USER_DELETED = "USER_DELETED"

    @property
    def clears_session(self) -> bool:
        return self in (AuthEventType.SIGNED_OUT, AuthEventType.USER_DELETED)

    @property
    def is_passive(self) -> bool:
        """Events nobody is waiting on; failures keep the current snapshot."""
        return self in (AuthEventType.INITIAL_SESSION, AuthEventType.TOKEN_REFRESHED)


class AuthEvent(BaseModel):
    """A lifecycle event delivered by the identity provider."""

    model_config = ConfigDict(frozen=True)

    type: AuthEventType
    principal: Principal | None = None
