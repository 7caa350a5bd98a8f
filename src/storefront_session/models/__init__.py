"""Pydantic models for Storefront Session - the contracts."""

from storefront_session.models.identity import (
    AdminGrant,
    AuthEvent,
    AuthEventType,
    Principal,
    Profile,
    ProfileUpdate,
    SessionSnapshot,
)

__all__ = [
    "AdminGrant",
    "AuthEvent",
    "AuthEventType",
    "Principal",
    "Profile",
    "ProfileUpdate",
    "SessionSnapshot",
]
