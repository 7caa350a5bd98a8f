"""Global test configuration and in-memory collaborators for Storefront Session."""

import asyncio
import os
from datetime import datetime, UTC
from typing import Any
from uuid import uuid4

import pytest

from storefront_session.config import Settings
from storefront_session.exceptions import (
    InvalidCredentials,
    ProfileConflict,
    SessionUnavailable,
)
from storefront_session.models.identity import (
    AdminGrant,
    AuthEvent,
    AuthEventType,
    Principal,
    Profile,
)
from storefront_session.session.admin import AdminAuthorizationGate
from storefront_session.session.credentials import CredentialOperations
from storefront_session.session.listener import SessionEventListener
from storefront_session.session.reconciler import ProfileReconciler
from storefront_session.session.store import SessionStore


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Set dummy environment variables for Settings validation.

    Only sets values that aren't already present, so real env vars take
    precedence.
    """
    defaults = {
        "SUPABASE_URL": "https://test.supabase.co",
        "SUPABASE_KEY": "test-supabase-key",
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    from storefront_session.config import get_settings
    get_settings.cache_clear()

    yield

    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    """Identity provider that keeps accounts in memory and emits events inline."""

    def __init__(self) -> None:
        self.accounts: dict[str, tuple[str, Principal]] = {}
        self.current: Principal | None = None
        self.handlers: list = []
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.sign_out_error: Exception | None = None
        self.sign_up_calls: list[dict[str, Any]] = []
        self.user_updates: list[dict[str, Any]] = []
        self.reset_requests: list[tuple[str, str | None]] = []

    def add_account(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> Principal:
        principal = Principal(id=str(uuid4()), email=email, metadata=metadata or {})
        self.accounts[email] = (password, principal)
        return principal

    def emit(self, event_type: AuthEventType, principal: Principal | None = None) -> None:
        for handler in list(self.handlers):
            handler(AuthEvent(type=event_type, principal=principal))

    async def sign_up(self, email, password, metadata, redirect_to=None):
        self.sign_up_calls.append(
            {"email": email, "metadata": metadata, "redirect_to": redirect_to}
        )
        if email in self.accounts:
            raise InvalidCredentials("User already registered")
        return self.add_account(email, password, metadata)

    async def sign_in_with_password(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentials("Invalid login credentials")
        self.current = account[1]
        self.emit(AuthEventType.SIGNED_IN, self.current)
        return self.current

    async def sign_out(self):
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.current = None
        self.emit(AuthEventType.SIGNED_OUT)

    async def get_session(self):
        return self.current

    async def get_user(self):
        return self.current

    async def update_user(self, fields):
        if self.current is None:
            raise SessionUnavailable("Auth session missing")
        self.user_updates.append(fields)
        return self.current

    async def reset_password_for_email(self, email, redirect_to=None):
        self.reset_requests.append((email, redirect_to))

    def on_auth_state_change(self, handler):
        self.subscribe_calls += 1
        self.handlers.append(handler)

        def unsubscribe() -> None:
            self.unsubscribe_calls += 1
            self.handlers.remove(handler)

        return unsubscribe


class FakeProfileStore:
    """Profile table with a unique id constraint.

    ``gates`` blocks reads for a given id until the event is set, which lets
    tests control the order in which reconciliations finish.
    """

    def __init__(self) -> None:
        self.rows: dict[str, Profile] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.select_calls = 0
        self.insert_calls = 0
        self.select_error: Exception | None = None
        self.insert_error: Exception | None = None

    def seed(self, principal: Principal, name: str | None = None) -> Profile:
        now = datetime.now(UTC)
        profile = Profile(
            id=principal.id,
            name=name or principal.display_name,
            email=principal.email,
            created_at=now,
            updated_at=now,
        )
        self.rows[principal.id] = profile
        return profile

    async def select_by_id(self, profile_id):
        self.select_calls += 1
        gate = self.gates.get(profile_id)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        if self.select_error is not None:
            raise self.select_error
        return self.rows.get(profile_id)

    async def insert(self, record):
        self.insert_calls += 1
        await asyncio.sleep(0)
        if self.insert_error is not None:
            raise self.insert_error
        if record.id in self.rows:
            raise ProfileConflict(record.id)
        self.rows[record.id] = record
        return record

    async def update(self, profile_id, fields):
        await asyncio.sleep(0)
        row = self.rows[profile_id]
        updated = Profile(**{**row.model_dump(), **fields})
        self.rows[profile_id] = updated
        return updated


class FakeAdminGrantStore:
    def __init__(self) -> None:
        self.rows: dict[str, AdminGrant] = {}
        self.select_error: Exception | None = None
        self.update_error: Exception | None = None
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def grant(self, principal_id: str) -> AdminGrant:
        grant = AdminGrant(id=principal_id, role="admin")
        self.rows[principal_id] = grant
        return grant

    async def select_by_id(self, grant_id):
        await asyncio.sleep(0)
        if self.select_error is not None:
            raise self.select_error
        return self.rows.get(grant_id)

    async def update(self, grant_id, fields):
        await asyncio.sleep(0)
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((grant_id, fields))


async def no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


async def wait_until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_key="test-supabase-key",
        profile_wait_seconds=0.0,
    )


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def profiles() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def grants() -> FakeAdminGrantStore:
    return FakeAdminGrantStore()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def reconciler(profiles) -> ProfileReconciler:
    return ProfileReconciler(profiles, wait_seconds=2.0, sleep=no_sleep)


@pytest.fixture
def listener(provider, reconciler, store) -> SessionEventListener:
    return SessionEventListener(provider, reconciler, store)


@pytest.fixture
def gate(grants) -> AdminAuthorizationGate:
    return AdminAuthorizationGate(grants)


@pytest.fixture
def credentials(provider, profiles, listener, store, gate) -> CredentialOperations:
    return CredentialOperations(
        provider,
        profiles,
        listener,
        store,
        gate,
        password_reset_redirect_to="http://localhost:5173/auth/reset-password",
    )
