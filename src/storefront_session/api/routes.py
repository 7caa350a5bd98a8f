"""FastAPI routes exposing the session to a local UI."""

import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import StreamingResponse

from storefront_session import __version__
from storefront_session.api.deps import Credentials, Runtime, Store
from storefront_session.exceptions import (
    InvalidCredentials,
    NetworkUnavailable,
    PolicyViolation,
    SessionError,
    SessionUnavailable,
    UnauthorizedAdminAccess,
)
from storefront_session.models.identity import Profile, ProfileUpdate, SessionSnapshot
from storefront_session.models.requests import (
    AdminStatus,
    PasswordResetRequest,
    PasswordUpdateRequest,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Most specific first; anything else is a backing store failure
_ERROR_STATUS: list[tuple[type[SessionError], int]] = [
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (SessionUnavailable, status.HTTP_401_UNAUTHORIZED),
    (UnauthorizedAdminAccess, status.HTTP_403_FORBIDDEN),
    (PolicyViolation, 422),
    (NetworkUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: SessionError) -> int:
    """HTTP status code for a session error."""
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_502_BAD_GATEWAY


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    """Render session errors as ``{"error": <type>, "detail": <message>}``."""
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


# -----------------------------------------------------------------------------
# Session snapshot
# -----------------------------------------------------------------------------


@router.get("/session", response_model=SessionSnapshot)
async def get_session(store: Store) -> SessionSnapshot:
    """Current session snapshot."""
    return store.snapshot


@router.get("/session/stream")
async def stream_session(store: Store) -> StreamingResponse:
    """Stream session snapshots via Server-Sent Events.

    The first event is the current snapshot; later events follow every
    change until the client disconnects.
    """
    queue = store.subscribe()

    async def event_generator() -> AsyncIterator[str]:
        try:
            while True:
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield f"data: {json.dumps(snapshot.model_dump(mode='json'))}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            store.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# -----------------------------------------------------------------------------
# Credential operations
# -----------------------------------------------------------------------------


@router.post("/auth/sign-in", response_model=Profile)
async def sign_in(body: SignInRequest, credentials: Credentials) -> Profile:
    return await credentials.sign_in(body.email, body.password)


@router.post(
    "/auth/sign-up",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(body: SignUpRequest, credentials: Credentials) -> SignUpResponse:
    principal = await credentials.sign_up(body.email, body.password, body.name)
    return SignUpResponse(principal=principal)


@router.post("/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(credentials: Credentials) -> None:
    await credentials.sign_out()


@router.post("/auth/password", status_code=status.HTTP_204_NO_CONTENT)
async def update_password(body: PasswordUpdateRequest, credentials: Credentials) -> None:
    await credentials.update_password(body.password)


@router.post("/auth/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(
    body: PasswordResetRequest,
    credentials: Credentials,
) -> dict:
    await credentials.request_password_reset(body.email)
    return {"status": "sent"}


@router.patch("/profile", response_model=Profile)
async def update_profile(body: ProfileUpdate, credentials: Credentials) -> Profile:
    return await credentials.update_profile(body)


# -----------------------------------------------------------------------------
# Admin surface
# -----------------------------------------------------------------------------


@router.get("/admin/status", response_model=AdminStatus)
async def admin_status(runtime: Runtime) -> AdminStatus:
    """Live admin check for the signed-in profile. Never cached."""
    return AdminStatus(is_admin=await runtime.is_admin())


@router.post("/admin/sign-in", response_model=Profile)
async def admin_sign_in(body: SignInRequest, credentials: Credentials) -> Profile:
    return await credentials.sign_in_admin(body.email, body.password)
