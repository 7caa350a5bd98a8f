"""FastAPI dependencies for the session runtime."""

from typing import Annotated

from fastapi import Depends, Request

from storefront_session.session.credentials import CredentialOperations
from storefront_session.session.runtime import SessionRuntime
from storefront_session.session.store import SessionStore


def get_runtime(request: Request) -> SessionRuntime:
    """The runtime started by the application lifespan."""
    return request.app.state.runtime


def get_session_store(
    runtime: Annotated[SessionRuntime, Depends(get_runtime)],
) -> SessionStore:
    return runtime.store


def get_credentials(
    runtime: Annotated[SessionRuntime, Depends(get_runtime)],
) -> CredentialOperations:
    return runtime.credentials


# Type aliases for dependency injection
Runtime = Annotated[SessionRuntime, Depends(get_runtime)]
Store = Annotated[SessionStore, Depends(get_session_store)]
Credentials = Annotated[CredentialOperations, Depends(get_credentials)]
