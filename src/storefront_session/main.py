"""FastAPI application entry point for Storefront Session."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront_session import __version__
from storefront_session.api.routes import router, session_error_handler
from storefront_session.config import get_settings
from storefront_session.db.supabase_client import connect
from storefront_session.exceptions import SessionError
from storefront_session.session.runtime import SessionRuntime

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the session runtime (subscribe) and stop it (unsubscribe)."""
    logger.info(f"Starting Storefront Session v{__version__}")

    runtime: SessionRuntime | None = app.state.runtime
    if runtime is None:
        settings = get_settings()
        logger.info(f"Debug mode: {settings.debug}")
        provider, profiles, grants = await connect(settings)
        runtime = SessionRuntime(provider, profiles, grants, settings)
        app.state.runtime = runtime

    await runtime.start()

    yield

    await runtime.stop()
    logger.info("Shutting down Storefront Session")


def create_app(runtime: SessionRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        runtime: Pre-built runtime; when omitted one is connected to
            Supabase on startup
    """
    app = FastAPI(
        title="Storefront Session",
        description="Identity and session bridge for the storefront UI",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # The UI is served from a different local origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SessionError, session_error_handler)
    app.include_router(router)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront_session.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
