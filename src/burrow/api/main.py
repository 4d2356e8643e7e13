"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
mounts the routers and manages storage in lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from psycopg_pool import ConnectionPool

from burrow.adapters.repository.memory import InMemoryStore
from burrow.adapters.repository.postgres import PostgresStore, run_migrations
from burrow.api.dependencies import (
    get_clock,
    get_credential_store,
    get_email_sender,
    get_invitation_ledger,
    get_password_reset_flow,
    get_registration_coordinator,
    get_session_authenticator,
    get_token_source,
)
from burrow.api.errors import STORAGE_FAILURE_MESSAGE
from burrow.api.routes import auth_router, invitations_router
from burrow.config.settings import Settings, get_settings
from burrow.domain.exceptions import StorageFailure
from burrow.domain.ports import Storage
from burrow.domain.validation import normalize_email

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "auth",
        "description": "Invitation-gated signup, login, logout and password reset",
    },
    {
        "name": "invitations",
        "description": "Issue, list and revoke invitations for the logged-in account",
    },
]


def _create_founder(store: Storage, settings: Settings) -> None:
    """Create the founding account if configured and not yet present."""
    if not (settings.founder_username and settings.founder_email and settings.founder_password):
        return
    if store.accounts.find_by_username(settings.founder_username) is not None:
        return
    if store.accounts.find_by_email(normalize_email(settings.founder_email)) is not None:
        logger.warning("Founder email already registered; skipping founder account")
        return

    clock = get_clock()
    email_sender = get_email_sender()
    ledger = get_invitation_ledger(store, clock, get_token_source(), email_sender, settings)
    coordinator = get_registration_coordinator(
        store, ledger, get_credential_store(), clock, email_sender
    )
    coordinator.bootstrap(
        settings.founder_username,
        settings.founder_email,
        settings.founder_password,
        karma=settings.invite_min_karma,
    )


def _purge_stale(store: Storage, settings: Settings) -> None:
    """Drop sessions and reset tokens that can no longer be used."""
    clock = get_clock()
    credentials = get_credential_store()
    tokens = get_token_source()
    sessions = get_session_authenticator(store, credentials, clock, tokens, settings).purge_expired()
    reset_tokens = get_password_reset_flow(
        store, credentials, clock, tokens, get_email_sender(), settings
    ).purge_expired()
    logger.info("Housekeeping removed %d session(s), %d reset token(s)", sessions, reset_tokens)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the configured store (Postgres pool or in-memory)
    - Runs migrations on startup (Postgres only)
    - Creates the founding account when configured
    - Purges expired sessions and reset tokens
    - Closes connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; data is lost on shutdown")
        store: Storage = InMemoryStore()
    else:
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)
        store = PostgresStore(pool)

    _create_founder(store, settings)
    _purge_stale(store, settings)

    # Store in app state for dependency injection
    app.state.store = store

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="burrow",
    description="Invitation-gated account provisioning and authentication API",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(auth_router)
app.include_router(invitations_router)


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with storage validation.

    Returns 200 OK if application and storage are healthy, 503 otherwise.
    """
    try:
        request.app.state.store.ping()
    except StorageFailure:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=STORAGE_FAILURE_MESSAGE,
        ) from None

    return {"status": "healthy"}
