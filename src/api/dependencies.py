"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

import secrets
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings, get_settings
from src.domain.authentication import PasswordAuthenticator
from src.domain.context import RequestContext
from src.domain.email_registry import EmailRegistry
from src.domain.ports import EmailStore
from src.domain.verification import EmailVerificationService

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_store(request: Request) -> EmailStore:
    """
    Get the email store from app state.

    The store is opened during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


def get_request_context(
    request: Request, settings: Settings = Depends(get_settings)
) -> RequestContext:
    """Create the per-request deadline token, honouring an incoming X-Request-ID."""
    return RequestContext.with_timeout(
        settings.request_timeout_seconds,
        request_id=request.headers.get("x-request-id"),
    )


def get_registry(store: EmailStore = Depends(get_store)) -> EmailRegistry:
    return EmailRegistry(store=store)


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_verification_service(
    registry: EmailRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> EmailVerificationService:
    """
    Create verification service with injected dependencies.

    Wires together the registry and email sender for the domain service.
    """
    return EmailVerificationService(
        registry=registry,
        email_sender=get_email_sender(),
        code_length=settings.verification_code_length,
    )


def get_authenticator(store: EmailStore = Depends(get_store)) -> PasswordAuthenticator:
    return PasswordAuthenticator(store=store)


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_current_account(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    ctx: RequestContext = Depends(get_request_context),
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
) -> UUID:
    """
    Resolve the calling account from the HTTP BASIC AUTH header (handle:password).

    Raises:
        HTTPException: 401 for unknown handle or wrong password
    """
    account_id = authenticator.authenticate(ctx, credentials.username.strip(), credentials.password)
    if account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return account_id


def require_admin(
    x_admin_token: str = Header(default=""),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Guard administrative endpoints with the configured admin token.

    Raises:
        HTTPException: 403 if no admin token is configured or it does not match
    """
    if not settings.admin_token or not secrets.compare_digest(
        x_admin_token.encode(), settings.admin_token.encode()
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
