"""
Authentication routes.

Defines the endpoints behind the site's auth pages:
- GET  /auth/signup/invited   - Preview an invitation before signup
- POST /auth/signup           - Invitation-gated registration
- POST /auth/login            - Username/email + password login
- POST /auth/logout           - Revoke the current session
- GET  /auth/me               - Account for the current session
- POST /auth/forgot-password  - Request a reset link
- GET  /auth/reset-password   - Check a reset link
- POST /auth/reset-password   - Set a new password

Handlers are plain functions so FastAPI runs them in its bounded
threadpool; bcrypt work never blocks the event loop.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from burrow.api.dependencies import (
    get_current_account,
    get_invitation_ledger,
    get_password_reset_flow,
    get_registration_coordinator,
    get_session_authenticator,
    get_session_token,
)
from burrow.api.errors import RESET_REQUESTED_MESSAGE, http_error
from burrow.api.models import (
    AccountResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    InvitationPreviewResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    ResetTokenStatusResponse,
    SignupRequest,
)
from burrow.config.settings import Settings, get_settings
from burrow.domain.exceptions import AuthError, StorageFailure
from burrow.domain.invitations import InvitationLedger
from burrow.domain.models import Account, IssuedSession
from burrow.domain.password_reset import PasswordResetFlow
from burrow.domain.registration import RegistrationCoordinator
from burrow.domain.sessions import SessionAuthenticator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, issued: IssuedSession, settings: Settings) -> None:
    max_age = int((issued.expires_at - issued.session.created_at).total_seconds())
    response.set_cookie(
        key=settings.session_cookie_name,
        value=issued.token,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


@router.get(
    "/signup/invited",
    response_model=InvitationPreviewResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid invitation"}},
    summary="Preview an invitation",
)
def preview_invitation(
    code: str = Query(..., max_length=255),
    ledger: InvitationLedger = Depends(get_invitation_ledger),
) -> InvitationPreviewResponse:
    """Check an invitation code without using it."""
    try:
        invitation = ledger.validate(code)
        inviter = ledger.inviter_of(invitation)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None
    return InvitationPreviewResponse(
        code=invitation.code,
        inviter=inviter.username if inviter else None,
        target_email=invitation.target_email,
        memo=invitation.memo,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/signup",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or invitation"},
        409: {"model": ErrorResponse, "description": "Username or email already registered"},
    },
    summary="Sign up with an invitation",
)
def signup(
    request_data: SignupRequest,
    response: Response,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
    settings: Settings = Depends(get_settings),
) -> AccountResponse:
    """
    Create an account and log it in.

    The invitation is consumed only if the account is created.
    """
    try:
        account = coordinator.register(
            request_data.invitation_code,
            request_data.username,
            request_data.email,
            request_data.password,
            request_data.password_confirm,
            request_data.about,
        )
        issued = authenticator.open_session(account)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None

    _set_session_cookie(response, issued, settings)
    return AccountResponse.from_account(account)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Log in",
)
def login(
    request_data: LoginRequest,
    response: Response,
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    """
    Log in with username or email.

    All failures return the same generic error so the response never
    reveals whether the account exists.
    """
    try:
        issued = authenticator.login(
            request_data.username, request_data.password, request_data.remember_me
        )
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None

    _set_session_cookie(response, issued, settings)
    return LoginResponse(
        message="Logged in",
        username=issued.account.username,
        expires_at=issued.expires_at,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Log out")
def logout(
    token: str = Depends(get_session_token),
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Revoke the current session. Succeeds even without one."""
    try:
        authenticator.logout(token)
    except StorageFailure as e:
        raise http_error(e) from None

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get(
    "/me",
    response_model=AccountResponse,
    responses={401: {"model": ErrorResponse, "description": "Not logged in"}},
    summary="Current account",
)
def me(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.from_account(account)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset link",
)
def forgot_password(
    request_data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
) -> MessageResponse:
    """
    Send reset instructions if the email is registered.

    The lookup, token write and mail run after the response is sent, so
    neither the answer nor its timing depends on whether an account exists.
    """
    background_tasks.add_task(_request_reset, flow, request_data.email)
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


def _request_reset(flow: PasswordResetFlow, email: str) -> None:
    try:
        flow.request_reset(email)
    except StorageFailure:
        logger.warning("Password reset request could not be stored")


@router.get(
    "/reset-password",
    response_model=ResetTokenStatusResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired link"}},
    summary="Check a password reset link",
)
def check_reset_token(
    token: str = Query(..., max_length=255),
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
) -> ResetTokenStatusResponse:
    try:
        reset_token = flow.check(token)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None
    return ResetTokenStatusResponse(valid=True, expires_at=reset_token.expires_at)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid link or password"}},
    summary="Set a new password",
)
def reset_password(
    request_data: ResetPasswordRequest,
    response: Response,
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """
    Redeem a reset link.

    Every session of the account is revoked, so the caller must log in
    again with the new password.
    """
    try:
        flow.redeem(request_data.token, request_data.password, request_data.password_confirm)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None

    response.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message="Your password has been reset. Please log in.")
