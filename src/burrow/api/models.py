"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.

Signup and reset requests deliberately accept any string for the password
and email fields: the domain validates them in a fixed order, and the
first failure decides the error shown.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from burrow.domain.models import Account, Invitation, InvitationStats, InvitationStatus


class SignupRequest(BaseModel):
    """Request model for invitation-gated signup."""

    invitation_code: str = Field(..., max_length=255)
    username: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=1024)
    password_confirm: str = Field(..., max_length=1024)
    about: str | None = Field(default=None, max_length=10_000)


class LoginRequest(BaseModel):
    """Request model for login by username or email."""

    username: str = Field(..., min_length=1, max_length=255, description="Username or email")
    password: str = Field(..., min_length=1, max_length=1024)
    remember_me: bool = False


class LoginResponse(BaseModel):
    message: str
    username: str
    expires_at: datetime


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., max_length=1024)
    password_confirm: str = Field(..., max_length=1024)


class ResetTokenStatusResponse(BaseModel):
    """Response model for a valid, not yet redeemed reset link."""

    valid: bool
    expires_at: datetime


class AccountResponse(BaseModel):
    id: UUID
    username: str
    email: str
    about: str
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            about=account.about,
            created_at=account.created_at,
        )


class InvitationPreviewResponse(BaseModel):
    """What the invited-signup page shows before the invitation is used."""

    code: str
    inviter: str | None
    target_email: str | None
    memo: str
    expires_at: datetime | None


class InviteRequest(BaseModel):
    email: EmailStr | None = None
    memo: str = Field(default="", max_length=1000)


class InvitationResponse(BaseModel):
    code: str
    target_email: str | None
    memo: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime | None
    consumed_at: datetime | None

    @classmethod
    def from_invitation(cls, invitation: Invitation) -> "InvitationResponse":
        return cls(
            code=invitation.code,
            target_email=invitation.target_email,
            memo=invitation.memo,
            status=invitation.status,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            consumed_at=invitation.consumed_at,
        )


class InvitationStatsResponse(BaseModel):
    total: int
    used: int
    pending: int
    can_invite: bool
    remaining_this_week: int

    @classmethod
    def from_stats(cls, stats: InvitationStats) -> "InvitationStatsResponse":
        return cls(
            total=stats.total,
            used=stats.used,
            pending=stats.pending,
            can_invite=stats.can_invite,
            remaining_this_week=stats.remaining_this_week,
        )


class InvitationListResponse(BaseModel):
    invitations: list[InvitationResponse]
    stats: InvitationStatsResponse


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
