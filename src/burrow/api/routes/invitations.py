"""
Invitation routes.

Every endpoint acts on behalf of the logged-in account:
- GET    /invitations         - Own invitations and invite stats
- POST   /invitations         - Issue an invitation
- DELETE /invitations/{code}  - Revoke a pending invitation
"""

import logging

from fastapi import APIRouter, Depends, status

from burrow.api.dependencies import get_current_account, get_invitation_ledger
from burrow.api.errors import http_error
from burrow.api.models import (
    ErrorResponse,
    InvitationListResponse,
    InvitationResponse,
    InvitationStatsResponse,
    InviteRequest,
)
from burrow.domain.exceptions import AuthError, StorageFailure
from burrow.domain.invitations import InvitationLedger
from burrow.domain.models import Account

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invitations",
    tags=["invitations"],
    responses={401: {"model": ErrorResponse, "description": "Not logged in"}},
)


@router.get("", response_model=InvitationListResponse, summary="List own invitations")
def list_invitations(
    account: Account = Depends(get_current_account),
    ledger: InvitationLedger = Depends(get_invitation_ledger),
) -> InvitationListResponse:
    try:
        invitations = ledger.invitations_for(account)
        stats = ledger.stats(account)
    except StorageFailure as e:
        raise http_error(e) from None
    return InvitationListResponse(
        invitations=[InvitationResponse.from_invitation(i) for i in invitations],
        stats=InvitationStatsResponse.from_stats(stats),
    )


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email"},
        403: {"model": ErrorResponse, "description": "Not allowed to invite"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Issue an invitation",
)
def create_invitation(
    request_data: InviteRequest,
    account: Account = Depends(get_current_account),
    ledger: InvitationLedger = Depends(get_invitation_ledger),
) -> InvitationResponse:
    """
    Issue an invitation, optionally bound to an email address.

    When an email is given the invitation link is sent to it.
    """
    try:
        invitation = ledger.issue(account, request_data.email, request_data.memo)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None
    return InvitationResponse.from_invitation(invitation)


@router.delete(
    "/{code}",
    response_model=InvitationResponse,
    responses={400: {"model": ErrorResponse, "description": "Unknown or not pending"}},
    summary="Revoke an invitation",
)
def revoke_invitation(
    code: str,
    account: Account = Depends(get_current_account),
    ledger: InvitationLedger = Depends(get_invitation_ledger),
) -> InvitationResponse:
    try:
        invitation = ledger.revoke(code, account)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None
    return InvitationResponse.from_invitation(invitation)
