from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlmodel import Session

from ..config import settings
from ..database import MAX_ROW_ID, get_db
from ..errors import InvalidStatusValue
from ..models.invitation import InvitationStatus
from ..models.user_account import UserAccount
from ..security import get_current_account
from ..services import delegation as delegation_service
from ..services import eligibility as eligibility_service
from ..services import invitation_queries as queries
from ..services import invitation_state as state
from .schemas import (
    AgendaInvitationRead,
    ChainEntryRead,
    DelegateRequest,
    DelegationChainResponse,
    DelegationResponse,
    EligibilityRead,
    InvitationListItem,
    InvitationListResponse,
    InvitationRead,
    PaginationRead,
    StatusUpdate,
)

router = APIRouter(prefix="/invitations", tags=["invitations"])


# -------------------------
# Helpers
# -------------------------

def _parse_status_filter(raw: Optional[str]) -> Optional[InvitationStatus]:
    s = (raw or "").strip().lower()
    if not s:
        return None
    try:
        return InvitationStatus(s)
    except ValueError:
        raise InvalidStatusValue("status filter must be one of: new, opened, responded") from None


def _list_item(row: queries.InvitationListing, model=InvitationListItem):
    # holder_name is dropped by models that do not declare it
    return model(
        **InvitationRead.model_validate(row.invitation).model_dump(),
        agenda_title=row.agenda_title,
        holder_name=row.holder_name,
        delegated_to_name=row.delegated_to_name,
    )


# -------------------------
# Routes
# -------------------------

@router.get("/mine", response_model=InvitationListResponse)
def list_my_invitations(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1, le=1_000_000),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> InvitationListResponse:
    """
    Invitations currently or previously held by the caller, newest first.
    """
    result = queries.list_for_holder(
        db,
        caller.id,
        status=_parse_status_filter(status),
        page=page,
        limit=limit or settings.invitations_page_limit,
    )
    return InvitationListResponse(
        items=[_list_item(row) for row in result.items],
        pagination=PaginationRead.model_validate(result.pagination, from_attributes=True),
    )


@router.get("/by-agenda/{agenda_id}", response_model=List[AgendaInvitationRead])
def list_agenda_invitations(
    agenda_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> List[AgendaInvitationRead]:
    """
    Every invitation for an agenda, superseded rows included (agenda owner / admin).
    """
    return [_list_item(row, AgendaInvitationRead) for row in queries.list_for_agenda(db, agenda_id, caller)]


@router.get("/{invitation_id}", response_model=InvitationRead)
def get_invitation(
    invitation_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> InvitationRead:
    return InvitationRead.model_validate(queries.get_visible(db, invitation_id, caller))


@router.patch("/{invitation_id}/status", response_model=InvitationRead)
def update_invitation_status(
    payload: StatusUpdate,
    invitation_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> InvitationRead:
    """
    Forward-only: new -> opened -> responded. Repeats are no-ops; a responded
    invitation never goes back.
    """
    inv = state.update_status(db, invitation_id, caller.id, payload.status)
    return InvitationRead.model_validate(inv)


@router.post("/{invitation_id}/delegate", response_model=DelegationResponse)
def delegate_invitation(
    payload: DelegateRequest,
    invitation_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> DelegationResponse:
    result = delegation_service.delegate(
        db,
        invitation_id,
        caller.id,
        delegation_service.DelegationTarget(
            to_display_name=payload.to_display_name,
            to_user_id=payload.to_user_id,
            to_external_ref=payload.to_external_ref,
            notes=payload.notes,
        ),
    )
    return DelegationResponse(
        superseded=InvitationRead.model_validate(result.superseded),
        delegated=InvitationRead.model_validate(result.delegated) if result.delegated else None,
    )


@router.get("/{invitation_id}/delegation-chain", response_model=DelegationChainResponse)
def get_delegation_chain(
    invitation_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> DelegationChainResponse:
    view = queries.delegation_chain(db, invitation_id, caller)
    return DelegationChainResponse(
        invitation=InvitationRead.model_validate(view.invitation),
        chain=[ChainEntryRead.model_validate(e) for e in view.chain],
        delegated_invitation=(
            InvitationRead.model_validate(view.delegated_invitation) if view.delegated_invitation else None
        ),
        eligibility=EligibilityRead.model_validate(view.eligibility),
    )


@router.get("/{invitation_id}/can-delegate", response_model=EligibilityRead)
def can_delegate(
    invitation_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> EligibilityRead:
    """
    Advisory only: the delegate endpoint re-validates everything.
    """
    return EligibilityRead.model_validate(eligibility_service.can_delegate(db, invitation_id, caller.id))
