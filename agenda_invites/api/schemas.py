from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field as PydField, field_validator

from ..database import MAX_ROW_ID
from ..models.invitation import InvitationStatus, parse_delegation_chain
from ..services.invitation_generator import SkipReason


# -------------------------
# Read models (do NOT return table rows directly)
# -------------------------

class InvitationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    agenda_id: int
    holder_user_id: int
    status: InvitationStatus

    opened_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    delegation_level: int
    original_holder_user_id: int
    parent_invitation_id: Optional[int] = None
    delegation_chain: List[int]

    delegated_to_user_id: Optional[int] = None
    delegated_to_external_ref: Optional[str] = None
    delegated_to_display_name: Optional[str] = None
    delegated_at: Optional[datetime] = None

    notes: Optional[str] = None
    created_at: datetime

    @field_validator("delegation_chain", mode="before")
    @classmethod
    def _validate_chain(cls, v: Any) -> List[int]:
        return parse_delegation_chain(v)


class InvitationListItem(InvitationRead):
    agenda_title: Optional[str] = None
    delegated_to_name: Optional[str] = None


class AgendaInvitationRead(InvitationListItem):
    holder_name: Optional[str] = None


class PaginationRead(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class InvitationListResponse(BaseModel):
    items: List[InvitationListItem]
    pagination: PaginationRead


class EligibilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_delegate: bool
    delegation_level: int
    max_delegation_level: int
    reason: Optional[str] = None
    message: Optional[str] = None


class ChainEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    user_id: int
    username: Optional[str] = None
    full_name: Optional[str] = None


class DelegationChainResponse(BaseModel):
    invitation: InvitationRead
    chain: List[ChainEntryRead]
    delegated_invitation: Optional[InvitationRead] = None
    eligibility: EligibilityRead


class DelegationResponse(BaseModel):
    superseded: InvitationRead
    delegated: Optional[InvitationRead] = None


# -------------------------
# Request bodies
# -------------------------

class StatusUpdate(BaseModel):
    """
    Only "opened" and "responded" are accepted; anything else is rejected
    with invalid_status_value.
    """
    status: str


class DelegateRequest(BaseModel):
    """
    to_display_name is validated by the engine (blank -> missing_delegate_name)
    so every rule violation carries a stable error kind.
    """
    to_user_id: Optional[int] = PydField(default=None, ge=1, le=MAX_ROW_ID)
    to_external_ref: Optional[str] = None
    to_display_name: str = ""
    notes: Optional[str] = None


class ParticipantIn(BaseModel):
    kind: Literal["internal", "external"]
    display_name: str = ""
    personnel_id: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def _norm_kind(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip().lower()


class GenerateRequest(BaseModel):
    participants: List[ParticipantIn]


class SkippedParticipantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    display_name: str
    personnel_id: Optional[str] = None
    reason: SkipReason
    holder_user_id: Optional[int] = None


class GenerateResponse(BaseModel):
    agenda_id: int
    generated_count: int
    invitations: List[InvitationRead]
    skipped: List[SkippedParticipantRead]
