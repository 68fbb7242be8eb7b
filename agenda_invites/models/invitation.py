from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import SQLModel, Field


# Number of hand-offs allowed from the root holder. An invitation at this
# level can still be opened/responded to but never delegated again.
MAX_DELEGATION_DEPTH = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvitationStatus(str, Enum):
    """
    Read/respond lifecycle of a single invitation.
    Values are API-stable strings and are safe to store and display.
    """

    NEW = "new"
    OPENED = "opened"
    RESPONDED = "responded"


# Forward-only: a status may only move to one of its listed successors.
ALLOWED_TRANSITIONS: Dict[InvitationStatus, FrozenSet[InvitationStatus]] = {
    InvitationStatus.NEW: frozenset({InvitationStatus.OPENED, InvitationStatus.RESPONDED}),
    InvitationStatus.OPENED: frozenset({InvitationStatus.RESPONDED}),
    InvitationStatus.RESPONDED: frozenset(),
}


def can_transition(current: InvitationStatus, target: InvitationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(InvitationStatus(current), frozenset())


class InvalidDelegationChain(ValueError):
    pass


def parse_delegation_chain(raw: Any) -> List[int]:
    """
    Validate a stored delegation chain: a non-empty list of positive account ids.
    """
    if not isinstance(raw, list) or not raw:
        raise InvalidDelegationChain(f"delegation_chain must be a non-empty list, got {raw!r}")

    chain: List[int] = []
    for item in raw:
        # bool is an int subclass; reject it explicitly
        if isinstance(item, bool) or not isinstance(item, int) or item < 1:
            raise InvalidDelegationChain(f"delegation_chain holds an invalid account id: {item!r}")
        chain.append(item)
    return chain


class Invitation(SQLModel, table=True):
    """
    Per-recipient tracked record of an agenda notification.

    Notes:
    - Rows are created only by the invitation generator (root rows) and by the
      delegation engine (child rows). They are never deleted.
    - delegated_at marks a row as superseded; it is written in the same
      statement as the delegated_to_* fields.
    - The partial unique index keeps one *active* invitation per
      (agenda_id, holder_user_id).
    """

    __tablename__ = "invitations"
    __table_args__ = (
        Index(
            "uq_invitations_active_holder",
            "agenda_id",
            "holder_user_id",
            unique=True,
            sqlite_where=text("delegated_at IS NULL"),
            postgresql_where=text("delegated_at IS NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # agendas are owned by the agenda subsystem; no FK so they can live elsewhere
    agenda_id: int = Field(index=True)
    holder_user_id: int = Field(foreign_key="user_accounts.id", index=True)

    status: InvitationStatus = Field(default=InvitationStatus.NEW, index=True)
    opened_at: Optional[datetime] = Field(default=None)
    responded_at: Optional[datetime] = Field(default=None)

    # ---- Delegation provenance ----
    delegation_level: int = Field(default=0, ge=0, le=MAX_DELEGATION_DEPTH, index=True)
    original_holder_user_id: int = Field(foreign_key="user_accounts.id", index=True)
    parent_invitation_id: Optional[int] = Field(default=None, foreign_key="invitations.id", index=True)
    delegation_chain: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # ---- Delegation target (set once, terminal) ----
    delegated_to_user_id: Optional[int] = Field(default=None, foreign_key="user_accounts.id", index=True)
    delegated_to_external_ref: Optional[str] = Field(default=None)
    delegated_to_display_name: Optional[str] = Field(default=None)
    delegated_at: Optional[datetime] = Field(default=None, index=True)

    notes: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, index=True)

    @property
    def is_superseded(self) -> bool:
        return self.delegated_at is not None

    def chain(self) -> List[int]:
        return parse_delegation_chain(self.delegation_chain)
