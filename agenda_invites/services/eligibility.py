from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from ..errors import AlreadyDelegated, DelegationLimitExceeded, InvitationError, NotFoundOrForbidden
from ..models.invitation import MAX_DELEGATION_DEPTH, Invitation


@dataclass(frozen=True)
class Eligibility:
    """
    Advisory answer for UIs. The delegation engine re-checks everything.
    """
    can_delegate: bool
    delegation_level: int
    max_delegation_level: int = MAX_DELEGATION_DEPTH
    reason: Optional[str] = None
    message: Optional[str] = None


def delegation_blocker(inv: Optional[Invitation], caller_user_id: int) -> Optional[InvitationError]:
    """
    First rule that stops `caller_user_id` from delegating `inv`, or None.

    Order: ownership, depth, not-already-delegated.
    """
    if inv is None or inv.holder_user_id != caller_user_id:
        return NotFoundOrForbidden()
    if inv.delegation_level >= MAX_DELEGATION_DEPTH:
        return DelegationLimitExceeded()
    if inv.is_superseded or inv.delegated_to_user_id is not None or inv.delegated_to_external_ref:
        return AlreadyDelegated()
    return None


def eligibility_for(inv: Optional[Invitation], caller_user_id: int) -> Eligibility:
    blocker = delegation_blocker(inv, caller_user_id)
    if isinstance(blocker, NotFoundOrForbidden):
        # level of a row the caller cannot see is not disclosed
        return Eligibility(can_delegate=False, delegation_level=0, reason=blocker.kind, message=blocker.message)

    level = int(inv.delegation_level)
    if blocker is not None:
        return Eligibility(can_delegate=False, delegation_level=level, reason=blocker.kind, message=blocker.message)
    return Eligibility(can_delegate=True, delegation_level=level)


def can_delegate(session: Session, invitation_id: int, caller_user_id: int) -> Eligibility:
    return eligibility_for(session.get(Invitation, invitation_id), caller_user_id)
