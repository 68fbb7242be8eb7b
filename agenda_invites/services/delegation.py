from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from ..database import MAX_ROW_ID
from ..errors import (
    AlreadyDelegated,
    DelegateAlreadyInvited,
    InfrastructureError,
    InvalidDelegateTarget,
    InvitationError,
    MissingDelegateName,
    MissingDelegateTarget,
    SelfDelegationRejected,
)
from ..models.invitation import MAX_DELEGATION_DEPTH, Invitation, InvitationStatus, utcnow
from ..models.user_account import UserAccount
from .eligibility import delegation_blocker
from .invitation_state import reload
from .personnel import normalize_personnel_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelegationTarget:
    """
    Who takes over. to_user_id spawns a tracked child invitation;
    to_external_ref alone (delegate without an account) ends the chain.
    """
    to_display_name: str
    to_user_id: Optional[int] = None
    to_external_ref: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class DelegationResult:
    superseded: Invitation
    delegated: Optional[Invitation] = None


def _has_active_invitation(session: Session, agenda_id: int, user_id: int) -> bool:
    row = session.exec(
        select(Invitation.id).where(
            Invitation.agenda_id == agenda_id,
            Invitation.holder_user_id == user_id,
            Invitation.delegated_at.is_(None),
        )
    ).first()
    return row is not None


def _validate_target(
    session: Session,
    current: Invitation,
    caller_user_id: int,
    target: DelegationTarget,
) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Returns (display_name, external_ref, notes), normalized.
    """
    if target.to_user_id is not None and target.to_user_id == caller_user_id:
        raise SelfDelegationRejected()

    name = (target.to_display_name or "").strip()
    if not name:
        raise MissingDelegateName()

    external_ref = normalize_personnel_id(target.to_external_ref)
    if target.to_user_id is None and external_ref is None:
        raise MissingDelegateTarget()

    if target.to_user_id is not None:
        account = None
        if 1 <= target.to_user_id <= MAX_ROW_ID:
            account = session.get(UserAccount, target.to_user_id)
        if account is None or not account.is_active:
            raise InvalidDelegateTarget()
        if _has_active_invitation(session, current.agenda_id, target.to_user_id):
            raise DelegateAlreadyInvited()

    notes = (target.notes or "").strip() or None
    return name, external_ref, notes


def delegate(
    session: Session,
    invitation_id: int,
    caller_user_id: int,
    target: DelegationTarget,
) -> DelegationResult:
    """
    Hand an invitation to someone else.

    The current row is superseded (delegated_to_*, responded) by a single
    UPDATE guarded on holder, depth and delegated_at IS NULL; its row count is
    the source of truth, so two concurrent calls cannot both succeed. When the
    delegate has an account, a child invitation one level deeper is created in
    the same transaction.
    """
    child: Optional[Invitation] = None
    try:
        current = session.get(Invitation, invitation_id)
        blocker = delegation_blocker(current, caller_user_id)
        if blocker is not None:
            raise blocker

        name, external_ref, notes = _validate_target(session, current, caller_user_id, target)
        chain = current.chain()

        now = utcnow()
        stmt = (
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.holder_user_id == caller_user_id,
                Invitation.delegation_level < MAX_DELEGATION_DEPTH,
                Invitation.delegated_at.is_(None),
            )
            .values(
                delegated_to_user_id=target.to_user_id,
                delegated_to_external_ref=external_ref,
                delegated_to_display_name=name,
                delegated_at=now,
                notes=notes,
                status=InvitationStatus.RESPONDED,
                responded_at=func.coalesce(Invitation.responded_at, now),
            )
            .execution_options(synchronize_session=False)
        )
        if not session.exec(stmt).rowcount:
            # another request superseded this row between our read and write
            raise delegation_blocker(reload(session, invitation_id), caller_user_id) or AlreadyDelegated()

        if target.to_user_id is not None:
            child = Invitation(
                agenda_id=current.agenda_id,
                holder_user_id=target.to_user_id,
                status=InvitationStatus.NEW,
                delegation_level=current.delegation_level + 1,
                original_holder_user_id=current.original_holder_user_id,
                parent_invitation_id=current.id,
                delegation_chain=chain + [target.to_user_id],
            )
            session.add(child)
            session.flush()

        session.commit()
    except InvitationError:
        session.rollback()
        raise
    except IntegrityError as e:
        # the delegate gained an active invitation concurrently
        session.rollback()
        raise DelegateAlreadyInvited() from e
    except OperationalError as e:
        session.rollback()
        raise InfrastructureError("Invitation store is unavailable") from e
    except Exception:
        session.rollback()
        logger.exception("delegate invitation id=%s failed; rolled back", invitation_id)
        raise

    superseded = reload(session, invitation_id)
    if child is not None:
        session.refresh(child)

    logger.info(
        "invitation id=%s delegated by user_id=%s to user_id=%s external_ref=%s child_id=%s",
        invitation_id,
        caller_user_id,
        target.to_user_id,
        superseded.delegated_to_external_ref,
        child.id if child else None,
    )
    return DelegationResult(superseded=superseded, delegated=child)
