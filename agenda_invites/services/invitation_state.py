from __future__ import annotations

import logging
from typing import Any, List

from sqlalchemy import func, update
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from ..errors import InfrastructureError, InvalidStatusValue, InvitationError, NotFoundOrForbidden
from ..models.invitation import (
    ALLOWED_TRANSITIONS,
    Invitation,
    InvitationStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# Statuses a caller may request through the status endpoint.
_REQUESTABLE = {InvitationStatus.OPENED, InvitationStatus.RESPONDED}


def _sources_for(target: InvitationStatus) -> List[InvitationStatus]:
    return [s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets]


def get_owned(session: Session, invitation_id: int, caller_user_id: int) -> Invitation:
    """
    Load an invitation held by the caller, or raise NotFoundOrForbidden.
    """
    inv = session.get(Invitation, invitation_id)
    if inv is None or inv.holder_user_id != caller_user_id:
        raise NotFoundOrForbidden()
    return inv


def reload(session: Session, invitation_id: int) -> Invitation:
    return session.exec(
        select(Invitation).where(Invitation.id == invitation_id).execution_options(populate_existing=True)
    ).one()


def _apply_transition(
    session: Session,
    stmt: Any,
    invitation_id: int,
    caller_user_id: int,
    target: InvitationStatus,
) -> Invitation:
    """
    Run a guarded UPDATE. Zero affected rows means either the caller is not
    the holder (raise) or the transition is not allowed from the current
    status (no-op).
    """
    try:
        changed = session.exec(stmt).rowcount
        if not changed:
            get_owned(session, invitation_id, caller_user_id)
        session.commit()
    except InvitationError:
        session.rollback()
        raise
    except OperationalError as e:
        session.rollback()
        raise InfrastructureError("Invitation store is unavailable") from e
    except Exception:
        session.rollback()
        raise

    inv = reload(session, invitation_id)
    if changed:
        logger.info("invitation id=%s -> %s by user_id=%s", invitation_id, target.value, caller_user_id)
    else:
        logger.debug("invitation id=%s already %s; %s ignored", invitation_id, inv.status.value, target.value)
    return inv


def mark_opened(session: Session, invitation_id: int, caller_user_id: int) -> Invitation:
    """
    new -> opened. opened_at is written once; opened/responded rows are left as-is.
    """
    stmt = (
        update(Invitation)
        .where(
            Invitation.id == invitation_id,
            Invitation.holder_user_id == caller_user_id,
            Invitation.status.in_(_sources_for(InvitationStatus.OPENED)),
            Invitation.opened_at.is_(None),
        )
        .values(status=InvitationStatus.OPENED, opened_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return _apply_transition(session, stmt, invitation_id, caller_user_id, InvitationStatus.OPENED)


def mark_responded(session: Session, invitation_id: int, caller_user_id: int) -> Invitation:
    """
    new|opened -> responded. responded_at keeps its first value.
    """
    stmt = (
        update(Invitation)
        .where(
            Invitation.id == invitation_id,
            Invitation.holder_user_id == caller_user_id,
            Invitation.status.in_(_sources_for(InvitationStatus.RESPONDED)),
        )
        .values(
            status=InvitationStatus.RESPONDED,
            responded_at=func.coalesce(Invitation.responded_at, utcnow()),
        )
        .execution_options(synchronize_session=False)
    )
    return _apply_transition(session, stmt, invitation_id, caller_user_id, InvitationStatus.RESPONDED)


def parse_requested_status(raw: Any) -> InvitationStatus:
    s = ("" if raw is None else str(raw)).strip().lower()
    try:
        status = InvitationStatus(s)
    except ValueError:
        raise InvalidStatusValue() from None
    if status not in _REQUESTABLE:
        raise InvalidStatusValue()
    return status


def update_status(session: Session, invitation_id: int, caller_user_id: int, status: Any) -> Invitation:
    target = parse_requested_status(status)
    if target == InvitationStatus.OPENED:
        return mark_opened(session, invitation_id, caller_user_id)
    return mark_responded(session, invitation_id, caller_user_id)
