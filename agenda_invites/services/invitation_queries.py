from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from ..errors import NotFoundOrForbidden
from ..models.agenda import Agenda
from ..models.invitation import Invitation, InvitationStatus
from ..models.user_account import UserAccount
from .eligibility import Eligibility, eligibility_for


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    pages: int


@dataclass(frozen=True)
class InvitationListing:
    """
    A row plus the names a list view shows next to it. delegated_to_name is
    the delegate's account name, or the free-text name for external delegates.
    """
    invitation: Invitation
    agenda_title: Optional[str] = None
    holder_name: Optional[str] = None
    delegated_to_name: Optional[str] = None


@dataclass
class InvitationPage:
    items: List[InvitationListing]
    pagination: Pagination


@dataclass(frozen=True)
class ChainEntry:
    position: int
    user_id: int
    username: Optional[str]
    full_name: Optional[str]


@dataclass
class DelegationChainView:
    invitation: Invitation
    chain: List[ChainEntry] = field(default_factory=list)
    delegated_invitation: Optional[Invitation] = None
    eligibility: Optional[Eligibility] = None


def can_manage_agenda(session: Session, agenda_id: int, caller: UserAccount) -> bool:
    """
    Admins manage every agenda; otherwise only the agenda's creator.
    """
    if caller.is_admin:
        return True
    agenda = session.get(Agenda, agenda_id)
    return agenda is not None and agenda.created_by_user_id == caller.id


def ensure_agenda_manager(session: Session, agenda_id: int, caller: UserAccount) -> None:
    if not can_manage_agenda(session, agenda_id, caller):
        raise NotFoundOrForbidden("Agenda not found or not accessible")


def _listing_select():
    holder = aliased(UserAccount)
    delegate = aliased(UserAccount)
    return (
        select(
            Invitation,
            Agenda.title,
            holder.full_name,
            func.coalesce(delegate.full_name, Invitation.delegated_to_display_name),
        )
        .join(holder, holder.id == Invitation.holder_user_id)
        .outerjoin(Agenda, Agenda.id == Invitation.agenda_id)
        .outerjoin(delegate, delegate.id == Invitation.delegated_to_user_id)
    )


def _listings(rows) -> List[InvitationListing]:
    return [
        InvitationListing(invitation=inv, agenda_title=title, holder_name=holder_name, delegated_to_name=to_name)
        for inv, title, holder_name, to_name in rows
    ]


def list_for_holder(
    session: Session,
    caller_user_id: int,
    *,
    status: Optional[InvitationStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> InvitationPage:
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), 100)

    q = _listing_select().where(Invitation.holder_user_id == caller_user_id)
    count_q = select(func.count()).select_from(Invitation).where(Invitation.holder_user_id == caller_user_id)
    if status is not None:
        q = q.where(Invitation.status == status)
        count_q = count_q.where(Invitation.status == status)

    q = q.order_by(Invitation.created_at.desc(), Invitation.id.desc()).offset((page - 1) * limit).limit(limit)

    items = _listings(session.exec(q).all())
    total = int(session.exec(count_q).one())

    return InvitationPage(
        items=items,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


def list_for_agenda(session: Session, agenda_id: int, caller: UserAccount) -> List[InvitationListing]:
    """
    Every invitation for an agenda (any state, superseded rows included),
    oldest first, with holder and delegate names.
    """
    ensure_agenda_manager(session, agenda_id, caller)

    rows = session.exec(
        _listing_select()
        .where(Invitation.agenda_id == agenda_id)
        .order_by(Invitation.created_at.asc(), Invitation.id.asc())
    ).all()
    return _listings(rows)


def get_visible(session: Session, invitation_id: int, caller: UserAccount) -> Invitation:
    """
    Holder, anyone recorded in the chain, the agenda owner and admins may read a row.
    """
    inv = session.get(Invitation, invitation_id)
    if inv is None:
        raise NotFoundOrForbidden()

    if inv.holder_user_id == caller.id or inv.original_holder_user_id == caller.id:
        return inv
    if caller.id in inv.chain():
        return inv
    if can_manage_agenda(session, inv.agenda_id, caller):
        return inv
    raise NotFoundOrForbidden()


def delegation_chain(session: Session, invitation_id: int, caller: UserAccount) -> DelegationChainView:
    inv = get_visible(session, invitation_id, caller)
    ids = inv.chain()

    accounts = {
        a.id: a for a in session.exec(select(UserAccount).where(UserAccount.id.in_(ids))).all()
    }

    entries = []
    for pos, uid in enumerate(ids):
        acct = accounts.get(uid)
        entries.append(
            ChainEntry(
                position=pos,
                user_id=uid,
                username=acct.username if acct else None,
                full_name=acct.full_name if acct else None,
            )
        )

    child = session.exec(
        select(Invitation).where(Invitation.parent_invitation_id == inv.id).order_by(Invitation.id)
    ).first()

    return DelegationChainView(
        invitation=inv,
        chain=entries,
        delegated_invitation=child,
        eligibility=eligibility_for(inv, caller.id),
    )
