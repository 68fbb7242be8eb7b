from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Set

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from ..errors import InfrastructureError, InvitationError
from ..models.invitation import Invitation, InvitationStatus
from .personnel import AccountResolver, normalize_personnel_id

logger = logging.getLogger(__name__)

# A lost race on the active-holder unique index is retried this many times.
_MAX_ATTEMPTS = 2


class ParticipantKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class SkipReason(str, Enum):
    """
    Why a participant did not receive a new invitation.
    """

    EXTERNAL = "external"
    MISSING_PERSONNEL_ID = "missing_personnel_id"
    NO_ACTIVE_ACCOUNT = "no_active_account"
    ALREADY_INVITED = "already_invited"
    DUPLICATE_IN_BATCH = "duplicate_in_batch"


@dataclass(frozen=True)
class Participant:
    kind: ParticipantKind
    display_name: str
    personnel_id: Optional[str] = None


@dataclass(frozen=True)
class SkippedParticipant:
    index: int
    display_name: str
    personnel_id: Optional[str]
    reason: SkipReason
    holder_user_id: Optional[int] = None


@dataclass
class GenerationResult:
    agenda_id: int
    created: List[Invitation] = field(default_factory=list)
    skipped: List[SkippedParticipant] = field(default_factory=list)


def _existing_holders(session: Session, agenda_id: int) -> Set[int]:
    """
    Every account that already holds (or held, before delegating) an
    invitation for the agenda.
    """
    rows = session.exec(select(Invitation.holder_user_id).where(Invitation.agenda_id == agenda_id)).all()
    return {int(r) for r in rows}


def _root_invitation(agenda_id: int, holder_user_id: int) -> Invitation:
    return Invitation(
        agenda_id=agenda_id,
        holder_user_id=holder_user_id,
        status=InvitationStatus.NEW,
        delegation_level=0,
        original_holder_user_id=holder_user_id,
        delegation_chain=[holder_user_id],
    )


def _build_batch(
    session: Session,
    agenda_id: int,
    participants: Sequence[Participant],
    resolver: AccountResolver,
) -> GenerationResult:
    result = GenerationResult(agenda_id=agenda_id)
    already = _existing_holders(session, agenda_id)
    seen: Set[int] = set()

    def skip(i: int, p: Participant, pid: Optional[str], reason: SkipReason, holder: Optional[int] = None) -> None:
        result.skipped.append(
            SkippedParticipant(
                index=i,
                display_name=p.display_name,
                personnel_id=pid,
                reason=reason,
                holder_user_id=holder,
            )
        )

    for i, p in enumerate(participants):
        pid = normalize_personnel_id(p.personnel_id)

        # external guests are recorded on the agenda only
        if ParticipantKind(p.kind) != ParticipantKind.INTERNAL:
            skip(i, p, pid, SkipReason.EXTERNAL)
            continue

        if pid is None:
            skip(i, p, pid, SkipReason.MISSING_PERSONNEL_ID)
            continue

        holder = resolver.resolve(pid)
        if holder is None:
            skip(i, p, pid, SkipReason.NO_ACTIVE_ACCOUNT)
            continue

        if holder in already:
            skip(i, p, pid, SkipReason.ALREADY_INVITED, holder)
            continue

        if holder in seen:
            skip(i, p, pid, SkipReason.DUPLICATE_IN_BATCH, holder)
            continue

        inv = _root_invitation(agenda_id, holder)
        session.add(inv)
        result.created.append(inv)
        seen.add(holder)

    # surfaces unique-index conflicts before commit
    session.flush()
    return result


def generate(
    session: Session,
    agenda_id: int,
    participants: Sequence[Participant],
    resolver: AccountResolver,
) -> GenerationResult:
    """
    Create one root invitation per eligible internal participant.

    Idempotent: holders that already have an invitation for the agenda are
    reported as skipped, never duplicated. The whole batch is one transaction.
    """
    for attempt in range(1, _MAX_ATTEMPTS + 1):
        try:
            result = _build_batch(session, agenda_id, participants, resolver)
            session.commit()
        except IntegrityError as e:
            # another generate for this agenda committed first; rebuild against it
            session.rollback()
            logger.warning(
                "generate agenda_id=%s lost a race (attempt %s/%s): %s",
                agenda_id,
                attempt,
                _MAX_ATTEMPTS,
                e.orig,
            )
            continue
        except OperationalError as e:
            session.rollback()
            logger.exception("generate agenda_id=%s failed: store unavailable", agenda_id)
            raise InfrastructureError("Invitation store is unavailable") from e
        except InvitationError as e:
            session.rollback()
            logger.warning("generate agenda_id=%s rolled back: %s", agenda_id, e.kind)
            raise
        except Exception:
            session.rollback()
            logger.exception("generate agenda_id=%s failed; batch rolled back", agenda_id)
            raise

        for inv in result.created:
            session.refresh(inv)

        logger.info(
            "generate agenda_id=%s participants=%s created=%s skipped=%s",
            agenda_id,
            len(participants),
            len(result.created),
            len(result.skipped),
        )
        return result

    raise InfrastructureError("Concurrent invitation generation for this agenda; retry the request")
