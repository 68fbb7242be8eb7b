from __future__ import annotations

from typing import Generator

from fastapi import APIRouter, Depends, Path
from sqlmodel import Session

from ..database import MAX_ROW_ID, get_db
from ..models.user_account import UserAccount
from ..security import get_current_account
from ..services.invitation_generator import Participant, ParticipantKind, generate
from ..services.invitation_queries import ensure_agenda_manager
from ..services.personnel import AccountResolver, directory_from_settings
from .schemas import GenerateRequest, GenerateResponse, InvitationRead, SkippedParticipantRead

router = APIRouter(prefix="/agendas", tags=["agendas"])


def get_resolver(db: Session = Depends(get_db)) -> Generator[AccountResolver, None, None]:
    directory = directory_from_settings()
    try:
        yield AccountResolver(db, directory)
    finally:
        if directory is not None:
            directory.close()


@router.post("/{agenda_id}/invitations:generate", response_model=GenerateResponse)
def generate_agenda_invitations(
    payload: GenerateRequest,
    agenda_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    caller: UserAccount = Depends(get_current_account),
    db: Session = Depends(get_db),
    resolver: AccountResolver = Depends(get_resolver),
) -> GenerateResponse:
    """
    Called when an organizer finalizes the participant list.

    Safe to repeat: only holders without an invitation get a new one. Every
    participant that did not get one is listed under `skipped` with a reason.
    """
    ensure_agenda_manager(db, agenda_id, caller)

    participants = [
        Participant(
            kind=ParticipantKind(p.kind),
            display_name=p.display_name,
            personnel_id=p.personnel_id,
        )
        for p in payload.participants
    ]
    result = generate(db, agenda_id, participants, resolver)

    return GenerateResponse(
        agenda_id=agenda_id,
        generated_count=len(result.created),
        invitations=[InvitationRead.model_validate(inv) for inv in result.created],
        skipped=[SkippedParticipantRead.model_validate(s) for s in result.skipped],
    )
