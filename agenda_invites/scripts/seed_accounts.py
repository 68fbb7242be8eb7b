from __future__ import annotations

from typing import Dict, List, Optional

from sqlmodel import select

from agenda_invites.database import init_db, session_scope
from agenda_invites.models.agenda import Agenda
from agenda_invites.models.user_account import AccountRole, UserAccount


# Local dev accounts. personnel_id is what participant lists carry.
SAMPLE_ACCOUNTS: List[Dict[str, Optional[str]]] = [
    {"username": "organizer", "full_name": "Meeting Organizer", "personnel_id": "900", "role": "admin"},
    {"username": "dept_head", "full_name": "Department Head", "personnel_id": "111", "role": "user"},
    {"username": "deputy", "full_name": "Deputy Head", "personnel_id": "222", "role": "user"},
    {"username": "assistant", "full_name": "Senior Assistant", "personnel_id": "333", "role": "user"},
]

SAMPLE_AGENDA_TITLE = "Weekly leadership coordination"


def upsert_account(session, row: Dict[str, Optional[str]]) -> UserAccount:
    """
    Upsert by username. Keeps is_active as-is on existing rows so a seed run
    never re-enables a deactivated account.
    """
    username = str(row["username"]).strip().lower()
    existing = session.exec(select(UserAccount).where(UserAccount.username == username)).first()

    if existing:
        existing.full_name = row.get("full_name") or existing.full_name
        existing.personnel_id = row.get("personnel_id") or existing.personnel_id
        session.add(existing)
        return existing

    account = UserAccount(
        username=username,
        full_name=row.get("full_name") or username,
        personnel_id=row.get("personnel_id"),
        role=AccountRole(row.get("role") or "user"),
        is_active=True,
    )
    session.add(account)
    return account


def ensure_agenda(session, title: str, owner: UserAccount) -> Agenda:
    existing = session.exec(
        select(Agenda).where((Agenda.title == title) & (Agenda.created_by_user_id == owner.id))
    ).first()
    if existing:
        return existing

    agenda = Agenda(title=title, created_by_user_id=owner.id)
    session.add(agenda)
    return agenda


def main() -> None:
    # Ensure tables exist (local dev)
    init_db()

    with session_scope() as session:
        accounts = [upsert_account(session, row) for row in SAMPLE_ACCOUNTS]
        session.flush()
        agenda = ensure_agenda(session, SAMPLE_AGENDA_TITLE, accounts[0])
        session.flush()

        total = len(session.exec(select(UserAccount)).all())
        agenda_id = agenda.id

    print(f"Seeded/updated accounts: {total} (agenda id: {agenda_id})")


if __name__ == "__main__":
    main()
