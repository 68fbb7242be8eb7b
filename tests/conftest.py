"""Pytest configuration and fixtures for all tests."""
import os

# Must be set before agenda_invites.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PERSONNEL_REGISTRY_URL"] = ""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from agenda_invites.database import build_engine, get_db, register_models
from agenda_invites.main import create_app
from agenda_invites.models.agenda import Agenda
from agenda_invites.models.user_account import AccountRole, UserAccount
from agenda_invites.services.invitation_generator import Participant, ParticipantKind
from agenda_invites.services.personnel import AccountResolver


@pytest.fixture
def engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    eng = build_engine("sqlite://", poolclass=StaticPool)
    register_models()
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


def make_account(session, username, personnel_id=None, *, role=AccountRole.USER, is_active=True):
    acct = UserAccount(
        username=username,
        full_name=username.replace("_", " ").title(),
        personnel_id=personnel_id,
        role=role,
        is_active=is_active,
    )
    session.add(acct)
    session.commit()
    session.refresh(acct)
    return acct


@pytest.fixture
def users(session):
    """
    u1..u4 are active accounts for personnel ids 111..444.
    retired holds personnel id 555 but is inactive.
    """
    return SimpleNamespace(
        organizer=make_account(session, "organizer", "900"),
        admin=make_account(session, "admin", None, role=AccountRole.ADMIN),
        u1=make_account(session, "u1", "111"),
        u2=make_account(session, "u2", "222"),
        u3=make_account(session, "u3", "333"),
        u4=make_account(session, "u4", "444"),
        retired=make_account(session, "retired", "555", is_active=False),
    )


@pytest.fixture
def agenda(session, users):
    a = Agenda(title="Leadership coordination meeting", created_by_user_id=users.organizer.id)
    session.add(a)
    session.commit()
    session.refresh(a)
    return a


@pytest.fixture
def resolver(session):
    return AccountResolver(session)


def internal(personnel_id, name="Participant"):
    return Participant(kind=ParticipantKind.INTERNAL, display_name=name, personnel_id=personnel_id)


def external(name):
    return Participant(kind=ParticipantKind.EXTERNAL, display_name=name)


@pytest.fixture
def client(engine):
    app = create_app(create_tables=False)

    def _get_db():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(account):
    return {"X-User-Id": str(account.id)}
