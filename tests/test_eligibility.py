"""Advisory delegation eligibility."""
import pytest

from agenda_invites.models.invitation import MAX_DELEGATION_DEPTH
from agenda_invites.services.delegation import DelegationTarget, delegate
from agenda_invites.services.eligibility import can_delegate
from agenda_invites.services.invitation_generator import generate

from conftest import internal


@pytest.fixture
def root(session, users, agenda, resolver):
    return generate(session, agenda.id, [internal("111")], resolver).created[0]


def hand_to(session, inv, caller, account):
    return delegate(
        session,
        inv.id,
        caller.id,
        DelegationTarget(to_display_name=account.full_name, to_user_id=account.id),
    ).delegated


def test_fresh_invitation_is_eligible(session, users, root):
    e = can_delegate(session, root.id, users.u1.id)
    assert e.can_delegate
    assert e.delegation_level == 0
    assert e.max_delegation_level == MAX_DELEGATION_DEPTH == 2
    assert e.reason is None


def test_superseded_invitation_reports_already_delegated(session, users, root):
    child = hand_to(session, root, users.u1, users.u2)

    e = can_delegate(session, root.id, users.u1.id)
    assert not e.can_delegate
    assert e.reason == "already_delegated"

    assert can_delegate(session, child.id, users.u2.id).can_delegate
    assert can_delegate(session, child.id, users.u2.id).delegation_level == 1


def test_deepest_level_reports_the_limit(session, users, root):
    u2_inv = hand_to(session, root, users.u1, users.u2)
    u3_inv = hand_to(session, u2_inv, users.u2, users.u3)

    e = can_delegate(session, u3_inv.id, users.u3.id)
    assert not e.can_delegate
    assert e.delegation_level == 2
    assert e.reason == "delegation_limit_exceeded"
    assert "organizer" in e.message


def test_non_holder_learns_nothing(session, users, root):
    e = can_delegate(session, root.id, users.u2.id)
    assert not e.can_delegate
    assert e.reason == "not_found_or_forbidden"
    assert e.delegation_level == 0

    assert can_delegate(session, 4242, users.u1.id).reason == "not_found_or_forbidden"
