"""Invitation generation: eligibility, idempotence, skip reporting and atomicity."""
import pytest
from sqlmodel import select

from agenda_invites.errors import InfrastructureError
from agenda_invites.models.invitation import Invitation, InvitationStatus
from agenda_invites.services import invitation_generator
from agenda_invites.services.delegation import DelegationTarget, delegate
from agenda_invites.services.invitation_generator import SkipReason, generate
from agenda_invites.services.personnel import AccountResolver

from conftest import external, internal


def all_invitations(session, agenda_id):
    return list(session.exec(select(Invitation).where(Invitation.agenda_id == agenda_id)).all())


def test_internal_participant_gets_root_invitation_external_does_not(session, users, agenda, resolver):
    result = generate(session, agenda.id, [internal("111", "U One"), external("Y")], resolver)

    assert len(result.created) == 1
    inv = result.created[0]
    assert inv.id is not None
    assert inv.holder_user_id == users.u1.id
    assert inv.status == InvitationStatus.NEW
    assert inv.delegation_level == 0
    assert inv.original_holder_user_id == users.u1.id
    assert inv.delegation_chain == [users.u1.id]
    assert inv.parent_invitation_id is None
    assert inv.delegated_at is None

    assert [(s.index, s.display_name, s.reason) for s in result.skipped] == [(1, "Y", SkipReason.EXTERNAL)]
    assert len(all_invitations(session, agenda.id)) == 1


def test_generate_twice_creates_no_duplicates(session, users, agenda, resolver):
    participants = [internal("111"), internal("222")]
    first = generate(session, agenda.id, participants, resolver)
    second = generate(session, agenda.id, participants, resolver)

    assert len(first.created) == 2
    assert second.created == []
    assert {s.reason for s in second.skipped} == {SkipReason.ALREADY_INVITED}
    assert {s.holder_user_id for s in second.skipped} == {users.u1.id, users.u2.id}
    assert len(all_invitations(session, agenda.id)) == 2


def test_unresolvable_participants_are_reported(session, users, agenda, resolver):
    result = generate(
        session,
        agenda.id,
        [
            internal("555", "Retired"),
            internal("999", "Unknown"),
            internal(None, "No Id"),
            internal("   ", "Blank Id"),
        ],
        resolver,
    )

    assert result.created == []
    assert [s.reason for s in result.skipped] == [
        SkipReason.NO_ACTIVE_ACCOUNT,
        SkipReason.NO_ACTIVE_ACCOUNT,
        SkipReason.MISSING_PERSONNEL_ID,
        SkipReason.MISSING_PERSONNEL_ID,
    ]


def test_same_holder_twice_in_one_batch(session, users, agenda, resolver):
    result = generate(session, agenda.id, [internal("111"), internal(" 111 ")], resolver)

    assert len(result.created) == 1
    assert [(s.index, s.reason) for s in result.skipped] == [(1, SkipReason.DUPLICATE_IN_BATCH)]


def test_regenerating_after_participants_change_only_adds_new_holders(session, users, agenda, resolver):
    generate(session, agenda.id, [internal("111")], resolver)
    result = generate(session, agenda.id, [internal("111"), internal("333")], resolver)

    assert [inv.holder_user_id for inv in result.created] == [users.u3.id]
    assert len(all_invitations(session, agenda.id)) == 2


def test_holder_who_delegated_away_is_not_reinvited(session, users, agenda, resolver):
    root = generate(session, agenda.id, [internal("111")], resolver).created[0]
    delegate(session, root.id, users.u1.id, DelegationTarget(to_display_name="U Two", to_user_id=users.u2.id))

    result = generate(session, agenda.id, [internal("111"), internal("222")], resolver)

    assert result.created == []
    assert {s.reason for s in result.skipped} == {SkipReason.ALREADY_INVITED}
    assert len(all_invitations(session, agenda.id)) == 2


def test_failure_mid_batch_rolls_back_everything(session, users, agenda, caplog):
    class FlakyResolver(AccountResolver):
        def resolve(self, personnel_id):
            if personnel_id == "222":
                raise InfrastructureError("registry down")
            return super().resolve(personnel_id)

    caplog.set_level("WARNING", logger="agenda_invites.services.invitation_generator")
    with pytest.raises(InfrastructureError):
        generate(session, agenda.id, [internal("111"), internal("222")], FlakyResolver(session))

    assert all_invitations(session, agenda.id) == []

    # a retryable domain error is reported once, without a traceback
    logged = [r for r in caplog.records if r.name == "agenda_invites.services.invitation_generator"]
    assert [r.levelname for r in logged] == ["WARNING"]
    assert logged[0].exc_info is None
    assert "infrastructure_error" in logged[0].getMessage()


def test_lost_race_is_retried_and_reported_as_already_invited(session, users, agenda, resolver, monkeypatch):
    generate(session, agenda.id, [internal("111")], resolver)

    real = invitation_generator._existing_holders
    calls = []

    def stale_then_real(sess, agenda_id):
        calls.append(agenda_id)
        # first attempt does not see the committed row, as a concurrent request would
        return set() if len(calls) == 1 else real(sess, agenda_id)

    monkeypatch.setattr(invitation_generator, "_existing_holders", stale_then_real)

    result = generate(session, agenda.id, [internal("111"), internal("222")], resolver)

    assert len(calls) == 2
    assert [inv.holder_user_id for inv in result.created] == [users.u2.id]
    assert [s.reason for s in result.skipped] == [SkipReason.ALREADY_INVITED]
    assert len(all_invitations(session, agenda.id)) == 2


def test_invitations_are_scoped_per_agenda(session, users, agenda, resolver):
    generate(session, agenda.id, [internal("111")], resolver)
    other = generate(session, agenda.id + 100, [internal("111")], resolver)

    assert len(other.created) == 1
    assert other.created[0].agenda_id == agenda.id + 100
