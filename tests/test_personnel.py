"""Personnel id -> active account resolution, with and without the registry."""
import httpx
import pytest

from agenda_invites.errors import InfrastructureError
from agenda_invites.services.personnel import AccountResolver, PersonnelDirectory


def registry(handler):
    return PersonnelDirectory("http://registry.test", client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_resolves_active_account(session, users):
    resolver = AccountResolver(session)
    assert resolver.resolve("111") == users.u1.id
    assert resolver.resolve("  222 ") == users.u2.id


def test_unknown_inactive_and_blank_ids_resolve_to_none(session, users):
    resolver = AccountResolver(session)
    assert resolver.resolve("999") is None
    assert resolver.resolve("555") is None  # account exists but is inactive
    assert resolver.resolve("") is None
    assert resolver.resolve("   ") is None
    assert resolver.resolve(None) is None


def test_registry_active_flag_is_respected(session, users):
    def handler(request):
        pid = request.url.path.rsplit("/", 1)[-1]
        if pid == "111":
            return httpx.Response(200, json={"personnel_id": "111", "name": "U One", "active": True})
        if pid == "222":
            return httpx.Response(200, json={"personnel_id": "222", "name": "U Two", "active": False})
        return httpx.Response(404)

    resolver = AccountResolver(session, registry(handler))
    assert resolver.resolve("111") == users.u1.id
    assert resolver.resolve("222") is None
    assert resolver.resolve("333") is None


def test_registry_lookups_are_cached_per_resolver(session, users):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={"personnel_id": "111", "name": "U One", "active": True})

    resolver = AccountResolver(session, registry(handler))
    resolver.resolve("111")
    resolver.resolve("111")
    assert calls == ["/personnel/111"]


def test_registry_server_error_is_infrastructure_error(session, users):
    resolver = AccountResolver(session, registry(lambda request: httpx.Response(503)))
    with pytest.raises(InfrastructureError) as exc:
        resolver.resolve("111")
    assert exc.value.retryable is True


def test_registry_unreachable_is_infrastructure_error(session, users):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    resolver = AccountResolver(session, registry(handler))
    with pytest.raises(InfrastructureError):
        resolver.resolve("111")


def test_registry_not_consulted_without_an_account(session, users):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={"active": True})

    resolver = AccountResolver(session, registry(handler))
    assert resolver.resolve("999") is None
    assert calls == []
