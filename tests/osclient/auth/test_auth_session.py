"""
Tests for AuthSession.

Tests cover:
- Initial authentication and credential reuse
- Expiry-margin driven refresh
- Single-flight refresh under concurrency (shared success and shared failure)
- Switching credentials while an exchange is in flight
- Forced refresh with stale-token detection
- Endpoint resolution through the current catalog
"""

import asyncio

import pytest

from osclient.auth.credentials import PasswordCredentials
from osclient.auth.session import AuthSession
from osclient.errors.exceptions import AuthError, CatalogError


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_authenticate_installs_token(self, auth_session, fake_identity):
        token = await auth_session.authenticate()

        assert token.id == "tok-1"
        assert auth_session.is_authenticated
        assert fake_identity.calls == 1
        assert auth_session.auth_count == 1

    @pytest.mark.asyncio
    async def test_authenticate_remembers_new_credentials(self, fake_identity, credentials):
        session = AuthSession(fake_identity)
        await session.authenticate(credentials)
        session.invalidate()
        await session.ensure_valid()

        assert fake_identity.credentials == [credentials, credentials]

    @pytest.mark.asyncio
    async def test_authenticate_without_credentials_fails(self, fake_identity):
        session = AuthSession(fake_identity)

        with pytest.raises(AuthError, match="No credentials"):
            await session.ensure_valid()
        assert fake_identity.calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, identity_factory, credentials):
        identity = identity_factory(error=RuntimeError("boom"))
        session = AuthSession(identity, credentials=credentials)

        with pytest.raises(AuthError) as exc_info:
            await session.authenticate()
        assert isinstance(exc_info.value.cause, RuntimeError)


class TestEnsureValid:
    @pytest.mark.asyncio
    async def test_valid_token_is_reused(self, auth_session, fake_identity):
        first = await auth_session.ensure_valid()
        second = await auth_session.ensure_valid()

        assert first is second
        assert fake_identity.calls == 1

    @pytest.mark.asyncio
    async def test_token_within_margin_is_refreshed(
        self, identity_factory, token_factory, credentials
    ):
        stale = token_factory("old", expires_in=60)
        fresh = token_factory("new", expires_in=3600)
        identity = identity_factory(tokens=[stale, fresh])
        session = AuthSession(identity, credentials=credentials, refresh_margin=300)

        await session.authenticate()
        token = await session.ensure_valid()

        assert token.id == "new"
        assert identity.calls == 2

    @pytest.mark.asyncio
    async def test_custom_margin_overrides_default(
        self, identity_factory, token_factory, credentials
    ):
        identity = identity_factory(tokens=[token_factory("short", expires_in=60)])
        session = AuthSession(identity, credentials=credentials, refresh_margin=300)
        await session.authenticate()

        token = await session.ensure_valid(margin=10)

        assert token.id == "short"
        assert identity.calls == 1


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_exchange(self, identity_factory, credentials):
        gate = asyncio.Event()
        identity = identity_factory(gate=gate)
        session = AuthSession(identity, credentials=credentials)

        tasks = [asyncio.create_task(session.ensure_valid()) for _ in range(10)]
        await asyncio.sleep(0)
        gate.set()
        tokens = await asyncio.gather(*tasks)

        assert identity.calls == 1
        assert {token.id for token in tokens} == {"tok-1"}

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(self, identity_factory, credentials):
        gate = asyncio.Event()
        identity = identity_factory(error=AuthError("rejected"), gate=gate)
        session = AuthSession(identity, credentials=credentials)

        tasks = [asyncio.create_task(session.ensure_valid()) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert identity.calls == 1
        assert all(isinstance(result, AuthError) for result in results)
        assert not session.is_authenticated

    @pytest.mark.asyncio
    async def test_next_refresh_after_failure_starts_new_exchange(
        self, identity_factory, credentials
    ):
        identity = identity_factory(error=AuthError("rejected"))
        session = AuthSession(identity, credentials=credentials)

        with pytest.raises(AuthError):
            await session.ensure_valid()
        identity.error = None
        token = await session.ensure_valid()

        assert token.id == "tok-2"
        assert identity.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_abort_shared_exchange(
        self, identity_factory, credentials
    ):
        gate = asyncio.Event()
        identity = identity_factory(gate=gate)
        session = AuthSession(identity, credentials=credentials)

        cancelled = asyncio.create_task(session.ensure_valid())
        survivor = asyncio.create_task(session.ensure_valid())
        await asyncio.sleep(0)
        cancelled.cancel()
        gate.set()

        token = await survivor
        with pytest.raises(asyncio.CancelledError):
            await cancelled
        assert token.id == "tok-1"
        assert identity.calls == 1

    @pytest.mark.asyncio
    async def test_stale_token_refreshed_once_for_concurrent_callers(
        self, identity_factory, token_factory, credentials
    ):
        stale = token_factory("old", expires_in=60)
        fresh = token_factory("new", expires_in=3600)
        identity = identity_factory(tokens=[stale, fresh])
        session = AuthSession(identity, credentials=credentials, refresh_margin=300)
        await session.authenticate()
        gate = asyncio.Event()
        identity.gate = gate

        tasks = [asyncio.create_task(session.ensure_valid()) for _ in range(10)]
        await asyncio.sleep(0)
        gate.set()
        tokens = await asyncio.gather(*tasks)

        assert identity.calls == 2
        assert {token.id for token in tokens} == {"new"}

    @pytest.mark.asyncio
    async def test_concurrent_force_refresh_of_same_token_coalesces(
        self, auth_session, fake_identity
    ):
        rejected = await auth_session.authenticate()
        gate = asyncio.Event()
        fake_identity.gate = gate

        tasks = [
            asyncio.create_task(auth_session.force_refresh(stale=rejected)) for _ in range(6)
        ]
        await asyncio.sleep(0)
        gate.set()
        tokens = await asyncio.gather(*tasks)

        assert fake_identity.calls == 2
        assert {token.id for token in tokens} == {"tok-2"}


class TestCredentialSwitch:
    @pytest.mark.asyncio
    async def test_new_credentials_wait_for_running_exchange(self, identity_factory):
        alice = PasswordCredentials("alice", "secret-a")
        bob = PasswordCredentials("bob", "secret-b")
        gate = asyncio.Event()
        identity = identity_factory(gate=gate)
        session = AuthSession(identity, credentials=alice)

        refresh = asyncio.create_task(session.ensure_valid())
        await asyncio.sleep(0)
        switch = asyncio.create_task(session.authenticate(bob))
        await asyncio.sleep(0)
        gate.set()

        alice_token = await refresh
        bob_token = await switch

        assert identity.credentials == [alice, bob]
        assert alice_token.id == "tok-1"
        assert bob_token.id == "tok-2"
        assert session.get_token_info()["auth_count"] == 2
        assert (await session.ensure_valid()) is bob_token

    @pytest.mark.asyncio
    async def test_later_refreshes_use_new_credentials(self, identity_factory):
        alice = PasswordCredentials("alice", "secret-a")
        bob = PasswordCredentials("bob", "secret-b")
        gate = asyncio.Event()
        identity = identity_factory(gate=gate)
        session = AuthSession(identity, credentials=alice)

        refresh = asyncio.create_task(session.ensure_valid())
        await asyncio.sleep(0)
        switch = asyncio.create_task(session.authenticate(bob))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(refresh, switch)

        session.invalidate()
        await session.ensure_valid()

        assert identity.credentials == [alice, bob, bob]

    @pytest.mark.asyncio
    async def test_same_credentials_join_running_exchange(self, identity_factory, credentials):
        gate = asyncio.Event()
        identity = identity_factory(gate=gate)
        session = AuthSession(identity, credentials=credentials)

        refresh = asyncio.create_task(session.ensure_valid())
        await asyncio.sleep(0)
        again = asyncio.create_task(
            session.authenticate(PasswordCredentials("demo", "secret"))
        )
        await asyncio.sleep(0)
        gate.set()

        first, second = await asyncio.gather(refresh, again)

        assert first is second
        assert identity.calls == 1


class TestForceRefresh:
    @pytest.mark.asyncio
    async def test_force_refresh_replaces_stale_token(self, auth_session, fake_identity):
        stale = await auth_session.authenticate()

        fresh = await auth_session.force_refresh(stale=stale)

        assert fresh.id == "tok-2"
        assert fake_identity.calls == 2

    @pytest.mark.asyncio
    async def test_already_replaced_token_is_returned(self, auth_session, fake_identity):
        stale = await auth_session.authenticate()
        fresh = await auth_session.force_refresh(stale=stale)

        again = await auth_session.force_refresh(stale=stale)

        assert again is fresh
        assert fake_identity.calls == 2

    @pytest.mark.asyncio
    async def test_force_refresh_without_stale_always_exchanges(
        self, auth_session, fake_identity
    ):
        await auth_session.authenticate()
        await auth_session.force_refresh()

        assert fake_identity.calls == 2


class TestResolveEndpoint:
    def test_resolve_before_authenticate_raises(self, auth_session):
        with pytest.raises(CatalogError, match="authenticate first"):
            auth_session.resolve_endpoint("compute")

    @pytest.mark.asyncio
    async def test_resolve_uses_session_defaults(self, fake_identity, credentials):
        session = AuthSession(
            fake_identity, credentials=credentials, interface="internal", region="RegionOne"
        )
        await session.authenticate()

        assert session.resolve_endpoint("compute") == "http://compute.internal:8774/v2.1"
        assert (
            session.resolve_endpoint("compute", interface="public", region="RegionTwo")
            == "https://compute.r2.example.com/v2.1"
        )

    @pytest.mark.asyncio
    async def test_unknown_service_raises(self, auth_session):
        await auth_session.authenticate()

        with pytest.raises(CatalogError):
            auth_session.resolve_endpoint("volume")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_get_token_info(self, auth_session):
        assert auth_session.get_token_info() is None

        await auth_session.authenticate()
        info = auth_session.get_token_info()

        assert info["services"] == ["compute", "image"]
        assert info["auth_count"] == 1
        assert info["is_expired"] is False
        assert info["remaining_seconds"] > 3000

    @pytest.mark.asyncio
    async def test_invalidate_forces_reauthentication(self, auth_session, fake_identity):
        await auth_session.authenticate()
        auth_session.invalidate()

        token = await auth_session.ensure_valid()

        assert token.id == "tok-2"

    @pytest.mark.asyncio
    async def test_close_releases_identity_and_token(self, auth_session, fake_identity):
        await auth_session.authenticate()
        await auth_session.close()

        assert fake_identity.closed is True
        assert not auth_session.is_authenticated
