"""
Tests for the role resolver: ordering, sequencing and failure handling.
"""
from __future__ import annotations

import asyncio
import logging

import pytest

from src.domain.entities.role import RoleSet
from src.domain.errors import AuthError, InvalidRoleError
from src.domain.ports import SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED
from src.domain.services.role_resolver import RoleResolver
from src.domain.services.route_guard import GuardState, RouteGuard
from src.infrastructure.database.repositories.profile_repository import ProfileRepository
from tests.fakes import FakeProfiles, FakeSessionStore, FakeTableClient, session_for, spin

ROLES = RoleSet(roles=frozenset({"admin", "user"}), default="user")


def make(current=None):
    store = FakeSessionStore(current)
    profiles = FakeProfiles()
    return store, profiles, RoleResolver(store, profiles, ROLES)


class TestStartup:
    def test_listener_registered_before_probe(self):
        store, _, resolver = make()

        async def scenario():
            await resolver.start()

        asyncio.run(scenario())
        assert store.calls[:2] == ["subscribe", "probe"]

    def test_loading_until_started(self):
        _, _, resolver = make()
        assert resolver.state.loading is True

        asyncio.run(resolver.start())
        assert resolver.state.loading is False
        assert resolver.state.identity is None
        assert resolver.state.profile is None

    def test_initial_session_resolves_profile_before_loading_clears(self):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "admin")

        state = asyncio.run(resolver.start())
        assert state.loading is False
        assert state.identity == "alice"
        assert state.profile.role == "admin"

    def test_event_during_probe_is_not_dropped(self):
        store, profiles, resolver = make()
        profiles.add("bob", "user")
        # the probe started before bob signed in and still reports no session
        store.during_probe = lambda: store.emit(SIGNED_IN, session_for("bob"))

        state = asyncio.run(resolver.start())
        assert state.identity == "bob"
        assert state.profile.role == "user"

    def test_start_twice_is_rejected(self):
        _, _, resolver = make()

        async def scenario():
            await resolver.start()
            with pytest.raises(RuntimeError):
                await resolver.start()

        asyncio.run(scenario())

    def test_probe_failure_resolves_to_signed_out(self, caplog):
        store, _, resolver = make()

        async def broken_probe():
            raise AuthError("unreachable", AuthError.UNAVAILABLE)

        store.get_current_session = broken_probe
        with caplog.at_level(logging.WARNING):
            state = asyncio.run(resolver.start())
        assert state.loading is False
        assert state.identity is None
        assert "Initial session check failed" in caplog.text


class TestSessionChanges:
    def test_loading_flips_once_and_never_reverts(self):
        store, profiles, resolver = make()
        profiles.add("alice", "user")
        seen = []

        async def scenario():
            await resolver.start()
            seen.append(resolver.state.loading)
            store.emit(SIGNED_IN, session_for("alice"))
            seen.append(resolver.state.loading)
            await resolver.settled()
            seen.append(resolver.state.loading)
            store.emit(SIGNED_OUT, None)
            seen.append(resolver.state.loading)
            store.emit(SIGNED_IN, session_for("alice", token="t2"))
            await resolver.settled()
            seen.append(resolver.state.loading)

        asyncio.run(scenario())
        assert seen == [False] * 5

    def test_sign_out_clears_profile_while_lookup_in_flight(self):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "admin")

        async def scenario():
            await resolver.start()
            assert resolver.state.profile.role == "admin"
            profiles.gates["alice"] = asyncio.Event()
            store.emit(TOKEN_REFRESHED, session_for("alice", token="refreshed"))
            await spin()
            assert profiles.fetched.count("alice") == 2

            store.emit(SIGNED_OUT, None)
            # cleared synchronously, not after the pending lookup
            assert resolver.state.profile is None
            assert resolver.state.identity is None

            profiles.gates["alice"].set()
            await spin()
            assert resolver.state.profile is None
            assert resolver.state.identity is None

        asyncio.run(scenario())

    def test_stale_lookup_does_not_overwrite_newer_identity(self):
        store, profiles, resolver = make()
        profiles.add("alice", "admin")
        profiles.add("bob", "user")

        async def scenario():
            await resolver.start()
            profiles.gates["alice"] = asyncio.Event()
            store.emit(SIGNED_IN, session_for("alice"))
            await spin()
            store.emit(SIGNED_IN, session_for("bob"))
            await resolver.settled()
            assert resolver.state.profile.id == "bob"

            # alice's lookup answers late
            profiles.gates["alice"].set()
            await spin()
            assert resolver.state.identity == "bob"
            assert resolver.state.profile.role == "user"

        asyncio.run(scenario())

    def test_identity_change_hides_previous_profile_immediately(self):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "admin")
        profiles.add("bob", "user")

        async def scenario():
            await resolver.start()
            profiles.gates["bob"] = asyncio.Event()
            store.emit(SIGNED_IN, session_for("bob"))
            assert resolver.state.identity == "bob"
            assert resolver.state.profile is None
            profiles.gates["bob"].set()
            await resolver.settled()
            assert resolver.state.profile.role == "user"

        asyncio.run(scenario())

    def test_lookup_failure_is_logged_and_treated_as_no_profile(self, caplog):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "admin")
        profiles.failing.add("alice")

        with caplog.at_level(logging.WARNING):
            state = asyncio.run(resolver.start())
        assert state.identity == "alice"
        assert state.profile is None
        assert state.loading is False
        assert "Profile lookup failed" in caplog.text

    def test_row_losing_its_role_drops_the_cached_profile(self, caplog):
        rows = [{"id": "alice", "role": "admin"}]
        profiles = ProfileRepository(FakeTableClient(profiles=rows))
        profiles.disabled = False
        store = FakeSessionStore(session_for("alice"))
        resolver = RoleResolver(store, profiles, ROLES)

        async def scenario():
            await resolver.start()
            assert resolver.state.profile.role == "admin"
            rows[0] = {"id": "alice"}
            store.emit(TOKEN_REFRESHED, session_for("alice", token="refreshed"))
            await resolver.settled()

        with caplog.at_level(logging.WARNING):
            asyncio.run(scenario())
        assert resolver.state.identity == "alice"
        assert resolver.state.profile is None
        assert "Profile lookup failed for alice" in caplog.text

    def test_unexpected_lookup_error_fails_closed(self, caplog):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "admin")

        async def scenario():
            await resolver.start()

            async def broken_fetch(identity):
                raise KeyError("role")

            profiles.fetch = broken_fetch
            store.emit(TOKEN_REFRESHED, session_for("alice", token="refreshed"))
            await resolver.settled()

        with caplog.at_level(logging.ERROR):
            asyncio.run(scenario())
        assert resolver.state.profile is None
        assert "Unexpected error looking up profile for alice" in caplog.text

    def test_role_outside_role_set_is_treated_as_no_profile(self):
        store, profiles, resolver = make(session_for("carol"))
        profiles.add("carol", "manager")

        state = asyncio.run(resolver.start())
        assert state.identity == "carol"
        assert state.profile is None

    def test_close_unsubscribes(self):
        store, profiles, resolver = make()
        profiles.add("alice", "user")

        async def scenario():
            await resolver.start()
            resolver.close()
            assert store.callbacks == []
            store.emit(SIGNED_IN, session_for("alice"))
            assert resolver.state.identity is None

        asyncio.run(scenario())


class TestOperations:
    def test_sign_up_then_sign_in_yields_requested_role(self):
        store, profiles, first = make()

        async def scenario():
            async with first:
                outcome = await first.sign_up("ann@example.com", "secret123", role="admin")
                assert outcome.profile_created
            # a fresh client signs in with the same credentials
            store.current = None
            second = RoleResolver(store, profiles, ROLES)
            async with second:
                assert second.state.identity is None
                state = await second.sign_in("ann@example.com", "secret123")
            return state

        state = asyncio.run(scenario())
        assert state.loading is False
        assert state.profile.role == "admin"

    def test_sign_up_adopts_profile_for_current_session(self):
        store, profiles, resolver = make()

        async def scenario():
            async with resolver:
                await resolver.sign_up("ben@example.com", "secret123", display_name="Ben")
                return resolver.state

        state = asyncio.run(scenario())
        assert state.identity == "id-1"
        assert state.profile.role == "user"
        assert state.profile.display_name == "Ben"

    def test_sign_up_rejects_unknown_role_before_creating_identity(self):
        store, _, resolver = make()

        async def scenario():
            async with resolver:
                with pytest.raises(InvalidRoleError):
                    await resolver.sign_up("x@example.com", "secret123", role="superuser")

        asyncio.run(scenario())
        assert "sign_up" not in store.calls

    def test_sign_in_with_bad_credentials_raises(self):
        store, _, resolver = make()

        async def scenario():
            async with resolver:
                with pytest.raises(AuthError) as exc_info:
                    await resolver.sign_in("nobody@example.com", "wrong-password")
                assert exc_info.value.code == AuthError.INVALID_CREDENTIALS
                assert resolver.state.identity is None

        asyncio.run(scenario())

    def test_sign_out_clears_state(self):
        store, profiles, resolver = make(session_for("alice"))
        profiles.add("alice", "user")

        async def scenario():
            async with resolver:
                await resolver.sign_out()
                return resolver.state

        state = asyncio.run(scenario())
        assert state.identity is None
        assert state.profile is None
        assert state.loading is False

    def test_operations_require_start(self):
        _, _, resolver = make()
        with pytest.raises(RuntimeError):
            asyncio.run(resolver.sign_in("a@example.com", "secret123"))


class TestPartialSignUp:
    def test_failed_profile_insert_leaves_identity_without_role(self, caplog):
        store, profiles, resolver = make()
        profiles.fail_insert = True

        async def scenario():
            async with resolver:
                with caplog.at_level(logging.ERROR):
                    outcome = await resolver.sign_up("dee@example.com", "secret123", role="admin")
                return outcome, resolver.state

        outcome, state = asyncio.run(scenario())
        assert outcome.profile_created is False
        assert outcome.role == "admin"
        assert state.identity == outcome.identity
        assert state.profile is None
        assert "reconciliation required" in caplog.text

    def test_reconcile_creates_profile_from_sign_up_metadata(self):
        store, profiles, resolver = make()
        profiles.fail_insert = True

        async def scenario():
            async with resolver:
                await resolver.sign_up("dee@example.com", "secret123", role="admin", display_name="Dee")
                profiles.fail_insert = False
                profile = await resolver.reconcile_profile()
                return profile, resolver.state

        profile, state = asyncio.run(scenario())
        assert profile.role == "admin"
        assert profile.display_name == "Dee"
        assert state.profile == profile

    def test_reconcile_is_idempotent(self):
        store, profiles, resolver = make(session_for("alice"))
        existing = profiles.add("alice", "user")

        async def scenario():
            async with resolver:
                return await resolver.reconcile_profile()

        assert asyncio.run(scenario()) == existing
        assert len(profiles.rows) == 1

    def test_reconcile_requires_a_session(self):
        _, _, resolver = make()

        async def scenario():
            async with resolver:
                with pytest.raises(AuthError) as exc_info:
                    await resolver.reconcile_profile()
                assert exc_info.value.code == AuthError.NOT_SIGNED_IN

        asyncio.run(scenario())

    def test_admin_with_failed_lookup_is_redirected_not_raised(self):
        store, profiles, resolver = make()
        guard = RouteGuard("admin")

        async def scenario():
            async with resolver:
                outcome = await resolver.sign_up("eve@example.com", "secret123", role="admin")
            profiles.failing.add(outcome.identity)
            store.current = None
            fresh = RoleResolver(store, profiles, ROLES)
            async with fresh:
                await fresh.sign_in("eve@example.com", "secret123")
                return fresh.state

        state = asyncio.run(scenario())
        assert state.identity is not None
        decision = guard.evaluate(state)
        assert decision.state is GuardState.FORBIDDEN
        assert decision.redirect_to == "/"
