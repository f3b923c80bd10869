"""Tests for the request orchestrator and the supervised lifecycle."""

import asyncio

import pytest

from conftest import VALID_NUMBER, wait_until
from core.domain.models import Phase, SessionOutcome
from core.errors import InvalidNumberError, MissingNumberError, PairingCodeError, ServiceUnavailableError
from core.services.controller import ConnectionController, LifecycleDeps, SessionSupervisor
from core.services.pairing import PairingService
from fakes import FakeClient, StaticProvider

USER_ID = f"{VALID_NUMBER}@s.whatsapp.net"
OTHER_NUMBER = "447911123456"


def _session_dirs(settings):
    if not settings.sessions_dir.exists():
        return []
    return sorted(p.name for p in settings.sessions_dir.iterdir())


class TestBeginPairingValidation:
    @pytest.mark.parametrize("raw", ["abc", "12", "1650253"])
    async def test_invalid_numbers_allocate_nothing(self, service, client, settings, raw):
        with pytest.raises(InvalidNumberError):
            await service.begin_pairing(raw)

        assert _session_dirs(settings) == []
        assert client.connections == []

    async def test_missing_number(self, service, client, settings):
        with pytest.raises(MissingNumberError):
            await service.begin_pairing(None)

        assert _session_dirs(settings) == []
        assert client.connections == []


class TestBeginPairing:
    async def test_returns_formatted_code(self, service, client):
        code = await service.begin_pairing("+1 650 253 0000")

        assert code == "ABCD-EFGH"
        assert client.connections[0].code_requests == [VALID_NUMBER]
        await service.aclose()

    async def test_subscribes_before_requesting_code(self, service, client):
        await service.begin_pairing(VALID_NUMBER)

        conn = client.connections[0]
        assert conn.events.listener_count("connection.update") == 1
        assert conn.events.listener_count("creds.update") == 1
        await service.aclose()

    async def test_same_number_twice_keeps_one_session(self, service, client, settings):
        await service.begin_pairing(VALID_NUMBER)
        await service.begin_pairing(VALID_NUMBER)

        assert _session_dirs(settings) == [f"session-{VALID_NUMBER}"]
        assert client.connections[0].closed
        assert client.connections[0].events.listener_count("connection.update") == 0
        await service.aclose()

    async def test_pairing_code_failure_is_service_unavailable(self, settings, store, providers):
        client = FakeClient(fail_code=True)
        service = PairingService(settings=settings, client=client, store=store, providers=providers)

        with pytest.raises(PairingCodeError) as info:
            await service.begin_pairing(VALID_NUMBER)

        assert info.value.http_status == 503
        assert await service.wait_finished(VALID_NUMBER) is SessionOutcome.PAIRING_FAILED
        assert client.connections[0].closed
        assert client.connections[0].code_requests == [VALID_NUMBER]
        # Left in place for the next attempt to reclaim.
        assert _session_dirs(settings) == [f"session-{VALID_NUMBER}"]

    async def test_timeout_without_code(self, settings, store, providers):
        class SilentClient(FakeClient):
            def connect(self, auth_state, options):
                conn = super().connect(auth_state, options)
                auth_state.creds["registered"] = True
                return conn

        settings = settings.model_copy(update={"pairing_timeout_seconds": 0.05})
        service = PairingService(
            settings=settings, client=SilentClient(), store=store, providers=providers
        )

        with pytest.raises(ServiceUnavailableError):
            await service.begin_pairing(VALID_NUMBER)
        await service.aclose()


class TestLifecycle:
    async def test_end_to_end_export(self, service, client, store, settings, providers):
        code = await service.begin_pairing(VALID_NUMBER)
        assert code == "ABCD-EFGH"

        conn = client.connections[0]
        conn.save_creds({"registered": True, "me": {"id": f"{VALID_NUMBER}:12@s.whatsapp.net"}})
        handle = service.supervisor(VALID_NUMBER).handle
        assert store.bundle_exists(handle)

        conn.open()
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.EXPORTED
        assert [len(p.calls) for p in providers] == [1, 1, 0]
        assert [user for user, _ in conn.sent] == [USER_ID, USER_ID]
        assert "https://files.example/creds.json" in conn.sent[0][1]["text"]
        assert conn.sent[1][1]["text"] == "SESSION_URL=https://files.example/creds.json"
        assert conn.closed
        assert not store.exists(handle)
        assert len(client.connections) == 1

    async def test_logged_out_is_terminal_and_idempotent(self, service, client, store):
        await service.begin_pairing(VALID_NUMBER)
        supervisor = service.supervisor(VALID_NUMBER)
        conn = client.connections[0]

        conn.close_with(401)
        conn.close_with(401)
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.LOGGED_OUT
        assert len(client.connections) == 1
        assert len(supervisor.controllers) == 1
        assert supervisor.controllers[0].state.phase is Phase.CLOSED
        assert supervisor.controllers[0].state.reason == 401
        assert not store.exists(supervisor.handle)

    async def test_transient_close_restarts_once_with_same_session(self, service, client, store, providers):
        await service.begin_pairing(VALID_NUMBER)
        supervisor = service.supervisor(VALID_NUMBER)
        first = client.connections[0]

        first.close_with(408)
        await wait_until(lambda: len(client.connections) == 2)
        second = client.connections[1]

        assert len(supervisor.controllers) == 2
        assert supervisor.controllers[0].disposed
        assert first.events.listener_count("connection.update") == 0
        assert second.code_requests == []
        assert store.exists(supervisor.handle)

        # Old subscriptions are inert: this open must not export anything.
        first.open()
        second.save_creds({"registered": True})
        second.open()
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.EXPORTED
        assert first.sent == []
        assert len(second.sent) == 2
        assert len(providers[1].calls) == 1
        assert len(client.connections) == 2
        assert not store.exists(supervisor.handle)

    async def test_restart_reuses_persisted_credentials(self, service, client):
        await service.begin_pairing(VALID_NUMBER)
        first = client.connections[0]

        first.save_creds({"registered": True})
        first.close_with(515)
        await wait_until(lambda: len(client.connections) == 2)

        assert client.connections[1].registered
        assert client.connections[1].auth_state.creds == {"registered": True}
        await service.aclose()

    async def test_restart_cap(self, settings, store, providers):
        settings = settings.model_copy(update={"max_consecutive_restarts": 2})
        client = FakeClient()
        service = PairingService(settings=settings, client=client, store=store, providers=providers)
        await service.begin_pairing(VALID_NUMBER)
        supervisor = service.supervisor(VALID_NUMBER)

        for expected in (1, 2, 3):
            await wait_until(lambda: len(client.connections) == expected)
            client.connections[-1].close_with(500)

        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.RESTARTS_EXHAUSTED
        assert len(client.connections) == 3
        assert not store.exists(supervisor.handle)

    async def test_upload_failure_sends_notice(self, settings, store, client):
        providers = [StaticProvider("a"), StaticProvider("b")]
        service = PairingService(settings=settings, client=client, store=store, providers=providers)
        await service.begin_pairing(VALID_NUMBER)
        conn = client.connections[0]

        conn.save_creds({"registered": True})
        conn.open()
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.EXPORT_FAILED
        assert len(conn.sent) == 1
        assert "FAILED" in conn.sent[0][1]["text"]
        assert conn.closed
        assert not store.exists(service.supervisor(VALID_NUMBER).handle)

    async def test_missing_bundle_skips_upload(self, service, client, providers):
        await service.begin_pairing(VALID_NUMBER)
        conn = client.connections[0]

        conn.open()
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.EXPORT_FAILED
        assert all(p.calls == [] for p in providers)
        assert len(conn.sent) == 1

    async def test_notification_failure_is_not_fatal(self, settings, store, providers):
        client = FakeClient(fail_send=True)
        service = PairingService(settings=settings, client=client, store=store, providers=providers)
        await service.begin_pairing(VALID_NUMBER)
        conn = client.connections[0]

        conn.save_creds({"registered": True})
        conn.open()
        outcome = await service.wait_finished(VALID_NUMBER)

        assert outcome is SessionOutcome.EXPORTED
        assert conn.closed
        assert not store.exists(service.supervisor(VALID_NUMBER).handle)

    async def test_unserializable_creds_update_is_dropped(self, service, client, store):
        await service.begin_pairing(VALID_NUMBER)
        conn = client.connections[0]
        handle = service.supervisor(VALID_NUMBER).handle
        circular: dict = {}
        circular["self"] = circular

        conn.save_creds(circular)
        assert not store.bundle_exists(handle)

        conn.save_creds({"registered": True})
        assert store.bundle_exists(handle)
        await service.aclose()


class TestSupervisorBackoff:
    async def test_delays_double_until_the_ceiling(self, settings, client, store, providers):
        tuned = settings.model_copy(
            update={"restart_backoff_seconds": 1.0, "restart_backoff_max_seconds": 3.0}
        )
        deps = LifecycleDeps(settings=tuned, client=client, store=store, providers=providers)
        supervisor = SessionSupervisor(handle=store.create(VALID_NUMBER), number=VALID_NUMBER, deps=deps)

        assert [supervisor.backoff(n) for n in (1, 2, 3, 4, 10)] == [1.0, 2.0, 3.0, 3.0, 3.0]

    async def test_default_sequence(self, settings, client, store, providers):
        tuned = settings.model_copy(
            update={"restart_backoff_seconds": 1.0, "restart_backoff_max_seconds": 30.0}
        )
        deps = LifecycleDeps(settings=tuned, client=client, store=store, providers=providers)
        supervisor = SessionSupervisor(handle=store.create(VALID_NUMBER), number=VALID_NUMBER, deps=deps)

        assert [supervisor.backoff(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]
        assert supervisor.backoff(20) == 30.0


class TestConnectionController:
    async def test_effects_before_run_raise(self, settings, client, store, providers):
        deps = LifecycleDeps(settings=settings, client=client, store=store, providers=providers)
        pairing = asyncio.get_running_loop().create_future()
        controller = ConnectionController(
            handle=store.create(VALID_NUMBER), number=VALID_NUMBER, deps=deps, pairing=pairing
        )

        with pytest.raises(RuntimeError, match="not started"):
            await controller._request_pairing_code()
        assert not pairing.done()


def _live_session_tasks():
    return [
        task
        for task in asyncio.all_tasks()
        if task.get_name().startswith("pairlink-session-") and not task.done()
    ]


class TestConcurrentSessions:
    async def test_overlapping_requests_for_one_number_leave_one_session(self, service, client, settings):
        await service.begin_pairing(VALID_NUMBER)

        second = asyncio.create_task(service.begin_pairing(VALID_NUMBER))
        await asyncio.sleep(0)
        third = asyncio.create_task(service.begin_pairing(VALID_NUMBER))
        results = await asyncio.gather(second, third, return_exceptions=True)

        assert results[1] == "ABCD-EFGH"
        assert len(_live_session_tasks()) == 1
        subscribed = [c for c in client.connections if c.events.listener_count("connection.update")]
        assert len(subscribed) == 1
        assert subscribed[0] is service.supervisor(VALID_NUMBER).current.connection
        assert _session_dirs(settings) == [f"session-{VALID_NUMBER}"]

        await service.aclose()
        assert _live_session_tasks() == []

    async def test_different_numbers_are_independent(self, service, client, store, settings):
        codes = await asyncio.gather(
            service.begin_pairing(VALID_NUMBER),
            service.begin_pairing(OTHER_NUMBER),
        )

        assert codes == ["ABCD-EFGH", "ABCD-EFGH"]
        assert _session_dirs(settings) == sorted(
            [f"session-{VALID_NUMBER}", f"session-{OTHER_NUMBER}"]
        )
        by_number = {conn.code_requests[0]: conn for conn in client.connections}
        assert set(by_number) == {VALID_NUMBER, OTHER_NUMBER}
        first, other = by_number[VALID_NUMBER], by_number[OTHER_NUMBER]

        first.save_creds({"registered": True})
        first.open()
        assert await service.wait_finished(VALID_NUMBER) is SessionOutcome.EXPORTED

        assert [user for user, _ in first.sent] == [USER_ID, USER_ID]
        assert other.sent == []
        assert not other.closed
        assert other.events.listener_count("connection.update") == 1
        assert store.exists(service.supervisor(OTHER_NUMBER).handle)

        other.close_with(401)
        assert await service.wait_finished(OTHER_NUMBER) is SessionOutcome.LOGGED_OUT
        assert not store.exists(service.supervisor(OTHER_NUMBER).handle)
