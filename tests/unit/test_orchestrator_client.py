"""Unit tests for the orchestrator control client."""

import asyncio
import json

import httpx
import pytest

from gekko.exceptions import DecodeError, TransportError, ValidationError
from gekko.orchestrator.client import OrchestratorClient, OrchestratorClientConfig
from gekko.session.store import STALE_STATE_LABEL
from tests.factories import OrchestratorStateFactory, at, state_payload
from tests.helpers.http import envelope, json_client


def respond(state, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=envelope(state_payload(state)))


def make_client(handler, store, **config) -> OrchestratorClient:
    return OrchestratorClient(
        OrchestratorClientConfig(base_url="http://trading.test/", **config),
        store=store,
        http_client=json_client(handler),
    )


class TestCommands:
    """Test request shape for every endpoint."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("call", "path", "body"),
        [
            (lambda c: c.engage(), "/api/orchestrator/engage", {}),
            (
                lambda c: c.wind_down(300),
                "/api/orchestrator/wind-down",
                {"command": "wind_down", "duration_seconds": 300},
            ),
            (
                lambda c: c.emergency_halt("breaker"),
                "/api/orchestrator/emergency-halt",
                {"command": "emergency_halt", "reason": "breaker"},
            ),
            (
                lambda c: c.set_risk_throttle(0.25),
                "/api/orchestrator/risk-throttle",
                {"command": "set_risk_throttle", "value": 0.25},
            ),
        ],
    )
    async def test_posts_command(self, store, call, path, body):
        requests: list[httpx.Request] = []
        returned = OrchestratorStateFactory(live=True, last_updated=at(1))

        def handler(request):
            requests.append(request)
            return respond(returned)

        client = make_client(handler, store)
        state = await call(client)

        (request,) = requests
        assert request.method == "POST"
        assert request.url.path == path
        assert json.loads(request.content) == body
        assert state == returned
        assert store.orchestrator_state == returned

    @pytest.mark.asyncio()
    async def test_get_state(self, store):
        requests: list[httpx.Request] = []
        returned = OrchestratorStateFactory(halted=True)

        def handler(request):
            requests.append(request)
            return respond(returned)

        state = await make_client(handler, store).get_state()

        assert requests[0].method == "GET"
        assert str(requests[0].url) == "http://trading.test/api/orchestrator/state"
        assert requests[0].content == b""
        assert state.mode == "halted"

    @pytest.mark.asyncio()
    async def test_engage_twice_is_two_independent_requests(self, store):
        count = 0

        def handler(request):
            nonlocal count
            count += 1
            return respond(OrchestratorStateFactory(live=True, last_updated=at(count)))

        client = make_client(handler, store)
        await client.engage()
        await client.engage()

        assert count == 2
        assert store.orchestrator_state.last_updated == at(2)


class TestValidation:
    """Invalid arguments never reach the network."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.wind_down(-1),
            lambda c: c.wind_down(2.5),
            lambda c: c.emergency_halt(""),
            lambda c: c.emergency_halt("   "),
            lambda c: c.set_risk_throttle(1.5),
            lambda c: c.set_risk_throttle(-0.1),
            lambda c: c.set_risk_throttle(float("nan")),
        ],
    )
    async def test_rejected_before_io(self, store, call):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return respond(OrchestratorStateFactory())

        with pytest.raises(ValidationError):
            await call(make_client(handler, store))

        assert requests == []
        assert store.version == 0


class TestFailures:
    """Failures are classified and never touch the held state."""

    @pytest.fixture
    def held(self, store):
        state = OrchestratorStateFactory(live=True)
        store.apply_orchestrator_state(state)
        return state

    @pytest.mark.asyncio()
    async def test_non_2xx_is_transport_error(self, store, held):
        client = make_client(lambda request: httpx.Response(503, text="maintenance"), store)

        with pytest.raises(TransportError) as exc_info:
            await client.emergency_halt("breaker")

        assert exc_info.value.status_code == 503
        assert store.orchestrator_state == held
        diagnostic = store.diagnostics[-1]
        assert diagnostic.label == "orchestrator.emergency_halt.failed"
        assert diagnostic.severity == "critical"

    @pytest.mark.asyncio()
    async def test_timeout_is_transport_error(self, store, held):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(TransportError, match="timed out"):
            await make_client(handler, store).engage()

        assert store.orchestrator_state == held
        assert store.diagnostics[-1].severity == "warning"

    @pytest.mark.asyncio()
    async def test_connect_error_is_transport_error(self, store, held):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await make_client(handler, store).get_state()
        assert store.diagnostics[-1].label == "orchestrator.get_state.failed"

    @pytest.mark.asyncio()
    async def test_non_json_body_is_decode_error(self, store, held):
        client = make_client(lambda request: httpx.Response(200, text="<html>ok</html>"), store)

        with pytest.raises(DecodeError) as exc_info:
            await client.engage()

        assert "<html>" in exc_info.value.detail
        assert store.orchestrator_state == held

    @pytest.mark.asyncio()
    async def test_state_violating_invariants_is_decode_error(self, store, held):
        bad = {**state_payload(held), "emergency_halt_active": True, "last_updated": at(10).isoformat()}
        client = make_client(lambda request: httpx.Response(200, json=envelope(bad)), store)

        with pytest.raises(DecodeError):
            await client.emergency_halt("breaker")
        assert store.orchestrator_state == held

    @pytest.mark.asyncio()
    async def test_missing_timestamp_is_decode_error(self, store, held):
        client = make_client(lambda request: httpx.Response(200, json=envelope({"is_live": False})), store)
        with pytest.raises(DecodeError):
            await client.wind_down(60)

    @pytest.mark.asyncio()
    async def test_envelope_without_data_is_decode_error(self, store, held):
        client = make_client(lambda request: httpx.Response(200, json=envelope(None)), store)
        with pytest.raises(DecodeError):
            await client.engage()

    @pytest.mark.asyncio()
    async def test_unsuccessful_envelope_is_transport_error(self, store, held):
        body = envelope(None, success=False, error="market closed")
        client = make_client(lambda request: httpx.Response(200, json=body), store)

        with pytest.raises(TransportError, match="market closed"):
            await client.engage()
        assert store.orchestrator_state == held

    @pytest.mark.asyncio()
    async def test_no_optimistic_update_while_in_flight(self, store, held):
        seen_during_request = []

        async def handler(request):
            seen_during_request.append(store.orchestrator_state)
            return respond(OrchestratorStateFactory(halted=True, last_updated=at(5)))

        await make_client(handler, store).emergency_halt("breaker")

        assert seen_during_request == [held]
        assert store.orchestrator_state.mode == "halted"


class TestStaleResponses:
    """The stale-write guard settles out-of-order responses."""

    @pytest.mark.asyncio()
    async def test_older_response_discarded(self, store):
        newer = OrchestratorStateFactory(halted=True, last_updated=at(10))
        store.apply_orchestrator_state(newer)
        older = OrchestratorStateFactory(live=True, last_updated=at(5))

        state = await make_client(lambda request: respond(older), store).engage()

        assert state == newer
        assert store.orchestrator_state == newer
        assert store.diagnostics[-1].label == STALE_STATE_LABEL

    @pytest.mark.asyncio()
    async def test_equal_timestamp_applied(self, store):
        store.apply_orchestrator_state(OrchestratorStateFactory(last_updated=at(3)))
        same_time = OrchestratorStateFactory(live=True, last_updated=at(3))

        state = await make_client(lambda request: respond(same_time), store).engage()

        assert state == same_time
        assert store.orchestrator_state.is_live is True

    @pytest.mark.asyncio()
    async def test_halt_then_engage_delivered_out_of_order(self, store):
        halt_applied = asyncio.Event()

        async def handler(request):
            if request.url.path.endswith("/emergency-halt"):
                return respond(OrchestratorStateFactory(halted=True, last_updated=at(10)))
            # engage was processed first server-side but its response arrives last
            await halt_applied.wait()
            return respond(OrchestratorStateFactory(live=True, last_updated=at(5)))

        client = make_client(handler, store)
        halt_task = asyncio.create_task(client.emergency_halt("breaker"))
        engage_task = asyncio.create_task(client.engage())

        halted = await halt_task
        halt_applied.set()
        engaged = await engage_task

        assert halted.mode == "halted"
        assert engaged.mode == "halted"
        assert store.orchestrator_state.emergency_halt_active is True
        assert store.orchestrator_state.emergency_halt_reason == "breaker"
        assert [d.label for d in store.diagnostics] == [STALE_STATE_LABEL]

    @pytest.mark.asyncio()
    async def test_poll_racing_a_command(self, store):
        async def handler(request):
            if request.method == "GET":
                await asyncio.sleep(0.01)
                return respond(OrchestratorStateFactory(last_updated=at(1)))
            return respond(OrchestratorStateFactory(last_updated=at(2), risk_throttle=0.5))

        client = make_client(handler, store)
        await asyncio.gather(client.get_state(), client.set_risk_throttle(0.5))

        assert store.orchestrator_state.risk_throttle == 0.5


class TestCommandConcurrency:
    """Test optional command serialization."""

    @staticmethod
    def counting_handler(peak: list[int]):
        in_flight = 0
        stamp = 0

        async def handler(request):
            nonlocal in_flight, stamp
            in_flight += 1
            peak[0] = max(peak[0], in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            stamp += 1
            return respond(OrchestratorStateFactory(live=True, last_updated=at(stamp)))

        return handler

    @pytest.mark.asyncio()
    async def test_concurrent_by_default(self, store):
        peak = [0]
        client = make_client(self.counting_handler(peak), store)
        await asyncio.gather(client.engage(), client.set_risk_throttle(0.5))
        assert peak[0] == 2

    @pytest.mark.asyncio()
    async def test_serialized_when_configured(self, store):
        peak = [0]
        client = make_client(self.counting_handler(peak), store, serialize_commands=True)
        await asyncio.gather(client.engage(), client.set_risk_throttle(0.5), client.wind_down(30))
        assert peak[0] == 1


class TestConfig:
    """Test configuration and lifecycle."""

    def test_from_settings(self, mock_settings):
        config = OrchestratorClientConfig.from_settings()
        assert config.base_url == "http://trading.test"
        assert config.timeout == 10.0
        assert config.serialize_commands is False

    def test_trailing_slash_stripped(self, store):
        client = make_client(lambda request: respond(OrchestratorStateFactory()), store)
        assert client.base_url == "http://trading.test"

    @pytest.mark.asyncio()
    async def test_defaults_to_process_store(self, mock_settings):
        from gekko.session.store import get_session_store

        client = OrchestratorClient()
        try:
            assert client.store is get_session_store()
        finally:
            await client.close()
        assert client._http.is_closed

    @pytest.mark.asyncio()
    async def test_does_not_close_injected_client(self, store):
        http = json_client(lambda request: respond(OrchestratorStateFactory()))
        client = OrchestratorClient(
            OrchestratorClientConfig(base_url="http://trading.test"),
            store=store,
            http_client=http,
        )
        await client.close()
        assert not http.is_closed
        await http.aclose()
