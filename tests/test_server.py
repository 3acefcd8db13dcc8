import pytest
from aiohttp.test_utils import TestClient, TestServer

from voice_relay.health import HealthReporter
from voice_relay.listener import ClassificationListener
from voice_relay.relay import CommandRelay
from voice_relay.server import RelayServer


def _build_server(transport, *, threshold: float = 0.95):
    relay = CommandRelay(transport)
    listener = ClassificationListener(relay)
    reporter = HealthReporter()
    server = RelayServer(
        relay,
        listener,
        reporter,
        host="127.0.0.1",
        port=0,
        probability_threshold=threshold,
    )
    return server, relay, reporter


@pytest.mark.asyncio
async def test_connect_and_disconnect_routes(transport):
    server, relay, _ = _build_server(transport)

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post("/connect")
        assert response.status == 200
        assert (await response.json())["state"] == "connected"

        response = await client.post("/connect")
        assert response.status == 409

        response = await client.post("/disconnect")
        assert response.status == 200
        assert (await response.json())["state"] == "disconnected"

        response = await client.post("/disconnect")
        assert response.status == 200

    assert transport.session.close_calls == 1


@pytest.mark.asyncio
async def test_connect_failure_returns_bad_gateway(transport_factory):
    transport = transport_factory(fail_on="get_service")
    server, relay, _ = _build_server(transport)

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post("/connect")
        payload = await response.json()

    assert response.status == 502
    assert payload["state"] == "disconnected"
    assert payload["step"] == "get_service"


@pytest.mark.asyncio
async def test_results_route_relays_command_and_updates_status(transport):
    server, relay, _ = _build_server(transport)
    await relay.connect()

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post(
            "/results", json=[{"label": "left", "confidence": 0.97}]
        )
        payload = await response.json()
        assert response.status == 200
        assert payload["delivered"] is True
        assert payload["command"] == "LEFT"
        assert payload["send"] == "sent"

        status = await (await client.get("/status")).json()

    assert transport.writes == [b"3\n"]
    assert status["state"] == "connected"
    assert status["labelText"] == "Label: left"
    assert status["confidenceText"] == "Confidence: 0.97"


@pytest.mark.asyncio
async def test_results_below_threshold_are_not_delivered(transport):
    server, relay, _ = _build_server(transport)
    await relay.connect()

    async with TestClient(TestServer(server.build_app())) as client:
        payload = await (
            await client.post("/results", json={"label": "go", "confidence": 0.4})
        ).json()

    assert payload["delivered"] is False
    assert payload["label"] is None
    assert transport.writes == []


@pytest.mark.asyncio
async def test_results_route_rejects_non_json(transport):
    server, _, _ = _build_server(transport)

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post("/results", data=b"left")

    assert response.status == 400


@pytest.mark.asyncio
async def test_healthz_reflects_reporter(transport):
    server, _, reporter = _build_server(transport)
    await reporter.update("ble", True, "disconnected")

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.get("/healthz")
        assert response.status == 200

        await reporter.update("classifier", False, "feed closed")
        response = await client.get("/healthz")
        assert response.status == 503
        payload = await response.json()

    assert payload["status"] == "degraded"


@pytest.mark.asyncio
async def test_server_start_and_stop(transport, unused_tcp_port):
    relay = CommandRelay(transport)
    server = RelayServer(
        relay,
        ClassificationListener(relay),
        HealthReporter(),
        host="127.0.0.1",
        port=unused_tcp_port,
        probability_threshold=0.95,
    )
    await server.start()
    await server.stop()
    await server.stop()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{"error": "microphone unavailable"}, [{"label": "left"}], ["left"]],
)
async def test_rejected_results_are_not_reported_as_delivered(transport, body):
    server, relay, _ = _build_server(transport)
    await relay.connect()

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post("/results", json=body)
        payload = await response.json()

    assert response.status == 200
    assert payload["delivered"] is False
    assert payload["error"]
    assert "command" not in payload
    assert transport.writes == []


@pytest.mark.asyncio
async def test_results_route_rejects_non_utf8_body(transport):
    server, _, _ = _build_server(transport)

    async with TestClient(TestServer(server.build_app())) as client:
        response = await client.post(
            "/results",
            data=b"\xff\xfe\x00",
            headers={"Content-Type": "application/json"},
        )

    assert response.status == 400
