"""Operator HTTP surface for the relay.

Routes:

- ``POST /connect`` and ``POST /disconnect`` drive the peripheral link.
- ``GET /status`` exposes the relay state and the display fields.
- ``POST /results`` ingests classifier results (for a browser-hosted model).
- ``GET /healthz`` serves the health snapshot.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Optional

from aiohttp import web

from .adapters.feed import ResultDispatcher
from .health import HealthReporter
from .listener import ClassificationListener, ListenerOutcome
from .relay import CommandRelay, RelayBusyError, TransportNegotiationError

LOGGER = logging.getLogger(__name__)


class RelayServer:
    """Minimal HTTP server exposing the operator actions and display."""

    def __init__(
        self,
        relay: CommandRelay,
        listener: ClassificationListener,
        reporter: HealthReporter,
        *,
        host: str,
        port: int,
        probability_threshold: float,
    ) -> None:
        self._relay = relay
        self._listener = listener
        self._reporter = reporter
        self._host = host
        self._port = port
        self._dispatcher = ResultDispatcher(
            listener.on_result, probability_threshold=probability_threshold
        )
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/connect", self._handle_connect)
        app.router.add_post("/disconnect", self._handle_disconnect)
        app.router.add_get("/status", self._handle_status)
        app.router.add_post("/results", self._handle_results)
        app.router.add_get("/healthz", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("Operator endpoint listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    def _status_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"state": self._relay.state.value}
        payload.update(self._listener.display.as_dict())
        return payload

    async def _handle_connect(self, request: web.Request) -> web.Response:
        try:
            await self._relay.connect()
        except RelayBusyError as exc:
            return web.json_response(
                {"state": self._relay.state.value, "error": str(exc)}, status=409
            )
        except TransportNegotiationError as exc:
            return web.json_response(
                {
                    "state": self._relay.state.value,
                    "error": str(exc),
                    "step": exc.step,
                },
                status=502,
            )
        return web.json_response({"state": self._relay.state.value})

    async def _handle_disconnect(self, request: web.Request) -> web.Response:
        await self._relay.disconnect()
        return web.json_response({"state": self._relay.state.value})

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(self._status_payload())

    async def _handle_results(self, request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            # Invalid JSON or a body that is not UTF-8.
            raise web.HTTPBadRequest(text="request body must be JSON")

        result = await self._dispatcher.dispatch_payload(payload)
        response = self._status_payload()
        response["delivered"] = result.delivered
        if result.error is not None:
            response["error"] = str(result.error)
        outcome = result.outcome
        if isinstance(outcome, ListenerOutcome) and outcome.code is not None:
            response["command"] = outcome.code.name
            response["send"] = outcome.send.value if outcome.send else None
        return web.json_response(response)

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
