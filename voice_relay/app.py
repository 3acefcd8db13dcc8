"""Main application entry-point for voice-relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from .adapters.ble import BleakUartTransport
from .adapters.feed import build_feed
from .config import RelayConfig, load_config
from .core.protocols import ClassifierFeed, UartTransport
from .core.vocabulary import CommandCode
from .health import HealthReporter
from .listener import ClassificationListener, DisplayState
from .logging import configure_logging
from .relay import CommandRelay, RelayState, SendOutcome, TransportNegotiationError
from .server import RelayServer

LOGGER = logging.getLogger(__name__)


class VoiceRelayApp:
    """Owns the relay session and wires the classifier stream into it.

    The controller holds the only references to the relay, the listener and
    its display state. The transport and classifier feed can be injected for
    testing or to use a different BLE backend or result source.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        *,
        transport: Optional[UartTransport] = None,
        feed: Optional[ClassifierFeed] = None,
    ) -> None:
        self._config = config or load_config()
        self._transport: UartTransport = transport or BleakUartTransport(self._config.ble)
        self._feed: Optional[ClassifierFeed] = feed
        self._health = HealthReporter()
        self.display = DisplayState()
        self.relay = CommandRelay(
            self._transport, name_prefix=self._config.ble.name_prefix
        )
        self.listener = ClassificationListener(self.relay, self.display)
        self.relay.register_state_listener(self._on_relay_state)
        self._server: Optional[RelayServer] = None
        self._feed_task: Optional[asyncio.Task[None]] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        """Serve the operator surface and classifier feed until shutdown."""

        self._shutdown_event = asyncio.Event()
        LOGGER.info("voice-relay starting with config: %s", self._config.path)
        await self._start_services()
        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("voice-relay received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[RelayConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("voice-relay received shutdown signal")

    async def send_once(self, code: CommandCode) -> SendOutcome:
        """Connect, send a single command and disconnect.

        Raises:
            TransportNegotiationError: If the peripheral cannot be reached.
        """
        await self.relay.connect()
        try:
            return await self.relay.send(code)
        finally:
            await self.relay.disconnect()

    async def _start_services(self) -> None:
        self._on_relay_state(self.relay.state)

        if self._config.server.enabled:
            server = RelayServer(
                self.relay,
                self.listener,
                self._health,
                host=self._config.server.host,
                port=self._config.server.port,
                probability_threshold=self._config.classifier.probability_threshold,
            )
            try:
                await server.start()
            except OSError as exc:
                LOGGER.error("Failed to start operator endpoint: %s", exc)
                await self._health.update("server", False, str(exc))
            else:
                self._server = server
                await self._health.update("server", True, None)

        if self._feed is None:
            self._feed = build_feed(
                self._config.classifier.source,
                probability_threshold=self._config.classifier.probability_threshold,
            )
        if self._feed is not None:
            self._feed_task = asyncio.create_task(self._run_feed(self._feed))

    async def _run_feed(self, feed: ClassifierFeed) -> None:
        await self._health.update("classifier", True, "streaming")
        try:
            await feed.classify(self.listener.on_result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Classifier feed stopped: %s", exc)
            await self._health.update("classifier", False, str(exc))
        else:
            await self._health.update("classifier", True, "exhausted")

    async def _stop_services(self) -> None:
        if self._feed_task is not None:
            self._feed_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._feed_task
            self._feed_task = None

        if self._server is not None:
            await self._server.stop()
            self._server = None

        await self.relay.disconnect()

    def _on_relay_state(self, state: RelayState) -> None:
        error = self.relay.last_error
        if state == RelayState.DISCONNECTED and isinstance(error, TransportNegotiationError):
            self._health.update_nowait("ble", False, str(error))
            return
        self._health.update_nowait("ble", True, state.value)
