"""Command relay over a UART-style BLE link.

The relay owns the connection handle to the peripheral. It negotiates the
session on operator request, writes encoded command codes while connected and
silently drops them otherwise.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Set

from . import constants
from .core.protocols import UartSession, UartTransport
from .core.vocabulary import CommandCode

LOGGER = logging.getLogger(__name__)


class RelayError(RuntimeError):
    """Base class for relay failures."""


class ClassifierError(RelayError):
    """Raised or reported when the classifier delivers an error instead of results."""


class TransportNegotiationError(RelayError):
    """Raised when any step of the connect sequence fails."""

    def __init__(self, step: str, cause: Optional[BaseException] = None) -> None:
        detail = f"{step} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
        self.step = step
        self.cause = cause


class WriteError(RelayError):
    """Raised internally when a command payload could not be written."""


class RelayBusyError(RelayError):
    """Raised when connect() is requested while a session is active or pending."""


class RelayState(str, Enum):
    """Current state of the peripheral link."""

    DISCONNECTED = "disconnected"
    """No session; sends are dropped."""

    CONNECTING = "connecting"
    """Negotiation in progress."""

    CONNECTED = "connected"
    """Session established and write endpoint resolved."""


class SendOutcome(str, Enum):
    SENT = "sent"
    DROPPED = "dropped"
    FAILED = "failed"


class NegotiationStep(str, Enum):
    REQUEST_DEVICE = "request_device"
    OPEN_SESSION = "open_session"
    GET_SERVICE = "get_service"
    GET_TX_CHARACTERISTIC = "get_tx_characteristic"
    START_NOTIFY = "start_notify"
    GET_RX_CHARACTERISTIC = "get_rx_characteristic"


@dataclass(slots=True)
class _Connection:
    session: UartSession
    rx_characteristic: Any
    token: object


StateListener = Callable[[RelayState], None]


class CommandRelay:
    """Writes command codes to a connected UART peripheral.

    State transitions:

    - DISCONNECTED -> CONNECTING on :meth:`connect`
    - CONNECTING -> CONNECTED when every negotiation step succeeds
    - CONNECTING -> DISCONNECTED on any negotiation failure
    - CONNECTED -> DISCONNECTED on :meth:`disconnect` or a transport drop

    There is no retry or backoff; reconnecting is always a fresh
    :meth:`connect` call.
    """

    def __init__(
        self,
        transport: UartTransport,
        *,
        name_prefix: str = constants.DEFAULT_DEVICE_NAME_PREFIX,
    ) -> None:
        self._transport = transport
        self._name_prefix = name_prefix
        self._state = RelayState.DISCONNECTED
        self._connection: Optional[_Connection] = None
        self._inbound = bytearray()
        self._last_error: Optional[RelayError] = None
        self._state_listeners: List[StateListener] = []
        self._negotiation_token: Optional[object] = None
        self._dropped_during_negotiation = False
        self._closing: Set[asyncio.Task[None]] = set()

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == RelayState.CONNECTED and self._connection is not None

    @property
    def last_error(self) -> Optional[RelayError]:
        """Most recent negotiation or write error, if any."""
        return self._last_error

    @property
    def last_inbound(self) -> bytes:
        """Latest payload pushed by the peripheral (not interpreted)."""
        return bytes(self._inbound)

    def register_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    async def connect(self) -> None:
        """Negotiate a session with the peripheral.

        Raises:
            RelayBusyError: If a session is already active or being negotiated.
            TransportNegotiationError: If any negotiation step fails. The relay
                is left DISCONNECTED with no retained session.
        """
        if self._state != RelayState.DISCONNECTED:
            raise RelayBusyError(f"relay is {self._state.value}")

        self._set_state(RelayState.CONNECTING)
        token = object()
        self._negotiation_token = token
        self._dropped_during_negotiation = False
        session: Optional[UartSession] = None
        step = NegotiationStep.REQUEST_DEVICE

        try:
            LOGGER.info("Requesting device (name prefix %r)", self._name_prefix)
            device = await self._transport.request_device(self._name_prefix)

            step = NegotiationStep.OPEN_SESSION
            LOGGER.info("Connecting to GATT server")
            session = await self._transport.open_session(
                device, functools.partial(self._handle_transport_disconnect, token)
            )

            step = NegotiationStep.GET_SERVICE
            LOGGER.info("Getting UART service")
            service = await session.get_service(constants.UART_SERVICE_UUID)

            step = NegotiationStep.GET_TX_CHARACTERISTIC
            LOGGER.info("Getting characteristics")
            tx_characteristic = await session.get_characteristic(
                service, constants.UART_TX_CHARACTERISTIC_UUID
            )

            step = NegotiationStep.START_NOTIFY
            await session.start_notify(tx_characteristic, self.on_notify)

            step = NegotiationStep.GET_RX_CHARACTERISTIC
            rx_characteristic = await session.get_characteristic(
                service, constants.UART_RX_CHARACTERISTIC_UUID
            )
        except Exception as exc:
            error = TransportNegotiationError(step.value, exc)
            LOGGER.error("Connection attempt aborted: %s", error)
            if session is not None:
                await self._close_session(session)
            self._end_negotiation()
            self._last_error = error
            self._set_state(RelayState.DISCONNECTED)
            raise error from exc

        # A drop reported while negotiating leaves nothing to keep.
        dropped = self._dropped_during_negotiation
        self._end_negotiation()
        if dropped:
            await self._close_session(session)
            error = TransportNegotiationError(
                NegotiationStep.OPEN_SESSION.value,
                ConnectionError("peripheral disconnected during negotiation"),
            )
            LOGGER.error("Connection attempt aborted: %s", error)
            self._last_error = error
            self._set_state(RelayState.DISCONNECTED)
            raise error

        self._connection = _Connection(
            session=session, rx_characteristic=rx_characteristic, token=token
        )
        self._inbound.clear()
        self._last_error = None
        self._set_state(RelayState.CONNECTED)
        LOGGER.info("Connected to peripheral")

    async def disconnect(self) -> None:
        """Tear down the session; a no-op when not connected."""
        connection = self._connection
        if connection is None or self._state != RelayState.CONNECTED:
            return

        self._connection = None
        self._set_state(RelayState.DISCONNECTED)
        await self._close_session(connection.session)
        LOGGER.info("Disconnected")

    async def send(self, code: CommandCode) -> SendOutcome:
        """Write ``code`` to the peripheral.

        Returns DROPPED without touching the transport when not connected.
        Write failures are logged and returned as FAILED; they are not retried
        and do not change the connection state.
        """
        connection = self._connection
        if connection is None or self._state != RelayState.CONNECTED:
            LOGGER.debug("Not connected; dropping command %s", code.name)
            return SendOutcome.DROPPED

        payload = code.payload
        try:
            await connection.session.write(connection.rx_characteristic, payload)
        except Exception as exc:
            error = WriteError(f"failed to write {code.name} ({payload!r}): {exc}")
            LOGGER.error("%s", error)
            self._last_error = error
            return SendOutcome.FAILED

        LOGGER.debug("Sent %s (%r)", code.name, payload)
        return SendOutcome.SENT

    def on_notify(self, payload: bytes) -> None:
        """Buffer bytes pushed by the peripheral; no protocol is defined for them."""
        self._inbound[:] = payload
        LOGGER.debug("Received %d byte(s) from peripheral", len(payload))

    def _handle_transport_disconnect(self, token: object) -> None:
        if token is self._negotiation_token:
            # connect() aborts once the pending step returns.
            LOGGER.warning("Peripheral dropped the connection during negotiation")
            self._dropped_during_negotiation = True
            return

        connection = self._connection
        if connection is None or connection.token is not token:
            LOGGER.debug("Ignoring disconnect notice from a previous session")
            return

        LOGGER.warning("Peripheral dropped the connection")
        self._connection = None
        self._set_state(RelayState.DISCONNECTED)
        task = asyncio.get_running_loop().create_task(
            self._close_session(connection.session)
        )
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def _end_negotiation(self) -> None:
        self._negotiation_token = None
        self._dropped_during_negotiation = False

    async def _close_session(self, session: UartSession) -> None:
        try:
            await session.close()
        except Exception as exc:
            LOGGER.warning("Error while closing session: %s", exc)

    def _set_state(self, state: RelayState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in self._state_listeners:
            try:
                listener(state)
            except Exception:
                LOGGER.warning("Relay state listener failed", exc_info=True)
