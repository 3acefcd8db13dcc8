from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

import pytest

from voice_relay import constants


class FakeSession:
    """In-memory UART session recording writes and notify subscriptions."""

    def __init__(
        self,
        *,
        fail_on: Optional[str] = None,
        write_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ) -> None:
        self.fail_on = fail_on
        self.write_error = write_error
        self.close_error = close_error
        self.writes: List[tuple[Any, bytes]] = []
        self.close_calls = 0
        self.notify_callback: Optional[Callable[[bytes], None]] = None

    def _maybe_fail(self, step: str) -> None:
        if self.fail_on == step:
            raise ConnectionError(f"simulated {step} failure")

    async def get_service(self, uuid: str) -> Any:
        self._maybe_fail("get_service")
        return ("service", uuid)

    async def get_characteristic(self, service: Any, uuid: str) -> Any:
        if uuid == constants.UART_TX_CHARACTERISTIC_UUID:
            self._maybe_fail("get_tx_characteristic")
        elif uuid == constants.UART_RX_CHARACTERISTIC_UUID:
            self._maybe_fail("get_rx_characteristic")
        return ("characteristic", uuid)

    async def start_notify(self, characteristic: Any, callback: Callable[[bytes], None]) -> None:
        self._maybe_fail("start_notify")
        self.notify_callback = callback

    async def write(self, characteristic: Any, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((characteristic, data))

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeTransport:
    """Transport double; ``fail_on`` names the negotiation step that raises."""

    def __init__(
        self,
        *,
        fail_on: Optional[str] = None,
        write_error: Optional[Exception] = None,
    ) -> None:
        self.fail_on = fail_on
        self.write_error = write_error
        self.requested_prefixes: List[str] = []
        self.sessions: List[FakeSession] = []
        self.disconnect_callbacks: List[Callable[[], None]] = []

    @property
    def session(self) -> FakeSession:
        return self.sessions[-1]

    @property
    def writes(self) -> List[bytes]:
        return [data for session in self.sessions for _, data in session.writes]

    async def request_device(self, name_prefix: str) -> Any:
        self.requested_prefixes.append(name_prefix)
        if self.fail_on == "request_device":
            raise ConnectionError("no device selected")
        return {"name": f"{name_prefix} [zuvip]"}

    async def open_session(self, device: Any, on_disconnect: Callable[[], None]) -> FakeSession:
        if self.fail_on == "open_session":
            raise ConnectionError("GATT connect failed")
        session = FakeSession(fail_on=self.fail_on, write_error=self.write_error)
        self.sessions.append(session)
        self.disconnect_callbacks.append(on_disconnect)
        return session

    def drop(self) -> None:
        self.disconnect_callbacks[-1]()


class DroppingTransport(FakeTransport):
    """Reports a peripheral drop inside open_session, then waits to be released."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.dropped = asyncio.Event()

    async def open_session(self, device, on_disconnect):
        session = await super().open_session(device, on_disconnect)
        if len(self.sessions) == 1:
            on_disconnect()
            self.dropped.set()
            await self.release.wait()
        return session


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def transport_factory() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def dropping_transport() -> DroppingTransport:
    return DroppingTransport()
