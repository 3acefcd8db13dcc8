"""Protocol definitions for transport and classifier collaborators."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from .models import ClassificationResult

NotifyCallback = Callable[[bytes], None]
DisconnectCallback = Callable[[], None]
ResultCallback = Callable[
    [Optional[BaseException], Sequence[ClassificationResult]], Awaitable[Any]
]


class UartSession(Protocol):
    """An established GATT session with a UART peripheral."""

    async def get_service(self, uuid: str) -> Any:
        """Look up a primary service by UUID."""
        ...

    async def get_characteristic(self, service: Any, uuid: str) -> Any:
        """Look up a characteristic of ``service`` by UUID."""
        ...

    async def start_notify(self, characteristic: Any, callback: NotifyCallback) -> None:
        """Subscribe ``callback`` to notifications from ``characteristic``."""
        ...

    async def write(self, characteristic: Any, data: bytes) -> None:
        """Write ``data`` to ``characteristic``."""
        ...

    async def close(self) -> None:
        """Tear down the session."""
        ...


class UartTransport(Protocol):
    """Minimal contract for device selection and session negotiation."""

    async def request_device(self, name_prefix: str) -> Any:
        """Select a peripheral advertising a name starting with ``name_prefix``."""
        ...

    async def open_session(
        self, device: Any, on_disconnect: DisconnectCallback
    ) -> UartSession:
        """Connect to ``device``; ``on_disconnect`` fires on transport-initiated drops."""
        ...


class ClassifierFeed(Protocol):
    """A continuous source of ranked classification results."""

    async def classify(self, callback: ResultCallback) -> None:
        """Deliver results to ``callback`` until the source is exhausted."""
        ...
