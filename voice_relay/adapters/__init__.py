"""Adapter modules for external integrations."""

from .ble import BleakUartSession, BleakUartTransport, BleTransportError, DeviceNotFoundError
from .feed import (
    DispatchResult,
    JsonLinesFeed,
    ResultDispatcher,
    build_feed,
    parse_payload,
)

__all__ = [
    "BleakUartSession",
    "BleakUartTransport",
    "BleTransportError",
    "DeviceNotFoundError",
    "DispatchResult",
    "JsonLinesFeed",
    "ResultDispatcher",
    "build_feed",
    "parse_payload",
]
