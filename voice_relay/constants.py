"""Constants used across the voice-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "voice-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

# Nordic UART service as exposed by the micro:bit Bluetooth profile.
UART_SERVICE_UUID = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
# Peripheral -> host (notify).
UART_TX_CHARACTERISTIC_UUID = "6e400002-b5a3-f393-e0a9-e50e24dcca9e"
# Host -> peripheral (write).
UART_RX_CHARACTERISTIC_UUID = "6e400003-b5a3-f393-e0a9-e50e24dcca9e"

DEFAULT_DEVICE_NAME_PREFIX = "BBC micro:bit"
DEFAULT_SCAN_TIMEOUT_SECONDS = 10.0

DEFAULT_PROBABILITY_THRESHOLD = 0.95

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8080
