"""Voice command relay for BLE UART peripherals."""

from .version import __version__

__all__ = ["__version__"]
