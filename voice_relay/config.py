"""Configuration loader for voice-relay."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class BleConfig:
    name_prefix: str = constants.DEFAULT_DEVICE_NAME_PREFIX
    scan_timeout_seconds: float = constants.DEFAULT_SCAN_TIMEOUT_SECONDS
    write_with_response: bool = True


@dataclass(slots=True)
class ClassifierConfig:
    probability_threshold: float = constants.DEFAULT_PROBABILITY_THRESHOLD
    source: Optional[str] = None  # JSON-lines path, "-" for stdin


@dataclass(slots=True)
class ServerConfig:
    enabled: bool = True
    host: str = constants.DEFAULT_SERVER_HOST
    port: int = constants.DEFAULT_SERVER_PORT


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class RelayConfig:
    ble: BleConfig
    classifier: ClassifierConfig
    server: ServerConfig
    logging: LoggingConfig
    raw: ConfigParser = field(default_factory=ConfigParser)
    path: Path = constants.DEFAULT_CONFIG_PATH


def default_config() -> RelayConfig:
    return RelayConfig(
        ble=BleConfig(),
        classifier=ClassifierConfig(),
        server=ServerConfig(),
        logging=LoggingConfig(),
    )


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "ble": {
                "name_prefix": constants.DEFAULT_DEVICE_NAME_PREFIX,
                "scan_timeout_seconds": str(constants.DEFAULT_SCAN_TIMEOUT_SECONDS),
                "write_with_response": "true",
            },
            "classifier": {
                "probability_threshold": str(constants.DEFAULT_PROBABILITY_THRESHOLD),
                "source": "-",
            },
            "server": {
                "enabled": "true",
                "host": constants.DEFAULT_SERVER_HOST,
                "port": str(constants.DEFAULT_SERVER_PORT),
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    ble = BleConfig(
        name_prefix=parser.get("ble", "name_prefix"),
        scan_timeout_seconds=max(
            0.1,
            parser.getfloat(
                "ble",
                "scan_timeout_seconds",
                fallback=constants.DEFAULT_SCAN_TIMEOUT_SECONDS,
            ),
        ),
        write_with_response=parser.getboolean(
            "ble", "write_with_response", fallback=True
        ),
    )

    default_threshold = constants.DEFAULT_PROBABILITY_THRESHOLD
    try:
        threshold = parser.getfloat(
            "classifier", "probability_threshold", fallback=default_threshold
        )
    except ValueError:
        threshold = default_threshold

    classifier = ClassifierConfig(
        probability_threshold=max(0.0, min(1.0, threshold)),
        source=parser.get("classifier", "source", fallback="").strip() or None,
    )

    server = ServerConfig(
        enabled=parser.getboolean("server", "enabled", fallback=True),
        host=parser.get("server", "host", fallback=constants.DEFAULT_SERVER_HOST),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_SERVER_PORT),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return RelayConfig(
        ble=ble,
        classifier=classifier,
        server=server,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )


def save_config(config: RelayConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
