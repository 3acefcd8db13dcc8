from pathlib import Path
from unittest.mock import patch

import pytest

from voice_relay import cli
from voice_relay.relay import SendOutcome, TransportNegotiationError


def test_show_config_prints_sections(tmp_path: Path, capsys) -> None:
    exit_code = cli.main(["-c", str(tmp_path / "voice-relay.cfg"), "show-config"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[ble]" in output
    assert "name_prefix = BBC micro:bit" in output


def test_send_rejects_unknown_command_after_configuring_logging(tmp_path: Path) -> None:
    with patch.object(cli, "VoiceRelayApp") as app_cls, patch.object(
        cli, "configure_logging"
    ) as configure, patch.object(cli, "LOGGER") as logger:
        logger.error.side_effect = lambda *args: configure.assert_called_once()
        exit_code = cli.main(["-c", str(tmp_path / "voice-relay.cfg"), "send", "jump"])

    assert exit_code == 1
    logger.error.assert_called_once()
    app_cls.assert_not_called()


@pytest.mark.parametrize(
    ("outcome", "expected"),
    [(SendOutcome.SENT, 0), (SendOutcome.FAILED, 1)],
)
def test_send_reports_outcome(tmp_path: Path, outcome, expected) -> None:
    async def _send_once(code):
        assert code.name == "LEFT"
        return outcome

    with patch.object(cli, "VoiceRelayApp") as app_cls, patch.object(
        cli, "configure_logging"
    ):
        app_cls.return_value.send_once = _send_once
        exit_code = cli.main(["-c", str(tmp_path / "voice-relay.cfg"), "send", "left"])

    assert exit_code == expected


def test_send_returns_error_on_negotiation_failure(tmp_path: Path) -> None:
    async def _send_once(code):
        raise TransportNegotiationError("request_device", ConnectionError("none"))

    with patch.object(cli, "VoiceRelayApp") as app_cls, patch.object(
        cli, "configure_logging"
    ):
        app_cls.return_value.send_once = _send_once
        exit_code = cli.main(["-c", str(tmp_path / "voice-relay.cfg"), "send", "3"])

    assert exit_code == 1


def test_start_runs_app(tmp_path: Path) -> None:
    with patch.object(cli, "VoiceRelayApp") as app_cls:
        exit_code = cli.main(["-c", str(tmp_path / "voice-relay.cfg"), "start"])

    assert exit_code == 0
    app_cls.start.assert_called_once()
