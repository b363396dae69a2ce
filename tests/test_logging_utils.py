from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

from proxytheus import logging_utils
from proxytheus.config import LoggingSettings


@patch("proxytheus.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(mock_basic_config: MagicMock) -> None:
    logging_utils.configure_logging(LoggingSettings(level="debug"))

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.DEBUG
    assert len(kwargs["handlers"]) == 1


@patch("proxytheus.logging_utils.logging.basicConfig")
def test_configure_logging_quiets_http_client(mock_basic_config: MagicMock) -> None:
    logging_utils.configure_logging(LoggingSettings(level="DEBUG"))

    assert logging.getLogger("httpx").level == logging.WARNING


@patch("proxytheus.logging_utils.logging.basicConfig")
@patch("proxytheus.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("proxytheus.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_basic_config: MagicMock,
) -> None:
    logging_utils.configure_logging(LoggingSettings(file="./logs/proxy.log"))

    mock_logger.warning.assert_called_once()
    assert len(mock_basic_config.call_args.kwargs["handlers"]) == 1


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    assert calls["count"] == 1
