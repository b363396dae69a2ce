from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from proxytheus import server
from proxytheus.errors import ConfigurationError


@pytest.fixture
def environment(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    env = {"ENDPOINT": "http://from-env.test", "PORT": "4000"}
    monkeypatch.setattr(server, "read_environment", lambda: dict(env))
    return env


def test_cli_flags_override_environment(environment: dict[str, str]) -> None:
    settings = server.resolve_settings(
        ["--endpoint", "http://from-cli.test/x", "--port", "5000", "--tls-mode", "forward-headers"]
    )

    assert settings.proxy.endpoint == "http://from-cli.test/x"
    assert settings.server.port == 5000
    assert settings.tls.mode == "forward-headers"


def test_no_flags_uses_cached_settings() -> None:
    sentinel = MagicMock()
    with patch.object(server, "load_settings", return_value=sentinel):
        assert server.resolve_settings([]) is sentinel


def test_rejects_unknown_tls_mode() -> None:
    with pytest.raises(SystemExit):
        server.resolve_settings(["--tls-mode", "both"])


@patch("proxytheus.server.configure_logging")
def test_configuration_error_exits_before_serving(_mock_logging: MagicMock) -> None:
    with (
        patch.object(server, "resolve_settings", side_effect=ConfigurationError("bad")),
        patch("uvicorn.run") as mock_run,
    ):
        with pytest.raises(SystemExit) as exc_info:
            server.run_entrypoint([])

    assert exc_info.value.code == 2
    mock_run.assert_not_called()


@patch("proxytheus.server.configure_logging")
def test_run_entrypoint_serves_app(_mock_logging: MagicMock, environment) -> None:
    app = MagicMock()
    with (
        patch("proxytheus.transport.http_server.create_http_app", return_value=app),
        patch("uvicorn.run") as mock_run,
    ):
        server.run_entrypoint(["--host", "127.0.0.1"])

    mock_run.assert_called_once()
    assert mock_run.call_args.args == (app,)
    assert mock_run.call_args.kwargs["host"] == "127.0.0.1"
    assert mock_run.call_args.kwargs["port"] == 4000
