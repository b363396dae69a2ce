"""Entrypoint for the proxy server."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from proxytheus import __version__
from proxytheus.config import (
    ENV_KEYS,
    Settings,
    build_settings,
    load_settings,
    read_environment,
)
from proxytheus.errors import ConfigurationError
from proxytheus.logging_utils import configure_logging, get_logger

# CLI flag -> environment variable it overrides.
_CLI_OVERRIDES = {
    "host": ENV_KEYS["host"],
    "port": ENV_KEYS["port"],
    "endpoint": ENV_KEYS["endpoint"],
    "route_prefix": ENV_KEYS["route_prefix"],
    "tls_mode": ENV_KEYS["tls_mode"],
    "log_level": ENV_KEYS["log_level"],
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proxytheus",
        description=(
            "Authorizing reverse proxy. Credentials are read from the environment "
            "(OAUTH2_* or TLS_*); flags override the matching variables."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-a", "--host", help="Host address to listen on (HOST)")
    parser.add_argument("-p", "--port", help="Port to listen on (PORT)")
    parser.add_argument("-e", "--endpoint", help="Upstream endpoint to proxy to (ENDPOINT)")
    parser.add_argument(
        "--route-prefix",
        help="Path segment the upstream is mounted at (PROXY_ROUTE_PREFIX)",
    )
    parser.add_argument(
        "--tls-mode",
        choices=["transport", "forward-headers"],
        help="How a TLS client identity is presented (TLS_MODE)",
    )
    parser.add_argument("--log-level", help="Python logging level (LOG_LEVEL)")
    return parser


def resolve_settings(argv: list[str] | None = None) -> Settings:
    """Merge CLI flags over the environment and validate the result."""
    args = build_parser().parse_args(argv)
    overrides: dict[str, str] = {}
    for attr, env_key in _CLI_OVERRIDES.items():
        value = getattr(args, attr)
        if value is not None:
            overrides[env_key] = str(value)
    if not overrides:
        return load_settings()
    env = read_environment()
    env.update(overrides)
    return build_settings(env)


def run_entrypoint(argv: list[str] | None = None) -> None:
    """Validate configuration, then serve until interrupted."""
    try:
        settings = resolve_settings(argv)
        configure_logging(settings.logging)
        from proxytheus.transport.http_server import create_http_app

        app = create_http_app(settings)
    except ConfigurationError as exc:
        configure_logging()
        get_logger(__name__).error("%s", exc)
        sys.exit(2)

    import uvicorn

    get_logger(__name__).info(
        "Starting proxytheus v%s on %s:%s",
        __version__,
        settings.server.host,
        settings.server.port,
    )
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
