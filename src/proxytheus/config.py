"""Configuration management for the proxy."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from proxytheus.auth.material import OAuthClientCredentialsOptions, TlsMaterial
from proxytheus.errors import ConfigurationError
from proxytheus.utils.http import normalize_base_url, validate_http_url

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ServerSettings(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)


class ProxySettings(BaseModel):
    endpoint: str = Field(description="Upstream base URL requests are forwarded to")
    route_prefix: str = Field(default="metrics", min_length=1)
    upstream_timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        return normalize_base_url(value)

    @field_validator("route_prefix")
    @classmethod
    def _validate_route_prefix(cls, value: str) -> str:
        prefix = value.strip("/")
        if not prefix or "/" in prefix:
            raise ValueError("route_prefix must be a single path segment")
        return prefix


class OAuthSettings(BaseModel):
    """OAuth2 client credentials settings.

    The four connection values must be given together. ``header_value`` is a
    template where ``{}`` is replaced with the issued access token.
    """

    client_id: str | None = None
    client_secret: str | None = Field(default=None, repr=False)
    auth_url: str | None = None
    token_url: str | None = None
    audience: str | None = None
    scope: str | None = None
    header_name: str = Field(default="Authorization")
    header_value: str = Field(default="Bearer {}")
    token_auth_method: Literal["client_secret_basic", "client_secret_post"] = Field(
        default="client_secret_basic"
    )
    timeout_seconds: float = Field(default=15.0, gt=0)

    @field_validator("auth_url", "token_url")
    @classmethod
    def _validate_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return validate_http_url(value)

    def is_empty(self) -> bool:
        return not any(
            (
                self.client_id,
                self.client_secret,
                self.auth_url,
                self.token_url,
                self.audience,
                self.scope,
            )
        )


class TLSSettings(BaseModel):
    """TLS client identity settings.

    ``mode`` selects how the identity reaches the upstream:
    - transport: the certificate is presented during the TLS handshake
    - forward-headers: the PEM text is sent as X-Forwarded-Client-Cert/Key
    """

    cert: str | None = Field(default=None, repr=False)
    key: str | None = Field(default=None, repr=False)
    cert_file: str | None = None
    key_file: str | None = None
    mode: Literal["transport", "forward-headers"] = Field(default="transport")
    verify_upstream: bool = Field(default=False)
    forward_encoding: Literal["raw", "url"] = Field(default="raw")

    def is_empty(self) -> bool:
        return not any((self.cert, self.key, self.cert_file, self.key_file))


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    proxy: ProxySettings
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    tls: TLSSettings = Field(default_factory=TLSSettings)


@dataclass(frozen=True)
class AuthSelection:
    """The credential shape chosen from configuration."""

    kind: Literal["none", "oauth", "tls"]
    oauth: OAuthClientCredentialsOptions | None = None
    tls: TlsMaterial | None = None


ENV_KEYS = {
    "host": "HOST",
    "port": "PORT",
    "endpoint": "ENDPOINT",
    "route_prefix": "PROXY_ROUTE_PREFIX",
    "upstream_timeout": "UPSTREAM_TIMEOUT_SECONDS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "client_id": "OAUTH2_CLIENT_ID",
    "client_secret": "OAUTH2_CLIENT_SECRET",
    "auth_url": "OAUTH2_AUTH_URL",
    "token_url": "OAUTH2_TOKEN_URL",
    "audience": "OAUTH2_AUDIENCE",
    "scope": "OAUTH2_SCOPE",
    "header_name": "OAUTH2_HEADER_NAME",
    "header_value": "OAUTH2_HEADER_FORMAT",
    "token_auth_method": "OAUTH2_TOKEN_AUTH_METHOD",
    "oauth_timeout": "OAUTH2_TIMEOUT_SECONDS",
    "cert": "TLS_CERT",
    "key": "TLS_KEY",
    "cert_file": "TLS_CERT_FILE",
    "key_file": "TLS_KEY_FILE",
    "tls_mode": "TLS_MODE",
    "tls_verify_upstream": "TLS_VERIFY_UPSTREAM",
    "tls_forward_encoding": "TLS_FORWARD_ENCODING",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env_str(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None or value.strip() == "":
        return None
    return value


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def build_settings(env: Mapping[str, str]) -> Settings:
    """Validate an environment mapping into ``Settings``."""
    endpoint = _env_str(env, ENV_KEYS["endpoint"])
    if endpoint is None:
        raise ConfigurationError(f"{ENV_KEYS['endpoint']} is required")

    settings_data: dict[str, object] = {
        "server": {
            "host": env.get(ENV_KEYS["host"]) or ServerSettings().host,
            "port": _env_int(env, ENV_KEYS["port"], ServerSettings().port),
        },
        "logging": {
            "level": env.get(ENV_KEYS["log_level"]) or LoggingSettings().level,
            "file": _env_str(env, ENV_KEYS["log_file"]),
        },
        "proxy": {
            "endpoint": endpoint,
            "route_prefix": env.get(ENV_KEYS["route_prefix"]) or "metrics",
            "upstream_timeout_seconds": _env_float(env, ENV_KEYS["upstream_timeout"], 30.0),
        },
        "oauth": {
            "client_id": _env_str(env, ENV_KEYS["client_id"]),
            "client_secret": _env_str(env, ENV_KEYS["client_secret"]),
            "auth_url": _env_str(env, ENV_KEYS["auth_url"]),
            "token_url": _env_str(env, ENV_KEYS["token_url"]),
            "audience": _env_str(env, ENV_KEYS["audience"]),
            "scope": _env_str(env, ENV_KEYS["scope"]),
            "header_name": _env_str(env, ENV_KEYS["header_name"]) or OAuthSettings().header_name,
            "header_value": (
                _env_str(env, ENV_KEYS["header_value"]) or OAuthSettings().header_value
            ),
            "token_auth_method": (
                _env_str(env, ENV_KEYS["token_auth_method"])
                or OAuthSettings().token_auth_method
            ),
            "timeout_seconds": _env_float(
                env, ENV_KEYS["oauth_timeout"], OAuthSettings().timeout_seconds
            ),
        },
        "tls": {
            "cert": _env_str(env, ENV_KEYS["cert"]),
            "key": _env_str(env, ENV_KEYS["key"]),
            "cert_file": _env_str(env, ENV_KEYS["cert_file"]),
            "key_file": _env_str(env, ENV_KEYS["key_file"]),
            "mode": _env_str(env, ENV_KEYS["tls_mode"]) or TLSSettings().mode,
            "verify_upstream": _env_bool(
                env, ENV_KEYS["tls_verify_upstream"], TLSSettings().verify_upstream
            ),
            "forward_encoding": (
                _env_str(env, ENV_KEYS["tls_forward_encoding"])
                or TLSSettings().forward_encoding
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


def read_environment() -> dict[str, str]:
    """Return the process environment after loading the project `.env` file."""
    load_dotenv(dotenv_path=_project_root() / ".env")
    return dict(os.environ)


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    return build_settings(read_environment())


def select_auth(settings: Settings) -> AuthSelection:
    """Pick exactly one credential shape from ``settings``.

    Raises ``ConfigurationError`` for partial or mixed credential sets.
    """
    oauth = settings.oauth
    tls = settings.tls

    if oauth.is_empty() and tls.is_empty():
        return AuthSelection(kind="none")

    if not oauth.is_empty():
        if not tls.is_empty():
            raise ConfigurationError(
                "OAuth2 and TLS credentials are mutually exclusive; configure only one"
            )
        missing = [
            ENV_KEYS[name]
            for name in ("client_id", "client_secret", "auth_url", "token_url")
            if getattr(oauth, name) is None
        ]
        if missing:
            raise ConfigurationError(
                f"Incomplete OAuth2 configuration, missing: {', '.join(missing)}"
            )
        if "{}" not in oauth.header_value:
            _config_logger.warning(
                "%s has no '{}' placeholder; the token will not appear in the header",
                ENV_KEYS["header_value"],
            )
        return AuthSelection(
            kind="oauth",
            oauth=OAuthClientCredentialsOptions(
                client_id=oauth.client_id,
                client_secret=oauth.client_secret,
                auth_url=oauth.auth_url,
                token_url=oauth.token_url,
                audience=oauth.audience,
                scope=oauth.scope,
                header_name=oauth.header_name,
                header_value=oauth.header_value,
                token_auth_method=oauth.token_auth_method,
                timeout_seconds=oauth.timeout_seconds,
            ),
        )

    inline = tls.cert is not None or tls.key is not None
    from_files = tls.cert_file is not None or tls.key_file is not None
    if inline and from_files:
        raise ConfigurationError(
            "TLS material must come either inline (TLS_CERT/TLS_KEY) "
            "or from files (TLS_CERT_FILE/TLS_KEY_FILE), not both"
        )
    if inline:
        if tls.cert is None or tls.key is None:
            raise ConfigurationError("TLS_CERT and TLS_KEY must be set together")
        material = TlsMaterial.from_pem(tls.cert, tls.key)
    else:
        if tls.cert_file is None or tls.key_file is None:
            raise ConfigurationError("TLS_CERT_FILE and TLS_KEY_FILE must be set together")
        material = TlsMaterial.from_files(tls.cert_file, tls.key_file)
    return AuthSelection(kind="tls", tls=material)
