"""Error taxonomy for the proxy.

Startup errors (``ConfigurationError``) abort the process before it serves
traffic. Everything else is raised per request and converted to an HTTP status
at the proxy handler boundary.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for proxy errors."""

    code = "proxy_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(ProxyError, RuntimeError):
    """Raised when the startup configuration is unsatisfiable or ambiguous."""

    code = "invalid_configuration"


class AuthorizationError(ProxyError):
    """Raised when an outbound request could not be authorized."""

    code = "authorization_failed"


class IssuanceError(AuthorizationError):
    """Raised when the OAuth token endpoint does not yield a usable token."""

    code = "issuance_failed"


class AuthorizationEncodingError(AuthorizationError):
    """Raised when an injected header is not valid HTTP header syntax."""

    code = "invalid_header"


class UpstreamTransportError(ProxyError):
    """Raised when the upstream endpoint could not be reached."""

    code = "upstream_unreachable"


class RouteNotFoundError(ProxyError):
    """Raised when the inbound path is outside the proxied mount."""

    code = "route_not_found"
