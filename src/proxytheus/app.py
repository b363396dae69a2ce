"""Application context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from proxytheus.auth.mechanism import AuthMechanism
from proxytheus.auth.tls import TlsAuthorizer
from proxytheus.config import Settings, select_auth
from proxytheus.transport.proxy_handler import ProxyHandler

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide dependency container.

    Built once at startup. ``auth`` and ``http_client`` are shared by every
    request handler.
    """

    settings: Settings
    auth: AuthMechanism
    http_client: httpx.AsyncClient
    handler: ProxyHandler

    async def aclose(self) -> None:
        await self.http_client.aclose()


def create_auth_mechanism(settings: Settings) -> AuthMechanism:
    """Build the ``AuthMechanism`` selected by ``settings``.

    Raises ``ConfigurationError`` for unusable credential settings.
    """
    selection = select_auth(settings)
    if selection.kind == "oauth":
        logger.info("OAuth2 client credentials authentication configured.")
        return AuthMechanism.oauth_client_credentials(selection.oauth)
    if selection.kind == "tls":
        logger.info("TLS authentication configured (mode=%s).", settings.tls.mode)
        if (
            settings.tls.mode == "forward-headers"
            and settings.tls.forward_encoding == "raw"
            and (b"\n" in selection.tls.cert or b"\n" in selection.tls.key)
        ):
            logger.warning(
                "TLS PEM contains line breaks and cannot be sent as a raw header; "
                "every proxied request will fail. Set TLS_FORWARD_ENCODING=url."
            )
        return AuthMechanism.tls(
            selection.tls,
            mode=settings.tls.mode,
            verify_upstream=settings.tls.verify_upstream,
            forward_encoding=settings.tls.forward_encoding,
        )
    logger.info("No authentication configured.")
    return AuthMechanism.none()


def create_http_client(
    settings: Settings,
    auth: AuthMechanism,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the upstream client, binding the TLS identity in transport mode."""
    kwargs: dict[str, object] = {
        "timeout": settings.proxy.upstream_timeout_seconds,
        "transport": transport,
    }
    authorizer = auth.authorizer
    if isinstance(authorizer, TlsAuthorizer):
        context = authorizer.ssl_context()
        if context is not None:
            kwargs["verify"] = context
    return httpx.AsyncClient(**kwargs)


def build_app_context(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    auth = create_auth_mechanism(settings)
    http_client = create_http_client(settings, auth, transport=transport)
    handler = ProxyHandler(
        endpoint=settings.proxy.endpoint,
        auth=auth,
        client=http_client,
        route_prefix=settings.proxy.route_prefix,
    )
    return AppContext(
        settings=settings,
        auth=auth,
        http_client=http_client,
        handler=handler,
    )
