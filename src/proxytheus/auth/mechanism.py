"""The active authorization mechanism and its shared lock."""

from __future__ import annotations

import asyncio
import logging
from typing import Literal, Union

import httpx

from proxytheus.auth.material import OAuthClientCredentialsOptions, TlsMaterial
from proxytheus.auth.oauth import OAuthAuthorizer
from proxytheus.auth.tls import TlsAuthorizer, TlsMode

logger = logging.getLogger(__name__)

Authorizer = Union[OAuthAuthorizer, TlsAuthorizer, None]


class AuthMechanism:
    """Exactly one of none, OAuth client credentials or TLS.

    A single instance is shared by every request handler. ``authorize`` holds
    an exclusive lock for its whole duration, so token checks and refreshes
    never overlap; the lock is released before the request is sent.
    """

    def __init__(self, authorizer: Authorizer = None) -> None:
        self._authorizer = authorizer
        self._lock = asyncio.Lock()

    @classmethod
    def none(cls) -> "AuthMechanism":
        return cls(None)

    @classmethod
    def oauth_client_credentials(
        cls,
        options: OAuthClientCredentialsOptions,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AuthMechanism":
        return cls(OAuthAuthorizer(options, transport=transport))

    @classmethod
    def tls(
        cls,
        material: TlsMaterial,
        mode: TlsMode = "transport",
        verify_upstream: bool = False,
        forward_encoding: Literal["raw", "url"] = "raw",
    ) -> "AuthMechanism":
        return cls(
            TlsAuthorizer(
                material,
                mode=mode,
                verify_upstream=verify_upstream,
                forward_encoding=forward_encoding,
            )
        )

    @property
    def kind(self) -> Literal["none", "oauth", "tls"]:
        if isinstance(self._authorizer, OAuthAuthorizer):
            return "oauth"
        if isinstance(self._authorizer, TlsAuthorizer):
            return "tls"
        return "none"

    @property
    def authorizer(self) -> Authorizer:
        return self._authorizer

    async def authorize(self, request: httpx.Request) -> None:
        """Add whatever credentials the active mechanism needs to ``request``.

        - none: the request is left untouched
        - oauth: the configured header is set to the current token
        - tls: forwarded-identity headers in header mode, nothing in transport mode

        Raises ``AuthorizationError`` subclasses on failure.
        """
        authorizer = self._authorizer
        if authorizer is None:
            return

        async with self._lock:
            if isinstance(authorizer, OAuthAuthorizer):
                await authorizer.authorize(request)
            elif isinstance(authorizer, TlsAuthorizer):
                authorizer.authorize(request)
