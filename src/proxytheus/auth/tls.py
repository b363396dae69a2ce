"""TLS client identity authorization.

Two deployment modes exist and exactly one is active:

- ``transport``: the identity is bound to the upstream HTTP client when it is
  built, so the handshake itself carries it and ``authorize`` does nothing.
- ``forward-headers``: the PEM text is attached to every request as
  ``X-Forwarded-Client-Cert`` / ``X-Forwarded-Client-Key`` for a downstream
  terminator to validate.
"""

from __future__ import annotations

import ssl
from typing import Literal
from urllib.parse import quote

import httpx

from proxytheus.auth.material import TlsMaterial
from proxytheus.errors import AuthorizationEncodingError
from proxytheus.utils.http import is_valid_header_value

FORWARDED_CERT_HEADER = "X-Forwarded-Client-Cert"
FORWARDED_KEY_HEADER = "X-Forwarded-Client-Key"

TlsMode = Literal["transport", "forward-headers"]


class TlsAuthorizer:
    """Presents a client certificate to the upstream."""

    def __init__(
        self,
        material: TlsMaterial,
        mode: TlsMode = "transport",
        verify_upstream: bool = False,
        forward_encoding: Literal["raw", "url"] = "raw",
    ) -> None:
        if mode not in ("transport", "forward-headers"):
            raise ValueError(f"Unsupported TLS mode: {mode}")
        self.material = material
        self.mode = mode
        self.verify_upstream = verify_upstream
        self.forward_encoding = forward_encoding

    def ssl_context(self) -> ssl.SSLContext | None:
        """Client ``SSLContext`` carrying the identity, for transport mode only.

        Raises ``ConfigurationError`` if the PEM pair cannot be loaded.
        """
        if self.mode != "transport":
            return None
        return self.material.build_ssl_context(verify_upstream=self.verify_upstream)

    def _header_value(self, header: str, pem: bytes) -> str:
        try:
            text = pem.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AuthorizationEncodingError(f"{header} is not valid UTF-8") from exc
        if self.forward_encoding == "url":
            text = quote(text, safe="")
        if not is_valid_header_value(text):
            raise AuthorizationEncodingError(f"{header} is not a valid header value")
        return text

    def authorize(self, request: httpx.Request) -> None:
        if self.mode == "transport":
            return
        cert = self._header_value(FORWARDED_CERT_HEADER, self.material.cert)
        key = self._header_value(FORWARDED_KEY_HEADER, self.material.key)
        request.headers[FORWARDED_CERT_HEADER] = cert
        request.headers[FORWARDED_KEY_HEADER] = key
