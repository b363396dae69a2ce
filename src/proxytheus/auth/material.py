"""Credential material for each authorization mechanism.

These are passive, immutable holders. Secrets are kept out of ``repr`` so the
objects can be logged safely.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from proxytheus.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthClientCredentialsOptions:
    """Arguments for OAuth2 client credentials authentication."""

    # Used to obtain the token
    client_id: str
    client_secret: str = field(repr=False)
    auth_url: str
    token_url: str
    audience: str | None = None
    scope: str | None = None
    token_auth_method: str = "client_secret_basic"
    timeout_seconds: float = 15.0

    # Used to authorize the outbound request
    header_name: str = "Authorization"
    header_value: str = "Bearer {}"


@dataclass(frozen=True)
class TlsMaterial:
    """PEM encoded client certificate and private key."""

    cert: bytes = field(repr=False)
    key: bytes = field(repr=False)
    source: str = "inline"

    @classmethod
    def from_pem(cls, cert: str | bytes, key: str | bytes) -> "TlsMaterial":
        return cls(cert=_as_bytes(cert), key=_as_bytes(key), source="inline")

    @classmethod
    def from_files(
        cls,
        cert_path: str | os.PathLike[str],
        key_path: str | os.PathLike[str],
    ) -> "TlsMaterial":
        try:
            cert = Path(cert_path).read_bytes()
            key = Path(key_path).read_bytes()
        except OSError as exc:
            raise ConfigurationError(f"Unable to read TLS material: {exc}") from exc
        return cls(cert=cert, key=key, source=f"file:{cert_path}")

    def build_ssl_context(self, verify_upstream: bool = False) -> ssl.SSLContext:
        """Load the certificate and key into a client ``SSLContext``.

        ``ssl`` only loads identities from disk, so the PEM pair is written to
        a private temporary directory that is removed straight after loading.
        """
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if not verify_upstream:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        with tempfile.TemporaryDirectory(prefix="proxytheus-tls-") as tmpdir:
            cert_path = Path(tmpdir) / "client.crt"
            key_path = Path(tmpdir) / "client.key"
            cert_path.write_bytes(self.cert)
            key_path.write_bytes(self.key)
            os.chmod(key_path, 0o600)
            try:
                context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
            except (ssl.SSLError, ValueError) as exc:
                raise ConfigurationError(f"Malformed TLS identity ({self.source}): {exc}") from exc

        logger.info("Loaded TLS client identity from %s", self.source)
        return context


def _as_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")
