"""Outbound request authorization.

``AuthMechanism`` is the single entry point: it wraps one of the OAuth2 client
credentials or TLS client identity authorizers, or none at all.
"""

from proxytheus.auth.material import OAuthClientCredentialsOptions, TlsMaterial
from proxytheus.auth.mechanism import AuthMechanism
from proxytheus.auth.oauth import OAuthAuthorizer
from proxytheus.auth.tls import (
    FORWARDED_CERT_HEADER,
    FORWARDED_KEY_HEADER,
    TlsAuthorizer,
)
from proxytheus.auth.token_cache import CachedToken, TokenCache

__all__ = [
    "AuthMechanism",
    "CachedToken",
    "FORWARDED_CERT_HEADER",
    "FORWARDED_KEY_HEADER",
    "OAuthAuthorizer",
    "OAuthClientCredentialsOptions",
    "TlsAuthorizer",
    "TlsMaterial",
    "TokenCache",
]
