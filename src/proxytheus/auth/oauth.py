"""OAuth2 client credentials authorization."""

from __future__ import annotations

import logging
import math
from typing import Any
from urllib.parse import quote

import httpx

from proxytheus.auth.material import OAuthClientCredentialsOptions
from proxytheus.auth.token_cache import CachedToken, TokenCache
from proxytheus.errors import AuthorizationEncodingError, IssuanceError
from proxytheus.utils.http import is_valid_header_name, is_valid_header_value

logger = logging.getLogger(__name__)

TOKEN_PLACEHOLDER = "{}"


class OAuthAuthorizer:
    """Attaches a bearer token obtained with the client credentials grant.

    The token is cached until it expires. Callers serialize ``authorize`` so
    that at most one issuance call is in flight.
    """

    def __init__(
        self,
        options: OAuthClientCredentialsOptions,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.options = options
        self.cache = TokenCache()
        self._transport = transport

    def _token_request(self) -> tuple[dict[str, str], httpx.BasicAuth | None]:
        data = {"grant_type": "client_credentials"}
        if self.options.scope:
            data["scope"] = self.options.scope
        if self.options.audience:
            data["audience"] = self.options.audience

        if self.options.token_auth_method == "client_secret_post":
            data["client_id"] = self.options.client_id
            data["client_secret"] = self.options.client_secret
            return data, None

        # RFC 6749 section 2.3.1: form-encode the credentials before Basic auth.
        auth = httpx.BasicAuth(
            quote(self.options.client_id, safe=""),
            quote(self.options.client_secret, safe=""),
        )
        return data, auth

    async def issue_token(self) -> CachedToken:
        """Exchange the client credentials for a fresh access token."""
        data, auth = self._token_request()
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.options.timeout_seconds,
            ) as client:
                resp = await client.post(
                    self.options.token_url,
                    data=data,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Token endpoint unreachable: %s", exc)
            raise IssuanceError(f"token endpoint unreachable: {exc}", "token_unreachable") from exc

        if resp.status_code != 200:
            logger.warning(
                "Token request failed: status=%s body=%s",
                resp.status_code,
                resp.text[:500],
            )
            raise IssuanceError(
                f"token endpoint returned status {resp.status_code}", "token_rejected"
            )

        try:
            payload: Any = resp.json()
        except ValueError as exc:
            logger.warning("Token endpoint returned non-JSON response")
            raise IssuanceError("token endpoint returned non-JSON response") from exc

        token = _parse_token_response(payload)
        logger.debug("Generated new token expiring at %s", token.expires_at.isoformat())
        return token

    async def token(self) -> str:
        return await self.cache.get_or_issue(self.issue_token)

    async def authorize(self, request: httpx.Request) -> None:
        """Set the configured header on ``request``, replacing any existing one."""
        token = await self.token()

        name = self.options.header_name
        value = self.options.header_value.replace(TOKEN_PLACEHOLDER, token)
        if not is_valid_header_name(name):
            raise AuthorizationEncodingError(f"invalid header name: {name!r}")
        if not is_valid_header_value(value):
            raise AuthorizationEncodingError(f"invalid value for header {name}")

        request.headers[name] = value


def _parse_token_response(payload: Any) -> CachedToken:
    if not isinstance(payload, dict):
        raise IssuanceError("token response is not a JSON object", "token_malformed")

    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise IssuanceError("token response has no access_token", "token_malformed")

    expires_in = payload.get("expires_in")
    if expires_in is not None:
        try:
            expires_in = float(expires_in)
        except (TypeError, ValueError) as exc:
            raise IssuanceError(
                f"token response has invalid expires_in: {expires_in!r}", "token_malformed"
            ) from exc
        if not math.isfinite(expires_in) or expires_in < 0:
            raise IssuanceError(
                f"token response has invalid expires_in: {expires_in!r}", "token_malformed"
            )

    try:
        return CachedToken.issued_now(access_token, expires_in)
    except (OverflowError, ValueError) as exc:
        raise IssuanceError(
            f"token response has out of range expires_in: {expires_in!r}", "token_malformed"
        ) from exc
