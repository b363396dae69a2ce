"""Tests for AuthMechanism dispatch and serialization."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from proxytheus.auth.material import TlsMaterial
from proxytheus.auth.mechanism import AuthMechanism
from proxytheus.auth.oauth import OAuthAuthorizer
from proxytheus.auth.tls import FORWARDED_CERT_HEADER, TlsAuthorizer
from proxytheus.errors import IssuanceError


def _outbound(headers: dict[str, str] | None = None) -> httpx.Request:
    return httpx.Request("GET", "http://upstream.test/metrics", headers=headers)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_none_is_noop(self) -> None:
        mechanism = AuthMechanism.none()
        request = _outbound({"Authorization": "Basic inbound", "X-Custom": "1"})
        before = list(request.headers.raw)

        await mechanism.authorize(request)

        assert mechanism.kind == "none"
        assert mechanism.authorizer is None
        assert list(request.headers.raw) == before

    @pytest.mark.asyncio
    async def test_oauth_variant(self, clock, oauth_options) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"access_token": "abc"})
        )
        mechanism = AuthMechanism.oauth_client_credentials(oauth_options, transport=transport)
        request = _outbound()

        await mechanism.authorize(request)

        assert mechanism.kind == "oauth"
        assert isinstance(mechanism.authorizer, OAuthAuthorizer)
        assert request.headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_tls_variant(self) -> None:
        mechanism = AuthMechanism.tls(TlsMaterial.from_pem("cert", "key"), mode="forward-headers")
        request = _outbound()

        await mechanism.authorize(request)

        assert mechanism.kind == "tls"
        assert isinstance(mechanism.authorizer, TlsAuthorizer)
        assert request.headers[FORWARDED_CERT_HEADER] == "cert"


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_issuance(self, clock, oauth_options) -> None:
        calls = {"count": 0}

        async def token_endpoint(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"access_token": "abc", "expires_in": 300})

        mechanism = AuthMechanism.oauth_client_credentials(
            oauth_options, transport=httpx.MockTransport(token_endpoint)
        )
        requests = [_outbound() for _ in range(20)]

        await asyncio.gather(*(mechanism.authorize(request) for request in requests))

        assert calls["count"] == 1
        assert all(request.headers["Authorization"] == "Bearer abc" for request in requests)

    @pytest.mark.asyncio
    async def test_queued_requests_retry_after_failed_issuance(self, clock, oauth_options) -> None:
        responses = [
            httpx.Response(503),
            httpx.Response(200, json={"access_token": "abc"}),
        ]

        async def token_endpoint(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return responses.pop(0) if len(responses) > 1 else responses[0]

        mechanism = AuthMechanism.oauth_client_credentials(
            oauth_options, transport=httpx.MockTransport(token_endpoint)
        )
        first, second, third = _outbound(), _outbound(), _outbound()

        results = await asyncio.gather(
            mechanism.authorize(first),
            mechanism.authorize(second),
            mechanism.authorize(third),
            return_exceptions=True,
        )

        assert isinstance(results[0], IssuanceError)
        assert results[1] is None and results[2] is None
        assert second.headers["Authorization"] == "Bearer abc"
        assert third.headers["Authorization"] == "Bearer abc"
        assert len(responses) == 1

    @pytest.mark.asyncio
    async def test_lock_released_after_authorize(self, clock, oauth_options) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"access_token": "abc"})
        )
        mechanism = AuthMechanism.oauth_client_credentials(oauth_options, transport=transport)

        await mechanism.authorize(_outbound())

        assert not mechanism._lock.locked()

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, clock, oauth_options) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        mechanism = AuthMechanism.oauth_client_credentials(oauth_options, transport=transport)

        with pytest.raises(IssuanceError):
            await mechanism.authorize(_outbound())

        assert not mechanism._lock.locked()
