"""Forwarding handler for the proxied mount."""

from __future__ import annotations

import logging

import httpx
from starlette.requests import Request
from starlette.responses import Response

from proxytheus.auth.mechanism import AuthMechanism
from proxytheus.errors import (
    AuthorizationError,
    ProxyError,
    RouteNotFoundError,
    UpstreamTransportError,
)
from proxytheus.utils.http import HOP_BY_HOP_HEADERS, construct_url, merge_query

logger = logging.getLogger(__name__)


class ProxyHandler:
    """Forwards requests under ``/<route_prefix>`` to one upstream endpoint.

    Each call walks received -> composed -> authorized -> forwarded ->
    mirrored. The upstream status and body are returned unmodified; upstream
    response headers are not copied back.
    """

    def __init__(
        self,
        endpoint: str,
        auth: AuthMechanism,
        client: httpx.AsyncClient,
        route_prefix: str = "metrics",
    ) -> None:
        self.endpoint = endpoint
        self.auth = auth
        self.client = client
        self.route_prefix = route_prefix

    def destination(self, path: str) -> str:
        """Map an inbound path (without leading slash) to the upstream URL.

        The first segment must be the route prefix; the remaining segments are
        appended to the endpoint, so the upstream is mounted at the prefix.
        """
        parts = path.split("/")
        if parts[0] != self.route_prefix:
            raise RouteNotFoundError(f"path outside /{self.route_prefix}: /{path}")
        if len(parts) == 1:
            return self.endpoint
        return construct_url(self.endpoint, parts[1:])

    async def compose(self, request: Request, destination: str) -> httpx.Request:
        body = await request.body()
        headers = [
            (key, value)
            for key, value in request.headers.raw
            if key.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
        ]
        raw_query = request.scope.get("query_string", b"").decode("latin-1")
        try:
            return self.client.build_request(
                request.method,
                merge_query(destination, raw_query),
                headers=headers,
                content=body,
            )
        except (httpx.InvalidURL, ValueError) as exc:
            raise ProxyError(f"unable to build upstream request: {exc}", "build_failed") from exc

    async def forward(self, outbound: httpx.Request) -> httpx.Response:
        try:
            return await self.client.send(outbound)
        except httpx.HTTPError as exc:
            raise UpstreamTransportError(f"{type(exc).__name__}: {exc}") from exc

    async def handle(self, request: Request) -> Response:
        path = request.path_params.get("path", "")
        logger.debug("Proxy request received at path: /%s", path)

        try:
            destination = self.destination(path)
        except RouteNotFoundError as exc:
            logger.info("Invalid path: %s", exc)
            return Response(status_code=404)

        try:
            outbound = await self.compose(request, destination)
            await self.auth.authorize(outbound)
        except AuthorizationError as exc:
            logger.error("Error authorizing request: %s (%s)", exc, exc.code)
            return Response(status_code=500)
        except ProxyError as exc:
            logger.error("Error building request: %s", exc)
            return Response(status_code=500)

        try:
            upstream = await self.forward(outbound)
        except UpstreamTransportError as exc:
            logger.error("Error sending request to %s: %s", destination, exc)
            return Response(status_code=500)

        return Response(content=upstream.content, status_code=upstream.status_code)
