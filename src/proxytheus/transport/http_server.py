"""Starlette HTTP server assembly."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from proxytheus.app import AppContext, build_app_context
from proxytheus.config import Settings, load_settings
from proxytheus.middleware.access_log import AccessLogMiddleware

logger = logging.getLogger(__name__)


def create_http_app(
    settings: Settings | None = None,
    context: AppContext | None = None,
) -> Starlette:
    """Create the proxy application.

    Building the context selects the auth mechanism and, in TLS transport
    mode, loads the client identity; both raise ``ConfigurationError`` here,
    before any traffic is served.
    """
    if context is None:
        context = build_app_context(settings or load_settings())
    handler = context.handler

    async def health_handler(request: Request) -> Response:
        logger.debug("Health check success.")
        return Response(status_code=200)

    async def proxy_handler(request: Request) -> Response:
        return await handler.handle(request)

    routes = [
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/{path:path}", endpoint=proxy_handler),
    ]

    middleware = [Middleware(AccessLogMiddleware)]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info(
            "Proxying /%s to %s (auth=%s)",
            context.settings.proxy.route_prefix,
            context.settings.proxy.endpoint,
            context.auth.kind,
        )
        try:
            yield
        finally:
            logger.info("Stopping proxy, closing upstream client...")
            await context.aclose()

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.context = context
    return app
