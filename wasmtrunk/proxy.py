"""Forward HTTP requests and WebSocket connections from the dev server to a backend."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit

import aiohttp
from aiohttp import WSCloseCode, WSMsgType, web

logger = logging.getLogger(__name__)

# Headers the client library computes itself, or that name the wrong host.
_SKIP_REQUEST_HEADERS = frozenset({"host", "content-length", "transfer-encoding"})
# Framing headers that the outgoing response sets on its own.
_SKIP_RESPONSE_HEADERS = frozenset({"transfer-encoding", "connection"})


def make_outbound_uri(backend: str, request_path: str, query: str | None = None) -> str:
    """Join the backend URL with the part of the request path left after the proxy prefix."""
    parts = urlsplit(backend)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"error building proxy request to backend {backend!r}")
    backend_path = parts.path or "/"
    if backend_path.endswith("/"):
        tail = request_path.lstrip("/")
    else:
        tail = request_path
    path = "/" + backend_path.lstrip("/") + tail
    if query is not None:
        path = f"{path}?{query}"
    return f"{parts.scheme}://{parts.netloc}{path}"


def _listen_path(backend: str, rewrite: str | None) -> str:
    if rewrite is not None:
        return rewrite
    return urlsplit(backend).path or "/"


def _mount(app: web.Application, path: str, method: str, handler) -> None:
    """Route ``path`` itself and everything below it to ``handler``."""
    base = path.rstrip("/")
    if base:
        app.router.add_route(method, base, handler)
    app.router.add_route(method, base + "/{tail:.*}", handler)


def _remaining_path(request: web.Request, path: str) -> str:
    base = path.rstrip("/")
    rest = request.rel_url.raw_path[len(base):]
    return rest if rest.startswith("/") else "/" + rest


def _query(request: web.Request) -> str | None:
    return request.rel_url.raw_query_string or None


class ProxyHandlerHttp:
    """Proxy plain HTTP requests under a prefix to a backend."""

    def __init__(
        self, session: aiohttp.ClientSession, backend: str, rewrite: str | None = None
    ) -> None:
        self.session = session
        self.backend = backend
        self.rewrite = rewrite
        self.path = _listen_path(backend, rewrite)
        self._host = urlsplit(backend).hostname

    def register(self, app: web.Application) -> web.Application:
        """Add this proxy's routes to ``app``."""
        _mount(app, self.path, "*", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Send the request on to the backend and stream its response back."""
        try:
            url = make_outbound_uri(self.backend, _remaining_path(request, self.path), _query(request))
        except ValueError as err:
            logger.error("error handling request: %s", err)
            return web.Response(status=500)

        headers = [
            (key, value)
            for key, value in request.headers.items()
            if key.lower() not in _SKIP_REQUEST_HEADERS
        ]
        if self._host:
            headers.append(("Host", self._host))
        body = await request.read()

        try:
            async with self.session.request(
                request.method, url, headers=headers, data=body or None
            ) as backend_res:
                response = web.StreamResponse(status=backend_res.status, reason=backend_res.reason)
                for key, value in backend_res.headers.items():
                    if key.lower() not in _SKIP_RESPONSE_HEADERS:
                        response.headers.add(key, value)
                await response.prepare(request)
                try:
                    async for chunk in backend_res.content.iter_any():
                        await response.write(chunk)
                    await response.write_eof()
                except (aiohttp.ClientError, ConnectionError) as err:
                    logger.error("error streaming proxy response: %s", err)
                return response
        except aiohttp.ClientError as err:
            logger.error("error proxying request to proxy backend %s: %s", url, err)
            return web.Response(status=500)


async def _forward(source, sink, direction: str) -> None:
    """Relay messages from ``source`` to ``sink`` until ``source`` ends."""
    while True:
        msg = await source.receive()
        try:
            if msg.type is WSMsgType.TEXT:
                await sink.send_str(msg.data)
            elif msg.type is WSMsgType.BINARY:
                await sink.send_bytes(msg.data)
            elif msg.type is WSMsgType.PING:
                await sink.ping(msg.data)
            elif msg.type is WSMsgType.PONG:
                await sink.pong(msg.data)
            elif msg.type is WSMsgType.CLOSE:
                code = msg.data if isinstance(msg.data, int) and msg.data >= 1000 else WSCloseCode.OK
                await sink.close(code=code, message=(msg.extra or "").encode("utf-8"))
            else:
                return
        except (ConnectionError, RuntimeError, aiohttp.ClientError) as err:
            logger.error("error forwarding %s WebSocket message: %s", direction, err)
            return


class ProxyHandlerWebSocket:
    """Proxy WebSocket connections under a prefix to a backend."""

    def __init__(self, backend: str, rewrite: str | None = None) -> None:
        self.backend = backend
        self.rewrite = rewrite
        self.path = _listen_path(backend, rewrite)

    def register(self, app: web.Application) -> web.Application:
        """Add this proxy's routes to ``app``."""
        _mount(app, self.path, "GET", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Upgrade the request and relay messages both ways until either side stops."""
        frontend = web.WebSocketResponse(autoping=False)
        if not frontend.can_prepare(request).ok:
            return web.Response(status=400, text="expected a WebSocket upgrade request")
        await frontend.prepare(request)
        logger.debug("new websocket connection")

        try:
            url = make_outbound_uri(self.backend, _remaining_path(request, self.path), _query(request))
        except ValueError as err:
            logger.error("failed to build proxy uri from %s: %s", request.rel_url, err)
            await frontend.close()
            return frontend

        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(url, autoping=False) as backend:
                    tasks = {
                        asyncio.create_task(_forward(frontend, backend, "frontend to backend")),
                        asyncio.create_task(_forward(backend, frontend, "backend to frontend")),
                    }
                    _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
        except (aiohttp.ClientError, OSError) as err:
            logger.error("error establishing WebSocket connection to backend %s: %s", url, err)

        await frontend.close()
        logger.debug("websocket connection closed")
        return frontend