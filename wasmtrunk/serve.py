"""Development server: static files, autoreload socket and user-defined proxies."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import webbrowser
from dataclasses import dataclass
from pathlib import Path

import aiohttp
from aiohttp import WSCloseCode, web

from .proxy import ProxyHandlerHttp, ProxyHandlerWebSocket
from .watch import Broadcast, WatchSystem

logger = logging.getLogger(__name__)

INDEX_HTML = "index.html"
RELOAD_ROUTE = "/_trunk/ws"
RELOAD_MESSAGE = '{"reload": true}'


@dataclass(frozen=True)
class ProxyConfig:
    """One proxied backend."""

    backend: str
    rewrite: str | None = None
    ws: bool = False
    insecure: bool = False


@dataclass
class ServeConfig:
    """Runtime configuration of the development server."""

    address: str = "127.0.0.1"
    port: int = 8080
    open: bool = False
    dist_dir: Path = Path("dist")
    public_url: str = "/"
    proxy_backend: str | None = None
    proxy_rewrite: str | None = None
    proxy_ws: bool = False
    proxy_insecure: bool = False
    proxies: tuple[ProxyConfig, ...] = ()
    no_autoreload: bool = False


def public_route(public_url: str) -> str:
    """The route the static files are served under: the public URL without a trailing slash."""
    if public_url == "/":
        return public_url
    return public_url[:-1] if public_url.endswith("/") else public_url


def _static_handler(dist_dir: Path, route: str):
    base = route.rstrip("/")

    async def serve_static(request: web.Request) -> web.StreamResponse:
        parts = [part for part in request.path[len(base):].split("/") if part]
        target: Path | None = None
        if not any(part in (".", "..") or "\\" in part for part in parts):
            target = dist_dir.joinpath(*parts)
            if target.is_dir():
                target = target / INDEX_HTML
        if target is not None and target.is_file():
            return web.FileResponse(target)
        fallback = dist_dir / INDEX_HTML
        if fallback.is_file():
            return web.FileResponse(fallback)
        raise web.HTTPNotFound()

    return serve_static


def _reload_handler(build_done: Broadcast, sockets: dict[int, web.WebSocketResponse]):
    async def reload_socket(request: web.Request) -> web.StreamResponse:
        ws = web.WebSocketResponse()
        if not ws.can_prepare(request).ok:
            raise web.HTTPBadRequest()
        await ws.prepare(request)
        sockets[id(ws)] = ws
        receiver = build_done.subscribe()
        logger.debug("autoreload websocket opened")
        incoming = asyncio.create_task(ws.receive())
        try:
            while True:
                signal = asyncio.create_task(receiver.get())
                done, _ = await asyncio.wait(
                    {incoming, signal}, return_when=asyncio.FIRST_COMPLETED
                )
                if incoming in done:
                    signal.cancel()
                    logger.debug("autoreload websocket closed")
                    break
                try:
                    await ws.send_str(RELOAD_MESSAGE)
                except (ConnectionError, RuntimeError):
                    break
        finally:
            incoming.cancel()
            sockets.pop(id(ws), None)
        return ws

    return reload_socket


def _register_proxy(
    app: web.Application,
    proxy: ProxyConfig,
    session: aiohttp.ClientSession,
    insecure_session: aiohttp.ClientSession,
) -> None:
    if proxy.ws:
        handler = ProxyHandlerWebSocket(proxy.backend, proxy.rewrite)
        handler.register(app)
        logger.info("proxying websocket %s -> %s", handler.path, proxy.backend)
    else:
        client = insecure_session if proxy.insecure else session
        handler = ProxyHandlerHttp(client, proxy.backend, proxy.rewrite)
        handler.register(app)
        logger.info("proxying %s -> %s", handler.path, proxy.backend)


def build_app(
    cfg: ServeConfig,
    build_done: Broadcast,
    session: aiohttp.ClientSession,
    insecure_session: aiohttp.ClientSession,
) -> web.Application:
    """Assemble the server: autoreload socket, proxies and the static file fallback."""
    app = web.Application()
    sockets: dict[int, web.WebSocketResponse] = {}
    app.router.add_get(RELOAD_ROUTE, _reload_handler(build_done, sockets))

    async def close_sockets(_app: web.Application) -> None:
        for ws in list(sockets.values()):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"server shutdown")

    app.on_shutdown.append(close_sockets)

    if cfg.proxy_backend is not None:
        single = ProxyConfig(
            backend=cfg.proxy_backend,
            rewrite=cfg.proxy_rewrite,
            ws=cfg.proxy_ws,
            insecure=cfg.proxy_insecure,
        )
        _register_proxy(app, single, session, insecure_session)
    else:
        for proxy in cfg.proxies:
            _register_proxy(app, proxy, session, insecure_session)

    route = public_route(cfg.public_url)
    base = route.rstrip("/")
    handler = _static_handler(Path(cfg.dist_dir), route)
    if base:
        app.router.add_get(base, handler)
    app.router.add_get(base + "/{tail:.*}", handler)
    logger.info("serving static assets at -> %s", cfg.public_url)
    return app


class ServeSystem:
    """Run the watch system and the development server side by side."""

    def __init__(self, cfg: ServeConfig, watch: WatchSystem) -> None:
        self.cfg = cfg
        self.watch = watch
        if watch.build_done is None:
            watch.build_done = Broadcast()
        self.build_done = watch.build_done
        self.http_addr = f"http://{cfg.address}:{cfg.port}{cfg.public_url}"

    async def run(self, shutdown: threading.Event) -> None:
        """Build once, then watch and serve until ``shutdown`` is set."""
        try:
            await asyncio.to_thread(self.watch.build)
        except Exception as err:  # the server starts even if the first build fails
            logger.error("initial build failed: %s", err)

        watch_task = asyncio.create_task(asyncio.to_thread(self.watch.run, shutdown))
        try:
            async with contextlib.AsyncExitStack() as stack:
                session = await stack.enter_async_context(
                    aiohttp.ClientSession(auto_decompress=False)
                )
                insecure_session = await stack.enter_async_context(
                    aiohttp.ClientSession(
                        auto_decompress=False, connector=aiohttp.TCPConnector(ssl=False)
                    )
                )
                app = build_app(self.cfg, self.build_done, session, insecure_session)
                runner = web.AppRunner(app)
                await runner.setup()
                try:
                    site = web.TCPSite(runner, self.cfg.address, self.cfg.port)
                    await site.start()
                    logger.info(
                        "server listening at http://%s:%s", self.cfg.address, self.cfg.port
                    )
                    if self.cfg.open:
                        try:
                            webbrowser.open(self.http_addr)
                        except webbrowser.Error as err:
                            logger.error("error opening browser: %s", err)
                    await asyncio.to_thread(shutdown.wait)
                    logger.debug("server is shutting down")
                finally:
                    await runner.cleanup()
        finally:
            shutdown.set()
            await watch_task