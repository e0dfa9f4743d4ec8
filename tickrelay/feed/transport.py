"""WebSocket transport for the upstream feed.

The transport is intentionally lightweight: a ``websocket-client``
:class:`websocket.WebSocketApp` runs on a dedicated daemon thread and every
callback is marshalled onto the asyncio loop with ``call_soon_threadsafe``.
All state changes therefore happen on the loop; the thread only moves bytes.
Keepalive and reconnects are driven by the connection manager, so the app's
own ping and reconnect features are disabled.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Protocol

import websocket

from tickrelay.core.errors import FeedError

LOGGER = logging.getLogger(__name__)


class TransportListener(Protocol):
    """Callbacks a transport delivers on the event loop."""

    def on_open(self) -> None: ...

    def on_message(self, raw: str | bytes) -> None: ...

    def on_error(self, error: BaseException) -> None: ...

    def on_close(self, code: int | None, reason: str | None) -> None: ...


class StreamTransport(Protocol):
    def start(self) -> None: ...

    def ping(self) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[[str, TransportListener], StreamTransport]


class WebSocketTransport:
    """One upstream connection; not reusable after it closes."""

    def __init__(
        self,
        url: str,
        listener: TransportListener,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._url = url
        self._listener = listener
        self._loop = loop
        self._thread: threading.Thread | None = None
        self._app = websocket.WebSocketApp(
            url,
            on_open=lambda _ws: self._post(listener.on_open),
            on_message=lambda _ws, message: self._post(listener.on_message, message),
            on_error=lambda _ws, error: self._post(listener.on_error, error),
            on_close=lambda _ws, code, reason: self._post(listener.on_close, code, reason),
        )

    def start(self) -> None:
        if self._thread is not None:
            raise FeedError("transport already started")
        self._thread = threading.Thread(target=self._run, name="tickrelay-ws", daemon=True)
        self._thread.start()

    def ping(self) -> None:
        sock = self._app.sock
        if sock is None or not sock.connected:
            raise FeedError("websocket is not connected")
        sock.ping()

    def close(self) -> None:
        self._app.keep_running = False
        self._app.close()

    def _run(self) -> None:  # pragma: no cover - network usage
        try:
            self._app.run_forever(ping_interval=0, reconnect=0, skip_utf8_validation=True)
        except Exception as exc:
            self._post(self._listener.on_error, exc)
        finally:
            # run_forever may return without on_close on some failure paths
            self._post(self._listener.on_close, None, "run_forever exited")

    def _post(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            LOGGER.debug("Event loop closed; dropping transport callback", extra={"url": self._url})


def websocket_transport_factory(loop: asyncio.AbstractEventLoop) -> TransportFactory:
    """Return a factory binding :class:`WebSocketTransport` to ``loop``."""

    def factory(url: str, listener: TransportListener) -> StreamTransport:
        return WebSocketTransport(url, listener, loop)

    return factory


__all__ = [
    "StreamTransport",
    "TransportFactory",
    "TransportListener",
    "WebSocketTransport",
    "websocket_transport_factory",
]
