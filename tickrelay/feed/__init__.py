"""Upstream market-data feed package.

Modules here parse Binance combined-stream packets, run the websocket
transport and maintain the connection lifecycle that produces raw messages for
:mod:`tickrelay.pipeline`.
"""

from .packets import parse_packet
from .stream import StreamConnectionManager
from .transport import WebSocketTransport, websocket_transport_factory

__all__ = ["StreamConnectionManager", "WebSocketTransport", "parse_packet", "websocket_transport_factory"]
