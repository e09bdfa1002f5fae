"""Real-time collaborators: the WebSocket server and what plugs into it."""

from .server import WebSocketClient, WebSocketServer
from .subscriptions import SubscriptionHandler
from .transports import IncomingTransport, OutgoingTransport

__all__ = [
    "WebSocketClient",
    "WebSocketServer",
    "SubscriptionHandler",
    "IncomingTransport",
    "OutgoingTransport",
]
