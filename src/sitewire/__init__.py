"""SITEWIRE

A composition root for small real-time web servers. A single declarative
configuration decides which subsystems (database, config store, WebSocket
server, transports, users, HTTP, session cookies) get built, in what order,
and when the assembled site is ready.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
