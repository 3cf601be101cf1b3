"""
Echoplay Web Layer.

This package provides the HTTP control API the rendering surface uses:
user intents go in through REST endpoints, and the surface's audio element
is driven through the device bridge.

Components:
- WebServer: FastAPI application with all routes
"""

from echoplay.web.server import WebServer

__all__ = ["WebServer"]
