"""
Web Routes Package.

This package contains FastAPI route modules:
- api: REST API endpoints (/api/session, /api/library, /api/playlists, /api/player)
- device: Device bridge (/api/device/commands, /api/device/events)
"""

from echoplay.web.routes.api import register_api_routes
from echoplay.web.routes.device import register_device_routes

__all__ = [
    "register_api_routes",
    "register_device_routes",
]
