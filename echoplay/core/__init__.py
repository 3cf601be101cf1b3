"""
Core domain package.

This package contains the library and session state which should be
independent of any UI layer (web, CLI, etc.). Network access goes through the
catalog client; nothing in here renders anything.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `echoplay.core.library`).
"""

from __future__ import annotations

__all__: list[str] = [
    "AuthenticationError",
    "CatalogError",
    "ConflictError",
    "CoreError",
    "InvalidInputError",
    "NotFoundError",
    "PlaybackRejectedError",
    "RequestRejectedError",
    "ResponseFormatError",
    "TransportError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class InvalidInputError(CoreError, ValueError):
    """Raised synchronously when an operation is called with unusable input."""


class NotFoundError(CoreError):
    """Raised when a track or playlist cannot be found in the current view."""


class PlaybackRejectedError(CoreError):
    """Raised by an audio device that refused to start playback (e.g. autoplay policy)."""


class CatalogError(CoreError):
    """Base class for failures talking to the catalog backend."""


class TransportError(CatalogError):
    """No usable response: connection refused, DNS failure, timeout."""


class AuthenticationError(CatalogError):
    """The session token is missing, invalid or expired."""


class ConflictError(CatalogError):
    """The backend refused a change because it is already in effect."""


class RequestRejectedError(CatalogError):
    """The backend answered with an error status we have no special meaning for."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class ResponseFormatError(CatalogError):
    """The backend answered successfully but with a body we cannot interpret."""
