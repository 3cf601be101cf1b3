"""
Catalog backend access for Echoplay.

This package wraps the Echo backend's HTTP API (tracks, playlists,
login/register). It holds no library state.
"""

from echoplay.catalog.client import CatalogClient

__all__ = [
    "CatalogClient",
]
