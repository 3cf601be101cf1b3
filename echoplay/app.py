"""
Echoplay - Main Application Module

This module contains the EchoApp class that wires the client components
together and manages the application lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

import httpx

from echoplay.catalog.client import CatalogClient
from echoplay.config import ClientConfig, get_client_config
from echoplay.core.events import Event, EventBus, event_bus
from echoplay.core.library import LibraryStore
from echoplay.core.models import Scope
from echoplay.core.session import SessionContext
from echoplay.core.session_db import SessionDb
from echoplay.player.controller import PlaybackController
from echoplay.player.device import RemoteAudioDevice
from echoplay.web.server import WebServer

logger = logging.getLogger(__name__)


class EchoApp:
    """
    Echoplay client that coordinates all components.

    The app manages:
    - Session context (persisted in SQLite)
    - Catalog client for the remote backend
    - Library store (displayed tracks, search, playlists)
    - Playback controller driving the remote audio device
    - Web server exposing the control API to the rendering surface

    A new session loads Home and the playlist list; an ended session
    (logout or a rejected token) clears the library and stops playback.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        bus: EventBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: Client configuration (defaults to the bundled client.toml).
            bus: Event bus shared by all components (defaults to the global bus).
            transport: Optional httpx transport for the catalog client.
        """
        self.config = config or get_client_config()
        self.bus = bus or event_bus

        self.session_db = SessionDb(db_path=Path(self.config.session.db_path))
        self.session = SessionContext(db=self.session_db, bus=self.bus)

        self.catalog = CatalogClient(
            self.session,
            base_url=self.config.backend.base_url,
            timeout=self.config.backend.request_timeout,
            transport=transport,
        )
        self.library = LibraryStore(self.catalog, self.session, bus=self.bus)

        self.device = RemoteAudioDevice(
            play_confirm_timeout=self.config.playback.play_confirm_timeout,
        )
        self.player = PlaybackController(
            self.device,
            bus=self.bus,
            volume=self.config.playback.default_volume,
        )

        self.web_server = WebServer(
            session=self.session,
            catalog=self.catalog,
            library=self.library,
            player=self.player,
            device=self.device,
            bus=self.bus,
        )

        self._running = False
        self._subscribed = False
        self._shutdown_event: asyncio.Event | None = None

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def login(self, username: str, password: str) -> None:
        """
        Log in and load Home plus the playlist list.

        Raises:
            AuthenticationError: Credentials were refused.
            CatalogError: The backend could not be reached or answered badly.
        """
        token = await self.catalog.login(username, password)
        await self.session.establish(token, username)

    async def register(self, username: str, email: str, password: str) -> None:
        """Create an account. Does not log in."""
        await self.catalog.register(username, email, password)

    async def logout(self) -> None:
        await self.session.logout()

    async def _on_session_started(self, event: Event) -> None:
        await self.library.set_scope(Scope.home())
        await self.library.refresh_playlists()

    async def _on_session_invalidated(self, event: Event) -> None:
        await self.player.stop()
        await self.library.reset()

    async def attach(self) -> None:
        """
        Subscribe to session events and start the surface feed.

        Done by start(); exposed for embedding.
        """
        if self._subscribed:
            return
        await self.bus.subscribe("session.started", self._on_session_started)
        await self.bus.subscribe("session.invalidated", self._on_session_invalidated)
        await self.web_server.feed.attach()
        self._subscribed = True

    async def detach(self) -> None:
        if not self._subscribed:
            return
        await self.bus.unsubscribe("session.started", self._on_session_started)
        await self.bus.unsubscribe("session.invalidated", self._on_session_invalidated)
        await self.web_server.feed.detach()
        self._subscribed = False

    # =========================================================================
    # Application lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Open storage, restore any saved session and start the control API."""
        logger.info("Starting Echoplay (backend %s)", self.catalog.base_url)

        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.session_db.open()
        await self.session_db.ensure_schema()

        await self.attach()
        if not await self.session.restore():
            logger.info("No saved session; waiting for login")

        await self.web_server.start(host=self.config.web.host, port=self.config.web.port)

        logger.info("Echoplay started successfully")

    async def stop(self) -> None:
        """Stop all components gracefully."""
        if not self._running:
            return

        logger.info("Stopping Echoplay...")
        self._running = False

        await self.web_server.stop()
        await self.detach()
        await self.catalog.close()

        # Close session DB last, after nothing can write to it.
        await self.session_db.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("Echoplay stopped")

    async def run(self) -> None:
        """
        Run until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM).
        """
        await self.start()

        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the app is currently running."""
        return self._running
