"""
Web Server Module for Echoplay.

This module provides the WebServer class that creates and manages the
FastAPI application the rendering surface talks to.

The WebServer integrates:
- REST API for session, library, playlists and player controls
- Device bridge for the audio element living in the surface
- Event feed telling the surface when to re-render
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from echoplay.core import InvalidInputError, NotFoundError
from echoplay.web.feed import EventFeed
from echoplay.web.routes.api import register_api_routes
from echoplay.web.routes.device import register_device_routes
from echoplay.web.routes.events import register_event_routes

if TYPE_CHECKING:
    from echoplay.catalog.client import CatalogClient
    from echoplay.core.events import EventBus
    from echoplay.core.library import LibraryStore
    from echoplay.core.session import SessionContext
    from echoplay.player.controller import PlaybackController
    from echoplay.player.device import RemoteAudioDevice

logger = logging.getLogger(__name__)


class WebServer:
    """FastAPI-based control API for Echoplay."""

    def __init__(
        self,
        session: SessionContext,
        catalog: CatalogClient,
        library: LibraryStore,
        player: PlaybackController,
        device: RemoteAudioDevice,
        bus: EventBus | None = None,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            session: Session context (login state)
            catalog: Catalog client for login/register
            library: Library store (scope, search, playlists)
            player: Playback controller
            device: Remote audio device bridged to the surface
            bus: Event bus the surface feed listens on (defaults to the global bus)
        """
        self.session = session
        self.catalog = catalog
        self.library = library
        self.player = player
        self.device = device
        self.feed = EventFeed(bus)

        self.app = FastAPI(
            title="Echoplay",
            description="Music streaming client control API",
            version="0.1.0",
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 8765

        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes and error mappings with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "app": "echoplay"}

        @self.app.exception_handler(InvalidInputError)
        async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
            return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.app.exception_handler(NotFoundError)
        async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
            return JSONResponse(status_code=404, content={"detail": str(exc)})

        register_api_routes(
            self.app,
            session=self.session,
            catalog=self.catalog,
            library=self.library,
            player=self.player,
        )
        register_device_routes(self.app, device=self.device, player=self.player)
        register_event_routes(self.app, feed=self.feed)

    async def start(self, host: str = "127.0.0.1", port: int = 8765) -> None:
        """
        Start the web server.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port
        await self.feed.attach()

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Control API started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None
        if self._serve_task is not None:
            await self._serve_task
            self._serve_task = None
        await self.feed.detach()

        logger.info("Control API stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
