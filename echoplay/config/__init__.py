"""
Configuration management for Echoplay.

This module loads the client configuration (backend URL, session storage,
playback defaults, control API address) from a TOML file.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent


@dataclass
class BackendConfig:
    """Where the catalog backend lives."""

    base_url: str = "https://echo-backend-0rw1.onrender.com"
    request_timeout: float = 15.0


@dataclass
class SessionConfig:
    """Session persistence."""

    db_path: str = "echoplay-session.sqlite3"


@dataclass
class PlaybackConfig:
    """Playback defaults."""

    default_volume: float = 0.7
    play_confirm_timeout: float = 10.0


@dataclass
class WebConfig:
    """Control API address."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class ClientConfig:
    """Loaded client configuration."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    web: WebConfig = field(default_factory=WebConfig)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def _parse_config(data: dict[str, Any]) -> ClientConfig:
    """Build a ClientConfig from parsed TOML, falling back to defaults per key."""
    backend = _section(data, "backend")
    session = _section(data, "session")
    playback = _section(data, "playback")
    web = _section(data, "web")

    defaults = ClientConfig()

    return ClientConfig(
        backend=BackendConfig(
            base_url=str(backend.get("base_url", defaults.backend.base_url)),
            request_timeout=float(backend.get("request_timeout", defaults.backend.request_timeout)),
        ),
        session=SessionConfig(
            db_path=str(session.get("db_path", defaults.session.db_path)),
        ),
        playback=PlaybackConfig(
            default_volume=float(playback.get("default_volume", defaults.playback.default_volume)),
            play_confirm_timeout=float(
                playback.get("play_confirm_timeout", defaults.playback.play_confirm_timeout)
            ),
        ),
        web=WebConfig(
            host=str(web.get("host", defaults.web.host)),
            port=int(web.get("port", defaults.web.port)),
        ),
    )


def load_client_config(config_path: Path | None = None) -> ClientConfig:
    """
    Load client configuration from a TOML file.

    Args:
        config_path: Path to the TOML file. If None, uses client.toml next to
            this module. A missing file yields the defaults.

    Returns:
        Loaded ClientConfig instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "client.toml"

    if not config_path.exists():
        logger.debug("No config at %s, using defaults", config_path)
        return ClientConfig()

    logger.debug("Loading client config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return _parse_config(data)


# Global singleton instance (lazy loaded)
_client_config: ClientConfig | None = None


def get_client_config() -> ClientConfig:
    """
    Get the global client configuration (lazy loaded singleton).

    Returns:
        The ClientConfig instance.
    """
    global _client_config

    if _client_config is None:
        _client_config = load_client_config()

    return _client_config


def reload_client_config(config_path: Path | None = None) -> ClientConfig:
    """
    Force reload of client configuration.

    Returns:
        The newly loaded ClientConfig instance.
    """
    global _client_config
    _client_config = load_client_config(config_path)
    return _client_config
