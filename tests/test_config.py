"""
Tests for echoplay.config.
"""

from __future__ import annotations

from pathlib import Path

from echoplay.config import (
    ClientConfig,
    get_client_config,
    load_client_config,
    reload_client_config,
)


class TestLoadClientConfig:
    """Tests for TOML loading."""

    def test_bundled_defaults(self) -> None:
        config = load_client_config()
        assert config.backend.base_url == "https://echo-backend-0rw1.onrender.com"
        assert config.playback.default_volume == 0.7
        assert config.web.port == 8765

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_client_config(tmp_path / "nope.toml") == ClientConfig()

    def test_partial_file(self, tmp_path: Path) -> None:
        path = tmp_path / "client.toml"
        path.write_text(
            '[backend]\nbase_url = "http://localhost:5000"\n\n[web]\nport = 9001\n',
            encoding="utf-8",
        )

        config = load_client_config(path)

        assert config.backend.base_url == "http://localhost:5000"
        assert config.backend.request_timeout == 15.0
        assert config.web.port == 9001
        assert config.web.host == "127.0.0.1"
        assert config.session.db_path == "echoplay-session.sqlite3"

    def test_malformed_section_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "client.toml"
        path.write_text('playback = "loud"\n', encoding="utf-8")
        assert load_client_config(path).playback.default_volume == 0.7


def test_reload_replaces_singleton(tmp_path: Path) -> None:
    path = tmp_path / "client.toml"
    path.write_text("[playback]\ndefault_volume = 0.3\n", encoding="utf-8")

    try:
        reloaded = reload_client_config(path)
        assert reloaded.playback.default_volume == 0.3
        assert get_client_config() is reloaded
    finally:
        reload_client_config()
