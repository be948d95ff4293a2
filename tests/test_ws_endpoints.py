"""
WebSocket / HTTP endpoint tests against the full app with a fake tmux.
"""

import itertools
import logging
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from main import create_app
from watchtower.config import Config
from watchtower.tmux_bridge import parse_pane_line


@pytest.fixture
def mock_bridge():
    """TmuxBridge のモック: capture するたびに内容が変わる"""
    counter = itertools.count()
    instance = MagicMock()
    instance.list_panes.return_value = [parse_pane_line("gt-main:0.0:zsh:80:24")]
    instance.capture_pane.side_effect = lambda identity: f"tick {next(counter)}\n"
    return instance


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / "index.html").write_text("<!DOCTYPE html><html><body>watchtower</body></html>")
    return tmp_path


@pytest.fixture
def client(mock_bridge, static_dir):
    config = Config(poll_interval=0.01, static_dir=static_dir)
    app = create_app(config=config, tmux=mock_bridge)
    with TestClient(app) as test_client:
        yield test_client


class TestWsEndpoint:
    """/ws WebSocketエンドポイントのテスト"""

    def test_first_frame_is_pane_list(self, client):
        with client.websocket_connect("/ws") as ws:
            data = ws.receive_json()
            assert data["type"] == "pane_list"
            assert isinstance(data["panes"], list)

    def test_receives_pane_updates(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()  # pane_list
            data = ws.receive_json()

            assert data["type"] == "pane_update"
            assert (data["session"], data["window"], data["pane"]) == ("gt-main", "0", "0")
            assert data["content"].startswith("tick ")
            assert data["size"] == {"cols": 80, "rows": 24}
            assert "fingerprint" not in data

    def test_client_frames_are_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("hello server")
            assert ws.receive_json()["type"] == "pane_update"

    def test_disconnect_unregisters(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

        hub = client.app.state.hub
        for _ in range(500):
            if not hub.clients:
                break
            time.sleep(0.01)
        assert hub.clients == set()


class TestHttp:
    def test_api_panes(self, client):
        # wait for the first sample
        for _ in range(200):
            data = client.get("/api/panes").json()
            if data["panes"]:
                break
            time.sleep(0.01)
        assert data["type"] == "pane_list"
        assert data["panes"] == [
            {"session": "gt-main", "window": "0", "pane": "0", "title": "zsh", "cols": 80, "rows": 24}
        ]

    def test_index_served_from_static_dir(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"watchtower" in response.content

    def test_unknown_static_path_404(self, client):
        assert client.get("/missing.js").status_code == 404

    def test_ui_served_once_static_dir_appears(self, mock_bridge, tmp_path):
        """A missing UI build answers 404 until the directory is created."""
        dist = tmp_path / "dist"
        config = Config(poll_interval=0.01, static_dir=dist)
        app = create_app(config=config, tmux=mock_bridge)
        with TestClient(app) as test_client:
            assert test_client.get("/").status_code == 404
            assert test_client.get("/api/panes").status_code == 200

            dist.mkdir()
            (dist / "index.html").write_text("<html><body>built later</body></html>")

            response = test_client.get("/")
            assert response.status_code == 200
            assert b"built later" in response.content


class TestLogging:
    def test_create_app_applies_log_level(self, mock_bridge, tmp_path):
        """Logging is configured when the app is built, not only by run()."""
        watchtower_logger = logging.getLogger("watchtower")
        previous = watchtower_logger.level
        try:
            create_app(
                config=Config(static_dir=tmp_path, log_level="WARNING"),
                tmux=mock_bridge,
            )
            assert watchtower_logger.level == logging.WARNING
        finally:
            watchtower_logger.setLevel(previous)
