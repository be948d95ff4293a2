import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.staticfiles import StaticFiles

from watchtower.collector import Collector
from watchtower.config import Config, load_config
from watchtower.hub import Hub
from watchtower.messages import PaneListMessage, pane_list_message
from watchtower.runtime import TmuxRuntime
from watchtower.tmux_bridge import TmuxBridge

logger = logging.getLogger("watchtower")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    # Reduce HTTP noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchtower").setLevel(getattr(logging, level, logging.INFO))


class UIFiles(StaticFiles):
    """Static UI that answers 404 until its directory exists."""

    async def check_config(self) -> None:
        if self.directory is not None and not os.path.isdir(self.directory):
            # not cached, so a UI built after startup is picked up
            raise HTTPException(status_code=404)
        await super().check_config()


def create_app(config: Config | None = None, tmux: TmuxBridge | None = None) -> FastAPI:
    """Build the Watchtower app. ``tmux`` replaces the real bridge in tests."""
    config = config or load_config()
    setup_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown hooks."""
        # Startup
        bridge = tmux or TmuxBridge(
            socket_path=config.socket_path, session_filter=config.session_filter
        )
        runtime = TmuxRuntime(max_workers=config.thread_pool_workers)
        collector = Collector(
            tmux=bridge, runtime=runtime, poll_interval=config.poll_interval
        )
        hub = Hub(collector=collector)

        hub.start()
        hub.start_forwarder()
        collector.start()

        app.state.tmux_bridge = bridge
        app.state.runtime = runtime
        app.state.collector = collector
        app.state.hub = hub

        logger.info("Watchtower server starting on %s:%d", config.host, config.port)
        logger.info("WebSocket endpoint: ws://localhost:%d/ws", config.port)
        logger.info("Polling tmux sessions matching: %s", config.session_filter or "*")

        yield

        # Shutdown
        logger.info("Shutting down...")
        collector.stop()
        await collector.wait_closed()
        await hub.stop()
        runtime.shutdown()

    app = FastAPI(title="Watchtower", lifespan=lifespan)
    app.state.config = config

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint streaming pane_list and pane_update frames."""
        await websocket.app.state.hub.serve(websocket)

    @app.get("/api/panes", response_model=PaneListMessage)
    async def get_panes(request: Request):
        """Return the current pane list, same shape as the initial frame."""
        return pane_list_message(request.app.state.collector.panes())

    if not config.static_dir.is_dir():
        logger.warning("Static directory %s not found, UI not served yet", config.static_dir)
    app.mount(
        "/",
        UIFiles(directory=config.static_dir, html=True, check_dir=False),
        name="static",
    )

    return app


app = create_app()


def run() -> None:
    config = app.state.config
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    run()
