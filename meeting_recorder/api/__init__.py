"""
Local control API for a running recorder.
"""

import contextlib

import uvicorn
from fastapi import FastAPI

from meeting_recorder import __version__
from .endpoints import router


def create_control_app(orchestrator) -> FastAPI:
    """Create the FastAPI app bound to one orchestrator."""
    app = FastAPI(
        title="Meeting Recorder Control API",
        version=__version__,
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the recorder."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def create_control_server(orchestrator, host: str, port: int, log_level: str = "info") -> uvicorn.Server:
    """
    Build a uvicorn server for the control API.

    The caller runs `await server.serve()` as a task on the recorder's loop
    and sets `server.should_exit = True` when the run finishes.
    """
    config = uvicorn.Config(
        create_control_app(orchestrator),
        host=host,
        port=port,
        log_level=log_level.lower(),
    )
    return EmbeddedServer(config)


__all__ = ["create_control_app", "create_control_server"]
