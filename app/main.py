from __future__ import annotations
import logging
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

from datastore.record_store import build_default_store
from logging_config import configure_logging
from services.acceptor import SessionServer
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@contextmanager
def lifespan(server: SessionServer) -> Iterator[SessionServer]:
    server.start()
    try:
        yield server
    finally:
        server.shutdown()


def create_server(settings: Optional[Settings] = None) -> SessionServer:
    """Wire the shared store into a server.

    The store is initialized before anything binds, so a store that cannot be
    created raises ``StoreInitializationError`` and no connection is ever
    accepted.
    """
    configure_logging()
    settings = settings or get_settings()
    store = build_default_store(settings.store_path)
    store.ensure_initialized()
    return SessionServer(
        store=store,
        host=settings.host,
        port=settings.port,
        max_sessions=settings.max_sessions,
        shutdown_grace=settings.shutdown_grace,
    )


def _interrupt(_signum: int, _frame: object) -> None:
    raise KeyboardInterrupt


def run(settings: Optional[Settings] = None) -> None:
    """Serve until SIGINT or SIGTERM, then drain sessions."""
    server = create_server(settings)
    signal.signal(signal.SIGTERM, _interrupt)
    with lifespan(server):
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutdown signal received")
