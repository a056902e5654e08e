"""Connection acceptor feeding a bounded pool of session workers."""

from __future__ import annotations

import itertools
import logging
import socket
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import suppress
from threading import Event, Lock
from typing import Dict, Optional, Tuple

from protocol.channel import MessageChannel
from services.session import CollectionSession, RecordSink, SessionStage
from services.validation import FieldValidator

logger = logging.getLogger(__name__)

_ACCEPT_POLL_SECONDS = 0.5


class SessionServer:
    """Accepts TCP connections and runs one :class:`CollectionSession` each.

    At most ``max_sessions`` dialogs run at once; further connections wait in
    the executor queue until a worker frees up. Workers block on the client
    with no timeout, so idle clients hold their slot until they disconnect
    or the server shuts down.
    """

    def __init__(
        self,
        store: RecordSink,
        host: str = "127.0.0.1",
        port: int = 8080,
        max_sessions: int = 4,
        shutdown_grace: float = 10.0,
        validator: Optional[FieldValidator] = None,
    ) -> None:
        self.store = store
        self.host = host
        self.port = port
        self.max_sessions = max_sessions
        self.shutdown_grace = shutdown_grace
        self.validator = validator or FieldValidator()
        self.executor = ThreadPoolExecutor(
            max_workers=max_sessions, thread_name_prefix="session"
        )
        self._listener: Optional[socket.socket] = None
        self._stopping = Event()
        self._ids = itertools.count(1)
        self._futures: Dict[str, Future[SessionStage]] = {}
        self._connections: Dict[str, socket.socket] = {}
        self._futures_lock = Lock()

    @property
    def address(self) -> Tuple[str, int]:
        if self._listener is None:
            raise RuntimeError("Server has not been started.")
        host, port = self._listener.getsockname()[:2]
        return host, port

    @property
    def active_sessions(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def start(self) -> None:
        """Bind the listening socket; port ``0`` picks a free port."""
        if self._listener is not None or self._stopping.is_set():
            return
        listener = socket.create_server((self.host, self.port))
        listener.settimeout(_ACCEPT_POLL_SECONDS)
        self._listener = listener
        host, port = self.address
        logger.info(
            "Listening on %s:%s (max %d concurrent sessions)", host, port, self.max_sessions
        )

    def serve_forever(self) -> None:
        """Accept connections until :meth:`shutdown` is called."""
        self.start()
        # shutdown() clears the attribute from another thread
        listener = self._listener
        if listener is None:
            return
        while not self._stopping.is_set():
            try:
                conn, _address = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stopping.is_set():
                    break
                logger.error("Failed to accept connection", extra={"reason": str(exc)})
                continue
            self._dispatch(conn)

    def shutdown(self) -> None:
        """Stop accepting, drain sessions for ``shutdown_grace`` seconds, then force-close."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        logger.info("Shutting down; no longer accepting connections")
        self._close_listener()

        with self._futures_lock:
            pending = list(self._futures.values())
        if pending:
            logger.info(
                "Waiting for in-flight sessions",
                extra={"active_sessions": len(pending)},
            )
            _done, not_done = wait(pending, timeout=self.shutdown_grace)
            if not_done:
                logger.warning(
                    "Grace period elapsed; closing remaining connections",
                    extra={"active_sessions": len(not_done)},
                )
                self._force_close_connections()

        self.executor.shutdown(wait=True, cancel_futures=True)
        logger.info("Server shutdown complete")

    def _dispatch(self, conn: socket.socket) -> None:
        session_id = str(next(self._ids))
        conn.settimeout(None)
        channel = MessageChannel(conn)
        with self._futures_lock:
            if self._stopping.is_set():
                channel.close()
                return
            self._connections[session_id] = conn
            future = self.executor.submit(self._run_session, session_id, channel)
            self._futures[session_id] = future
        future.add_done_callback(lambda _f, sid=session_id: self._release(sid))
        logger.info(
            "Accepted connection",
            extra={"session_id": session_id, "peer": channel.peer},
        )

    def _run_session(self, session_id: str, channel: MessageChannel) -> SessionStage:
        session = CollectionSession(
            channel=channel,
            store=self.store,
            validator=self.validator,
            session_id=session_id,
        )
        return session.run()

    def _release(self, session_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(session_id, None)
            conn = self._connections.pop(session_id, None)
        if conn is not None:
            # queued sessions cancelled at shutdown never ran, so close here too
            conn.close()

    def _force_close_connections(self) -> None:
        with self._futures_lock:
            connections = list(self._connections.values())
        for conn in connections:
            with suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)

    def _close_listener(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()
