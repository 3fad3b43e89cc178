"""
TCP file server — the offering side of a netcp session.

The server binds one address, accepts exactly one connection, offers every
file it was given in order, and then shuts down.  There is no accept loop:
a second receiver needs a second invocation.
"""

import logging
import socket
from typing import Sequence

from .config import CHUNK_SIZE, IDLE_TIMEOUT_MS
from .errors import FilesystemError, TransportError
from .session import SendSession, SessionReport, TransferObserver, outgoing_name
from .stream import TimedStream

logger = logging.getLogger(__name__)


def check_files(paths: Sequence[str]) -> None:
    """Open and close every path so an unreadable file fails before binding."""
    for path in paths:
        outgoing_name(path)
        try:
            with open(path, "rb"):
                pass
        except OSError as e:
            raise FilesystemError(
                f"File doesn't exist or is not accessible ({path})"
            ) from e


class FileServer:
    """Serve a fixed list of files to the first peer that connects."""

    def __init__(
        self,
        address: tuple[str, int],
        paths: Sequence[str],
        *,
        idle_timeout_ms: int = IDLE_TIMEOUT_MS,
        chunk_size: int = CHUNK_SIZE,
        observer: TransferObserver | None = None,
    ):
        check_files(paths)
        self.address = address
        self.paths = list(paths)
        self.idle_timeout_ms = idle_timeout_ms
        self.chunk_size = chunk_size
        self.observer = observer or TransferObserver()
        self._sock: socket.socket | None = None
        self._stream: TimedStream | None = None
        self._stopped = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind(self) -> tuple[str, int]:
        """Bind and listen; returns the bound (host, port)."""
        host, port = self.address
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
            sock.listen(1)
        except OSError as e:
            sock.close()
            raise TransportError(f"Couldn't listen on {host}:{port} ({e})") from e
        self._sock = sock
        bound = sock.getsockname()[:2]
        logger.debug("Listening on %s:%d", bound[0], bound[1])
        return bound

    def stop(self) -> None:
        """Close the listener and any open session; blocked I/O then fails."""
        self._stopped = True
        if self._sock:
            _close_listener(self._sock)
            self._sock = None
        if self._stream:
            self._stream.close()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def serve_once(self) -> SessionReport:
        """Accept one receiver, offer every file, and close the listener."""
        if self._stopped:
            raise TransportError("Server was stopped")
        listener = self._sock
        if listener is None:
            self.bind()
            listener = self._sock
        try:
            conn, addr = listener.accept()
        except OSError as e:
            raise TransportError(f"Couldn't accept a client ({e})") from e
        finally:
            _close_listener(listener)
            self._sock = None
        logger.debug("Connection from %s", addr)

        self._stream = TimedStream(conn, self.idle_timeout_ms)
        with self._stream as stream:
            return SendSession(
                stream,
                self.paths,
                chunk_size=self.chunk_size,
                observer=self.observer,
            ).run()


def _close_listener(sock: socket.socket) -> None:
    # close() alone does not wake a thread blocked in accept() on Linux.
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()
