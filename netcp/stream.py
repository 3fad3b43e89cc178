"""
Timed stream I/O — exact-length reads and writes over a connected socket.

A call only fails for lack of progress: every attempt that moves at least
one byte pushes the deadline out by another idle window, so a slow but
steady peer never times out while a stalled one is caught after
IDLE_TIMEOUT_MS.

    last_progress ──[attempt moves n > 0]──> last_progress = now
    last_progress ──[now - last_progress > idle]──> IdleTimeoutError
"""

import logging
import socket
import time

from .config import IDLE_TIMEOUT_MS
from .errors import IdleTimeoutError, TransportError

logger = logging.getLogger(__name__)


class TimedStream:
    """A connected socket whose reads and writes are exact and idle-bounded."""

    def __init__(self, sock: socket.socket, idle_timeout_ms: int = IDLE_TIMEOUT_MS):
        self.sock = sock
        self.idle_timeout_ms = idle_timeout_ms

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def peer_name(self) -> str:
        try:
            host, port = self.sock.getpeername()[:2]
        except OSError:
            return "unknown peer"
        if ":" in host:
            return f"[{host}]:{port}"
        return f"{host}:{port}"

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected; closing is all that is left to do.
            pass
        self.sock.close()

    def __enter__(self) -> "TimedStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Exact I/O
    # ------------------------------------------------------------------

    def read_exact(self, num_bytes: int) -> bytes:
        """Read exactly *num_bytes* from the peer."""
        buf = bytearray(num_bytes)
        self.read_into(memoryview(buf))
        return bytes(buf)

    def read_into(self, view: memoryview) -> None:
        """Fill *view* completely with bytes from the peer."""
        total = len(view)
        received = 0
        last_progress = time.monotonic()
        while received < total:
            remaining = self._remaining(last_progress, "receiving", received, total)
            try:
                self.sock.settimeout(remaining)
                count = self.sock.recv_into(view[received:])
            except socket.timeout:
                continue
            except OSError as e:
                raise TransportError(f"Connection lost ({e})") from e
            if count == 0:
                raise TransportError(
                    f"Connection closed by peer after {received}/{total} bytes"
                )
            received += count
            last_progress = time.monotonic()

    def write_exact(self, data: bytes | memoryview) -> None:
        """Write every byte of *data* to the peer."""
        view = memoryview(data)
        total = len(view)
        sent = 0
        last_progress = time.monotonic()
        while sent < total:
            remaining = self._remaining(last_progress, "sending", sent, total)
            try:
                self.sock.settimeout(remaining)
                count = self.sock.send(view[sent:])
            except socket.timeout:
                continue
            except OSError as e:
                raise TransportError(f"Connection lost ({e})") from e
            if count:
                sent += count
                last_progress = time.monotonic()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _remaining(self, last_progress: float, action: str, done: int, total: int) -> float:
        """Seconds left in the idle window for the next attempt."""
        remaining = self.idle_timeout_ms / 1000 - (time.monotonic() - last_progress)
        if remaining <= 0:
            logger.warning(
                "Peer %s stalled while %s (%d/%d bytes)",
                self.peer_name, action, done, total,
            )
            raise IdleTimeoutError(
                f"Connection lost (timeout after {self.idle_timeout_ms} ms "
                f"without progress, {done}/{total} bytes)"
            )
        return remaining
