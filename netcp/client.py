"""
TCP client — the requesting side of a netcp session.

The client connects to a sender, announces itself with the callsign and
then accepts every offered file it can create in its destination
directory.  Offers it cannot create (bad name, permission, existing file
with overwrite disabled) are declined one by one; the session goes on.
"""

import logging
import os
import re
import socket
from typing import BinaryIO

from .config import CHUNK_SIZE, CONNECT_TIMEOUT, IDLE_TIMEOUT_MS
from .errors import FilesystemError, TransportError
from .session import FileCreator, ReceiveSession, SessionReport, TransferObserver
from .stream import TimedStream

logger = logging.getLogger(__name__)

# Windows reserved device names that must never be used as filenames.
_WINDOWS_RESERVED = re.compile(
    r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE
)
_CHECK_RESERVED = os.name == "nt"


def _connect(host: str, port: int, timeout: float = CONNECT_TIMEOUT) -> socket.socket:
    """Open a TCP connection to a sender."""
    try:
        return socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise TransportError(f"Couldn't connect to {host}:{port} ({e})") from e


def format_size(size_bytes: int | float) -> str:
    """Human-readable file size."""
    for unit in ("B", "KB", "MB", "GB"):
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def safe_filename(name: str) -> str:
    """Validate an untrusted offered name.

    Offers are refused rather than renamed: a name with directory
    components, a null byte, nothing left but "." / "..", or (on Windows)
    a reserved device name raises FilesystemError.
    """
    if name in ("", ".", ".."):
        raise FilesystemError(f"Invalid file name {name!r}")
    separators = {"/", os.sep, os.altsep} - {None}
    if "\x00" in name or any(sep in name for sep in separators):
        raise FilesystemError(f"File name must not contain a path: {name!r}")
    if _CHECK_RESERVED and _WINDOWS_RESERVED.match(name):
        raise FilesystemError(f"Reserved file name {name!r}")
    return name


def file_creator(directory: str, overwrite: bool = True) -> FileCreator:
    """Return a callable that creates offered files inside *directory*."""
    mode = "wb" if overwrite else "xb"

    def create(name: str) -> BinaryIO:
        return open(os.path.join(directory, safe_filename(name)), mode)

    return create


class FileClient:
    """Fetch every file a sender offers into one directory."""

    def __init__(
        self,
        address: tuple[str, int],
        dest_dir: str,
        *,
        overwrite: bool = True,
        idle_timeout_ms: int = IDLE_TIMEOUT_MS,
        chunk_size: int = CHUNK_SIZE,
        observer: TransferObserver | None = None,
    ):
        self.address = address
        self.dest_dir = dest_dir
        self.overwrite = overwrite
        self.idle_timeout_ms = idle_timeout_ms
        self.chunk_size = chunk_size
        self.observer = observer or TransferObserver()
        self._stream: TimedStream | None = None

    def run(self) -> SessionReport:
        host, port = self.address
        sock = _connect(host, port)
        logger.debug("Connected to %s:%d", host, port)

        self._stream = TimedStream(sock, self.idle_timeout_ms)
        with self._stream as stream:
            return ReceiveSession(
                stream,
                file_creator(self.dest_dir, self.overwrite),
                chunk_size=self.chunk_size,
                observer=self.observer,
            ).run()

    def stop(self) -> None:
        """Close the connection; a blocked read then fails."""
        if self._stream:
            self._stream.close()
