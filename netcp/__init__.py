"""
netcp - peer-to-peer file copy over a single TCP connection.

One side listens and serves the files named on its command line, the other
connects and pulls every offered file into its working directory.
"""

__version__ = "0.1.0"

from .client import FileClient, format_size
from .codec import (
    Agreement,
    FileHeader,
    Marker,
    recv_string,
    recv_token,
    recv_u64,
    send_string,
    send_token,
    send_u64,
)
from .config import (
    CALLSIGN,
    CHUNK_SIZE,
    DEFAULT_PORT,
    IDLE_TIMEOUT_MS,
)
from .errors import (
    ArgumentError,
    FilesystemError,
    HandshakeError,
    IdleTimeoutError,
    NetcpError,
    ProtocolError,
    TransportError,
)
from .server import FileServer
from .session import ReceiveSession, SendSession, SessionReport, TransferObserver
from .stream import TimedStream
from .transfer import stream_in, stream_out

__all__ = [
    "CALLSIGN",
    "CHUNK_SIZE",
    "DEFAULT_PORT",
    "IDLE_TIMEOUT_MS",
    "TimedStream",
    "send_u64",
    "recv_u64",
    "send_string",
    "recv_string",
    "send_token",
    "recv_token",
    "Agreement",
    "Marker",
    "FileHeader",
    "stream_out",
    "stream_in",
    "SendSession",
    "ReceiveSession",
    "SessionReport",
    "TransferObserver",
    "FileServer",
    "FileClient",
    "format_size",
    "NetcpError",
    "TransportError",
    "IdleTimeoutError",
    "ProtocolError",
    "HandshakeError",
    "FilesystemError",
    "ArgumentError",
]
