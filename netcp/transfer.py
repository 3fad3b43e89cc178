"""
Chunked file payloads.

Once an offer is agreed, exactly *size* raw bytes follow on the stream,
moved in chunks of at most *chunk_size*.  There is no per-chunk framing;
both sides count bytes against the declared size.
"""

import os
from typing import BinaryIO

from typing_extensions import Callable

from .config import CHUNK_SIZE
from .errors import FilesystemError
from .stream import TimedStream

ProgressCallback = Callable[[int, int], None]


def file_size(f: BinaryIO) -> int:
    """Size of an open seekable file; the current position is preserved."""
    try:
        current = f.tell()
        size = f.seek(0, os.SEEK_END)
        f.seek(current)
    except OSError as e:
        raise FilesystemError(f"File seeking failed ({e})") from e
    return size


def stream_out(
    stream: TimedStream,
    f: BinaryIO,
    size: int,
    chunk_size: int = CHUNK_SIZE,
    progress_callback: ProgressCallback | None = None,
) -> int:
    """
    Send *size* bytes read from *f*.  Returns the number of bytes sent.

    progress_callback: optional callable(current_bytes, total_bytes), called
    once per chunk
    """
    sent = 0
    while sent < size:
        wanted = min(chunk_size, size - sent)
        try:
            chunk = f.read(wanted)
        except OSError as e:
            raise FilesystemError(f"Couldn't read from file ({e})") from e
        if len(chunk) != wanted:
            raise FilesystemError(
                f"File shrank while sending: got {sent + len(chunk)}/{size} bytes"
            )
        stream.write_exact(chunk)
        sent += wanted
        if progress_callback:
            progress_callback(sent, size)
    return sent


def stream_in(
    stream: TimedStream,
    f: BinaryIO,
    size: int,
    chunk_size: int = CHUNK_SIZE,
    progress_callback: ProgressCallback | None = None,
) -> int:
    """
    Receive *size* bytes and write them to *f*.  Returns the number of bytes
    received.

    A failure part-way leaves whatever was written so far in *f*; the
    session is over at that point and the short file is kept as evidence.
    """
    buf = bytearray(min(chunk_size, size))
    view = memoryview(buf)
    received = 0
    while received < size:
        wanted = min(chunk_size, size - received)
        stream.read_into(view[:wanted])
        try:
            f.write(view[:wanted])
        except OSError as e:
            raise FilesystemError(f"Couldn't write to file ({e})") from e
        received += wanted
        if progress_callback:
            progress_callback(received, size)
    return received
