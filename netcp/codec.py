"""
Wire codec for the netcp protocol.

All multi-byte integers are unsigned 64-bit little-endian.  Strings carry a
u64 byte length followed by raw UTF-8, with no terminator.  Fixed tokens are
exact byte sequences:

    Agreement   8 bytes   "AGREE   " | "DISAGREE"
    Marker      4 bytes   "FILE"     | "END "
    File offer  "FILE" + [ u64 size ] + [ u64 len ][ name ]
"""

import enum
import struct
from dataclasses import dataclass

from .config import (
    CALLSIGN,
    MAX_STRING_LENGTH,
    MSG_AGREE,
    MSG_DISAGREE,
    MSG_END,
    MSG_FILE,
)
from .errors import ProtocolError
from .stream import TimedStream

_U64 = struct.Struct("<Q")


# ---------------------------------------------------------------------------
# Integers and strings
# ---------------------------------------------------------------------------


def send_u64(stream: TimedStream, value: int) -> None:
    try:
        data = _U64.pack(value)
    except struct.error as e:
        raise ValueError(f"value does not fit in a u64: {value!r}") from e
    stream.write_exact(data)


def recv_u64(stream: TimedStream) -> int:
    return _U64.unpack(stream.read_exact(_U64.size))[0]


def send_string(stream: TimedStream, text: str) -> None:
    """Send *text* as a u64 byte length followed by its UTF-8 bytes."""
    data = text.encode("utf-8")
    send_u64(stream, len(data))
    stream.write_exact(data)


def recv_string(stream: TimedStream) -> str:
    """Receive a length-prefixed UTF-8 string.

    Raises ProtocolError if the declared length exceeds MAX_STRING_LENGTH
    or the bytes are not valid UTF-8.
    """
    length = recv_u64(stream)
    if length > MAX_STRING_LENGTH:
        raise ProtocolError(
            f"String field too large: {length} bytes (max {MAX_STRING_LENGTH})"
        )
    raw = stream.read_exact(length)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError("Couldn't convert bytes to string") from e


# ---------------------------------------------------------------------------
# Fixed tokens
# ---------------------------------------------------------------------------


class Token(enum.Enum):
    """A closed family of same-width byte tokens."""

    @classmethod
    def width(cls) -> int:
        return len(next(iter(cls)).value)

    @classmethod
    def decode(cls, raw: bytes) -> "Token":
        try:
            return cls(bytes(raw))
        except ValueError:
            raise ProtocolError(
                f"Invalid protocol: unexpected {cls.__name__.lower()} {bytes(raw)!r}"
            ) from None


class Agreement(Token):
    AGREE = MSG_AGREE
    DISAGREE = MSG_DISAGREE


class Marker(Token):
    FILE = MSG_FILE
    END = MSG_END


def send_token(stream: TimedStream, token: Token) -> None:
    stream.write_exact(token.value)


def recv_token(stream: TimedStream, family: type[Token]) -> Token:
    """Read one token of *family*; anything else is a ProtocolError."""
    return family.decode(stream.read_exact(family.width()))


def send_callsign(stream: TimedStream, callsign: str = CALLSIGN) -> None:
    stream.write_exact(callsign.encode("ascii"))


def expect_callsign(stream: TimedStream, callsign: str = CALLSIGN) -> None:
    expected = callsign.encode("ascii")
    raw = stream.read_exact(len(expected))
    if raw != expected:
        raise ProtocolError(f"Invalid protocol: unexpected callsign {raw!r}")


# ---------------------------------------------------------------------------
# File offer
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileHeader:
    size: int
    name: str


def send_file_header(stream: TimedStream, header: FileHeader) -> None:
    """Announce a file: FILE marker, then size, then name."""
    send_token(stream, Marker.FILE)
    send_u64(stream, header.size)
    send_string(stream, header.name)


def recv_file_header(stream: TimedStream) -> FileHeader:
    """Read size and name of an offer whose FILE marker was already consumed."""
    size = recv_u64(stream)
    name = recv_string(stream)
    return FileHeader(size=size, name=name)
