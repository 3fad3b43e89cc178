"""
Session protocol — the two roles of a netcp exchange.

Sender (listening side)                 Receiver (connecting side)
  expect callsign              <──────    send callsign
  send AGREE                   ──────>    expect AGREE (else "No server found")
  for each file:
    send FILE, size, name      ──────>    read marker, size, name
    expect answer              <──────    create file ? AGREE : DISAGREE
    on AGREE: payload          ──────>    on AGREE: receive payload
  send END                     ──────>    read marker == END, done

The exchange is strictly half-duplex and every field arrives in a fixed
order, so any unexpected token ends the session with a ProtocolError.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Sequence

from typing_extensions import Callable

from .codec import (
    Agreement,
    FileHeader,
    Marker,
    expect_callsign,
    recv_file_header,
    recv_token,
    send_callsign,
    send_file_header,
    send_token,
)
from .config import CALLSIGN, CHUNK_SIZE
from .errors import FilesystemError, HandshakeError
from .stream import TimedStream
from .transfer import file_size, stream_in, stream_out

logger = logging.getLogger(__name__)

FileCreator = Callable[[str], BinaryIO]


@dataclass(slots=True)
class SessionReport:
    transferred: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    bytes_transferred: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s


class TransferObserver:
    """Hooks called as a session progresses.  All of them do nothing here;
    the console and the dashboard override what they display."""

    def connected(self, peer: str) -> None:
        pass

    def file_offered(self, name: str, size: int) -> None:
        pass

    def file_started(self, name: str, size: int) -> None:
        pass

    def file_progress(self, name: str, current: int, total: int) -> None:
        pass

    def file_finished(self, name: str, size: int) -> None:
        pass

    def file_skipped(self, name: str, reason: str) -> None:
        pass

    def session_finished(self, report: SessionReport) -> None:
        pass


def outgoing_name(path: str) -> str:
    """The name a file is offered under: its basename, which must be UTF-8."""
    name = os.path.basename(path)
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise FilesystemError(f"Couldn't convert filename to utf8 ({path!r})") from None
    return name


# ======================================================================
# Sender role
# ======================================================================


@dataclass(slots=True)
class SendSession:
    stream: TimedStream
    paths: Sequence[str]
    chunk_size: int = CHUNK_SIZE
    observer: TransferObserver = field(default_factory=TransferObserver)
    callsign: str = CALLSIGN

    def run(self) -> SessionReport:
        report = SessionReport()

        expect_callsign(self.stream, self.callsign)
        send_token(self.stream, Agreement.AGREE)
        logger.debug("Handshake accepted from %s", self.stream.peer_name)
        self.observer.connected(self.stream.peer_name)

        for path in self.paths:
            self._offer(path, report)

        send_token(self.stream, Marker.END)
        logger.debug("Sent END after %d file(s)", len(self.paths))

        report.end_ts = time.monotonic()
        self.observer.session_finished(report)
        return report

    def _offer(self, path: str, report: SessionReport) -> None:
        name = outgoing_name(path)
        try:
            f = open(path, "rb")
        except OSError as e:
            raise FilesystemError(f"Couldn't open file {path} ({e})") from e

        with f:
            size = file_size(f)
            send_file_header(self.stream, FileHeader(size=size, name=name))
            logger.debug("Offered %s (%d bytes)", name, size)
            self.observer.file_offered(name, size)

            if recv_token(self.stream, Agreement) is Agreement.DISAGREE:
                logger.info("Receiver declined %s", name)
                report.skipped.append(name)
                self.observer.file_skipped(name, "cancelled by client")
                return

            self.observer.file_started(name, size)
            sent = stream_out(
                self.stream,
                f,
                size,
                self.chunk_size,
                lambda current, total: self.observer.file_progress(name, current, total),
            )

        logger.info("Sent %s (%d bytes)", name, sent)
        report.transferred.append(name)
        report.bytes_transferred += sent
        self.observer.file_finished(name, sent)


# ======================================================================
# Receiver role
# ======================================================================


@dataclass(slots=True)
class ReceiveSession:
    stream: TimedStream
    create_file: FileCreator
    chunk_size: int = CHUNK_SIZE
    observer: TransferObserver = field(default_factory=TransferObserver)
    callsign: str = CALLSIGN

    def run(self) -> SessionReport:
        report = SessionReport()

        send_callsign(self.stream, self.callsign)
        if recv_token(self.stream, Agreement) is not Agreement.AGREE:
            raise HandshakeError("No server found")
        logger.debug("Handshake accepted by %s", self.stream.peer_name)
        self.observer.connected(self.stream.peer_name)

        while recv_token(self.stream, Marker) is Marker.FILE:
            self._accept(recv_file_header(self.stream), report)
        logger.debug("Received END")

        report.end_ts = time.monotonic()
        self.observer.session_finished(report)
        return report

    def _accept(self, header: FileHeader, report: SessionReport) -> None:
        name = header.name
        logger.debug("Offered %s (%d bytes)", name, header.size)
        self.observer.file_offered(name, header.size)

        try:
            f = self.create_file(name)
        except (OSError, FilesystemError) as e:
            # The sender skips the payload on DISAGREE, so nothing is left
            # to drain from the stream.
            logger.warning("Couldn't create %s: %s", name, e)
            send_token(self.stream, Agreement.DISAGREE)
            report.skipped.append(name)
            self.observer.file_skipped(name, str(e))
            return

        with f:
            send_token(self.stream, Agreement.AGREE)
            self.observer.file_started(name, header.size)
            received = stream_in(
                self.stream,
                f,
                header.size,
                self.chunk_size,
                lambda current, total: self.observer.file_progress(name, current, total),
            )

        logger.info("Received %s (%d bytes)", name, received)
        report.transferred.append(name)
        report.bytes_transferred += received
        self.observer.file_finished(name, received)
