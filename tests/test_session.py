"""
Tests for session.py — both roles driven against each other, and each role
driven against a scripted peer that misbehaves.
"""

import threading

import pytest

from netcp.codec import FileHeader, send_file_header
from netcp.config import CALLSIGN
from netcp.errors import HandshakeError, ProtocolError, TransportError
from netcp.session import ReceiveSession, SendSession, TransferObserver
from netcp.stream import TimedStream


class RecordingObserver(TransferObserver):
    def __init__(self):
        self.events = []

    def connected(self, peer):
        self.events.append(("connected",))

    def file_started(self, name, size):
        self.events.append(("started", name, size))

    def file_finished(self, name, size):
        self.events.append(("finished", name, size))

    def file_skipped(self, name, reason):
        self.events.append(("skipped", name))

    def session_finished(self, report):
        self.events.append(("session_finished",))


def run_in_thread(fn):
    """Run *fn* in a thread; returns a join() that yields its result or raises."""
    outcome = {}

    def target():
        try:
            outcome["result"] = fn()
        except Exception as e:
            outcome["error"] = e

    t = threading.Thread(target=target)
    t.start()

    def join():
        t.join(timeout=10)
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")

    return join


def creator_in(directory, refuse=()):
    def create(name):
        if name in refuse:
            raise PermissionError(13, "Permission denied", name)
        return open(directory / name, "wb")

    return create


@pytest.fixture
def source_files(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    files = {
        "one.bin": bytes(range(256)) * 5,
        "two.bin": b"second file",
        "three.txt": b"x" * 1300,
    }
    for name, content in files.items():
        (src / name).write_bytes(content)
    return src, files


# ---------------------------------------------------------------------------
# Both roles
# ---------------------------------------------------------------------------


class TestFullSession:
    def test_agree_disagree_agree(self, stream_pair, source_files, tmp_path):
        a, b = stream_pair
        src, files = source_files
        dst = tmp_path / "dst"
        dst.mkdir()
        paths = [str(src / name) for name in ("one.bin", "two.bin", "three.txt")]
        sender_observer = RecordingObserver()

        join_sender = run_in_thread(
            lambda: SendSession(a, paths, observer=sender_observer).run()
        )
        receiver_report = ReceiveSession(
            b, creator_in(dst, refuse={"two.bin"})
        ).run()
        sender_report = join_sender()

        assert sender_report.transferred == ["one.bin", "three.txt"]
        assert sender_report.skipped == ["two.bin"]
        assert receiver_report.transferred == ["one.bin", "three.txt"]
        assert receiver_report.skipped == ["two.bin"]
        assert receiver_report.bytes_transferred == len(files["one.bin"]) + 1300

        assert (dst / "one.bin").read_bytes() == files["one.bin"]
        assert (dst / "three.txt").read_bytes() == files["three.txt"]
        assert not (dst / "two.bin").exists()

        assert sender_observer.events == [
            ("connected",),
            ("started", "one.bin", len(files["one.bin"])),
            ("finished", "one.bin", len(files["one.bin"])),
            ("skipped", "two.bin"),
            ("started", "three.txt", 1300),
            ("finished", "three.txt", 1300),
            ("session_finished",),
        ]

    def test_empty_file_list_sends_only_end(self, stream_pair, tmp_path):
        a, b = stream_pair
        join_sender = run_in_thread(lambda: SendSession(a, []).run())
        report = ReceiveSession(b, creator_in(tmp_path)).run()
        join_sender()

        assert report.transferred == []
        assert report.skipped == []
        assert list(tmp_path.iterdir()) == []

    def test_zero_byte_file(self, stream_pair, tmp_path):
        a, b = stream_pair
        src = tmp_path / "empty.dat"
        src.write_bytes(b"")
        dst = tmp_path / "dst"
        dst.mkdir()

        join_sender = run_in_thread(lambda: SendSession(a, [str(src)]).run())
        report = ReceiveSession(b, creator_in(dst)).run()
        join_sender()

        assert report.transferred == ["empty.dat"]
        assert (dst / "empty.dat").exists()
        assert (dst / "empty.dat").stat().st_size == 0

    def test_offered_name_is_the_basename(self, stream_pair, source_files, tmp_path):
        a, b = stream_pair
        src, _ = source_files
        offered = []

        def create(name):
            offered.append(name)
            raise FileExistsError(name)

        join_sender = run_in_thread(lambda: SendSession(a, [str(src / "one.bin")]).run())
        ReceiveSession(b, create).run()
        join_sender()

        assert offered == ["one.bin"]

    def test_report_timing(self, stream_pair, tmp_path):
        a, b = stream_pair
        join_sender = run_in_thread(lambda: SendSession(a, []).run())
        report = ReceiveSession(b, creator_in(tmp_path)).run()
        join_sender()

        assert report.end_ts is not None
        assert report.duration_s >= 0.0


# ---------------------------------------------------------------------------
# Receiver against a scripted sender
# ---------------------------------------------------------------------------


class AgreeFailsStream(TimedStream):
    """A stream whose connection drops when the receiver accepts an offer."""

    def write_exact(self, data):
        if bytes(data) == b"AGREE   ":
            raise TransportError("Connection lost")
        super().write_exact(data)


class TestReceiverRole:
    def test_refused_handshake_is_fatal(self, stream_pair, tmp_path):
        fake_sender, b = stream_pair
        created = []

        def script():
            assert fake_sender.read_exact(len(CALLSIGN)) == CALLSIGN.encode()
            fake_sender.write_exact(b"DISAGREE")

        join = run_in_thread(script)
        with pytest.raises(HandshakeError):
            ReceiveSession(b, lambda name: created.append(name)).run()
        join()

        assert created == []

    def test_garbage_handshake_reply(self, stream_pair, tmp_path):
        fake_sender, b = stream_pair

        def script():
            fake_sender.read_exact(len(CALLSIGN))
            fake_sender.write_exact(b"HELLO!!!")

        join = run_in_thread(script)
        with pytest.raises(ProtocolError):
            ReceiveSession(b, creator_in(tmp_path)).run()
        join()

    def test_unknown_marker_is_fatal(self, stream_pair, tmp_path):
        fake_sender, b = stream_pair

        def script():
            fake_sender.read_exact(len(CALLSIGN))
            fake_sender.write_exact(b"AGREE   ")
            fake_sender.write_exact(b"DIR ")

        join = run_in_thread(script)
        with pytest.raises(ProtocolError):
            ReceiveSession(b, creator_in(tmp_path)).run()
        join()

    def test_declined_offer_reads_no_payload(self, stream_pair, tmp_path):
        fake_sender, b = stream_pair
        answers = []

        def script():
            fake_sender.read_exact(len(CALLSIGN))
            fake_sender.write_exact(b"AGREE   ")
            send_file_header(fake_sender, FileHeader(size=10, name="../escape"))
            answers.append(fake_sender.read_exact(8))
            fake_sender.write_exact(b"END ")

        def create(name):
            raise OSError("refused")

        join = run_in_thread(script)
        report = ReceiveSession(b, create).run()
        join()

        assert answers == [b"DISAGREE"]
        assert report.skipped == ["../escape"]

    def test_created_file_closed_when_accepting_fails(self, socket_pair, tmp_path):
        client, server = socket_pair
        fake_sender = TimedStream(client, idle_timeout_ms=300)
        b = AgreeFailsStream(server, idle_timeout_ms=300)
        opened = []

        def script():
            fake_sender.read_exact(len(CALLSIGN))
            fake_sender.write_exact(b"AGREE   ")
            send_file_header(fake_sender, FileHeader(size=4, name="a.bin"))

        def create(name):
            f = open(tmp_path / name, "wb")
            opened.append(f)
            return f

        join = run_in_thread(script)
        with pytest.raises(TransportError):
            ReceiveSession(b, create).run()
        join()

        assert len(opened) == 1
        assert opened[0].closed


# ---------------------------------------------------------------------------
# Sender against a scripted receiver
# ---------------------------------------------------------------------------


class TestSenderRole:
    def test_wrong_callsign_is_fatal(self, stream_pair, source_files):
        a, fake_receiver = stream_pair
        src, _ = source_files
        fake_receiver.write_exact(b"ftp v0.0.1")
        with pytest.raises(ProtocolError):
            SendSession(a, [str(src / "one.bin")]).run()

    def test_invalid_answer_to_offer_is_fatal(self, stream_pair, source_files):
        a, fake_receiver = stream_pair
        src, _ = source_files

        def script():
            fake_receiver.write_exact(CALLSIGN.encode())
            assert fake_receiver.read_exact(8) == b"AGREE   "
            assert fake_receiver.read_exact(4) == b"FILE"
            fake_receiver.read_exact(8 + 8 + len("two.bin"))
            fake_receiver.write_exact(b"PERHAPS!")

        join = run_in_thread(script)
        with pytest.raises(ProtocolError):
            SendSession(a, [str(src / "two.bin")]).run()
        join()
