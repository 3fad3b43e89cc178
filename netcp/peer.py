"""
netcp — copy files between two machines over one TCP connection.

Main entry point.  The sending side listens and serves the files named on
its command line; the receiving side connects and stores every offered file
in its working directory.

Usage:
    netcp send 0.0.0.0:5000 a.bin b.txt      # serve two files, then exit
    netcp receive 192.168.1.20:5000         # fetch them into the cwd
    netcp receive 192.168.1.20 --tui        # same, with the dashboard
    netcp help
"""

import argparse
import logging
import os
import sys

from .client import FileClient, format_size
from .config import CHUNK_SIZE, DEFAULT_PORT, IDLE_TIMEOUT_MS, LOG_FORMAT
from .errors import ArgumentError, NetcpError
from .server import FileServer
from .session import SessionReport, TransferObserver

HELP_TEXT = "netcp (send,receive) ipaddress[:port] filename"


class _Parser(argparse.ArgumentParser):
    """Report usage errors as ArgumentError so they exit with status 1."""

    def error(self, message: str) -> None:
        raise ArgumentError(message)


def parse_address(target: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """
    Parse a 'host[:port]' string.  IPv6 hosts go in brackets: '[::1]:5000'.
    If port is omitted, *default_port* is used.
    """
    if target.startswith("["):
        host, sep, rest = target[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ArgumentError(f"Invalid address {target!r}")
        port_str = rest[1:] if rest else ""
    elif target.count(":") == 1:
        host, port_str = target.split(":")
    else:
        host, port_str = target, ""

    if not host:
        raise ArgumentError(f"Invalid address {target!r}")
    if not port_str:
        return host, default_port
    try:
        port = int(port_str)
    except ValueError:
        raise ArgumentError(f"Invalid port in address {target!r}") from None
    if not 0 <= port <= 65535:
        raise ArgumentError(f"Port out of range in address {target!r}")
    return host, port


class ConsoleObserver(TransferObserver):
    """Prints one progress line per file to stdout."""

    def __init__(self, sending: bool):
        self.sending = sending

    def connected(self, peer: str) -> None:
        if self.sending:
            print(f"connected with {peer}.", flush=True)
        else:
            print(f"Connected to {peer}.", flush=True)

    def file_offered(self, name: str, size: int) -> None:
        if self.sending:
            print(f"Send {name}...", end="", flush=True)

    def file_started(self, name: str, size: int) -> None:
        if not self.sending:
            print(f"Receive {name} ({format_size(size)})...", end="", flush=True)

    def file_finished(self, name: str, size: int) -> None:
        print("done.", flush=True)

    def file_skipped(self, name: str, reason: str) -> None:
        if self.sending:
            print("cancelled by client.", flush=True)
        else:
            print(f"Couldn't create file {name}. Skip file transmission.", flush=True)

    def session_finished(self, report: SessionReport) -> None:
        print(
            f"{len(report.transferred)} file(s) transferred, "
            f"{len(report.skipped)} skipped "
            f"({format_size(report.bytes_transferred)} "
            f"in {report.duration_s:.1f} s)."
        )


# ======================================================================
# Commands
# ======================================================================


def cmd_help(args: argparse.Namespace) -> int:
    print(HELP_TEXT)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    address = parse_address(args.address)
    # Resolve against the working directory here; the core gets full paths.
    paths = [os.path.abspath(name) for name in args.files]
    server = FileServer(
        address,
        paths,
        idle_timeout_ms=args.timeout_ms,
        chunk_size=args.chunk_size,
        observer=ConsoleObserver(sending=True),
    )

    # Bound before the dashboard starts so quitting always finds a listener.
    server.bind()
    if args.tui:
        from .tui import run_tui

        subtitle = f"Sending {len(paths)} file(s) on {args.address}"
        return run_tui(server, server.serve_once, subtitle)

    print("Waiting for client...", end="", flush=True)
    try:
        server.serve_once()
    finally:
        server.stop()
    return 0


def cmd_receive(args: argparse.Namespace) -> int:
    address = parse_address(args.address)
    client = FileClient(
        address,
        os.getcwd(),
        overwrite=not args.no_clobber,
        idle_timeout_ms=args.timeout_ms,
        chunk_size=args.chunk_size,
        observer=ConsoleObserver(sending=False),
    )

    if args.tui:
        from .tui import run_tui

        return run_tui(client, client.run, f"Receiving from {args.address}")

    client.run()
    return 0


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="netcp", description="Peer-to-peer file copy over TCP.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("address", help="host[:port]")
        x.add_argument("-v", "--verbose", action="count", default=0)
        x.add_argument(
            "--timeout-ms",
            type=_positive_int,
            default=IDLE_TIMEOUT_MS,
            help="give up after this long without any byte moving",
        )
        x.add_argument("--chunk-size", type=_positive_int, default=CHUNK_SIZE)
        x.add_argument("--tui", action="store_true", help="show the dashboard")

    send = sub.add_parser("send", help="serve files to one receiver")
    add_common(send)
    send.add_argument("files", nargs="+", metavar="file")
    send.set_defaults(func=cmd_send)

    receive = sub.add_parser("receive", help="fetch files into the working directory")
    add_common(receive)
    receive.add_argument(
        "--no-clobber",
        action="store_true",
        help="decline offered files that already exist",
    )
    receive.set_defaults(func=cmd_receive)

    help_ = sub.add_parser("help", help="show usage")
    help_.set_defaults(func=cmd_help, verbose=0)

    return parser


def _configure_logging(verbosity: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv: list[str] | None = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        _configure_logging(args.verbose)
        return int(args.func(args))
    except NetcpError as e:
        print(f"Error: {e}.", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n  Interrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
