"""
netcp TUI — a terminal dashboard for one transfer session.

Built with Textual.  Launched via `netcp send|receive ... --tui`.  The
session runs in a worker thread; the observer below forwards its events to
the UI thread with call_from_thread.
"""

from __future__ import annotations

from typing import Protocol

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Header, Label, ProgressBar, RichLog
from typing_extensions import Callable

from .client import format_size
from .errors import NetcpError
from .session import SessionReport, TransferObserver


class Endpoint(Protocol):
    """What the dashboard needs from a FileServer or FileClient."""

    observer: TransferObserver

    def stop(self) -> None: ...


# ==============================================================================
# Observer bridge
# ==============================================================================


class DashboardObserver(TransferObserver):
    """Relays session events from the worker thread to the app."""

    def __init__(self, app: TransferApp):
        self.app = app

    def connected(self, peer: str) -> None:
        self.app.call_from_thread(self.app.log_line, f"Connected with [bold #5ec4ff]{peer}[/]")

    def file_offered(self, name: str, size: int) -> None:
        self.app.call_from_thread(
            self.app.log_line, f"Offer [bold]{name}[/] ({format_size(size)})"
        )

    def file_started(self, name: str, size: int) -> None:
        self.app.call_from_thread(self.app.start_file, name, size)

    def file_progress(self, name: str, current: int, total: int) -> None:
        self.app.call_from_thread(self.app.update_progress, current)

    def file_finished(self, name: str, size: int) -> None:
        self.app.call_from_thread(
            self.app.log_line, f"[#00ff9f]Done[/] {name} ({format_size(size)})"
        )

    def file_skipped(self, name: str, reason: str) -> None:
        self.app.call_from_thread(
            self.app.log_line, f"[#e0c97f]Skipped[/] {name}: {reason}"
        )

    def session_finished(self, report: SessionReport) -> None:
        self.app.call_from_thread(self.app.finish, report)


# ==============================================================================
# App
# ==============================================================================


class TransferApp(App):
    """Dashboard for a single netcp session."""

    TITLE = "NETCP"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    #status {
        padding: 1 2;
        text-style: bold;
    }
    #progress-bar {
        padding: 0 2;
    }
    #log-view {
        border: round #5ec4ff;
        margin: 1 2;
    }
    """

    BINDINGS = [Binding("q", "quit_app", "Quit", show=True)]

    def __init__(
        self,
        endpoint: Endpoint,
        runner: Callable[[], SessionReport],
        subtitle: str,
    ):
        super().__init__()
        self.endpoint = endpoint
        self.runner = runner
        self.sub_title = subtitle
        self.result_code = 1
        self._done = False

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical():
            yield Label("Waiting for peer...", id="status")
            yield ProgressBar(total=None, show_eta=False, id="progress-bar")
            yield RichLog(id="log-view", highlight=False, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        self.endpoint.observer = DashboardObserver(self)
        self._run_session()

    # --------------------------------------------------------------------------
    # Worker
    # --------------------------------------------------------------------------

    @work(thread=True)
    def _run_session(self) -> None:
        try:
            self.runner()
        except NetcpError as e:
            if self._done:
                # Quit already closed the endpoint; the app is gone.
                return
            self.call_from_thread(self.fail, str(e))

    # --------------------------------------------------------------------------
    # UI updates (main thread)
    # --------------------------------------------------------------------------

    def log_line(self, text: str) -> None:
        self.query_one("#log-view", RichLog).write(text)

    def start_file(self, name: str, size: int) -> None:
        self.query_one("#status", Label).update(f"{name}  {format_size(size)}")
        self.query_one("#progress-bar", ProgressBar).update(total=max(size, 1), progress=0)
        if size == 0:
            self.update_progress(1)

    def update_progress(self, current: int) -> None:
        self.query_one("#progress-bar", ProgressBar).update(progress=current)

    def finish(self, report: SessionReport) -> None:
        self._done = True
        self.result_code = 0
        self.query_one("#status", Label).update(
            f"Finished: {len(report.transferred)} transferred, "
            f"{len(report.skipped)} skipped, "
            f"{format_size(report.bytes_transferred)} "
            f"({report.throughput_mbps:.2f} Mbit/s).  Press q to quit."
        )

    def fail(self, message: str) -> None:
        self._done = True
        self.result_code = 1
        self.query_one("#status", Label).update(f"[#e74c3c]Error:[/] {message}")
        self.log_line(f"[#e74c3c]Error:[/] {message}")

    def action_quit_app(self) -> None:
        if not self._done:
            self._done = True
            self.endpoint.stop()
        self.exit(self.result_code)

    async def action_quit(self) -> None:
        # ctrl+q; must stop the endpoint too or the worker never returns.
        self.action_quit_app()


# ==============================================================================
# Entry point (called from peer.py)
# ==============================================================================


def run_tui(
    endpoint: Endpoint, runner: Callable[[], SessionReport], subtitle: str
) -> int:
    """Run the session under the dashboard; returns the process exit code."""
    app = TransferApp(endpoint, runner, subtitle)
    result = app.run()
    return app.result_code if result is None else int(result)
