"""Rendering collaborator interface and a terminal implementation."""
import abc
from enum import Enum
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ingestion.models import Novel
from monitoring.progress_tracker import ProgressTracker
from utils.logger import console as default_console
import config

COVER_PLACEHOLDER = "(no cover)"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


SEVERITY_STYLES = {
    Severity.INFO: ("cyan", "i"),
    Severity.SUCCESS: ("green", "✓"),
    Severity.WARNING: ("yellow", "!"),
    Severity.ERROR: ("red", "✗"),
}


class Renderer(abc.ABC):
    """Receives pages, progress and notifications from the core."""

    @abc.abstractmethod
    def append_page(self, novels: Sequence[Novel]) -> None:
        """Display one more page of results"""
        pass

    @abc.abstractmethod
    def clear_results(self) -> None:
        """Remove every displayed result"""
        pass

    @abc.abstractmethod
    def show_progress(self) -> None:
        pass

    @abc.abstractmethod
    def update_progress(self, percent: float) -> None:
        pass

    @abc.abstractmethod
    def hide_progress(self) -> None:
        pass

    @abc.abstractmethod
    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        """Show a non-blocking notification"""
        pass


class ConsoleRenderer(Renderer):
    """Prints pages as rich tables and notifications as coloured lines.

    A terminal has no auto-dismissing toasts, so ``duration`` is kept only
    for renderers that mirror this one on an interactive surface.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        duration: float = config.NOTIFICATION_DURATION_SECONDS
    ):
        self.console = console or default_console
        self.duration = duration
        self.progress = ProgressTracker(self.console)
        self.displayed = 0

    def append_page(self, novels: Sequence[Novel]) -> None:
        if not novels:
            return
        table = Table(show_header=self.displayed == 0)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Cover")
        table.add_column("PDF")
        for novel in novels:
            self.displayed += 1
            table.add_row(
                str(self.displayed),
                escape(novel.name),
                escape(novel.cover_url) or COVER_PLACEHOLDER,
                escape(novel.pdf_url)
            )
        self.console.print(table)

    def clear_results(self) -> None:
        if self.displayed:
            self.console.rule()
        self.displayed = 0

    def show_progress(self) -> None:
        self.progress.start()

    def update_progress(self, percent: float) -> None:
        self.progress.update(percent)

    def hide_progress(self) -> None:
        self.progress.stop()

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        style, icon = SEVERITY_STYLES[Severity(severity)]
        self.console.print(f"[{style}]{icon} {escape(message)}[/{style}]")
