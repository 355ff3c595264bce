from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskID, TimeElapsedColumn

class ProgressTracker:
    """Single percentage bar for ingestion progress."""

    def __init__(self, console: Console, description: str = "Loading novels"):
        self.console = console
        self.description = description
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_progress(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console
        )

    @property
    def active(self) -> bool:
        return self._progress is not None

    def start(self) -> None:
        if self._progress is not None:
            return
        self._progress = self.create_progress()
        self._progress.start()
        self._task = self._progress.add_task(self.description, total=100)

    def update(self, percent: float) -> None:
        if self._progress is None:
            self.start()
        self._progress.update(self._task, completed=max(0.0, min(100.0, percent)))

    def stop(self) -> None:
        if self._progress is None:
            return
        self._progress.stop()
        self._progress = None
        self._task = None
