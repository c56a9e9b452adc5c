"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


@dataclass
class ProgressState:
    total: int
    completed: int = 0
    current_prefix: str | None = None


class RateColumn(ProgressColumn):
    """Render prefixes processed per second."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} prefix/s", style="progress.percentage")


class ProgressReporter:
    """Count finished prefixes and render a progress bar on interactive terminals.

    :meth:`advance` is called from worker threads, so updates are serialised.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # Non-interactive output stays silent.
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]indexing"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[dim]{task.fields[prefix]}", justify="left"),
            refresh_per_second=12,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.start()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task("index", total=total, prefix="")

    def advance(self, prefix: str | None = None) -> None:
        with self._lock:
            if not self.state:
                raise RuntimeError("ProgressReporter.start must be called before advance")
            self.state.completed += 1
            self.state.current_prefix = prefix
            if self._progress is not None and self._task_id is not None:
                self._progress.update(self._task_id, advance=1, prefix=prefix or "")

    def close(self) -> None:
        with self._lock:
            if self._progress is not None:
                self._progress.stop()
                self._progress = None
            self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"completed": 0, "total": 0}
        return {"completed": self.state.completed, "total": self.state.total}


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
