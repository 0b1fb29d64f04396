"""Live job progress for the CLI, rendered with Rich."""

from __future__ import annotations

from dataclasses import dataclass

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
    success: int = 0
    failed: int = 0
    current_url: str | None = None

    @property
    def settled(self) -> int:
        return self.success + self.failed


class RateColumn(ProgressColumn):
    """Settled URLs per second."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        return Text("" if speed is None else f"{speed:.1f} url/s", style="progress.percentage")


def _columns() -> tuple[ProgressColumn, ...]:
    return (
        SpinnerColumn(style="cyan"),
        TextColumn("[bold blue]{task.fields[label]:<12}"),
        BarColumn(bar_width=None, complete_style="green", finished_style="green"),
        TaskProgressColumn(show_speed=False),
        TimeElapsedColumn(),
        RateColumn(),
        TextColumn("[green]✓{task.fields[success]:>3}", justify="right"),
        TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
        TextColumn("[dim]{task.fields[current_url]}"),
    )


class ProgressReporter:
    """Count settled targets and mirror them onto a transient progress bar.

    Counting always happens; rendering only when enabled and attached to a
    terminal. ``advance`` may be called from the thread collecting results.
    """

    def __init__(
        self,
        enabled: bool = True,
        console: Console | None = None,
        max_url_length: int = 60,
    ) -> None:
        self.enabled = enabled
        self.max_url_length = max_url_length
        self.state: ProgressState | None = None
        self._console = console
        self._label = "batch"
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None

    def set_label(self, label: str) -> None:
        self._label = label

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        console = self._console or Console()
        if not console.is_terminal:
            self.enabled = False
            return
        progress = Progress(
            *_columns(),
            console=console,
            transient=True,
            expand=True,
            refresh_per_second=12,
        )
        try:
            progress.start()
        except LiveError:
            # another live display owns this console
            self.enabled = False
            return
        self._progress = progress
        self._task_id = progress.add_task(
            "scrape",
            total=total,
            label=self._label,
            success=0,
            failed=0,
            current_url="waiting…",
        )

    def advance(self, ok: bool, current_url: str | None = None) -> None:
        if self.state is None:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        if ok:
            self.state.success += 1
        else:
            self.state.failed += 1
        if current_url:
            self.state.current_url = current_url
        if self._progress is None or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            completed=self.state.settled,
            success=self.state.success,
            failed=self.state.failed,
            current_url=self._shorten(self.state.current_url or ""),
        )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if self.state is None:
            return {"success": 0, "failed": 0}
        return {"success": self.state.success, "failed": self.state.failed}

    def _shorten(self, url: str) -> str:
        if len(url) <= self.max_url_length:
            return url
        return url[: self.max_url_length - 3] + "..."


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
