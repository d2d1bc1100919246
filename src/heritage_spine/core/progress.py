"""
Progress reporting for long pipeline phases.

Stages report through a :class:`ProgressReporter` rather than printing, so the
same code drives a plain structured log (CI, cron) or a rich live display
(``--tui``).

Tags:
    progress, rich, observability, heritage-spine
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn, TimeElapsedColumn

from heritage_spine.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ProgressReporter(Protocol):
    """Sink for operator-facing progress and messages."""

    def log(self, message: str, **fields) -> None:
        ...

    def progress(self, progress_id: str, label: str, current: int, total: int) -> None:
        ...

    def finish(self) -> None:
        ...


class LogProgress:
    """Reports progress as structured log events."""

    def __init__(self) -> None:
        self.last: dict[str, tuple[int, int]] = {}

    def log(self, message: str, **fields) -> None:
        logger.info(message, **fields)

    def progress(self, progress_id: str, label: str, current: int, total: int) -> None:
        self.last[progress_id] = (current, total)
        logger.debug("progress", id=progress_id, label=label, current=current, total=total)

    def finish(self) -> None:
        self.last.clear()


class RichProgress:
    """Live progress bars on the terminal, one bar per progress id."""

    def __init__(self, console: Console | None = None) -> None:
        self._progress = Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console or Console(stderr=True),
            transient=False,
        )
        self._tasks: dict[str, TaskID] = {}
        self._started = False

    def _ensure_started(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def log(self, message: str, **fields) -> None:
        self._ensure_started()
        extra = " ".join(f"{k}={v}" for k, v in fields.items())
        self._progress.console.log(f"{message} {extra}".rstrip())

    def progress(self, progress_id: str, label: str, current: int, total: int) -> None:
        self._ensure_started()
        task = self._tasks.get(progress_id)
        if task is None:
            task = self._progress.add_task(label, total=total)
            self._tasks[progress_id] = task
        self._progress.update(task, completed=current, total=total, description=label)

    def finish(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False
        self._tasks.clear()


__all__ = ["ProgressReporter", "LogProgress", "RichProgress"]
