"""Rich-powered progress indicators."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

_STATUS_STYLES = {
    "successful": "bold green",
    "failed": "bold red",
    "aborted": "bold red",
}


def _default_console() -> Console:
    return Console(stderr=True)


@dataclass(slots=True)
class UploadProgress:
    """Counts completed uploads; a no-op when disabled."""

    total: int
    enabled: bool = True
    console: Console = field(default_factory=_default_console)
    completed: int = 0
    _progress: Progress | None = field(init=False, default=None)
    _task_id: TaskID | None = field(init=False, default=None)

    def __enter__(self) -> UploadProgress:
        if self.enabled:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self.console,
            )
            self._progress.start()
            self._task_id = self._progress.add_task("Sending data", total=self.total)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def advance(self, amount: int = 1) -> None:
        self.completed += amount
        if self._progress is not None and self._task_id is not None:
            self._progress.advance(self._task_id, amount)

    def finish(self, status: str) -> None:
        if self._progress is not None and self._task_id is not None:
            style = _STATUS_STYLES.get(status, "bold")
            self._progress.update(
                self._task_id, description=f"[{style}]Upload {status}[/{style}]"
            )


@dataclass(slots=True)
class Spinner:
    """Indeterminate spinner for waits such as balance verification."""

    enabled: bool = True
    console: Console = field(default_factory=_default_console)
    _status: object | None = field(init=False, default=None)

    def start(self, message: str) -> None:
        if not self.enabled or self._status is not None:
            return
        self._status = self.console.status(message)
        self._status.start()

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
