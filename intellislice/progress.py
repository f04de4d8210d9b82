"""
Progress reporting for conversions.

A conversion reports each pipeline stage as it is entered and then exactly
one ``finish`` call with the terminal state. Mesh downloads report bytes as
they arrive. Reporters only display; they never change the result.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)

from .models import PipelineState


class TransferProgress(Protocol):
    def advance(self, nbytes: int) -> None: ...
    def close(self) -> None: ...


class ProgressReporter(Protocol):
    """What the pipeline and the mesh loader report to."""

    def update_status(self, message: str) -> None: ...
    def begin_download(self, url: str, total_bytes: int) -> TransferProgress: ...
    def stage(self, name: str, current: int, total: int) -> None: ...
    def finish(self, state: PipelineState, detail: str) -> None: ...


class RichProgressReporter:
    """
    Renders a conversion as one rich task that advances through the
    pipeline stages, then leaves a single done/failed line behind.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self._stages: Progress | None = None
        self._task: TaskID | None = None

    def update_status(self, message: str) -> None:
        self.console.print(f"[bold blue]>>>[/] {escape(message)}")

    def begin_download(self, url: str, total_bytes: int) -> RichTransfer:
        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self.console,
            transient=True,
        )
        progress.start()
        name = url.rstrip("/").rsplit("/", 1)[-1] or url
        task = progress.add_task(f"Fetching {name}", total=total_bytes or None)
        return RichTransfer(progress, task)

    def stage(self, name: str, current: int, total: int) -> None:
        if self._stages is None:
            self._stages = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=self.console,
                transient=True,
            )
            self._stages.start()
            self._task = self._stages.add_task(name, total=total)
        assert self._task is not None
        # A stage counts as complete once the next one starts
        self._stages.update(self._task, description=name, completed=current - 1, total=total)

    def finish(self, state: PipelineState, detail: str) -> None:
        if self._stages is not None:
            if state == PipelineState.DONE and self._task is not None:
                task = self._stages.tasks[0]
                self._stages.update(self._task, completed=task.total)
            self._stages.stop()
            self._stages = None
            self._task = None

        if state == PipelineState.DONE:
            self.console.print(f"[green]done[/] {escape(detail)}")
        else:
            self.console.print(f"[red]{state.value}[/] {escape(detail)}")


class RichTransfer:
    """One download bar; closing it removes the bar."""

    def __init__(self, progress: Progress, task: TaskID) -> None:
        self._progress = progress
        self._task = task

    def advance(self, nbytes: int) -> None:
        self._progress.advance(self._task, nbytes)

    def close(self) -> None:
        self._progress.stop()


class NullProgressReporter:
    """Reports nothing. Used for --json output, library calls and tests."""

    def update_status(self, message: str) -> None:
        pass

    def begin_download(self, url: str, total_bytes: int) -> NullTransfer:
        return NullTransfer()

    def stage(self, name: str, current: int, total: int) -> None:
        pass

    def finish(self, state: PipelineState, detail: str) -> None:
        pass


class NullTransfer:
    def advance(self, nbytes: int) -> None:
        pass

    def close(self) -> None:
        pass
