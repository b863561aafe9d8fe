"""Console rendering and progress helpers for the bunkr-up CLI."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .orchestrator.models import BatchResult
from .utils.events import ProgressEvent, ProgressState
from .utils.sizes import human_size

console = Console()


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]bunkr-up[/bold green]",
        subtitle="[dim]batch uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_config_table(rows: Iterable[Tuple[str, str, str]]) -> None:
    """Render ``config get`` output: key, current value, default."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Default", style="dim italic")
    for key, value, default in rows:
        table.add_row(key, value, default)
    console.print(table)


def render_batch_summary(result: BatchResult) -> None:
    """Print URLs and failing paths once the batch is done."""
    if result.successes:
        table = Table(show_header=True, header_style="bold green", title="Uploaded")
        table.add_column("File")
        table.add_column("URL", overflow="fold")
        for outcome in result.successes:
            table.add_row(outcome.filename, "\n".join(outcome.urls))
        console.print(table)

    if result.failures:
        table = Table(show_header=True, header_style="bold red", title="Failed")
        table.add_column("File")
        table.add_column("Kind")
        table.add_column("Retries", justify="right")
        table.add_column("Error", overflow="fold")
        for outcome in result.failures:
            kind = outcome.error_kind.value if outcome.error_kind else "-"
            table.add_row(str(outcome.file_path), kind, str(outcome.retries_used), outcome.error or "")
        console.print(table)

    cancelled = len(result.cancelled)
    suffix = f" cancelled={cancelled}" if cancelled else ""
    album = f" album={result.album_id}" if result.album_id else ""
    console.print(
        f"[bold]Finished[/bold] uploaded={result.success_count} "
        f"failed={result.failure_count} total={result.total_files}{suffix}{album}"
    )


class BatchProgressDisplay:
    """
    Event-driven console display for a batch upload.

    Subscribe ``on_event`` to a ProgressChannel with "*". Shows an
    overall bar plus one spinner row per in-flight file and prints a
    timeline line for each terminal event.
    """

    def __init__(self, total_files: int, total_bytes: int = 0):
        self._total = max(total_files, 1)
        self._total_bytes = total_bytes
        self._stats: Dict[str, int] = {"uploaded": 0, "failed": 0, "cancelled": 0}
        self._active_tasks: Dict[Path, TaskID] = {}
        self._overall_task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=32),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )

    def start(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._progress.add_task(
            "overall",
            label="Overall",
            total=self._total,
            completed=0,
            detail=f"{human_size(self._total_bytes)}" if self._total_bytes else "",
        )

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _emit_timeline(self, status: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "RETRY": "yellow",
            "SKIP": "dim",
        }
        color = palette.get(status, "white")
        detail_label = f" {detail}" if detail else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<5}[/{color}] {name}{detail_label}")

    def _update_overall(self) -> None:
        if self._overall_task_id is None:
            return
        done = sum(self._stats.values())
        self._progress.update(
            self._overall_task_id,
            completed=min(done, self._total),
            detail=(
                f"uploaded={self._stats['uploaded']} failed={self._stats['failed']}"
                + (f" cancelled={self._stats['cancelled']}" if self._stats["cancelled"] else "")
            ),
        )

    def _finish_file(self, path: Path) -> None:
        task_id = self._active_tasks.pop(path, None)
        if task_id is not None:
            self._progress.remove_task(task_id)

    def on_event(self, event: ProgressEvent) -> None:
        name = event.file_path.name
        if event.state == ProgressState.IN_PROGRESS:
            self.start()
            if event.file_path not in self._active_tasks:
                self._active_tasks[event.file_path] = self._progress.add_task(
                    "upload", label=name[:50], total=1, detail="uploading"
                )
        elif event.state == ProgressState.RETRYING:
            task_id = self._active_tasks.get(event.file_path)
            if task_id is not None:
                self._progress.update(task_id, detail=f"retry {event.attempt} in {event.delay or 0:.0f}s")
            self._emit_timeline("RETRY", name, event.error)
        elif event.state == ProgressState.SUCCEEDED:
            self._finish_file(event.file_path)
            self._stats["uploaded"] += 1
            self._emit_timeline("DONE", name, event.url)
        elif event.state == ProgressState.FAILED:
            self._finish_file(event.file_path)
            self._stats["failed"] += 1
            self._emit_timeline("FAIL", name, event.error)
        elif event.state == ProgressState.CANCELLED:
            self._finish_file(event.file_path)
            self._stats["cancelled"] += 1
            self._emit_timeline("SKIP", name, "cancelled")
        self._update_overall()
