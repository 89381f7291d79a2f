"""Row progress for long-running jobs, drawn on the logging console."""
from __future__ import annotations

from typing import Iterable, Iterator, Optional, TypeVar

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

T = TypeVar("T")


class ProgressManager:
    """Progress bars sharing one console with the rich log handler."""

    def __init__(self) -> None:
        self.console = Console()

    def track(
        self,
        iterable: Iterable[T],
        *,
        description: str,
        total: Optional[int] = None,
        unit: str = "items",
    ) -> Iterator[T]:
        progress = Progress(
            TextColumn("[bold blue]{task.description}[/]"),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            TextColumn("{task.fields[unit]}"),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        )
        with progress:
            task_id = progress.add_task(description, total=total, unit=unit)
            for item in iterable:
                yield item
                progress.advance(task_id)


progress_manager = ProgressManager()
