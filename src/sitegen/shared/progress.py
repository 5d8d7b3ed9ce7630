"""Rich progress display for workflow runs."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from sitegen.schemas.workflow import OutcomeKind, ProgressEvent, WorkflowOutcome

console = Console()


class WorkflowProgress:
    """Renders ``ProgressEvent``s as a spinner plus a persistent event log.

    Pass ``progress.handle`` as the engine's ``on_progress`` callback.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id: TaskID | None = None
        self._last_status: str | None = None

    def __enter__(self) -> "WorkflowProgress":
        self._progress.__enter__()
        self._progress.console.print(Panel(f"[bold]{self.label}[/bold]", style="blue"))
        self._task_id = self._progress.add_task(f"[cyan]{self.label}[/]", total=None)
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def handle(self, event: ProgressEvent) -> None:
        if self._task_id is None:
            return
        status = event.status.value
        if status != self._last_status:
            self._progress.console.print(f"  [dim]status:[/] {status}")
            self._last_status = status

        self._progress.update(
            self._task_id,
            description=f"[cyan]{self.label}[/] — {event.message}",
            total=event.total,
            completed=event.completed or 0,
        )

    def finish(self, outcome: WorkflowOutcome) -> None:
        """Mark the run complete, cancelled or failed."""
        if self._task_id is None:
            return
        if outcome.kind == OutcomeKind.COMPLETED:
            description = f"[green]✓ {self.label}[/]"
        elif outcome.kind == OutcomeKind.CANCELLED:
            description = f"[yellow]■ {self.label} cancelled[/]"
        else:
            description = f"[red]✗ {self.label}: {outcome.error}[/]"
        self._progress.update(self._task_id, description=description)
        self._progress.stop_task(self._task_id)
