"""Explicit sequential task list for multi-page loops.

Build's per-section generation and Tune's fan-out run through here instead
of a bare ``for`` loop so the ordering and cancellation-check contract is
spelled out in one place: one task at a time, token checked before each
task, a progress callback fired before each task, and the completed prefix
always reported back to the caller whatever happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, TypeVar

from sitegen.shared.cancellation import CancellationToken, Cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PageTask(Generic[T]):
    label: str
    run: Callable[[], Awaitable[T]]


@dataclass
class QueueProgress:
    label: str
    index: int  # 0-based index of the task about to start
    total: int


@dataclass
class QueueReport(Generic[T]):
    """What a sequential run produced.

    ``results`` holds the outputs of the completed prefix, in task order.
    At most one of ``cancelled`` / ``error`` is set.
    """

    results: list[T] = field(default_factory=list)
    total: int = 0
    cancelled: bool = False
    error: Exception | None = None
    failed_label: str | None = None

    @property
    def completed(self) -> bool:
        return not self.cancelled and self.error is None


class SequentialQueue(Generic[T]):
    def __init__(self, tasks: list[PageTask[T]]) -> None:
        self.tasks = list(tasks)

    async def run(
        self,
        cancel: CancellationToken | None = None,
        on_progress: Callable[[QueueProgress], None] | None = None,
    ) -> QueueReport[T]:
        report: QueueReport[T] = QueueReport(total=len(self.tasks))
        for index, task in enumerate(self.tasks):
            if cancel is not None and cancel.cancelled:
                report.cancelled = True
                return report
            if on_progress:
                on_progress(QueueProgress(label=task.label, index=index, total=len(self.tasks)))
            try:
                report.results.append(await task.run())
            except Cancelled:
                report.cancelled = True
                return report
            except Exception as exc:
                logger.warning("Task %r failed: %s", task.label, exc)
                report.error = exc
                report.failed_label = task.label
                return report
        return report
