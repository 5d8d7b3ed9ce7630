"""Cooperative cancellation for in-flight workflows."""

from __future__ import annotations


class Cancelled(Exception):
    """Raised at a suspension point once the workflow's token is set.

    Not a ``SiteGenError``: cancellation is its own outcome and is never
    retried or reported as an error.
    """


class CancellationToken:
    """A single-use flag checked at every external-call boundary.

    Setting the token never interrupts a call that has already been
    dispatched; it only stops new calls from starting.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def clear(self) -> None:
        self._cancelled = False

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled("Workflow cancelled by user")
