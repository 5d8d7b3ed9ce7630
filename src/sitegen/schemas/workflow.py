"""Workflow outcomes and progress events."""

from __future__ import annotations

import enum

from pydantic import BaseModel

from sitegen.errors import ErrorKind
from sitegen.schemas.project import ProjectStatus


class WorkflowName(str, enum.Enum):
    BUILD = "build"
    IMPORT = "import"
    TUNE = "tune"
    PUBLISH = "publish"
    ADD_ARTICLE = "add_article"


class OutcomeKind(str, enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class WorkflowOutcome(BaseModel):
    """Result of one workflow invocation.

    Cancellation is a variant of this result, not an exception the caller
    has to catch and inspect.
    """

    workflow: WorkflowName
    kind: OutcomeKind
    error: str = ""
    error_kind: ErrorKind | None = None
    pages_updated: int = 0  # pages committed by this run (tune / add-article)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED


class ProgressEvent(BaseModel):
    """Emitted on every status transition and before every page task."""

    workflow: WorkflowName
    status: ProjectStatus
    message: str = ""
    completed: int | None = None
    total: int | None = None
