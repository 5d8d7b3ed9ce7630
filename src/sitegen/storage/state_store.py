"""Single-owner project store with JSON persistence.

Workflow steps never assign to ``ProjectState`` fields directly: every change
goes through ``ProjectStore.apply_update``, which swaps in an updated copy
and writes it to disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from sitegen.schemas.project import DEFAULT_OPINION, GitHubConfig, ProjectState

logger = logging.getLogger(__name__)

STORAGE_KEY = "sitegen_state_v2"


class StateStorage(Protocol):
    def load(self) -> ProjectState | None: ...

    def save(self, state: ProjectState) -> None: ...


class JsonStateStorage:
    """Stores the project as ``{"sitegen_state_v2": {...}}`` in one JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> ProjectState | None:
        if not self.path.exists():
            return None
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
            raw = document[STORAGE_KEY]
            state = ProjectState.model_validate(raw)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable project state at %s: %s", self.path, exc)
            return None

        if not state.status.is_stable:
            # The process stopped mid-workflow; nothing is in flight any more.
            logger.info("Recovered project from interrupted %s status", state.status.value)
            state = state.model_copy(update={"status": state.stable_status()})
        return state

    def save(self, state: ProjectState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {STORAGE_KEY: state.model_dump(mode="json")}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(document, indent=2), encoding="utf-8")
        tmp.replace(self.path)


class ProjectStore:
    """Holds the current ``ProjectState``; the engine is its only writer."""

    def __init__(
        self,
        storage: StateStorage | None = None,
        *,
        default_opinion: str = DEFAULT_OPINION,
        default_branch: str = "main",
        default_path: str = "docs",
    ) -> None:
        self._storage = storage
        loaded = storage.load() if storage is not None else None
        self._state = loaded or ProjectState(
            opinion=default_opinion,
            github_config=GitHubConfig(branch=default_branch, path=default_path),
        )

    @property
    def state(self) -> ProjectState:
        return self._state

    def snapshot(self) -> ProjectState:
        """Deep copy, safe to hold across later updates."""
        return self._state.model_copy(deep=True)

    def apply_update(self, **changes: Any) -> ProjectState:
        unknown = set(changes) - set(ProjectState.model_fields)
        if unknown:
            raise ValueError(f"Unknown project fields: {sorted(unknown)}")
        # Round-trip through validation so enum/str values and nested dicts coerce.
        merged = {**self._state.model_dump(), **{k: _dump(v) for k, v in changes.items()}}
        self._state = ProjectState.model_validate(merged)
        if self._storage is not None:
            self._storage.save(self._state)
        return self._state


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return value
