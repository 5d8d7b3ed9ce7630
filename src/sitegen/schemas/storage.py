"""Models returned by the Repository Storage Client."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class RepoMetadata(BaseModel):
    default_branch: str = "main"


class TreeEntry(BaseModel):
    """One node of a recursive repository tree listing."""

    path: str
    type: Literal["blob", "tree", "commit"] = "blob"
    url: str = ""
