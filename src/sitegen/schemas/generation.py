"""Pydantic models for Generation Service JSON responses."""

from __future__ import annotations

from pydantic import BaseModel, field_validator


class SectionStub(BaseModel):
    """A proposed section before its markup is generated."""

    title: str
    slug: str
    description: str = ""


class StrategyProposal(BaseModel):
    """Ordered section list plus the reasoning behind the structure."""

    sections: list[SectionStub] = []
    rationale: str = ""

    @field_validator("rationale", mode="before")
    @classmethod
    def coerce_none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


class NavLink(BaseModel):
    title: str
    url: str


class ShowcaseProposal(BaseModel):
    """Where a new article built from project material should live."""

    title: str
    slug: str
    description: str = ""
    target_hub_id: str = ""
