"""Project aggregate: identity, pages, remote target and workflow status."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from sitegen.errors import SiteValidationError

HOME_SLUG = "index"

DEFAULT_OPINION = (
    "Technology should extend human creativity and be a tool for building empathy."
)


class SiteType(str, enum.Enum):
    CORPORATE = "Corporate"
    PERSONAL = "Personal"


class SiteTone(str, enum.Enum):
    PROFESSIONAL = "Professional"
    CREATIVE = "Creative"
    MINIMAL = "Minimal"
    VIVID = "Vivid"
    BRUTALIST = "Brutalist"


class ProjectStatus(str, enum.Enum):
    IDLE = "idle"
    IMPORTING = "importing"
    BUILDING_IDENTITY = "building_identity"
    GENERATING_STRATEGY = "generating_strategy"
    GENERATING_HUBS = "generating_hubs"
    READY = "ready"
    CREATING_REPO = "creating_repo"
    PUSHING_FILES = "pushing_files"
    ENABLING_PAGES = "enabling_pages"
    TUNING_DESIGN = "tuning_design"

    @property
    def is_stable(self) -> bool:
        return self in (ProjectStatus.IDLE, ProjectStatus.READY)


class Identity(BaseModel):
    """Brand core. Replaced wholesale, never patched field by field."""

    site_name: str = Field(alias="siteName")
    slug: str = ""
    mission: str = ""
    brand_description: str = Field(default="", alias="brandDescription")
    theme_color: str = Field(default="#4f46e5", alias="themeColor")
    tone: SiteTone | None = None

    model_config = {"populate_by_name": True}

    @field_validator("tone", mode="before")
    @classmethod
    def drop_unknown_tone(cls, v: object) -> object:
        if v is None or v == "":
            return None
        try:
            return SiteTone(v)
        except ValueError:
            return None


class HubPage(BaseModel):
    """A top-level section page; the one with slug ``index`` is the home page."""

    id: str
    title: str
    slug: str
    description: str = ""
    html: str | None = None

    @property
    def is_home(self) -> bool:
        return self.slug == HOME_SLUG


class Article(BaseModel):
    """A leaf page nested under exactly one hub."""

    id: str
    hub_id: str
    title: str
    slug: str
    content_html: str | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class GitHubConfig(BaseModel):
    token: str = ""
    repo: str = ""  # "owner/repo"
    branch: str = "main"
    path: str = "docs"  # target directory inside the repo, "" for the root

    @property
    def owner_and_name(self) -> tuple[str, str]:
        owner, sep, name = self.repo.strip().strip("/").partition("/")
        if not sep or not owner or not name or "/" in name:
            raise SiteValidationError(f"Repository must be in 'owner/repo' form, got {self.repo!r}")
        return owner, name


class ProjectState(BaseModel):
    """Aggregate root persisted between sessions."""

    opinion: str = DEFAULT_OPINION
    site_type: SiteType = SiteType.CORPORATE
    identity: Identity | None = None
    hubs: list[HubPage] = []
    articles: list[Article] = []
    gtm_id: str = ""
    adsense_id: str = ""
    strategy_rationale: str | None = None
    status: ProjectStatus = ProjectStatus.IDLE
    github_config: GitHubConfig = Field(default_factory=GitHubConfig)

    @property
    def home(self) -> HubPage | None:
        return next((h for h in self.hubs if h.is_home), None)

    def hub_by_id(self, hub_id: str) -> HubPage | None:
        return next((h for h in self.hubs if h.id == hub_id), None)

    def stable_status(self) -> ProjectStatus:
        """The status a workflow falls back to when it stops."""
        return ProjectStatus.READY if self.identity is not None else ProjectStatus.IDLE

    def check_invariants(self) -> None:
        """Raise ``SiteValidationError`` if the page collections are inconsistent.

        An empty hub list is valid (nothing built yet); otherwise exactly one
        hub is the home page, hub slugs and ids are unique, and every article
        points at an existing section (never at home).
        """
        if not self.hubs:
            if self.articles:
                raise SiteValidationError("Articles exist without any hub pages")
            return

        homes = [h for h in self.hubs if h.is_home]
        if len(homes) != 1:
            raise SiteValidationError(f"Expected exactly one home page, found {len(homes)}")

        slugs = [h.slug for h in self.hubs]
        if len(set(slugs)) != len(slugs):
            raise SiteValidationError(f"Duplicate hub slugs: {slugs}")

        ids = {h.id for h in self.hubs}
        if len(ids) != len(self.hubs):
            raise SiteValidationError("Duplicate hub ids")

        home_id = homes[0].id
        for article in self.articles:
            if article.hub_id not in ids:
                raise SiteValidationError(
                    f"Article {article.slug!r} references missing hub {article.hub_id!r}"
                )
            if article.hub_id == home_id:
                # Root-level article files do not survive a re-import.
                raise SiteValidationError(f"Article {article.slug!r} must belong to a section, not home")
