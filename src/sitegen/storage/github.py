"""Repository Storage Client backed by the GitHub REST API.

Each HTTP request runs through ``RetryPolicy``, so every step of Import and
Publish is retried on its own. Creation calls are create-or-no-op: running
Publish twice against the same repository is safe.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from sitegen.errors import SiteValidationError
from sitegen.schemas.project import Article, GitHubConfig, HubPage
from sitegen.schemas.storage import RepoMetadata, TreeEntry
from sitegen.shared.cancellation import CancellationToken
from sitegen.shared.retry import RetryPolicy
from sitegen.site.files import build_site_files

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
_API_VERSION = "2022-11-28"
_COMMIT_MESSAGE = "Publish site"


class GitHubStorageClient:
    """Typed GitHub operations for import and publish.

    Pass ``transport`` to route requests somewhere other than the network
    (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        retry: RetryPolicy | None = None,
        *,
        api_url: str = API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.retry = retry or RetryPolicy()
        self._http = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "GitHubStorageClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _headers(credential: str) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
        }
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        credential: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        allow: tuple[int, ...] = (),
        cancel: CancellationToken | None = None,
    ) -> httpx.Response:
        """Send one request through the retry policy.

        Statuses listed in ``allow`` are returned to the caller instead of
        raising ``httpx.HTTPStatusError``.
        """

        async def send() -> httpx.Response:
            resp = await self._http.request(
                method, url, headers=self._headers(credential), json=json, params=params,
            )
            if resp.status_code in allow:
                return resp
            resp.raise_for_status()
            return resp

        return await self.retry.run(send, cancel=cancel, description=f"{method} {url}")

    @staticmethod
    def _repo_url(config: GitHubConfig) -> str:
        owner, name = config.owner_and_name
        return f"/repos/{owner}/{name}"

    # ------------------------------------------------------------------
    # Import-side operations
    # ------------------------------------------------------------------

    async def get_repository_metadata(
        self,
        config: GitHubConfig,
        *,
        cancel: CancellationToken | None = None,
    ) -> RepoMetadata:
        resp = await self._request(
            "GET", self._repo_url(config), config.token, allow=(404,), cancel=cancel,
        )
        if resp.status_code == 404:
            raise SiteValidationError(f"Repository not found: {config.repo}")
        return RepoMetadata(default_branch=resp.json().get("default_branch") or "main")

    async def list_tree(
        self,
        config: GitHubConfig,
        *,
        cancel: CancellationToken | None = None,
    ) -> list[TreeEntry]:
        resp = await self._request(
            "GET",
            f"{self._repo_url(config)}/git/trees/{config.branch}",
            config.token,
            params={"recursive": "1"},
            allow=(404, 409),
            cancel=cancel,
        )
        if resp.status_code in (404, 409):
            # 409 is GitHub's answer for an empty repository
            raise SiteValidationError(
                f"Branch {config.branch!r} has no files in {config.repo}"
            )
        data = resp.json()
        if data.get("truncated"):
            logger.warning("Tree listing for %s was truncated by GitHub", config.repo)
        return [TreeEntry(**item) for item in data.get("tree", []) if "path" in item]

    async def fetch_file_content(
        self,
        url: str,
        credential: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> str:
        """Fetch a blob by its API URL and decode it as UTF-8."""
        resp = await self._request("GET", url, credential, cancel=cancel)
        data = resp.json()
        content = data.get("content", "")
        if data.get("encoding") == "base64":
            return base64.b64decode(content).decode("utf-8", errors="replace")
        return content

    # ------------------------------------------------------------------
    # Publish-side operations
    # ------------------------------------------------------------------

    def validate_target(self, config: GitHubConfig) -> None:
        """Reject a publish target up front, before anything is created or pushed."""
        if not config.token:
            raise SiteValidationError("A GitHub token is required to publish")
        self._repo_url(config)
        pages_source_path(config.path)

    async def ensure_repository_exists(
        self,
        config: GitHubConfig,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        owner, name = config.owner_and_name
        resp = await self._request(
            "GET", self._repo_url(config), config.token, allow=(404,), cancel=cancel,
        )
        if resp.status_code != 404:
            logger.info("Repository %s already exists", config.repo)
            return

        user = await self._request("GET", "/user", config.token, cancel=cancel)
        login = user.json().get("login", "")
        create_url = "/user/repos" if login.lower() == owner.lower() else f"/orgs/{owner}/repos"

        # auto_init gives the repository a first commit so the git data API works
        resp = await self._request(
            "POST",
            create_url,
            config.token,
            json={"name": name, "auto_init": True, "private": False},
            allow=(422,),
            cancel=cancel,
        )
        if resp.status_code == 422:
            logger.info("Repository %s was created concurrently; continuing", config.repo)
        else:
            logger.info("Created repository %s", config.repo)

    async def _branch_head(
        self,
        config: GitHubConfig,
        *,
        cancel: CancellationToken | None,
    ) -> str:
        """Commit sha at the tip of the target branch, creating the branch if needed."""
        repo = self._repo_url(config)
        resp = await self._request(
            "GET", f"{repo}/git/ref/heads/{config.branch}", config.token,
            allow=(404,), cancel=cancel,
        )
        if resp.status_code != 404:
            return resp.json()["object"]["sha"]

        meta = await self.get_repository_metadata(config, cancel=cancel)
        base = await self._request(
            "GET", f"{repo}/git/ref/heads/{meta.default_branch}", config.token, cancel=cancel,
        )
        sha = base.json()["object"]["sha"]
        await self._request(
            "POST", f"{repo}/git/refs", config.token,
            json={"ref": f"refs/heads/{config.branch}", "sha": sha},
            allow=(422,), cancel=cancel,
        )
        logger.info("Created branch %s from %s", config.branch, meta.default_branch)
        return sha

    async def bulk_push_files(
        self,
        config: GitHubConfig,
        hubs: list[HubPage],
        articles: list[Article],
        readme: str | None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Commit every page plus the README to the target branch in one commit."""
        files = build_site_files(hubs, articles, base_path=config.path, readme=readme)
        if not files:
            raise SiteValidationError("Nothing to publish: no page has markup")

        repo = self._repo_url(config)
        head_sha = await self._branch_head(config, cancel=cancel)
        head = await self._request("GET", f"{repo}/git/commits/{head_sha}", config.token, cancel=cancel)
        base_tree = head.json()["tree"]["sha"]

        tree = await self._request(
            "POST", f"{repo}/git/trees", config.token,
            json={
                "base_tree": base_tree,
                "tree": [
                    {"path": path, "mode": "100644", "type": "blob", "content": content}
                    for path, content in files.items()
                ],
            },
            cancel=cancel,
        )
        commit = await self._request(
            "POST", f"{repo}/git/commits", config.token,
            json={
                "message": _COMMIT_MESSAGE,
                "tree": tree.json()["sha"],
                "parents": [head_sha],
            },
            cancel=cancel,
        )
        await self._request(
            "PATCH", f"{repo}/git/refs/heads/{config.branch}", config.token,
            json={"sha": commit.json()["sha"]},
            cancel=cancel,
        )
        logger.info("Pushed %d file(s) to %s@%s", len(files), config.repo, config.branch)

    async def enable_static_hosting(
        self,
        config: GitHubConfig,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Turn on GitHub Pages for the target branch/path, or update its source."""
        source = {"branch": config.branch, "path": pages_source_path(config.path)}
        pages_url = f"{self._repo_url(config)}/pages"
        resp = await self._request(
            "POST", pages_url, config.token, json={"source": source}, allow=(409,), cancel=cancel,
        )
        if resp.status_code == 409:
            # Already enabled: point it at the current source
            await self._request("PUT", pages_url, config.token, json={"source": source}, cancel=cancel)
        logger.info("GitHub Pages serving %s from %s%s", config.repo, source["branch"], source["path"])


def pages_source_path(path: str) -> str:
    """GitHub Pages can only serve from the repository root or ``/docs``."""
    cleaned = path.strip("/")
    if cleaned == "":
        return "/"
    if cleaned == "docs":
        return "/docs"
    raise SiteValidationError(
        f"GitHub Pages can only serve from '/' or '/docs', not {path!r}; "
        "change the target path before publishing"
    )
