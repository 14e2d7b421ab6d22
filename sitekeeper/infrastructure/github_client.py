from __future__ import annotations

import logging
import os
from typing import Any, Mapping

import httpx

from sitekeeper.domain.entities import Profile, Repository
from sitekeeper.domain.interfaces import IProfileFetcher

log = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
PAGE_SIZE      = 100
MAX_PAGES      = 100
USER_AGENT     = "sitekeeper-updater"
TOKEN_ENV_VARS = ("GH_TOKEN", "GITHUB_TOKEN")


class FetchError(Exception):
    """Raised when a remote call fails; the whole refresh is aborted."""
    pass


def token_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    """Optional bearer token. Running without one is allowed, just rate limited harder."""
    environ = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


class GitHubClient(IProfileFetcher):
    """
    Concrete IProfileFetcher for GitHub's REST API (v3).

    The constructor receives an httpx.AsyncClient (injected) rather than
    creating one internally, so callers own the client lifecycle and tests
    can hand in a client built on httpx.MockTransport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | None = None,
        api_url: str = GITHUB_API_URL,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES,
    ) -> None:
        self._client    = client
        self._api_url   = api_url.rstrip("/")
        self._page_size = page_size
        self._max_pages = max_pages
        self._headers   = {
            "Accept":     "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    # Anti-Corruption Layer
    @staticmethod
    def _parse_profile(payload: dict) -> Profile:
        """
        Translate GitHub's user object into our Profile.

        Anything not listed here is dropped. If GitHub renames a field,
        fix it HERE only.
        """
        return Profile(
            login        = payload["login"],
            name         = payload.get("name"),
            bio          = payload.get("bio"),
            avatar_url   = payload.get("avatar_url"),
            html_url     = payload.get("html_url"),
            public_repos = payload.get("public_repos", 0),
            followers    = payload.get("followers", 0),
            following    = payload.get("following", 0),
            created_at   = payload.get("created_at"),
            updated_at   = payload.get("updated_at"),
        )

    @staticmethod
    def _parse_repository(payload: dict) -> Repository:
        return Repository(
            name             = payload["name"],
            html_url         = payload.get("html_url"),
            description      = payload.get("description"),
            language         = payload.get("language"),
            stargazers_count = payload.get("stargazers_count", 0),
            forks_count      = payload.get("forks_count", 0),
            fork             = bool(payload.get("fork", False)),
            pushed_at        = payload.get("pushed_at"),
            updated_at       = payload.get("updated_at"),
        )

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_url}{path}"
        try:
            response = await self._client.get(url, headers=self._headers, params=params, timeout=30.0)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Request failed for {exc.request.url}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Request failed for {url}: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON response for {response.url}") from exc

    # IProfileFetcher implementation
    async def fetch_profile(self, username: str) -> Profile:
        payload = await self._get_json(f"/users/{username}")
        if not isinstance(payload, dict):
            raise FetchError(f"Unexpected user payload for {username!r}")
        try:
            return self._parse_profile(payload)
        except KeyError as exc:
            raise FetchError(f"User payload for {username!r} is missing {exc}") from exc

    async def fetch_repositories(self, username: str) -> list[Repository]:
        """
        Walk the page-numbered repo listing until a short or empty page.

        A hard page ceiling guards against an API that never shrinks a page;
        hitting it is an error rather than a silently truncated snapshot.
        """
        repos: list[Repository] = []

        for page in range(1, self._max_pages + 1):
            batch = await self._get_json(
                f"/users/{username}/repos",
                params={"per_page": self._page_size, "sort": "updated", "page": page},
            )
            if not isinstance(batch, list):
                raise FetchError(f"Unexpected repository page {page} for {username!r}")
            if not batch:
                break

            try:
                repos.extend(self._parse_repository(item) for item in batch)
            except (KeyError, TypeError, AttributeError) as exc:
                raise FetchError(f"Malformed repository on page {page}: {exc}") from exc

            log.debug("Page %d | +%d repos | total %d", page, len(batch), len(repos))

            if len(batch) < self._page_size:
                break
        else:
            raise FetchError(
                f"Repository listing for {username!r} did not end within {self._max_pages} pages"
            )

        return repos
