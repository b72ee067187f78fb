"""GitHub data fetcher for manifests and repository health."""

import base64
import binascii
import json
import logging
import os
from datetime import datetime, timezone

import httpx

from deprisk.adapters.base import GitHubAPIError, RepositoryNotFoundError
from deprisk.models.schemas import RepoInfo

logger = logging.getLogger(__name__)


class GitHubFetcher:
    """Fetches repository data from GitHub API.

    A GitHub personal access token raises the rate limit.
    Set GITHUB_TOKEN environment variable or pass token to constructor.
    """

    BASE_URL = "https://api.github.com"
    LOCKFILE_NAMES = ["package-lock.json", "npm-shrinkwrap.json"]

    def __init__(
        self,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: GitHub personal access token. If not provided, uses GITHUB_TOKEN env var.
            client: Optional httpx client. If not provided, a new client is created.
        """
        self._token = token or os.environ.get("GITHUB_TOKEN")
        self._client = client

        # Rate limit tracking
        self.rate_limit_remaining: int | None = None
        self.rate_limit_reset: datetime | None = None

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0, headers=self._headers())

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Extract and store rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining is not None:
            self.rate_limit_remaining = int(remaining)
        if reset is not None:
            self.rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

    async def _fetch(self, path: str, params: dict | None = None) -> dict | list | None:
        """Fetch from GitHub API.

        Returns None if 404, raises on other errors.
        """
        client = await self._get_client()
        url = f"{self.BASE_URL}{path}"

        try:
            response = await client.get(url, params=params, headers=self._headers())
            self._update_rate_limits(response)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def fetch_repo_info(self, owner: str, repo: str) -> RepoInfo:
        """Fetch basic repository information.

        Raises:
            RepositoryNotFoundError: If the repository doesn't exist or is private.
            GitHubAPIError: On any other API failure.
        """
        try:
            data = await self._fetch(f"/repos/{owner}/{repo}")
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            raise GitHubAPIError(message, e.response.status_code) from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(str(e)) from e

        if data is None:
            raise RepositoryNotFoundError(owner, repo)

        license_data = data.get("license") or {}
        return RepoInfo(
            owner=(data.get("owner") or {}).get("login", owner),
            name=data.get("name", repo),
            full_name=data.get("full_name", f"{owner}/{repo}"),
            description=data.get("description") or "",
            stars=data.get("stargazers_count", 0),
            forks=data.get("forks_count", 0),
            open_issues=data.get("open_issues_count", 0),
            last_commit=data.get("pushed_at"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            license=license_data.get("spdx_id"),
            default_branch=data.get("default_branch", "main"),
        )

    async def fetch_file_content(self, owner: str, repo: str, path: str) -> str | None:
        """Fetch and decode a file from the default branch.

        Returns None if the file is missing or can't be decoded.
        """
        try:
            data = await self._fetch(f"/repos/{owner}/{repo}/contents/{path}")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub: could not fetch {owner}/{repo}/{path}: {e}")
            return None

        if not isinstance(data, dict) or data.get("encoding") != "base64" or not data.get("content"):
            logger.debug(f"GitHub: no content for {owner}/{repo}/{path}")
            return None

        try:
            return base64.b64decode(data["content"].replace("\n", "")).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning(f"GitHub: could not decode {owner}/{repo}/{path}: {e}")
            return None

    async def _fetch_json_file(self, owner: str, repo: str, path: str) -> dict | None:
        """Fetch a JSON file; None if missing or malformed."""
        content = await self.fetch_file_content(owner, repo, path)
        if content is None:
            return None

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"GitHub: {owner}/{repo}/{path} is not valid JSON: {e}")
            return None

        return parsed if isinstance(parsed, dict) else None

    async def fetch_package_json(self, owner: str, repo: str) -> dict | None:
        """Fetch the repository's package.json."""
        return await self._fetch_json_file(owner, repo, "package.json")

    async def fetch_package_lock(self, owner: str, repo: str) -> dict | None:
        """Fetch package-lock.json, falling back to npm-shrinkwrap.json."""
        for name in self.LOCKFILE_NAMES:
            lock = await self._fetch_json_file(owner, repo, name)
            if lock is not None:
                return lock
        return None

    async def fetch_contributors(self, owner: str, repo: str) -> int:
        """Count contributors (first page of 100). Returns 0 on failure."""
        try:
            data = await self._fetch(f"/repos/{owner}/{repo}/contributors", params={"per_page": 100})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub: could not fetch contributors for {owner}/{repo}: {e}")
            return 0

        return len(data) if isinstance(data, list) else 0

    async def fetch_recent_commits(self, owner: str, repo: str) -> tuple[int, datetime | None]:
        """Fetch recent commit count and the latest commit date.

        Returns:
            Tuple of (commit_count, last_commit_date). (0, None) on failure.
        """
        try:
            data = await self._fetch(f"/repos/{owner}/{repo}/commits", params={"per_page": 30})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub: could not fetch commits for {owner}/{repo}: {e}")
            return 0, None

        if not isinstance(data, list) or not data:
            return 0, None

        date_str = ((data[0].get("commit") or {}).get("committer") or {}).get("date")
        last_date = None
        if date_str:
            try:
                last_date = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
            except ValueError:
                logger.debug(f"GitHub: unparseable commit date {date_str!r}")

        return len(data), last_date


def _error_message(response: httpx.Response) -> str:
    """Extract GitHub's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return response.reason_phrase
