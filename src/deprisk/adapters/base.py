"""Shared adapter helpers and exceptions."""

import re


class DepRiskError(Exception):
    """Base class for scan failures."""


class InvalidRepoUrlError(DepRiskError):
    """Raised when a repository reference cannot be parsed."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid GitHub repository URL: '{url}'")


class RepositoryNotFoundError(DepRiskError):
    """Raised when a repository doesn't exist or isn't accessible."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo
        super().__init__(f"Repository '{owner}/{repo}' not found (may be private, deleted, or renamed)")


class GitHubAPIError(DepRiskError):
    """Raised when the GitHub API returns an unexpected error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(f"GitHub API Error: {message}")


class ManifestNotFoundError(DepRiskError):
    """Raised when no package.json can be found."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"No package.json found in {source}. Please provide a valid package manifest.")


class NoDependenciesError(DepRiskError):
    """Raised when a manifest declares no dependencies."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"No dependencies found in package.json of {source}")


# https://github.com/owner/repo, https://github.com/owner/repo.git,
# https://github.com/owner/repo/tree/main/subpath, owner/repo
REPO_URL_PATTERNS = [
    re.compile(r"github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$"),
    re.compile(r"^([^/]+)/([^/]+)$"),
]


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """Parse a GitHub repository URL or owner/repo shorthand.

    Args:
        url: Repository URL to parse.

    Returns:
        (owner, repo) if the URL can be parsed, None otherwise.
    """
    if not url:
        return None

    for pattern in REPO_URL_PATTERNS:
        match = pattern.search(url.strip())
        if match:
            owner, repo = match.group(1), match.group(2)
            if repo.endswith(".git"):
                repo = repo[: -len(".git")]
            return owner, repo

    return None
