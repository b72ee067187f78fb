"""End-to-end dependency risk scan pipeline."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import httpx

from deprisk.adapters.base import (
    InvalidRepoUrlError,
    ManifestNotFoundError,
    NoDependenciesError,
    parse_repo_url,
)
from deprisk.adapters.npm import NpmAdapter, extract_dependencies, extract_license_id
from deprisk.analyzers.github import GitHubFetcher
from deprisk.analyzers.licenses import classify_license
from deprisk.analyzers.maintainer import analyze_maintainer_health
from deprisk.analyzers.osv import OSVFetcher
from deprisk.analyzers.scorer import Scorer
from deprisk.analyzers.supply_chain import SupplyChainAnalyzer
from deprisk.models.schemas import MaintainerHealth, RepoInfo, ScanResult

logger = logging.getLogger(__name__)

# Stage names reported to progress callbacks, in order
SCAN_STAGES = [
    "Fetching repository metadata",
    "Parsing dependency graph",
    "Analyzing licenses",
    "Inspecting install & runtime behavior",
    "Scanning for vulnerabilities",
    "Calculating risk scores",
]


class ScanPipeline:
    """Orchestrates a full dependency risk scan.

    Pipeline stages:
    1. Fetch manifest, lockfile and repository metadata
    2. Extract direct and transitive dependencies
    3. Classify licenses (registry lookup for direct dependencies)
    4. Analyze install-time behavior of the manifest
    5. Query OSV for known vulnerabilities
    6. Score every dependency and the project as a whole

    Repository-level maintainer health is attributed to every direct
    dependency, and the manifest's supply chain profile to every direct
    production dependency. Transitive dependencies get neither.
    """

    # Lookup caps to stay within upstream rate limits
    MAX_LICENSE_LOOKUPS = 20
    MAX_VULN_LOOKUPS = 30

    def __init__(
        self,
        github_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        on_stage: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            github_token: GitHub personal access token.
            client: Optional shared httpx client for all upstream calls.
            on_stage: Optional callback invoked with each stage name.
        """
        self._github_token = github_token
        self._http_client = client
        self._owns_client = False
        self._on_stage = on_stage
        self.scorer = Scorer()
        self.supply_chain = SupplyChainAnalyzer()
        self._build_fetchers(client)

    def _build_fetchers(self, client: httpx.AsyncClient | None) -> None:
        self.github = GitHubFetcher(token=self._github_token, client=client)
        self.npm = NpmAdapter(client=client)
        self.osv = OSVFetcher(client=client)

    async def __aenter__(self) -> "ScanPipeline":
        """Set up shared HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=60.0)
            self._owns_client = True
            self._build_fetchers(self._http_client)
        return self

    async def __aexit__(self, *args) -> None:
        """Clean up HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            self._owns_client = False

    def _stage(self, index: int) -> None:
        name = SCAN_STAGES[index]
        logger.info(f"[{index + 1}/{len(SCAN_STAGES)}] {name}")
        if self._on_stage:
            self._on_stage(name)

    async def scan_repository(self, url: str) -> ScanResult:
        """Scan a GitHub repository's npm dependencies.

        Args:
            url: Repository URL or owner/repo shorthand.

        Returns:
            Complete ScanResult.

        Raises:
            InvalidRepoUrlError: If the URL can't be parsed.
            RepositoryNotFoundError: If the repository isn't accessible.
            GitHubAPIError: On other GitHub API failures.
            ManifestNotFoundError: If the repository has no package.json.
            NoDependenciesError: If package.json declares no dependencies.
        """
        parsed = parse_repo_url(url)
        if not parsed:
            raise InvalidRepoUrlError(url)
        owner, repo = parsed

        self._stage(0)
        repo_info = await self.github.fetch_repo_info(owner, repo)
        package_json, package_lock = await asyncio.gather(
            self.github.fetch_package_json(owner, repo),
            self.github.fetch_package_lock(owner, repo),
        )
        if not package_json:
            raise ManifestNotFoundError(f"{owner}/{repo}")

        contributor_count, (_, last_commit_date) = await asyncio.gather(
            self.github.fetch_contributors(owner, repo),
            self.github.fetch_recent_commits(owner, repo),
        )
        maintainer_health = analyze_maintainer_health(
            contributor_count,
            last_commit_date,
            repo_info.created_at,
        )

        return await self._analyze(repo_info, package_json, package_lock, maintainer_health)

    async def scan_local(
        self,
        package_json: dict | None,
        package_lock: dict | None = None,
        filename: str = "package.json",
    ) -> ScanResult:
        """Scan a local manifest (and optional lockfile).

        No repository is involved, so maintainer health is not available.

        Raises:
            ManifestNotFoundError: If no manifest was supplied.
            NoDependenciesError: If the manifest declares no dependencies.
        """
        self._stage(0)
        if not package_json:
            raise ManifestNotFoundError(filename)

        repo_info = RepoInfo(
            owner="local",
            name=filename,
            full_name=f"Local: {filename}",
            description="Local dependency scan",
            created_at=datetime.now(timezone.utc),
        )
        return await self._analyze(repo_info, package_json, package_lock, None)

    async def _analyze(
        self,
        repo_info: RepoInfo,
        package_json: dict,
        package_lock: dict | None,
        maintainer_health: MaintainerHealth | None,
    ) -> ScanResult:
        """Run stages 2-6 over an already-fetched manifest."""
        self._stage(1)
        dependencies = extract_dependencies(package_json, package_lock)
        if not dependencies:
            raise NoDependenciesError(repo_info.full_name)

        direct = [dep for dep in dependencies if not dep.is_transitive]
        logger.info(
            f"Found {len(dependencies)} dependencies "
            f"({len(direct)} direct, {len(dependencies) - len(direct)} transitive)"
        )

        self._stage(2)
        licenses = await self.npm.batch_fetch_licenses(direct[: self.MAX_LICENSE_LOOKUPS])
        # Anything not looked up inherits the project's own license
        fallback_license = classify_license(extract_license_id(package_json))

        self._stage(3)
        supply_chain = self.supply_chain.analyze(package_json)

        self._stage(4)
        vulnerabilities = await self.osv.batch_query(direct[: self.MAX_VULN_LOOKUPS])

        self._stage(5)
        risks = [
            self.scorer.calculate_dependency_risk(
                dep,
                vulnerabilities.get(dep.key, []),
                licenses.get(dep.key, fallback_license),
                None if dep.is_transitive or dep.is_dev else supply_chain,
                None if dep.is_transitive else maintainer_health,
            )
            for dep in dependencies
        ]
        overall = self.scorer.calculate_overall_risk(risks)

        logger.info(f"Overall risk: {overall.level.value} ({overall.score}/100)")

        return ScanResult(
            repo=repo_info,
            dependencies=risks,
            overall_risk_score=overall.score,
            overall_risk_level=overall.level,
            summary=overall.summary,
            top_risks=overall.top_risks,
        )


def save_result(result: ScanResult, output: Path) -> None:
    """Write a scan result as JSON."""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(result.model_dump(mode="json"), indent=2))
    logger.debug(f"Saved scan result to {output}")
