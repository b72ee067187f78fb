"""NPM manifest parsing and registry license lookups."""

import asyncio
import logging
import re
from typing import Callable

import httpx

from deprisk.analyzers.licenses import classify_license
from deprisk.models.schemas import Dependency, LicenseInfo

logger = logging.getLogger(__name__)

# A single leading range operator (^1.2.3, ~1.2.3, >=1.2.3 keeps "=1.2.3")
_RANGE_PREFIX = re.compile(r"^[\^~>=<]")


def extract_dependencies(package_json: dict, package_lock: dict | None = None) -> list[Dependency]:
    """Extract direct and transitive dependencies from a manifest and lockfile.

    Direct dependencies come from ``dependencies`` and ``devDependencies``.
    Transitive dependencies come from the lockfile, either the v2/v3
    ``packages`` map or the legacy v1 nested ``dependencies`` tree.
    Entries are deduplicated by name@version; the first occurrence wins.

    Args:
        package_json: Parsed package.json.
        package_lock: Parsed package-lock.json or npm-shrinkwrap.json, if any.

    Returns:
        Dependencies in discovery order.
    """
    dependencies: list[Dependency] = []
    seen: set[str] = set()

    def add(dependency: Dependency) -> None:
        if dependency.name and dependency.key not in seen:
            seen.add(dependency.key)
            dependencies.append(dependency)

    for field, is_dev in (("dependencies", False), ("devDependencies", True)):
        for name, requested in (package_json.get(field) or {}).items():
            version = _RANGE_PREFIX.sub("", requested) if isinstance(requested, str) else ""
            add(Dependency(name=name, version=version, is_dev=is_dev, is_transitive=False, depth=0))

    if not package_lock:
        return dependencies

    packages = package_lock.get("packages")
    if packages:
        for path, info in packages.items():
            if not path:
                continue  # Root project

            parts = path.replace("node_modules/", "", 1).split("node_modules/")
            add(Dependency(
                name=parts[-1],
                version=info.get("version") or "",
                is_dev=bool(info.get("dev", False)),
                is_transitive=True,
                depth=len(parts),
            ))
    elif package_lock.get("dependencies"):
        _walk_legacy_lock(package_lock["dependencies"], 0, add)

    return dependencies


def _walk_legacy_lock(tree: dict, depth: int, add: Callable[[Dependency], None]) -> None:
    """Walk a lockfile v1 dependency tree depth-first."""
    for name, info in tree.items():
        add(Dependency(
            name=name,
            version=info.get("version") or "",
            is_dev=bool(info.get("dev", False)),
            is_transitive=depth > 0,
            depth=depth,
        ))
        if info.get("dependencies"):
            _walk_legacy_lock(info["dependencies"], depth + 1, add)


def extract_license_id(data: dict) -> str | None:
    """Extract a license identifier from npm version metadata.

    Handles a plain string, an object with ``type``, and the legacy
    ``licenses`` array (joined with " OR " when there are several).
    """
    license_info = data.get("license")

    if isinstance(license_info, str):
        return license_info
    if isinstance(license_info, dict) and license_info.get("type"):
        return license_info["type"]

    legacy = data.get("licenses")
    if isinstance(legacy, list):
        types = [entry.get("type") if isinstance(entry, dict) else entry for entry in legacy]
        types = [t for t in types if t]
        if len(types) > 1:
            return " OR ".join(types)
        if types:
            return types[0]

    return None


class NpmAdapter:
    """Adapter for the NPM package registry.

    Data sources:
    - Version metadata: https://registry.npmjs.org/{package}/{version}
    """

    REGISTRY_URL = "https://registry.npmjs.org"

    # Bounded concurrency to avoid overwhelming the registry
    BATCH_SIZE = 10
    BATCH_DELAY = 0.05  # seconds

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the adapter.

        Args:
            client: Optional httpx client for making requests.
        """
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    async def _fetch_json(self, url: str) -> dict:
        """Fetch JSON from a URL."""
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def fetch_license(self, name: str, version: str | None = None) -> LicenseInfo:
        """Fetch and classify the license of a package version.

        Args:
            name: Package name (supports scoped packages like @org/pkg).
            version: Exact version; the latest release is used when omitted.

        Returns:
            Classified license. Unknown when the registry can't be reached.
        """
        # URL-encode scoped package names
        encoded_name = name.replace("/", "%2F")
        url = f"{self.REGISTRY_URL}/{encoded_name}/{version or 'latest'}"

        try:
            data = await self._fetch_json(url)
        except httpx.HTTPStatusError as e:
            logger.debug(f"npm: {name}@{version} returned HTTP {e.response.status_code}")
            return classify_license(None)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"npm: license lookup failed for {name}: {e}")
            return classify_license(None)

        if not isinstance(data, dict):
            return classify_license(None)

        return classify_license(extract_license_id(data))

    async def batch_fetch_licenses(self, dependencies: list[Dependency]) -> dict[str, LicenseInfo]:
        """Fetch licenses for many dependencies in bounded batches.

        Args:
            dependencies: Dependencies to look up.

        Returns:
            Mapping of name@version to classified license.
        """
        results: dict[str, LicenseInfo] = {}

        for start in range(0, len(dependencies), self.BATCH_SIZE):
            batch = dependencies[start:start + self.BATCH_SIZE]
            licenses = await asyncio.gather(
                *(self.fetch_license(dep.name, dep.version) for dep in batch)
            )
            for dep, license in zip(batch, licenses):
                results[dep.key] = license

            if start + self.BATCH_SIZE < len(dependencies):
                await asyncio.sleep(self.BATCH_DELAY)

        return results
