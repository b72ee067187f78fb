"""OSV (Open Source Vulnerabilities) fetcher and vulnerability scoring."""

import asyncio
import logging

import httpx

from deprisk.models.schemas import Dependency, Severity, Vulnerability

logger = logging.getLogger(__name__)

# Points contributed by each vulnerability, by severity
SEVERITY_POINTS = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 15,
    Severity.LOW: 5,
    Severity.UNKNOWN: 10,
}

# Keyword inference when no CVSS score is available, checked in order
SEVERITY_KEYWORDS = [
    (Severity.CRITICAL, ("critical", "rce", "remote code")),
    (Severity.HIGH, ("high", "arbitrary", "injection")),
    (Severity.MEDIUM, ("medium", "moderate")),
    (Severity.LOW, ("low", "minor")),
]


def vulnerability_score(vulnerabilities: list[Vulnerability]) -> int:
    """Calculate a 0-100 severity score for a list of vulnerabilities.

    Each vulnerability adds points by severity (CRITICAL=40, HIGH=25,
    MEDIUM=15, LOW=5, UNKNOWN=10); the total is capped at 100.
    """
    if not vulnerabilities:
        return 0

    score = sum(SEVERITY_POINTS.get(vuln.severity, 0) for vuln in vulnerabilities)
    return min(100, score)


def classify_severity(vuln: dict) -> Severity:
    """Derive a severity bucket from an OSV record.

    Uses the first severity entry's numeric score when present, then falls
    back to keywords in the id, summary and details.

    Args:
        vuln: OSV vulnerability record.

    Returns:
        Severity bucket.
    """
    severities = vuln.get("severity") or []
    if severities:
        cvss_score = _parse_score(severities[0].get("score"))
        if cvss_score is not None:
            if cvss_score >= 9.0:
                return Severity.CRITICAL
            if cvss_score >= 7.0:
                return Severity.HIGH
            if cvss_score >= 4.0:
                return Severity.MEDIUM
            if cvss_score > 0:
                return Severity.LOW

    text = f"{vuln.get('id', '')} {vuln.get('summary') or ''} {vuln.get('details') or ''}".lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return severity

    return Severity.UNKNOWN


def _parse_score(raw: object) -> float | None:
    """Parse a numeric CVSS score; vector strings yield None."""
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw)
        except ValueError:
            return None
    return None


def parse_vulnerability(vuln: dict) -> Vulnerability:
    """Convert an OSV record into a Vulnerability."""
    affected: list[str] = []
    fixed: list[str] = []

    for entry in vuln.get("affected") or []:
        affected.extend(entry.get("versions") or [])
        for rng in entry.get("ranges") or []:
            for event in rng.get("events") or []:
                introduced = event.get("introduced")
                if introduced and introduced != "0":
                    affected.append(f">= {introduced}")
                if event.get("fixed"):
                    fixed.append(event["fixed"])

    references = [ref["url"] for ref in vuln.get("references") or [] if ref.get("url")]

    return Vulnerability(
        id=vuln.get("id", "UNKNOWN"),
        summary=vuln.get("summary") or "No summary available",
        details=vuln.get("details") or "",
        severity=classify_severity(vuln),
        affected_versions=affected,
        fixed_versions=fixed,
        references=references,
    )


class OSVFetcher:
    """Fetches vulnerability data from OSV (Open Source Vulnerabilities) database.

    OSV is a distributed vulnerability database for open source:
    https://osv.dev/

    No authentication required. Failures are logged and reported as
    "no known vulnerabilities" so a scan never aborts on OSV errors.
    """

    BASE_URL = "https://api.osv.dev/v1"
    ECOSYSTEM = "npm"

    # Bounded concurrency to respect upstream rate limits
    BATCH_SIZE = 10
    BATCH_DELAY = 0.1  # seconds

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the fetcher.

        Args:
            client: Optional httpx client. If not provided, creates one per request.
        """
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    async def query(self, package_name: str, version: str) -> list[Vulnerability]:
        """Fetch known vulnerabilities for one package version.

        Args:
            package_name: npm package name.
            version: Resolved version (empty string queries all versions).

        Returns:
            List of vulnerabilities, empty on any failure.
        """
        body: dict = {"package": {"name": package_name, "ecosystem": self.ECOSYSTEM}}
        if version:
            body["version"] = version

        client = await self._get_client()
        try:
            response = await client.post(f"{self.BASE_URL}/query", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"OSV query failed for {package_name}@{version}: HTTP {e.response.status_code}")
            return []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Error querying OSV for {package_name}: {e}")
            return []
        finally:
            if self._client is None:
                await client.aclose()

        return [parse_vulnerability(vuln) for vuln in data.get("vulns") or []]

    async def batch_query(self, dependencies: list[Dependency]) -> dict[str, list[Vulnerability]]:
        """Query vulnerabilities for many dependencies.

        Runs up to BATCH_SIZE lookups concurrently, pausing BATCH_DELAY
        seconds between batches.

        Args:
            dependencies: Dependencies to look up.

        Returns:
            Mapping of name@version to vulnerabilities.
        """
        results: dict[str, list[Vulnerability]] = {}

        for start in range(0, len(dependencies), self.BATCH_SIZE):
            batch = dependencies[start:start + self.BATCH_SIZE]
            batch_results = await asyncio.gather(
                *(self.query(dep.name, dep.version) for dep in batch)
            )
            for dep, vulns in zip(batch, batch_results):
                results[dep.key] = vulns

            if start + self.BATCH_SIZE < len(dependencies):
                await asyncio.sleep(self.BATCH_DELAY)

        found = sum(len(v) for v in results.values())
        logger.debug(f"OSV: {found} vulnerabilities across {len(results)} packages")
        return results
