"""Pydantic models for dependency risk data."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Vulnerability severity buckets."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


class LicenseRisk(str, Enum):
    """License risk classification."""

    SAFE = "safe"  # Permissive
    CONDITIONAL = "conditional"  # Weak copyleft or combined obligations
    HIGH_RISK = "high-risk"  # Strong copyleft or no grant at all
    AMBIGUOUS = "ambiguous"  # Dual licensed or custom text
    UNKNOWN = "unknown"


class ScriptType(str, Enum):
    """npm lifecycle scripts that run around install."""

    PREINSTALL = "preinstall"
    POSTINSTALL = "postinstall"
    PREPUBLISH = "prepublish"
    PREPARE = "prepare"


class ExecutionContext(str, Enum):
    """Where a package's code is expected to run."""

    BUILD_TIME = "build-time"
    RUNTIME_SERVER = "runtime-server"
    RUNTIME_BROWSER = "runtime-browser"
    CI_CD = "ci-cd"


class CommitFrequency(str, Enum):
    """Commit recency bands."""

    ACTIVE = "active"  # <= 30 days
    MODERATE = "moderate"  # <= 90 days
    LOW = "low"  # <= 365 days
    INACTIVE = "inactive"


class RiskLevel(str, Enum):
    """Risk level for a dependency or a whole project."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# --- Input Models ---


class Dependency(BaseModel):
    """A single dependency extracted from a manifest or lockfile."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    is_dev: bool = False
    is_transitive: bool = False
    depth: int = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        """Identity key used for lookups (name@version)."""
        return f"{self.name}@{self.version}"


class Vulnerability(BaseModel):
    """A known vulnerability affecting a dependency."""

    id: str  # GHSA-xxxx or CVE-2024-1234
    summary: str = ""
    details: str = ""
    severity: Severity = Severity.UNKNOWN
    affected_versions: list[str] = Field(default_factory=list)
    fixed_versions: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)


class LicenseInfo(BaseModel):
    """License classification for a dependency."""

    spdx_id: str
    name: str
    risk_level: LicenseRisk
    explanation: str
    is_osi_approved: bool = False


# --- Analyzer Output Models ---


class InstallScript(BaseModel):
    """An install lifecycle script and the risky patterns found in it."""

    type: ScriptType
    content: str
    risks: list[str] = Field(default_factory=list)


class SupplyChainRisk(BaseModel):
    """Behavioral risk profile of a project manifest."""

    has_install_scripts: bool = False
    scripts: list[InstallScript] = Field(default_factory=list)
    has_native_bindings: bool = False
    execution_context: ExecutionContext = ExecutionContext.BUILD_TIME
    attack_surface: list[str] = Field(default_factory=list)


class PackageBehavior(BaseModel):
    """Manifest flags describing how a package ships."""

    has_binaries: bool = False
    has_engines: bool = False
    has_os: bool = False
    has_cpu: bool = False
    has_funding: bool = False
    has_types: bool = False


class MaintainerHealth(BaseModel):
    """Repository maintenance signals."""

    contributor_count: int = Field(ge=0)
    last_commit_days: int = Field(ge=0)
    is_abandoned: bool = False
    is_single_maintainer: bool = False
    commit_frequency: CommitFrequency
    risks: list[str] = Field(default_factory=list)


# --- Scoring Models ---


class RiskBreakdown(BaseModel):
    """Per-signal sub-scores (0-100 each) behind a dependency's risk score."""

    vulnerability_score: int = Field(ge=0, le=100)
    license_score: int = Field(ge=0, le=100)
    maintainer_score: int = Field(ge=0, le=100)
    supply_chain_score: int = Field(ge=0, le=100)


class DependencyRisk(BaseModel):
    """Explainable risk assessment for one dependency."""

    dependency: Dependency
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    license: LicenseInfo
    supply_chain: SupplyChainRisk | None = None
    maintainer_health: MaintainerHealth | None = None
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    reasons: list[str] = Field(default_factory=list)
    breakdown: RiskBreakdown


class ScanSummary(BaseModel):
    """Aggregate counters for a scan."""

    total_dependencies: int = 0
    direct_dependencies: int = 0
    transitive_dependencies: int = 0
    critical_vulnerabilities: int = 0
    high_vulnerabilities: int = 0
    medium_vulnerabilities: int = 0
    low_vulnerabilities: int = 0
    high_risk_licenses: int = 0
    abandoned_packages: int = 0
    supply_chain_risks: int = 0


class OverallRisk(BaseModel):
    """Project-level verdict reduced from all dependency risks."""

    score: int = Field(ge=0, le=100)
    level: RiskLevel
    summary: ScanSummary = Field(default_factory=ScanSummary)
    top_risks: list[DependencyRisk] = Field(default_factory=list)


# --- Scan Result ---


class RepoInfo(BaseModel):
    """Repository the scanned manifest came from."""

    owner: str
    name: str
    full_name: str
    description: str = ""
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    last_commit: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    license: str | None = None
    default_branch: str = "main"


class ScanResult(BaseModel):
    """Complete output of one scan."""

    repo: RepoInfo
    scan_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    dependencies: list[DependencyRisk] = Field(default_factory=list)
    overall_risk_score: int = Field(ge=0, le=100)
    overall_risk_level: RiskLevel
    summary: ScanSummary
    top_risks: list[DependencyRisk] = Field(default_factory=list)
