"""Risk score calculator for dependencies and whole projects."""

import math

from deprisk.analyzers.licenses import license_risk_score
from deprisk.analyzers.maintainer import maintainer_score
from deprisk.analyzers.osv import vulnerability_score
from deprisk.analyzers.supply_chain import supply_chain_score
from deprisk.models.schemas import (
    Dependency,
    DependencyRisk,
    LicenseInfo,
    LicenseRisk,
    MaintainerHealth,
    OverallRisk,
    RiskBreakdown,
    RiskLevel,
    ScanSummary,
    Severity,
    SupplyChainRisk,
    Vulnerability,
)


class Scorer:
    """Calculates explainable risk scores from collected signals.

    Scoring weights (total 100%):
    - Vulnerabilities: 35%
    - License: 25%
    - Maintainer health: 20%
    - Supply chain behavior: 20%
    """

    # Score weights
    WEIGHTS = {
        "vulnerability": 35,
        "license": 25,
        "maintainer": 20,
        "supply_chain": 20,
    }

    # Inclusive lower bounds, checked high to low
    LEVEL_THRESHOLDS = [
        (70, RiskLevel.CRITICAL),
        (50, RiskLevel.HIGH),
        (25, RiskLevel.MEDIUM),
    ]

    # Project-level weighting and escalation
    DIRECT_WEIGHT = 2
    TRANSITIVE_WEIGHT = 1
    CRITICAL_VULN_BOOST = 20
    HIGH_RISK_LICENSE_BOOST = 10
    TOP_RISKS = 3

    def calculate_dependency_risk(
        self,
        dependency: Dependency,
        vulnerabilities: list[Vulnerability],
        license: LicenseInfo,
        supply_chain: SupplyChainRisk | None,
        maintainer_health: MaintainerHealth | None,
    ) -> DependencyRisk:
        """Combine all signals for one dependency into a weighted risk score.

        Args:
            dependency: The dependency being assessed.
            vulnerabilities: Known vulnerabilities for this exact version.
            license: Classified license.
            supply_chain: Manifest behavior profile, None when not applicable.
            maintainer_health: Repository health, None when not applicable.

        Returns:
            DependencyRisk with score, level, reasons and sub-score breakdown.
        """
        breakdown = RiskBreakdown(
            vulnerability_score=_clamp(vulnerability_score(vulnerabilities)),
            license_score=_clamp(license_risk_score(license)),
            maintainer_score=_clamp(maintainer_score(maintainer_health)),
            supply_chain_score=_clamp(supply_chain_score(supply_chain)),
        )

        weighted_total = (
            breakdown.vulnerability_score * self.WEIGHTS["vulnerability"]
            + breakdown.license_score * self.WEIGHTS["license"]
            + breakdown.maintainer_score * self.WEIGHTS["maintainer"]
            + breakdown.supply_chain_score * self.WEIGHTS["supply_chain"]
        )
        # Weights are percentages; round half up
        risk_score = (weighted_total + 50) // 100

        reasons = self._build_reasons(vulnerabilities, license, supply_chain, maintainer_health)

        return DependencyRisk(
            dependency=dependency,
            vulnerabilities=vulnerabilities,
            license=license,
            supply_chain=supply_chain,
            maintainer_health=maintainer_health,
            risk_score=risk_score,
            risk_level=self._score_to_level(risk_score),
            reasons=reasons,
            breakdown=breakdown,
        )

    def _build_reasons(
        self,
        vulnerabilities: list[Vulnerability],
        license: LicenseInfo,
        supply_chain: SupplyChainRisk | None,
        maintainer_health: MaintainerHealth | None,
    ) -> list[str]:
        """Generate human-readable reasons in a fixed order."""
        reasons = []

        # Vulnerabilities
        critical = _count_severity(vulnerabilities, Severity.CRITICAL)
        high = _count_severity(vulnerabilities, Severity.HIGH)
        medium = _count_severity(vulnerabilities, Severity.MEDIUM)
        if critical:
            reasons.append(f"{critical} CRITICAL {_pluralize_vulnerability(critical)} found")
        if high:
            reasons.append(f"{high} HIGH severity {_pluralize_vulnerability(high)}")
        if medium:
            reasons.append(f"{medium} MEDIUM severity {_pluralize_vulnerability(medium)}")

        # License
        if license.risk_level == LicenseRisk.HIGH_RISK:
            reasons.append(f"High-risk license: {license.name}")
        elif license.risk_level == LicenseRisk.CONDITIONAL:
            reasons.append(f"Conditional license requires attention: {license.name}")
        elif license.risk_level == LicenseRisk.AMBIGUOUS:
            reasons.append(f"License ambiguity: {license.explanation}")
        elif license.risk_level == LicenseRisk.UNKNOWN:
            reasons.append("Unknown or missing license information")

        # Maintainer
        if maintainer_health:
            reasons.extend(maintainer_health.risks)

        # Supply chain
        if supply_chain:
            if supply_chain.has_install_scripts:
                risky = [script.type.value for script in supply_chain.scripts if script.risks]
                if risky:
                    reasons.append(f"Suspicious install scripts detected ({', '.join(risky)})")
                else:
                    reasons.append("Has install-time scripts")
            if supply_chain.has_native_bindings:
                reasons.append("Contains native code bindings")
            if len(supply_chain.attack_surface) > 3:
                reasons.append(
                    f"Multiple attack vectors identified ({len(supply_chain.attack_surface)} potential surfaces)"
                )

        return reasons

    def calculate_overall_risk(self, risks: list[DependencyRisk]) -> OverallRisk:
        """Reduce all dependency risks to a project-level verdict.

        Direct dependencies count double in the weighted average. Any critical
        vulnerability adds 20 and forces a Critical level; any high-risk
        license adds 10.

        Args:
            risks: Per-dependency risk assessments, in scan order.

        Returns:
            OverallRisk with score, level, summary counters and top risks.
        """
        if not risks:
            return OverallRisk(score=0, level=RiskLevel.LOW, summary=ScanSummary(), top_risks=[])

        summary = self._build_summary(risks)

        weighted_sum = 0
        total_weight = 0
        for risk in risks:
            weight = self.TRANSITIVE_WEIGHT if risk.dependency.is_transitive else self.DIRECT_WEIGHT
            weighted_sum += risk.risk_score * weight
            total_weight += weight

        score = weighted_sum / total_weight if total_weight else 0.0

        # Escalate for project-wide red flags
        if summary.critical_vulnerabilities > 0:
            score = min(100.0, score + self.CRITICAL_VULN_BOOST)
        if summary.high_risk_licenses > 0:
            score = min(100.0, score + self.HIGH_RISK_LICENSE_BOOST)

        final_score = math.floor(score + 0.5)

        if summary.critical_vulnerabilities > 0:
            level = RiskLevel.CRITICAL
        else:
            level = self._score_to_level(final_score)

        # sorted() is stable, so ties keep scan order
        top_risks = sorted(risks, key=lambda r: r.risk_score, reverse=True)[: self.TOP_RISKS]

        return OverallRisk(score=final_score, level=level, summary=summary, top_risks=top_risks)

    def _build_summary(self, risks: list[DependencyRisk]) -> ScanSummary:
        """Count dependencies, vulnerabilities and flagged packages."""
        summary = ScanSummary(
            total_dependencies=len(risks),
            direct_dependencies=sum(1 for r in risks if not r.dependency.is_transitive),
            transitive_dependencies=sum(1 for r in risks if r.dependency.is_transitive),
        )

        for risk in risks:
            for vuln in risk.vulnerabilities:
                if vuln.severity == Severity.CRITICAL:
                    summary.critical_vulnerabilities += 1
                elif vuln.severity == Severity.HIGH:
                    summary.high_vulnerabilities += 1
                elif vuln.severity == Severity.MEDIUM:
                    summary.medium_vulnerabilities += 1
                elif vuln.severity == Severity.LOW:
                    summary.low_vulnerabilities += 1

            if risk.license.risk_level == LicenseRisk.HIGH_RISK:
                summary.high_risk_licenses += 1

            if risk.maintainer_health and risk.maintainer_health.is_abandoned:
                summary.abandoned_packages += 1

            if risk.supply_chain and (
                risk.supply_chain.has_install_scripts or risk.supply_chain.has_native_bindings
            ):
                summary.supply_chain_risks += 1

        return summary

    def _score_to_level(self, score: int) -> RiskLevel:
        """Convert numeric score to a risk level."""
        for threshold, level in self.LEVEL_THRESHOLDS:
            if score >= threshold:
                return level
        return RiskLevel.LOW


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _count_severity(vulnerabilities: list[Vulnerability], severity: Severity) -> int:
    return sum(1 for vuln in vulnerabilities if vuln.severity == severity)


def _pluralize_vulnerability(count: int) -> str:
    return "vulnerability" if count == 1 else "vulnerabilities"
