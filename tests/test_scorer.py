"""Tests for dependency and project risk scoring."""

from __future__ import annotations

import pytest

from deprisk.analyzers.licenses import classify_license
from deprisk.analyzers.scorer import Scorer
from deprisk.models.schemas import (
    DependencyRisk,
    InstallScript,
    LicenseInfo,
    RiskBreakdown,
    RiskLevel,
    ScriptType,
    Severity,
    SupplyChainRisk,
    Vulnerability,
)
from helpers import make_dependency, make_vuln


@pytest.fixture
def scorer() -> Scorer:
    return Scorer()


def make_risk(
    name: str,
    score: int,
    is_transitive: bool = False,
    vulnerabilities: list[Vulnerability] | None = None,
    license: LicenseInfo | None = None,
) -> DependencyRisk:
    """Build a DependencyRisk with a fixed score."""
    return DependencyRisk(
        dependency=make_dependency(name, "1.0.0", is_transitive=is_transitive),
        vulnerabilities=vulnerabilities or [],
        license=license or classify_license("MIT"),
        risk_score=score,
        risk_level=RiskLevel.LOW,
        breakdown=RiskBreakdown(
            vulnerability_score=0,
            license_score=0,
            maintainer_score=0,
            supply_chain_score=0,
        ),
    )


class TestDependencyRisk:
    def test_clean_dependency(self, scorer, mit_license, clean_supply_chain, healthy_maintainer) -> None:
        risk = scorer.calculate_dependency_risk(
            make_dependency("express", "4.18.2"),
            [],
            mit_license,
            clean_supply_chain,
            healthy_maintainer,
        )
        assert risk.risk_score == 0
        assert risk.risk_level == RiskLevel.LOW
        assert risk.reasons == []

    def test_worst_case_dependency(
        self, scorer, gpl_license, curl_pipe_supply_chain, abandoned_maintainer
    ) -> None:
        risk = scorer.calculate_dependency_risk(
            make_dependency("evil-pkg", "0.0.1"),
            [make_vuln(Severity.CRITICAL)],
            gpl_license,
            curl_pipe_supply_chain,
            abandoned_maintainer,
        )

        assert risk.breakdown == RiskBreakdown(
            vulnerability_score=40,
            license_score=100,
            maintainer_score=80,
            supply_chain_score=30,
        )
        # 40*.35 + 100*.25 + 80*.20 + 30*.20 = 61
        assert risk.risk_score == 61
        assert risk.risk_level == RiskLevel.HIGH
        assert risk.reasons == [
            "1 CRITICAL vulnerability found",
            "High-risk license: GNU General Public License v3.0",
            "Repository appears abandoned (no commits in over a year)",
            "Single maintainer risk (bus factor = 1)",
            "Suspicious install scripts detected (postinstall)",
        ]

    def test_half_points_round_up(self, scorer, mit_license) -> None:
        # One UNKNOWN vulnerability: 10 * 0.35 = 3.5
        risk = scorer.calculate_dependency_risk(
            make_dependency(), [make_vuln(Severity.UNKNOWN)], mit_license, None, None
        )
        assert risk.risk_score == 4

    def test_missing_signals_score_zero(self, scorer, mit_license) -> None:
        risk = scorer.calculate_dependency_risk(make_dependency(), [], mit_license, None, None)
        assert risk.breakdown.maintainer_score == 0
        assert risk.breakdown.supply_chain_score == 0
        assert risk.supply_chain is None
        assert risk.maintainer_health is None

    def test_vulnerability_reasons_are_pluralized(self, scorer, mit_license) -> None:
        vulns = [
            make_vuln(Severity.HIGH, "GHSA-1"),
            make_vuln(Severity.HIGH, "GHSA-2"),
            make_vuln(Severity.MEDIUM, "GHSA-3"),
            make_vuln(Severity.LOW, "GHSA-4"),
        ]
        risk = scorer.calculate_dependency_risk(make_dependency(), vulns, mit_license, None, None)
        assert risk.reasons == [
            "2 HIGH severity vulnerabilities",
            "1 MEDIUM severity vulnerability",
        ]

    @pytest.mark.parametrize(
        ("license_id", "reason"),
        [
            ("LGPL-3.0", "Conditional license requires attention: GNU Lesser General Public License v3.0"),
            (
                "MIT OR Apache-2.0",
                "License ambiguity: Multiple license options available. "
                "Verify which license applies to your use case.",
            ),
            (None, "Unknown or missing license information"),
        ],
    )
    def test_license_reasons(self, scorer, license_id: str | None, reason: str) -> None:
        risk = scorer.calculate_dependency_risk(
            make_dependency(), [], classify_license(license_id), None, None
        )
        assert risk.reasons == [reason]

    def test_unknown_license_score(self, scorer) -> None:
        # 70 * 0.25 = 17.5
        risk = scorer.calculate_dependency_risk(make_dependency(), [], classify_license(None), None, None)
        assert risk.risk_score == 18
        assert risk.risk_level == RiskLevel.LOW

    def test_supply_chain_reasons(self, scorer, mit_license) -> None:
        supply_chain = SupplyChainRisk(
            has_install_scripts=True,
            scripts=[InstallScript(type=ScriptType.PREPARE, content="husky install")],
            has_native_bindings=True,
            attack_surface=[
                "Install-time code execution",
                "Native code compilation and execution",
                "Has network access capabilities",
                "Has filesystem access capabilities",
            ],
        )
        risk = scorer.calculate_dependency_risk(make_dependency(), [], mit_license, supply_chain, None)
        assert risk.reasons == [
            "Has install-time scripts",
            "Contains native code bindings",
            "Multiple attack vectors identified (4 potential surfaces)",
        ]


class TestScoreToLevel:
    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (100, RiskLevel.CRITICAL),
            (70, RiskLevel.CRITICAL),
            (69, RiskLevel.HIGH),
            (50, RiskLevel.HIGH),
            (49, RiskLevel.MEDIUM),
            (25, RiskLevel.MEDIUM),
            (24, RiskLevel.LOW),
            (0, RiskLevel.LOW),
        ],
    )
    def test_thresholds(self, scorer, score: int, level: RiskLevel) -> None:
        assert scorer._score_to_level(score) == level


class TestOverallRisk:
    def test_no_dependencies(self, scorer) -> None:
        overall = scorer.calculate_overall_risk([])
        assert overall.score == 0
        assert overall.level == RiskLevel.LOW
        assert overall.top_risks == []
        assert overall.summary.total_dependencies == 0

    def test_direct_dependencies_count_double(self, scorer) -> None:
        overall = scorer.calculate_overall_risk([
            make_risk("direct", 80),
            make_risk("transitive", 20, is_transitive=True),
        ])
        # (80*2 + 20*1) / 3 = 60
        assert overall.score == 60
        assert overall.level == RiskLevel.HIGH

    def test_critical_vulnerability_escalates(self, scorer) -> None:
        overall = scorer.calculate_overall_risk([
            make_risk("direct", 80, vulnerabilities=[make_vuln(Severity.CRITICAL)]),
            make_risk("transitive", 20, is_transitive=True),
        ])
        assert overall.score == 80
        assert overall.level == RiskLevel.CRITICAL
        assert overall.summary.critical_vulnerabilities == 1

    def test_critical_vulnerability_forces_level(self, scorer) -> None:
        overall = scorer.calculate_overall_risk([
            make_risk("a", 5, vulnerabilities=[make_vuln(Severity.CRITICAL)]),
        ])
        assert overall.score == 25
        assert overall.level == RiskLevel.CRITICAL

    def test_high_risk_license_adds_ten(self, scorer, gpl_license) -> None:
        overall = scorer.calculate_overall_risk([make_risk("a", 30, license=gpl_license)])
        assert overall.score == 40
        assert overall.level == RiskLevel.MEDIUM
        assert overall.summary.high_risk_licenses == 1

    def test_score_is_capped(self, scorer, gpl_license) -> None:
        overall = scorer.calculate_overall_risk([
            make_risk("a", 95, vulnerabilities=[make_vuln(Severity.CRITICAL)], license=gpl_license),
        ])
        assert overall.score == 100

    def test_average_rounds_half_up(self, scorer) -> None:
        overall = scorer.calculate_overall_risk([
            make_risk("a", 1, is_transitive=True),
            make_risk("b", 2, is_transitive=True),
        ])
        assert overall.score == 2

    def test_top_risks_are_highest_three_in_scan_order(self, scorer) -> None:
        risks = [
            make_risk("a", 10),
            make_risk("b", 50),
            make_risk("c", 50),
            make_risk("d", 30),
            make_risk("e", 70),
        ]
        overall = scorer.calculate_overall_risk(risks)
        assert [r.dependency.name for r in overall.top_risks] == ["e", "b", "c"]

    def test_summary_counters(self, scorer, abandoned_maintainer, curl_pipe_supply_chain) -> None:
        flagged = scorer.calculate_dependency_risk(
            make_dependency("flagged"),
            [make_vuln(Severity.HIGH), make_vuln(Severity.LOW), make_vuln(Severity.UNKNOWN)],
            classify_license("AGPL-3.0"),
            curl_pipe_supply_chain,
            abandoned_maintainer,
        )
        plain = make_risk("plain", 0, is_transitive=True, vulnerabilities=[make_vuln(Severity.MEDIUM)])

        summary = scorer.calculate_overall_risk([flagged, plain]).summary

        assert summary.total_dependencies == 2
        assert summary.direct_dependencies == 1
        assert summary.transitive_dependencies == 1
        assert summary.critical_vulnerabilities == 0
        assert summary.high_vulnerabilities == 1
        assert summary.medium_vulnerabilities == 1
        assert summary.low_vulnerabilities == 1
        assert summary.high_risk_licenses == 1
        assert summary.abandoned_packages == 1
        assert summary.supply_chain_risks == 1
