"""End-to-end tests for the scan pipeline with mocked upstream services."""

from __future__ import annotations

import asyncio
import base64
import json
from datetime import datetime, timezone

import httpx
import pytest

from deprisk.adapters.base import (
    InvalidRepoUrlError,
    ManifestNotFoundError,
    NoDependenciesError,
)
from deprisk.analyzers.pipeline import SCAN_STAGES, ScanPipeline, save_result
from deprisk.models.schemas import LicenseRisk, RiskLevel
from helpers import mock_client

CRITICAL_VULN = {
    "id": "GHSA-crit-0001",
    "summary": "Remote code execution",
    "severity": [{"type": "CVSS_V3", "score": "9.8"}],
}


def make_handler(
    licenses: dict[str, str] | None = None,
    vulns: dict[str, list[dict]] | None = None,
    github: dict[str, object] | None = None,
):
    """Route requests to fake npm, OSV and GitHub backends.

    ``github`` maps API paths to JSON bodies; unknown paths return 404.
    """
    licenses = licenses or {}
    vulns = vulns or {}
    github = github or {}

    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == "registry.npmjs.org":
            name = request.url.path.split("/")[1]
            return httpx.Response(200, json={"license": licenses.get(name, "MIT")})
        if host == "api.osv.dev":
            name = json.loads(request.content)["package"]["name"]
            return httpx.Response(200, json={"vulns": vulns.get(name, [])})
        if host == "api.github.com" and request.url.path in github:
            return httpx.Response(200, json=github[request.url.path])
        return httpx.Response(404, json={"message": "Not Found"})

    return handler


def contents(data: dict) -> dict:
    return {"encoding": "base64", "content": base64.b64encode(json.dumps(data).encode()).decode()}


def run_local(handler, package_json, package_lock=None, on_stage=None):
    async def run():
        async with mock_client(handler) as client:
            async with ScanPipeline(client=client, on_stage=on_stage) as pipeline:
                return await pipeline.scan_local(package_json, package_lock)

    return asyncio.run(run())


class TestScanLocal:
    def test_clean_project(self, sample_package_json, sample_package_lock) -> None:
        result = run_local(make_handler(), sample_package_json, sample_package_lock)

        assert result.repo.full_name == "Local: package.json"
        assert result.repo.owner == "local"
        assert result.overall_risk_score == 0
        assert result.overall_risk_level == RiskLevel.LOW
        assert [r.dependency.key for r in result.dependencies] == [
            "express@4.18.2",
            "jest@29.7.0",
            "debug@2.6.9",
        ]
        assert result.summary.total_dependencies == 3
        assert result.summary.direct_dependencies == 2
        assert result.summary.transitive_dependencies == 1

    def test_signal_attribution(self, sample_package_json, sample_package_lock) -> None:
        result = run_local(make_handler(), sample_package_json, sample_package_lock)
        express, jest, debug = result.dependencies

        # Manifest behavior only applies to direct production dependencies
        assert express.supply_chain is not None
        assert jest.supply_chain is None
        assert debug.supply_chain is None
        # No repository, so no maintainer data
        assert all(r.maintainer_health is None for r in result.dependencies)

    def test_transitive_license_falls_back_to_project_license(self, sample_package_lock) -> None:
        manifest = {"name": "app", "license": "GPL-3.0", "dependencies": {"express": "^4.18.2"}}
        result = run_local(make_handler(), manifest, sample_package_lock)
        licenses = {r.dependency.name: r.license.risk_level for r in result.dependencies}

        assert licenses["express"] == LicenseRisk.SAFE
        assert licenses["debug"] == LicenseRisk.HIGH_RISK

    def test_critical_vulnerability_escalates_project(
        self, sample_package_json, sample_package_lock
    ) -> None:
        handler = make_handler(vulns={"express": [CRITICAL_VULN]})
        result = run_local(handler, sample_package_json, sample_package_lock)

        express = result.dependencies[0]
        assert express.risk_score == 14
        assert express.reasons == ["1 CRITICAL vulnerability found"]
        # (14*2 + 0*2 + 0*1) / 5 = 5.6, plus 20
        assert result.overall_risk_score == 26
        assert result.overall_risk_level == RiskLevel.CRITICAL
        assert result.summary.critical_vulnerabilities == 1
        assert result.top_risks[0].dependency.name == "express"

    def test_reports_every_stage(self, sample_package_json) -> None:
        stages: list[str] = []
        run_local(make_handler(), sample_package_json, on_stage=stages.append)
        assert stages == SCAN_STAGES

    def test_missing_manifest(self) -> None:
        with pytest.raises(ManifestNotFoundError):
            run_local(make_handler(), None)

    def test_no_dependencies(self) -> None:
        with pytest.raises(NoDependenciesError) as exc_info:
            run_local(make_handler(), {"name": "empty"})
        assert "Local: package.json" in str(exc_info.value)


class TestScanRepository:
    def github_backend(self, manifest: dict | None) -> dict[str, object]:
        backend: dict[str, object] = {
            "/repos/acme/app": {
                "name": "app",
                "full_name": "acme/app",
                "owner": {"login": "acme"},
                "created_at": "2020-01-01T00:00:00Z",
            },
            "/repos/acme/app/contributors": [{"login": f"dev{i}"} for i in range(5)],
            "/repos/acme/app/commits": [
                {"commit": {"committer": {"date": datetime.now(timezone.utc).isoformat()}}},
            ],
        }
        if manifest is not None:
            backend["/repos/acme/app/contents/package.json"] = contents(manifest)
        return backend

    def scan(self, handler, url: str = "https://github.com/acme/app"):
        async def run():
            async with mock_client(handler) as client:
                async with ScanPipeline(client=client) as pipeline:
                    return await pipeline.scan_repository(url)

        return asyncio.run(run())

    def test_full_scan(self, sample_package_json) -> None:
        result = self.scan(make_handler(github=self.github_backend(sample_package_json)))

        assert result.repo.full_name == "acme/app"
        assert [r.dependency.name for r in result.dependencies] == ["express", "jest"]
        for risk in result.dependencies:
            assert risk.maintainer_health is not None
            assert risk.maintainer_health.contributor_count == 5
            assert risk.maintainer_health.last_commit_days == 0
            assert risk.maintainer_health.risks == []
        assert result.overall_risk_level == RiskLevel.LOW

    def test_invalid_url(self) -> None:
        with pytest.raises(InvalidRepoUrlError):
            self.scan(make_handler(), url="not a repository")

    def test_missing_manifest(self) -> None:
        with pytest.raises(ManifestNotFoundError) as exc_info:
            self.scan(make_handler(github=self.github_backend(None)))
        assert "acme/app" in str(exc_info.value)


class TestSaveResult:
    def test_writes_json(self, tmp_path, sample_package_json) -> None:
        result = run_local(make_handler(), sample_package_json)
        output = tmp_path / "reports" / "scan.json"

        save_result(result, output)

        data = json.loads(output.read_text())
        assert data["overall_risk_level"] == "Low"
        assert data["repo"]["full_name"] == "Local: package.json"
        assert len(data["dependencies"]) == 2
