"""Builders shared across deprisk tests."""

from __future__ import annotations

from typing import Callable

import httpx

from deprisk.models.schemas import Dependency, Severity, Vulnerability


def make_vuln(severity: Severity, vuln_id: str = "GHSA-test") -> Vulnerability:
    """Build a vulnerability with the given severity."""
    return Vulnerability(id=vuln_id, summary="test", severity=severity)


def make_dependency(
    name: str = "left-pad",
    version: str = "1.0.0",
    is_transitive: bool = False,
    is_dev: bool = False,
) -> Dependency:
    """Build a dependency."""
    return Dependency(
        name=name,
        version=version,
        is_dev=is_dev,
        is_transitive=is_transitive,
        depth=1 if is_transitive else 0,
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Create an AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
