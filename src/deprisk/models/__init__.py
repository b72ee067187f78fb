"""Data models and schemas."""

from deprisk.models.schemas import (
    Dependency,
    DependencyRisk,
    LicenseInfo,
    MaintainerHealth,
    OverallRisk,
    ScanResult,
    SupplyChainRisk,
    Vulnerability,
)

__all__ = [
    "Dependency",
    "DependencyRisk",
    "LicenseInfo",
    "MaintainerHealth",
    "OverallRisk",
    "ScanResult",
    "SupplyChainRisk",
    "Vulnerability",
]
