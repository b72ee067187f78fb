"""Analyzers for scoring dependency risk."""

from deprisk.analyzers.github import GitHubFetcher
from deprisk.analyzers.licenses import classify_license
from deprisk.analyzers.maintainer import analyze_maintainer_health
from deprisk.analyzers.osv import OSVFetcher
from deprisk.analyzers.scorer import Scorer
from deprisk.analyzers.supply_chain import SupplyChainAnalyzer

__all__ = [
    "GitHubFetcher",
    "OSVFetcher",
    "Scorer",
    "SupplyChainAnalyzer",
    "analyze_maintainer_health",
    "classify_license",
]
